"""Tests for mailsift.core.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from mailsift.core.config import Config
from mailsift.core.errors import ConfigurationError
from mailsift.schemas.config import DEFAULT_HEADER_PATTERNS, FilterRules, FiltersConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "MAILSIFT_INPUT_DIRECTORY",
        "MAILSIFT_OUTPUT_DIRECTORY",
        "MAILSIFT_MODEL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestConfigLoad:
    """Tests for Config.load."""

    def test_defaults(self) -> None:
        """Test default values without files or environment."""
        config = Config.load()
        assert config.model == "gpt-4o"
        assert config.classify_model == "gpt-4o-mini"
        assert config.workers == 3
        assert config.output_structure == "month"
        assert config.filters.include is None
        assert config.simplify.headers == DEFAULT_HEADER_PATTERNS
        assert config.simplify.text_only is True
        assert config.simplify.skip_attachments is True
        assert config.openai_api_key is None

    def test_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test API keys and directories come from the environment."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-test")
        monkeypatch.setenv("MAILSIFT_INPUT_DIRECTORY", "/data/in")
        monkeypatch.setenv("MAILSIFT_MODEL", "gpt-4o-mini")

        config = Config.load()

        assert config.openai_api_key == "sk-test"
        assert config.anthropic_api_key == "ant-test"
        assert config.input_directory == Path("/data/in")
        assert config.model == "gpt-4o-mini"

    def test_from_env_file(self, tmp_path: Path) -> None:
        """Test values from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("OPENAI_API_KEY=sk-file\n")

        config = Config.load(env_file=env_file)

        assert config.openai_api_key == "sk-file"

    def test_environment_wins_over_env_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test process environment takes precedence over .env."""
        env_file = tmp_path / ".env"
        env_file.write_text("OPENAI_API_KEY=sk-file\n")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

        assert Config.load(env_file=env_file).openai_api_key == "sk-env"

    def test_from_yaml(self, tmp_path: Path) -> None:
        """Test YAML values are applied."""
        config_file = tmp_path / "mailsift.yaml"
        config_file.write_text(
            """
input_directory: ./mail
output_directory: ./notes
output_structure: day
output_filename_options: [date, time]
model: gpt-4o-mini
workers: 5
context_directories: [./context]
filters:
  include:
    subject: ["Invoice.*"]
  exclude:
    from: ["noreply@"]
simplify:
  headers: ["^Subject$"]
  text_only: false
"""
        )

        config = Config.load(config_file)

        assert config.input_directory == Path("./mail")
        assert config.output_directory == Path("./notes")
        assert config.output_structure == "day"
        assert config.output_filename_options == ("date", "time")
        assert config.model == "gpt-4o-mini"
        assert config.workers == 5
        assert config.context_directories == (Path("./context"),)
        assert config.filters.include is not None
        assert config.filters.include.subject == ["Invoice.*"]
        assert config.filters.exclude is not None
        assert config.filters.exclude.from_ == ["noreply@"]
        assert config.simplify.headers == ["^Subject$"]
        assert config.simplify.text_only is False
        assert config.simplify.skip_attachments is True

    def test_prompt_overrides_from_yaml(self, tmp_path: Path) -> None:
        """Test the override switch and config directory come from the file."""
        config_file = tmp_path / "mailsift.yaml"
        config_file.write_text(f"overrides: true\nconfig_directory: {tmp_path / 'prompts'}\n")

        config = Config.load(config_file)

        assert config.overrides is True
        assert config.config_directory == tmp_path / "prompts"

    def test_empty_yaml(self, tmp_path: Path) -> None:
        """Test an empty file gives defaults."""
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        assert Config.load(config_file).model == "gpt-4o"

    def test_yaml_not_mapping(self, tmp_path: Path) -> None:
        """Test a non-mapping document is rejected."""
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            Config.load(config_file)

    def test_missing_yaml(self, tmp_path: Path) -> None:
        """Test a missing file is a configuration error."""
        with pytest.raises(ConfigurationError, match="Cannot read config file"):
            Config.load(tmp_path / "missing.yaml")

    def test_unknown_filter_field(self, tmp_path: Path) -> None:
        """Test unknown filter keys are rejected."""
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("filters:\n  include:\n    body: ['x']\n")
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            Config.load(config_file)


class TestConfigValidate:
    """Tests for Config.validate."""

    def test_valid(self) -> None:
        """Test default configuration is valid."""
        assert Config().validate() == []

    def test_invalid_model(self) -> None:
        """Test unknown models are reported."""
        errors = Config(model="gpt-2").validate()
        assert len(errors) == 1
        assert "Invalid model: gpt-2" in errors[0]

    def test_invalid_layout(self) -> None:
        """Test structure and filename options are checked."""
        errors = Config(output_structure="week", output_filename_options=("date", "hash")).validate()
        assert "Invalid output structure: week" in errors
        assert "Invalid output filename option: hash" in errors

    def test_invalid_timezone_and_workers(self) -> None:
        """Test timezone and worker count are checked."""
        errors = Config(timezone="Mars/Olympus", workers=0).validate()
        assert "Unknown timezone: Mars/Olympus" in errors
        assert "workers must be at least 1" in errors

    def test_missing_context_directory(self, tmp_path: Path) -> None:
        """Test context directories must exist."""
        errors = Config(context_directories=(tmp_path / "missing",)).validate()
        assert any("Context directory does not exist" in e for e in errors)

    def test_missing_config_directory(self, tmp_path: Path) -> None:
        """Test the config directory must exist only when overrides are on."""
        missing = tmp_path / "missing"
        assert Config(config_directory=missing).validate() == []
        errors = Config(config_directory=missing, overrides=True).validate()
        assert errors == [f"Config directory does not exist: {missing}"]

    def test_invalid_patterns(self) -> None:
        """Test filter and header regexes must compile."""
        config = Config(
            filters=FiltersConfig(include=FilterRules(subject=["("])),
        )
        config.simplify.headers = ["["]
        errors = config.validate()
        assert any("Invalid filter pattern '('" in e for e in errors)
        assert any("Invalid header pattern '['" in e for e in errors)


class TestConfigHelpers:
    """Tests for has_llm, layout and with_overrides."""

    def test_has_llm(self) -> None:
        """Test any API key enables the model client."""
        assert Config().has_llm() is False
        assert Config(anthropic_api_key="ant").has_llm() is True

    def test_layout(self, tmp_path: Path) -> None:
        """Test the layout mirrors configuration."""
        layout = Config(output_directory=tmp_path, output_structure="year").layout()
        assert layout.output_directory == tmp_path
        assert layout.structure == "year"

    def test_with_overrides_ignores_none(self) -> None:
        """Test None overrides keep existing values."""
        config = Config(workers=4).with_overrides(workers=None, model="gpt-4o-mini")
        assert config.workers == 4
        assert config.model == "gpt-4o-mini"

    def test_with_overrides_sets_prompt_overrides(self, tmp_path: Path) -> None:
        """Test the overrides field can itself be overridden."""
        config = Config().with_overrides(overrides=True, config_directory=tmp_path)
        assert config.overrides is True
        assert config.config_directory == tmp_path
