"""Configuration management."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from mailsift.core.errors import ConfigurationError
from mailsift.core.layout import ALLOWED_FILENAME_OPTIONS, ALLOWED_STRUCTURES, OutputLayout
from mailsift.llm.client import ALLOWED_MODELS
from mailsift.schemas.config import FiltersConfig, SimplifyConfig

DEFAULT_MODEL = "gpt-4o"
DEFAULT_CLASSIFY_MODEL = "gpt-4o-mini"
DEFAULT_WORKERS = 3
DEFAULT_INPUT_DIRECTORY = Path("./input")
DEFAULT_OUTPUT_DIRECTORY = Path("./output")
DEFAULT_TIMEZONE = "Etc/UTC"
DEFAULT_EXTENSIONS = ("eml",)
DEFAULT_CONFIG_DIRECTORY = Path("./.mailsift")

# YAML keys that map straight onto Config fields
_SCALAR_KEYS = (
    "output_structure",
    "timezone",
    "model",
    "classify_model",
    "replace",
    "dry_run",
    "verbose",
    "debug",
    "workers",
    "overrides",
)


@dataclass
class Config:
    """Application configuration."""

    input_directory: Path = DEFAULT_INPUT_DIRECTORY
    output_directory: Path = DEFAULT_OUTPUT_DIRECTORY
    output_structure: str = "month"
    output_filename_options: tuple[str, ...] = ("date", "subject")
    timezone: str = DEFAULT_TIMEZONE
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    model: str = DEFAULT_MODEL
    classify_model: str = DEFAULT_CLASSIFY_MODEL
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    context_directories: tuple[Path, ...] = ()
    config_directory: Path = DEFAULT_CONFIG_DIRECTORY
    overrides: bool = False
    filters: FiltersConfig = field(default_factory=FiltersConfig)
    simplify: SimplifyConfig = field(default_factory=SimplifyConfig)
    replace: bool = False
    dry_run: bool = False
    verbose: bool = False
    debug: bool = False
    workers: int = DEFAULT_WORKERS

    @classmethod
    def load(cls, config_file: Path | None = None, env_file: Path | None = None) -> Config:
        """Load configuration from defaults, a YAML file and the environment.

        Precedence is defaults < YAML file < .env file < environment.

        Args:
            config_file: Optional YAML configuration file.
            env_file: Optional .env file.

        Returns:
            Config instance with loaded values.

        Raises:
            ConfigurationError: If the YAML file is unreadable or invalid.
        """
        values: dict[str, Any] = {}
        if config_file is not None:
            values = cls._read_yaml(config_file)

        env: dict[str, Any] = {}
        if env_file and env_file.exists():
            env = dict(dotenv_values(env_file))

        def from_env(name: str) -> str | None:
            return os.environ.get(name) or env.get(name)

        try:
            filters = FiltersConfig.model_validate(values.get("filters") or {})
            simplify = SimplifyConfig.model_validate(values.get("simplify") or {})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {config_file}: {e}") from e

        kwargs: dict[str, Any] = {k: values[k] for k in _SCALAR_KEYS if k in values}
        input_dir = from_env("MAILSIFT_INPUT_DIRECTORY") or values.get("input_directory")
        output_dir = from_env("MAILSIFT_OUTPUT_DIRECTORY") or values.get("output_directory")
        if input_dir:
            kwargs["input_directory"] = Path(input_dir)
        if output_dir:
            kwargs["output_directory"] = Path(output_dir)
        if "output_filename_options" in values:
            kwargs["output_filename_options"] = tuple(values["output_filename_options"])
        if "extensions" in values:
            kwargs["extensions"] = tuple(e.lstrip(".") for e in values["extensions"])
        if "context_directories" in values:
            kwargs["context_directories"] = tuple(Path(p) for p in values["context_directories"])
        if "config_directory" in values:
            kwargs["config_directory"] = Path(values["config_directory"])
        if from_env("MAILSIFT_MODEL"):
            kwargs["model"] = from_env("MAILSIFT_MODEL")

        return cls(
            filters=filters,
            simplify=simplify,
            openai_api_key=from_env("OPENAI_API_KEY"),
            anthropic_api_key=from_env("ANTHROPIC_API_KEY"),
            **kwargs,
        )

    @staticmethod
    def _read_yaml(config_file: Path) -> dict[str, Any]:
        try:
            raw = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read config file {config_file}: {e}") from e
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config file {config_file} must contain a mapping")
        return raw

    def validate(self) -> list[str]:
        """Validate configuration.

        Returns:
            List of validation errors (empty if valid).
        """
        errors: list[str] = []

        for name, value in (("model", self.model), ("classify_model", self.classify_model)):
            if not value:
                errors.append(f"{name} is required")
            elif value not in ALLOWED_MODELS:
                errors.append(
                    f"Invalid {name}: {value}. Valid models are: {', '.join(ALLOWED_MODELS)}"
                )

        if self.output_structure not in ALLOWED_STRUCTURES:
            errors.append(f"Invalid output structure: {self.output_structure}")

        for option in self.output_filename_options:
            if option not in ALLOWED_FILENAME_OPTIONS:
                errors.append(f"Invalid output filename option: {option}")

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"Unknown timezone: {self.timezone}")

        if self.workers < 1:
            errors.append("workers must be at least 1")

        for directory in self.context_directories:
            if not directory.is_dir():
                errors.append(f"Context directory does not exist: {directory}")

        if self.overrides and not self.config_directory.is_dir():
            errors.append(f"Config directory does not exist: {self.config_directory}")

        rule_sets = [self.filters.include, self.filters.exclude]
        for rules in rule_sets:
            for pattern in rules.patterns() if rules else []:
                try:
                    re.compile(pattern)
                except re.error as e:
                    errors.append(f"Invalid filter pattern {pattern!r}: {e}")

        for pattern in self.simplify.headers:
            try:
                re.compile(pattern)
            except re.error as e:
                errors.append(f"Invalid header pattern {pattern!r}: {e}")

        return errors

    def has_llm(self) -> bool:
        """Check if any LLM API key is configured."""
        return bool(self.openai_api_key or self.anthropic_api_key)

    def layout(self) -> OutputLayout:
        """Build the output layout described by this configuration."""
        return OutputLayout(
            output_directory=self.output_directory,
            structure=self.output_structure,
            filename_options=self.output_filename_options,
            timezone=self.timezone,
        )

    def with_overrides(self, **changes: Any) -> Config:
        """Return a copy with non-None overrides applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
