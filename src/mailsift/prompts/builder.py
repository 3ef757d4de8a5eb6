"""Prompt assembly for each model call in the pipeline."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field, is_dataclass
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel

from mailsift.classification import Taxonomy, load_taxonomy
from mailsift.core.errors import ConfigurationError
from mailsift.llm.client import Message
from mailsift.prompts import templates
from mailsift.schemas.extraction import Bill, Classification, Event, Person, Transaction

logger = structlog.get_logger(__name__)

CONTEXT_FILE_SUFFIXES = (".md", ".txt")

Section = tuple[str, str]


def to_json(value: Any) -> str:
    """Serialize prompt content, converting pydantic models and dataclasses."""

    def convert(item: Any) -> Any:
        if isinstance(item, BaseModel):
            return item.model_dump(mode="json")
        if is_dataclass(item) and not isinstance(item, type):
            return asdict(item)
        if isinstance(item, (list, tuple)):
            return [convert(i) for i in item]
        if isinstance(item, dict):
            return {k: convert(v) for k, v in item.items()}
        return item

    return json.dumps(convert(value), indent=2, default=str)


@dataclass(frozen=True)
class Prompt:
    """Provider-agnostic prompt.

    Attributes:
        persona: System message.
        instructions: Task description, first part of the user message.
        contents: Titled sections holding the material to work on.
        context: Titled sections of background material.
    """

    persona: str
    instructions: str
    contents: tuple[Section, ...] = ()
    context: tuple[Section, ...] = field(default=())

    def to_messages(self) -> list[Message]:
        """Format as chat messages: persona as system, everything else as user."""
        parts = [self.instructions]
        for title, text in self.contents:
            parts.append(f"## {title}\n{text}")
        for title, text in self.context:
            parts.append(f"## Context: {title}\n{text}")
        return [
            {"role": "system", "content": self.persona},
            {"role": "user", "content": "\n\n".join(parts)},
        ]


def load_context_documents(directories: Sequence[Path]) -> tuple[Section, ...]:
    """Read every markdown or text file found in the context directories.

    Raises:
        ConfigurationError: If a directory is missing or a file is unreadable.
    """
    documents: list[Section] = []
    for directory in directories:
        if not directory.is_dir():
            raise ConfigurationError(f"Context directory does not exist: {directory}")
        for path in sorted(directory.rglob("*")):
            if not path.is_file() or path.suffix.lower() not in CONTEXT_FILE_SUFFIXES:
                continue
            try:
                documents.append((path.name, path.read_text(encoding="utf-8")))
            except (OSError, UnicodeDecodeError) as e:
                raise ConfigurationError(f"Cannot read context file {path}: {e}") from e
    logger.debug("context_documents_loaded", count=len(documents))
    return tuple(documents)


def _read_prompt_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read prompt override {path}: {e}") from e


def apply_overrides(directory: Path, relative: str, default: str) -> str:
    """Resolve one prompt text against an override directory.

    `<relative>` replaces the default outright. `<stem>-pre<suffix>` and
    `<stem>-post<suffix>` are placed before and after whichever text is used.

    Raises:
        ConfigurationError: If an override file exists but cannot be read.
    """
    path = directory / relative
    text = default
    if path.is_file():
        text = _read_prompt_file(path)
        logger.info("prompt_override", file=relative)

    pre = path.with_name(f"{path.stem}-pre{path.suffix}")
    if pre.is_file():
        text = f"{_read_prompt_file(pre)}\n\n{text}"
        logger.info("prompt_override_pre", file=relative)

    post = path.with_name(f"{path.stem}-post{path.suffix}")
    if post.is_file():
        text = f"{text}\n\n{_read_prompt_file(post)}"
        logger.info("prompt_override_post", file=relative)
    return text


class PromptFactory:
    """Builds the prompt for every stage that calls a model.

    Persona and instruction texts come from `templates`. When an override
    directory is given, files under `personas/` and `instructions/` in it
    replace or extend them (see `apply_overrides`). All texts use
    str.format placeholders, so literal braces in override files are doubled.
    """

    def __init__(
        self,
        taxonomy: Taxonomy | None = None,
        context_directories: Sequence[Path] = (),
        override_directory: Path | None = None,
    ) -> None:
        self.taxonomy = taxonomy or load_taxonomy()
        self.context = load_context_documents(context_directories)
        if override_directory is not None and not override_directory.is_dir():
            raise ConfigurationError(
                f"Prompt override directory does not exist: {override_directory}"
            )
        self.override_directory = override_directory

    def _text(self, relative: str, default: str, **params: str) -> str:
        text = default
        if self.override_directory is not None:
            text = apply_overrides(self.override_directory, relative, default)
        try:
            return text.format(**params)
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigurationError(f"Invalid placeholder in prompt {relative}: {e}") from e

    def _build(self, name: str, *contents: Section, **params: str) -> Prompt:
        return Prompt(
            persona=self._text(
                f"personas/{name}.md", getattr(templates, f"PERSONA_{_constant(name)}")
            ),
            instructions=self._text(
                f"instructions/{name}.md",
                getattr(templates, f"INSTRUCTIONS_{_constant(name)}"),
                **params,
            ),
            contents=contents,
            context=self.context,
        )

    def classification(self, text: str, headers: dict[str, str]) -> Prompt:
        return self._build(
            "classify",
            ("headers", to_json(headers)),
            ("email", text),
            taxonomy=self.taxonomy.render(),
        )

    def _sentry(
        self,
        name: str,
        text: str,
        headers: dict[str, str],
        classifications: Sequence[Classification],
    ) -> Prompt:
        return self._build(
            f"sentry/{name}",
            ("headers", to_json(headers)),
            ("classifications", to_json(classifications)),
            ("email", text),
        )

    def event_sentry(
        self, text: str, headers: dict[str, str], classifications: Sequence[Classification]
    ) -> Prompt:
        return self._sentry("event", text, headers, classifications)

    def person_sentry(
        self, text: str, headers: dict[str, str], classifications: Sequence[Classification]
    ) -> Prompt:
        return self._sentry("person", text, headers, classifications)

    def receipt_sentry(
        self, text: str, headers: dict[str, str], classifications: Sequence[Classification]
    ) -> Prompt:
        return self._sentry("receipt", text, headers, classifications)

    def bill_sentry(
        self, text: str, headers: dict[str, str], classifications: Sequence[Classification]
    ) -> Prompt:
        return self._sentry("bill", text, headers, classifications)

    def summarize(
        self,
        text: str,
        headers: dict[str, str],
        events: Sequence[Event],
        people: Sequence[Person],
        classifications: Sequence[Classification],
    ) -> Prompt:
        return self._build(
            "summarize",
            ("headers", to_json(headers)),
            ("classifications", to_json(classifications)),
            ("people", to_json(people)),
            ("events", to_json(events)),
            ("email", text),
        )

    def receipt(
        self,
        text: str,
        headers: dict[str, str],
        events: Sequence[Event],
        people: Sequence[Person],
        classifications: Sequence[Classification],
        transactions: Sequence[Transaction],
    ) -> Prompt:
        return self._build(
            "receipt",
            ("transactions", to_json(transactions)),
            ("headers", to_json(headers)),
            ("classifications", to_json(classifications)),
            ("people", to_json(people)),
            ("events", to_json(events)),
            ("email", text),
        )

    def bill(
        self,
        text: str,
        headers: dict[str, str],
        events: Sequence[Event],
        people: Sequence[Person],
        classifications: Sequence[Classification],
        bills: Sequence[Bill],
    ) -> Prompt:
        return self._build(
            "bill",
            ("bills", to_json(bills)),
            ("headers", to_json(headers)),
            ("classifications", to_json(classifications)),
            ("people", to_json(people)),
            ("events", to_json(events)),
            ("email", text),
        )

    def html_to_text(self, html: str) -> Prompt:
        return self._build("html_to_text", ("html", html))


def _constant(name: str) -> str:
    # "sentry/event" -> "SENTRY_EVENT"
    return name.replace("/", "_").upper()
