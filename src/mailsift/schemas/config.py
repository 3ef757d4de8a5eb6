"""Filter and simplify configuration schemas."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_HEADER_PATTERNS = [
    "^GmExport-.*$",
    "^Received-SPF$",
    "^Authentication-Results$",
    "^Date$",
    "^From$",
    "^To$",
    "^Subject$",
    "^Message-ID$",
    "^Reply-To$",
    "^Cc$",
    "^Bcc$",
]


class FilterRules(BaseModel):
    """Case-insensitive regular expressions per message field."""

    subject: list[str] = Field(default_factory=list)
    to: list[str] = Field(default_factory=list)
    from_: list[str] = Field(default_factory=list, alias="from")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def compiled(self) -> tuple[list[re.Pattern[str]], list[re.Pattern[str]], list[re.Pattern[str]]]:
        """Compile (subject, to, from) patterns case-insensitively."""
        return (
            [re.compile(p, re.IGNORECASE) for p in self.subject],
            [re.compile(p, re.IGNORECASE) for p in self.to],
            [re.compile(p, re.IGNORECASE) for p in self.from_],
        )

    def patterns(self) -> list[str]:
        """All configured patterns."""
        return [*self.subject, *self.to, *self.from_]


class FiltersConfig(BaseModel):
    """Include and exclude rule sets."""

    include: FilterRules | None = None
    exclude: FilterRules | None = None

    model_config = ConfigDict(extra="forbid")


class SimplifyConfig(BaseModel):
    """How messages are reduced before classification."""

    headers: list[str] = Field(default_factory=lambda: list(DEFAULT_HEADER_PATTERNS))
    text_only: bool = True
    skip_attachments: bool = True

    model_config = ConfigDict(extra="forbid")
