"""Output directory and filename layout.

Every artifact produced for a message derives its name from the canonical
filename built here, which ends in the `output` token:

    15-1030-ab12cd34-Invoice__123-output

`artifact_filename` swaps that trailing token for an artifact kind.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

ALLOWED_STRUCTURES = ("none", "year", "month", "day")
ALLOWED_FILENAME_OPTIONS = ("date", "time", "subject")

OUTPUT_TOKEN = "output"
SUBJECT_EXCERPT_LENGTH = 12

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9\-_]")
_TRAILING_OUTPUT = re.compile(rf"{OUTPUT_TOKEN}(\.[^.]*)?$")


def safe_subject(subject: str | None, length: int = SUBJECT_EXCERPT_LENGTH) -> str:
    """Truncate a subject and replace filesystem-unsafe characters with '_'."""
    if not subject:
        return ""
    return _UNSAFE_CHARS.sub("_", subject[:length])


def artifact_filename(filename: str, kind: str, suffix: str = "") -> str:
    """Derive an artifact filename from the canonical filename.

    Args:
        filename: Canonical filename ending in the `output` token.
        kind: Artifact kind (e.g. "bill", "event_response").
        suffix: Extension to append (e.g. ".md").

    Returns:
        Filename with the trailing token replaced. Filenames without the
        token get `.{kind}` appended instead, keeping kinds distinct.
    """
    if _TRAILING_OUTPUT.search(filename):
        return _TRAILING_OUTPUT.sub(f"{kind}{suffix}", filename)
    return f"{filename}.{kind}{suffix}"


@dataclass(frozen=True)
class OutputLayout:
    """Maps message dates to output directories and filenames."""

    output_directory: Path
    structure: str = "month"
    filename_options: tuple[str, ...] = ("date", "subject")
    timezone: str = "Etc/UTC"

    def _localize(self, date: datetime) -> datetime:
        return date.astimezone(ZoneInfo(self.timezone))

    def construct_output_directory(self, date: datetime) -> Path:
        """Return the directory that holds outputs for messages on `date`."""
        local = self._localize(date)
        path = self.output_directory
        if self.structure in ("year", "month", "day"):
            path = path / f"{local.year:04d}"
        if self.structure in ("month", "day"):
            path = path / str(local.month)
        if self.structure == "day":
            path = path / str(local.day)
        return path

    def _date_part(self, local: datetime) -> str | None:
        # The directory already carries the coarser date components.
        if self.structure == "none":
            return local.strftime("%Y-%m-%d")
        if self.structure == "year":
            return local.strftime("%m-%d")
        if self.structure == "month":
            return local.strftime("%d")
        return None

    def construct_filename(
        self, date: datetime, kind: str, hash_: str, subject: str = ""
    ) -> str:
        """Build a filename for a message.

        Args:
            date: Message date.
            kind: Trailing kind token (the pipeline uses "output").
            hash_: Content fingerprint.
            subject: Already sanitized subject excerpt (may be empty).

        Returns:
            Dash-joined filename without extension.
        """
        local = self._localize(date)
        parts: list[str] = []
        if "date" in self.filename_options:
            date_part = self._date_part(local)
            if date_part:
                parts.append(date_part)
        if "time" in self.filename_options:
            parts.append(local.strftime("%H%M"))
        parts.append(hash_)
        if "subject" in self.filename_options and subject:
            parts.append(subject)
        parts.append(kind)
        return "-".join(parts)
