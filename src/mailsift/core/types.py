"""Shared type definitions."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class EmailAddress:
    """A single mailbox from a From/To/Cc header."""

    email: str
    name: str = ""


@dataclass(frozen=True, slots=True)
class Attachment:
    """Metadata about a message attachment (payload is not retained)."""

    filename: str
    content_type: str
    size: int = 0


@dataclass(frozen=True, slots=True)
class ParsedEmail:
    """Structured view of an EML message.

    Attributes:
        headers: Header name to value (last value wins for repeated names).
        subject: Decoded subject, empty string when missing.
        from_: Sender mailboxes.
        to: Recipient mailboxes.
        cc: Carbon-copy mailboxes.
        text: Plain text body, None when the message has none.
        html: HTML body, None when the message has none.
        html_headers: Headers of the MIME part that carried the HTML body.
        attachments: Attachments found while walking the message.
        date: Parsed Date header, None when missing or unparseable.
    """

    headers: dict[str, str] = field(default_factory=dict)
    subject: str = ""
    from_: tuple[EmailAddress, ...] = ()
    to: tuple[EmailAddress, ...] = ()
    cc: tuple[EmailAddress, ...] = ()
    text: str | None = None
    html: str | None = None
    html_headers: dict[str, str] | None = None
    attachments: tuple[Attachment, ...] = ()
    date: datetime | None = None

    @property
    def body(self) -> str:
        """Text handed to prompts: plain text, else HTML, else empty."""
        return self.text or self.html or ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        data["from"] = data.pop("from_")
        data["date"] = self.date.isoformat() if self.date else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParsedEmail:
        """Rebuild a message from `to_dict` output."""
        date = data.get("date")
        return cls(
            headers=dict(data.get("headers") or {}),
            subject=data.get("subject") or "",
            from_=tuple(EmailAddress(**a) for a in data.get("from") or ()),
            to=tuple(EmailAddress(**a) for a in data.get("to") or ()),
            cc=tuple(EmailAddress(**a) for a in data.get("cc") or ()),
            text=data.get("text"),
            html=data.get("html"),
            html_headers=data.get("html_headers"),
            attachments=tuple(Attachment(**a) for a in data.get("attachments") or ()),
            date=datetime.fromisoformat(date) if date else None,
        )
