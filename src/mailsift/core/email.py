"""Parse raw EML bytes into a ParsedEmail.

Handles RFC 2047 encoded headers, multipart bodies and attachment
detection with the standard library `email` package.
"""

from __future__ import annotations

from datetime import datetime, timezone
from email import message_from_bytes, policy
from email.message import Message
from email.parser import BytesParser
from email.utils import getaddresses, parsedate_to_datetime
from pathlib import Path

from mailsift.core.types import Attachment, EmailAddress, ParsedEmail


def _decode_payload(payload: bytes, charset: str | None) -> str:
    """Decode payload bytes to string with charset fallback."""
    encoding = charset or "utf-8"
    try:
        return payload.decode(encoding, errors="replace")
    except (LookupError, UnicodeDecodeError):
        return payload.decode("utf-8", errors="replace")


def parse_date(value: str | None) -> datetime | None:
    """Parse an RFC 2822 date header.

    Args:
        value: Raw Date header value.

    Returns:
        Timezone-aware datetime, or None if missing or unparseable.
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(str(value))
    except (TypeError, ValueError, IndexError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_addresses(values: list[str]) -> tuple[EmailAddress, ...]:
    """Parse address header values into EmailAddress tuples."""
    return tuple(
        EmailAddress(email=addr, name=name)
        for name, addr in getaddresses([str(v) for v in values])
        if addr or name
    )


def _is_attachment(part: Message) -> bool:
    disposition = part.get_content_disposition()
    return disposition == "attachment" or (
        disposition == "inline" and part.get_filename() is not None
    )


def _get_body(msg: Message) -> tuple[str | None, str | None, dict[str, str] | None, list[Attachment]]:
    """Extract text, html, html part headers and attachments."""
    text_parts: list[str] = []
    html_parts: list[str] = []
    html_headers: dict[str, str] | None = None
    attachments: list[Attachment] = []

    parts = msg.walk() if msg.is_multipart() else iter([msg])
    for part in parts:
        if part.is_multipart():
            continue

        payload = part.get_payload(decode=True)
        if _is_attachment(part):
            attachments.append(
                Attachment(
                    filename=part.get_filename() or "",
                    content_type=part.get_content_type(),
                    size=len(payload) if isinstance(payload, bytes) else 0,
                )
            )
            continue

        if not isinstance(payload, bytes):
            continue

        content_type = part.get_content_type()
        if content_type == "text/plain":
            text_parts.append(_decode_payload(payload, part.get_content_charset()))
        elif content_type == "text/html":
            html_parts.append(_decode_payload(payload, part.get_content_charset()))
            if html_headers is None:
                html_headers = {k: str(v) for k, v in part.items()}

    text = "\n".join(text_parts) if text_parts else None
    html = "\n".join(html_parts) if html_parts else None
    return text, html, html_headers, attachments


def parse_eml(raw: bytes) -> ParsedEmail:
    """Parse raw EML content.

    Args:
        raw: Full message bytes.

    Returns:
        ParsedEmail with decoded headers, bodies and attachment metadata.
    """
    msg = message_from_bytes(raw, policy=policy.default)
    text, html, html_headers, attachments = _get_body(msg)

    return ParsedEmail(
        headers={k: str(v) for k, v in msg.items()},
        subject=str(msg.get("Subject") or ""),
        from_=parse_addresses(msg.get_all("From", [])),
        to=parse_addresses(msg.get_all("To", [])),
        cc=parse_addresses(msg.get_all("Cc", [])),
        text=text,
        html=html,
        html_headers=html_headers,
        attachments=tuple(attachments),
        date=parse_date(msg.get("Date")),
    )


def read_message_date(path: Path) -> datetime | None:
    """Read only the Date header of an EML file."""
    with path.open("rb") as fp:
        headers = BytesParser(policy=policy.default).parse(fp, headersonly=True)
    return parse_date(headers.get("Date"))
