"""Exception hierarchy shared across mailsift."""

from __future__ import annotations


class MailsiftError(Exception):
    """Base exception for mailsift errors."""


class ConfigurationError(MailsiftError):
    """Raised when configuration is invalid at setup time."""


class CacheCorruptionError(MailsiftError):
    """Raised when a cached response exists but cannot be trusted.

    A corrupt cache is never treated as a miss.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cached response {path} is corrupt: {reason}")


class GraphError(MailsiftError):
    """Raised when the process graph is malformed or refers to unknown nodes."""
