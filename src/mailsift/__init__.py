"""mailsift: route email messages through an LLM extraction pipeline."""

from __future__ import annotations

__version__ = "0.1.0"
