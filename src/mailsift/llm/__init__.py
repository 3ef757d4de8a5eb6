"""Language model access."""

from __future__ import annotations

from mailsift.llm.client import ALLOWED_MODELS, MODELS, ModelClient, ModelClientError

__all__ = ["ALLOWED_MODELS", "MODELS", "ModelClient", "ModelClientError"]
