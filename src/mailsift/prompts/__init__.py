"""Prompt templates and builders."""

from __future__ import annotations

from mailsift.prompts.builder import Prompt, PromptFactory, load_context_documents

__all__ = ["Prompt", "PromptFactory", "load_context_documents"]
