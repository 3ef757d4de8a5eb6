"""Shared pieces for pipeline stages.

This module provides:
- StageServices: collaborators every stage is built with
- read_cached_response / write_cached_response: per-item model response cache
- context path keys set by the locate stage
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from mailsift.core.config import Config
from mailsift.core.errors import CacheCorruptionError
from mailsift.core.layout import OutputLayout
from mailsift.core.storage import Storage
from mailsift.llm.client import ModelClient
from mailsift.prompts.builder import PromptFactory

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

CONTEXT_DIRECTORY = ".context"
DETAIL_DIRECTORY = ".detail"


@dataclass(frozen=True)
class StageServices:
    """Collaborators shared by every stage of one pipeline run.

    Attributes:
        config: Application configuration.
        storage: Filesystem access.
        client: Model client.
        prompts: Prompt factory.
        layout: Output directory and filename layout.
    """

    config: Config
    storage: Storage
    client: ModelClient
    prompts: PromptFactory
    layout: OutputLayout


def read_cached_response(storage: Storage, path: Path, response_model: type[T]) -> T | None:
    """Read a cached model response.

    Returns:
        The validated response, or None when no cache file exists.

    Raises:
        CacheCorruptionError: If the file is not valid JSON for `response_model`.
    """
    if not storage.exists(path):
        return None

    text = storage.read_file(path)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise CacheCorruptionError(str(path), f"invalid JSON: {e}") from e

    try:
        response = response_model.model_validate(data)
    except ValidationError as e:
        raise CacheCorruptionError(str(path), f"failed {response_model.__name__} validation: {e}") from e

    logger.debug("cache_hit", path=str(path), schema=response_model.__name__)
    return response


def write_cached_response(storage: Storage, path: Path, response: BaseModel) -> None:
    """Persist a model response for reuse by later runs."""
    storage.write_file(path, response.model_dump_json(indent=2))
