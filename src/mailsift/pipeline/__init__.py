"""Extraction pipeline: graph runtime, stages and orchestration."""

from __future__ import annotations

from mailsift.pipeline.orchestrator import PipelineOrchestrator, PipelineResult
from mailsift.pipeline.processor import ItemResult, Processor
from mailsift.pipeline.status import PipelineStatus, format_status, get_status

__all__ = [
    "ItemResult",
    "PipelineOrchestrator",
    "PipelineResult",
    "PipelineStatus",
    "Processor",
    "format_status",
    "get_status",
]
