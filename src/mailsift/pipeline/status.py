"""Pipeline status utilities.

Counts what previous runs left in the output directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mailsift.core.config import Config
from mailsift.pipeline.stages.base import CONTEXT_DIRECTORY, DETAIL_DIRECTORY
from mailsift.pipeline.stages.stage_07_render import BillRender, ReceiptRender, SummarizeRender


@dataclass
class PipelineStatus:
    """Artifacts found under the output directory."""

    output_directory: Path
    processed: int = 0
    bills: int = 0
    receipts: int = 0
    summaries: int = 0
    cached_responses: int = 0
    error: str | None = None

    @property
    def artifacts(self) -> int:
        """Total number of rendered markdown files."""
        return self.bills + self.receipts + self.summaries

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "output_directory": str(self.output_directory),
            "processed": self.processed,
            "bills": self.bills,
            "receipts": self.receipts,
            "summaries": self.summaries,
            "artifacts": self.artifacts,
            "cached_responses": self.cached_responses,
            "error": self.error,
        }


def _count(root: Path, parent: str, suffix: str) -> int:
    return sum(1 for p in root.rglob(f"*{suffix}") if p.is_file() and p.parent.name == parent)


def get_status(config: Config) -> PipelineStatus:
    """Get current pipeline status from the output directory.

    Args:
        config: Application configuration.

    Returns:
        PipelineStatus with current counts.
    """
    root = config.output_directory
    status = PipelineStatus(output_directory=root)
    if not root.is_dir():
        status.error = f"Output directory does not exist: {root}"
        return status

    status.processed = _count(root, CONTEXT_DIRECTORY, ".json")
    status.cached_responses = _count(root, DETAIL_DIRECTORY, "_response.json")
    status.bills = _count(root, BillRender.subdirectory, f"{BillRender.kind}.md")
    status.receipts = _count(root, ReceiptRender.subdirectory, f"{ReceiptRender.kind}.md")
    status.summaries = sum(
        1
        for p in root.rglob(f"*{SummarizeRender.kind}.md")
        if p.is_file() and p.parent.name not in (BillRender.subdirectory, ReceiptRender.subdirectory)
    )
    return status


def format_status(status: PipelineStatus) -> str:
    """Format pipeline status for display.

    Args:
        status: Pipeline status.

    Returns:
        Formatted status string.
    """
    if status.error:
        return f"Error getting status: {status.error}"

    lines = [
        "=" * 60,
        "PIPELINE STATUS",
        "=" * 60,
        f"Output directory:       {status.output_directory}",
        f"Emails processed:       {status.processed:,}",
        f"Bills rendered:         {status.bills:,}",
        f"Receipts rendered:      {status.receipts:,}",
        f"Summaries rendered:     {status.summaries:,}",
        f"Cached model responses: {status.cached_responses:,}",
        "=" * 60,
    ]
    return "\n".join(lines)
