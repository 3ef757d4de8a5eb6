"""Pipeline orchestrator.

Discovers EML files in the date range and runs each one through the
Processor with bounded concurrency. A failing item is recorded and the run
moves on.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from mailsift.core.config import Config
from mailsift.core.dates import DateRange
from mailsift.core.email import read_message_date
from mailsift.pipeline.processor import (
    STATUS_COMPLETED,
    STATUS_FILTERED,
    STATUS_SKIPPED,
    ItemResult,
    Processor,
)

logger = structlog.get_logger(__name__)


@dataclass
class PipelineResult:
    """Result of running the pipeline."""

    success: bool
    discovered: list[Path] = field(default_factory=list)
    processed: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    filtered: list[Path] = field(default_factory=list)
    failed: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def message(self) -> str:
        """Generate summary message."""
        if self.failed:
            return (
                f"Pipeline finished with {len(self.failed)} failed of "
                f"{len(self.discovered)} files in {self.duration_seconds:.1f}s"
            )
        return (
            f"Pipeline completed: {len(self.processed)} processed, "
            f"{len(self.skipped)} skipped, {len(self.filtered)} filtered "
            f"in {self.duration_seconds:.1f}s"
        )


Callback = Callable[[Path, str, ItemResult | None], None]


class PipelineOrchestrator:
    """Orchestrates processing of every file in the date range."""

    def __init__(
        self,
        config: Config,
        date_range: DateRange,
        processor: Processor | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Application configuration.
            date_range: Messages outside this range are not processed.
            processor: Processor to use, built from config when omitted.
        """
        self.config = config
        self.date_range = date_range
        self._processor = processor
        self._callbacks: list[Callback] = []

    def add_callback(self, callback: Callback) -> None:
        """Add a callback for item events.

        Args:
            callback: Function called with (file, event, result).
                     event is 'start', 'complete', 'skip', or 'fail'.
        """
        self._callbacks.append(callback)

    def _notify(self, file: Path, event: str, result: ItemResult | None) -> None:
        """Notify callbacks of an item event."""
        for callback in self._callbacks:
            callback(file, event, result)

    def validate(self) -> list[str]:
        """Validate configuration before running.

        Returns:
            List of validation errors (empty if valid).
        """
        errors = self.config.validate()

        if not self.config.input_directory.is_dir():
            errors.append(f"Input directory does not exist: {self.config.input_directory}")

        if not self.config.dry_run and not self.config.has_llm() and self._processor is None:
            errors.append("No LLM API key configured (need OPENAI_API_KEY or ANTHROPIC_API_KEY)")

        return errors

    def discover(self) -> list[Path]:
        """List input files whose Date header falls inside the date range."""
        extensions = {f".{e.lower()}" for e in self.config.extensions}
        files: list[Path] = []
        for path in sorted(self.config.input_directory.rglob("*")):
            if not path.is_file() or path.suffix.lower() not in extensions:
                continue
            date = read_message_date(path)
            if date is None:
                logger.warning("missing_date", file=str(path))
                continue
            if self.date_range.contains(date):
                files.append(path)
        logger.info("discovered", count=len(files), directory=str(self.config.input_directory))
        return files

    async def _process_file(
        self,
        processor: Processor,
        file: Path,
        semaphore: asyncio.Semaphore,
        result: PipelineResult,
    ) -> None:
        async with semaphore:
            self._notify(file, "start", None)
            try:
                item = await processor.process(file)
            except Exception as e:
                logger.error("item_failed", file=str(file), error=str(e), exc_info=self.config.debug)
                result.failed.append(file)
                result.errors.append(f"{file}: {e}")
                self._notify(file, "fail", None)
                return

        if item.status == STATUS_COMPLETED:
            result.processed.append(file)
            self._notify(file, "complete", item)
        elif item.status == STATUS_SKIPPED:
            result.skipped.append(file)
            self._notify(file, "skip", item)
        elif item.status == STATUS_FILTERED:
            result.filtered.append(file)
            self._notify(file, "skip", item)
        else:
            result.failed.append(file)
            detail = "; ".join(item.messages) or f"stopped before rendering ({item.status})"
            result.errors.append(f"{file}: {detail}")
            self._notify(file, "fail", item)

    async def run(self) -> PipelineResult:
        """Run the pipeline over every discovered file.

        Returns:
            PipelineResult with execution details.
        """
        start_time = time.time()
        result = PipelineResult(success=True)
        result.discovered = self.discover()

        if self.config.dry_run:
            for file in result.discovered:
                logger.info("dry_run", file=str(file))
                self._notify(file, "skip", None)
            result.duration_seconds = time.time() - start_time
            return result

        if self._processor is None:
            self._processor = Processor.from_config(self.config)

        semaphore = asyncio.Semaphore(self.config.workers)
        await asyncio.gather(
            *(
                self._process_file(self._processor, file, semaphore, result)
                for file in result.discovered
            )
        )

        result.success = not result.failed
        result.duration_seconds = time.time() - start_time
        return result

    def run_sync(self) -> PipelineResult:
        """Run the pipeline from synchronous code."""
        return asyncio.run(self.run())
