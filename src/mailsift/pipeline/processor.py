"""Runs single files through the extraction graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import structlog

from mailsift.core.config import Config
from mailsift.core.storage import Storage
from mailsift.llm.client import ModelClient
from mailsift.pipeline.process import create_process
from mailsift.pipeline.runner import PROCESSED, NodeEvent, ProcessResult, execute_process
from mailsift.pipeline.stages import StageServices
from mailsift.pipeline.stages.stage_01_locate import ALREADY_PROCESSED, context_marker_path
from mailsift.pipeline.stages.stage_02_filter import FILTERED
from mailsift.pipeline.stages.stage_07_render import TERMINAL_NODES
from mailsift.prompts.builder import PromptFactory

logger = structlog.get_logger(__name__)

STATUS_COMPLETED = "completed"
STATUS_SKIPPED = "skipped"
STATUS_FILTERED = "filtered"
STATUS_UNVERIFIED = "unverified"
STATUS_INCOMPLETE = "incomplete"


@dataclass
class ItemResult:
    """Outcome of processing one file.

    Attributes:
        file: Input file.
        status: completed, skipped, filtered, unverified or incomplete.
        artifact_path: Rendered markdown file, when one was produced or reused.
        terminations: Reasons recorded by decisions that stopped a branch.
        messages: Verification messages, when preconditions failed.
    """

    file: Path
    status: str
    artifact_path: Path | None = None
    terminations: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)


def build_services(config: Config, client: ModelClient | None = None) -> StageServices:
    """Create the collaborators for a run from configuration.

    Raises:
        ConfigurationError: If the taxonomy, a context directory or the prompt
            override directory cannot be loaded.
    """
    return StageServices(
        config=config,
        storage=Storage(),
        client=client
        or ModelClient(
            model=config.model,
            openai_api_key=config.openai_api_key,
            anthropic_api_key=config.anthropic_api_key,
        ),
        prompts=PromptFactory(
            context_directories=config.context_directories,
            override_directory=config.config_directory if config.overrides else None,
        ),
        layout=config.layout(),
    )


class Processor:
    """Walks files through the graph and records fully processed items."""

    def __init__(self, services: StageServices) -> None:
        self.services = services
        self.storage = services.storage
        self.process_graph = create_process(services)

    @classmethod
    def from_config(cls, config: Config, client: ModelClient | None = None) -> Processor:
        return cls(build_services(config, client))

    async def _write_context_marker(self, event: NodeEvent) -> None:
        if event.stage != PROCESSED or event.node not in TERMINAL_NODES:
            return
        context = event.context
        if context.get("include") is not True:
            return
        if not (context.has("context_path") and context.has("filename")):
            return
        marker = context_marker_path(context)
        self.storage.write_file(marker, context.to_json())
        logger.debug("context_marker_written", path=str(marker))

    async def process(self, file: Path) -> ItemResult:
        """Process one file.

        Args:
            file: EML file to process.

        Returns:
            ItemResult describing how far the item got.

        Raises:
            Exception: Model, storage and parsing errors propagate to the caller.
        """
        with structlog.contextvars.bound_contextvars(file=file.name):
            result = await execute_process(
                self.process_graph,
                {"file": str(file)},
                handlers=[self._write_context_marker],
            )
            item = self._summarize(file, result)
            logger.info("item_processed", status=item.status, hash=result.context.get("hash"))
        return item

    @staticmethod
    def _summarize(file: Path, result: ProcessResult) -> ItemResult:
        reasons = [t.reason for t in result.terminations]
        messages = [m for failure in result.verification_failures for m in failure.messages]

        if messages:
            status = STATUS_UNVERIFIED
        elif ALREADY_PROCESSED in reasons:
            status = STATUS_SKIPPED
        elif FILTERED in reasons:
            status = STATUS_FILTERED
        elif TERMINAL_NODES.intersection(result.completed_nodes):
            status = STATUS_COMPLETED
        else:
            status = STATUS_INCOMPLETE

        artifact = result.context.get("artifact_path")
        return ItemResult(
            file=file,
            status=status,
            artifact_path=Path(artifact) if artifact else None,
            terminations=reasons,
            messages=messages,
        )
