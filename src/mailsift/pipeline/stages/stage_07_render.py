"""Stage 7: Render the final markdown artifact.

Exactly one of Bill, Receipt or Summarize runs per item. An artifact that
already exists is read back unchanged and no model call is made.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import Any, ClassVar

import structlog
from pydantic import BaseModel

from mailsift.core.layout import artifact_filename
from mailsift.core.types import ParsedEmail
from mailsift.pipeline.context import ItemContext
from mailsift.pipeline.graph import Phase, PhaseNode
from mailsift.pipeline.stages.base import StageServices
from mailsift.prompts.builder import Prompt
from mailsift.schemas.extraction import RenderedBill, RenderedReceipt, RenderedSummary

logger = structlog.get_logger(__name__)

ARTIFACT_SUFFIX = ".md"


class RenderPhase(Phase):
    """Base for the terminal render stages.

    Subclasses set the artifact kind (also the output key), the
    subdirectory it is written to and the single-field response schema.
    """

    node_name: ClassVar[str]
    kind: ClassVar[str]
    subdirectory: ClassVar[str]
    response_model: ClassVar[type[BaseModel]]

    def __init__(self, services: StageServices) -> None:
        self.model = services.config.classify_model
        self.storage = services.storage
        self.client = services.client
        self.prompts = services.prompts

    def artifact_path(self, input: ItemContext) -> Path:
        directory = Path(input["output_path"])
        if self.subdirectory:
            directory = directory / self.subdirectory
        return directory / artifact_filename(input["filename"], self.kind, ARTIFACT_SUFFIX)

    @abstractmethod
    def build_prompt(self, eml: ParsedEmail, input: ItemContext) -> Prompt:
        """Build the render prompt from the accumulated entities."""

    async def execute(self, input: ItemContext) -> dict[str, Any]:
        path = self.artifact_path(input)
        self.storage.create_directory(path.parent)

        if self.storage.exists(path):
            logger.debug("artifact_exists", kind=self.kind, path=str(path))
            return {self.kind: self.storage.read_file(path), "artifact_path": path}

        prompt = self.build_prompt(input["eml"], input)
        response = await self.client.complete(
            prompt.to_messages(), self.response_model, model=self.model
        )
        text = getattr(response, self.kind)
        self.storage.write_file(path, text)
        logger.info("artifact_written", kind=self.kind, path=str(path))
        return {self.kind: text, "artifact_path": path}


class BillRender(RenderPhase):
    name = "bill"
    node_name = "bill"
    kind = "bill"
    subdirectory = "bills"
    response_model = RenderedBill
    required = ("eml", "events", "people", "classifications", "bills", "output_path", "filename")

    def build_prompt(self, eml: ParsedEmail, input: ItemContext) -> Prompt:
        return self.prompts.bill(
            eml.body,
            eml.headers,
            input["events"],
            input["people"],
            input["classifications"],
            input["bills"],
        )


class ReceiptRender(RenderPhase):
    name = "receipt"
    node_name = "receipt"
    kind = "receipt"
    subdirectory = "receipts"
    response_model = RenderedReceipt
    required = (
        "eml",
        "events",
        "people",
        "classifications",
        "transactions",
        "output_path",
        "filename",
    )

    def build_prompt(self, eml: ParsedEmail, input: ItemContext) -> Prompt:
        return self.prompts.receipt(
            eml.body,
            eml.headers,
            input["events"],
            input["people"],
            input["classifications"],
            input["transactions"],
        )


class SummarizeRender(RenderPhase):
    name = "summarize"
    node_name = "summarize"
    kind = "summary"
    subdirectory = ""
    response_model = RenderedSummary
    required = ("eml", "events", "people", "classifications", "output_path", "filename")

    def build_prompt(self, eml: ParsedEmail, input: ItemContext) -> Prompt:
        return self.prompts.summarize(
            eml.body,
            eml.headers,
            input["events"],
            input["people"],
            input["classifications"],
        )


RENDERERS: tuple[type[RenderPhase], ...] = (BillRender, ReceiptRender, SummarizeRender)

TERMINAL_NODES = frozenset(r.node_name for r in RENDERERS)


def create_nodes(services: StageServices) -> list[PhaseNode]:
    """Build one terminal node per renderer."""
    return [PhaseNode(name=r.node_name, phase=r(services)) for r in RENDERERS]
