"""Stage 1: Locate an EML file.

Parses the message, fingerprints the file and derives every path later
stages write to. The check-existing decision then skips items whose context
marker is already on disk.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from mailsift.core.email import parse_eml
from mailsift.core.errors import MailsiftError
from mailsift.core.layout import OUTPUT_TOKEN, safe_subject
from mailsift.pipeline.context import ItemContext
from mailsift.pipeline.graph import Connection, Decision, Output, Phase, PhaseNode, Termination
from mailsift.pipeline.stages import stage_02_filter
from mailsift.pipeline.stages.base import CONTEXT_DIRECTORY, DETAIL_DIRECTORY, StageServices

logger = structlog.get_logger(__name__)

NODE_NAME = "locate"
HASH_SAMPLE_BYTES = 100
HASH_LENGTH = 8

ALREADY_PROCESSED = "already_processed"


def context_marker_path(context: ItemContext) -> Path:
    """Path of the marker that records a fully processed item."""
    return Path(context["context_path"]) / f"{context['filename']}.json"


class LocatePhase(Phase):
    name = "locate"
    required = ("file",)

    def __init__(self, services: StageServices) -> None:
        self.storage = services.storage
        self.layout = services.layout

    async def execute(self, input: ItemContext) -> dict[str, Any]:
        path = Path(input["file"])
        eml = parse_eml(self.storage.read_bytes(path))
        if eml.date is None:
            raise MailsiftError(f"Cannot place {path}: missing or invalid Date header")

        hash_ = self.storage.hash_file(path, HASH_SAMPLE_BYTES)[:HASH_LENGTH]
        output_path = self.layout.construct_output_directory(eml.date)
        context_path = output_path / CONTEXT_DIRECTORY
        detail_path = output_path / DETAIL_DIRECTORY
        self.storage.create_directory(context_path)
        self.storage.create_directory(detail_path)

        filename = self.layout.construct_filename(
            eml.date, OUTPUT_TOKEN, hash_, safe_subject(eml.subject)
        )
        logger.debug("located", file=str(path), hash=hash_, filename=filename)

        return {
            "creation_time": eml.date,
            "output_path": output_path,
            "context_path": context_path,
            "detail_path": detail_path,
            "hash": hash_,
            "filename": filename,
            "eml": eml,
        }


def check_existing(services: StageServices) -> Decision:
    """Skip items that already have a context marker, unless replacing."""
    storage = services.storage
    replace = services.config.replace

    def decide(output: Output, context: ItemContext) -> Termination | list[Connection]:
        marker = context_marker_path(context)
        if storage.exists(marker):
            if not replace:
                logger.info("already_processed", marker=str(marker))
                return Termination(reason=ALREADY_PROCESSED)
            logger.info("replacing_processed_item", marker=str(marker))
        return [Connection(name="to_filter", target=stage_02_filter.NODE_NAME)]

    return Decision(name="check_existing", decide=decide)


def create_node(services: StageServices) -> PhaseNode:
    return PhaseNode(
        name=NODE_NAME,
        phase=LocatePhase(services),
        next=check_existing(services),
    )
