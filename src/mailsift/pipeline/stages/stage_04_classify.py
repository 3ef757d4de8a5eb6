"""Stage 4: Classify a message against the taxonomy.

One model call per message, cached in the detail directory. On success the
item fans out to the four sentry extractors.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from mailsift.core.layout import artifact_filename
from mailsift.core.types import ParsedEmail
from mailsift.pipeline.context import ItemContext
from mailsift.pipeline.graph import Connection, Phase, PhaseNode
from mailsift.pipeline.stages import stage_05_sentries
from mailsift.pipeline.stages.base import StageServices, read_cached_response, write_cached_response
from mailsift.schemas.extraction import ClassificationsResponse

logger = structlog.get_logger(__name__)

NODE_NAME = "classify"
RESPONSE_KIND = "classify_response"


class ClassifyPhase(Phase):
    name = "classify"
    required = ("eml", "detail_path", "filename")

    def __init__(self, services: StageServices) -> None:
        self.model = services.config.classify_model
        self.storage = services.storage
        self.client = services.client
        self.prompts = services.prompts
        self.taxonomy = services.prompts.taxonomy

    async def execute(self, input: ItemContext) -> dict[str, Any]:
        cache_path = Path(input["detail_path"]) / artifact_filename(
            input["filename"], RESPONSE_KIND, ".json"
        )
        response = read_cached_response(self.storage, cache_path, ClassificationsResponse)

        if response is None:
            eml: ParsedEmail = input["eml"]
            prompt = self.prompts.classification(eml.body, eml.headers)
            response = await self.client.complete(
                prompt.to_messages(), ClassificationsResponse, model=self.model
            )
            write_cached_response(self.storage, cache_path, response)

        for classification in response.classifications:
            if not self.taxonomy.is_valid_coordinate(classification.coordinate):
                logger.warning("unknown_coordinate", coordinate=classification.coordinate)

        logger.debug("classified", count=len(response.classifications))
        return {"classifications": response.classifications}


def fan_out() -> list[Connection]:
    """One connection per sentry, each receiving the same context."""
    return [
        Connection(name=f"to_{sentry.node_name}", target=sentry.node_name)
        for sentry in stage_05_sentries.SENTRIES
    ]


def create_node(services: StageServices) -> PhaseNode:
    return PhaseNode(name=NODE_NAME, phase=ClassifyPhase(services), next=fan_out())
