"""Stage 3: Simplify a message before classification.

Prunes headers, converts HTML-only bodies to text with the model, and
optionally drops HTML and attachments.
"""

from __future__ import annotations

import re
from dataclasses import replace
from pathlib import Path
from typing import Any

import structlog

from mailsift.core.layout import artifact_filename
from mailsift.core.types import ParsedEmail
from mailsift.pipeline.context import ItemContext
from mailsift.pipeline.graph import Connection, Phase, PhaseNode
from mailsift.pipeline.stages import stage_04_classify
from mailsift.pipeline.stages.base import StageServices, read_cached_response, write_cached_response
from mailsift.schemas.extraction import PlainText

logger = structlog.get_logger(__name__)

NODE_NAME = "simplify"
TEXT_RESPONSE_KIND = "text_response"


def prune_headers(headers: dict[str, str], patterns: list[str]) -> dict[str, str]:
    """Keep headers whose name matches any pattern (case-insensitive).

    With no patterns every header is kept.
    """
    if not patterns:
        return dict(headers)
    compiled = [re.compile(p, re.IGNORECASE) for p in patterns]
    return {name: value for name, value in headers.items() if any(p.search(name) for p in compiled)}


class SimplifyPhase(Phase):
    name = "simplify"
    required = ("eml", "detail_path", "filename")

    def __init__(self, services: StageServices) -> None:
        self.settings = services.config.simplify
        self.model = services.config.model
        self.storage = services.storage
        self.client = services.client
        self.prompts = services.prompts

    async def _html_to_text(self, html: str, cache_path: Path) -> str:
        cached = read_cached_response(self.storage, cache_path, PlainText)
        if cached is not None:
            return cached.text

        logger.debug("converting_html_to_text", size=len(html))
        prompt = self.prompts.html_to_text(html)
        text = await self.client.complete_text(prompt.to_messages(), model=self.model)
        write_cached_response(self.storage, cache_path, PlainText(text=text))
        return text

    async def execute(self, input: ItemContext) -> dict[str, Any]:
        eml: ParsedEmail = input["eml"]
        eml = replace(eml, headers=prune_headers(eml.headers, self.settings.headers))

        if not eml.text and eml.html:
            cache_path = Path(input["detail_path"]) / artifact_filename(
                input["filename"], TEXT_RESPONSE_KIND, ".json"
            )
            eml = replace(eml, text=await self._html_to_text(eml.html, cache_path))

        if self.settings.text_only:
            eml = replace(eml, html=None, html_headers=None)

        if self.settings.skip_attachments:
            eml = replace(eml, attachments=())

        return {"eml": eml}


def create_node(services: StageServices) -> PhaseNode:
    return PhaseNode(
        name=NODE_NAME,
        phase=SimplifyPhase(services),
        next=[Connection(name="to_classify", target=stage_04_classify.NODE_NAME)],
    )
