"""Stage 5: Sentry extractors.

Four independent extractors run concurrently on the same message and
classifications: events, people, transactions (receipts) and bills. Each
caches its model response in the detail directory and hands its output to
the sentry aggregator.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import Any, ClassVar

import structlog
from pydantic import BaseModel

from mailsift.core.layout import artifact_filename
from mailsift.core.types import ParsedEmail
from mailsift.pipeline.context import ItemContext
from mailsift.pipeline.graph import Connection, Phase, PhaseNode
from mailsift.pipeline.stages import stage_06_aggregate
from mailsift.pipeline.stages.base import StageServices, read_cached_response, write_cached_response
from mailsift.prompts.builder import Prompt
from mailsift.schemas.extraction import (
    BillsResponse,
    Classification,
    EventsResponse,
    PeopleResponse,
    TransactionsResponse,
)

logger = structlog.get_logger(__name__)


class SentryPhase(Phase):
    """Base for the extractors.

    Subclasses set the context key they produce, the response schema that
    wraps it, the cache file kind, and build their prompt.
    """

    node_name: ClassVar[str]
    key: ClassVar[str]
    response_model: ClassVar[type[BaseModel]]
    response_kind: ClassVar[str]
    required = ("eml", "classifications", "detail_path", "filename")

    def __init__(self, services: StageServices) -> None:
        self.model = services.config.classify_model
        self.storage = services.storage
        self.client = services.client
        self.prompts = services.prompts

    @abstractmethod
    def build_prompt(
        self, text: str, headers: dict[str, str], classifications: Sequence[Classification]
    ) -> Prompt:
        """Build the extraction prompt."""

    def cache_path(self, input: ItemContext) -> Path:
        return Path(input["detail_path"]) / artifact_filename(
            input["filename"], self.response_kind, ".json"
        )

    async def execute(self, input: ItemContext) -> dict[str, Any]:
        cache_path = self.cache_path(input)
        response = read_cached_response(self.storage, cache_path, self.response_model)

        if response is None:
            eml: ParsedEmail = input["eml"]
            prompt = self.build_prompt(eml.body, eml.headers, input["classifications"])
            response = await self.client.complete(
                prompt.to_messages(), self.response_model, model=self.model
            )
            write_cached_response(self.storage, cache_path, response)

        values = getattr(response, self.key)
        logger.debug("sentry_extracted", sentry=self.name, count=len(values))
        return {self.key: values}


class EventSentry(SentryPhase):
    name = "event_sentry"
    node_name = "event_sentry"
    key = "events"
    response_model = EventsResponse
    response_kind = "event_response"

    def build_prompt(
        self, text: str, headers: dict[str, str], classifications: Sequence[Classification]
    ) -> Prompt:
        return self.prompts.event_sentry(text, headers, classifications)


class PersonSentry(SentryPhase):
    name = "person_sentry"
    node_name = "person_sentry"
    key = "people"
    response_model = PeopleResponse
    response_kind = "person_response"

    def build_prompt(
        self, text: str, headers: dict[str, str], classifications: Sequence[Classification]
    ) -> Prompt:
        return self.prompts.person_sentry(text, headers, classifications)


class ReceiptSentry(SentryPhase):
    name = "receipt_sentry"
    node_name = "receipt_sentry"
    key = "transactions"
    response_model = TransactionsResponse
    response_kind = "receipt_response"

    def build_prompt(
        self, text: str, headers: dict[str, str], classifications: Sequence[Classification]
    ) -> Prompt:
        return self.prompts.receipt_sentry(text, headers, classifications)


class BillSentry(SentryPhase):
    name = "bill_sentry"
    node_name = "bill_sentry"
    key = "bills"
    response_model = BillsResponse
    response_kind = "bill_response"

    def build_prompt(
        self, text: str, headers: dict[str, str], classifications: Sequence[Classification]
    ) -> Prompt:
        return self.prompts.bill_sentry(text, headers, classifications)


SENTRIES: tuple[type[SentryPhase], ...] = (EventSentry, PersonSentry, ReceiptSentry, BillSentry)


def create_nodes(services: StageServices) -> list[PhaseNode]:
    """Build one node per sentry, each feeding the aggregator."""
    return [
        PhaseNode(
            name=sentry.node_name,
            phase=sentry(services),
            next=[Connection(name="to_aggregator", target=stage_06_aggregate.NODE_NAME)],
        )
        for sentry in SENTRIES
    ]
