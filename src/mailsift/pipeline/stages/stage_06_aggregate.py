"""Stage 6: Join the sentries and route the item.

The aggregator is Ready once every sentry key is defined (empty lists count).
Routing then picks exactly one render stage: bills first, then
transactions, then a plain summary.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from mailsift.pipeline.context import ItemContext
from mailsift.pipeline.graph import (
    NOT_YET_READY,
    AggregationResult,
    Aggregator,
    AggregatorNode,
    Connection,
    Decision,
    Output,
    Termination,
)
from mailsift.pipeline.stages import stage_07_render

logger = structlog.get_logger(__name__)

NODE_NAME = "sentry_aggregator"

REQUIRED_KEYS = ("events", "people", "classifications", "transactions", "bills")


class SentryAggregator(Aggregator):
    name = "sentry_aggregator"

    async def aggregate(self, context: ItemContext) -> AggregationResult:
        missing = context.missing(REQUIRED_KEYS)
        if missing:
            logger.debug("sentries_pending", missing=missing)
            return NOT_YET_READY
        return AggregationResult.with_output({key: context[key] for key in REQUIRED_KEYS})


def choose_route(output: Mapping[str, Any]) -> str:
    """Name of the render node for aggregated output (first match wins)."""
    if output.get("bills"):
        return stage_07_render.BillRender.node_name
    if output.get("transactions"):
        return stage_07_render.ReceiptRender.node_name
    return stage_07_render.SummarizeRender.node_name


def route(output: Output, context: ItemContext) -> Termination | list[Connection]:
    target = choose_route(output)
    logger.debug("routed", target=target)
    return [Connection(name=f"to_{target}", target=target)]


def create_node() -> AggregatorNode:
    return AggregatorNode(
        name=NODE_NAME,
        aggregator=SentryAggregator(),
        next=Decision(name="route", decide=route),
    )
