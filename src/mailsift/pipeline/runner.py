"""Walks one item through a Process.

Connections leaving a node are followed concurrently. Deliveries to an
aggregator are merged and evaluated under a per-node lock, and a Ready
result is acted upon once per item.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from mailsift.core.errors import GraphError
from mailsift.pipeline.context import ItemContext
from mailsift.pipeline.graph import (
    AggregatorNode,
    Connection,
    Decision,
    Next,
    Output,
    PhaseNode,
    Process,
    Termination,
)

logger = structlog.get_logger(__name__)

PROCESSED = "processed"
NOT_READY = "not_ready"
AGGREGATED = "aggregated"
TERMINATED = "terminated"
UNVERIFIED = "unverified"


@dataclass(frozen=True)
class NodeEvent:
    """Emitted to handlers as nodes complete.

    Attributes:
        stage: One of processed, not_ready, aggregated, terminated, unverified.
        node: Name of the node the event is about.
        context: Context after the node completed.
        output: Output of the node, when it has one.
    """

    stage: str
    node: str
    context: ItemContext
    output: Output = field(default_factory=dict)


EventHandler = Callable[[NodeEvent], Awaitable[None]]


@dataclass(frozen=True)
class VerificationFailure:
    node: str
    messages: tuple[str, ...]


@dataclass
class ProcessResult:
    """Outcome of walking one item.

    Attributes:
        context: Most recent context produced by any branch.
        terminations: Branches stopped by a decision.
        verification_failures: Nodes whose preconditions were not met.
        completed_nodes: Phase nodes that finished, in completion order.
    """

    context: ItemContext
    terminations: list[Termination] = field(default_factory=list)
    verification_failures: list[VerificationFailure] = field(default_factory=list)
    completed_nodes: list[str] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return not self.verification_failures


@dataclass
class JoinState:
    """Per-item state of one aggregator node."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    context: ItemContext | None = None
    arrived: set[str] = field(default_factory=set)
    fired: bool = False


class _Walk:
    def __init__(
        self, process: Process, context: ItemContext, handlers: Sequence[EventHandler]
    ) -> None:
        self.process = process
        self.handlers = tuple(handlers)
        self.result = ProcessResult(context=context)
        self.joins: dict[str, JoinState] = {}

    def _observe(self, context: ItemContext) -> None:
        if context.version >= self.result.context.version:
            self.result.context = context

    async def _emit(self, event: NodeEvent) -> None:
        for handler in self.handlers:
            await handler(event)

    async def run_node(self, name: str, input: ItemContext, context: ItemContext) -> None:
        node = self.process.node(name)
        if isinstance(node, PhaseNode):
            await self._run_phase(node, input, context)
        else:
            raise GraphError(f"Aggregator node {name} must be reached through a connection")

    async def _run_phase(self, node: PhaseNode, input: ItemContext, context: ItemContext) -> None:
        phase = node.phase
        verification = phase.verify(input)
        if not verification.verified:
            logger.warning("node_unverified", node=node.name, messages=list(verification.messages))
            self.result.verification_failures.append(
                VerificationFailure(node=node.name, messages=verification.messages)
            )
            await self._emit(NodeEvent(stage=UNVERIFIED, node=node.name, context=context))
            return

        output = await phase.execute(input)
        output, context = phase.process(output, context)
        self._observe(context)
        self.result.completed_nodes.append(node.name)
        logger.debug("node_processed", node=node.name, keys=sorted(output))
        await self._emit(NodeEvent(stage=PROCESSED, node=node.name, context=context, output=output))

        await self._follow(node.name, node.next, output, context)

    async def _follow(self, source: str, next: Next, output: Output, context: ItemContext) -> None:
        if next is None:
            return

        if isinstance(next, Decision):
            decided = next.decide(output, context)
            if isinstance(decided, Termination):
                termination = Termination(reason=decided.reason, node=decided.node or source)
                logger.info("branch_terminated", node=termination.node, reason=termination.reason)
                self.result.terminations.append(termination)
                await self._emit(NodeEvent(stage=TERMINATED, node=termination.node, context=context))
                return
            connections: Sequence[Connection] = decided
        else:
            connections = next

        tasks = [
            asyncio.create_task(self._walk_connection(source, c, output, context))
            for c in connections
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            # a failed or cancelled branch ends the item, so its siblings stop too
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _walk_connection(
        self, source: str, connection: Connection, output: Output, context: ItemContext
    ) -> None:
        next_input, next_context = connection.transform(output, context)
        target = self.process.node(connection.target)
        if isinstance(target, AggregatorNode):
            await self._deliver(target, source, output, next_context)
        else:
            await self._run_phase(target, next_input, next_context)

    async def _deliver(
        self, node: AggregatorNode, source: str, output: Output, context: ItemContext
    ) -> None:
        state = self.joins.setdefault(node.name, JoinState())
        async with state.lock:
            if state.fired:
                logger.warning("aggregator_already_fired", node=node.name, source=source)
                return
            base = state.context if state.context is not None else context
            state.context = base.merge(output)
            state.arrived.add(source)
            result = await node.aggregator.aggregate(state.context)
            if not result.ready:
                logger.debug("aggregator_not_ready", node=node.name, arrived=sorted(state.arrived))
                await self._emit(NodeEvent(stage=NOT_READY, node=node.name, context=state.context))
                return
            state.fired = True
            ready_context = state.context.merge(result.output)

        self._observe(ready_context)
        logger.debug("aggregator_ready", node=node.name, arrived=sorted(state.arrived))
        await self._emit(
            NodeEvent(stage=AGGREGATED, node=node.name, context=ready_context, output=result.output)
        )
        await self._follow(node.name, node.next, result.output, ready_context)


async def execute_process(
    process: Process,
    input: ItemContext | dict[str, Any],
    handlers: Sequence[EventHandler] = (),
) -> ProcessResult:
    """Walk one item from the process entry until every branch ends.

    Args:
        process: Graph to walk.
        input: Initial context for the entry node.
        handlers: Async callables notified of every NodeEvent.

    Returns:
        ProcessResult for the item.

    Raises:
        GraphError: If a connection targets an unknown node.
        Exception: Anything raised by a phase, transform or decision propagates.
    """
    context = input if isinstance(input, ItemContext) else ItemContext(data=input)
    walk = _Walk(process, context, handlers)
    await walk.run_node(process.entry, context, context)
    return walk.result
