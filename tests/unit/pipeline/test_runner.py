"""Tests for mailsift.pipeline.runner."""

from __future__ import annotations

import asyncio
import itertools
from typing import Any

import pytest

from mailsift.core.errors import GraphError
from mailsift.pipeline.context import ItemContext
from mailsift.pipeline.graph import (
    NOT_YET_READY,
    AggregationResult,
    Aggregator,
    AggregatorNode,
    Connection,
    Decision,
    Phase,
    PhaseNode,
    Process,
    Termination,
)
from mailsift.pipeline.runner import (
    AGGREGATED,
    NOT_READY,
    PROCESSED,
    TERMINATED,
    UNVERIFIED,
    NodeEvent,
    execute_process,
)

BRANCHES = ("w", "x", "y", "z")


class SetPhase(Phase):
    """Writes fixed values."""

    name = "set"

    def __init__(self, values: dict[str, Any], required: tuple[str, ...] = ()) -> None:
        self.values = values
        self.required = required  # type: ignore[misc]
        self.calls = 0

    async def execute(self, input: ItemContext) -> dict[str, Any]:
        self.calls += 1
        return dict(self.values)


class GatedPhase(Phase):
    """Writes one key, after the previous branch in the ordering finished."""

    name = "gated"

    def __init__(self, key: str, wait_for: asyncio.Event | None, done: asyncio.Event) -> None:
        self.key = key
        self.wait_for = wait_for
        self.done = done

    async def execute(self, input: ItemContext) -> dict[str, Any]:
        if self.wait_for is not None:
            await self.wait_for.wait()
        self.done.set()
        return {self.key: f"value-{self.key}"}


class FailingPhase(Phase):
    name = "failing"

    async def execute(self, input: ItemContext) -> dict[str, Any]:
        raise RuntimeError("boom")


class SlowPhase(Phase):
    """Sleeps before writing, so a sibling failure lands first."""

    name = "slow"

    def __init__(self) -> None:
        self.started = False
        self.finished = False

    async def execute(self, input: ItemContext) -> dict[str, Any]:
        self.started = True
        await asyncio.sleep(0.05)
        self.finished = True
        return {"slow": True}


class AllBranches(Aggregator):
    """Ready once every branch key is defined."""

    name = "join"

    def __init__(self) -> None:
        self.calls = 0
        self.arrivals: list[list[str]] = []

    async def aggregate(self, context: ItemContext) -> AggregationResult:
        self.calls += 1
        self.arrivals.append(sorted(k for k in BRANCHES if context.has(k)))
        if context.missing(BRANCHES):
            return NOT_YET_READY
        return AggregationResult.with_output({"joined": True})


def recorder() -> tuple[list[NodeEvent], Any]:
    events: list[NodeEvent] = []

    async def handler(event: NodeEvent) -> None:
        events.append(event)

    return events, handler


def fan_in_process(order: tuple[str, ...]) -> tuple[Process, AllBranches, SetPhase]:
    """Build start -> {w, x, y, z} -> join -> finish, with branches finishing in `order`."""
    done = {key: asyncio.Event() for key in BRANCHES}
    previous: dict[str, asyncio.Event | None] = {}
    for index, key in enumerate(order):
        previous[key] = done[order[index - 1]] if index else None

    aggregator = AllBranches()
    finish = SetPhase({"finished": True})
    nodes: dict[str, Any] = {
        "start": PhaseNode(
            "start",
            SetPhase({"started": True}),
            [Connection(f"start_{k}", k) for k in BRANCHES],
        ),
        "join": AggregatorNode("join", aggregator, [Connection("join_finish", "finish")]),
        "finish": PhaseNode("finish", finish),
    }
    for key in BRANCHES:
        nodes[key] = PhaseNode(
            key,
            GatedPhase(key, previous[key], done[key]),
            [Connection(f"{key}_join", "join")],
        )
    return Process(name="fan_in", nodes=nodes, entry="start"), aggregator, finish


class TestLinearWalk:
    """Tests for walking a chain of phases."""

    @pytest.mark.asyncio
    async def test_runs_in_order(self) -> None:
        """Test each phase sees the previous output and events are emitted."""
        second = SetPhase({"b": 2}, required=("a",))
        process = Process(
            name="linear",
            nodes={
                "first": PhaseNode("first", SetPhase({"a": 1}), [Connection("c", "second")]),
                "second": PhaseNode("second", second),
            },
            entry="first",
        )
        events, handler = recorder()

        result = await execute_process(process, {"file": "a.eml"}, [handler])

        assert result.verified
        assert result.completed_nodes == ["first", "second"]
        assert result.context.to_dict() == {"file": "a.eml", "a": 1, "b": 2}
        assert [(e.stage, e.node) for e in events] == [
            (PROCESSED, "first"),
            (PROCESSED, "second"),
        ]
        assert events[1].output == {"b": 2}

    @pytest.mark.asyncio
    async def test_custom_transform(self) -> None:
        """Test a connection transform shapes the next input."""

        def only_output(output: Any, context: ItemContext) -> tuple[ItemContext, ItemContext]:
            return ItemContext(data=output), context.merge(output)

        second = SetPhase({"b": 2}, required=("file",))
        process = Process(
            name="transform",
            nodes={
                "first": PhaseNode(
                    "first", SetPhase({"a": 1}), [Connection("c", "second", only_output)]
                ),
                "second": PhaseNode("second", second),
            },
            entry="first",
        )

        result = await execute_process(process, {"file": "a.eml"})

        assert not result.verified
        assert second.calls == 0


class TestVerification:
    """Tests for unverified nodes."""

    @pytest.mark.asyncio
    async def test_unverified_stops_branch(self) -> None:
        """Test a failed precondition halts the item without executing."""
        second = SetPhase({"b": 2}, required=("missing", "other"))
        third = SetPhase({"c": 3})
        process = Process(
            name="unverified",
            nodes={
                "first": PhaseNode("first", SetPhase({"a": 1}), [Connection("c1", "second")]),
                "second": PhaseNode("second", second, [Connection("c2", "third")]),
                "third": PhaseNode("third", third),
            },
            entry="first",
        )
        events, handler = recorder()

        result = await execute_process(process, {}, [handler])

        assert not result.verified
        assert result.verification_failures[0].node == "second"
        assert len(result.verification_failures[0].messages) == 2
        assert second.calls == 0
        assert third.calls == 0
        assert events[-1].stage == UNVERIFIED
        assert not result.context.has("b")


class TestDecisions:
    """Tests for decision nodes."""

    @pytest.mark.asyncio
    async def test_termination(self) -> None:
        """Test a decision can end the branch."""
        after = SetPhase({"b": 2})
        process = Process(
            name="decide",
            nodes={
                "first": PhaseNode(
                    "first",
                    SetPhase({"a": 1}),
                    Decision("stop", lambda output, context: Termination("nothing to do")),
                ),
                "after": PhaseNode("after", after),
            },
            entry="first",
        )
        events, handler = recorder()

        result = await execute_process(process, {}, [handler])

        assert result.terminations == [Termination(reason="nothing to do", node="first")]
        assert after.calls == 0
        assert events[-1].stage == TERMINATED

    @pytest.mark.asyncio
    async def test_routes_to_connection(self) -> None:
        """Test a decision returning connections continues the walk."""
        after = SetPhase({"b": 2})
        process = Process(
            name="decide",
            nodes={
                "first": PhaseNode(
                    "first",
                    SetPhase({"a": 1}),
                    Decision("go", lambda output, context: [Connection("go", "after")]),
                ),
                "after": PhaseNode("after", after),
            },
            entry="first",
        )

        result = await execute_process(process, {})

        assert after.calls == 1
        assert result.terminations == []

    @pytest.mark.asyncio
    async def test_unknown_decided_target(self) -> None:
        """Test a decision naming an unknown node raises GraphError."""
        process = Process(
            name="decide",
            nodes={
                "first": PhaseNode(
                    "first",
                    SetPhase({"a": 1}),
                    Decision("go", lambda output, context: [Connection("go", "nowhere")]),
                ),
            },
            entry="first",
        )

        with pytest.raises(GraphError):
            await execute_process(process, {})


class TestAggregation:
    """Tests for fan-out and join."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("order", list(itertools.permutations(BRANCHES)))
    async def test_ready_once_for_any_order(self, order: tuple[str, ...]) -> None:
        """Test the join fires once with every branch output, whatever the arrival order."""
        process, aggregator, finish = fan_in_process(order)
        events, handler = recorder()

        result = await execute_process(process, {"file": "a.eml"}, [handler])

        assert aggregator.calls == 4
        assert aggregator.arrivals[-1] == sorted(BRANCHES)
        assert aggregator.arrivals[0] == [order[0]]
        assert finish.calls == 1
        stages = [e.stage for e in events if e.node == "join"]
        assert stages.count(NOT_READY) == 3
        assert stages.count(AGGREGATED) == 1
        assert result.context.has("joined")
        assert result.context.has("finished")
        assert all(result.context.has(k) for k in BRANCHES)

    @pytest.mark.asyncio
    async def test_aggregator_as_entry(self) -> None:
        """Test an aggregator cannot be the entry node."""
        process = Process(
            name="bad",
            nodes={"join": AggregatorNode("join", AllBranches())},
            entry="join",
        )
        with pytest.raises(GraphError, match="must be reached through a connection"):
            await execute_process(process, {})


class TestErrors:
    """Tests for exceptions raised by phases."""

    @pytest.mark.asyncio
    async def test_phase_error_propagates(self) -> None:
        """Test an exception from execute reaches the caller."""
        process = Process(
            name="failing",
            nodes={"first": PhaseNode("first", FailingPhase())},
            entry="first",
        )
        with pytest.raises(RuntimeError, match="boom"):
            await execute_process(process, {})

    @pytest.mark.asyncio
    async def test_failed_branch_cancels_siblings(self) -> None:
        """Test sibling branches stop once one branch fails."""
        slow = SlowPhase()
        process = Process(
            name="fan_out_failure",
            nodes={
                "start": PhaseNode(
                    "start",
                    SetPhase({"started": True}),
                    [Connection("to_failing", "failing"), Connection("to_slow", "slow")],
                ),
                "failing": PhaseNode("failing", FailingPhase()),
                "slow": PhaseNode("slow", slow),
            },
            entry="start",
        )

        with pytest.raises(RuntimeError, match="boom"):
            await execute_process(process, {})
        await asyncio.sleep(0.1)

        assert slow.started is True
        assert slow.finished is False

    @pytest.mark.asyncio
    async def test_two_failed_branches(self) -> None:
        """Test the first failure is raised when several branches fail."""
        process = Process(
            name="double_failure",
            nodes={
                "start": PhaseNode(
                    "start",
                    SetPhase({}),
                    [Connection("a", "first"), Connection("b", "second")],
                ),
                "first": PhaseNode("first", FailingPhase()),
                "second": PhaseNode("second", FailingPhase()),
            },
            entry="start",
        )

        with pytest.raises(RuntimeError, match="boom"):
            await execute_process(process, {})
