"""Stage graph primitives.

A Process is a registry of named nodes plus an entry node name. Phase nodes
run a Phase and then follow their `next`: a list of Connections (walked
concurrently), a Decision, or nothing for a terminal node. Aggregator nodes
join several upstream branches and continue once their Aggregator reports
Ready.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from mailsift.core.errors import GraphError
from mailsift.pipeline.context import ItemContext

Output = Mapping[str, Any]
Transform = Callable[[Output, ItemContext], tuple[ItemContext, ItemContext]]


@dataclass(frozen=True)
class VerifyResult:
    """Outcome of a precondition check."""

    verified: bool
    messages: tuple[str, ...] = ()

    @classmethod
    def ok(cls) -> VerifyResult:
        return cls(verified=True)

    @classmethod
    def from_messages(cls, messages: Sequence[str]) -> VerifyResult:
        return cls(verified=not messages, messages=tuple(messages))


class Phase(ABC):
    """A named unit of work.

    Subclasses set `name` and `required`, and implement `execute`. The
    default `verify` reports one message per required key that is not
    defined in the input.
    """

    name: ClassVar[str]
    required: ClassVar[tuple[str, ...]] = ()

    def verify(self, input: ItemContext) -> VerifyResult:
        return VerifyResult.from_messages(
            [f"{key} is required for {self.name}" for key in input.missing(self.required)]
        )

    @abstractmethod
    async def execute(self, input: ItemContext) -> dict[str, Any]:
        """Do the work and return the keys this phase contributes."""

    def process(self, output: Output, context: ItemContext) -> tuple[Output, ItemContext]:
        """Merge the output into the running context."""
        return output, context.merge(output)


def merge_output(output: Output, context: ItemContext) -> tuple[ItemContext, ItemContext]:
    """Default transform: next input is the context with the output merged in."""
    merged = context.merge(output)
    return merged, merged


@dataclass(frozen=True)
class Connection:
    """Directed edge to exactly one node."""

    name: str
    target: str
    transform: Transform = merge_output


@dataclass(frozen=True)
class Termination:
    """Stops the walk of one branch."""

    reason: str
    node: str = ""


@dataclass(frozen=True)
class Decision:
    """Branching point: returns a Termination or the connections to follow."""

    name: str
    decide: Callable[[Output, ItemContext], Termination | Sequence[Connection]]


@dataclass(frozen=True)
class AggregationResult:
    """Either Ready with an output, or not yet ready."""

    ready: bool
    output: Output = field(default_factory=dict)

    @classmethod
    def with_output(cls, output: Output) -> AggregationResult:
        return cls(ready=True, output=output)


NOT_YET_READY = AggregationResult(ready=False)


class Aggregator(ABC):
    """Join over several upstream branches.

    `aggregate` is called with the join's accumulated context each time an
    upstream branch delivers. The runner serializes calls per item and acts
    on Ready once.
    """

    name: ClassVar[str]

    @abstractmethod
    async def aggregate(self, context: ItemContext) -> AggregationResult:
        """Report whether everything the join waits for has arrived."""


Next = Union[Sequence[Connection], Decision, None]


@dataclass(frozen=True)
class PhaseNode:
    name: str
    phase: Phase
    next: Next = None


@dataclass(frozen=True)
class AggregatorNode:
    name: str
    aggregator: Aggregator
    next: Next = None


Node = Union[PhaseNode, AggregatorNode]


@dataclass(frozen=True)
class Process:
    """Fixed registry of nodes with a single entry point.

    Raises:
        GraphError: If the entry or any static connection target is not registered.
    """

    name: str
    nodes: Mapping[str, Node]
    entry: str

    def __post_init__(self) -> None:
        errors = self.validate()
        if errors:
            raise GraphError(f"Invalid process {self.name}: {'; '.join(errors)}")

    def validate(self) -> list[str]:
        """Check node names and static connection targets.

        Connections returned by decisions are checked when they are followed.
        """
        errors: list[str] = []
        if self.entry not in self.nodes:
            errors.append(f"entry node {self.entry} is not registered")
        for key, node in self.nodes.items():
            if key != node.name:
                errors.append(f"node registered as {key} is named {node.name}")
            if isinstance(node.next, (list, tuple)):
                for connection in node.next:
                    if connection.target not in self.nodes:
                        errors.append(
                            f"{node.name} connects to unknown node {connection.target}"
                        )
        return errors

    def node(self, name: str) -> Node:
        """Look up a node.

        Raises:
            GraphError: If no node has that name.
        """
        try:
            return self.nodes[name]
        except KeyError:
            raise GraphError(f"Unknown node {name} in process {self.name}") from None
