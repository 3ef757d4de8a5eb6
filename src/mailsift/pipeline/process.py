"""The fixed extraction graph."""

from __future__ import annotations

from mailsift.pipeline.graph import Node, Process
from mailsift.pipeline.stages import (
    StageServices,
    stage_01_locate,
    stage_02_filter,
    stage_03_simplify,
    stage_04_classify,
    stage_05_sentries,
    stage_06_aggregate,
    stage_07_render,
)

PROCESS_NAME = "extract"
ENTRY_NODE = stage_01_locate.NODE_NAME


def create_process(services: StageServices) -> Process:
    """Build the graph: locate, filter, simplify, classify, sentries, aggregate, render.

    Raises:
        GraphError: If a connection targets a node that is not registered.
    """
    nodes: list[Node] = [
        stage_01_locate.create_node(services),
        stage_02_filter.create_node(services),
        stage_03_simplify.create_node(services),
        stage_04_classify.create_node(services),
        *stage_05_sentries.create_nodes(services),
        stage_06_aggregate.create_node(),
        *stage_07_render.create_nodes(services),
    ]
    return Process(name=PROCESS_NAME, nodes={n.name: n for n in nodes}, entry=ENTRY_NODE)
