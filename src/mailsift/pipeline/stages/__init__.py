"""Pipeline stages module.

Each stage module exports its node name(s) and a factory building its
graph node(s) from StageServices.
"""

from __future__ import annotations

from mailsift.pipeline.stages import (
    stage_01_locate,
    stage_02_filter,
    stage_03_simplify,
    stage_04_classify,
    stage_05_sentries,
    stage_06_aggregate,
    stage_07_render,
)
from mailsift.pipeline.stages.base import StageServices

__all__ = [
    "StageServices",
    "stage_01_locate",
    "stage_02_filter",
    "stage_03_simplify",
    "stage_04_classify",
    "stage_05_sentries",
    "stage_06_aggregate",
    "stage_07_render",
]
