"""Stage 2: Include/exclude filtering.

Include rules make inclusion opt-in: once an include section is configured
a message must match one to be kept. Exclude rules are evaluated last, so a
message matching both is always excluded.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

import structlog

from mailsift.core.types import EmailAddress, ParsedEmail
from mailsift.pipeline.context import ItemContext
from mailsift.pipeline.graph import Connection, Decision, Output, Phase, PhaseNode, Termination
from mailsift.pipeline.stages import stage_03_simplify
from mailsift.pipeline.stages.base import StageServices
from mailsift.schemas.config import FilterRules, FiltersConfig

logger = structlog.get_logger(__name__)

NODE_NAME = "filter"
FILTERED = "filtered"

DEFAULT_INCLUDE_REASON = "Default Include"
DEFAULT_EXCLUDE_REASON = "Default Include set to False since include filters are defined"


def _matches(patterns: Sequence[re.Pattern[str]], values: Sequence[str]) -> bool:
    return any(p.search(v) for p in patterns for v in values if v)


def match_rules(rules: FilterRules, eml: ParsedEmail) -> list[str]:
    """Return a description of every field category the rules match.

    Categories are checked in order: subject, to email, to name, from email,
    from name.
    """
    subject_patterns, to_patterns, from_patterns = rules.compiled()
    matched: list[str] = []

    def join(addresses: Sequence[EmailAddress], attr: str) -> str:
        return ", ".join(getattr(a, attr) for a in addresses)

    if _matches(subject_patterns, [eml.subject]):
        matched.append(f"subject: {eml.subject}")
    if _matches(to_patterns, [a.email for a in eml.to]):
        matched.append(f"to email: {join(eml.to, 'email')}")
    if _matches(to_patterns, [a.name for a in eml.to]):
        matched.append(f"to name: {join(eml.to, 'name')}")
    if _matches(from_patterns, [a.email for a in eml.from_]):
        matched.append(f"from email: {join(eml.from_, 'email')}")
    if _matches(from_patterns, [a.name for a in eml.from_]):
        matched.append(f"from name: {join(eml.from_, 'name')}")
    return matched


def evaluate(filters: FiltersConfig, eml: ParsedEmail) -> tuple[bool, str]:
    """Decide whether a message is included.

    Returns:
        Tuple of (include, reason). The reason names the last match that
        decided the outcome.
    """
    include = True
    reason = DEFAULT_INCLUDE_REASON

    if filters.include is not None:
        include = False
        reason = DEFAULT_EXCLUDE_REASON
        for match in match_rules(filters.include, eml):
            include = True
            reason = f"Include filter matched {match}"

    if filters.exclude is not None:
        for match in match_rules(filters.exclude, eml):
            include = False
            reason = f"Exclude filter matched {match}"

    return include, reason


class FilterPhase(Phase):
    name = "filter"
    required = ("eml",)

    def __init__(self, services: StageServices) -> None:
        self.filters = services.config.filters

    async def execute(self, input: ItemContext) -> dict[str, Any]:
        include, reason = evaluate(self.filters, input["eml"])
        logger.debug("filter_evaluated", include=include, reason=reason)
        return {"include": include, "include_reason": reason}


def route_included(output: Output, context: ItemContext) -> Termination | list[Connection]:
    if not output["include"]:
        logger.info("filtered", reason=output["include_reason"])
        return Termination(reason=FILTERED)
    return [Connection(name="to_simplify", target=stage_03_simplify.NODE_NAME)]


def create_node(services: StageServices) -> PhaseNode:
    return PhaseNode(
        name=NODE_NAME,
        phase=FilterPhase(services),
        next=Decision(name="include", decide=route_included),
    )
