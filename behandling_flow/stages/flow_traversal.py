"""
Flow Traversal Stage

Walks the flow from one entry activity, following the transitions declared by
each activity's processor, and produces the raw edge list and the set of
visited activities.

The walk is an explicit work-list depth-first search so that pathological
inputs cannot exhaust the call stack. Visit order matches a recursive
pre-order walk: a node's outbound edges are emitted when it is expanded, then
its targets are expanded in declaration order.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Set

from behandling_flow.models.facts import ProcessorFact, Transition
from behandling_flow.models.graph import ELSE_LABEL, END_NODE, FlowEdge
from behandling_flow.pipeline.config import RenderConfig
from behandling_flow.stages.fact_index import FactIndex

logger = logging.getLogger(__name__)

# Shown when a transition is flagged but the toggle name could not be extracted
DEFAULT_FLAG_NAME = "FEATURE"

_WHITESPACE = re.compile(r"\s+")


@dataclass
class TraversalState:
    """Mutable state of one traversal, owned by a single ``traverse_flow`` call."""

    visited: Set[str] = field(default_factory=set)
    order: List[str] = field(default_factory=list)
    stack: List[str] = field(default_factory=list)

    def mark(self, node: str) -> None:
        self.visited.add(node)
        self.order.append(node)


@dataclass
class FlowTraversal:
    """Raw flow graph reachable from one entry activity."""

    entry: str
    edges: List[FlowEdge] = field(default_factory=list)
    visited: List[str] = field(default_factory=list)
    missing_processors: List[str] = field(default_factory=list)
    reaches_end: bool = False

    @property
    def nodes(self) -> List[str]:
        """Visited activities plus the synthetic END node when reached."""
        if self.reaches_end:
            return self.visited + [END_NODE]
        return list(self.visited)


def format_condition(condition: str, config: Optional[RenderConfig] = None) -> str:
    """Shorten a condition for display.

    Removes configured object-path prefixes, collapses whitespace and
    truncates overly long conditions with ``...``.
    """
    config = config or RenderConfig()
    text = _WHITESPACE.sub(" ", condition).strip()
    for prefix in config.condition_strip_prefixes:
        text = text.replace(prefix, "")

    limit = config.condition_max_length
    if len(text) > limit:
        text = text[: limit - 3] + "..."
    return text


def _edge_label(processor: ProcessorFact, transition: Transition, config: RenderConfig) -> str:
    if transition.condition is not None:
        return format_condition(transition.condition, config)
    # Fall-through branch of a conditional processor
    if processor.has_conditions and not transition.is_fan_out:
        return ELSE_LABEL
    return ""


def _feature_flag(transition: Transition) -> Optional[str]:
    if not transition.is_feature_flagged:
        return None
    return transition.feature_flag_name or DEFAULT_FLAG_NAME


def _expand(processor: ProcessorFact, config: RenderConfig) -> List[FlowEdge]:
    """Outbound edges of one processor in declaration order."""
    edges: List[FlowEdge] = []
    for transition in processor.transitions:
        label = _edge_label(processor, transition, config)
        flag = _feature_flag(transition)
        for target in transition.targets:
            edges.append(
                FlowEdge(
                    source=processor.processed_activity_name,
                    target=target,
                    label=label,
                    feature_flag=flag,
                    is_fan_out=transition.is_fan_out,
                )
            )

    if processor.signals_completion:
        edges.append(FlowEdge(source=processor.processed_activity_name, target=END_NODE))

    return edges


def traverse_flow(
    entry: str, index: FactIndex, config: Optional[RenderConfig] = None
) -> FlowTraversal:
    """Build the raw flow graph reachable from an entry activity.

    Args:
        entry: Initial activity of the flow
        index: Fact index for the scan root
        config: Render configuration (condition formatting)

    Returns:
        FlowTraversal with edges in discovery order. Activities without a
        processor are recorded in ``missing_processors`` and get no outbound
        edges. Already-visited targets keep their edge but are not expanded
        again, so the walk terminates on any cyclic input.
    """
    config = config or RenderConfig()
    result = FlowTraversal(entry=entry)
    state = TraversalState(stack=[entry])

    while state.stack:
        node = state.stack.pop()
        if node in state.visited:
            continue
        state.mark(node)

        processor = index.get_processor(node)
        if processor is None:
            result.missing_processors.append(node)
            continue

        edges = _expand(processor, config)
        result.edges.extend(edges)

        successors: List[str] = []
        for edge in edges:
            if edge.target == END_NODE:
                result.reaches_end = True
            elif edge.target not in state.visited:
                successors.append(edge.target)

        # Reversed so the first declared target is expanded first
        state.stack.extend(reversed(successors))

    result.visited = state.order
    logger.debug(
        f"Traversed {entry}: {len(result.visited)} activities, {len(result.edges)} edges, "
        f"{len(result.missing_processors)} without processor"
    )
    return result


__all__ = [
    "DEFAULT_FLAG_NAME",
    "TraversalState",
    "FlowTraversal",
    "format_condition",
    "traverse_flow",
]
