"""
Edge Consolidation Stage

Collapses parallel raw edges between the same pair of activities into a small
number of renderable edges. Back-edges are grouped apart from forward edges
for the same pair so cycle styling is never lost.

A consolidated edge carries the number of raw edges it stands for in
``multiplicity``, which makes consolidation idempotent.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from behandling_flow.models.graph import ELSE_LABEL, FlowEdge

logger = logging.getLogger(__name__)

GroupKey = Tuple[str, str, bool]


def mark_back_edges(edges: Iterable[FlowEdge], back_edges: Iterable[Tuple[str, str]]) -> List[FlowEdge]:
    """Copy of ``edges`` with ``is_back_edge`` set for every back-edge pair."""
    cycle_pairs = set(back_edges)
    marked = []
    for edge in edges:
        if edge.pair in cycle_pairs and not edge.is_back_edge:
            edge = edge.model_copy(update={"is_back_edge": True})
        marked.append(edge)
    return marked


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def _example_condition(group: List[FlowEdge]) -> Optional[str]:
    """First distinct, non-fallback condition of a group."""
    for edge in group:
        if edge.label and edge.label != ELSE_LABEL:
            return edge.label
    return None


def _shared_flag(group: List[FlowEdge]) -> Optional[str]:
    flags: Set[Optional[str]] = {edge.feature_flag for edge in group}
    if len(flags) == 1:
        return flags.pop()
    return None


def consolidate_edges(
    edges: Iterable[FlowEdge],
    back_edges: Iterable[Tuple[str, str]] = (),
    show_conditions: bool = False,
    summary_threshold: int = 2,
    bold_threshold: int = 4,
    example_max_length: int = 40,
) -> List[FlowEdge]:
    """Consolidate parallel edges.

    Rules, applied per ``(source, target, is_back_edge)`` group in order of
    first appearance:

    1. With conditions hidden, edges labelled with the fallback marker are
       dropped unless nothing else remains for the pair.
    2. A single remaining edge is kept with its own label.
    3. ``summary_threshold`` up to ``bold_threshold - 1`` edges become one
       edge labelled ``"<n>× <example>"`` (example omitted when conditions
       are hidden).
    4. ``bold_threshold`` or more edges become one edge labelled
       ``"<n> paths"``; the renderer draws it heavier.

    Args:
        edges: Raw (or already consolidated) flow edges
        back_edges: Back-edge pairs from cycle detection
        show_conditions: Whether condition labels will be displayed
        summary_threshold: Smallest group collapsed into a summary edge
        bold_threshold: Smallest group collapsed into a bold count edge
        example_max_length: Truncation length of the example condition

    Returns:
        Consolidated edges, each flagged as back-edge where applicable
    """
    groups: Dict[GroupKey, List[FlowEdge]] = {}
    for edge in mark_back_edges(edges, back_edges):
        groups.setdefault((edge.source, edge.target, edge.is_back_edge), []).append(edge)

    result: List[FlowEdge] = []
    for (source, target, is_back_edge), group in groups.items():
        if not show_conditions:
            specific = [edge for edge in group if edge.label != ELSE_LABEL]
            if specific:
                group = specific

        count = sum(edge.multiplicity for edge in group)
        if len(group) == 1 or count < summary_threshold:
            result.extend(group)
            continue

        if count >= bold_threshold:
            label = f"{count} paths"
        else:
            example = _example_condition(group) if show_conditions else None
            label = f"{count}× {_truncate(example, example_max_length)}" if example else f"{count}×"

        result.append(
            FlowEdge(
                source=source,
                target=target,
                label=label,
                feature_flag=_shared_flag(group),
                is_fan_out=any(edge.is_fan_out for edge in group),
                is_back_edge=is_back_edge,
                multiplicity=count,
            )
        )

    logger.debug(f"Consolidated edges into {len(result)} rendered edges")
    return result


__all__ = ["consolidate_edges", "mark_back_edges"]
