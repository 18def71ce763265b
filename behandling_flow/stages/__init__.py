"""
Flow Generation Stages

1. Fact Index: lookup tables over the extracted facts
2. Flow Traversal: raw edge list reachable from an entry activity
3. Cycle Detection: back-edges, cycle clusters and iteration groups
4. Edge Consolidation: collapse parallel edges into summaries
5. DOT Generation: styled Graphviz description of the flow
"""

from behandling_flow.stages.fact_index import DuplicateFact, FactIndex, build_fact_index

from behandling_flow.stages.flow_traversal import (
    FlowTraversal,
    TraversalState,
    format_condition,
    traverse_flow,
)

from behandling_flow.stages.cycle_detection import (
    CycleAnalysis,
    detect_cycles,
    detect_iteration_groups,
)

from behandling_flow.stages.edge_consolidation import consolidate_edges, mark_back_edges

from behandling_flow.stages.node_styling import (
    NodeStyler,
    NodeStyleRule,
    StyleContext,
    build_style_rules,
    display_name,
)

from behandling_flow.stages.dot_generation import DotGraphGenerator, escape_label

__all__ = [
    "DuplicateFact",
    "FactIndex",
    "build_fact_index",
    "FlowTraversal",
    "TraversalState",
    "format_condition",
    "traverse_flow",
    "CycleAnalysis",
    "detect_cycles",
    "detect_iteration_groups",
    "consolidate_edges",
    "mark_back_edges",
    "NodeStyler",
    "NodeStyleRule",
    "StyleContext",
    "build_style_rules",
    "display_name",
    "DotGraphGenerator",
    "escape_label",
]
