"""Data models for extracted facts and the derived flow graph."""

from behandling_flow.models.facts import ClassFact, ProcessorFact, Transition
from behandling_flow.models.graph import (
    ELSE_LABEL,
    END_LABEL,
    END_NODE,
    FEATURE_FLAG_GLYPH,
    CycleCluster,
    FlowEdge,
    FlowInvariantError,
    IterationGroup,
    RenderedEdge,
    RenderedNode,
)

__all__ = [
    "ClassFact",
    "ProcessorFact",
    "Transition",
    "ELSE_LABEL",
    "END_LABEL",
    "END_NODE",
    "FEATURE_FLAG_GLYPH",
    "CycleCluster",
    "FlowEdge",
    "FlowInvariantError",
    "IterationGroup",
    "RenderedEdge",
    "RenderedNode",
]
