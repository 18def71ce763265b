"""
behandling-flow: Render Behandling Activity Flows as Graphviz Diagrams

Builds a flow graph per Behandling entry point from facts extracted from the
source code (classes, activity processors and their transitions), detects
retry/waiting loops, consolidates parallel edges and emits Graphviz DOT.
"""

# Models
from behandling_flow.models import (
    END_NODE,
    ClassFact,
    CycleCluster,
    FlowEdge,
    FlowInvariantError,
    IterationGroup,
    ProcessorFact,
    Transition,
)

# Configuration and state
from behandling_flow.pipeline import (
    EdgeStyle,
    FlowConfig,
    FlowResult,
    FlowStatus,
    RenderConfig,
    RunSummary,
)

# Pipeline stages
from behandling_flow.stages import (
    CycleAnalysis,
    DotGraphGenerator,
    FactIndex,
    FlowTraversal,
    build_fact_index,
    consolidate_edges,
    detect_cycles,
    detect_iteration_groups,
    traverse_flow,
)

# Orchestration and fact loading
from behandling_flow.knowledge import FactFileError, discover_fact_files, load_fact_file, load_facts
from behandling_flow.pipeline.orchestrator import FlowGenerator

__version__ = "0.1.0"

__all__ = [
    "END_NODE",
    "ClassFact",
    "CycleCluster",
    "FlowEdge",
    "FlowInvariantError",
    "IterationGroup",
    "ProcessorFact",
    "Transition",
    "EdgeStyle",
    "FlowConfig",
    "FlowResult",
    "FlowStatus",
    "RenderConfig",
    "RunSummary",
    "CycleAnalysis",
    "DotGraphGenerator",
    "FactIndex",
    "FlowTraversal",
    "build_fact_index",
    "consolidate_edges",
    "detect_cycles",
    "detect_iteration_groups",
    "traverse_flow",
    "FactFileError",
    "discover_fact_files",
    "load_fact_file",
    "load_facts",
    "FlowGenerator",
]
