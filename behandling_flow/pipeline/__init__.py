"""
Flow Pipeline

Configuration and per-run state. The orchestrator lives in
``behandling_flow.pipeline.orchestrator``; it depends on the stages, which in
turn read the configuration defined here.
"""

from behandling_flow.pipeline.config import EdgeStyle, FlowConfig, RenderConfig
from behandling_flow.pipeline.state import FlowMetrics, FlowResult, FlowStatus, RunSummary

__all__ = [
    "EdgeStyle",
    "FlowConfig",
    "RenderConfig",
    "FlowMetrics",
    "FlowResult",
    "FlowStatus",
    "RunSummary",
]
