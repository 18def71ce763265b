"""Core infrastructure: logging, tracing and metrics."""

from behandling_flow.core.observability import (
    LogLevel,
    ObservabilityConfig,
    ObservabilityManager,
    Timer,
    record_metric,
    span,
)

__all__ = [
    "LogLevel",
    "ObservabilityConfig",
    "ObservabilityManager",
    "Timer",
    "record_metric",
    "span",
]
