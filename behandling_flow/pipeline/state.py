"""
Pipeline State

Tracks per-entry-point results of a generation run, including the generated
DOT text, warnings and graph metrics.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class FlowStatus(str, Enum):
    """Status of one entry point's flow generation."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class FlowMetrics:
    """Graph metrics of one generated flow."""

    nodes: int = 0
    raw_edges: int = 0
    rendered_edges: int = 0
    back_edges: int = 0
    cycle_clusters: int = 0
    iteration_groups: int = 0
    missing_processors: int = 0


@dataclass
class FlowResult:
    """Result of generating one entry point's flow."""

    flow_name: str
    entry_activity: str
    status: FlowStatus = FlowStatus.PENDING
    dot_source: Optional[str] = None
    output_path: Optional[Path] = None
    duration_ms: float = 0.0
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    metrics: FlowMetrics = field(default_factory=FlowMetrics)

    @property
    def is_success(self) -> bool:
        """Check if generation succeeded."""
        return self.status == FlowStatus.COMPLETED

    @property
    def file_stem(self) -> str:
        """Deterministic output name, e.g. ``FooBehandling_flow``."""
        return f"{self.flow_name}_flow"


@dataclass
class RunSummary:
    """Complete state of one generation run."""

    start_time: datetime = field(default_factory=datetime.now)
    fact_files: List[Path] = field(default_factory=list)
    results: List[FlowResult] = field(default_factory=list)

    # Run-level warnings (duplicate facts); per-flow warnings live on the results
    warnings: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> List[FlowResult]:
        return [r for r in self.results if r.is_success]

    @property
    def failed(self) -> List[FlowResult]:
        return [r for r in self.results if r.status == FlowStatus.FAILED]

    @property
    def is_failed(self) -> bool:
        """Check if any entry point failed."""
        return bool(self.failed)

    def add_result(self, result: FlowResult) -> None:
        self.results.append(result)

    def get_result(self, flow_name: str) -> Optional[FlowResult]:
        """Get the result for an entry class.

        Args:
            flow_name: Entry class name

        Returns:
            FlowResult if found, None otherwise
        """
        for result in self.results:
            if result.flow_name == flow_name:
                return result
        return None

    def summary(self) -> Dict[str, Any]:
        """Get summary of the run.

        Returns:
            Dictionary with run summary
        """
        return {
            "fact_files": len(self.fact_files),
            "flows_total": len(self.results),
            "flows_succeeded": len(self.succeeded),
            "flows_failed": len(self.failed),
            "warning_count": len(self.warnings),
            "errors": {r.flow_name: r.error for r in self.failed},
        }


__all__ = ["FlowStatus", "FlowMetrics", "FlowResult", "RunSummary"]
