"""
Flow Graph Intermediate Representation

Derived, in-memory structures built from the extracted facts: raw and
consolidated flow edges, cycle clusters, iteration groups and the final
styled nodes/edges handed to the DOT generator.

Everything here is recomputed on every run; nothing is persisted.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Synthetic node reached when a processor signals flow completion. The ID is
# reserved so it never merges with an activity called "END".
END_NODE = "__END__"
END_LABEL = "END"

# Label given to the unconditional fall-through branch of a conditional processor
ELSE_LABEL = "else"

FEATURE_FLAG_GLYPH = "🚩"


class FlowInvariantError(ValueError):
    """Raised when derived graph structures violate an internal invariant.

    These are programming errors, not data gaps: generation of the affected
    entry point is aborted instead of emitting malformed output.
    """


class FlowEdge(BaseModel):
    """One directed edge of the flow graph."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(..., description="Activity the edge leaves")
    target: str = Field(..., description="Activity the edge enters")
    label: str = Field("", description="Formatted condition text, empty if unconditional")
    feature_flag: Optional[str] = Field(
        None, description="Feature toggle guarding the transition, if any"
    )
    is_fan_out: bool = Field(False, description="Edge produced by a fan-out step")
    is_back_edge: bool = Field(False, description="Edge closes a cycle")
    multiplicity: int = Field(1, ge=1, description="Number of raw edges this edge represents")

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.source, self.target)

    @property
    def display_label(self) -> str:
        """Condition label prefixed with the feature-flag marker."""
        if self.feature_flag is None:
            return self.label
        marker = f"{FEATURE_FLAG_GLYPH} {self.feature_flag}"
        return f"{marker}: {self.label}" if self.label else marker


@dataclass(frozen=True)
class CycleCluster:
    """Maximal group of mutually cycle-connected activities."""

    members: Tuple[str, ...]

    @property
    def node_set(self) -> FrozenSet[str]:
        return frozenset(self.members)

    def __contains__(self, node: object) -> bool:
        return node in self.members

    def __iter__(self) -> Iterator[str]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class IterationGroup:
    """Linear chain of activities started by a fan-out edge."""

    trigger_node: str
    members: Tuple[str, ...]


@dataclass(frozen=True)
class RenderedNode:
    """Final styled node."""

    node_id: str
    label: str
    fill_color: str
    role: str
    shape: Optional[str] = None
    style: str = "filled"


@dataclass(frozen=True)
class RenderedEdge:
    """Final styled edge."""

    source: str
    target: str
    label: str = ""
    color: Optional[str] = None
    penwidth: Optional[str] = None
    style: Optional[str] = None
    constraint: Optional[str] = None

    def dot_attributes(self) -> dict:
        """Non-empty DOT attributes of this edge."""
        attrs = {
            "color": self.color,
            "penwidth": self.penwidth,
            "style": self.style,
            "constraint": self.constraint,
        }
        return {key: value for key, value in attrs.items() if value is not None}


__all__ = [
    "END_NODE",
    "END_LABEL",
    "ELSE_LABEL",
    "FEATURE_FLAG_GLYPH",
    "FlowInvariantError",
    "FlowEdge",
    "CycleCluster",
    "IterationGroup",
    "RenderedNode",
    "RenderedEdge",
]
