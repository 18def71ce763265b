"""
Flow Generation Configuration

Defines configuration for the flow pipeline: rendering options (condition
labels, legend, edge routing, consolidation thresholds, colouring keywords)
and output handling for the CLI.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


class EdgeStyle(str, Enum):
    """Global edge routing hint embedded in the DOT output."""

    STRAIGHT = "straight"
    CURVED = "curved"
    ORTHOGONAL = "ortho"

    @property
    def splines(self) -> str:
        """Graphviz ``splines`` value for this style."""
        return {
            EdgeStyle.STRAIGHT: "polyline",
            EdgeStyle.CURVED: "spline",
            EdgeStyle.ORTHOGONAL: "ortho",
        }[self]

    @classmethod
    def from_name(cls, name: str) -> "EdgeStyle":
        """Parse a style name, accepting Graphviz aliases.

        Unknown names fall back to straight edges.
        """
        aliases = {
            "straight": cls.STRAIGHT,
            "polyline": cls.STRAIGHT,
            "curved": cls.CURVED,
            "spline": cls.CURVED,
            "ortho": cls.ORTHOGONAL,
            "orthogonal": cls.ORTHOGONAL,
        }
        return aliases.get(name.strip().lower(), cls.STRAIGHT)


@dataclass
class RenderConfig:
    """Options affecting the generated graph description."""

    # Labels
    show_conditions: bool = False
    show_legend: bool = False
    condition_max_length: int = 80
    example_max_length: int = 40
    condition_strip_prefixes: Tuple[str, ...] = ("behandling.", "krav.")
    name_strip_tokens: Tuple[str, ...] = ("Aktivitet",)

    # Edges
    edge_style: EdgeStyle = EdgeStyle.STRAIGHT
    deduplicate: bool = True
    summary_threshold: int = 2  # parallel edges collapsed into "<n>× example"
    bold_threshold: int = 4  # parallel edges collapsed into a bold "<n> paths"

    # Clusters
    show_iterations: bool = True

    # Node colouring keywords, matched as name substrings
    highlight_supertype: Optional[str] = "AldeAktivitet"
    waiting_keywords: Tuple[str, ...] = ("Vent", "Wait")
    manual_keywords: Tuple[str, ...] = ("Manuell", "Oppgave")
    abort_keywords: Tuple[str, ...] = ("Avbryt", "Avslag")
    decision_keywords: Tuple[str, ...] = ("Iverksett", "Vedtak")

    def __post_init__(self) -> None:
        if isinstance(self.edge_style, str) and not isinstance(self.edge_style, EdgeStyle):
            self.edge_style = EdgeStyle.from_name(self.edge_style)
        if self.summary_threshold < 2:
            raise ValueError(f"summary_threshold must be >= 2 (got {self.summary_threshold})")
        if self.bold_threshold <= self.summary_threshold:
            raise ValueError(
                f"bold_threshold ({self.bold_threshold}) must be greater than "
                f"summary_threshold ({self.summary_threshold})"
            )


@dataclass
class FlowConfig:
    """Complete configuration for one generation run."""

    render: RenderConfig = field(default_factory=RenderConfig)

    # Output
    output_dir: Optional[Path] = None
    output_format: str = "svg"  # "dot" writes the graph description only
    keep_dot: bool = False
    open_output: bool = False

    # Entry point selection
    entry_supertype: Optional[str] = None

    # Behavior
    workers: int = 1

    def resolved_output_dir(self) -> Path:
        return Path(self.output_dir) if self.output_dir else Path.cwd()

    @classmethod
    def from_env(cls) -> "FlowConfig":
        """Create configuration from ``BEHANDLING_FLOW_*`` environment variables.

        Raises:
            ValueError: If a numeric variable is not an integer or the
                resulting settings are inconsistent
        """
        render = RenderConfig(
            show_conditions=_env_flag("BEHANDLING_FLOW_SHOW_CONDITIONS", False),
            show_legend=_env_flag("BEHANDLING_FLOW_SHOW_LEGEND", False),
            edge_style=EdgeStyle.from_name(os.getenv("BEHANDLING_FLOW_EDGE_STYLE", "straight")),
            deduplicate=_env_flag("BEHANDLING_FLOW_DEDUPLICATE", True),
            summary_threshold=_env_int("BEHANDLING_FLOW_SUMMARY_THRESHOLD", 2),
            bold_threshold=_env_int("BEHANDLING_FLOW_BOLD_THRESHOLD", 4),
        )
        workers = _env_int("BEHANDLING_FLOW_WORKERS", 1)
        if workers < 1:
            raise ValueError(f"BEHANDLING_FLOW_WORKERS must be >= 1 (got {workers})")

        output_dir = os.getenv("BEHANDLING_FLOW_OUTPUT_DIR")
        return cls(
            render=render,
            output_dir=Path(output_dir) if output_dir else None,
            output_format=os.getenv("BEHANDLING_FLOW_FORMAT", "svg"),
            keep_dot=_env_flag("BEHANDLING_FLOW_KEEP_DOT", False),
            entry_supertype=os.getenv("BEHANDLING_FLOW_SUPERTYPE") or None,
            workers=workers,
        )


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {value!r})") from None


__all__ = ["EdgeStyle", "RenderConfig", "FlowConfig"]
