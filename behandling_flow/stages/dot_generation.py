"""
DOT Generation Stage

Serializes one flow into Graphviz DOT text using the ``graphviz`` package.

Handles:
- Node styling through the ordered colour rules
- Cycle clusters and iteration groups as dashed, rounded subgraphs
- Back-edge, fan-out, summary and missing-processor edge styles
- Global edge routing, condition label toggle and feature-flag markers
- Optional HTML legend

Generation is pure: the DOT source is returned as a string and nothing is
rendered or written here.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence, Set

import graphviz

from behandling_flow.models.graph import (
    FEATURE_FLAG_GLYPH,
    CycleCluster,
    FlowEdge,
    FlowInvariantError,
    IterationGroup,
    RenderedEdge,
    RenderedNode,
)
from behandling_flow.pipeline.config import RenderConfig
from behandling_flow.stages import node_styling as palette
from behandling_flow.stages.cycle_detection import CycleAnalysis
from behandling_flow.stages.fact_index import FactIndex
from behandling_flow.stages.flow_traversal import FlowTraversal
from behandling_flow.stages.node_styling import NodeStyler, StyleContext

logger = logging.getLogger(__name__)

CYCLE_CLUSTER_LABEL = "🔄 Waiting/Retry Loop"
FAN_OUT_LABEL = "multiple"

# Reserved so it never collides with an activity name
LEGEND_NODE = "__legend__"

BACK_EDGE_COLOR = "#FF6B6B"
FAN_OUT_COLOR = "#4CAF50"

LEGEND_ENTRIES = [
    (palette.ENTRY_COLOR, "START"),
    (palette.HIGHLIGHT_COLOR, "AldeAktivitet"),
    (palette.MANUAL_TASK_COLOR, f"{palette.MANUAL_TASK_GLYPH} Creates Oppgave"),
    (palette.DEFAULT_COLOR, "Regular"),
    (palette.WAITING_COLOR, "Waiting"),
    (palette.MANUAL_COLOR, "Manual"),
    (palette.ABORT_COLOR, "Abort"),
    (palette.DECISION_COLOR, "Decision"),
    (palette.END_COLOR, "END"),
    (palette.MISSING_COLOR, "Unknown"),
]


def escape_label(text: str) -> str:
    """Escape text for use inside a quoted DOT string.

    Backslashes and quotes are escaped and newlines become DOT ``\\n`` line
    breaks. The result is marked so ``graphviz`` never treats it as an HTML
    label.
    """
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return graphviz.nohtml(escaped)


PLAIN_ID = re.compile(r"[A-Za-z_][A-Za-z0-9_]*$")
DOT_KEYWORDS = {"node", "edge", "graph", "digraph", "subgraph", "strict"}


def quote_node_id(name: str) -> str:
    """DOT identifier for a node or graph name.

    Plain identifiers are kept as they are. Anything else is quoted with
    backslashes and quotes escaped, so characters such as ``:`` are part of
    the name and never read as a ``node:port`` reference.
    """
    if PLAIN_ID.match(name) and name.lower() not in DOT_KEYWORDS:
        return name
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class FlowDigraph(graphviz.Digraph):
    """``Digraph`` that passes every node ID through :func:`quote_node_id`."""

    _quote = staticmethod(quote_node_id)
    _quote_edge = staticmethod(quote_node_id)


def legend_html(entries: Sequence = tuple(LEGEND_ENTRIES), title: str = "Legend") -> str:
    """HTML-like table label describing the colour scheme."""
    rows = [
        '<TABLE BORDER="0" CELLBORDER="1" CELLSPACING="0" CELLPADDING="4">',
        f'<TR><TD COLSPAN="2" BGCOLOR="#E8E8E8"><B>{title}</B></TD></TR>',
    ]
    for color, text in entries:
        rows.append(f'<TR><TD BGCOLOR="{color}">  </TD><TD ALIGN="LEFT">{text}</TD></TR>')
    rows.append("</TABLE>")
    return "<" + "".join(rows) + ">"


class DotGraphGenerator:
    """Generates DOT text for one flow."""

    def __init__(self, config: Optional[RenderConfig] = None):
        self.config = config or RenderConfig()

    def generate(
        self,
        flow_name: str,
        entry: str,
        traversal: FlowTraversal,
        cycles: CycleAnalysis,
        iteration_groups: Iterable[IterationGroup],
        consolidated_edges: List[FlowEdge],
        index: FactIndex,
    ) -> str:
        """Generate the DOT description of a flow.

        Args:
            flow_name: Entry class name, used as graph name and title
            entry: Entry activity
            traversal: Traversal result (node set, missing processors)
            cycles: Back-edges and cycle clusters
            iteration_groups: Fan-out chains to group
            consolidated_edges: Edges to draw
            index: Fact index for styling lookups

        Returns:
            DOT source text

        Raises:
            FlowInvariantError: If clusters or edges do not fit the node set
        """
        nodes = traversal.nodes
        groups = list(iteration_groups) if self.config.show_iterations else []
        self.validate_structure(nodes, cycles.clusters, groups, consolidated_edges)

        missing = set(traversal.missing_processors)
        styler = NodeStyler(
            StyleContext(entry=entry, index=index, missing=missing, config=self.config)
        )
        rendered_nodes: Dict[str, RenderedNode] = {
            node.node_id: node for node in styler.style_all(nodes)
        }

        dot = FlowDigraph(
            name=flow_name,
            graph_attr={
                "rankdir": "TB",
                "splines": self.config.edge_style.splines,
                "labelloc": "t",
                "label": escape_label(f"{flow_name} Flow"),
                "fontsize": "16",
            },
            node_attr={"shape": "box", "style": "rounded", "fontname": "Arial"},
            edge_attr={"fontname": "Arial", "fontsize": "10"},
        )

        placed: Set[str] = set()
        for idx, group in enumerate(groups):
            with dot.subgraph(name=f"cluster_iteration_{idx}") as sub:
                sub.attr(
                    style="rounded,dashed",
                    color=FAN_OUT_COLOR,
                    penwidth="2.5",
                    bgcolor="#F0FFF0",
                    label=escape_label(f"Loop (triggered by {group.trigger_node})"),
                    fontcolor="#2E7D32",
                    fontsize="12",
                )
                for member in group.members:
                    self._add_node(sub, rendered_nodes[member])
                    placed.add(member)

        for idx, cluster in enumerate(cycles.clusters):
            with dot.subgraph(name=f"cluster_cycle_{idx}") as sub:
                sub.attr(
                    style="rounded,dashed",
                    color=BACK_EDGE_COLOR,
                    penwidth="2.5",
                    bgcolor="#FFF5F5",
                    label=escape_label(CYCLE_CLUSTER_LABEL),
                    fontcolor=BACK_EDGE_COLOR,
                    fontsize="12",
                    fontname="Arial Bold",
                )
                for member in cluster.members:
                    self._add_node(sub, rendered_nodes[member])
                    placed.add(member)

        for node in nodes:
            if node not in placed:
                self._add_node(dot, rendered_nodes[node])

        for edge in self.build_rendered_edges(consolidated_edges, missing):
            dot.edge(
                edge.source,
                edge.target,
                label=escape_label(edge.label) if edge.label else None,
                **edge.dot_attributes(),
            )

        if self.config.show_legend:
            with dot.subgraph() as legend:
                legend.attr(rank="sink")
                legend.node(LEGEND_NODE, label=legend_html(), shape="none", margin="0")

        logger.debug(
            f"Generated DOT for {flow_name}: {len(nodes)} nodes, {len(consolidated_edges)} edges, "
            f"{len(cycles.clusters)} cycle clusters"
        )
        return dot.source

    def _add_node(self, graph: graphviz.Digraph, node: RenderedNode) -> None:
        attrs = {"style": node.style, "fillcolor": node.fill_color}
        if node.shape:
            attrs["shape"] = node.shape
        graph.node(node.node_id, label=escape_label(node.label), **attrs)

    def edge_label(self, edge: FlowEdge) -> str:
        """Visible label of an edge under the current configuration.

        Count labels of consolidated edges are always shown; condition
        labels only when enabled. Feature-flag markers are always shown.
        """
        if edge.multiplicity > 1 or self.config.show_conditions:
            label = edge.display_label
        elif edge.feature_flag is not None:
            label = f"{FEATURE_FLAG_GLYPH} {edge.feature_flag}"
        else:
            label = ""

        if edge.is_fan_out and not edge.is_back_edge:
            return f"{label} ({FAN_OUT_LABEL})" if label else FAN_OUT_LABEL
        return label

    def build_rendered_edges(
        self, edges: Iterable[FlowEdge], missing: Optional[Set[str]] = None
    ) -> List[RenderedEdge]:
        """Apply edge styles in input order."""
        missing = missing or set()
        rendered = []
        for edge in edges:
            label = self.edge_label(edge)
            if edge.is_back_edge:
                rendered.append(
                    RenderedEdge(
                        edge.source,
                        edge.target,
                        label,
                        color=BACK_EDGE_COLOR,
                        penwidth="2",
                        style="bold",
                        constraint="false",
                    )
                )
            elif edge.is_fan_out:
                rendered.append(
                    RenderedEdge(
                        edge.source,
                        edge.target,
                        label,
                        color=FAN_OUT_COLOR,
                        penwidth="2",
                        style="bold",
                    )
                )
            elif edge.target in missing:
                rendered.append(RenderedEdge(edge.source, edge.target, label, style="dashed"))
            elif edge.multiplicity >= self.config.bold_threshold:
                rendered.append(
                    RenderedEdge(edge.source, edge.target, label, penwidth="2", style="bold")
                )
            else:
                rendered.append(RenderedEdge(edge.source, edge.target, label))
        return rendered

    def validate_structure(
        self,
        nodes: List[str],
        clusters: List[CycleCluster],
        iteration_groups: List[IterationGroup],
        edges: List[FlowEdge],
    ) -> None:
        """Check that clusters and edges are consistent with the node set.

        Raises:
            FlowInvariantError: On an empty cluster, an unknown cluster member
                or edge endpoint, or a node claimed by two clusters
        """
        node_set = set(nodes)
        claimed: Dict[str, str] = {}

        named = [(f"cycle cluster {idx}", c.members) for idx, c in enumerate(clusters)]
        named += [(f"iteration group {idx}", g.members) for idx, g in enumerate(iteration_groups)]
        for name, members in named:
            if not members:
                raise FlowInvariantError(f"{name} has no members")
            for member in members:
                if member not in node_set:
                    raise FlowInvariantError(f"{name} member '{member}' is not a flow node")
                if member in claimed:
                    raise FlowInvariantError(
                        f"'{member}' is in both {claimed[member]} and {name}"
                    )
                claimed[member] = name

        for edge in edges:
            for endpoint in edge.pair:
                if endpoint not in node_set:
                    raise FlowInvariantError(
                        f"edge {edge.source} -> {edge.target} references unknown node '{endpoint}'"
                    )


__all__ = [
    "CYCLE_CLUSTER_LABEL",
    "LEGEND_ENTRIES",
    "LEGEND_NODE",
    "DotGraphGenerator",
    "FlowDigraph",
    "escape_label",
    "legend_html",
    "quote_node_id",
]
