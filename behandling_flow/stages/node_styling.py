"""
Node Styling

Assigns a fill colour, shape and display label to every activity of a flow.

Colouring is an explicit, priority-ordered list of ``NodeStyleRule`` entries
evaluated top to bottom; the first matching rule decides the style. The rules
are built from ``RenderConfig`` so keyword sets can be changed without
touching the renderer.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Set

from behandling_flow.models.graph import END_LABEL, END_NODE, RenderedNode
from behandling_flow.pipeline.config import RenderConfig
from behandling_flow.stages.fact_index import FactIndex

logger = logging.getLogger(__name__)

MANUAL_TASK_GLYPH = "📋"
MISSING_PROCESSOR_MARK = "?"

# Fixed colour scheme, shared with the legend
ENTRY_COLOR = "#90EE90"
HIGHLIGHT_COLOR = "#9370DB"
MANUAL_TASK_COLOR = "#FFA500"
WAITING_COLOR = "#FFD700"
MANUAL_COLOR = "#FF6B6B"
ABORT_COLOR = "#FF4444"
DECISION_COLOR = "#4CAF50"
END_COLOR = "#FFB6C1"
MISSING_COLOR = "#CCCCCC"
DEFAULT_COLOR = "#87CEEB"


@dataclass
class StyleContext:
    """Facts about the flow a style predicate may consult."""

    entry: str
    index: FactIndex
    missing: Set[str] = field(default_factory=set)
    config: RenderConfig = field(default_factory=RenderConfig)


Predicate = Callable[[str, StyleContext], bool]


@dataclass(frozen=True)
class NodeStyleRule:
    """One entry of the ordered colouring rule list."""

    role: str
    predicate: Predicate
    fill_color: str
    shape: Optional[str] = None

    def matches(self, node: str, context: StyleContext) -> bool:
        return self.predicate(node, context)


def _contains_any(keywords: Sequence[str]) -> Predicate:
    return lambda node, _: any(keyword in node for keyword in keywords)


def _has_highlight_supertype(node: str, context: StyleContext) -> bool:
    marker = context.config.highlight_supertype
    if not marker:
        return False
    return any(marker in supertype for supertype in context.index.supertype_chain(node))


def build_style_rules(config: Optional[RenderConfig] = None) -> List[NodeStyleRule]:
    """Colouring rules in priority order; the last rule always matches."""
    config = config or RenderConfig()
    return [
        NodeStyleRule("entry", lambda node, ctx: node == ctx.entry, ENTRY_COLOR),
        NodeStyleRule("highlight", _has_highlight_supertype, HIGHLIGHT_COLOR),
        NodeStyleRule(
            "manual_task", lambda node, ctx: ctx.index.creates_manual_task(node), MANUAL_TASK_COLOR
        ),
        NodeStyleRule("waiting", _contains_any(config.waiting_keywords), WAITING_COLOR),
        NodeStyleRule("manual", _contains_any(config.manual_keywords), MANUAL_COLOR),
        NodeStyleRule("abort", _contains_any(config.abort_keywords), ABORT_COLOR),
        NodeStyleRule("decision", _contains_any(config.decision_keywords), DECISION_COLOR),
        NodeStyleRule("end", lambda node, _: node == END_NODE, END_COLOR, shape="circle"),
        NodeStyleRule(
            "missing", lambda node, ctx: node in ctx.missing, MISSING_COLOR, shape="diamond"
        ),
        NodeStyleRule("default", lambda node, _: True, DEFAULT_COLOR),
    ]


def display_name(name: str, strip_tokens: Iterable[str] = ("Aktivitet",)) -> str:
    """Shorten an activity class name for display.

    Removes the configured tokens and moves a leading step number onto its
    own line, e.g. ``"110VurderAktivitet"`` becomes ``"110\\nVurder"``.
    """
    shortened = name
    for token in strip_tokens:
        shortened = shortened.replace(token, "")
    if not shortened:
        return name

    for pos, char in enumerate(shortened):
        if char.isalpha():
            if pos > 0:
                return f"{shortened[:pos]}\n{shortened[pos:]}"
            break
    return shortened


class NodeStyler:
    """Applies the rule list to the nodes of one flow."""

    def __init__(self, context: StyleContext, rules: Optional[List[NodeStyleRule]] = None):
        self.context = context
        self.rules = rules if rules is not None else build_style_rules(context.config)

    def rule_for(self, node: str) -> NodeStyleRule:
        for rule in self.rules:
            if rule.matches(node, self.context):
                return rule
        # Only reachable with a custom rule list lacking a catch-all
        return NodeStyleRule("default", lambda node, _: True, DEFAULT_COLOR)

    def label_for(self, node: str) -> str:
        if node == END_NODE:
            return END_LABEL
        label = display_name(node, self.context.config.name_strip_tokens)
        if node in self.context.missing:
            label = f"{MISSING_PROCESSOR_MARK} {label}"
        if self.context.index.creates_manual_task(node):
            label = f"{MANUAL_TASK_GLYPH} {label}"
        return label

    def style(self, node: str) -> RenderedNode:
        rule = self.rule_for(node)
        return RenderedNode(
            node_id=node,
            label=self.label_for(node),
            fill_color=rule.fill_color,
            role=rule.role,
            shape=rule.shape,
        )

    def style_all(self, nodes: Iterable[str]) -> List[RenderedNode]:
        styled = [self.style(node) for node in nodes]
        logger.debug(f"Styled {len(styled)} nodes for {self.context.entry}")
        return styled


__all__ = [
    "MANUAL_TASK_GLYPH",
    "MISSING_PROCESSOR_MARK",
    "StyleContext",
    "NodeStyleRule",
    "NodeStyler",
    "build_style_rules",
    "display_name",
]
