"""
Cycle Detection Stage

Finds back-edges in the raw flow graph with an explicit-stack depth-first
search and groups cycle-participating activities into disjoint clusters used
for visual grouping. Also detects iteration groups: the linear chain of
activities started by a fan-out step.

Clusters never alter traversal results; they only drive rendering.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from behandling_flow.models.graph import END_NODE, CycleCluster, FlowEdge, IterationGroup

logger = logging.getLogger(__name__)

Edge = Tuple[str, str]


class NodeState(str, Enum):
    """Depth-first search state of a node."""

    UNVISITED = "unvisited"
    ON_STACK = "on_stack"
    FINISHED = "finished"


@dataclass
class CycleAnalysis:
    """Back-edges and cycle clusters of one flow."""

    back_edges: List[Edge] = field(default_factory=list)
    clusters: List[CycleCluster] = field(default_factory=list)

    @property
    def has_cycles(self) -> bool:
        return bool(self.back_edges)

    def cluster_of(self, node: str) -> Optional[int]:
        """Index of the cluster containing ``node``, if any."""
        for idx, cluster in enumerate(self.clusters):
            if node in cluster:
                return idx
        return None


class _UnionFind:
    """Disjoint sets over string keys."""

    def __init__(self) -> None:
        self.parent: Dict[str, str] = {}

    def add(self, item: str) -> None:
        self.parent.setdefault(item, item)

    def find(self, item: str) -> str:
        root = item
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[item] != root:
            self.parent[item], item = root, self.parent[item]
        return root

    def union(self, a: str, b: str) -> None:
        self.add(a)
        self.add(b)
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            self.parent[root_b] = root_a

    def groups(self) -> Iterator[Set[str]]:
        by_root: Dict[str, Set[str]] = {}
        for item in self.parent:
            by_root.setdefault(self.find(item), set()).add(item)
        return iter(by_root.values())


def build_adjacency(edges: Iterable[FlowEdge]) -> Dict[str, List[str]]:
    """Distinct successors per node in first-appearance order."""
    adjacency: Dict[str, List[str]] = {}
    for edge in edges:
        successors = adjacency.setdefault(edge.source, [])
        if edge.target not in successors:
            successors.append(edge.target)
    return adjacency


def _reachable(starts: Iterable[str], adjacency: Dict[str, List[str]]) -> Set[str]:
    seen: Set[str] = set()
    pending = list(starts)
    while pending:
        node = pending.pop()
        if node in seen:
            continue
        seen.add(node)
        pending.extend(adjacency.get(node, ()))
    return seen


def _reverse(adjacency: Dict[str, List[str]]) -> Dict[str, List[str]]:
    reverse: Dict[str, List[str]] = {}
    for source, targets in adjacency.items():
        for target in targets:
            reverse.setdefault(target, []).append(source)
    return reverse


def _depth_first(
    roots: List[str], adjacency: Dict[str, List[str]]
) -> Tuple[List[Edge], List[List[str]], Dict[str, int]]:
    """Classify edges with an explicit stack.

    Returns:
        Back-edges in discovery order, the stack slice closed by each
        back-edge, and the discovery index of every reached node
    """
    state: Dict[str, NodeState] = {}
    discovery: Dict[str, int] = {}
    back_edges: List[Edge] = []
    slices: List[List[str]] = []

    for root in roots:
        if state.get(root, NodeState.UNVISITED) != NodeState.UNVISITED:
            continue

        path: List[str] = [root]
        position: Dict[str, int] = {root: 0}
        state[root] = NodeState.ON_STACK
        discovery[root] = len(discovery)
        stack = [(root, iter(adjacency.get(root, ())))]

        while stack:
            node, successors = stack[-1]
            descended = False
            for successor in successors:
                successor_state = state.get(successor, NodeState.UNVISITED)
                if successor_state == NodeState.UNVISITED:
                    state[successor] = NodeState.ON_STACK
                    discovery[successor] = len(discovery)
                    position[successor] = len(path)
                    path.append(successor)
                    stack.append((successor, iter(adjacency.get(successor, ()))))
                    descended = True
                    break
                if successor_state == NodeState.ON_STACK:
                    back_edges.append((node, successor))
                    slices.append(path[position[successor]:])

            if not descended:
                stack.pop()
                path.pop()
                del position[node]
                state[node] = NodeState.FINISHED

    return back_edges, slices, discovery


def detect_cycles(entry: str, edges: List[FlowEdge]) -> CycleAnalysis:
    """Find back-edges and cycle clusters of a flow.

    Args:
        entry: Entry activity the walk starts from
        edges: Raw edges from the traversal stage

    Returns:
        CycleAnalysis. Each back-edge seeds a group with the nodes on the
        stack between its target and source; groups sharing nodes are
        merged, then closed over every node that both reaches and is
        reachable from the group. Cycles connected only by forward edges stay
        in separate clusters.
    """
    adjacency = build_adjacency(edges)
    roots = [entry] + [source for source in adjacency if source != entry]
    back_edges, slices, discovery = _depth_first(roots, adjacency)

    seeds = _UnionFind()
    for cycle_path in slices:
        for node in cycle_path:
            seeds.union(cycle_path[0], node)

    reverse = _reverse(adjacency)
    closures = _UnionFind()
    for group in seeds.groups():
        closed = _reachable(group, adjacency) & _reachable(group, reverse)
        closed &= set(discovery)
        anchor = min(closed, key=discovery.__getitem__)
        for node in closed:
            closures.union(anchor, node)

    clusters = [
        CycleCluster(members=tuple(sorted(group, key=discovery.__getitem__)))
        for group in closures.groups()
    ]
    clusters.sort(key=lambda cluster: discovery[cluster.members[0]])

    if back_edges:
        logger.debug(
            f"Detected {len(back_edges)} back-edges in {len(clusters)} clusters from {entry}"
        )
    return CycleAnalysis(back_edges=back_edges, clusters=clusters)


def detect_iteration_groups(
    edges: List[FlowEdge], clusters: Iterable[CycleCluster] = ()
) -> List[IterationGroup]:
    """Find activity chains started by fan-out edges.

    From each fan-out target the chain follows nodes with exactly one
    successor. Nodes already in a cycle cluster or an earlier group end the
    chain, so groups are disjoint from clusters and from each other. Only
    chains of two or more activities are returned.
    """
    adjacency = build_adjacency(edges)
    taken: Set[str] = set()
    for cluster in clusters:
        taken.update(cluster.members)

    groups: List[IterationGroup] = []
    for edge in edges:
        if not edge.is_fan_out or edge.target in taken:
            continue

        chain = [edge.target]
        current = edge.target
        while True:
            successors = adjacency.get(current, [])
            if len(successors) != 1:
                break
            current = successors[0]
            if current == END_NODE or current in taken or current in chain:
                break
            chain.append(current)

        if len(chain) > 1:
            taken.update(chain)
            groups.append(IterationGroup(trigger_node=edge.source, members=tuple(chain)))

    return groups


__all__ = [
    "NodeState",
    "CycleAnalysis",
    "build_adjacency",
    "detect_cycles",
    "detect_iteration_groups",
]
