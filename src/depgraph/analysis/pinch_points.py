"""
Pinch-Point Analysis.

Finds the modules whose change forces the widest rebuild.

Counting dependents naively recurses forever on cycles and double-counts
shared sub-dependencies reached through several paths. The analysis
therefore works on the condensation of the graph:

    1. Strongly connected components are computed over every edge.
    2. Each component becomes one node of an acyclic condensation graph.
    3. Depth is computed bottom-up along a topological order.
    4. Reachability (ancestors / descendants) runs on the condensation, so
       shared paths are visited once and members of a cycle never count
       each other as extra dependents.

The analysis is a pure function of the graph: no I/O, and edges that
point at unknown nodes simply do not exist in the input.
"""

from collections import Counter
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any, Dict, List, Sequence, Tuple

import rustworkx as rx

from ..config import DEFAULT_POLICY, AnalysisPolicy
from ..core.graph import DependencyGraph
from ..core.types import NodeKind


class RiskTier(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def classify_risk(transitive_dependents: int, policy: AnalysisPolicy = DEFAULT_POLICY) -> RiskTier:
    if transitive_dependents >= policy.critical:
        return RiskTier.CRITICAL
    if transitive_dependents >= policy.high:
        return RiskTier.HIGH
    if transitive_dependents >= policy.medium:
        return RiskTier.MEDIUM
    return RiskTier.LOW


@dataclass(frozen=True)
class PinchPointInfo:
    """
    Coupling metrics for one node.

    Dependents are nodes that would rebuild if this node changed;
    dependencies are nodes whose change would rebuild this one. Members of
    this node's own cycle are excluded from every count.
    """

    node_id: str
    name: str
    kind: NodeKind
    direct_dependents: int
    transitive_dependents: int
    direct_dependencies: int
    transitive_dependencies: int
    dependency_depth: int
    cycle_size: int
    impact_score: float
    vulnerability_score: int
    risk_tier: RiskTier

    @property
    def in_cycle(self) -> bool:
        return self.cycle_size > 1

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["risk_tier"] = self.risk_tier.value
        return data


@dataclass
class PinchPointReport:
    """Full result of one analysis run."""

    points: List[PinchPointInfo]
    max_depth: int
    cycles: List[List[str]] = field(default_factory=list)

    @property
    def tier_counts(self) -> Dict[str, int]:
        counts = Counter(p.risk_tier.value for p in self.points)
        return {tier.value: counts.get(tier.value, 0) for tier in RiskTier}

    def top(self, n: int = 10, key: str = "impact") -> List[PinchPointInfo]:
        return top_pinch_points(self.points, n=n, key=key)

    def to_dict(self, top: int | None = None, key: str = "impact") -> Dict[str, Any]:
        points = self.top(top, key) if top else self.top(len(self.points), key)
        return {
            "max_depth": self.max_depth,
            "total_analyzed": len(self.points),
            "tiers": self.tier_counts,
            "cycles": self.cycles,
            "pinch_points": [p.to_dict() for p in points],
        }


class PinchPointAnalyzer:
    """
    Computes PinchPointInfo for every candidate node of a graph.

    Component membership is recomputed on every call and never stored.
    """

    def __init__(self, graph: DependencyGraph, policy: AnalysisPolicy = DEFAULT_POLICY):
        self.graph = graph
        self.policy = policy

    def analyze(self, internal_only: bool = False) -> Tuple[List[PinchPointInfo], int]:
        report = self.report(internal_only)
        return report.points, report.max_depth

    def report(self, internal_only: bool = False) -> PinchPointReport:
        g = self.graph.rx_graph
        components = [sorted(c) for c in rx.strongly_connected_components(g)]
        component_of: Dict[int, int] = {}
        for ci, members in enumerate(components):
            for idx in members:
                component_of[idx] = ci
        sizes = [len(members) for members in components]

        condensation = self._condense(g, components, component_of)
        depths = self._depths(condensation)

        points: List[PinchPointInfo] = []
        candidate_components = set()
        for ci, members in enumerate(components):
            candidates = [idx for idx in members if self._is_candidate(g[idx], internal_only)]
            if not candidates:
                continue
            candidate_components.add(ci)

            successors = set(condensation.successor_indices(ci))
            predecessors = set(condensation.predecessor_indices(ci))
            descendants = rx.descendants(condensation, ci)
            ancestors = rx.ancestors(condensation, ci)

            direct_dependencies = sum(sizes[c] for c in successors)
            direct_dependents = sum(sizes[c] for c in predecessors)
            transitive_dependencies = sum(sizes[c] for c in descendants)
            transitive_dependents = sum(sizes[c] for c in ancestors)
            depth = depths[ci]

            for idx in candidates:
                node = g[idx]
                points.append(PinchPointInfo(
                    node_id=node.id,
                    name=node.name,
                    kind=node.kind,
                    direct_dependents=direct_dependents,
                    transitive_dependents=transitive_dependents,
                    direct_dependencies=direct_dependencies,
                    transitive_dependencies=transitive_dependencies,
                    dependency_depth=depth,
                    cycle_size=sizes[ci],
                    impact_score=transitive_dependents * (1 + depth * self.policy.depth_weight),
                    vulnerability_score=transitive_dependencies,
                    risk_tier=classify_risk(transitive_dependents, self.policy),
                ))

        max_depth = max((depths[ci] for ci in candidate_components), default=0)
        cycles = sorted(
            sorted(g[idx].id for idx in members)
            for members in components if len(members) > 1
        )
        points.sort(key=lambda p: (p.name, p.node_id))
        return PinchPointReport(points=points, max_depth=max_depth, cycles=cycles)

    @staticmethod
    def _is_candidate(node, internal_only: bool) -> bool:
        if node.is_transient:
            return False
        if internal_only and node.kind == NodeKind.EXTERNAL_MODULE:
            return False
        return True

    @staticmethod
    def _condense(
        g: rx.PyDiGraph,
        components: List[List[int]],
        component_of: Dict[int, int],
    ) -> rx.PyDiGraph:
        """One node per component; intra-component edges are dropped."""
        condensation = rx.PyDiGraph(multigraph=False)
        condensation.add_nodes_from(list(range(len(components))))
        for u, v in g.edge_list():
            cu, cv = component_of[u], component_of[v]
            if cu != cv and not condensation.has_edge(cu, cv):
                condensation.add_edge(cu, cv, None)
        return condensation

    @staticmethod
    def _depths(condensation: rx.PyDiGraph) -> Dict[int, int]:
        """Longest path to a sink, computed in reverse topological order."""
        depths: Dict[int, int] = {}
        for ci in reversed(list(rx.topological_sort(condensation))):
            children = condensation.successor_indices(ci)
            depths[ci] = 1 + max(depths[c] for c in children) if len(children) else 0
        return depths


def analyze(
    graph: DependencyGraph,
    internal_only: bool = False,
    policy: AnalysisPolicy = DEFAULT_POLICY,
) -> Tuple[List[PinchPointInfo], int]:
    """Analyze a graph; returns (points, max_depth)."""
    return PinchPointAnalyzer(graph, policy).analyze(internal_only)


_SCORE_KEYS = {
    "impact": lambda p: p.impact_score,
    "vulnerability": lambda p: p.vulnerability_score,
    "dependents": lambda p: p.transitive_dependents,
}


def top_pinch_points(
    points: Sequence[PinchPointInfo],
    n: int = 10,
    key: str = "impact",
) -> List[PinchPointInfo]:
    """
    Rank points by score, highest first; ties go to the name ascending.
    """
    if key not in _SCORE_KEYS:
        raise ValueError(f"Unknown ranking key '{key}', expected one of {sorted(_SCORE_KEYS)}")
    score = _SCORE_KEYS[key]
    ranked = sorted(points, key=lambda p: (-score(p), p.name, p.node_id))
    return ranked[:n]
