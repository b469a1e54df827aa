"""
Dependency Graph implementation backed by rustworkx.

It manages:
- The bimap between string Node IDs and rustworkx integer indices.
- Idempotent node/edge insertion with the kind-upgrade and transient rules.
- Neighbour lookups, advisory layering and filtered views.

`add_node` and `add_edge` are the only mutation surface, so a graph built
from the same observations in any order ends in the same state.
"""

import logging
from collections import defaultdict, deque
from dataclasses import asdict
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

import rustworkx as rx

from ..config import SCHEMA_VERSION_STABLE, BuildOptions
from .types import Edge, Node, NodeKind, edge_key

logger = logging.getLogger(__name__)


class DependencyGraph:
    """
    Directed dependency graph; an edge `a -> b` means a depends on b.

    Features:
    - O(1) node lookup via ID-to-Index bimap
    - No multi-edges: re-adding an edge is a no-op
    - Edges to unknown nodes are dropped instead of dangling
    """

    def __init__(
        self,
        schema_version: int = SCHEMA_VERSION_STABLE,
        options: Optional[BuildOptions] = None,
    ):
        self._graph = rx.PyDiGraph(multigraph=False)
        self._id_to_idx: Dict[str, int] = {}
        self._idx_to_id: Dict[int, str] = {}
        self.schema_version = schema_version
        # Flags the graph was built with; None when unknown
        self.options = options

    def add_node(self, node: Node) -> Node:
        """
        Add a node, or merge it into the existing node with the same id.

        Returns:
            The node as stored after the merge.
        """
        idx = self._id_to_idx.get(node.id)
        if idx is None:
            stored = node.model_copy()
            idx = self._graph.add_node(stored)
            self._id_to_idx[node.id] = idx
            self._idx_to_id[idx] = node.id
            return stored

        stored = self._graph[idx].merged_with(node)
        self._graph[idx] = stored
        return stored

    def add_edge(self, source_id: str, target_id: str) -> bool:
        """
        Add a directed edge between two existing nodes.

        Returns:
            True if a new edge was created.
        """
        u_idx = self._id_to_idx.get(source_id)
        v_idx = self._id_to_idx.get(target_id)
        if u_idx is None or v_idx is None:
            logger.debug(f"Dropping dangling edge {edge_key(source_id, target_id)}")
            return False
        if self._graph.has_edge(u_idx, v_idx):
            return False

        self._graph.add_edge(u_idx, v_idx, Edge(source_id=source_id, target_id=target_id))
        return True

    def get_node(self, node_id: str) -> Optional[Node]:
        """Retrieve a node by ID."""
        idx = self._id_to_idx.get(node_id)
        if idx is None:
            return None
        return self._graph[idx]

    def has_node(self, node_id: str) -> bool:
        return node_id in self._id_to_idx

    def has_edge(self, source_id: str, target_id: str) -> bool:
        if source_id not in self._id_to_idx or target_id not in self._id_to_idx:
            return False
        return self._graph.has_edge(self._id_to_idx[source_id], self._id_to_idx[target_id])

    def dependencies_of(self, node_id: str) -> List[str]:
        """IDs this node depends on directly, sorted."""
        idx = self._id_to_idx.get(node_id)
        if idx is None:
            return []
        return sorted(self._idx_to_id[i] for i in self._graph.successor_indices(idx))

    def dependents_of(self, node_id: str) -> List[str]:
        """IDs that depend on this node directly, sorted."""
        idx = self._id_to_idx.get(node_id)
        if idx is None:
            return []
        return sorted(self._idx_to_id[i] for i in self._graph.predecessor_indices(idx))

    def nodes_by_kind(self, kind: NodeKind) -> List[Node]:
        return sorted((n for n in self.iter_nodes() if n.kind == kind), key=lambda n: n.id)

    def nodes_by_layer(self) -> List[List[Node]]:
        """Nodes grouped by layer, index = layer; each group sorted by id."""
        if not self.node_count:
            return []
        layers: List[List[Node]] = [[] for _ in range(max(n.layer for n in self.iter_nodes()) + 1)]
        for node in self.iter_nodes():
            layers[node.layer].append(node)
        return [sorted(layer, key=lambda n: n.id) for layer in layers]

    def iter_nodes(self) -> Iterator[Node]:
        return iter(self._graph.nodes())

    def iter_edges(self) -> Iterator[Edge]:
        return iter(self._graph.edges())

    def node_ids(self) -> Set[str]:
        return set(self._id_to_idx)

    def edge_keys(self) -> Set[str]:
        return {edge.key for edge in self.iter_edges()}

    @property
    def node_count(self) -> int:
        return self._graph.num_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.num_edges()

    @property
    def rx_graph(self) -> rx.PyDiGraph:
        """The underlying rustworkx graph (payloads are Node/Edge models)."""
        return self._graph

    def compute_layers(self) -> None:
        """
        Assign each node its BFS distance from the nearest root.

        Roots are nodes nothing depends on. Nodes only reachable through a
        cycle with no root keep layer 0. The layer is a rendering hint and
        plays no part in analysis or diffs.
        """
        roots = sorted(
            node_id for node_id, idx in self._id_to_idx.items()
            if self._graph.in_degree(idx) == 0
        )
        queue = deque((node_id, 0) for node_id in roots)
        visited: Set[str] = set()

        while queue:
            node_id, layer = queue.popleft()
            if node_id in visited:
                continue
            visited.add(node_id)
            idx = self._id_to_idx[node_id]
            self._graph[idx] = self._graph[idx].model_copy(update={"layer": layer})

            for dep in self.dependencies_of(node_id):
                if dep not in visited:
                    queue.append((dep, layer + 1))

    def filtered(self, keep: Callable[[Node], bool]) -> "DependencyGraph":
        """
        Build a view containing only the nodes `keep` accepts.

        Edges survive only when both endpoints do.
        """
        view = DependencyGraph(schema_version=self.schema_version, options=self.options)
        for node in self.iter_nodes():
            if keep(node):
                view.add_node(node)
        for edge in self.iter_edges():
            view.add_edge(edge.source_id, edge.target_id)
        return view

    def get_stats(self) -> Dict[str, Any]:
        kind_counts: Dict[str, int] = defaultdict(int)
        transient = 0
        for node in self.iter_nodes():
            kind_counts[node.kind.value] += 1
            if node.is_transient:
                transient += 1

        shared = sum(
            1 for idx in self._graph.node_indices() if self._graph.in_degree(idx) > 1
        )

        return {
            "total_nodes": self.node_count,
            "total_edges": self.edge_count,
            "nodes_by_kind": dict(kind_counts),
            "transient_nodes": transient,
            "shared_nodes": shared,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "buildOptions": asdict(self.options) if self.options else None,
            "nodes": [
                node.model_dump(mode="json")
                for node in sorted(self.iter_nodes(), key=lambda n: n.id)
            ],
            "edges": [
                edge.model_dump(mode="json")
                for edge in sorted(self.iter_edges(), key=lambda e: e.key)
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DependencyGraph":
        """
        Rebuild a graph from `to_dict` output.

        Edges whose endpoints are missing from the node list are dropped.
        """
        options = data.get("buildOptions")
        graph = cls(
            schema_version=data.get("schemaVersion", SCHEMA_VERSION_STABLE),
            options=BuildOptions.from_dict(options) if options else None,
        )
        for raw in data.get("nodes", []):
            graph.add_node(Node.model_validate(raw))
        for raw in data.get("edges", []):
            graph.add_edge(raw["source_id"], raw["target_id"])
        return graph
