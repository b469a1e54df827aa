"""
Graph Builder.

Merges DependencyInfo records, possibly several describing the same entity,
into one DependencyGraph.

Merge rules:
    1. A record whose name appears in its own explicit dependencies is a
       local package: its node is an INTERNAL_MODULE sharing the module id
       namespace, so references to it from elsewhere land on the same node.
       A same-named container keeps its own `container:` node.
    2. A reference is transient when nothing in scope declares it explicitly
       and it is not a local package.
    3. Nodes and edges are inserted through DependencyGraph, whose merge is
       idempotent and order independent.

Augmentation (BuildOptions.resolve_packages) adds package-to-package edges
from the package manager's own resolution output, through a
PackageResolver shared by the whole build.
"""

import heapq
import logging
from collections import deque
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from ..config import MANIFEST_FILE, BuildOptions
from .graph import DependencyGraph
from .identity import NodeIdFactory, normalize_name
from .resolution import PackageResolver, PackageTree
from .types import DependencyInfo, Node, NodeKind

logger = logging.getLogger(__name__)


class GraphBuilder:
    """
    Builds a DependencyGraph from parsed records.

    Attributes:
        options: Construction flags; both sides of a diff must share them.
        ids: Node id factory bound to the scan root.
        resolver: Package resolver used for augmentation, if enabled.
    """

    def __init__(
        self,
        scan_root: Path,
        options: Optional[BuildOptions] = None,
        resolver: Optional[PackageResolver] = None,
    ):
        self.options = options or BuildOptions()
        self.ids = NodeIdFactory(scan_root, stable=self.options.stable_ids)
        self.resolver = resolver
        if self.options.resolve_packages and self.resolver is None:
            self.resolver = PackageResolver()

        self._local: Set[str] = set()
        self._explicit: Set[str] = set()

    def build(
        self,
        records: Iterable[DependencyInfo],
        include_sub_targets: Optional[bool] = None,
    ) -> DependencyGraph:
        """
        Merge records into a graph.

        Args:
            records: Parsed records, in any order.
            include_sub_targets: Overrides options.include_sub_targets.

        Returns:
            The merged graph; without transient nodes if hide_transient is set.
        """
        records = list(records)
        with_targets = (
            self.options.include_sub_targets if include_sub_targets is None else include_sub_targets
        )

        self._local = self._local_identities(records)
        self._explicit = {
            normalize_name(dep) for record in records for dep in record.explicit_dependencies
        }

        graph = DependencyGraph(
            schema_version=self.ids.schema_version,
            options=replace(self.options, include_sub_targets=with_targets),
        )
        for record in records:
            self._merge_record(graph, record, with_targets)

        if self.options.resolve_packages and self.resolver is not None:
            self._augment(graph, records)

        if self.options.hide_transient:
            graph = graph.filtered(lambda node: not node.is_transient)

        graph.compute_layers()
        logger.info(
            f"Built graph: {graph.node_count} nodes, {graph.edge_count} edges "
            f"from {len(records)} records ({self.options.describe()})"
        )
        return graph

    @staticmethod
    def declares_itself(record: DependencyInfo) -> bool:
        name = normalize_name(record.name)
        return name in {normalize_name(dep) for dep in record.explicit_dependencies}

    @classmethod
    def _local_identities(cls, records: List[DependencyInfo]) -> Set[str]:
        return {normalize_name(r.name) for r in records if cls.declares_itself(r)}

    def is_local(self, name: str) -> bool:
        return normalize_name(name) in self._local

    def is_transient(self, name: str) -> bool:
        key = normalize_name(name)
        return key not in self._explicit and key not in self._local

    def own_node(self, record: DependencyInfo) -> Node:
        """The node a record describes: an internal module or a container."""
        location = self.ids.location(record.path)
        if self.declares_itself(record):
            return Node(
                id=self.ids.module_id(record.name),
                name=record.name,
                kind=NodeKind.INTERNAL_MODULE,
                path=location,
            )
        return Node(
            id=self.ids.container_id(record.name, record.path),
            name=record.name,
            kind=NodeKind.CONTAINER,
            path=location,
        )

    def _add_module(
        self,
        graph: DependencyGraph,
        name: str,
        display_name: Optional[str] = None,
        transient: Optional[bool] = None,
    ) -> str:
        kind = NodeKind.INTERNAL_MODULE if self.is_local(name) else NodeKind.EXTERNAL_MODULE
        node = graph.add_node(Node(
            id=self.ids.module_id(name),
            name=(display_name or name).strip(),
            kind=kind,
            is_transient=self.is_transient(name) if transient is None else transient,
        ))
        return node.id

    def _merge_record(self, graph: DependencyGraph, record: DependencyInfo, with_targets: bool) -> None:
        own = graph.add_node(self.own_node(record))
        own_name = normalize_name(record.name)

        # Packages imported by a sub-target hang off that sub-target only
        claimed: Set[str] = set()
        if with_targets:
            claimed = {
                normalize_name(pkg)
                for target in record.sub_targets
                for pkg in target.package_dependencies
            }

        for dep in record.all_references():
            key = normalize_name(dep)
            if own.kind == NodeKind.INTERNAL_MODULE and key == own_name:
                continue
            target_id = self._add_module(graph, dep)
            if key not in claimed:
                graph.add_edge(own.id, target_id)

        if with_targets:
            self._merge_sub_targets(graph, record, own.id)

    def _merge_sub_targets(self, graph: DependencyGraph, record: DependencyInfo, own_id: str) -> None:
        for target in record.sub_targets:
            target_id = self._add_sub_target(graph, own_id, target.name)
            graph.add_edge(own_id, target_id)

            for sibling in target.target_dependencies:
                if sibling == target.name:
                    continue
                sibling_id = self._add_sub_target(graph, own_id, sibling)
                graph.add_edge(target_id, sibling_id)

            for package in target.package_dependencies:
                graph.add_edge(target_id, self._add_module(graph, package))

    def _add_sub_target(self, graph: DependencyGraph, container_id: str, name: str) -> str:
        node = graph.add_node(Node(
            id=self.ids.sub_target_id(container_id, name),
            name=name,
            kind=NodeKind.SUB_TARGET,
        ))
        return node.id

    @staticmethod
    def has_manifest(record: DependencyInfo) -> bool:
        """Only package roots can be resolved; project bundles never can."""
        if record.source_files:
            return any(path.name == MANIFEST_FILE for path in record.source_files)
        return (record.path / MANIFEST_FILE).is_file()

    def resolution_order(self, records: Iterable[DependencyInfo]) -> List[DependencyInfo]:
        """
        Order package roots so that a record comes before the local packages
        it references.

        A result registers every package below its root, so resolving the
        referencing package first turns the referenced ones into cache hits.
        Ties and cycles fall back to location order.
        """
        roots = sorted(
            (r for r in records if self.has_manifest(r)),
            key=lambda r: (str(r.path), r.name),
        )
        by_name: Dict[str, int] = {}
        for index, record in enumerate(roots):
            if self.declares_itself(record):
                by_name.setdefault(normalize_name(record.name), index)

        edges: List[Set[int]] = [set() for _ in roots]
        indegree = [0] * len(roots)
        for index, record in enumerate(roots):
            for dep in record.all_references():
                target = by_name.get(normalize_name(dep))
                if target is not None and target != index and target not in edges[index]:
                    edges[index].add(target)
                    indegree[target] += 1

        ready = [index for index, degree in enumerate(indegree) if degree == 0]
        heapq.heapify(ready)
        ordered: List[int] = []
        while ready:
            index = heapq.heappop(ready)
            ordered.append(index)
            for target in edges[index]:
                indegree[target] -= 1
                if indegree[target] == 0:
                    heapq.heappush(ready, target)

        placed = set(ordered)
        ordered.extend(index for index in range(len(roots)) if index not in placed)
        return [roots[index] for index in ordered]

    def _augment(self, graph: DependencyGraph, records: List[DependencyInfo]) -> None:
        # One root at a time: earlier results must be registered before the
        # next root is claimed.
        for record in self.resolution_order(records):
            own = self.own_node(record)
            identity = record.name if own.kind == NodeKind.INTERNAL_MODULE else None
            tree = self.resolver.resolve(record.path, identity)
            if tree is not None:
                self._merge_tree(graph, own.id, tree)

        logger.debug(f"Augmentation ran {self.resolver.invocation_count} resolution commands")

    def _merge_tree(self, graph: DependencyGraph, owner_id: str, tree: PackageTree) -> None:
        """
        Add edges for every parent/child pair under a resolved root.

        Direct children of the root are explicit. When transient nodes are
        hidden the walk stops there: grandchildren are recorded as transient
        and never expanded.
        """
        queue = deque((owner_id, child, 1) for child in tree.dependencies)
        expanded: Set[str] = set()

        while queue:
            parent_id, package, depth = queue.popleft()
            if depth == 1:
                transient = False
            elif self.options.hide_transient:
                transient = True
            else:
                transient = None

            child_id = self._add_module(graph, package.identity, package.name, transient=transient)
            graph.add_edge(parent_id, child_id)

            if self.options.hide_transient and depth > 1:
                continue
            if child_id in expanded:
                continue
            expanded.add(child_id)
            queue.extend((child_id, grandchild, depth + 1) for grandchild in package.dependencies)
