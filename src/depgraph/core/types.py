"""
Core type definitions for depgraph.

Nodes and edges are pydantic models so they serialize cleanly into the
exchange format; the input records produced by the parsers are plain
dataclasses.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Dict, FrozenSet, List, Tuple

from pydantic import BaseModel, ConfigDict

from .identity import normalize_name


class NodeKind(StrEnum):
    """Categories of nodes in the dependency graph."""
    CONTAINER = "container"
    SUB_TARGET = "sub_target"
    INTERNAL_MODULE = "internal_module"
    EXTERNAL_MODULE = "external_module"


def _build_upgrade_table() -> Dict[Tuple[NodeKind, NodeKind], NodeKind]:
    # Default: the existing kind wins. Only the two upgrades towards
    # INTERNAL_MODULE change it, and they apply in either observation order.
    table = {(old, new): old for old in NodeKind for new in NodeKind}
    for other in (NodeKind.EXTERNAL_MODULE, NodeKind.CONTAINER):
        table[(other, NodeKind.INTERNAL_MODULE)] = NodeKind.INTERNAL_MODULE
        table[(NodeKind.INTERNAL_MODULE, other)] = NodeKind.INTERNAL_MODULE
    return table


KIND_UPGRADES: Dict[Tuple[NodeKind, NodeKind], NodeKind] = _build_upgrade_table()


def upgrade_kind(old: NodeKind, new: NodeKind) -> NodeKind:
    """Resolve the kind of a node observed as `old` and then as `new`."""
    return KIND_UPGRADES[(old, new)]


class Node(BaseModel):
    """
    A container, sub-target or module in the dependency graph.
    """
    id: str
    name: str
    kind: NodeKind
    is_transient: bool = False
    layer: int = 0
    path: str | None = None

    model_config = ConfigDict(frozen=False, extra='ignore')

    def merged_with(self, other: "Node") -> "Node":
        """
        Combine two observations of the same node.

        Kind only moves along the upgrade table and an explicit observation
        is never undone. Display name and path take the smallest observed
        value so that the result does not depend on observation order.
        """
        if other.id != self.id:
            raise ValueError(f"Cannot merge {self.id} with {other.id}")

        paths = [p for p in (self.path, other.path) if p]
        return self.model_copy(update={
            "kind": upgrade_kind(self.kind, other.kind),
            "is_transient": self.is_transient and other.is_transient,
            "name": min(self.name, other.name),
            "path": min(paths) if paths else None,
        })

    def __hash__(self):
        return hash(self.id)

    def __eq__(self, other):
        if isinstance(other, Node):
            return self.id == other.id
        return False


class Edge(BaseModel):
    """
    Directed dependency: source depends on target.
    """
    source_id: str
    target_id: str

    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> str:
        return edge_key(self.source_id, self.target_id)


def edge_key(source_id: str, target_id: str) -> str:
    return f"{source_id}->{target_id}"


@dataclass(frozen=True)
class SubTarget:
    """
    A nested build unit inside a container.

    Attributes:
        name: Target name, unique within its container.
        package_dependencies: Package products the target links.
        target_dependencies: Sibling targets in the same container.
    """

    name: str
    package_dependencies: Tuple[str, ...] = ()
    target_dependencies: Tuple[str, ...] = ()


@dataclass
class DependencyInfo:
    """
    Normalized description of one discovered container.

    Attributes:
        path: Directory of the container on disk.
        name: Declared name.
        dependencies: Referenced names in declaration order (lockfile-derived).
        explicit_dependencies: Names the container declares directly.
        sub_targets: Nested build targets.
        source_files: Files that contributed to this record.
    """

    path: Path
    name: str
    dependencies: List[str] = field(default_factory=list)
    explicit_dependencies: FrozenSet[str] = field(default_factory=frozenset)
    sub_targets: List[SubTarget] = field(default_factory=list)
    source_files: List[Path] = field(default_factory=list)

    def all_references(self) -> List[str]:
        """Ordered dependencies followed by explicit-only names, deduplicated."""
        seen = set()
        ordered = []
        for name in list(self.dependencies) + sorted(self.explicit_dependencies):
            key = normalize_name(name)
            if key and key not in seen:
                seen.add(key)
                ordered.append(name)
        return ordered
