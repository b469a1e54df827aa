"""
Diff Analyzer - Compare two dependency graph snapshots.

Identifies:
1. Added/Removed Nodes (by id)
2. Added/Removed Edges (by "from->to" key)

Both snapshots must be built with the same BuildOptions and the same id
discipline. Otherwise every path-derived id differs and the diff is a wall
of false positives; the analyzer warns about it but never corrects it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..config import BuildOptions
from ..core.graph import DependencyGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphDiff:
    """Set differences between two graphs, each sorted for stable output."""

    added_nodes: Tuple[str, ...] = ()
    removed_nodes: Tuple[str, ...] = ()
    added_edges: Tuple[str, ...] = ()
    removed_edges: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.added_nodes or self.removed_nodes or self.added_edges or self.removed_edges)

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "added_nodes": len(self.added_nodes),
            "removed_nodes": len(self.removed_nodes),
            "added_edges": len(self.added_edges),
            "removed_edges": len(self.removed_edges),
        }

    def reversed(self) -> "GraphDiff":
        """The diff in the opposite direction."""
        return GraphDiff(
            added_nodes=self.removed_nodes,
            removed_nodes=self.added_nodes,
            added_edges=self.removed_edges,
            removed_edges=self.added_edges,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "addedNodes": list(self.added_nodes),
            "removedNodes": list(self.removed_nodes),
            "addedEdges": list(self.added_edges),
            "removedEdges": list(self.removed_edges),
        }


def diff_graphs(from_graph: DependencyGraph, to_graph: DependencyGraph) -> GraphDiff:
    """
    Compute what changed going from `from_graph` to `to_graph`.
    """
    from_nodes = from_graph.node_ids()
    to_nodes = to_graph.node_ids()
    from_edges = from_graph.edge_keys()
    to_edges = to_graph.edge_keys()

    return GraphDiff(
        added_nodes=tuple(sorted(to_nodes - from_nodes)),
        removed_nodes=tuple(sorted(from_nodes - to_nodes)),
        added_edges=tuple(sorted(to_edges - from_edges)),
        removed_edges=tuple(sorted(from_edges - to_edges)),
    )


@dataclass
class DiffReport:
    """A GraphDiff plus the construction context of both snapshots."""

    diff: GraphDiff
    from_label: str = "from"
    to_label: str = "to"
    options: Optional[BuildOptions] = None
    schema_versions: Tuple[int, int] = (0, 0)
    warnings: list = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_label,
            "to": self.to_label,
            "options": self.options.describe() if self.options else None,
            "schemaVersions": list(self.schema_versions),
            "summary": self.diff.summary,
            "warnings": list(self.warnings),
            **self.diff.to_dict(),
        }


class DiffAnalyzer:
    """
    Compares two DependencyGraphs built with the same options.

    Sides that disagree on the id scheme or on recorded build options are
    still compared, with a warning on the report.
    """

    def __init__(self, options: Optional[BuildOptions] = None):
        self.options = options

    def compare(
        self,
        from_graph: DependencyGraph,
        to_graph: DependencyGraph,
        from_label: str = "from",
        to_label: str = "to",
    ) -> DiffReport:
        report = DiffReport(
            diff=diff_graphs(from_graph, to_graph),
            from_label=from_label,
            to_label=to_label,
            options=self.options,
            schema_versions=(from_graph.schema_version, to_graph.schema_version),
        )

        if from_graph.schema_version != to_graph.schema_version:
            message = (
                f"Snapshots use different id schemes (schema {from_graph.schema_version} vs "
                f"{to_graph.schema_version}); differences may be false positives"
            )
            logger.warning(message)
            report.warnings.append(message)

        if from_graph.options and to_graph.options:
            # The id scheme is reported above
            changed = [
                name for name in from_graph.options.differences(to_graph.options)
                if name != "stable_ids"
            ]
            if changed:
                message = (
                    f"Snapshots were built with different options ({', '.join(changed)}); "
                    f"differences may come from the flags rather than the projects"
                )
                logger.warning(message)
                report.warnings.append(message)

        return report
