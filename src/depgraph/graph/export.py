"""
Graph Export.

Serializes a finished DependencyGraph:
- DOT (Graphviz) for rendering: `dot -Tsvg graph.dot -o graph.svg`
- JSON exchange format, stamped with the id scheme's schemaVersion

Both outputs are sorted by id so identical graphs produce identical text.
"""

import json
import logging
from pathlib import Path
from typing import Any

from ..core.graph import DependencyGraph
from ..core.types import Node, NodeKind

logger = logging.getLogger(__name__)

NODE_STYLES = {
    NodeKind.CONTAINER: 'style="rounded,filled", fillcolor="lightblue"',
    NodeKind.SUB_TARGET: 'style="rounded,filled", fillcolor="lightgreen"',
}
TRANSIENT_STYLE = 'style="rounded,dashed", color="gray50", fontcolor="gray40"'


def escape_dot(value: str) -> str:
    """Quote a DOT identifier, escaping backslashes and quotes."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _dot_attributes(node: Node) -> str:
    attributes = [f"label={escape_dot(node.name)}"]
    if node.kind in NODE_STYLES:
        attributes.append(NODE_STYLES[node.kind])
    elif node.is_transient:
        attributes.append(TRANSIENT_STYLE)
    return ", ".join(attributes)


def to_dot(graph: DependencyGraph) -> str:
    lines = [
        "digraph DependencyGraph {",
        "  rankdir=TB;",
        "  node [shape=box, style=rounded];",
        "",
    ]
    for node in sorted(graph.iter_nodes(), key=lambda n: n.id):
        lines.append(f"  {escape_dot(node.id)} [{_dot_attributes(node)}];")

    lines.append("")
    for edge in sorted(graph.iter_edges(), key=lambda e: e.key):
        lines.append(f"  {escape_dot(edge.source_id)} -> {escape_dot(edge.target_id)};")
    lines.append("}")
    return "\n".join(lines) + "\n"


def _json_default(obj: Any) -> Any:
    """JSON serializer for objects not serializable by default json code"""
    if isinstance(obj, Path):
        return obj.as_posix()
    raise TypeError(f"Type {type(obj)} not serializable")


def to_json(graph: DependencyGraph, indent: int | None = 2) -> str:
    return json.dumps(graph.to_dict(), indent=indent, default=_json_default)


def write_graph(graph: DependencyGraph, output_path: Path, fmt: str) -> Path:
    """
    Write a graph to a file in `dot` or `json` format.
    """
    if fmt == "dot":
        content = to_dot(graph)
    elif fmt == "json":
        content = to_json(graph)
    else:
        raise ValueError(f"Unsupported export format: {fmt}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")
    logger.info(f"Wrote {fmt} graph to {output_path}")
    return output_path


def load_graph(path: Path) -> DependencyGraph:
    """
    Load a graph saved in the JSON exchange format.

    Raises:
        ValueError: If the file is not valid JSON or not a graph document.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON ({e.msg})") from e

    if not isinstance(data, dict) or "nodes" not in data:
        raise ValueError(f"{path} is not a dependency graph document")
    return DependencyGraph.from_dict(data)
