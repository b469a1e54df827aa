"""
Unit tests for DOT and JSON export.
"""

import json

import pytest

from depgraph.core.graph import DependencyGraph
from depgraph.core.types import Node, NodeKind
from depgraph.graph.export import escape_dot, load_graph, to_dot, to_json, write_graph


@pytest.fixture
def graph():
    g = DependencyGraph()
    g.add_node(Node(id="container:app@App", name="App", kind=NodeKind.CONTAINER, path="App"))
    g.add_node(Node(id="target:app@App/AppTests", name="AppTests", kind=NodeKind.SUB_TARGET))
    g.add_node(Node(id="module:core", name="Core", kind=NodeKind.INTERNAL_MODULE, path="Core"))
    g.add_node(Node(id="module:swift-atomics", name="swift-atomics",
                    kind=NodeKind.EXTERNAL_MODULE, is_transient=True))
    g.add_edge("container:app@App", "module:core")
    g.add_edge("container:app@App", "target:app@App/AppTests")
    g.add_edge("module:core", "module:swift-atomics")
    g.compute_layers()
    return g


class TestDot:

    def test_escape(self):
        assert escape_dot('say "hi"') == '"say \\"hi\\""'
        assert escape_dot("a\\b") == '"a\\\\b"'

    def test_header_and_footer(self, graph):
        lines = to_dot(graph).splitlines()
        assert lines[0] == "digraph DependencyGraph {"
        assert "  rankdir=TB;" in lines
        assert lines[-1] == "}"

    def test_node_styles(self, graph):
        dot = to_dot(graph)
        assert '"container:app@App" [label="App", style="rounded,filled", fillcolor="lightblue"];' in dot
        assert 'fillcolor="lightgreen"' in dot
        assert '"module:swift-atomics" [label="swift-atomics", style="rounded,dashed"' in dot
        assert '"module:core" [label="Core"];' in dot

    def test_edges_sorted(self, graph):
        edges = [line for line in to_dot(graph).splitlines() if "->" in line]
        assert edges == [
            '  "container:app@App" -> "module:core";',
            '  "container:app@App" -> "target:app@App/AppTests";',
            '  "module:core" -> "module:swift-atomics";',
        ]

    def test_identical_graphs_identical_text(self, graph):
        copy = DependencyGraph.from_dict(graph.to_dict())
        assert to_dot(copy) == to_dot(graph)


class TestJson:

    def test_document_shape(self, graph):
        data = json.loads(to_json(graph))

        assert data["schemaVersion"] == 2
        assert [n["id"] for n in data["nodes"]] == sorted(n["id"] for n in data["nodes"])
        core = next(n for n in data["nodes"] if n["id"] == "module:core")
        assert core["kind"] == "internal_module"
        assert core["layer"] == 1
        assert {"source_id": "module:core", "target_id": "module:swift-atomics"} in data["edges"]

    def test_write_and_load(self, graph, tmp_path):
        path = write_graph(graph, tmp_path / "out" / "graph.json", "json")
        loaded = load_graph(path)

        assert loaded.to_dict() == graph.to_dict()
        assert loaded.get_node("module:swift-atomics").is_transient is True

    def test_write_dot(self, graph, tmp_path):
        path = write_graph(graph, tmp_path / "graph.dot", "dot")
        assert path.read_text().startswith("digraph DependencyGraph {")

    def test_unknown_format(self, graph, tmp_path):
        with pytest.raises(ValueError):
            write_graph(graph, tmp_path / "graph.svg", "svg")

    def test_load_rejects_non_graphs(self, tmp_path):
        bad_json = tmp_path / "bad.json"
        bad_json.write_text("{")
        not_graph = tmp_path / "other.json"
        not_graph.write_text('{"pins": []}')

        with pytest.raises(ValueError):
            load_graph(bad_json)
        with pytest.raises(ValueError):
            load_graph(not_graph)
