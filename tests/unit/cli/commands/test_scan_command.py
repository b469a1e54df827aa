"""
Unit tests for the 'scan' command.
"""

import json
from unittest.mock import patch

from click.testing import CliRunner

from depgraph.cli.main import main


class TestScanCommand:
    """Runs the command against the on-disk sample tree."""

    def test_tree_output(self, swift_tree):
        runner = CliRunner()
        result = runner.invoke(main, ["scan", str(swift_tree)])

        assert result.exit_code == 0
        assert "Dependency Graph" in result.stdout
        assert "swift-atomics" in result.stdout
        assert "Statistics" in result.stdout

    def test_summary_output_skips_tree(self, swift_tree):
        runner = CliRunner()
        result = runner.invoke(main, ["scan", str(swift_tree), "--format", "summary"])

        assert result.exit_code == 0
        assert "Statistics" in result.stdout
        assert "Dependency Graph" not in result.stdout

    def test_layers_output(self, swift_tree):
        runner = CliRunner()
        result = runner.invoke(main, ["scan", str(swift_tree), "--format", "layers"])

        assert result.exit_code == 0
        assert "Dependency Layers" in result.stdout
        assert "Layer 0" in result.stdout
        # Utilities is only reachable through Core
        assert "Layer 2" in result.stdout
        assert "Layer 3" not in result.stdout
        assert "Dependency Graph" not in result.stdout

    def test_json_to_stdout(self, swift_tree):
        runner = CliRunner()
        result = runner.invoke(main, ["scan", str(swift_tree), "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["schemaVersion"] == 2
        ids = {n["id"] for n in data["nodes"]}
        assert "container:app@App/App.xcodeproj" in ids
        assert "module:shared" in ids

    def test_legacy_ids(self, swift_tree):
        runner = CliRunner()
        result = runner.invoke(main, ["scan", str(swift_tree), "-f", "json", "--legacy-ids"])

        data = json.loads(result.stdout)
        assert data["schemaVersion"] == 1
        app = next(n for n in data["nodes"] if n["name"] == "App")
        assert app["id"].endswith("/repo/App/App.xcodeproj")

    def test_show_targets_and_hide_transient(self, swift_tree):
        runner = CliRunner()
        result = runner.invoke(
            main, ["scan", str(swift_tree), "-f", "json", "--show-targets", "--hide-transient"]
        )

        ids = {n["id"] for n in json.loads(result.stdout)["nodes"]}
        assert "target:app@App/App.xcodeproj/AppTests" in ids
        assert "module:swift-atomics" not in ids

    def test_dot_to_stdout(self, swift_tree):
        runner = CliRunner()
        result = runner.invoke(main, ["scan", str(swift_tree), "--format", "dot"])

        assert result.exit_code == 0
        assert result.stdout.startswith("digraph DependencyGraph {")

    def test_output_file(self, swift_tree, tmp_path):
        runner = CliRunner()
        out = tmp_path / "graph.dot"
        result = runner.invoke(main, ["scan", str(swift_tree), "-f", "dot", "-o", str(out)])

        assert result.exit_code == 0
        assert "Generated" in result.output
        assert out.read_text().startswith("digraph DependencyGraph {")

    def test_missing_directory(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, ["scan", str(tmp_path / "nope")])

        assert result.exit_code == 1
        assert "Directory does not exist" in result.stderr

    def test_empty_directory(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, ["scan", str(tmp_path)])

        assert result.exit_code == 0
        assert "No project files found" in result.stderr
        assert result.stdout == ""

    def test_parse_errors_warn_but_do_not_fail(self, swift_tree):
        (swift_tree / "Packages" / "Core" / "Package.resolved").write_text("{")
        runner = CliRunner()
        result = runner.invoke(main, ["scan", str(swift_tree), "-f", "json"])

        assert result.exit_code == 0
        assert "Skipped" in result.stderr
        json.loads(result.stdout)

    @patch("depgraph.cli.utils.GraphBuilder")
    def test_resolve_flag_reaches_builder(self, mock_builder_cls, swift_tree):
        mock_builder_cls.return_value.build.side_effect = RuntimeError("stop")
        runner = CliRunner()
        runner.invoke(main, ["scan", str(swift_tree), "--resolve"])

        options = mock_builder_cls.call_args.args[1]
        assert options.resolve_packages is True
        assert options.stable_ids is True
