"""
Unit tests for the shared CLI helpers.
"""

import logging

import click
import pytest
from click.testing import CliRunner

from depgraph.cli.main import configure_logging, main
from depgraph.cli.utils import (
    build_flags,
    echo_error,
    echo_warning,
    load_side,
    make_options,
    scan_and_build,
)
from depgraph.config import BuildOptions
from depgraph.core.exceptions import ScanRootNotFoundError
from depgraph.graph.export import write_graph


class TestMakeOptions:

    def test_defaults(self):
        assert make_options() == BuildOptions()

    def test_flags_map_to_options(self):
        options = make_options(show_targets=True, hide_transient=True, resolve_packages=True, legacy_ids=True)
        assert options == BuildOptions(
            include_sub_targets=True,
            hide_transient=True,
            resolve_packages=True,
            stable_ids=False,
        )
        assert options.schema_version == 1
        assert options.describe() == "sub-targets, hide-transient, resolve"

    def test_build_flags_decorator(self):
        @click.command()
        @build_flags
        def cmd(show_targets, hide_transient, resolve_packages, legacy_ids):
            click.echo(f"{show_targets} {hide_transient} {resolve_packages} {legacy_ids}")

        result = CliRunner().invoke(cmd, ["--show-targets", "--resolve"])
        assert result.output.strip() == "True False True False"


class TestEcho:

    def test_errors_and_warnings_go_to_stderr(self):
        @click.command()
        def cmd():
            echo_error("bad")
            echo_warning("careful")

        result = CliRunner().invoke(cmd)
        assert result.stdout == ""
        assert "bad" in result.stderr
        assert "careful" in result.stderr


class TestPipeline:

    def test_scan_and_build(self, swift_tree):
        result, graph = scan_and_build(swift_tree, BuildOptions())
        assert len(result.records) == 4
        assert graph.has_node("module:core")

    def test_scan_and_build_missing_root(self, tmp_path):
        with pytest.raises(ScanRootNotFoundError):
            scan_and_build(tmp_path / "nope", BuildOptions())

    def test_load_side_reads_snapshot(self, swift_tree, tmp_path):
        _, graph = scan_and_build(swift_tree, BuildOptions())
        path = write_graph(graph, tmp_path / "snap.json", "json")

        assert load_side(str(path), BuildOptions()).to_dict() == graph.to_dict()

    def test_load_side_scans_directory(self, swift_tree):
        assert load_side(str(swift_tree), BuildOptions()).has_node("module:shared")


class TestLogging:

    @pytest.mark.parametrize("verbose,debug,level", [
        (False, False, logging.WARNING),
        (True, False, logging.INFO),
        (False, True, logging.DEBUG),
    ])
    def test_levels(self, verbose, debug, level):
        configure_logging(verbose, debug)
        assert logging.getLogger().level == level

    def test_main_help(self):
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("scan", "analyze", "diff"):
            assert command in result.output
