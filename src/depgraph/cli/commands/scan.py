"""
Scan Command - Discover project files and build the dependency graph.
"""

import logging
import sys
from pathlib import Path

import click

from ...core.exceptions import ScanRootNotFoundError
from ...graph.export import to_dot, to_json, write_graph
from ..formatting import render_layers, render_stats, render_tree
from ..utils import build_flags, echo_error, echo_info, echo_success, echo_warning, make_options, scan_and_build

logger = logging.getLogger(__name__)


@click.command()
@click.argument("directory", default=".")
@click.option("-f", "--format", "output_format",
              type=click.Choice(["tree", "layers", "dot", "json", "summary"]), default="tree",
              help="Output format")
@click.option("-o", "--output", type=click.Path(dir_okay=False),
              help="Write dot/json output to a file instead of stdout")
@build_flags
def scan(
    directory: str,
    output_format: str,
    output: str | None,
    show_targets: bool,
    hide_transient: bool,
    resolve_packages: bool,
    legacy_ids: bool,
):
    """
    Scan DIRECTORY for projects, packages and lockfiles and print the graph.

    \b
    Examples:
        depgraph scan ~/src/app
        depgraph scan . --format layers
        depgraph scan . --format dot -o graph.dot
        depgraph scan . --format json --show-targets > graph.json
    """
    options = make_options(show_targets, hide_transient, resolve_packages, legacy_ids)
    try:
        result, graph = scan_and_build(directory, options)
    except ScanRootNotFoundError as e:
        echo_error(str(e))
        sys.exit(1)

    if result.is_empty:
        echo_warning(f"No project files found in {directory}")
        return

    if output_format in ("dot", "json"):
        if output:
            path = write_graph(graph, Path(output), output_format)
            echo_success(f"Generated: {path}")
            if output_format == "dot":
                echo_info(f"Render with: dot -Tsvg {path} -o graph.svg")
        else:
            click.echo(to_dot(graph) if output_format == "dot" else to_json(graph), nl=False)
        return

    if output:
        echo_warning(f"--output is ignored for the {output_format} format")
    if output_format == "tree":
        render_tree(graph)
    elif output_format == "layers":
        render_layers(graph)
    render_stats(graph)
