"""
Diff Command - Compare the graphs of two trees or saved snapshots.

Usage:
    # Two checkouts of the same repository
    depgraph diff ../app-main ../app-feature

    # A snapshot saved earlier against the current tree
    depgraph scan . --format json -o before.json
    depgraph diff before.json .

Both sides are built with the same flags. A saved snapshot must have been
written with those flags too; ids from different schemes never match.
"""

import json
import logging
import sys

import click

from ...analysis.diff import DiffAnalyzer
from ...core.exceptions import ScanRootNotFoundError
from ..formatting import render_diff
from ..utils import build_flags, echo_error, load_side, make_options

logger = logging.getLogger(__name__)


@click.command()
@click.argument("from_source")
@click.argument("to_source")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@build_flags
def diff(
    from_source: str,
    to_source: str,
    as_json: bool,
    show_targets: bool,
    hide_transient: bool,
    resolve_packages: bool,
    legacy_ids: bool,
):
    """
    Show nodes and edges added or removed going from FROM_SOURCE to TO_SOURCE.

    Each side is a directory to scan or a JSON graph written by `scan`.
    """
    options = make_options(show_targets, hide_transient, resolve_packages, legacy_ids)
    try:
        from_graph = load_side(from_source, options)
        to_graph = load_side(to_source, options)
    except (ScanRootNotFoundError, ValueError) as e:
        echo_error(str(e))
        sys.exit(1)

    report = DiffAnalyzer(options).compare(from_graph, to_graph, from_source, to_source)
    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    render_diff(report)
