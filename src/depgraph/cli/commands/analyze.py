"""
Analyze Command - Rank the pinch points of a project tree.
"""

import json
import logging
import sys

import click

from ...analysis.pinch_points import PinchPointAnalyzer
from ...core.exceptions import ScanRootNotFoundError
from ..formatting import render_pinch_points
from ..utils import build_flags, echo_error, echo_warning, make_options, scan_and_build

logger = logging.getLogger(__name__)


@click.command()
@click.argument("directory", default=".")
@click.option("--internal-only", is_flag=True, help="Ignore external packages")
@click.option("-n", "--top", default=10, show_default=True, type=click.IntRange(min=1),
              help="Number of pinch points to show")
@click.option("--sort", "sort_key", type=click.Choice(["impact", "vulnerability", "dependents"]),
              default="impact", show_default=True, help="Ranking score")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@build_flags
def analyze(
    directory: str,
    internal_only: bool,
    top: int,
    sort_key: str,
    as_json: bool,
    show_targets: bool,
    hide_transient: bool,
    resolve_packages: bool,
    legacy_ids: bool,
):
    """
    Find the modules whose change forces the widest rebuild.

    Impact weighs transitive dependents by depth; vulnerability counts
    transitive dependencies. Cycles are collapsed before counting.
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

    report = PinchPointAnalyzer(graph).report(internal_only=internal_only)
    if as_json:
        click.echo(json.dumps(report.to_dict(top=top, key=sort_key), indent=2))
        return

    render_pinch_points(report, report.top(top, sort_key))
