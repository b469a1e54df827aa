"""
CLI Utilities - Shared helper functions for command line operations.

This module provides common functionality used across the commands:
formatted printing, the build flags every command shares, and the
scan-then-build pipeline.
"""

import logging
from pathlib import Path
from typing import Callable, Tuple

import click

from ..config import BuildOptions
from ..core.builder import GraphBuilder
from ..core.graph import DependencyGraph
from ..graph.export import load_graph
from ..parsing.scanner import ProjectScanner, ScanResult

logger = logging.getLogger(__name__)


def echo_success(message: str) -> None:
    """
    Print a success message with a green checkmark.

    Args:
        message (str): The message to display.
    """
    click.echo(click.style(f"✅ {message}", fg="green"))


def echo_error(message: str) -> None:
    """
    Print an error message with a red cross.

    Args:
        message (str): The error message to display.
    """
    click.echo(click.style(f"❌ {message}", fg="red"), err=True)


def echo_warning(message: str) -> None:
    """
    Print a warning message with a yellow alert symbol, to stderr so
    machine-readable stdout stays clean.
    """
    click.echo(click.style(f"⚠️  {message}", fg="yellow"), err=True)


def echo_info(message: str) -> None:
    click.echo(click.style(f"   {message}", dim=True))


def build_flags(func: Callable) -> Callable:
    """
    Attach the graph construction flags shared by scan, analyze and diff.
    """
    func = click.option("--legacy-ids", is_flag=True,
                        help="Use absolute paths in container ids (schema 1)")(func)
    func = click.option("--resolve", "resolve_packages", is_flag=True,
                        help="Add package-to-package edges via the package manager")(func)
    func = click.option("--hide-transient", is_flag=True,
                        help="Hide dependencies nothing declares directly")(func)
    func = click.option("--show-targets", is_flag=True,
                        help="Add a node per build target")(func)
    return func


def make_options(
    show_targets: bool = False,
    hide_transient: bool = False,
    resolve_packages: bool = False,
    legacy_ids: bool = False,
) -> BuildOptions:
    return BuildOptions(
        include_sub_targets=show_targets,
        hide_transient=hide_transient,
        resolve_packages=resolve_packages,
        stable_ids=not legacy_ids,
    )


def scan_and_build(root: str | Path, options: BuildOptions) -> Tuple[ScanResult, DependencyGraph]:
    """
    Scan a directory and build its graph.

    Raises:
        ScanRootNotFoundError: If the directory does not exist.
    """
    result = ProjectScanner(Path(root)).scan()
    for error in result.errors:
        echo_warning(f"Skipped {error}")

    graph = GraphBuilder(result.root, options).build(result.records)
    return result, graph


def load_side(source: str, options: BuildOptions) -> DependencyGraph:
    """
    Get one side of a diff: a saved JSON graph or a directory to scan.

    Raises:
        ScanRootNotFoundError: If `source` is neither a file nor a directory.
        ValueError: If a file is not a saved graph.
    """
    path = Path(source)
    if path.is_file():
        logger.info(f"Loading saved graph {path}")
        return load_graph(path)
    _, graph = scan_and_build(path, options)
    return graph
