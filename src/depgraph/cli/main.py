"""
depgraph CLI - Main entry point.

This module registers all CLI commands. Each command is implemented
in its own module under cli/commands/.
"""

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from .commands import analyze, diff, scan


def configure_logging(verbose: bool, debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=debug)],
        force=True,
    )


@click.group()
@click.version_option(package_name="depgraph")
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr")
@click.option("--debug", is_flag=True, help="Log everything, including skipped edges")
def main(verbose: bool, debug: bool):
    """depgraph: Module Coupling Analysis for Swift projects.

    Merges every Xcode project, Swift package and lockfile under a
    directory into one dependency graph, then finds its pinch points.

    \b
    Quick Start:
      depgraph scan ./ios
      depgraph analyze ./ios --internal-only
      depgraph diff ../ios-main ./ios
    """
    configure_logging(verbose, debug)


# Register commands
main.add_command(scan.scan)
main.add_command(analyze.analyze)
main.add_command(diff.diff)

if __name__ == "__main__":
    main()
