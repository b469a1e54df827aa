"""
Console rendering for graphs, pinch-point reports and diffs.
"""

from typing import List

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from ..analysis.diff import DiffReport
from ..analysis.pinch_points import PinchPointInfo, PinchPointReport, RiskTier
from ..core.graph import DependencyGraph
from ..core.types import Node, NodeKind

console = Console()

KIND_MARKERS = {
    NodeKind.CONTAINER: "◆",
    NodeKind.SUB_TARGET: "▸",
    NodeKind.INTERNAL_MODULE: "■",
    NodeKind.EXTERNAL_MODULE: "○",
}

RISK_STYLES = {
    RiskTier.CRITICAL: "bold red",
    RiskTier.HIGH: "red",
    RiskTier.MEDIUM: "yellow",
    RiskTier.LOW: "green",
}


def _label(graph: DependencyGraph, node: Node) -> str:
    name = escape(node.name)
    if node.kind == NodeKind.CONTAINER:
        name = f"[bold]{name}[/bold]"
    label = f"{KIND_MARKERS[node.kind]} {name}"
    dependents = len(graph.dependents_of(node.id))
    if dependents > 1:
        label += f" [cyan]\\[shared by {dependents}][/cyan]"
    if node.is_transient:
        label += " [dim](transient)[/dim]"
    return label


def render_tree(graph: DependencyGraph) -> None:
    """
    Print every container and internal module with its dependencies.

    Sub-targets are expanded one level so their own imports are visible.
    """
    tree = Tree("[bold]Dependency Graph[/bold]")
    owners = sorted(
        (n for n in graph.iter_nodes() if n.kind in (NodeKind.CONTAINER, NodeKind.INTERNAL_MODULE)),
        key=lambda n: (n.kind != NodeKind.CONTAINER, n.name.lower(), n.id),
    )
    for owner in owners:
        deps = graph.dependencies_of(owner.id)
        if owner.kind == NodeKind.INTERNAL_MODULE and not deps:
            continue
        branch = tree.add(_label(graph, owner))
        if owner.path:
            branch.add(f"[dim]{escape(owner.path)}[/dim]")
        for dep_id in deps:
            dep = graph.get_node(dep_id)
            child = branch.add(_label(graph, dep))
            if dep.kind == NodeKind.SUB_TARGET:
                for sub_id in graph.dependencies_of(dep_id):
                    child.add(_label(graph, graph.get_node(sub_id)))
    console.print(tree)


def render_layers(graph: DependencyGraph) -> None:
    """
    Print nodes grouped by layer, top-level containers first.

    Each node lists the nodes it points at, which sit in deeper layers
    unless they close a cycle.
    """
    tree = Tree("[bold]Dependency Layers[/bold]  [dim]◆ container  ▸ target  ■ local  ○ external[/dim]")
    for index, layer in enumerate(graph.nodes_by_layer()):
        if not layer:
            continue
        branch = tree.add(f"[bold]Layer {index}[/bold] [dim]({len(layer)})[/dim]")
        for node in layer:
            deps = graph.dependencies_of(node.id)
            label = _label(graph, node)
            if deps:
                names = ", ".join(escape(graph.get_node(dep).name) for dep in deps)
                label += f" [dim]→ {names}[/dim]"
            branch.add(label)
    console.print(tree)


def render_stats(graph: DependencyGraph) -> None:
    stats = graph.get_stats()
    table = Table(title="Statistics", show_header=False)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for kind in NodeKind:
        table.add_row(kind.value.replace("_", " ").title() + "s", str(stats["nodes_by_kind"].get(kind.value, 0)))
    table.add_row("Transient", str(stats["transient_nodes"]))
    table.add_row("Shared", str(stats["shared_nodes"]))
    table.add_row("Edges", str(stats["total_edges"]))
    console.print(table)


def render_pinch_points(report: PinchPointReport, points: List[PinchPointInfo]) -> None:
    table = Table(title="Pinch Points")
    table.add_column("Module")
    table.add_column("Kind")
    table.add_column("Direct", justify="right")
    table.add_column("Transitive", justify="right")
    table.add_column("Depth", justify="right")
    table.add_column("Impact", justify="right")
    table.add_column("Vulnerability", justify="right")
    table.add_column("Risk")

    for p in points:
        name = f"{escape(p.name)} [magenta](cycle of {p.cycle_size})[/magenta]" if p.in_cycle else escape(p.name)
        table.add_row(
            name,
            p.kind.value,
            str(p.direct_dependents),
            str(p.transitive_dependents),
            str(p.dependency_depth),
            f"{p.impact_score:.1f}",
            str(p.vulnerability_score),
            f"[{RISK_STYLES[p.risk_tier]}]{p.risk_tier.value}[/]",
        )
    console.print(table)

    tiers = ", ".join(f"{tier}: {count}" for tier, count in report.tier_counts.items())
    console.print(f"Analyzed {len(report.points)} nodes, max depth {report.max_depth} ({tiers})")
    for cycle in report.cycles:
        console.print(f"[magenta]Cycle:[/magenta] {escape(' ⇄ '.join(cycle))}")


def render_diff(report: DiffReport) -> None:
    diff = report.diff
    console.print(f"[bold]Graph diff[/bold] [dim]{escape(report.from_label)} → {escape(report.to_label)}[/dim]")
    for warning in report.warnings:
        console.print(f"[yellow]⚠️  {escape(warning)}[/yellow]")

    if diff.is_empty:
        console.print("[green]No changes[/green]")
        return

    sections = (
        ("Added nodes", diff.added_nodes, "green", "+"),
        ("Removed nodes", diff.removed_nodes, "red", "-"),
        ("Added edges", diff.added_edges, "green", "+"),
        ("Removed edges", diff.removed_edges, "red", "-"),
    )
    for title, items, style, sign in sections:
        if not items:
            continue
        console.print(f"[bold]{title}[/bold] ({len(items)})")
        for item in items:
            console.print(f"  [{style}]{sign} {escape(item)}[/{style}]", highlight=False)
