"""
depgraph - Module Coupling Analysis for Multi-Module Projects.

depgraph merges the dependency metadata of every project, package and
lockfile found under a directory into one graph, then looks for the
"pinch points": modules whose change forces the widest recompilation.

Key Components:
- parsing: Project file parsers (Package.resolved, Package.swift, pbxproj, workspaces)
- core: Node/edge types, graph storage and the graph builder
- analysis: Pinch-point analysis and graph snapshot diffs

Usage:
    from depgraph import GraphBuilder, ProjectScanner, analyze

    scan = ProjectScanner(root).scan()
    graph = GraphBuilder(root).build(scan.records)
    points, max_depth = analyze(graph)
"""

__version__ = "0.1.0"

from .analysis.diff import GraphDiff, diff_graphs
from .analysis.pinch_points import PinchPointInfo, RiskTier, analyze
from .config import AnalysisPolicy, BuildOptions
from .core.builder import GraphBuilder
from .core.graph import DependencyGraph
from .core.types import DependencyInfo, Edge, Node, NodeKind, SubTarget
from .parsing.scanner import ProjectScanner

__all__ = [
    "__version__",
    "AnalysisPolicy",
    "BuildOptions",
    "DependencyGraph",
    "DependencyInfo",
    "Edge",
    "GraphBuilder",
    "GraphDiff",
    "Node",
    "NodeKind",
    "PinchPointInfo",
    "ProjectScanner",
    "RiskTier",
    "SubTarget",
    "analyze",
    "diff_graphs",
]
