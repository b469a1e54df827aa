"""
Global Configuration and Policy Defaults.

This module centralizes the tunable policy of the analyzer (risk tiers,
impact weighting), the scanning blocklists, and the flag bundle that
controls how a graph is built. Two graphs are only comparable when they
were built with the same BuildOptions.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Set

# --- Pinch-Point Policy ---
# Thresholds on transitive dependents. Reasonable defaults, not derived.
CRITICAL_DEPENDENTS = 20
HIGH_DEPENDENTS = 10
MEDIUM_DEPENDENTS = 5

# Each level of depth adds 20% to the impact score
IMPACT_DEPTH_WEIGHT = 0.2

# --- Exchange Format ---
SCHEMA_VERSION_LEGACY = 1
SCHEMA_VERSION_STABLE = 2

# --- Package Resolution ---
DEFAULT_RESOLVE_COMMAND = ("swift", "package", "show-dependencies", "--format", "json")
DEFAULT_RESOLVE_WORKERS = 4

# --- Scanning ---
RESOLVED_FILE = "Package.resolved"
MANIFEST_FILE = "Package.swift"
PBXPROJ_FILE = "project.pbxproj"
WORKSPACE_INDEX_FILE = "contents.xcworkspacedata"

PROJECT_BUNDLE_SUFFIX = ".xcodeproj"
WORKSPACE_BUNDLE_SUFFIX = ".xcworkspace"

# Directories to completely ignore during traversal
IGNORE_DIRECTORIES: Set[str] = {
    # Version Control
    ".git",
    ".svn",
    ".hg",
    # Build products and checkouts
    ".build",
    "build",
    "DerivedData",
    "Pods",
    "Carthage",
    "node_modules",
    ".swiftpm",
    # IDEs
    ".idea",
    ".vscode",
    "xcuserdata",
}


def is_ignored_directory(dir_name: str) -> bool:
    """Check if a directory is hidden or in the blocklist."""
    return dir_name.startswith(".") or dir_name in IGNORE_DIRECTORIES


@dataclass(frozen=True)
class AnalysisPolicy:
    """
    Scoring policy for pinch-point analysis.

    Attributes:
        critical: Minimum transitive dependents for CRITICAL.
        high: Minimum transitive dependents for HIGH.
        medium: Minimum transitive dependents for MEDIUM.
        depth_weight: Extra impact per level of dependency depth.
    """

    critical: int = CRITICAL_DEPENDENTS
    high: int = HIGH_DEPENDENTS
    medium: int = MEDIUM_DEPENDENTS
    depth_weight: float = IMPACT_DEPTH_WEIGHT

    def __post_init__(self):
        if not self.critical >= self.high >= self.medium >= 0:
            raise ValueError(
                f"Risk thresholds must be ordered critical >= high >= medium >= 0, "
                f"got {self.critical}/{self.high}/{self.medium}"
            )


DEFAULT_POLICY = AnalysisPolicy()


@dataclass(frozen=True)
class BuildOptions:
    """
    Flags that shape graph construction.

    Attributes:
        include_sub_targets: Add one node per sub-target and route package
            edges through the sub-targets that import them.
        hide_transient: Drop nodes nothing declares directly and stop
            augmentation walks after depth 1.
        resolve_packages: Augment with package-to-package edges from the
            external resolution command.
        stable_ids: Derive container ids from paths relative to the scan root.
    """

    include_sub_targets: bool = False
    hide_transient: bool = False
    resolve_packages: bool = False
    stable_ids: bool = True

    @property
    def schema_version(self) -> int:
        return SCHEMA_VERSION_STABLE if self.stable_ids else SCHEMA_VERSION_LEGACY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuildOptions":
        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise ValueError(f"Unknown build options: {', '.join(sorted(unknown))}")
        return cls(**data)

    def differences(self, other: "BuildOptions") -> List[str]:
        """Names of the flags that differ between two option sets."""
        return [f.name for f in fields(self) if getattr(self, f.name) != getattr(other, f.name)]

    def describe(self) -> str:
        flags = [
            name
            for name, enabled in (
                ("sub-targets", self.include_sub_targets),
                ("hide-transient", self.hide_transient),
                ("resolve", self.resolve_packages),
                ("stable-ids", self.stable_ids),
            )
            if enabled
        ]
        return ", ".join(flags) if flags else "defaults"
