"""
Project Scanner.

Walks a directory tree once, hands every project file to its parser and
merges the resulting fragments into one DependencyInfo per container.

Traversal rules:
- hidden and blocklisted directories are never entered
- `.xcodeproj` / `.xcworkspace` bundles are not walked; only their index
  files and bundled lockfile are read
- references found along the way (workspace entries, local packages) are
  followed afterwards, even when they point outside the root
"""

import logging
import os
from collections import defaultdict, deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Deque, Dict, List, Optional, Set

from ..config import (
    PBXPROJ_FILE,
    PROJECT_BUNDLE_SUFFIX,
    RESOLVED_FILE,
    WORKSPACE_BUNDLE_SUFFIX,
    WORKSPACE_INDEX_FILE,
    is_ignored_directory,
)
from ..core.exceptions import ParseError, ScanRootNotFoundError
from ..core.identity import normalize_name
from ..core.types import DependencyInfo
from .base import ParsedFile, ParserRegistry, ProjectFileParser, container_name, merge_fragments
from .manifest import ManifestParser
from .pbxproj import PbxprojParser
from .resolved import ResolvedParser
from .workspace import WorkspaceParser

logger = logging.getLogger(__name__)

BUNDLE_SUFFIXES = (PROJECT_BUNDLE_SUFFIX, WORKSPACE_BUNDLE_SUFFIX)

# Files read inside each kind of bundle, relative to the bundle
BUNDLE_FILES = {
    PROJECT_BUNDLE_SUFFIX: (
        PBXPROJ_FILE,
        f"project.xcworkspace/xcshareddata/swiftpm/{RESOLVED_FILE}",
    ),
    WORKSPACE_BUNDLE_SUFFIX: (
        WORKSPACE_INDEX_FILE,
        f"xcshareddata/swiftpm/{RESOLVED_FILE}",
    ),
}


def create_default_registry() -> ParserRegistry:
    return ParserRegistry([
        ResolvedParser(),
        ManifestParser(),
        PbxprojParser(),
        WorkspaceParser(),
    ])


@dataclass
class ScanResult:
    """
    Outcome of a scan.

    Attributes:
        root: The scanned directory.
        records: One record per container, sorted by location.
        errors: Files that could not be read or parsed; they were skipped.
        files_parsed: Number of files parsed successfully.
    """

    root: Path
    records: List[DependencyInfo] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)
    files_parsed: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.records


@dataclass
class _ScanState:
    parsed: Dict[Path, List[ParsedFile]] = field(default_factory=lambda: defaultdict(list))
    errors: List[ParseError] = field(default_factory=list)
    pending: Deque[Path] = field(default_factory=deque)
    seen_dirs: Set[Path] = field(default_factory=set)
    seen_bundles: Set[Path] = field(default_factory=set)
    seen_files: Set[Path] = field(default_factory=set)
    files_parsed: int = 0


class ProjectScanner:
    """
    Discovers and parses every project file under a root.

    Example:
        ```python
        result = ProjectScanner(Path("~/src/app").expanduser()).scan()
        for record in result.records:
            print(record.name, record.dependencies)
        ```
    """

    def __init__(
        self,
        root: Path,
        registry: Optional[ParserRegistry] = None,
        follow_references: bool = True,
    ):
        self.root = Path(root)
        self.registry = registry or create_default_registry()
        self.follow_references = follow_references

    def scan(self) -> ScanResult:
        """
        Scan the tree.

        Raises:
            ScanRootNotFoundError: If the root is not an existing directory.
        """
        if not self.root.is_dir():
            raise ScanRootNotFoundError(self.root)

        root = Path(os.path.abspath(self.root))
        state = _ScanState()
        self._walk(root, state)

        if self.follow_references:
            while state.pending:
                self._follow(state.pending.popleft(), state)

        names = {
            location.resolve(): container_name(files) for location, files in state.parsed.items()
        }
        records = [
            merge_fragments(location, files, self._aliases(files, names))
            for location, files in sorted(state.parsed.items(), key=lambda item: str(item[0]))
        ]

        logger.info(
            f"Scanned {root}: {len(records)} containers from {state.files_parsed} files, "
            f"{len(state.errors)} errors"
        )
        return ScanResult(
            root=root,
            records=records,
            errors=state.errors,
            files_parsed=state.files_parsed,
        )

    @staticmethod
    def _aliases(files: List[ParsedFile], names: Dict[Path, str]) -> Dict[str, str]:
        """
        Map local package references to the name the package declares.

        `.package(path: "../shared-kit")` names the package after its
        directory; when the manifest there says `Package(name: "SharedKit")`
        the reference must land on that package's node.
        """
        aliases: Dict[str, str] = {}
        for parsed in files:
            if parsed.fragment is None:
                continue
            for guessed, target in parsed.fragment.local_packages.items():
                declared = names.get(Path(os.path.abspath(target)).resolve())
                if declared and normalize_name(declared) != normalize_name(guessed):
                    logger.debug(f"Local package '{guessed}' declares itself as '{declared}'")
                    aliases[normalize_name(guessed)] = declared
        return aliases

    def _walk(self, start: Path, state: _ScanState) -> None:
        for dirpath, dirnames, filenames in start.walk():
            state.seen_dirs.add(dirpath.resolve())

            kept = []
            for name in sorted(dirnames):
                if is_ignored_directory(name):
                    continue
                if name.endswith(BUNDLE_SUFFIXES):
                    self._scan_bundle(dirpath / name, state)
                    continue
                kept.append(name)
            dirnames[:] = kept

            for name in sorted(filenames):
                path = dirpath / name
                parser = self.registry.get_parser_for_file(path)
                if parser:
                    self._parse(parser, path, state)

    def _scan_bundle(self, bundle: Path, state: _ScanState) -> None:
        resolved = bundle.resolve()
        if resolved in state.seen_bundles:
            return
        state.seen_bundles.add(resolved)

        for relative in BUNDLE_FILES[bundle.suffix]:
            path = bundle / relative
            if not path.is_file():
                continue
            parser = self.registry.get_parser_for_file(path)
            if parser:
                self._parse(parser, path, state)

    def _parse(self, parser: ProjectFileParser, path: Path, state: _ScanState) -> None:
        resolved = path.resolve()
        if resolved in state.seen_files:
            return
        state.seen_files.add(resolved)

        result = parser.parse_file(path)
        if result.is_err():
            error = result.unwrap_err()
            logger.warning(f"Skipping {error}")
            state.errors.append(error)
            return

        parsed = result.unwrap()
        state.files_parsed += 1
        if parsed.fragment is not None:
            location = Path(os.path.abspath(parsed.fragment.location))
            parsed.fragment.location = location
            state.parsed[location].append(parsed)
        state.pending.extend(parsed.references)

    def _follow(self, reference: Path, state: _ScanState) -> None:
        path = Path(os.path.abspath(reference))
        if not path.exists():
            logger.warning(f"Referenced path does not exist: {path}")
            return

        if path.is_dir() and path.suffix in BUNDLE_SUFFIXES:
            self._scan_bundle(path, state)
        elif path.is_dir():
            if path.resolve() not in state.seen_dirs:
                logger.debug(f"Following reference to {path}")
                self._walk(path, state)
        else:
            parser = self.registry.get_parser_for_file(path)
            if parser:
                self._parse(parser, path, state)
