"""
Base Parser Infrastructure.

Every project file describes part of one container: a lockfile lists what
was resolved, a manifest declares what is wanted, a project file lists the
targets. Parsers return that part as a ContainerFragment; the scanner
merges all fragments sharing a location into one DependencyInfo record.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from ..core.exceptions import ParseError
from ..core.identity import normalize_name
from ..core.result import Err, Ok, Result
from ..core.types import DependencyInfo, SubTarget

logger = logging.getLogger(__name__)


def package_identity(location: str) -> str:
    """
    Derive a package identity from a repository URL or local path.

    `https://github.com/apple/swift-log.git` -> `swift-log`
    `../Packages/Core/` -> `Core`
    """
    trimmed = location.strip().rstrip("/")
    last = trimmed.rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if last.endswith(".git"):
        last = last[: -len(".git")]
    return last


@dataclass
class ContainerFragment:
    """
    What one project file says about its container.

    Attributes:
        location: Container directory or bundle; fragments are merged by it.
        name: Container name as far as this file knows it.
        declared_name: True when the file declares the name itself rather
            than it being guessed from the directory.
        dependencies: Lockfile-style references, in file order.
        explicit_dependencies: Names the container declares directly.
        sub_targets: Nested build targets.
        local_packages: Name used for each local package reference, mapped
            to the directory it points at. The name is only a guess from the
            directory until the package's own manifest is read.
    """

    location: Path
    name: str
    declared_name: bool = False
    dependencies: List[str] = field(default_factory=list)
    explicit_dependencies: Set[str] = field(default_factory=set)
    sub_targets: List[SubTarget] = field(default_factory=list)
    local_packages: Dict[str, Path] = field(default_factory=dict)


@dataclass
class ParsedFile:
    """
    Output of one parser run.

    `references` are other container locations the file points at (local
    packages, projects listed in a workspace). They may lie outside the
    scan root.
    """

    file_path: Path
    fragment: Optional[ContainerFragment] = None
    references: List[Path] = field(default_factory=list)


class ProjectFileParser(ABC):
    """
    Abstract base class for project file parsers.
    """

    def __init__(self):
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def can_parse(self, file_path: Path) -> bool:
        ...

    @abstractmethod
    def parse(self, file_path: Path, text: str) -> ParsedFile:
        """Parse file content; raises ValueError when it is malformed."""
        ...

    def parse_file(self, file_path: Path) -> Result[ParsedFile, ParseError]:
        """Read and parse a file, turning every failure into an Err."""
        try:
            text = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return Err(ParseError(file_path, f"Could not read file ({e})"))

        try:
            parsed = self.parse(file_path, text)
        except ValueError as e:
            return Err(ParseError(file_path, str(e)))

        self._logger.debug(f"Parsed {file_path} with {self.name}")
        return Ok(parsed)


class ParserRegistry:
    """Registry of project file parsers, matched by file name."""

    def __init__(self, parsers: Iterable[ProjectFileParser] = ()):
        self._parsers: Dict[str, ProjectFileParser] = {}
        for parser in parsers:
            self.register(parser)

    def register(self, parser: ProjectFileParser) -> None:
        self._parsers[parser.name] = parser

    def get_parser_for_file(self, file_path: Path) -> Optional[ProjectFileParser]:
        for parser in self._parsers.values():
            if parser.can_parse(file_path):
                return parser
        return None

    @property
    def names(self) -> List[str]:
        return sorted(self._parsers)


def _merge_sub_targets(targets: Iterable[SubTarget]) -> List[SubTarget]:
    by_name: Dict[str, SubTarget] = {}
    for target in targets:
        existing = by_name.get(target.name)
        if existing is None:
            by_name[target.name] = target
            continue
        by_name[target.name] = SubTarget(
            name=target.name,
            package_dependencies=tuple(sorted(
                set(existing.package_dependencies) | set(target.package_dependencies)
            )),
            target_dependencies=tuple(sorted(
                set(existing.target_dependencies) | set(target.target_dependencies)
            )),
        )
    return [by_name[name] for name in sorted(by_name)]


def _fragments(parsed_files: List[ParsedFile]) -> List[ContainerFragment]:
    ordered = sorted(parsed_files, key=lambda p: str(p.file_path))
    return [p.fragment for p in ordered if p.fragment is not None]


def container_name(parsed_files: List[ParsedFile]) -> str:
    """Name of the merged container: a declared name beats a directory name."""
    fragments = _fragments(parsed_files)
    if not fragments:
        raise ValueError("No fragments to name")
    declared = [f.name for f in fragments if f.declared_name]
    return declared[0] if declared else fragments[0].name


def merge_fragments(
    location: Path,
    parsed_files: List[ParsedFile],
    aliases: Optional[Dict[str, str]] = None,
) -> DependencyInfo:
    """
    Merge every fragment found for one location into a record.

    Files are processed in path order so the result does not depend on the
    order the tree was walked in.

    Args:
        location: Container location shared by the fragments.
        parsed_files: Parser outputs for that location.
        aliases: Normalized reference name -> name to use instead. Local
            packages are referenced by directory name until their own
            declared name is known.
    """
    fragments = _fragments(parsed_files)
    if not fragments:
        raise ValueError(f"No fragments for {location}")
    aliases = aliases or {}

    def rename(dep: str) -> str:
        return aliases.get(normalize_name(dep), dep)

    dependencies: List[str] = []
    seen: Set[str] = set()
    explicit: Set[str] = set()
    for fragment in fragments:
        for dep in map(rename, fragment.dependencies):
            key = normalize_name(dep)
            if key not in seen:
                seen.add(key)
                dependencies.append(dep)
        explicit |= {rename(dep) for dep in fragment.explicit_dependencies}

    targets = [
        SubTarget(
            name=t.name,
            package_dependencies=tuple(sorted({rename(pkg) for pkg in t.package_dependencies})),
            target_dependencies=t.target_dependencies,
        ) if aliases else t
        for f in fragments for t in f.sub_targets
    ]

    return DependencyInfo(
        path=location,
        name=container_name(parsed_files),
        dependencies=dependencies,
        explicit_dependencies=frozenset(explicit),
        sub_targets=_merge_sub_targets(targets),
        source_files=[p.file_path for p in sorted(parsed_files, key=lambda p: str(p.file_path))],
    )
