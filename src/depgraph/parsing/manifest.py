"""
Package.swift Parser.

Static extraction from the manifest source; the manifest is never
executed. Recognized shapes:

    Package(name: "Core", ...)
    .package(url: "https://github.com/apple/swift-log.git", from: "1.0.0")
    .package(path: "../Utilities")
    .package(name: "Shared", path: "../Shared")
    .package(id: "scope.name", from: "1.0.0")
    .target(name: "Core", dependencies: [
        .product(name: "Logging", package: "swift-log"),
        .target(name: "CoreModels"),
        "Utilities",
    ])

A package declares itself: its own name is among its explicit
dependencies, which is what makes it an internal module of the graph.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Set, Tuple

from ..config import MANIFEST_FILE
from ..core.types import SubTarget
from .base import ContainerFragment, ParsedFile, ProjectFileParser, package_identity

# Strings are matched first so `//` inside a URL is never taken for a comment
_COMMENT_OR_STRING = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)

PACKAGE_NAME_PATTERN = re.compile(r'\bPackage\s*\(\s*name\s*:\s*"([^"]+)"')
PACKAGE_CALL_PATTERN = re.compile(r'\.package\s*\(')
TARGET_CALL_PATTERN = re.compile(
    r'\.(target|executableTarget|testTarget|macro|plugin)\s*\(\s*name\s*:'
)
DEPENDENCIES_LABEL_PATTERN = re.compile(r'\bdependencies\s*:\s*\[')
PRODUCT_DEP_PATTERN = re.compile(
    r'\.product\s*\(\s*name\s*:\s*"([^"]+)"\s*,\s*package\s*:\s*"([^"]+)"'
)
TARGET_DEP_PATTERN = re.compile(r'\.target\s*\(\s*name\s*:\s*"([^"]+)"')
BY_NAME_DEP_PATTERN = re.compile(r'\.byName\s*\(\s*name\s*:\s*"([^"]+)"')
BARE_STRING_PATTERN = re.compile(r'"([^"]+)"')


def _label(args: str, label: str) -> Optional[str]:
    match = re.search(rf'\b{label}\s*:\s*"([^"]+)"', args)
    return match.group(1) if match else None


def strip_comments(text: str) -> str:
    return _COMMENT_OR_STRING.sub(lambda m: m.group(1) or "", text)


def balanced(text: str, start: int, open_char: str = "(", close_char: str = ")") -> Tuple[str, int]:
    """
    Return the text between the bracket at `start` and its partner.

    Returns:
        (inner text, index just past the closing bracket)
    """
    if text[start] != open_char:
        raise ValueError(f"Expected '{open_char}' at offset {start}")
    depth = 0
    in_string = False
    i = start
    while i < len(text):
        ch = text[i]
        if in_string:
            if ch == "\\":
                i += 1
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return text[start + 1:i], i + 1
        i += 1
    raise ValueError(f"Unbalanced '{open_char}' at offset {start}")


def _calls(text: str, pattern: re.Pattern) -> Iterator[Tuple[re.Match, str]]:
    """Yield non-nested matches of a call pattern with their argument text."""
    pos = 0
    while True:
        match = pattern.search(text, pos)
        if match is None:
            return
        open_paren = text.index("(", match.start())
        args, end = balanced(text, open_paren)
        yield match, args
        pos = end


@dataclass
class PackageReference:
    """A `.package(...)` entry of the manifest."""
    identity: str
    local_path: Optional[str] = None


@dataclass
class TargetDeclaration:
    name: str
    products: Set[str] = field(default_factory=set)
    targets: Set[str] = field(default_factory=set)
    by_name: Set[str] = field(default_factory=set)


def parse_package_reference(args: str) -> Optional[PackageReference]:
    name = _label(args, "name")
    path = _label(args, "path")
    url = _label(args, "url")
    registry_id = _label(args, "id")

    if path is not None:
        return PackageReference(identity=name or package_identity(path), local_path=path)
    if url is not None:
        return PackageReference(identity=package_identity(url))
    if registry_id is not None:
        return PackageReference(identity=registry_id.rsplit(".", 1)[-1])
    return None


def parse_target(name: str, args: str) -> TargetDeclaration:
    target = TargetDeclaration(name=name)
    label = DEPENDENCIES_LABEL_PATTERN.search(args)
    if label is None:
        return target

    deps, _ = balanced(args, label.end() - 1, "[", "]")
    for match in PRODUCT_DEP_PATTERN.finditer(deps):
        target.products.add(match.group(2))
    for match in TARGET_DEP_PATTERN.finditer(deps):
        target.targets.add(match.group(1))
    for match in BY_NAME_DEP_PATTERN.finditer(deps):
        target.by_name.add(match.group(1))

    # Bare strings are whatever is left once the labelled forms are removed
    remainder = PRODUCT_DEP_PATTERN.sub("", deps)
    remainder = TARGET_DEP_PATTERN.sub("", remainder)
    remainder = BY_NAME_DEP_PATTERN.sub("", remainder)
    remainder = re.sub(r'\b\w+\s*:\s*"[^"]*"', "", remainder)
    for match in BARE_STRING_PATTERN.finditer(remainder):
        target.by_name.add(match.group(1))
    return target


class ManifestParser(ProjectFileParser):
    """Parser for Package.swift manifests."""

    @property
    def name(self) -> str:
        return "manifest"

    def can_parse(self, file_path: Path) -> bool:
        return file_path.name == MANIFEST_FILE

    def parse(self, file_path: Path, text: str) -> ParsedFile:
        source = strip_comments(text)
        package_dir = file_path.parent

        name_match = PACKAGE_NAME_PATTERN.search(source)
        if name_match is None:
            raise ValueError("No Package(name:) declaration found")
        package_name = name_match.group(1)

        references: List[PackageReference] = []
        for _, args in _calls(source, PACKAGE_CALL_PATTERN):
            reference = parse_package_reference(args)
            if reference is None:
                self._logger.debug(f"Unrecognized package reference in {file_path}: {args.strip()}")
                continue
            references.append(reference)

        declarations = [
            parse_target(_label(args, "name") or "", args)
            for _, args in _calls(source, TARGET_CALL_PATTERN)
        ]
        declarations = [d for d in declarations if d.name]
        target_names = {d.name for d in declarations}

        sub_targets = []
        for declaration in declarations:
            packages = set(declaration.products)
            siblings = set(declaration.targets)
            for dep in declaration.by_name:
                if dep in target_names:
                    siblings.add(dep)
                else:
                    packages.add(dep)
            siblings.discard(declaration.name)
            sub_targets.append(SubTarget(
                name=declaration.name,
                package_dependencies=tuple(sorted(packages)),
                target_dependencies=tuple(sorted(siblings)),
            ))

        explicit = {package_name} | {ref.identity for ref in references}
        local_packages = {
            ref.identity: package_dir / ref.local_path for ref in references if ref.local_path
        }
        return ParsedFile(
            file_path=file_path,
            fragment=ContainerFragment(
                location=package_dir,
                name=package_name,
                declared_name=True,
                explicit_dependencies=explicit,
                sub_targets=sorted(sub_targets, key=lambda t: t.name),
                local_packages=local_packages,
            ),
            references=sorted(set(local_packages.values())),
        )
