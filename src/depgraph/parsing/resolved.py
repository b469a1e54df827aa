"""
Package.resolved Parser.

Handles the three lockfile layouts SwiftPM and Xcode have written:
- version 1: `{"object": {"pins": [{"package": ..., "repositoryURL": ...}]}}`
- version 2/3: `{"pins": [{"identity": ..., "location": ...}]}`

A lockfile lists what was resolved, not what was asked for, so every pin
is a plain (non-explicit) dependency of its container.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Tuple

from ..config import PROJECT_BUNDLE_SUFFIX, RESOLVED_FILE, WORKSPACE_BUNDLE_SUFFIX
from .base import ContainerFragment, ParsedFile, ProjectFileParser, package_identity

# `App.xcodeproj/project.xcworkspace/xcshareddata/swiftpm/Package.resolved`
_BUNDLE_SEARCH_DEPTH = 4


def container_for_lockfile(file_path: Path) -> Tuple[Path, str, bool]:
    """
    Find the container a lockfile belongs to.

    Lockfiles inside an Xcode bundle belong to the outermost bundle;
    anywhere else they belong to their directory.

    Returns:
        (location, name, declared_name)
    """
    bundle = None
    for parent in file_path.parents[:_BUNDLE_SEARCH_DEPTH]:
        if parent.suffix in (PROJECT_BUNDLE_SUFFIX, WORKSPACE_BUNDLE_SUFFIX):
            bundle = parent
    if bundle is not None:
        return bundle, bundle.stem, True
    return file_path.parent, file_path.parent.name, False


def pin_names(data: Any) -> List[str]:
    """Extract pinned package names from decoded lockfile JSON."""
    if not isinstance(data, dict):
        raise ValueError("Top-level value is not an object")

    pins = data.get("pins")
    if pins is None:
        container = data.get("object")
        pins = container.get("pins") if isinstance(container, dict) else None
    if not isinstance(pins, list):
        raise ValueError("No 'pins' list found")

    names = []
    for pin in pins:
        if not isinstance(pin, dict):
            raise ValueError(f"Pin is not an object: {pin!r}")
        names.append(_pin_name(pin))
    return [n for n in names if n]


def _pin_name(pin: Dict[str, Any]) -> str:
    name = pin.get("identity") or pin.get("package")
    if name:
        return str(name)
    location = pin.get("location") or pin.get("repositoryURL")
    return package_identity(location) if location else ""


class ResolvedParser(ProjectFileParser):
    """Parser for Package.resolved lockfiles."""

    @property
    def name(self) -> str:
        return "resolved"

    def can_parse(self, file_path: Path) -> bool:
        return file_path.name == RESOLVED_FILE

    def parse(self, file_path: Path, text: str) -> ParsedFile:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed JSON ({e.msg} at line {e.lineno})") from e

        names = pin_names(data)
        version = data.get("version")
        if version not in (1, 2, 3):
            self._logger.debug(f"Unknown lockfile version {version!r} in {file_path}")

        location, container_name, declared = container_for_lockfile(file_path)
        return ParsedFile(
            file_path=file_path,
            fragment=ContainerFragment(
                location=location,
                name=container_name,
                declared_name=declared,
                dependencies=names,
            ),
        )
