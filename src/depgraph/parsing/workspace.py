"""
Xcode Workspace Parser.

`contents.xcworkspacedata` is a small XML index:

    <Workspace version = "1.0">
       <Group location = "group:Apps" name = "Apps">
          <FileRef location = "group:App/App.xcodeproj"/>
       </Group>
       <FileRef location = "group:../Shared/Shared.xcodeproj"/>
       <FileRef location = "group:Packages/Core"/>
    </Workspace>

Only references are extracted; the workspace itself becomes a container
only when a lockfile sits in its bundle.
"""

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional

from ..config import WORKSPACE_BUNDLE_SUFFIX, WORKSPACE_INDEX_FILE
from .base import ParsedFile, ProjectFileParser


def resolve_location(location: str, base: Path, workspace_dir: Path) -> Optional[Path]:
    """
    Turn a `kind:path` location into a filesystem path.

    `group:` is relative to the enclosing group, `container:` to the
    workspace's directory and `absolute:` is absolute. `self:` and unknown
    kinds yield None.
    """
    kind, _, path = location.partition(":")
    if not path:
        return None
    if kind == "group":
        return base / path
    if kind == "container":
        return workspace_dir / path
    if kind == "absolute":
        return Path(path)
    return None


class WorkspaceParser(ProjectFileParser):
    """Parser for `*.xcworkspace/contents.xcworkspacedata`."""

    @property
    def name(self) -> str:
        return "workspace"

    def can_parse(self, file_path: Path) -> bool:
        return (
            file_path.name == WORKSPACE_INDEX_FILE
            and file_path.parent.suffix == WORKSPACE_BUNDLE_SUFFIX
        )

    def parse(self, file_path: Path, text: str) -> ParsedFile:
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            raise ValueError(f"Malformed XML ({e})") from e
        if root.tag != "Workspace":
            raise ValueError(f"Unexpected root element <{root.tag}>")

        workspace_dir = file_path.parent.parent
        references: List[Path] = []
        self._collect(root, workspace_dir, workspace_dir, references)
        return ParsedFile(file_path=file_path, references=references)

    def _collect(self, element: ET.Element, base: Path, workspace_dir: Path, out: List[Path]) -> None:
        for child in element:
            location = child.get("location", "")
            if child.tag == "FileRef":
                path = resolve_location(location, base, workspace_dir)
                if path is not None:
                    out.append(path)
            elif child.tag == "Group":
                group_base = resolve_location(location, base, workspace_dir) if location else base
                self._collect(child, group_base or base, workspace_dir, out)
