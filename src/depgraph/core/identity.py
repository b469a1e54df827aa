"""
Node identity.

Every node id is derived from its kind family, its normalized name and,
for containers, its location. In stable mode that location is relative to
the scan root, so the same tree checked out on two machines yields the same
ids; legacy mode keeps the absolute path and is only useful on one machine.

Id families:
    container:<name>@<location>
    module:<normalized name>            (internal and external share this)
    target:<name>@<location>/<target>
"""

import os
from pathlib import Path, PurePosixPath

from ..config import SCHEMA_VERSION_LEGACY, SCHEMA_VERSION_STABLE

CONTAINER_PREFIX = "container:"
MODULE_PREFIX = "module:"
TARGET_PREFIX = "target:"


def normalize_name(name: str) -> str:
    """Case-insensitive identity for module-like names."""
    return name.strip().lower()


class NodeIdFactory:
    """
    Derives node ids for one scan root.

    Attributes:
        scan_root: Directory the records were discovered under.
        stable: Use root-relative locations instead of absolute paths.
    """

    def __init__(self, scan_root: Path, stable: bool = True):
        self.scan_root = Path(os.path.abspath(scan_root))
        self.stable = stable

    @property
    def schema_version(self) -> int:
        return SCHEMA_VERSION_STABLE if self.stable else SCHEMA_VERSION_LEGACY

    def location(self, path: Path) -> str:
        """
        Location string used to disambiguate containers.

        Paths outside the scan root (e.g. projects referenced by a workspace)
        are expressed with `..` segments so they stay machine independent.
        """
        absolute = Path(os.path.abspath(path))
        if not self.stable:
            return absolute.as_posix()
        relative = os.path.relpath(absolute, self.scan_root)
        return PurePosixPath(*Path(relative).parts).as_posix() or "."

    def container_id(self, name: str, path: Path) -> str:
        return f"{CONTAINER_PREFIX}{normalize_name(name)}@{self.location(path)}"

    def module_id(self, name: str) -> str:
        return f"{MODULE_PREFIX}{normalize_name(name)}"

    def sub_target_id(self, container_id: str, target_name: str) -> str:
        body = container_id.split(":", 1)[1]
        return f"{TARGET_PREFIX}{body}/{target_name}"
