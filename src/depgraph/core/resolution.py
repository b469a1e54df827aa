"""
Package Resolution.

Optional augmentation of the graph with real package-to-package edges,
obtained by running the package manager's own dependency-graph command
(`swift package show-dependencies --format json` by default) in each
package root.

The command is expensive, so every result goes through a ResolutionCache
keyed by canonical identity rather than by the raw path string:

    - a root is keyed by its fully resolved path (symlinks and `..` removed)
    - every sub-package in a successful result is registered under its own
      canonical path and package identity, so a root already described by an
      earlier result is a cache hit and never spawns a second process
    - failures are cached too; a root is attempted at most once per run

Failures (missing tool, non-zero exit, malformed JSON) never propagate:
they resolve to None and the builder keeps whatever edges it already has.
"""

from __future__ import annotations

import json
import logging
import subprocess
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

from ..config import DEFAULT_RESOLVE_COMMAND, DEFAULT_RESOLVE_WORKERS
from .exceptions import ResolutionError
from .identity import normalize_name
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)


@dataclass
class PackageTree:
    """
    One package in the resolution command's output tree.

    Attributes:
        identity: Package identity (stable, lowercase in SwiftPM output).
        name: Display name.
        url: Remote location, or the local path for local packages.
        path: Checkout or local directory of the package.
        dependencies: Direct dependencies, each a PackageTree.
    """

    identity: str
    name: str = ""
    url: str = ""
    path: str = ""
    dependencies: List["PackageTree"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageTree":
        """
        Parse a tree node; raises ValueError when the shape is wrong.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")

        identity = data.get("identity") or data.get("name")
        if not isinstance(identity, str) or not identity:
            raise ValueError("Package entry has no identity")

        children = data.get("dependencies", [])
        if not isinstance(children, list):
            raise ValueError(f"'dependencies' of {identity} is not a list")

        return cls(
            identity=identity,
            name=data.get("name") or identity,
            url=data.get("url") or "",
            path=data.get("path") or "",
            dependencies=[cls.from_dict(child) for child in children],
        )

    def walk(self) -> Iterator["PackageTree"]:
        """Yield this package and every package below it (pre-order)."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.dependencies))


def parse_package_tree(text: str, root: Path) -> Result[PackageTree, ResolutionError]:
    """Parse the JSON emitted by the resolution command."""
    try:
        return Ok(PackageTree.from_dict(json.loads(text)))
    except json.JSONDecodeError as e:
        return Err(ResolutionError(root, f"Malformed JSON output ({e.msg})"))
    except ValueError as e:
        return Err(ResolutionError(root, f"Unexpected output shape ({e})"))


class CommandRunner(Protocol):
    """Runs the resolution command in a working directory."""

    def run(self, cwd: Path) -> Result[str, ResolutionError]:
        ...


class SubprocessRunner:
    """
    Runs the resolution command as a blocking subprocess.

    No timeout is enforced here; callers that need one wrap the whole run.
    """

    def __init__(self, command: Sequence[str] = DEFAULT_RESOLVE_COMMAND):
        self.command = tuple(command)

    def run(self, cwd: Path) -> Result[str, ResolutionError]:
        logger.debug(f"Running: {' '.join(self.command)} (cwd={cwd})")
        try:
            result = subprocess.run(
                list(self.command),
                cwd=cwd,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            return Err(ResolutionError(cwd, f"Command not found: {self.command[0]}"))
        except OSError as e:
            return Err(ResolutionError(cwd, f"Could not run command: {e}"))

        if result.returncode != 0:
            return Err(ResolutionError(
                cwd, f"Command exited with status {result.returncode}", result.stderr.strip()
            ))
        return Ok(result.stdout)


def canonical_root_key(root: Path | str) -> str:
    return f"path:{Path(root).resolve()}"


def identity_key(identity: str) -> str:
    return f"identity:{normalize_name(identity)}"


class ResolutionCache:
    """
    Thread-safe cache of resolution results keyed by canonical identity.

    Values are futures so that concurrent requests for the same key wait on
    a single in-flight invocation instead of starting their own.
    """

    def __init__(self):
        self._entries: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def claim(self, keys: Sequence[str]) -> Tuple[Future, bool]:
        """
        Look up `keys` in order; on a miss, reserve all of them.

        Returns:
            (future, owner) where owner is True if the caller must run the
            command and complete the future.
        """
        with self._lock:
            for key in keys:
                future = self._entries.get(key)
                if future is not None:
                    for alias in keys:
                        self._entries.setdefault(alias, future)
                    return future, False

            future: Future = Future()
            for key in keys:
                self._entries[key] = future
            return future, True

    def register(self, tree: PackageTree) -> None:
        """Make every sub-package of a successful result a cache hit."""
        with self._lock:
            for package in tree.walk():
                keys = [identity_key(package.identity)]
                if package.path:
                    keys.append(canonical_root_key(package.path))
                for key in keys:
                    if key not in self._entries:
                        done: Future = Future()
                        done.set_result(package)
                        self._entries[key] = done

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries


class PackageResolver:
    """
    Resolves package roots to dependency trees through a shared cache.

    Example:
        ```python
        resolver = PackageResolver()
        tree = resolver.resolve(Path("Packages/Core"), identity="Core")
        if tree:
            for child in tree.dependencies:
                print(child.identity)
        ```
    """

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        cache: Optional[ResolutionCache] = None,
        max_workers: int = DEFAULT_RESOLVE_WORKERS,
    ):
        self.runner = runner or SubprocessRunner()
        self.cache = cache or ResolutionCache()
        self.max_workers = max_workers
        self._count_lock = threading.Lock()
        self._invocations = 0

    @property
    def invocation_count(self) -> int:
        """Number of times the resolution command was actually run."""
        return self._invocations

    def resolve(self, root: Path, identity: Optional[str] = None) -> Optional[PackageTree]:
        """
        Resolve one root, running the command only on a cache miss.

        Args:
            root: Package directory.
            identity: Package identity, when the caller already knows it.

        Returns:
            The package tree, or None if resolution produced no data.
        """
        keys = [canonical_root_key(root)]
        if identity:
            keys.append(identity_key(identity))

        future, owner = self.cache.claim(keys)
        if owner:
            self._invoke(Path(root), future)
        return future.result()

    def resolve_many(
        self,
        requests: Iterable[Tuple[Path, Optional[str]]],
    ) -> List[Optional[PackageTree]]:
        """
        Resolve several roots concurrently; results follow request order.

        Meant for roots known to be independent. Equivalent paths still share
        one invocation, but a root that an in-flight result would have
        covered is not waited for; GraphBuilder resolves one root at a time
        for that reason.
        """
        requests = list(requests)
        if not requests:
            return []
        if self.max_workers <= 1 or len(requests) == 1:
            return [self.resolve(root, identity) for root, identity in requests]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self.resolve, root, identity) for root, identity in requests]
            return [f.result() for f in futures]

    def _invoke(self, root: Path, future: Future) -> None:
        with self._count_lock:
            self._invocations += 1

        tree: Optional[PackageTree] = None
        try:
            output = self.runner.run(root)
            parsed = parse_package_tree(output.unwrap(), root) if output.is_ok() else output
            if parsed.is_ok():
                tree = parsed.unwrap()
                self.cache.register(tree)
                logger.info(f"Resolved {tree.identity} ({len(tree.dependencies)} direct deps)")
            else:
                logger.warning(f"Skipping augmentation: {parsed.unwrap_err()}")
        except Exception as e:
            logger.warning(f"Skipping augmentation for {root}: {e}")
        finally:
            future.set_result(tree)
