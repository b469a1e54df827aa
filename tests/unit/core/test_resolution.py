"""
Unit tests for package resolution and its canonical-identity cache.
"""

import json
import os
import subprocess
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from depgraph.core.exceptions import ResolutionError
from depgraph.core.resolution import (
    PackageResolver,
    PackageTree,
    ResolutionCache,
    SubprocessRunner,
    canonical_root_key,
    identity_key,
    parse_package_tree,
)
from depgraph.core.result import Err, Ok


class CountingRunner:
    """Thread-safe stub that records every invocation."""

    def __init__(self, output=None, delay: threading.Event | None = None):
        self.output = output
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def run(self, cwd):
        with self._lock:
            self.calls.append(Path(cwd))
        if self.delay is not None:
            self.delay.wait(timeout=5)
        if self.output is None:
            return Err(ResolutionError(cwd, "Command exited with status 1"))
        return Ok(json.dumps(self.output(cwd) if callable(self.output) else self.output))


def leaf(identity, path=""):
    return {"identity": identity, "name": identity, "path": str(path), "dependencies": []}


class TestPackageTree:

    def test_from_dict(self):
        tree = PackageTree.from_dict({
            "identity": "core",
            "name": "Core",
            "dependencies": [leaf("swift-log")],
        })
        assert tree.identity == "core"
        assert [p.identity for p in tree.walk()] == ["core", "swift-log"]

    def test_missing_identity_falls_back_to_name(self):
        assert PackageTree.from_dict({"name": "Core"}).identity == "Core"

    @pytest.mark.parametrize("data", [
        [],
        {"dependencies": []},
        {"identity": "core", "dependencies": "swift-log"},
        {"identity": "core", "dependencies": [{"dependencies": []}]},
    ])
    def test_malformed_shapes(self, data):
        with pytest.raises(ValueError):
            PackageTree.from_dict(data)

    def test_parse_package_tree_errors(self, tmp_path):
        assert parse_package_tree("{", tmp_path).is_err()
        assert parse_package_tree("[]", tmp_path).is_err()
        assert parse_package_tree(json.dumps(leaf("core")), tmp_path).unwrap().identity == "core"


class TestSubprocessRunner:

    def test_success(self, tmp_path):
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout='{"identity": "x"}', stderr="")
        with patch("depgraph.core.resolution.subprocess.run", return_value=completed) as mock_run:
            result = SubprocessRunner(["swift", "package"]).run(tmp_path)

        assert result.unwrap() == '{"identity": "x"}'
        assert mock_run.call_args.kwargs["cwd"] == tmp_path

    def test_non_zero_exit(self, tmp_path):
        completed = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="error: no manifest\n")
        with patch("depgraph.core.resolution.subprocess.run", return_value=completed):
            result = SubprocessRunner().run(tmp_path)

        assert result.is_err()
        assert result.unwrap_err().stderr == "error: no manifest"

    def test_missing_tool(self, tmp_path):
        with patch("depgraph.core.resolution.subprocess.run", side_effect=FileNotFoundError()):
            result = SubprocessRunner(["no-such-tool"]).run(tmp_path)

        assert result.is_err()
        assert "no-such-tool" in result.unwrap_err().message


class TestResolutionCache:

    def test_claim_miss_then_hit(self):
        cache = ResolutionCache()
        future, owner = cache.claim(["path:/a"])
        assert owner is True

        again, owner = cache.claim(["path:/a"])
        assert owner is False
        assert again is future

    def test_hit_aliases_all_keys(self):
        cache = ResolutionCache()
        future, _ = cache.claim(["identity:core"])
        hit, owner = cache.claim(["path:/x/core", "identity:core"])

        assert owner is False
        assert hit is future
        assert "path:/x/core" in cache

    def test_register_sub_packages(self, tmp_path):
        cache = ResolutionCache()
        tree = PackageTree.from_dict({
            "identity": "core",
            "path": str(tmp_path / "core"),
            "dependencies": [leaf("utilities", tmp_path / "utilities")],
        })
        cache.register(tree)

        assert len(cache) == 4
        assert identity_key("Utilities") in cache
        assert canonical_root_key(tmp_path / "utilities") in cache
        future, owner = cache.claim([canonical_root_key(tmp_path / "utilities")])
        assert owner is False
        assert future.result().identity == "utilities"


class TestPackageResolver:

    @pytest.fixture
    def pkg(self, tmp_path):
        (tmp_path / "pkg").mkdir()
        (tmp_path / "app").mkdir()
        return tmp_path / "pkg"

    def test_equivalent_paths_resolve_once(self, tmp_path, pkg):
        runner = CountingRunner(leaf("pkg"))
        resolver = PackageResolver(runner=runner)

        first = resolver.resolve(pkg)
        second = resolver.resolve(tmp_path / "app" / ".." / "pkg")

        assert resolver.invocation_count == 1
        assert first is second

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlinked_root_resolves_once(self, tmp_path, pkg):
        link = tmp_path / "link"
        link.symlink_to(pkg, target_is_directory=True)
        resolver = PackageResolver(runner=CountingRunner(leaf("pkg")))

        resolver.resolve(pkg)
        resolver.resolve(link)

        assert resolver.invocation_count == 1

    def test_identity_hit_skips_invocation(self, tmp_path, pkg):
        resolver = PackageResolver(runner=CountingRunner(leaf("pkg")))
        resolver.resolve(pkg, identity="pkg")
        resolver.resolve(tmp_path / "elsewhere", identity="PKG")
        assert resolver.invocation_count == 1

    def test_sub_package_of_earlier_result_is_a_hit(self, tmp_path, pkg):
        utilities = tmp_path / "utilities"
        utilities.mkdir()
        output = {
            "identity": "pkg",
            "path": str(pkg),
            "dependencies": [leaf("utilities", utilities)],
        }
        resolver = PackageResolver(runner=CountingRunner(output))

        resolver.resolve(pkg)
        tree = resolver.resolve(utilities, identity="utilities")

        assert resolver.invocation_count == 1
        assert tree.identity == "utilities"

    def test_failures_are_cached(self, pkg):
        runner = CountingRunner(None)
        resolver = PackageResolver(runner=runner)

        assert resolver.resolve(pkg) is None
        assert resolver.resolve(pkg) is None
        assert resolver.invocation_count == 1

    def test_runner_exception_resolves_to_none(self, pkg):
        runner = MagicMock()
        runner.run.side_effect = RuntimeError("boom")
        resolver = PackageResolver(runner=runner)

        assert resolver.resolve(pkg) is None
        assert resolver.resolve(pkg) is None
        assert runner.run.call_count == 1

    def test_concurrent_requests_share_one_invocation(self, tmp_path, pkg):
        release = threading.Event()
        runner = CountingRunner(leaf("pkg"), delay=release)
        resolver = PackageResolver(runner=runner, max_workers=4)

        timer = threading.Timer(0.2, release.set)
        timer.start()
        results = resolver.resolve_many([(pkg, None)] * 4 + [(tmp_path / "app" / ".." / "pkg", "pkg")])
        timer.cancel()

        assert resolver.invocation_count == 1
        assert len(runner.calls) == 1
        assert all(r is results[0] for r in results)

    def test_resolve_many_keeps_request_order(self, tmp_path):
        roots = []
        for name in ("a", "b", "c"):
            (tmp_path / name).mkdir()
            roots.append(tmp_path / name)
        runner = CountingRunner(lambda cwd: leaf(Path(cwd).name))
        resolver = PackageResolver(runner=runner, max_workers=3)

        results = resolver.resolve_many([(root, None) for root in reversed(roots)])

        assert [r.identity for r in results] == ["c", "b", "a"]
        assert resolver.invocation_count == 3

    def test_resolve_many_empty(self):
        assert PackageResolver(runner=CountingRunner(None)).resolve_many([]) == []
