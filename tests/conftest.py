"""
Shared fixtures: record factories and an on-disk sample project tree.

The sample tree (`swift_tree`) looks like this:

    repo/
      Main.xcworkspace/contents.xcworkspacedata   -> App.xcodeproj, ../External/Shared
      App/App.xcodeproj/project.pbxproj            swift-log (remote), Core (local)
      App/App.xcodeproj/project.xcworkspace/xcshareddata/swiftpm/Package.resolved
      Packages/Core/Package.swift                  swift-log, ../Utilities
      Packages/Core/Package.resolved               (v1)
      Packages/Utilities/Package.swift
    External/Shared/Package.swift                  outside the scan root
"""

import json
from pathlib import Path
from typing import Iterable

import pytest

from depgraph.core.types import DependencyInfo, SubTarget

PBXPROJ = """// !$*UTF8*$!
{
	archiveVersion = 1;
	classes = {
	};
	objectVersion = 60;
	objects = {

/* Begin PBXNativeTarget section */
		A10000000000000000000001 /* App */ = {
			isa = PBXNativeTarget;
			buildPhases = (
			);
			dependencies = (
			);
			name = App;
			packageProductDependencies = (
				C10000000000000000000001 /* Logging */,
				C10000000000000000000002 /* Core */,
			);
			productName = App;
			productType = "com.apple.product-type.application";
		};
		A10000000000000000000002 /* AppTests */ = {
			isa = PBXNativeTarget;
			buildPhases = (
			);
			dependencies = (
				B10000000000000000000001 /* PBXTargetDependency */,
			);
			name = AppTests;
			productName = AppTests;
		};
/* End PBXNativeTarget section */

/* Begin PBXTargetDependency section */
		B10000000000000000000001 /* PBXTargetDependency */ = {
			isa = PBXTargetDependency;
			target = A10000000000000000000001 /* App */;
		};
/* End PBXTargetDependency section */

/* Begin XCLocalSwiftPackageReference section */
		D10000000000000000000002 /* XCLocalSwiftPackageReference "../Packages/Core" */ = {
			isa = XCLocalSwiftPackageReference;
			relativePath = ../Packages/Core;
		};
/* End XCLocalSwiftPackageReference section */

/* Begin XCRemoteSwiftPackageReference section */
		D10000000000000000000001 /* XCRemoteSwiftPackageReference "swift-log" */ = {
			isa = XCRemoteSwiftPackageReference;
			repositoryURL = "https://github.com/apple/swift-log.git";
			requirement = {
				kind = upToNextMajorVersion;
				minimumVersion = 1.5.0;
			};
		};
/* End XCRemoteSwiftPackageReference section */

/* Begin XCSwiftPackageProductDependency section */
		C10000000000000000000001 /* Logging */ = {
			isa = XCSwiftPackageProductDependency;
			package = D10000000000000000000001 /* XCRemoteSwiftPackageReference "swift-log" */;
			productName = Logging;
		};
		C10000000000000000000002 /* Core */ = {
			isa = XCSwiftPackageProductDependency;
			package = D10000000000000000000002 /* XCLocalSwiftPackageReference "../Packages/Core" */;
			productName = Core;
		};
/* End XCSwiftPackageProductDependency section */
	};
	rootObject = E10000000000000000000001 /* Project object */;
}
"""

CORE_MANIFEST = """// swift-tools-version:5.9
import PackageDescription

let package = Package(
    name: "Core",
    platforms: [.iOS(.v16)],
    products: [
        .library(name: "Core", targets: ["Core"]),
    ],
    dependencies: [
        // Logging backend, see https://github.com/apple/swift-log
        .package(url: "https://github.com/apple/swift-log.git", from: "1.5.0"),
        .package(path: "../Utilities"),
    ],
    targets: [
        .target(
            name: "Core",
            dependencies: [
                .product(name: "Logging", package: "swift-log"),
                .product(name: "Utilities", package: "Utilities"),
                "CoreModels",
            ]
        ),
        .target(name: "CoreModels"),
        .testTarget(name: "CoreTests", dependencies: ["Core"]),
    ]
)
"""

UTILITIES_MANIFEST = """// swift-tools-version:5.9
import PackageDescription

let package = Package(
    name: "Utilities",
    targets: [.target(name: "Utilities")]
)
"""

SHARED_MANIFEST = """// swift-tools-version:5.9
import PackageDescription

let package = Package(name: "Shared", targets: [.target(name: "Shared")])
"""

WORKSPACE = """<?xml version="1.0" encoding="UTF-8"?>
<Workspace
   version = "1.0">
   <Group
      location = "group:App"
      name = "App">
      <FileRef
         location = "group:App.xcodeproj">
      </FileRef>
   </Group>
   <FileRef
      location = "group:../External/Shared">
   </FileRef>
</Workspace>
"""

RESOLVED_V1 = {
    "object": {
        "pins": [
            {
                "package": "swift-log",
                "repositoryURL": "https://github.com/apple/swift-log.git",
                "state": {"branch": None, "revision": "abc123", "version": "1.5.3"},
            }
        ]
    },
    "version": 1,
}

RESOLVED_V2 = {
    "pins": [
        {
            "identity": "swift-atomics",
            "kind": "remoteSourceControl",
            "location": "https://github.com/apple/swift-atomics.git",
            "state": {"revision": "def456", "version": "1.2.0"},
        },
        {
            "identity": "swift-log",
            "kind": "remoteSourceControl",
            "location": "https://github.com/apple/swift-log.git",
            "state": {"revision": "abc123", "version": "1.5.3"},
        },
    ],
    "version": 2,
}


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def build_swift_tree(base: Path) -> Path:
    """Write the sample tree under `base`; returns the scan root."""
    root = base / "repo"
    bundle = root / "App" / "App.xcodeproj"
    write(bundle / "project.pbxproj", PBXPROJ)
    write(
        bundle / "project.xcworkspace" / "xcshareddata" / "swiftpm" / "Package.resolved",
        json.dumps(RESOLVED_V2, indent=2),
    )
    write(root / "Main.xcworkspace" / "contents.xcworkspacedata", WORKSPACE)
    write(root / "Packages" / "Core" / "Package.swift", CORE_MANIFEST)
    write(root / "Packages" / "Core" / "Package.resolved", json.dumps(RESOLVED_V1, indent=2))
    write(root / "Packages" / "Utilities" / "Package.swift", UTILITIES_MANIFEST)
    write(base / "External" / "Shared" / "Package.swift", SHARED_MANIFEST)
    return root


@pytest.fixture
def swift_tree(tmp_path) -> Path:
    return build_swift_tree(tmp_path)


@pytest.fixture
def make_record(tmp_path):
    """Factory for DependencyInfo records located under tmp_path."""

    def _make(
        rel: str,
        name: str,
        dependencies: Iterable[str] = (),
        explicit: Iterable[str] = (),
        sub_targets: Iterable[SubTarget] = (),
    ) -> DependencyInfo:
        return DependencyInfo(
            path=tmp_path / rel,
            name=name,
            dependencies=list(dependencies),
            explicit_dependencies=frozenset(explicit),
            sub_targets=list(sub_targets),
        )

    return _make
