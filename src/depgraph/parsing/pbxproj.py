"""
Xcode project.pbxproj Parser.

The file is an old-style (OpenStep) property list: nested `{ key = value; }`
dictionaries, `( a, b, )` arrays, quoted or bare strings, and `/* */`
comments. It is read with a small recursive-descent reader, then the
objects table is queried for:

- XCRemoteSwiftPackageReference: `repositoryURL` -> package identity
- XCLocalSwiftPackageReference: `relativePath` -> last path component
- PBXNativeTarget: its `packageProductDependencies` and the sibling targets
  named by its PBXTargetDependency entries

The container is the `.xcodeproj` bundle, named after the project.
"""

import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from ..config import PBXPROJ_FILE, PROJECT_BUNDLE_SUFFIX
from ..core.types import SubTarget
from .base import ContainerFragment, ParsedFile, ProjectFileParser, package_identity

_TOKEN_PATTERN = re.compile(
    r'''
      (?P<space>\s+)
    | (?P<comment>/\*.*?\*/|//[^\n]*)
    | (?P<quoted>"(?:\\.|[^"\\])*")
    | (?P<punct>[{}()=;,])
    | (?P<bare>[^\s{}()=;,"]+)
    ''',
    re.VERBOSE | re.DOTALL,
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\"}
_ESCAPE_PATTERN = re.compile(r"\\(.)", re.DOTALL)

Token = Tuple[str, str]


def tokenize(text: str) -> Iterator[Token]:
    pos = 0
    while pos < len(text):
        match = _TOKEN_PATTERN.match(text, pos)
        if match is None:
            raise ValueError(f"Unexpected character {text[pos]!r} at offset {pos}")
        pos = match.end()
        kind = match.lastgroup
        if kind in ("space", "comment"):
            continue
        value = match.group()
        if kind == "quoted":
            value = _ESCAPE_PATTERN.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), value[1:-1])
            kind = "string"
        elif kind == "bare":
            kind = "string"
        yield kind, value


class PlistReader:
    """Reads one OpenStep property-list value from text."""

    def __init__(self, text: str):
        self.tokens: List[Token] = list(tokenize(text))
        self.pos = 0

    def read(self) -> Any:
        value = self._value()
        if self.pos != len(self.tokens):
            raise ValueError(f"Trailing content after value: {self.tokens[self.pos][1]!r}")
        return value

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> Token:
        token = self._peek()
        if token is None:
            raise ValueError("Unexpected end of file")
        self.pos += 1
        return token

    def _expect(self, punct: str) -> None:
        token = self._next()
        if token != ("punct", punct):
            raise ValueError(f"Expected '{punct}', found {token[1]!r}")

    def _value(self) -> Any:
        kind, value = self._next()
        if kind == "string":
            return value
        if value == "{":
            return self._dict()
        if value == "(":
            return self._array()
        raise ValueError(f"Unexpected {value!r}")

    def _dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        while self._peek() != ("punct", "}"):
            key = self._value()
            if not isinstance(key, str):
                raise ValueError("Dictionary key is not a string")
            self._expect("=")
            result[key] = self._value()
            self._expect(";")
        self.pos += 1
        return result

    def _array(self) -> List[Any]:
        items: List[Any] = []
        while self._peek() != ("punct", ")"):
            items.append(self._value())
            if self._peek() == ("punct", ","):
                self.pos += 1
            elif self._peek() != ("punct", ")"):
                raise ValueError("Expected ',' or ')' in array")
        self.pos += 1
        return items


def read_objects(text: str) -> Dict[str, Dict[str, Any]]:
    root = PlistReader(text).read()
    if not isinstance(root, dict) or not isinstance(root.get("objects"), dict):
        raise ValueError("No 'objects' table found")
    return {
        key: obj for key, obj in root["objects"].items() if isinstance(obj, dict)
    }


def _ids(value: Any) -> List[str]:
    return [v for v in value if isinstance(v, str)] if isinstance(value, list) else []


class PbxprojParser(ProjectFileParser):
    """Parser for `*.xcodeproj/project.pbxproj`."""

    @property
    def name(self) -> str:
        return "pbxproj"

    def can_parse(self, file_path: Path) -> bool:
        return file_path.name == PBXPROJ_FILE and file_path.parent.suffix == PROJECT_BUNDLE_SUFFIX

    def parse(self, file_path: Path, text: str) -> ParsedFile:
        objects = read_objects(text)
        bundle = file_path.parent
        project_dir = bundle.parent

        package_refs: Dict[str, str] = {}
        local_packages: Dict[str, Path] = {}
        for key, obj in objects.items():
            isa = obj.get("isa")
            if isa == "XCRemoteSwiftPackageReference" and obj.get("repositoryURL"):
                package_refs[key] = package_identity(obj["repositoryURL"])
            elif isa == "XCLocalSwiftPackageReference":
                relative = obj.get("relativePath") or obj.get("path")
                if relative:
                    package_refs[key] = package_identity(relative)
                    local_packages[package_refs[key]] = project_dir / relative

        products: Dict[str, str] = {}
        for key, obj in objects.items():
            if obj.get("isa") != "XCSwiftPackageProductDependency":
                continue
            identity = package_refs.get(obj.get("package", ""))
            products[key] = identity or obj.get("productName", "")

        targets = {
            key: obj for key, obj in objects.items()
            if obj.get("isa") == "PBXNativeTarget" and obj.get("name")
        }

        sub_targets = []
        for obj in targets.values():
            packages: Set[str] = {
                products[ref] for ref in _ids(obj.get("packageProductDependencies")) if products.get(ref)
            }
            siblings: Set[str] = set()
            for dep_id in _ids(obj.get("dependencies")):
                dependency = objects.get(dep_id, {})
                if dependency.get("target") in targets:
                    siblings.add(targets[dependency["target"]]["name"])
                elif products.get(dependency.get("productRef", "")):
                    packages.add(products[dependency["productRef"]])
            siblings.discard(obj["name"])
            sub_targets.append(SubTarget(
                name=obj["name"],
                package_dependencies=tuple(sorted(packages)),
                target_dependencies=tuple(sorted(siblings)),
            ))

        explicit = set(package_refs.values()) | {
            pkg for target in sub_targets for pkg in target.package_dependencies
        }
        return ParsedFile(
            file_path=file_path,
            fragment=ContainerFragment(
                location=bundle,
                name=bundle.stem,
                declared_name=True,
                explicit_dependencies=explicit,
                sub_targets=sorted(sub_targets, key=lambda t: t.name),
                local_packages=local_packages,
            ),
            references=sorted(set(local_packages.values())),
        )
