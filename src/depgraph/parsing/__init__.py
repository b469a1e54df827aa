"""Project file parsers and the directory scanner that drives them."""

from .base import ContainerFragment, ParsedFile, ParserRegistry, ProjectFileParser
from .scanner import ProjectScanner, ScanResult, create_default_registry

__all__ = [
    "ContainerFragment",
    "ParsedFile",
    "ParserRegistry",
    "ProjectFileParser",
    "ProjectScanner",
    "ScanResult",
    "create_default_registry",
]
