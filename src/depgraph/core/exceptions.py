"""
Exception hierarchy for depgraph.

Only a missing scan root is fatal. Parse and resolution failures are
recorded and skipped by the code that catches them.
"""

from pathlib import Path


class DepGraphError(Exception):
    """Base class for all depgraph errors."""


class ScanRootNotFoundError(DepGraphError):
    """Raised when the directory to scan does not exist."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"Directory does not exist: {self.path}")


class ParseError(DepGraphError):
    """
    Raised when a project file cannot be parsed.

    Attributes:
        file_path: The offending file.
        message: Human-readable reason.
    """

    def __init__(self, file_path: Path | str, message: str):
        self.file_path = Path(file_path)
        self.message = message
        super().__init__(f"{self.file_path}: {message}")


class ResolutionError(DepGraphError):
    """
    A package-resolution command produced no usable data.

    Attributes:
        root: Working directory the command ran in.
        message: Human-readable reason.
        stderr: Raw stderr output, if any.
    """

    def __init__(self, root: Path | str, message: str, stderr: str = ""):
        self.root = Path(root)
        self.message = message
        self.stderr = stderr
        detail = f"{message}: {stderr}" if stderr else message
        super().__init__(f"{self.root}: {detail}")
