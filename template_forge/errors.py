"""Exception hierarchy for template-forge.

Only configuration loading failures (and clone failures in the ``init``
flow) are fatal.  Every other category is caught by the orchestrator at
the granularity of a single item, file, or manifest and downgraded to a
recorded warning.
"""

from __future__ import annotations

from pathlib import Path


class ForgeError(Exception):
    """Base class for every error raised by template-forge."""


# ---------------------------------------------------------------------------
# Fatal
# ---------------------------------------------------------------------------


class ConfigNotFound(ForgeError):
    """Raised when ``template.config.json`` is missing from a template."""

    def __init__(self, directory: str | Path, path: str | Path) -> None:
        self.directory = Path(directory)
        self.path = Path(path)
        super().__init__(
            f"Configuration file '{self.path.name}' not found in the template "
            f"at {self.directory}. Please ensure the template includes this file."
        )


class ConfigParseError(ForgeError):
    """Raised when the configuration file exists but cannot be understood."""

    def __init__(self, path: str | Path, message: str, cause: Exception | None = None) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Invalid template configuration {self.path}: {message}")


class CloneError(ForgeError):
    """Raised when the template repository cannot be cloned."""

    def __init__(self, repo_url: str, stderr: str = "") -> None:
        self.repo_url = repo_url
        self.stderr = stderr
        detail = stderr.strip() or "git clone failed"
        super().__init__(f"Clone of {repo_url} failed: {detail}")


# ---------------------------------------------------------------------------
# Non-fatal (downgraded to warnings by the orchestrator)
# ---------------------------------------------------------------------------


class FileSystemError(ForgeError):
    """A removal or write on the project tree failed."""

    def __init__(self, path: str | Path, operation: str, message: str) -> None:
        self.path = Path(path)
        self.operation = operation
        super().__init__(f"{operation} failed for {self.path}: {message}")


class ManifestPatchError(ForgeError):
    """A manifest file could not be parsed, patched, or written."""

    def __init__(self, path: str | Path, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"Cannot patch manifest {self.path.name}: {message}")


class DependencyUpdateError(ForgeError):
    """``package.json`` could not be reconciled."""

    def __init__(self, path: str | Path, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"Error updating dependencies in {self.path.name}: {message}")


class CodePatternError(ForgeError):
    """A code pattern could not be searched for or applied."""

    def __init__(self, pattern: str, message: str, path: str | Path | None = None) -> None:
        self.pattern = pattern
        self.path = Path(path) if path is not None else None
        where = f" in {self.path}" if self.path is not None else ""
        super().__init__(f"Code pattern '{pattern}'{where}: {message}")
