"""Removal of files and directories owned by unselected items.

A pattern ending in ``/**/*`` or ``/**/`` names a directory to delete
wholesale; the suffix is stripped to recover the literal path.  Directories
are always removable.  Files are removed only when the pattern did not
claim a directory, so a same-named file is never deleted by a directory
pattern.  Removing a path that does not exist is a no-op.
"""

from __future__ import annotations

import asyncio
import posixpath
import shutil
import stat
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from template_forge.errors import FileSystemError
from template_forge.utils import print_detail, print_warning

DIRECTORY_SUFFIXES: tuple[str, ...] = ("/**/*", "/**/")


class RemovalStatus(str, Enum):
    """What ``remove_path`` did with a pattern."""

    REMOVED_DIRECTORY = "removed-directory"
    REMOVED_FILE = "removed-file"
    MISSING = "missing"
    TYPE_MISMATCH = "type-mismatch"
    OUTSIDE_PROJECT = "outside-project"


class RemovalResult(BaseModel):
    """Outcome of a single removal."""

    pattern: str
    path: str = Field(..., description="Normalised path relative to the project root")
    status: RemovalStatus

    @property
    def removed(self) -> bool:
        return self.status in (RemovalStatus.REMOVED_DIRECTORY, RemovalStatus.REMOVED_FILE)


def normalize_pattern(pattern: str) -> tuple[str, bool]:
    """Strip a directory suffix from *pattern*.

    Returns:
        ``(relative_path, is_directory_pattern)``.

    Examples::

        normalize_pattern("src/ui/options/**/*") -> ("src/ui/options", True)
        normalize_pattern("src/locales/**/")     -> ("src/locales", True)
        normalize_pattern("src/env.d.ts")        -> ("src/env.d.ts", False)
    """
    normalized = pattern.replace("\\", "/")
    is_directory = False
    for suffix in DIRECTORY_SUFFIXES:
        if normalized.endswith(suffix):
            normalized = normalized[: -len(suffix)]
            is_directory = True
            break
    normalized = normalized.rstrip("/").lstrip("/")
    return normalized, is_directory


def _resolve_inside(project_dir: Path, relative: str) -> Path | None:
    """Join *relative* onto *project_dir*, refusing the root itself and paths that escape it."""
    cleaned = posixpath.normpath(relative) if relative else "."
    if cleaned == "." or cleaned == ".." or cleaned.startswith("../"):
        return None
    return project_dir / cleaned


def _remove_sync(full_path: Path, is_directory_pattern: bool) -> RemovalStatus:
    if not full_path.exists():
        return RemovalStatus.MISSING

    mode = full_path.lstat().st_mode
    if stat.S_ISDIR(mode):
        shutil.rmtree(full_path)
        return RemovalStatus.REMOVED_DIRECTORY
    if stat.S_ISREG(mode) and not is_directory_pattern:
        full_path.unlink()
        return RemovalStatus.REMOVED_FILE
    return RemovalStatus.TYPE_MISMATCH


async def remove_path(project_dir: str | Path, pattern: str) -> RemovalResult:
    """Remove the file or directory named by *pattern* under *project_dir*.

    Raises:
        FileSystemError: The path exists but could not be deleted.
    """
    root = Path(project_dir)
    relative, is_directory_pattern = normalize_pattern(pattern)
    full_path = _resolve_inside(root, relative)

    if full_path is None:
        print_warning(f"  Pattern resolves outside the project, skipping: {pattern}")
        return RemovalResult(pattern=pattern, path=relative, status=RemovalStatus.OUTSIDE_PROJECT)

    try:
        status = await asyncio.to_thread(_remove_sync, full_path, is_directory_pattern)
    except OSError as exc:
        raise FileSystemError(full_path, "remove", exc.strerror or str(exc)) from exc

    if status is RemovalStatus.REMOVED_DIRECTORY:
        print_detail(f"    Removed directory: {relative}")
    elif status is RemovalStatus.REMOVED_FILE:
        print_detail(f"    Removed file: {relative}")
    elif status is RemovalStatus.MISSING:
        print_detail(f"    Not found, skipping removal: {pattern}")
    else:
        print_warning(
            f"  Item exists but type mismatch or ambiguous pattern, skipping removal: "
            f"{relative} (pattern: {pattern})"
        )
    return RemovalResult(pattern=pattern, path=relative, status=status)
