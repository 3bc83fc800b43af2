"""Unit tests for the removal engine (template_forge.engine.removal).

Tests cover:
- normalize_pattern (directory suffixes, separators, slashes)
- Removing directories and files
- Directory patterns never delete a same-named file
- Missing paths are a no-op and removal is idempotent
- Paths escaping the project are refused
- OS errors surface as FileSystemError
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from template_forge.engine.removal import (
    RemovalStatus,
    normalize_pattern,
    remove_path,
)
from template_forge.errors import FileSystemError


# ---------------------------------------------------------------------------
# normalize_pattern
# ---------------------------------------------------------------------------


class TestNormalizePattern:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "pattern, expected",
        [
            ("src/ui/options/**/*", ("src/ui/options", True)),
            ("src/locales/**/", ("src/locales", True)),
            ("src/env.d.ts", ("src/env.d.ts", False)),
            ("src/components/", ("src/components", False)),
            ("/src/stores/**/*", ("src/stores", True)),
            ("src\\ui\\popup\\**\\*", ("src/ui/popup", True)),
        ],
    )
    def test_normalize(self, pattern: str, expected: tuple[str, bool]):
        assert normalize_pattern(pattern) == expected


# ---------------------------------------------------------------------------
# remove_path
# ---------------------------------------------------------------------------


class TestRemovePath:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_removes_directory(self, template_dir: Path):
        result = await remove_path(template_dir, "src/ui/options-page/**/*")
        assert result.status is RemovalStatus.REMOVED_DIRECTORY
        assert result.removed is True
        assert result.path == "src/ui/options-page"
        assert not (template_dir / "src/ui/options-page").exists()
        assert (template_dir / "src/ui/action-popup").is_dir()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_removes_directory_named_without_suffix(self, template_dir: Path):
        result = await remove_path(template_dir, "src/locales")
        assert result.status is RemovalStatus.REMOVED_DIRECTORY
        assert not (template_dir / "src/locales").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_removes_file(self, template_dir: Path):
        result = await remove_path(template_dir, "tailwind.config.js")
        assert result.status is RemovalStatus.REMOVED_FILE
        assert not (template_dir / "tailwind.config.js").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_directory_pattern_keeps_same_named_file(self, tmp_path: Path):
        (tmp_path / "assets").write_text("not a directory", encoding="utf-8")
        result = await remove_path(tmp_path, "assets/**/*")
        assert result.status is RemovalStatus.TYPE_MISMATCH
        assert result.removed is False
        assert (tmp_path / "assets").is_file()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_path_is_noop(self, tmp_path: Path):
        result = await remove_path(tmp_path, "src/does-not-exist/**/*")
        assert result.status is RemovalStatus.MISSING
        assert result.removed is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_idempotent(self, template_dir: Path):
        first = await remove_path(template_dir, "src/stores/**/*")
        second = await remove_path(template_dir, "src/stores/**/*")
        assert first.status is RemovalStatus.REMOVED_DIRECTORY
        assert second.status is RemovalStatus.MISSING

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("pattern", ["../outside.txt", "src/../../outside.txt", "", "/**/*", "."])
    async def test_refuses_paths_outside_or_at_root(self, tmp_path: Path, pattern: str):
        project = tmp_path / "project"
        project.mkdir()
        (project / "keep.txt").write_text("x", encoding="utf-8")
        (tmp_path / "outside.txt").write_text("x", encoding="utf-8")

        result = await remove_path(project, pattern)

        assert result.status is RemovalStatus.OUTSIDE_PROJECT
        assert (tmp_path / "outside.txt").exists()
        assert (project / "keep.txt").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_dot_segments_inside_project_are_allowed(self, template_dir: Path):
        result = await remove_path(template_dir, "src/ui/../stores/**/*")
        assert result.status is RemovalStatus.REMOVED_DIRECTORY
        assert result.path == "src/ui/../stores"
        assert not (template_dir / "src/stores").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
    async def test_symlink_is_left_alone(self, tmp_path: Path):
        target = tmp_path / "real.txt"
        target.write_text("x", encoding="utf-8")
        (tmp_path / "link.txt").symlink_to(target)

        result = await remove_path(tmp_path, "link.txt")

        assert result.status is RemovalStatus.TYPE_MISMATCH
        assert (tmp_path / "link.txt").is_symlink()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_os_error_raises_filesystem_error(self, template_dir: Path):
        with patch(
            "template_forge.engine.removal.shutil.rmtree",
            side_effect=PermissionError(13, "Permission denied"),
        ):
            with pytest.raises(FileSystemError) as exc_info:
                await remove_path(template_dir, "src/locales/**/*")
        assert exc_info.value.operation == "remove"
        assert exc_info.value.path == template_dir / "src/locales"
        assert "Permission denied" in str(exc_info.value)
