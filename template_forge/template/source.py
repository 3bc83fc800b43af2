"""Cloning and copying of template sources.

A template is cloned shallowly into a temporary directory, stripped of its
``.git`` directory, customised there or after being copied over the target
directory.
"""

from __future__ import annotations

import asyncio
import re
import shutil
from pathlib import Path

from template_forge.errors import CloneError
from template_forge.utils import print_detail, print_error, print_step, print_success, run_command

_GIT_URL_RE = re.compile(r"^(https?|git)(://|@)([^/:]+)[/:]([^/:]+)/(.+)\.git$", re.IGNORECASE)
_LOCAL_PATH_RE = re.compile(r"^(/|\.{1,2}/).+")


def is_valid_template_source(source: str) -> bool:
    """Accept git URLs and absolute or ``./``/``../`` relative local paths."""
    source = source.strip()
    return bool(_GIT_URL_RE.match(source) or _LOCAL_PATH_RE.match(source))


def repo_basename(repo_url: str) -> str:
    """Last path segment of *repo_url* without a ``.git`` suffix."""
    name = repo_url.rstrip("/").replace(":", "/").rsplit("/", 1)[-1]
    return name[:-4] if name.endswith(".git") else name


async def clone_template(repo_url: str, temp_dir: str | Path, branch: str | None = "master") -> Path:
    """Shallow-clone *repo_url* into *temp_dir* and drop its ``.git`` directory.

    An existing *temp_dir* is removed first.  On failure *temp_dir* is
    cleaned up.

    Raises:
        CloneError: git exited with a non-zero status.
    """
    temp = Path(temp_dir)
    print_step(f"Cloning template from {repo_url} (branch: {branch or 'default'})...")

    if await asyncio.to_thread(temp.exists):
        await asyncio.to_thread(shutil.rmtree, temp)
        print_detail(f"Removed existing temporary directory: {temp}")
    await asyncio.to_thread(temp.mkdir, parents=True, exist_ok=True)
    print_detail(f"Created temporary directory: {temp}")

    cmd = ["git", "clone", "--depth", "1"]
    if branch:
        cmd += ["--branch", branch]
    cmd += [repo_url, str(temp)]
    print_detail(f"Executing: {' '.join(cmd)}")

    returncode, _stdout, stderr = await run_command(cmd)
    if returncode != 0:
        print_error(f"Clone template failed: {stderr}")
        await asyncio.to_thread(shutil.rmtree, temp, True)
        print_detail(f"Cleaned up temporary directory due to error: {temp}")
        raise CloneError(repo_url, stderr)

    git_dir = temp / ".git"
    if await asyncio.to_thread(git_dir.exists):
        await asyncio.to_thread(shutil.rmtree, git_dir)
        print_detail(f"Removed .git directory from {temp}")

    print_success(f"✔ Template successfully cloned to {temp}")
    return temp


async def copy_template(temp_dir: str | Path, target_dir: str | Path) -> Path:
    """Copy the customised template over *target_dir*.

    Conflicting files are overwritten; unrelated files already in the
    target are kept.
    """
    source = Path(temp_dir)
    target = Path(target_dir)
    print_step(f"Copying files from {source} to {target}...")
    await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)
    await asyncio.to_thread(
        shutil.copytree, source, target, symlinks=True, dirs_exist_ok=True
    )
    print_success(f"✔ Files copied successfully to {target}")
    return target
