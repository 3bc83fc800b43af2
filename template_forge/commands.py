"""High-level commands driven by the CLI.

``init_project`` scaffolds a new project from a remote or local template;
``apply_project`` re-runs the configuration engine over a directory that
already contains a template checkout.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Optional

from template_forge.config import ForgeConfig
from template_forge.engine import (
    ApplyReport,
    UserSelections,
    apply_template_config,
    load_template_config,
)
from template_forge.selections import (
    confirm_target_directory,
    prompt_selections,
    prompt_template_url,
)
from template_forge.template.source import clone_template, copy_template, repo_basename
from template_forge.utils import (
    console,
    format_duration,
    print_detail,
    print_step,
    print_success,
    print_warning,
)


def temp_checkout_dir(repo_url: str, config: ForgeConfig) -> Path:
    """Unique temporary directory name for a clone of *repo_url*."""
    stamp = int(time.time() * 1000)
    name = f"{config.temp_prefix}{repo_basename(repo_url)}-{stamp}"
    return Path(tempfile.gettempdir()) / name


def print_next_steps(target: Path) -> None:
    relative = os.path.relpath(target, Path.cwd())
    if relative.startswith(".."):
        relative = str(target)
    console.print(
        "\n[cyan]Next steps:\n"
        f"  1. cd {relative}\n"
        "  2. pnpm install (or npm install / yarn install)\n"
        "  3. pnpm dev (or npm run dev / yarn dev)[/cyan]\n",
        highlight=False,
    )


async def _cleanup(temp_dir: Path) -> None:
    if not await asyncio.to_thread(temp_dir.exists):
        return
    try:
        await asyncio.to_thread(shutil.rmtree, temp_dir)
    except OSError as exc:
        print_warning(f"Warning: Failed to clean up temporary directory {temp_dir}: {exc}")
    else:
        print_detail(f"Cleaned up temporary directory: {temp_dir}")


async def init_project(
    target_dir: str | Path,
    repo_url: str | None = None,
    selections: UserSelections | None = None,
    config: ForgeConfig | None = None,
    *,
    branch: str | None = None,
    use_defaults: bool = False,
    assume_yes: bool = False,
    dry_run: bool = False,
) -> Optional[ApplyReport]:
    """Scaffold a project into *target_dir* from a template.

    Steps: confirm the target, clone the template into a temporary
    directory, load its configuration, collect selections, copy the
    template into the target and apply the selections there.  The
    temporary directory is always removed.

    Args:
        target_dir: Destination, created when missing.
        repo_url: Template git URL or local path; prompted for when omitted.
        selections: Items to keep per layer; prompted for when omitted
            (unless *use_defaults*).
        config: Engine settings; defaults to ``ForgeConfig()``.
        branch: Branch to clone; defaults to ``config.default_branch``.
        use_defaults: Use the template's default-enabled items instead of
            prompting.
        assume_yes: Do not ask before writing into a non-empty directory.
        dry_run: Plan against the temporary checkout only; the target
            directory is left untouched.

    Returns:
        The apply report, or ``None`` if the user cancelled.

    Raises:
        CloneError, ConfigNotFound, ConfigParseError: The template could
            not be fetched or read.
    """
    config = config or ForgeConfig()
    started = time.monotonic()
    print_step("Initializing project...")
    target = Path(target_dir).resolve()

    if not confirm_target_directory(target, assume_yes=assume_yes):
        print_warning("Operation cancelled.")
        return None

    repo_url = repo_url or prompt_template_url(config.default_template_url)
    temp_dir = temp_checkout_dir(repo_url, config)

    try:
        await clone_template(repo_url, temp_dir, branch or config.default_branch)
        template_config = await load_template_config(temp_dir, config.config_filename)

        if selections is None:
            if use_defaults:
                selections = template_config.default_selections()
            else:
                selections = prompt_selections(template_config)

        if dry_run:
            return await apply_template_config(
                temp_dir, selections, template_config, config, dry_run=True
            )

        await copy_template(temp_dir, target)
        report = await apply_template_config(target, selections, template_config, config)

        print_success(f"\n✔ Scaffolding complete in {format_duration(time.monotonic() - started)}!")
        print_next_steps(target)
        return report
    finally:
        await _cleanup(temp_dir)


async def apply_project(
    project_dir: str | Path,
    selections: UserSelections | None = None,
    config: ForgeConfig | None = None,
    *,
    use_defaults: bool = False,
    dry_run: bool = False,
) -> ApplyReport:
    """Apply selections to a template already checked out at *project_dir*."""
    config = config or ForgeConfig()
    root = Path(project_dir).resolve()
    template_config = await load_template_config(root, config.config_filename)
    if selections is None:
        if use_defaults:
            selections = template_config.default_selections()
        else:
            selections = prompt_selections(template_config)
    return await apply_template_config(root, selections, template_config, config, dry_run=dry_run)
