"""Apply orchestrator.

Turns a cloned template into a customised project in one deterministic
pass:

1. Build the ``ApplyPlan`` (pure, no filesystem access).
2. Snapshot the project tree (when ``ForgeConfig.transactional``).
3. Execute the stages in order: removals, manifest edits, code patterns,
   dependencies.  Failures inside a stage are downgraded to warnings at
   the granularity of one removal, manifest, file, or the dependency pass.
4. If anything else escapes, restore the snapshot and re-raise.
"""

from __future__ import annotations

import asyncio
import shutil
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from template_forge.config import ForgeConfig
from template_forge.engine.dependencies import DependencyResult, apply_dependency_plan
from template_forge.engine.manifest import ManifestPatchResult, patch_manifest
from template_forge.engine.models import TemplateConfig, UserSelections
from template_forge.engine.patterns import PruneResult, prune_pattern
from template_forge.engine.plan import ApplyPlan, build_plan
from template_forge.engine.removal import RemovalResult, RemovalStatus, remove_path
from template_forge.errors import (
    CodePatternError,
    DependencyUpdateError,
    FileSystemError,
    ManifestPatchError,
)
from template_forge.utils import (
    print_detail,
    print_error,
    print_step,
    print_success,
    print_summary_table,
    print_warning,
)


class ReportWarning(BaseModel):
    """A non-fatal problem recorded during an apply pass."""

    stage: str = Field(..., description="'selection', 'removal', 'manifest', 'code-pattern' or 'dependencies'")
    target: str = Field(..., description="Item, file, or path the warning is about")
    message: str


class ApplyReport(BaseModel):
    """Everything an apply pass planned and did."""

    plan: ApplyPlan
    dry_run: bool = False
    removals: list[RemovalResult] = Field(default_factory=list)
    manifest_patches: list[ManifestPatchResult] = Field(default_factory=list)
    code_patterns: list[PruneResult] = Field(default_factory=list)
    dependencies: Optional[DependencyResult] = None
    warnings: list[ReportWarning] = Field(default_factory=list)

    def add_warning(self, stage: str, target: str, message: str, echo: bool = True) -> None:
        if echo:
            print_warning(f"  ⚠️ {message}")
        self.warnings.append(ReportWarning(stage=stage, target=target, message=message))

    @property
    def removed_paths(self) -> list[str]:
        return [result.path for result in self.removals if result.removed]

    @property
    def changed_files(self) -> list[str]:
        changed: list[str] = []
        for result in self.code_patterns:
            for path in result.changed_files:
                if path not in changed:
                    changed.append(path)
        return changed


# ---------------------------------------------------------------------------
# Snapshot / rollback
# ---------------------------------------------------------------------------


def _restore_tree(snapshot: Path, project_dir: Path) -> None:
    for entry in list(project_dir.iterdir()):
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
    shutil.copytree(snapshot, project_dir, symlinks=True, dirs_exist_ok=True)


@asynccontextmanager
async def project_snapshot(project_dir: Path, enabled: bool = True) -> AsyncIterator[Optional[Path]]:
    """Copy *project_dir* aside and restore it if the body raises."""
    if not enabled:
        yield None
        return

    snapshot_root = Path(
        await asyncio.to_thread(tempfile.mkdtemp, prefix="template-forge-snapshot-")
    )
    snapshot = snapshot_root / "project"
    try:
        await asyncio.to_thread(shutil.copytree, project_dir, snapshot, symlinks=True)
        try:
            yield snapshot
        except Exception as exc:
            print_warning(f"Restoring {project_dir} from snapshot after error...")
            await asyncio.to_thread(_restore_tree, snapshot, project_dir)
            exc.add_note(f"{project_dir} was restored to its state before the apply pass.")
            raise
    finally:
        await asyncio.to_thread(shutil.rmtree, snapshot_root, True)


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


async def run_removals(project_dir: Path, plan: ApplyPlan, report: ApplyReport) -> None:
    print_step("Processing removals for unselected items...")
    for target in plan.removals:
        owner = f"{target.layer}.{target.item_id}"
        try:
            result = await remove_path(project_dir, target.pattern)
        except FileSystemError as exc:
            report.add_warning("removal", owner, f"Error removing {target.pattern}: {exc}")
            continue
        report.removals.append(result)
        if result.status is RemovalStatus.TYPE_MISMATCH:
            report.add_warning(
                "removal",
                owner,
                f"{result.path} is a file but '{target.pattern}' names a directory; left in place",
                echo=False,
            )
        elif result.status is RemovalStatus.OUTSIDE_PROJECT:
            report.add_warning(
                "removal", owner, f"'{target.pattern}' points outside the project", echo=False
            )
    print_success("✔ Removals processed.")


async def run_manifest_edits(
    project_dir: Path, plan: ApplyPlan, report: ApplyReport, config: ForgeConfig
) -> None:
    if not plan.manifest_edits:
        return
    print_step("Patching manifest for unselected items...")
    for edit in plan.manifest_edits:
        try:
            result = await patch_manifest(
                project_dir, edit.keys, keep=False, candidates=config.manifest_candidates
            )
        except ManifestPatchError as exc:
            report.add_warning("manifest", f"{edit.layer}.{edit.item_id}", str(exc))
            continue
        if result is not None:
            report.manifest_patches.append(result)


async def run_code_patterns(
    project_dir: Path, plan: ApplyPlan, report: ApplyReport, config: ForgeConfig
) -> None:
    if not plan.code_patterns:
        return
    print_step("Pruning code patterns of unselected items...")
    for target in plan.code_patterns:
        owner = f"{target.layer}.{target.item_id}"
        try:
            result = await prune_pattern(
                project_dir, target.pattern, respect_gitignore=config.respect_gitignore
            )
        except CodePatternError as exc:
            report.add_warning("code-pattern", owner, str(exc))
            continue
        report.code_patterns.append(result)
        for failure in result.failures:
            report.add_warning("code-pattern", owner, failure, echo=False)


async def run_dependencies(
    project_dir: Path, plan: ApplyPlan, report: ApplyReport, config: ForgeConfig
) -> None:
    try:
        report.dependencies = await apply_dependency_plan(
            project_dir, plan.dependencies, config.package_filename
        )
    except DependencyUpdateError as exc:
        report.add_warning("dependencies", config.package_filename, str(exc))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def apply_template_config(
    project_dir: str | Path,
    selections: UserSelections,
    template_config: TemplateConfig,
    config: ForgeConfig | None = None,
    *,
    dry_run: bool = False,
) -> ApplyReport:
    """Apply *selections* to the template checked out at *project_dir*.

    Args:
        project_dir: Root of the (freshly copied) template.
        selections: Item IDs kept per layer.
        template_config: The template's loaded configuration.
        config: Engine settings; defaults to ``ForgeConfig()``.
        dry_run: Plan only, leave the tree untouched.

    Returns:
        An ``ApplyReport`` of everything done and every warning raised.
    """
    config = config or ForgeConfig()
    root = Path(project_dir)
    print_step("\nApplying template configuration based on selections...")

    plan = build_plan(template_config, selections, config)
    report = ApplyReport(plan=plan, dry_run=dry_run)

    for layer, item_id in plan.unknown_selections:
        report.add_warning(
            "selection",
            f"{layer}.{item_id}",
            f"Selected item '{item_id}' does not exist in layer '{layer}'; ignored",
        )
    for layer, selected in plan.selections.items():
        print_detail(f"Processing layer: {layer}, Selected: [{', '.join(selected)}]")

    if dry_run:
        print_summary_table(plan.summary(), title="Planned changes (dry run)")
        return report

    try:
        async with project_snapshot(root, enabled=config.transactional):
            await run_removals(root, plan, report)
            await run_manifest_edits(root, plan, report, config)
            await run_code_patterns(root, plan, report, config)
            await run_dependencies(root, plan, report, config)
    except Exception as exc:
        print_error(f"Applying template configuration failed: {exc}")
        raise

    if report.warnings:
        print_warning(f"\nCompleted with {len(report.warnings)} warning(s).")
    print_success("\n✔ All template configuration applied successfully!")
    return report
