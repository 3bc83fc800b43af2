"""Dependency reconciliation for ``package.json``.

The engine only ever removes dependencies it knows the template *could*
have wanted: the universe of removable names is every dependency declared
by any item in any layer.  A name in that universe survives only when a
core dependency or a selected item requires it.  Names never declared in
the configuration (hand-added dependencies) are left alone.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from template_forge.config import ForgeConfig
from template_forge.engine.models import TemplateConfig, UserSelections
from template_forge.errors import DependencyUpdateError
from template_forge.utils import (
    load_json,
    print_detail,
    print_step,
    print_success,
    print_warning,
    save_json,
)

PACKAGE_FILENAME = "package.json"


class DependencyPlan(BaseModel):
    """Required and possible dependency sets implied by a selection."""

    required: set[str] = Field(default_factory=set)
    required_dev: set[str] = Field(default_factory=set)
    possible: set[str] = Field(default_factory=set)
    possible_dev: set[str] = Field(default_factory=set)
    pinned: dict[str, str] = Field(
        default_factory=dict, description="Explicit versions from selected items"
    )
    pinned_dev: dict[str, str] = Field(default_factory=dict)

    def removable(self) -> list[str]:
        return sorted(self.possible - self.required)

    def removable_dev(self) -> list[str]:
        return sorted(self.possible_dev - self.required_dev)


class DependencyResult(BaseModel):
    """What was changed in ``package.json``."""

    path: str
    removed: list[str] = Field(default_factory=list)
    removed_dev: list[str] = Field(default_factory=list)
    pinned: dict[str, str] = Field(default_factory=dict)
    pinned_dev: dict[str, str] = Field(default_factory=dict)


def plan_dependencies(
    template_config: TemplateConfig,
    selections: UserSelections,
    core_dependencies: list[str] | None = None,
    core_dev_dependencies: list[str] | None = None,
) -> DependencyPlan:
    """Compute the dependency sets for *selections*.

    ``core_dependencies``/``core_dev_dependencies`` default to the
    ``ForgeConfig`` defaults.
    """
    defaults = ForgeConfig()
    plan = DependencyPlan(
        required=set(defaults.core_dependencies if core_dependencies is None else core_dependencies),
        required_dev=set(
            defaults.core_dev_dependencies if core_dev_dependencies is None else core_dev_dependencies
        ),
    )

    for _layer, _item_id, item in template_config.selected_items(selections):
        for dep in item.dependencies:
            if dep.dev:
                plan.required_dev.add(dep.name)
                if dep.version:
                    plan.pinned_dev[dep.name] = dep.version
            else:
                plan.required.add(dep.name)
                if dep.version:
                    plan.pinned[dep.name] = dep.version

    for _layer, _item_id, item in template_config.iter_items():
        for dep in item.dependencies:
            (plan.possible_dev if dep.dev else plan.possible).add(dep.name)

    return plan


def _dependency_map(package: dict[str, Any], key: str) -> dict[str, Any]:
    value = package.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"'{key}' is not an object")
    return value


def reconcile_package(
    package: dict[str, Any], plan: DependencyPlan, path: str = PACKAGE_FILENAME
) -> DependencyResult:
    """Rewrite the dependency maps of a parsed ``package.json`` in place.

    Both maps are replaced wholesale; they are created when absent.

    Raises:
        ValueError: If a dependency map is present but not an object.
    """
    dependencies = _dependency_map(package, "dependencies")
    dev_dependencies = _dependency_map(package, "devDependencies")
    result = DependencyResult(path=path)

    removable = set(plan.removable())
    removable_dev = set(plan.removable_dev())
    result.removed = [name for name in dependencies if name in removable]
    result.removed_dev = [name for name in dev_dependencies if name in removable_dev]

    new_dependencies = {k: v for k, v in dependencies.items() if k not in removable}
    new_dev_dependencies = {k: v for k, v in dev_dependencies.items() if k not in removable_dev}

    for name, version in plan.pinned.items():
        new_dependencies[name] = version
    for name, version in plan.pinned_dev.items():
        new_dev_dependencies[name] = version
    result.pinned = dict(plan.pinned)
    result.pinned_dev = dict(plan.pinned_dev)

    package["dependencies"] = new_dependencies
    package["devDependencies"] = new_dev_dependencies
    return result


def _read_package(path: Path) -> dict[str, Any]:
    package = load_json(path)
    if not isinstance(package, dict):
        raise ValueError("root is not an object")
    return package


async def apply_dependency_plan(
    project_dir: str | Path,
    plan: DependencyPlan,
    package_filename: str = PACKAGE_FILENAME,
) -> Optional[DependencyResult]:
    """Apply *plan* to the project's ``package.json``.

    Returns:
        The changes made, or ``None`` when there is no ``package.json``.

    Raises:
        DependencyUpdateError: The file could not be read, parsed, or written.
    """
    print_step("Updating package dependencies based on selections...")
    package_path = Path(project_dir) / package_filename

    if not await asyncio.to_thread(package_path.is_file):
        print_warning(f"{package_filename} not found, skipping dependency updates.")
        return None

    try:
        package = await asyncio.to_thread(_read_package, package_path)
        result = reconcile_package(package, plan, path=package_filename)
        await save_json(package, package_path)
    except (OSError, ValueError) as exc:
        raise DependencyUpdateError(package_path, str(exc)) from exc

    for name in result.removed:
        print_detail(f"    - Removing dependency: {name}")
    for name in result.removed_dev:
        print_detail(f"    - Removing devDependency: {name}")
    print_success("✔ Dependencies updated successfully.")
    return result


async def resolve_dependencies(
    project_dir: str | Path,
    template_config: TemplateConfig,
    selections: UserSelections,
    config: ForgeConfig | None = None,
) -> Optional[DependencyResult]:
    """Plan and apply dependency reconciliation in one step."""
    config = config or ForgeConfig()
    plan = plan_dependencies(
        template_config,
        selections,
        core_dependencies=config.core_dependencies,
        core_dev_dependencies=config.core_dev_dependencies,
    )
    return await apply_dependency_plan(project_dir, plan, config.package_filename)
