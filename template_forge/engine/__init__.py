"""Template configuration engine.

Interprets ``template.config.json`` and transforms a cloned template to
match a user's selections: files and directories of unselected items are
removed, manifest keys are dropped, code patterns are pruned, and
``package.json`` dependencies are reconciled.

Quick usage::

    from template_forge.engine import apply_template_config, load_template_config

    template_config = await load_template_config(project_dir)
    report = await apply_template_config(
        project_dir, {"pages": ["popup"]}, template_config
    )
    print(report.removed_paths)
"""

from template_forge.engine.dependencies import (
    DependencyPlan,
    plan_dependencies,
    resolve_dependencies,
)
from template_forge.engine.loader import load_template_config
from template_forge.engine.manifest import patch_manifest
from template_forge.engine.models import (
    CodePattern,
    Dependency,
    LayerItem,
    TemplateConfig,
    UserSelections,
)
from template_forge.engine.orchestrator import ApplyReport, apply_template_config
from template_forge.engine.patterns import prune_pattern
from template_forge.engine.plan import ApplyPlan, build_plan
from template_forge.engine.removal import remove_path

__all__ = [
    "ApplyPlan",
    "ApplyReport",
    "CodePattern",
    "Dependency",
    "DependencyPlan",
    "LayerItem",
    "TemplateConfig",
    "UserSelections",
    "apply_template_config",
    "build_plan",
    "load_template_config",
    "patch_manifest",
    "plan_dependencies",
    "prune_pattern",
    "remove_path",
    "resolve_dependencies",
]
