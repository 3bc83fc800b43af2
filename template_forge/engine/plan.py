"""Staged apply plan.

Every change the engine will make is computed up front, without touching
the filesystem, as an ``ApplyPlan``.  Each stage has its own planner so it
can be tested in isolation; the orchestrator then executes the stages in
a fixed order: removals, manifest edits, code patterns, dependencies.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from template_forge.config import ForgeConfig
from template_forge.engine.dependencies import DependencyPlan, plan_dependencies
from template_forge.engine.models import CodePattern, TemplateConfig, UserSelections


class RemovalTarget(BaseModel):
    """A ``files``/``directories`` entry of an unselected item."""

    layer: str
    item_id: str
    pattern: str


class ManifestEdit(BaseModel):
    """Manifest keys owned by an unselected item."""

    layer: str
    item_id: str
    keys: list[str]


class PatternTarget(BaseModel):
    """A code pattern owned by an unselected item."""

    layer: str
    item_id: str
    pattern: CodePattern


class ApplyPlan(BaseModel):
    """The complete set of intended changes for one selection."""

    selections: UserSelections = Field(
        default_factory=dict, description="Selection for every layer, absent layers as []"
    )
    removals: list[RemovalTarget] = Field(default_factory=list)
    manifest_edits: list[ManifestEdit] = Field(default_factory=list)
    code_patterns: list[PatternTarget] = Field(default_factory=list)
    dependencies: DependencyPlan = Field(default_factory=DependencyPlan)
    unknown_selections: list[tuple[str, str]] = Field(default_factory=list)

    def summary(self) -> dict[str, int]:
        return {
            "Paths to remove": len(self.removals),
            "Manifest edits": len(self.manifest_edits),
            "Code patterns": len(self.code_patterns),
            "Dependencies to drop": len(self.dependencies.removable()),
            "Dev dependencies to drop": len(self.dependencies.removable_dev()),
        }


def plan_removals(template_config: TemplateConfig, selections: UserSelections) -> list[RemovalTarget]:
    """Files then directories of every unselected item, in document order."""
    return [
        RemovalTarget(layer=layer, item_id=item_id, pattern=pattern)
        for layer, item_id, item in template_config.unselected_items(selections)
        for pattern in item.removal_patterns()
    ]


def plan_manifest_edits(
    template_config: TemplateConfig,
    selections: UserSelections,
    config: ForgeConfig | None = None,
) -> list[ManifestEdit]:
    """Manifest keys of unselected items; empty unless the template type carries a manifest."""
    config = config or ForgeConfig()
    if not config.is_manifest_type(template_config.template_type):
        return []
    return [
        ManifestEdit(layer=layer, item_id=item_id, keys=list(item.manifest_keys))
        for layer, item_id, item in template_config.unselected_items(selections)
        if item.manifest_keys
    ]


def plan_code_patterns(
    template_config: TemplateConfig, selections: UserSelections
) -> list[PatternTarget]:
    return [
        PatternTarget(layer=layer, item_id=item_id, pattern=pattern)
        for layer, item_id, item in template_config.unselected_items(selections)
        for pattern in item.code_patterns
    ]


def build_plan(
    template_config: TemplateConfig,
    selections: UserSelections,
    config: ForgeConfig | None = None,
) -> ApplyPlan:
    """Compute every stage of the plan for *selections*."""
    config = config or ForgeConfig()
    return ApplyPlan(
        selections=template_config.resolve_selections(selections),
        removals=plan_removals(template_config, selections),
        manifest_edits=plan_manifest_edits(template_config, selections, config),
        code_patterns=plan_code_patterns(template_config, selections),
        dependencies=plan_dependencies(
            template_config,
            selections,
            core_dependencies=config.core_dependencies,
            core_dev_dependencies=config.core_dev_dependencies,
        ),
        unknown_selections=template_config.unknown_selections(selections),
    )
