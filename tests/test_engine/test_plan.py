"""Unit tests for the staged apply plan (template_forge.engine.plan).

Tests cover:
- plan_removals (files before directories, document order)
- plan_manifest_edits (only for manifest-carrying template types)
- plan_code_patterns
- build_plan (resolved selections, unknown selections, summary)
"""

from __future__ import annotations

import pytest

from template_forge.config import ForgeConfig
from template_forge.engine.models import TemplateConfig
from template_forge.engine.plan import (
    build_plan,
    plan_code_patterns,
    plan_manifest_edits,
    plan_removals,
)


class TestPlanRemovals:
    @pytest.mark.unit
    def test_unselected_items_only(self, template_config: TemplateConfig):
        targets = plan_removals(template_config, template_config.default_selections())
        assert [(t.layer, t.item_id, t.pattern) for t in targets] == [
            ("pages", "options", "src/ui/options-page/**/"),
            ("features", "tailwind", "tailwind.config.js"),
        ]

    @pytest.mark.unit
    def test_files_before_directories(self, template_config: TemplateConfig):
        targets = plan_removals(template_config, {"pages": ["popup", "options", "sidePanel"]})
        i18n = [t.pattern for t in targets if t.item_id == "i18n"]
        assert i18n == ["src/utils/i18n.ts", "src/locales/**/*"]

    @pytest.mark.unit
    def test_everything_selected(self, template_config: TemplateConfig):
        selections = {layer: list(items) for layer, items in template_config.layers.items()}
        assert plan_removals(template_config, selections) == []


class TestPlanManifestEdits:
    @pytest.mark.unit
    def test_chrome_extension(self, template_config: TemplateConfig):
        edits = plan_manifest_edits(template_config, {"pages": ["popup"]})
        assert [(e.item_id, e.keys) for e in edits] == [
            ("options", ["options_page"]),
            ("sidePanel", ["side_panel"]),
        ]

    @pytest.mark.unit
    def test_other_template_types_have_no_manifest(self, template_document):
        template_document["templateType"] = "web-app"
        config = TemplateConfig.from_document(template_document)
        assert plan_manifest_edits(config, {}) == []

    @pytest.mark.unit
    def test_configurable_types(self, template_document):
        template_document["templateType"] = "firefox-addon"
        config = TemplateConfig.from_document(template_document)
        forge_config = ForgeConfig(manifest_template_types=["firefox-addon"])
        assert len(plan_manifest_edits(config, {}, forge_config)) == 3


class TestPlanCodePatterns:
    @pytest.mark.unit
    def test_patterns_of_unselected_items(self, template_config: TemplateConfig):
        targets = plan_code_patterns(template_config, {"pages": ["sidePanel"], "features": []})
        assert [(t.item_id, t.pattern.file) for t in targets] == [("i18n", "src/**/*.{ts,vue}")]

    @pytest.mark.unit
    def test_selected_items_keep_their_code(self, template_config: TemplateConfig):
        assert plan_code_patterns(template_config, template_config.default_selections()) == []


class TestBuildPlan:
    @pytest.mark.unit
    def test_stages(self, template_config: TemplateConfig):
        plan = build_plan(template_config, {"pages": ["popup"], "features": ["i18n"]})

        assert plan.selections == {"pages": ["popup"], "features": ["i18n"]}
        assert {t.item_id for t in plan.removals} == {
            "options",
            "sidePanel",
            "stateManagement",
            "tailwind",
        }
        assert [e.item_id for e in plan.manifest_edits] == ["options", "sidePanel"]
        assert [t.item_id for t in plan.code_patterns] == ["sidePanel"]
        assert plan.dependencies.removable() == ["pinia"]
        assert plan.unknown_selections == []

    @pytest.mark.unit
    def test_missing_layer_selects_nothing(self, template_config: TemplateConfig):
        plan = build_plan(template_config, {"pages": ["popup"]})
        assert plan.selections["features"] == []
        assert "i18n" in {t.item_id for t in plan.removals}

    @pytest.mark.unit
    def test_unknown_selections_are_reported(self, template_config: TemplateConfig):
        plan = build_plan(template_config, {"pages": ["popup", "devtools"]})
        assert plan.unknown_selections == [("pages", "devtools")]

    @pytest.mark.unit
    def test_summary(self, template_config: TemplateConfig):
        summary = build_plan(template_config, template_config.default_selections()).summary()
        assert summary == {
            "Paths to remove": 2,
            "Manifest edits": 1,
            "Code patterns": 0,
            "Dependencies to drop": 0,
            "Dev dependencies to drop": 2,
        }

    @pytest.mark.unit
    def test_plan_is_pure(self, template_dir, template_config: TemplateConfig):
        before = sorted(p.relative_to(template_dir).as_posix() for p in template_dir.rglob("*"))
        build_plan(template_config, {})
        after = sorted(p.relative_to(template_dir).as_posix() for p in template_dir.rglob("*"))
        assert before == after
