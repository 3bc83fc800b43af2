"""template-forge configuration.

Centralised, typed settings for the configuration engine and the ``init``
flow.  Everything uses Pydantic v2 models so settings are validated at
construction time and can be serialised to/from JSON or environment
variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_TEMPLATE_URL = "https://github.com/mubaidr/vite-vue3-browser-extension-v3.git"


def _split_env_list(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class ForgeConfig(BaseModel):
    """Global template-forge configuration.

    Instances are normally created once by the CLI (or by tests) and passed
    down to the orchestrator and every stage it drives.
    """

    config_filename: str = Field(
        default="template.config.json",
        description="Name of the template configuration document at the template root",
    )
    package_filename: str = Field(
        default="package.json",
        description="Package manifest whose dependency maps are reconciled",
    )
    manifest_candidates: list[str] = Field(
        default_factory=lambda: [
            "manifest.config.ts",
            "manifest.config.js",
            "manifest.config.mjs",
            "manifest.json",
        ],
        description="Manifest files searched in priority order; only the first found is patched",
    )
    manifest_template_types: list[str] = Field(
        default_factory=lambda: ["chrome-extension"],
        description="Template types whose items may carry manifest keys",
    )
    core_dependencies: list[str] = Field(
        default_factory=lambda: ["vue", "vue-router", "webextension-polyfill"],
        description="Runtime dependencies kept regardless of selections",
    )
    core_dev_dependencies: list[str] = Field(
        default_factory=lambda: [
            "vite",
            "@vitejs/plugin-vue",
            "@crxjs/vite-plugin",
            "typescript",
        ],
        description="Dev dependencies kept regardless of selections",
    )
    respect_gitignore: bool = Field(
        default=True, description="Skip .gitignore'd files when resolving code pattern globs"
    )
    transactional: bool = Field(
        default=True,
        description="Snapshot the project before applying and restore it on a fatal error",
    )
    default_template_url: str = Field(default=DEFAULT_TEMPLATE_URL)
    default_branch: str = Field(default="master")
    temp_prefix: str = Field(default="create-ext-template-")

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file and return its path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "ForgeConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "ForgeConfig":
        """Build a ``ForgeConfig`` from environment variables.

        Recognised variables (all optional):
            FORGE_TEMPLATE_URL, FORGE_BRANCH, FORGE_CORE_DEPS,
            FORGE_CORE_DEV_DEPS, FORGE_TRANSACTIONAL, FORGE_RESPECT_GITIGNORE.

        List-valued variables are comma-separated.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("FORGE_TEMPLATE_URL"):
            kwargs["default_template_url"] = os.environ["FORGE_TEMPLATE_URL"]
        if os.environ.get("FORGE_BRANCH"):
            kwargs["default_branch"] = os.environ["FORGE_BRANCH"]
        if "FORGE_CORE_DEPS" in os.environ:
            kwargs["core_dependencies"] = _split_env_list(os.environ["FORGE_CORE_DEPS"])
        if "FORGE_CORE_DEV_DEPS" in os.environ:
            kwargs["core_dev_dependencies"] = _split_env_list(os.environ["FORGE_CORE_DEV_DEPS"])
        if os.environ.get("FORGE_TRANSACTIONAL"):
            kwargs["transactional"] = _env_flag(os.environ["FORGE_TRANSACTIONAL"])
        if os.environ.get("FORGE_RESPECT_GITIGNORE"):
            kwargs["respect_gitignore"] = _env_flag(os.environ["FORGE_RESPECT_GITIGNORE"])
        return cls(**kwargs)

    def is_manifest_type(self, template_type: str | None) -> bool:
        """True when *template_type* is one whose items patch a manifest."""
        return template_type is not None and template_type in self.manifest_template_types
