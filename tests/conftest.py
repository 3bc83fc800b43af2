"""Shared pytest fixtures for the template-forge test suite.

Provides reusable fixtures for:
- A realistic cloned browser-extension template tree
- The matching raw configuration document and parsed ``TemplateConfig``
- A ``ForgeConfig`` with transactional snapshots enabled
"""

from __future__ import annotations

import copy
import json
import textwrap
from pathlib import Path
from typing import Any

import pytest

from template_forge.config import ForgeConfig
from template_forge.engine.models import TemplateConfig


# ---------------------------------------------------------------------------
# Template document
# ---------------------------------------------------------------------------

TEMPLATE_DOCUMENT: dict[str, Any] = {
    "templateName": "Vite Vue 3 Browser Extension",
    "templateType": "chrome-extension",
    "templateDescription": "Manifest V3 extension starter with Vue 3 and Vite",
    "templateAuthor": "forge-tests",
    "version": "1.2.0",
    "pages": {
        "popup": {
            "name": "Action popup",
            "description": "Popup opened from the toolbar icon",
            "directories": ["src/ui/action-popup/**/*"],
            "manifestKeys": ["action"],
        },
        "options": {
            "name": "Options page",
            "defaultEnabled": False,
            "directories": ["src/ui/options-page/**/"],
            "manifestKeys": ["options_page"],
        },
        "sidePanel": {
            "name": "Side panel",
            "directories": ["src/ui/side-panel/**/*"],
            "manifestKeys": ["side_panel"],
            "codePatterns": [
                {
                    "file": "src/background/index.ts",
                    "pattern": "// side-panel:start[\\s\\S]*?// side-panel:end\\n",
                    "action": "keep",
                }
            ],
        },
    },
    "features": {
        "i18n": {
            "name": "Internationalisation",
            "files": ["src/utils/i18n.ts"],
            "directories": ["src/locales/**/*"],
            "dependencies": [
                {"name": "vue-i18n", "version": "^9.14.0"},
                {"name": "@intlify/unplugin-vue-i18n", "dev": True},
            ],
            "codePatterns": [
                {
                    "file": "src/**/*.{ts,vue}",
                    "pattern": "import \\{ i18n \\} from '[^']*'\\n",
                    "action": "keep",
                }
            ],
        },
        "stateManagement": {
            "name": "Pinia",
            "directories": ["src/stores/**/*"],
            "dependencies": [{"name": "pinia", "dev": False}],
        },
        "tailwind": {
            "name": "Tailwind CSS",
            "defaultEnabled": False,
            "files": ["tailwind.config.js"],
            "dependencies": [
                {"name": "tailwindcss", "dev": True},
                {"name": "autoprefixer", "dev": True},
            ],
        },
    },
    "keywords": ["not", "a", "layer"],
}

PACKAGE_DOCUMENT: dict[str, Any] = {
    "name": "forge-extension",
    "version": "0.0.1",
    "private": True,
    "dependencies": {
        "vue": "^3.4.0",
        "vue-router": "^4.3.0",
        "webextension-polyfill": "^0.10.0",
        "vue-i18n": "^9.0.0",
        "pinia": "^2.1.0",
        "lodash-es": "^4.17.21",
    },
    "devDependencies": {
        "vite": "^5.2.0",
        "@vitejs/plugin-vue": "^5.0.0",
        "@crxjs/vite-plugin": "^2.0.0-beta.23",
        "typescript": "^5.4.0",
        "@intlify/unplugin-vue-i18n": "^4.0.0",
        "tailwindcss": "^3.4.0",
        "autoprefixer": "^10.4.0",
        "eslint": "^8.57.0",
    },
}

MANIFEST_SOURCE = textwrap.dedent(
    """\
    import { defineManifest } from '@crxjs/vite-plugin'
    import packageJson from './package.json'

    const { version, name, description } = packageJson

    export default defineManifest({
      name: `${name} (dev)`,
      description,
      version,
      manifest_version: 3,
      action: {
        default_popup: 'src/ui/action-popup/index.html',
      },
      options_page: 'src/ui/options-page/index.html',
      side_panel: {
        default_path: 'src/ui/side-panel/index.html',
      },
      permissions: ['storage', 'sidePanel'],
    })
    """
)

BACKGROUND_SOURCE = textwrap.dedent(
    """\
    import browser from 'webextension-polyfill'
    import { i18n } from '../utils/i18n'

    // side-panel:start
    browser.sidePanel?.setPanelBehavior({ openPanelOnActionClick: true })
    // side-panel:end

    browser.runtime.onInstalled.addListener(() => {
      console.log(i18n.global.t('installed'))
    })
    """
)

MAIN_SOURCE = textwrap.dedent(
    """\
    import { createApp } from 'vue'
    import { i18n } from '../../utils/i18n'
    import App from './App.vue'

    createApp(App).mount('#app')
    """
)

I18N_IMPORT = "import { i18n } from"


def _write(root: Path, relative: str, content: str) -> None:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def template_document() -> dict[str, Any]:
    """A deep copy of the raw ``template.config.json`` document."""
    return copy.deepcopy(TEMPLATE_DOCUMENT)


@pytest.fixture
def template_config(template_document: dict[str, Any]) -> TemplateConfig:
    return TemplateConfig.from_document(template_document)


@pytest.fixture
def forge_config() -> ForgeConfig:
    return ForgeConfig()


@pytest.fixture
def template_dir(tmp_path: Path, template_document: dict[str, Any]) -> Path:
    """A freshly cloned browser-extension template.

    Layout::

        template.config.json, package.json, manifest.config.ts,
        tailwind.config.js, .gitignore
        src/ui/{action-popup,options-page,side-panel}/...
        src/background/index.ts      (side-panel block, i18n import)
        src/ui/action-popup/main.ts  (i18n import)
        src/utils/i18n.ts, src/locales/en.json, src/stores/counter.ts
        src/generated/messages.ts    (git-ignored, i18n import)
        src/.cache/stale.ts          (hidden, i18n import)
    """
    root = tmp_path / "template"
    root.mkdir()

    _write(root, "template.config.json", json.dumps(template_document, indent=2))
    _write(root, "package.json", json.dumps(PACKAGE_DOCUMENT, indent=2) + "\n")
    _write(root, "manifest.config.ts", MANIFEST_SOURCE)
    _write(root, "tailwind.config.js", "export default { content: ['./src/**/*.vue'] }\n")
    _write(root, ".gitignore", "node_modules/\ndist/\nsrc/generated/\n")

    _write(root, "src/ui/action-popup/index.html", "<div id=\"app\"></div>\n")
    _write(root, "src/ui/action-popup/main.ts", MAIN_SOURCE)
    _write(root, "src/ui/action-popup/App.vue", "<template><h1>Popup</h1></template>\n")
    _write(root, "src/ui/options-page/index.html", "<div id=\"app\"></div>\n")
    _write(root, "src/ui/side-panel/index.html", "<div id=\"app\"></div>\n")
    _write(root, "src/background/index.ts", BACKGROUND_SOURCE)
    _write(root, "src/utils/i18n.ts", "export const i18n = createI18n({ legacy: false })\n")
    _write(root, "src/locales/en.json", "{\"installed\": \"Installed\"}\n")
    _write(root, "src/stores/counter.ts", "export const useCounter = defineStore('counter', {})\n")
    _write(root, "src/generated/messages.ts", "import { i18n } from '../utils/i18n'\n")
    _write(root, "src/.cache/stale.ts", "import { i18n } from '../utils/i18n'\n")
    return root


@pytest.fixture
def read_package():
    """Return a callable that loads ``package.json`` from a project directory."""

    def _read(project_dir: Path) -> dict[str, Any]:
        return json.loads((project_dir / "package.json").read_text(encoding="utf-8"))

    return _read


@pytest.fixture
def manifest_source() -> str:
    """The ``manifest.config.ts`` written into ``template_dir``."""
    return MANIFEST_SOURCE
