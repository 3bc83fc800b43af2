"""template-forge: scaffold projects from layered, configurable templates.

A template ships a ``template.config.json`` that groups optional features
into layers of selectable items.  After the template is cloned, the items
the user did not select are stripped: their files and directories are
removed, their manifest keys and code blocks are pruned, and
``package.json`` is reconciled so that only dependencies still needed
remain.
"""

__version__ = "0.1.0"

from template_forge.config import ForgeConfig
from template_forge.engine import (
    ApplyReport,
    TemplateConfig,
    apply_template_config,
    load_template_config,
)
from template_forge.errors import ForgeError

__all__ = [
    "ApplyReport",
    "ForgeConfig",
    "ForgeError",
    "TemplateConfig",
    "__version__",
    "apply_template_config",
    "load_template_config",
]
