"""Template acquisition: cloning a template repository and copying it into place."""

from template_forge.template.source import (
    clone_template,
    copy_template,
    is_valid_template_source,
)

__all__ = [
    "clone_template",
    "copy_template",
    "is_valid_template_source",
]
