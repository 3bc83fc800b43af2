"""Pydantic v2 models for the template configuration document.

The document (``template.config.json``) has a handful of reserved metadata
keys and any number of *layers*: object-valued top-level keys mapping item
IDs to selectable items.  On load the layers are moved into an explicit
``layers`` mapping so downstream code never has to re-derive which keys are
layers and which are metadata.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Top-level keys that are never layers, even when object-valued.
RESERVED_KEYS: tuple[str, ...] = (
    "templateName",
    "templateType",
    "templateDescription",
    "templateAuthor",
    "version",
)

# The only code pattern action with an effect.  A pattern marked "keep"
# belongs to its item, so its matches are stripped when the item is dropped.
KEEP_ACTION = "keep"

UserSelections = dict[str, list[str]]


class _DocumentModel(BaseModel):
    """Base for models read from camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Item parts
# ---------------------------------------------------------------------------


class Dependency(_DocumentModel):
    """A package dependency owned by an item.

    ``(name, dev)`` is the identity used for set membership.
    """

    name: str = Field(..., description="Package name as it appears in package.json")
    version: Optional[str] = Field(
        default=None, description="Version written to package.json when the item is selected"
    )
    dev: bool = Field(default=False, description="Whether this is a devDependency")


class CodePattern(_DocumentModel):
    """A glob + regex rule describing text owned by an item."""

    file: str = Field(..., description="Glob, relative to the project root")
    pattern: Optional[str] = Field(default=None, description="Regex source")
    marker: Optional[str] = Field(
        default=None, description="Older spelling of 'pattern', used when 'pattern' is absent"
    )
    action: Optional[str] = Field(default=None, description="'keep' or a reserved action")

    @model_validator(mode="after")
    def _require_regex(self) -> "CodePattern":
        if not (self.pattern or self.marker):
            raise ValueError("code pattern needs a 'pattern' (or 'marker') regex")
        return self

    @property
    def regex_source(self) -> str:
        return self.pattern or self.marker or ""

    @property
    def removes_matches(self) -> bool:
        return self.action == KEEP_ACTION


class LayerItem(_DocumentModel):
    """One selectable unit within a layer."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(default="", description="Display name")
    description: Optional[str] = Field(default=None)
    default_enabled: bool = Field(default=True, description="Pre-selected in prompts")
    files: list[str] = Field(default_factory=list)
    directories: list[str] = Field(default_factory=list)
    dependencies: list[Dependency] = Field(default_factory=list)
    manifest_keys: list[str] = Field(default_factory=list)
    code_patterns: list[CodePattern] = Field(default_factory=list)

    def display_name(self, item_id: str) -> str:
        return self.name or item_id

    def removal_patterns(self) -> list[str]:
        """File patterns followed by directory patterns, in declaration order."""
        return [*self.files, *self.directories]


# ---------------------------------------------------------------------------
# Root document
# ---------------------------------------------------------------------------


class TemplateConfig(_DocumentModel):
    """The parsed ``template.config.json``.

    Read once per invocation and never mutated.
    """

    template_name: Optional[str] = None
    template_type: Optional[str] = None
    template_description: Optional[str] = None
    template_author: Optional[str] = None
    version: Optional[str] = None
    layers: dict[str, dict[str, LayerItem]] = Field(
        default_factory=dict, description="Layer key -> item ID -> item, in document order"
    )

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def from_document(cls, document: Any) -> "TemplateConfig":
        """Build a config from the raw JSON document.

        Every top-level key whose value is a non-null, non-array object and
        which is not reserved metadata becomes a layer.  Other non-reserved
        values are ignored.

        Raises:
            ValueError: If the document root is not an object.
            pydantic.ValidationError: If a layer or item is malformed.
        """
        if not isinstance(document, dict):
            raise ValueError(
                f"document root must be a JSON object, got {type(document).__name__}"
            )
        metadata = {key: document[key] for key in RESERVED_KEYS if key in document}
        layers = {
            key: value
            for key, value in document.items()
            if key not in RESERVED_KEYS and isinstance(value, dict)
        }
        return cls.model_validate({**metadata, "layers": layers})

    # -- Layer/item queries ------------------------------------------------

    def layer_keys(self) -> list[str]:
        return list(self.layers)

    def iter_items(self) -> Iterator[tuple[str, str, LayerItem]]:
        """Yield ``(layer, item_id, item)`` for every item, in document order."""
        for layer_key, items in self.layers.items():
            for item_id, item in items.items():
                yield layer_key, item_id, item

    def resolve_selections(self, selections: UserSelections) -> UserSelections:
        """Return a selection for every layer; absent layers resolve to ``[]``."""
        return {key: list(selections.get(key) or []) for key in self.layers}

    def selected_items(self, selections: UserSelections) -> Iterator[tuple[str, str, LayerItem]]:
        """Yield the selected items that exist, in selection order.

        IDs that are not present in the layer are skipped.
        """
        for layer_key, item_ids in selections.items():
            items = self.layers.get(layer_key)
            if items is None:
                continue
            for item_id in item_ids or []:
                item = items.get(item_id)
                if item is not None:
                    yield layer_key, item_id, item

    def unselected_items(self, selections: UserSelections) -> Iterator[tuple[str, str, LayerItem]]:
        """Yield every item not chosen in its layer, in document order."""
        for layer_key, item_id, item in self.iter_items():
            if item_id not in (selections.get(layer_key) or []):
                yield layer_key, item_id, item

    def unknown_selections(self, selections: UserSelections) -> list[tuple[str, str]]:
        """Return ``(layer, item_id)`` pairs selected but absent from the config."""
        unknown: list[tuple[str, str]] = []
        for layer_key, item_ids in selections.items():
            items = self.layers.get(layer_key, {})
            for item_id in item_ids or []:
                if item_id not in items:
                    unknown.append((layer_key, item_id))
        return unknown

    def default_selections(self) -> UserSelections:
        """Every layer mapped to its default-enabled item IDs."""
        return {
            layer_key: [item_id for item_id, item in items.items() if item.default_enabled]
            for layer_key, items in self.layers.items()
        }
