"""Gathering the user's per-layer item selections.

Selections come from one of three places: the template's defaults,
``--select layer=a,b`` command-line arguments, or interactive prompts.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

from rich.prompt import Confirm, Prompt
from rich.table import Table

from template_forge.engine.models import TemplateConfig, UserSelections
from template_forge.template.source import is_valid_template_source
from template_forge.utils import console, print_detail, print_warning

ALL_KEYWORD = "all"
NONE_KEYWORD = "none"

Ask = Callable[..., str]


def parse_selection_args(entries: Iterable[str]) -> UserSelections:
    """Parse ``layer=id1,id2`` entries into a selection.

    Repeated layers are merged; an entry with nothing after ``=`` selects
    no items in that layer.

    Raises:
        ValueError: An entry has no ``=`` or an empty layer name.
    """
    selections: UserSelections = {}
    for entry in entries:
        layer, sep, ids = entry.partition("=")
        layer = layer.strip()
        if not sep or not layer:
            raise ValueError(f"Invalid selection '{entry}', expected layer=id1,id2")
        chosen = selections.setdefault(layer, [])
        for item_id in ids.split(","):
            item_id = item_id.strip()
            if item_id and item_id not in chosen:
                chosen.append(item_id)
    return selections


def _parse_answer(answer: str, available: list[str]) -> list[str]:
    text = answer.strip()
    if text.lower() == ALL_KEYWORD:
        return list(available)
    if not text or text.lower() == NONE_KEYWORD:
        return []
    chosen: list[str] = []
    for item_id in text.split(","):
        item_id = item_id.strip()
        if item_id and item_id not in chosen:
            chosen.append(item_id)
    return chosen


def _layer_table(template_config: TemplateConfig, layer: str) -> Table:
    table = Table(title=f"Layer: {layer}", show_header=True, header_style="bold cyan")
    table.add_column("ID", no_wrap=True)
    table.add_column("Item")
    table.add_column("Default", justify="center")
    for item_id, item in template_config.layers[layer].items():
        label = item.display_name(item_id)
        if item.description:
            label = f"{label} ({item.description})"
        table.add_row(item_id, label, "✓" if item.default_enabled else "")
    return table


def prompt_selections(template_config: TemplateConfig, ask: Ask = Prompt.ask) -> UserSelections:
    """Ask for the items to keep in every layer.

    Each answer is a comma-separated list of item IDs, or ``all`` / ``none``.
    Unknown IDs re-prompt the layer.
    """
    selections: UserSelections = {}
    defaults = template_config.default_selections()
    for layer in template_config.layer_keys():
        items = template_config.layers[layer]
        available = list(items)
        if not available:
            print_detail(f"Layer '{layer}' has no items, skipping.")
            selections[layer] = []
            continue

        console.print(_layer_table(template_config, layer))
        while True:
            answer = ask(
                f"Select items for '{layer}' (comma-separated IDs, '{ALL_KEYWORD}' or '{NONE_KEYWORD}')",
                default=",".join(defaults[layer]) or NONE_KEYWORD,
                console=console,
            )
            chosen = _parse_answer(answer, available)
            unknown = [item_id for item_id in chosen if item_id not in items]
            if not unknown:
                selections[layer] = chosen
                break
            print_warning(f"Unknown item(s) in '{layer}': {', '.join(unknown)}")
    return selections


def prompt_template_url(default_url: str, ask: Ask = Prompt.ask) -> str:
    """Ask for a template git URL or local path until a valid one is given."""
    while True:
        answer = ask("Template repository URL", default=default_url, console=console).strip()
        if is_valid_template_source(answer):
            return answer
        print_warning("Please enter a valid git repository URL or local path.")


def is_directory_empty(directory: Path) -> bool:
    return not directory.exists() or not any(directory.iterdir())


def confirm_target_directory(
    directory: Path,
    assume_yes: bool = False,
    confirm: Callable[..., bool] = Confirm.ask,
) -> bool:
    """Return True when it is fine to write the project into *directory*.

    The current working directory and empty or missing directories are
    always accepted; anything else needs confirmation.
    """
    directory = Path(directory)
    if assume_yes or directory.resolve() == Path.cwd().resolve() or is_directory_empty(directory):
        return True
    return confirm(
        f"Directory {directory} is not empty. Files may be overwritten. Continue?",
        default=False,
        console=console,
    )
