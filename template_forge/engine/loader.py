"""Loading of ``template.config.json`` from a cloned template."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from pydantic import ValidationError

from template_forge.engine.models import TemplateConfig
from template_forge.errors import ConfigNotFound, ConfigParseError
from template_forge.utils import print_error, print_success

CONFIG_FILENAME = "template.config.json"


async def load_template_config(
    directory: str | Path,
    config_filename: str = CONFIG_FILENAME,
) -> TemplateConfig:
    """Read and validate the template configuration in *directory*.

    Args:
        directory: Root of the cloned template.
        config_filename: Name of the configuration document.

    Returns:
        The parsed ``TemplateConfig``.

    Raises:
        ConfigNotFound: The file does not exist.
        ConfigParseError: The file is unreadable, not JSON, or does not
            describe a valid set of layers.
    """
    config_path = Path(directory) / config_filename

    if not await asyncio.to_thread(config_path.is_file):
        error = ConfigNotFound(directory, config_path)
        print_error(str(error))
        raise error

    try:
        raw = await asyncio.to_thread(config_path.read_text, "utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigParseError(config_path, f"cannot read file ({exc})", exc) from exc

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigParseError(config_path, f"not valid JSON ({exc})", exc) from exc

    try:
        template_config = TemplateConfig.from_document(document)
    except ValidationError as exc:
        raise ConfigParseError(
            config_path, f"{exc.error_count()} validation error(s)\n{exc}", exc
        ) from exc
    except ValueError as exc:
        raise ConfigParseError(config_path, str(exc), exc) from exc

    print_success("✔ Template configuration loaded successfully.")
    return template_config
