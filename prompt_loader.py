# prompt_loader.py
import asyncio
import json
from pathlib import Path
from typing import Any, Dict

from exceptions import SchemaLoadError
from utils import log


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


async def load_prompt(path: Path) -> str:
    """Read the long-form extraction prompt.

    Raises:
        SchemaLoadError: if the file cannot be read.
    """
    try:
        return await asyncio.to_thread(_read_text, path)
    except (OSError, UnicodeDecodeError) as exc:
        log.error(f"Failed to load extraction prompt from {path}: {exc}")
        raise SchemaLoadError(f"Failed to load extraction prompt: {exc}") from exc


async def load_schema(path: Path) -> Dict[str, Any]:
    """Read and parse the JSON Schema describing the extraction shape.

    The schema is treated as opaque configuration; only its JSON-ness and
    top-level object type are checked.

    Raises:
        SchemaLoadError: if the file cannot be read or is not a JSON object.
    """
    try:
        raw = await asyncio.to_thread(_read_text, path)
    except (OSError, UnicodeDecodeError) as exc:
        log.error(f"Failed to load extraction schema from {path}: {exc}")
        raise SchemaLoadError(f"Failed to load JSON schema: {exc}") from exc

    try:
        schema = json.loads(raw)
    except json.JSONDecodeError as exc:
        log.error(f"Extraction schema at {path} is not valid JSON: {exc}")
        raise SchemaLoadError(f"Invalid JSON schema: {exc}") from exc

    if not isinstance(schema, dict):
        raise SchemaLoadError(f"JSON schema must be an object, got {type(schema).__name__}")
    return schema
