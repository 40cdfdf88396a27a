from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiofiles
import yaml
from pydantic import ValidationError

from vpm_repository.domain.models import Source

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


class SourceError(ValueError):
    """The source configuration is missing, unreadable or invalid."""


def parse_source(text: str, fmt: str = "json") -> Source:
    """
    Parse source configuration text.

    ``fmt`` is either "json" or "yaml".
    """
    try:
        if fmt == "yaml":
            raw: Any = yaml.safe_load(text)
        else:
            raw = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SourceError(f"Source is not valid {fmt.upper()}: {e}") from e

    if not isinstance(raw, dict):
        raise SourceError("Source root must be an object")

    try:
        return Source.model_validate(raw)
    except ValidationError as e:
        raise SourceError(f"Invalid source: {e}") from e


async def load_source(path: Path) -> Source:
    """
    Read and validate the source file at ``path``.

    Raises SourceError for anything that prevents a build from starting.
    """
    try:
        async with aiofiles.open(path, "rb") as f:
            text = (await f.read()).decode("utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise SourceError(f"Cannot read source {path}: {e}") from e

    fmt = "yaml" if path.suffix.lower() in YAML_SUFFIXES else "json"
    source = parse_source(text, fmt)

    if not source.repositories:
        logger.warning(f"{path} lists no repositories; the index will be empty")
    return source
