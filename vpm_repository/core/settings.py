"""
Build settings read from the environment.

The variable names follow the GitHub Actions convention for action inputs
(``INPUT_<NAME>``), so the builder runs unchanged as an action step.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from vpm_repository.services.github import GITHUB_API_URL

INPUT_ENV_VAR = "INPUT_INPUT"
OUTPUT_ENV_VAR = "INPUT_OUTPUT"
CACHE_ENV_VAR = "INPUT_CACHE"
TOKEN_ENV_VARS = ("INPUT_REPO-TOKEN", "INPUT_REPO_TOKEN")
FORMAT_OUTPUT_ENV_VAR = "INPUT_FORMAT_OUTPUT"
MAX_CONCURRENCY_ENV_VAR = "INPUT_MAX_CONCURRENCY"
API_URL_ENV_VAR = "INPUT_API_URL"
LOG_LEVEL_ENV_VAR = "INPUT_LOG_LEVEL"


class SettingsError(ValueError):
    """An environment variable holds a value the builder cannot use."""


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_path: Path = Field(default=Path("source.json"))
    output_path: Path = Field(default=Path("index.json"))
    cache_path: Path = Field(default=Path("cache.json"))
    token: Optional[str] = Field(default=None, repr=False)
    format_output: bool = False
    max_concurrency: int = Field(default=8, ge=1)
    api_url: str = GITHUB_API_URL
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not isinstance(logging.getLevelName(normalized), int):
            raise ValueError(f"Unknown log level: {value}")
        return normalized

    @property
    def indent(self) -> Optional[int]:
        return 2 if self.format_output else None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from ``environ`` (``os.environ`` by default).

    Empty variables count as unset, except ``INPUT_FORMAT_OUTPUT`` which
    enables pretty-printing whenever it is non-empty.
    """
    env = os.environ if environ is None else environ

    def get(name: str) -> Optional[str]:
        value = env.get(name)
        return value if value else None

    values: dict = {}
    for field, name in (
        ("input_path", INPUT_ENV_VAR),
        ("output_path", OUTPUT_ENV_VAR),
        ("cache_path", CACHE_ENV_VAR),
        ("max_concurrency", MAX_CONCURRENCY_ENV_VAR),
        ("api_url", API_URL_ENV_VAR),
        ("log_level", LOG_LEVEL_ENV_VAR),
    ):
        value = get(name)
        if value is not None:
            values[field] = value

    for name in TOKEN_ENV_VARS:
        token = get(name)
        if token is not None:
            values["token"] = token
            break

    values["format_output"] = get(FORMAT_OUTPUT_ENV_VAR) is not None

    try:
        return Settings.model_validate(values)
    except ValidationError as e:
        raise SettingsError(f"Invalid settings: {e}") from e
