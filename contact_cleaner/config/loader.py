from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..completion.client import (
    DEFAULT_ASSISTANT_ID,
    DEFAULT_TEMPERATURE,
    DEFAULT_TIMEOUT_SECONDS,
)
from ..csv_table.reader import DEFAULT_ALLOWED_EXTENSIONS, DEFAULT_MAX_FILE_BYTES

"""Config loader.

Responsibilities:
- Load the YAML config (config/cleaner.yml by default)
- Validate it against config_schema.json (shipped next to this module)
- Apply defaults for every optional key
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/cleaner.yml")
DEFAULT_CREDENTIAL_ENV = "CLEANER_API_TOKEN"
DEFAULT_LOGS_DIRECTORY = "./logs"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class CompletionConfig:
    base_url: str
    assistant_id: str
    temperature: float
    timeout_seconds: float


@dataclass(frozen=True)
class InputConfig:
    max_file_bytes: int
    allowed_extensions: tuple[str, ...]


@dataclass(frozen=True)
class CleanerConfig:
    completion: CompletionConfig
    input: InputConfig
    credential_env: str
    logs_directory: str


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or invalid, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path) -> CleanerConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    comp_raw = data["completion"]
    input_raw = data.get("input", {})
    completion = CompletionConfig(
        base_url=comp_raw["base_url"],
        assistant_id=comp_raw.get("assistant_id", DEFAULT_ASSISTANT_ID),
        temperature=float(comp_raw.get("temperature", DEFAULT_TEMPERATURE)),
        timeout_seconds=float(comp_raw.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
    )
    input_cfg = InputConfig(
        max_file_bytes=input_raw.get("max_file_bytes", DEFAULT_MAX_FILE_BYTES),
        allowed_extensions=tuple(
            ext.lower() for ext in input_raw.get("allowed_extensions", DEFAULT_ALLOWED_EXTENSIONS)
        ),
    )
    return CleanerConfig(
        completion=completion,
        input=input_cfg,
        credential_env=data.get("credential_env", DEFAULT_CREDENTIAL_ENV),
        logs_directory=data.get("logs_directory", DEFAULT_LOGS_DIRECTORY),
    )
