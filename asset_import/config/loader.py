from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DatabaseConfig, ImportConfig, MatchingConfig

"""Config loader.

Responsibilities:
- Load YAML config (config/import.yml by default)
- Validate against config_schema.json (shipped next to this module)
- Apply defaults for every optional key
"""

__all__ = [
    "ConfigError",
    "SCHEMA_PATH",
    "DEFAULT_CONFIG_PATH",
    "load_config",
    "config_from_dict",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / not JSON, or data violates the schema
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


def config_from_dict(data: dict[str, Any]) -> ImportConfig:
    """Build ImportConfig from already-parsed config data (validated first)."""
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    _validate_config_schema(data)

    matching_raw = data.get("matching") or {}
    matching = MatchingConfig(
        fuzzy_threshold=float(matching_raw.get("fuzzy_threshold", MatchingConfig.fuzzy_threshold)),
        max_fuzzy_candidates=int(
            matching_raw.get("max_fuzzy_candidates", MatchingConfig.max_fuzzy_candidates)
        ),
    )
    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return ImportConfig(
        source_file=data.get("source_file"),
        auto_create_entities=data.get("auto_create_entities", True),
        matching=matching,
        workers=data.get("workers", 1),
        logs_directory=data.get("logs_directory", "./logs"),
        max_reported_failures=data.get("max_reported_failures", 10),
        database=db,
    )


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    return config_from_dict(data)
