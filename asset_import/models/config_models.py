from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the asset import tool.

Built by asset_import.config.loader from config/import.yml (YAML + JSON schema).
"""

__all__ = [
    "DatabaseConfig",
    "MatchingConfig",
    "ImportConfig",
]

DEFAULT_FUZZY_THRESHOLD = 0.8
DEFAULT_MAX_FUZZY_CANDIDATES = 3


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class MatchingConfig:
    """Vendor fuzzy matching parameters."""
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD
    max_fuzzy_candidates: int = DEFAULT_MAX_FUZZY_CANDIDATES


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for an import run."""
    source_file: str | None = None  # default input when --file is not given
    auto_create_entities: bool = True
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    workers: int = 1  # row worker pool size
    logs_directory: str = "./logs"
    max_reported_failures: int = 10
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
