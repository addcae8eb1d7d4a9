from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2

from ..models.config_models import DatabaseConfig

"""PostgreSQL connection helpers.

Connection settings resolution order (.env is loaded first by the CLI, with override):
    1. DATABASE_URL / PGDSN -> used as the whole DSN
    2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. database section of config/import.yml (fallback for missing values)
"""

__all__ = [
    "resolve_dsn",
    "db_connection",
]


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn_env:
        return dsn_env
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def db_connection(db_cfg: DatabaseConfig, connect_timeout: int = 5) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Yield a psycopg2 connection; closed on exit.

    Transaction boundaries are owned by the store (one transaction per write).
    """
    conn = psycopg2.connect(resolve_dsn(db_cfg), connect_timeout=connect_timeout)
    try:
        conn.autocommit = False
        yield conn
    finally:
        if not conn.closed:
            conn.close()
