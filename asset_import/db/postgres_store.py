from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor

from .store import ENTITY_KINDS, StoreError

"""PostgreSQL-backed EntityStore (psycopg2).

Each create/update runs in its own transaction: a failed write rolls back only
itself, earlier writes of the same import stay committed.

Field names are camelCase on the engine side and snake_case columns in the
database; TABLES lists the mapping per entity kind.
"""

__all__ = [
    "TABLES",
    "SCHEMA_DDL",
    "WriteMetrics",
    "PostgresStore",
]

# kind -> (table, {field: column})
TABLES: dict[str, tuple[str, dict[str, str]]] = {
    "category": ("categories", {"name": "name"}),
    "location": ("locations", {"name": "name", "parentId": "parent_id"}),
    "vendor": ("vendors", {"name": "name"}),
    "asset": (
        "assets",
        {
            "name": "name",
            "serialNumber": "serial_number",
            "model": "model",
            "condition": "condition",
            "purchaseDate": "purchase_date",
            "purchasePrice": "purchase_price",
            "notes": "notes",
            "tags": "tags",
            "categoryId": "category_id",
            "locationId": "location_id",
            "vendorId": "vendor_id",
        },
    ),
}

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS categories (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS locations (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    parent_id INTEGER REFERENCES locations(id)
);
CREATE TABLE IF NOT EXISTS vendors (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS assets (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    serial_number TEXT,
    model TEXT,
    condition TEXT,
    purchase_date DATE,
    purchase_price NUMERIC(14, 2),
    notes TEXT,
    tags TEXT[] NOT NULL DEFAULT '{}',
    category_id INTEGER REFERENCES categories(id),
    location_id INTEGER REFERENCES locations(id),
    vendor_id INTEGER REFERENCES vendors(id)
);
"""


@dataclass(frozen=True)
class WriteMetrics:
    """Timing of a single store write."""
    kind: str
    operation: str  # create / update
    elapsed_seconds: float


def _table(kind: str) -> tuple[str, dict[str, str]]:
    if kind not in ENTITY_KINDS:
        raise StoreError(f"unknown entity kind: {kind}")
    return TABLES[kind]


def _from_row(kind: str, row: Mapping[str, Any]) -> dict[str, Any]:
    _, columns = _table(kind)
    record: dict[str, Any] = {"id": row["id"]}
    for field, column in columns.items():
        value = row.get(column)
        if isinstance(value, date):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        record[field] = value
    return record


class PostgresStore:
    """EntityStore over a psycopg2 connection.

    The connection is shared by row workers; a lock serializes cursor use.
    """

    def __init__(
        self,
        conn: Any,
        metrics_callback: Callable[[WriteMetrics], None] | None = None,
    ) -> None:
        self._conn = conn
        self._lock = threading.Lock()
        self._metrics_callback = metrics_callback

    def ensure_schema(self) -> None:
        self._execute(lambda cur: cur.execute(SCHEMA_DDL))

    def _execute(self, action: Callable[[Any], Any]) -> Any:
        with self._lock:
            try:
                with self._conn:  # commit on success / rollback on error
                    with self._conn.cursor(cursor_factory=RealDictCursor) as cur:
                        return action(cur)
            except psycopg2.Error as e:
                raise StoreError(str(e).strip()) from e

    def _select(self, kind: str, criteria: Mapping[str, Any]) -> list[dict[str, Any]]:
        table, columns = _table(kind)
        query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(table))
        params: list[Any] = []
        if criteria:
            clauses = []
            for field, value in criteria.items():
                column = "id" if field == "id" else columns.get(field)
                if column is None:
                    raise StoreError(f"unknown field for {kind}: {field}")
                clauses.append(sql.SQL("{} = %s").format(sql.Identifier(column)))
                params.append(value)
            query = query + sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses)
        query = query + sql.SQL(" ORDER BY id")

        def run(cur: Any) -> list[dict[str, Any]]:
            cur.execute(query, params)
            return [_from_row(kind, r) for r in cur.fetchall()]

        return self._execute(run)

    def list(self, kind: str) -> list[dict[str, Any]]:
        return self._select(kind, {})

    def filter(self, kind: str, criteria: Mapping[str, Any]) -> list[dict[str, Any]]:
        return self._select(kind, criteria)

    def get(self, kind: str, entity_id: Any) -> dict[str, Any] | None:
        rows = self._select(kind, {"id": entity_id})
        return rows[0] if rows else None

    def _column_values(self, kind: str, fields: Mapping[str, Any]) -> tuple[list[str], list[Any]]:
        _, columns = _table(kind)
        cols: list[str] = []
        values: list[Any] = []
        for field, value in fields.items():
            if field == "id":
                continue
            column = columns.get(field)
            if column is None:
                raise StoreError(f"unknown field for {kind}: {field}")
            cols.append(column)
            values.append(value)
        return cols, values

    def _timed(self, kind: str, operation: str, action: Callable[[Any], Any]) -> Any:
        start = time.time()
        try:
            return self._execute(action)
        finally:
            if self._metrics_callback is not None:
                self._metrics_callback(
                    WriteMetrics(kind=kind, operation=operation, elapsed_seconds=time.time() - start)
                )

    def create(self, kind: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        table, _ = _table(kind)
        cols, values = self._column_values(kind, fields)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(",").join(sql.Identifier(c) for c in cols),
            sql.SQL(",").join(sql.Placeholder() * len(cols)),
        )

        def run(cur: Any) -> dict[str, Any]:
            cur.execute(query, values)
            return _from_row(kind, cur.fetchone())

        return self._timed(kind, "create", run)

    def update(self, kind: str, entity_id: Any, fields: Mapping[str, Any]) -> dict[str, Any]:
        table, _ = _table(kind)
        cols, values = self._column_values(kind, fields)
        if not cols:
            existing = self.get(kind, entity_id)
            if existing is None:
                raise StoreError(f"{kind} {entity_id} not found")
            return existing
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(",").join(sql.SQL("{} = %s").format(sql.Identifier(c)) for c in cols),
        )

        def run(cur: Any) -> dict[str, Any]:
            cur.execute(query, [*values, entity_id])
            row = cur.fetchone()
            if row is None:
                raise StoreError(f"{kind} {entity_id} not found")
            return _from_row(kind, row)

        return self._timed(kind, "update", run)
