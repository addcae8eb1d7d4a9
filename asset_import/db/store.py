from __future__ import annotations

import copy
import threading
from collections.abc import Mapping
from typing import Any, Protocol

"""Entity store interface and the in-memory implementation.

The engine talks to storage only through EntityStore. Records are plain dicts
with an ``id`` key and camelCase field names (serialNumber, categoryId, ...).

InMemoryStore is used in mock mode (no database reachable) and in tests.
"""

__all__ = [
    "ENTITY_KINDS",
    "StoreError",
    "EntityStore",
    "InMemoryStore",
]

ENTITY_KINDS = ("asset", "category", "location", "vendor")


class StoreError(Exception):
    """Raised by store implementations for any failed read or write."""


class EntityStore(Protocol):
    def list(self, kind: str) -> list[dict[str, Any]]: ...

    def filter(self, kind: str, criteria: Mapping[str, Any]) -> list[dict[str, Any]]: ...

    def get(self, kind: str, entity_id: Any) -> dict[str, Any] | None: ...

    def create(self, kind: str, fields: Mapping[str, Any]) -> dict[str, Any]: ...

    def update(self, kind: str, entity_id: Any, fields: Mapping[str, Any]) -> dict[str, Any]: ...


def _check_kind(kind: str) -> None:
    if kind not in ENTITY_KINDS:
        raise StoreError(f"unknown entity kind: {kind}")


class InMemoryStore:
    """Thread-safe dict-backed store. Ids are sequential integers per store."""

    def __init__(self, seed: Mapping[str, list[Mapping[str, Any]]] | None = None) -> None:
        self._lock = threading.Lock()
        self._next_id = 1
        self._data: dict[str, dict[Any, dict[str, Any]]] = {k: {} for k in ENTITY_KINDS}
        for kind, records in (seed or {}).items():
            for record in records:
                self.create(kind, record)

    def list(self, kind: str) -> list[dict[str, Any]]:
        _check_kind(kind)
        with self._lock:
            return [copy.deepcopy(r) for r in self._data[kind].values()]

    def filter(self, kind: str, criteria: Mapping[str, Any]) -> list[dict[str, Any]]:
        return [
            r for r in self.list(kind)
            if all(r.get(field) == value for field, value in criteria.items())
        ]

    def get(self, kind: str, entity_id: Any) -> dict[str, Any] | None:
        _check_kind(kind)
        with self._lock:
            record = self._data[kind].get(entity_id)
            return copy.deepcopy(record) if record is not None else None

    def create(self, kind: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        _check_kind(kind)
        with self._lock:
            # seed で id 指定があれば尊重
            entity_id = fields.get("id")
            if entity_id is None:
                entity_id = self._next_id
            if isinstance(entity_id, int):
                self._next_id = max(self._next_id, entity_id + 1)
            record = {**copy.deepcopy(dict(fields)), "id": entity_id}
            self._data[kind][entity_id] = record
            return copy.deepcopy(record)

    def update(self, kind: str, entity_id: Any, fields: Mapping[str, Any]) -> dict[str, Any]:
        _check_kind(kind)
        with self._lock:
            record = self._data[kind].get(entity_id)
            if record is None:
                raise StoreError(f"{kind} {entity_id} not found")
            record.update(copy.deepcopy(dict(fields)))
            record["id"] = entity_id
            return copy.deepcopy(record)
