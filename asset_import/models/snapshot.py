from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .resolution import ReferenceKind

if TYPE_CHECKING:
    from ..db.store import EntityStore

"""Phase-scoped snapshot of existing entities.

A Snapshot is taken once at the start of each phase (analyze or commit) and
is the only read source for that phase. During commit it is mutated locally
when entities/assets are created so later rows observe earlier creations.
"""

__all__ = [
    "Snapshot",
    "normalize_key",
]


def normalize_key(value: Any) -> str:
    """Comparison key for names and serial numbers (trim + lower-case)."""
    if value is None:
        return ""
    return str(value).strip().lower()


@dataclass
class Snapshot:
    categories: list[dict[str, Any]] = field(default_factory=list)
    locations: list[dict[str, Any]] = field(default_factory=list)
    vendors: list[dict[str, Any]] = field(default_factory=list)
    assets_by_serial: dict[str, dict[str, Any]] = field(default_factory=dict)
    _mutex: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)
    _key_locks: dict[tuple[str, str], threading.Lock] = field(
        default_factory=dict, repr=False, compare=False
    )

    @classmethod
    def take(cls, store: EntityStore) -> Snapshot:
        """Read every reference collection and the asset index from the store."""
        assets = store.list("asset")
        index: dict[str, dict[str, Any]] = {}
        for asset in assets:
            key = normalize_key(asset.get("serialNumber"))
            # 重複シリアルは先勝ち
            if key and key not in index:
                index[key] = asset
        return cls(
            categories=list(store.list(ReferenceKind.CATEGORY.value)),
            locations=list(store.list(ReferenceKind.LOCATION.value)),
            vendors=list(store.list(ReferenceKind.VENDOR.value)),
            assets_by_serial=index,
        )

    def entities(self, kind: ReferenceKind) -> list[dict[str, Any]]:
        if kind is ReferenceKind.CATEGORY:
            return self.categories
        if kind is ReferenceKind.LOCATION:
            return self.locations
        return self.vendors

    def list_entities(self, kind: ReferenceKind) -> list[dict[str, Any]]:
        """Copy of one reference collection in snapshot order."""
        with self._mutex:
            return list(self.entities(kind))

    def find_exact(self, kind: ReferenceKind, name: str) -> dict[str, Any] | None:
        key = normalize_key(name)
        with self._mutex:
            for entity in self.entities(kind):
                if normalize_key(entity.get("name")) == key:
                    return entity
        return None

    def add_entity(self, kind: ReferenceKind, entity: dict[str, Any]) -> None:
        with self._mutex:
            self.entities(kind).append(entity)

    def find_asset(self, serial_key: str | None) -> dict[str, Any] | None:
        if not serial_key:
            return None
        with self._mutex:
            return self.assets_by_serial.get(serial_key)

    def add_asset(self, asset: dict[str, Any]) -> None:
        key = normalize_key(asset.get("serialNumber"))
        if not key:
            return
        with self._mutex:
            self.assets_by_serial.setdefault(key, asset)

    def key_lock(self, namespace: str, key: str) -> threading.Lock:
        """Lock guarding one (namespace, normalized key) critical section."""
        with self._mutex:
            lock = self._key_locks.get((namespace, key))
            if lock is None:
                lock = threading.Lock()
                self._key_locks[(namespace, key)] = lock
            return lock
