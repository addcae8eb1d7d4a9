from __future__ import annotations

import logging
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import Any

from ..db.store import EntityStore
from ..models.snapshot import normalize_key

"""Read-only report of duplicate keys already present in the store.

Keys: asset serial number, category name, vendor name, and location name
within the same parent (root when parentId is empty). All keys are compared
trimmed and lower-cased. The scan never writes and never raises: a failed read
yields a report with success=False.
"""

__all__ = [
    "DuplicateIssue",
    "DuplicateReport",
    "scan_duplicates",
]

logger = logging.getLogger(__name__)

ROOT_PARENT = "root"


@dataclass(frozen=True)
class DuplicateIssue:
    type: str  # duplicate_serial / duplicate_category / duplicate_vendor / duplicate_location
    message: str
    records: tuple[dict[str, Any], ...]


@dataclass
class DuplicateReport:
    success: bool
    issues: list[DuplicateIssue] = field(default_factory=list)
    error: str | None = None

    @property
    def issues_found(self) -> int:
        return len(self.issues)


def _scan(
    records: list[dict[str, Any]],
    key_of: Callable[[dict[str, Any]], Hashable | None],
    issue_type: str,
    message_of: Callable[[dict[str, Any], dict[str, Any]], str],
) -> list[DuplicateIssue]:
    seen: dict[Hashable, dict[str, Any]] = {}
    issues: list[DuplicateIssue] = []
    for record in records:
        key = key_of(record)
        if key is None:
            continue
        first = seen.get(key)
        if first is None:
            seen[key] = record
            continue
        issues.append(
            DuplicateIssue(type=issue_type, message=message_of(first, record), records=(first, record))
        )
    return issues


def _serial_key(asset: dict[str, Any]) -> str | None:
    return normalize_key(asset.get("serialNumber")) or None


def _name_key(entity: dict[str, Any]) -> str | None:
    return normalize_key(entity.get("name")) or None


def _location_key(location: dict[str, Any]) -> tuple[Any, str] | None:
    name = _name_key(location)
    if name is None:
        return None
    return (location.get("parentId") or ROOT_PARENT, name)


def scan_duplicates(store: EntityStore) -> DuplicateReport:
    try:
        assets = store.list("asset")
        categories = store.list("category")
        locations = store.list("location")
        vendors = store.list("vendor")
    except Exception as e:
        logger.error("duplicate scan failed: %s", e)
        return DuplicateReport(success=False, error=str(e))

    issues: list[DuplicateIssue] = []
    issues += _scan(
        assets, _serial_key, "duplicate_serial",
        lambda a, b: (
            f'Duplicate serial number "{b.get("serialNumber")}" found in assets: '
            f'{a.get("name")} and {b.get("name")}'
        ),
    )
    issues += _scan(
        categories, _name_key, "duplicate_category",
        lambda a, b: f'Duplicate category name "{b.get("name")}"',
    )
    issues += _scan(
        vendors, _name_key, "duplicate_vendor",
        lambda a, b: f'Duplicate vendor name "{b.get("name")}"',
    )
    issues += _scan(
        locations, _location_key, "duplicate_location",
        lambda a, b: f'Duplicate location name "{b.get("name")}" under same parent',
    )
    return DuplicateReport(success=True, issues=issues)
