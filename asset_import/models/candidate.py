from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""ValidatedCandidate model and Condition enum.

A ValidatedCandidate is the typed, normalized form of a RawRow after the
row validator ran. It is always produced, even when the row has errors; the
planner decides whether it may be written.
"""

__all__ = [
    "Condition",
    "ValidatedCandidate",
]


class Condition(Enum):
    """Physical condition of an asset."""
    NEW = "New"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"

    @classmethod
    def labels(cls) -> list[str]:
        return [c.value for c in cls]


@dataclass(frozen=True)
class ValidatedCandidate:
    """Normalized asset fields extracted from one row."""
    name: str
    serial_number: str | None = None
    condition: Condition | None = Condition.GOOD  # None only when the input was invalid
    purchase_date: str | None = None  # YYYY-MM-DD
    purchase_price: float | None = None
    model: str | None = None
    notes: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def serial_key(self) -> str | None:
        """Natural key used for create/update reconciliation."""
        if self.serial_number is None:
            return None
        key = self.serial_number.strip().lower()
        return key or None

    def to_payload(self) -> dict[str, Any]:
        """Asset fields as sent to the store (reference ids are added by the caller)."""
        return {
            "name": self.name,
            "serialNumber": self.serial_number,
            "model": self.model,
            "condition": self.condition.value if self.condition else None,
            "purchaseDate": self.purchase_date,
            "purchasePrice": self.purchase_price,
            "notes": self.notes,
            "tags": list(self.tags),
        }
