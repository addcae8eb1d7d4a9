from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

"""RawRow model for the asset import tool.

RawRow is the typed form of one extracted spreadsheet row. Only the columns of
the header contract are kept; unknown columns are dropped during parse.
Values are kept exactly as extracted (string or None), validation happens later.
"""

__all__ = [
    "RawRow",
    "HEADER_FIELDS",
    "REQUIRED_HEADERS",
]

# Header contract (column name -> attribute)
HEADER_FIELDS: dict[str, str] = {
    "name": "name",
    "category": "category",
    "location": "location",
    "vendor": "vendor",
    "serialNumber": "serial_number",
    "model": "model",
    "condition": "condition",
    "purchaseDate": "purchase_date",
    "purchasePrice": "purchase_price",
    "notes": "notes",
    "tags": "tags",
}

REQUIRED_HEADERS = ("name",)

# snake_case 列名も受け付ける (serial_number 等)
_ALIASES: dict[str, str] = {attr: attr for attr in HEADER_FIELDS.values()}


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    # pandas NaN (float) は空セル扱い
    if isinstance(value, float) and value != value:
        return None
    return str(value)


@dataclass(frozen=True)
class RawRow:
    """One extracted row restricted to the recognized header fields.

    row_number is the 1-based position of the row among the data rows.
    """
    row_number: int
    name: str | None = None
    category: str | None = None
    location: str | None = None
    vendor: str | None = None
    serial_number: str | None = None
    model: str | None = None
    condition: str | None = None
    purchase_date: str | None = None
    purchase_price: str | None = None
    notes: str | None = None
    tags: str | None = None

    @classmethod
    def parse(cls, mapping: Mapping[str, Any], row_number: int) -> RawRow:
        """Build a RawRow from an any-shape mapping, dropping unrecognized keys."""
        values: dict[str, str | None] = {}
        for key, value in mapping.items():
            column = str(key).strip()
            attr = HEADER_FIELDS.get(column) or _ALIASES.get(column)
            if attr is None:
                continue
            values[attr] = _to_text(value)
        return cls(row_number=row_number, **values)

    def reference_name(self, kind: str) -> str | None:
        """Raw reference name for category / location / vendor."""
        return getattr(self, kind)

    def is_blank(self) -> bool:
        for f in fields(self):
            if f.name == "row_number":
                continue
            value = getattr(self, f.name)
            if value is not None and value.strip():
                return False
        return True
