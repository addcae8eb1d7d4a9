from __future__ import annotations

import math
import re
from datetime import date

from ..models.candidate import Condition, ValidatedCandidate
from ..models.raw_row import RawRow

"""Row validation and normalization.

validate() never raises: every problem is appended to the returned error
list. Checks are independent, so one bad field does not hide another.
"""

__all__ = [
    "ERR_NAME_REQUIRED",
    "ERR_DATE_FORMAT",
    "ERR_PRICE",
    "validate",
    "normalize_tags",
    "capitalize",
]

ERR_NAME_REQUIRED = "Name is required."
ERR_DATE_FORMAT = "Invalid date format. Use YYYY-MM-DD."
ERR_PRICE = "Invalid purchase price."

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_PRICE_STRIP_RE = re.compile(r"[$,]")


def capitalize(value: str) -> str:
    """'gOOD' -> 'Good'."""
    if not value:
        return value
    return value[0].upper() + value[1:].lower()


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def normalize_tags(raw: str | None) -> tuple[str, ...]:
    """Split on comma, trim, drop empties, de-duplicate (first wins), title-case words."""
    if not raw:
        return ()
    seen: list[str] = []
    for part in raw.split(","):
        tag = part.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return tuple(" ".join(capitalize(w) for w in tag.split(" ")) for tag in seen)


def _parse_condition(raw: str | None, errors: list[str]) -> Condition | None:
    text = (raw or "").strip()
    if not text:
        return Condition.GOOD
    label = capitalize(text)
    if label not in Condition.labels():
        errors.append(
            f"Invalid condition: '{raw}'. Must be one of: {', '.join(Condition.labels())}."
        )
        return None
    return Condition(label)


def _parse_date(raw: str | None, errors: list[str]) -> str | None:
    text = _clean(raw)
    if text is None:
        return None
    if not _DATE_RE.match(text):
        errors.append(ERR_DATE_FORMAT)
        return None
    try:
        date.fromisoformat(text)
    except ValueError:
        # 2023-02-30 のような暦上存在しない日付
        errors.append(ERR_DATE_FORMAT)
        return None
    return text


def _parse_price(raw: str | None, errors: list[str]) -> float | None:
    text = _clean(raw)
    if text is None:
        return None
    try:
        price = float(_PRICE_STRIP_RE.sub("", text))
    except ValueError:
        errors.append(ERR_PRICE)
        return None
    if not math.isfinite(price) or price < 0:
        errors.append(ERR_PRICE)
        return None
    return price


def validate(row: RawRow) -> tuple[ValidatedCandidate, list[str]]:
    """Validate and coerce one RawRow.

    Returns:
        (candidate, errors). The candidate is always built; fields that failed
        validation are None.
    """
    errors: list[str] = []

    name = (row.name or "").strip()
    if not name:
        errors.append(ERR_NAME_REQUIRED)

    condition = _parse_condition(row.condition, errors)
    purchase_date = _parse_date(row.purchase_date, errors)
    purchase_price = _parse_price(row.purchase_price, errors)

    candidate = ValidatedCandidate(
        name=name,
        serial_number=_clean(row.serial_number),
        condition=condition,
        purchase_date=purchase_date,
        purchase_price=purchase_price,
        model=_clean(row.model),
        notes=_clean(row.notes),
        tags=normalize_tags(row.tags),
    )
    return candidate, errors
