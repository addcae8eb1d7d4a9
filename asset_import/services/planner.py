from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from ..models.candidate import ValidatedCandidate
from ..models.decision import RowDecision, RowOutcome
from ..models.raw_row import RawRow
from ..models.resolution import Resolution

"""Reconciliation planner: one row -> Create / Update / Skip.

Rules:
1. Any row error or failed reference -> Skip, reason = errors joined by ", "
2. Non-blank serial number found in the asset index -> Update
3. Otherwise -> Create. Rows without a serial number can never match an
   existing asset, so importing them twice creates two assets.
4. Fuzzy matches and pending creations are disclosed as warnings appended to
   the reason; they never turn into errors.
"""

__all__ = [
    "REASON_NEW",
    "REASON_NEW_NO_SERIAL",
    "plan",
]

REASON_NEW = "New asset"
REASON_NEW_NO_SERIAL = "New asset (no serial number)"



def plan(
    raw: RawRow,
    candidate: ValidatedCandidate,
    row_errors: Sequence[str],
    references: Sequence[Resolution],
    asset_index: Mapping[str, dict[str, Any]],
) -> RowDecision:
    errors = list(row_errors)
    warnings: list[str] = []
    for ref in references:
        message = ref.error_message()
        if message:
            errors.append(message)
            continue
        warning = ref.warning_message()
        if warning:
            warnings.append(warning)

    common = dict(
        row_number=raw.row_number,
        raw=raw,
        candidate=candidate,
        references=tuple(references),
    )

    if errors:
        return RowDecision(
            outcome=RowOutcome.SKIP,
            reason=", ".join(errors),
            errors=tuple(errors),
            warnings=tuple(warnings),
            **common,
        )

    existing = asset_index.get(candidate.serial_key) if candidate.serial_key else None
    if existing is not None:
        outcome = RowOutcome.UPDATE
        reason = f"Update existing asset: {existing.get('name')}"
    elif candidate.serial_key:
        outcome = RowOutcome.CREATE
        reason = REASON_NEW
    else:
        outcome = RowOutcome.CREATE
        reason = REASON_NEW_NO_SERIAL

    if warnings:
        reason += f" ({', '.join(warnings)})"

    return RowDecision(
        outcome=outcome,
        reason=reason,
        warnings=tuple(warnings),
        existing_asset_id=existing.get("id") if existing is not None else None,
        existing_asset_name=existing.get("name") if existing is not None else None,
        **common,
    )
