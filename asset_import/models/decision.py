from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .candidate import ValidatedCandidate
from .raw_row import RawRow
from .resolution import Resolution

"""Per-row decisions and batch summaries.

RowDecision is produced by the planner for every input row (analyze phase).
BatchSummary is produced only by the commit phase.
"""

__all__ = [
    "RowOutcome",
    "RowDecision",
    "AnalysisSummary",
    "RowFailure",
    "BatchSummary",
]


class RowOutcome(Enum):
    CREATE = "Create"
    UPDATE = "Update"
    SKIP = "Skip"


@dataclass(frozen=True)
class RowDecision:
    """Planner outcome for one row.

    Invariants:
    - outcome is SKIP iff errors is non-empty
    - outcome is UPDATE iff an existing asset shares the row's serial key;
      existing_asset_id is set only then
    """
    row_number: int
    outcome: RowOutcome
    reason: str
    raw: RawRow
    candidate: ValidatedCandidate
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    references: tuple[Resolution, ...] = ()
    existing_asset_id: Any = None
    existing_asset_name: str | None = None

    @property
    def is_skip(self) -> bool:
        return self.outcome is RowOutcome.SKIP


@dataclass(frozen=True)
class AnalysisSummary:
    """Preview counts of an analyze run."""
    create: int
    update: int
    skip: int

    @property
    def total(self) -> int:
        return self.create + self.update + self.skip


@dataclass(frozen=True)
class RowFailure:
    """Why a row was skipped during commit (kept for operator diagnosis)."""
    row_number: int
    name: str
    reason: str


@dataclass(frozen=True)
class BatchSummary:
    """Result of a commit run.

    skipped counts rows skipped at analyze time plus rows that failed during
    commit. not_processed counts rows never reached because of cancellation.
    """
    created: int
    updated: int
    skipped: int
    asset_ids: list[Any] = field(default_factory=list)
    failures: list[RowFailure] = field(default_factory=list)
    cancelled: bool = False
    not_processed: int = 0
    elapsed_seconds: float = 0.0
