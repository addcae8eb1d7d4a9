"""Domain models for the asset import reconciliation engine."""

from .candidate import Condition, ValidatedCandidate
from .config_models import DatabaseConfig, ImportConfig, MatchingConfig
from .decision import AnalysisSummary, BatchSummary, RowDecision, RowFailure, RowOutcome
from .raw_row import HEADER_FIELDS, REQUIRED_HEADERS, RawRow
from .resolution import (
    REFERENCE_KINDS,
    ReferenceKind,
    Resolution,
    ResolutionMode,
    ResolutionStatus,
)
from .snapshot import Snapshot, normalize_key

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    "MatchingConfig",
    # Row models
    "RawRow",
    "HEADER_FIELDS",
    "REQUIRED_HEADERS",
    "Condition",
    "ValidatedCandidate",
    # Resolution
    "ReferenceKind",
    "REFERENCE_KINDS",
    "Resolution",
    "ResolutionMode",
    "ResolutionStatus",
    "Snapshot",
    "normalize_key",
    # Decisions
    "RowOutcome",
    "RowDecision",
    "AnalysisSummary",
    "RowFailure",
    "BatchSummary",
]
