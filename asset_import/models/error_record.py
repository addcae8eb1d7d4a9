from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for row-level error logging.

Rows that are skipped or fail during an import run are written as one JSON
object per line. row=-1 marks a run-level error (no specific row).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Source file being imported
        phase: analyze / commit
        row: Row number (1-based). -1 for run-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human-readable reason
    """
    timestamp: str
    file: str
    phase: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, phase: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            phase=phase,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
