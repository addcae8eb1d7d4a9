from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.raw_row import HEADER_FIELDS, REQUIRED_HEADERS, RawRow

"""Spreadsheet extraction (CSV / XLSX) with pandas.

Row 1 is the header row, every following row is a data row. All cells are
handed over as strings (or None for empty cells); typing happens in the row
validator, not here.

Extraction never raises for unreadable files: it returns an ExtractionResult
with status="error" and the reader message in ``details``. rows_from_extraction
turns a failed result into an IngestionError that aborts the run.
"""

__all__ = [
    "SUPPORTED_SUFFIXES",
    "IngestionError",
    "MissingColumnsError",
    "ExtractionResult",
    "extract_file",
    "rows_from_extraction",
    "read_raw_rows",
    "write_template",
]

SUPPORTED_SUFFIXES = {".csv", ".xlsx"}

TEMPLATE_SAMPLE_ROWS: list[dict[str, str]] = [
    {
        "name": "Refrigerator", "category": "Appliances", "location": "Kitchen",
        "vendor": "Home Depot", "serialNumber": "RF123456", "model": "Samsung RF28R7351SR",
        "condition": "New", "purchaseDate": "2023-01-15", "purchasePrice": "1899.99",
        "notes": "Energy Star certified", "tags": "appliance,kitchen,new",
    },
    {
        "name": "Laptop", "category": "Electronics", "location": "Home Office",
        "vendor": "Best Buy", "serialNumber": "LP789012", "model": 'MacBook Pro 13"',
        "condition": "Good", "purchaseDate": "2024-01-01", "purchasePrice": "1499.00",
        "notes": "", "tags": "electronics",
    },
]


class IngestionError(Exception):
    """File-level failure; aborts the run before any row is processed."""


class MissingColumnsError(IngestionError):
    """Raised when required columns are missing from the header row."""


@dataclass
class ExtractionResult:
    status: str  # "success" / "error"
    output: list[dict[str, str | None]] = field(default_factory=list)
    details: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


def _cell_to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    if value is pd.NaT:
        return None
    # Excel の日付セルは datetime で来る -> 日付部分のみ ISO 文字列化
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _read_frame(path: Path) -> pd.DataFrame:
    if path.suffix.lower() == ".csv":
        # keep_default_na=False: "NA" / "null" 等をそのまま文字列として保持
        return pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""])
    return pd.read_excel(path, sheet_name=0, dtype=object, engine="openpyxl")


def extract_file(path: Path) -> ExtractionResult:
    """Read a CSV/XLSX file into string-valued row mappings."""
    if not path.exists():
        return ExtractionResult(status="error", details=f"File not found: {path}")
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        return ExtractionResult(
            status="error",
            details=f"Invalid file type '{path.suffix}'. Please select a CSV or XLSX file.",
        )
    try:
        df = _read_frame(path)
    except Exception as e:
        return ExtractionResult(status="error", details=f"Failed to parse {path.name}: {e}")

    columns = [str(c).strip() for c in df.columns]
    output: list[dict[str, str | None]] = []
    for raw in df.itertuples(index=False, name=None):
        output.append({col: _cell_to_text(val) for col, val in zip(columns, raw, strict=False)})
    return ExtractionResult(status="success", output=output)


def rows_from_extraction(result: ExtractionResult) -> list[RawRow]:
    """Turn an extraction result into RawRows.

    Raises:
        IngestionError: extraction failed (details surfaced verbatim) or the
            file has no data rows
        MissingColumnsError: a required header is missing
    """
    if not result.ok:
        raise IngestionError(result.details or "Failed to parse file.")
    if not result.output:
        raise IngestionError("File contains no data rows.")

    headers = {str(h).strip() for h in result.output[0].keys()}
    missing = [
        h for h in REQUIRED_HEADERS
        if h not in headers and HEADER_FIELDS.get(h, h) not in headers
    ]
    if missing:
        raise MissingColumnsError(f"Missing required headers: {', '.join(missing)}")

    # 空行は除外 (行番号はファイル上の位置のまま)
    rows = [RawRow.parse(row, row_number=idx) for idx, row in enumerate(result.output, start=1)]
    rows = [r for r in rows if not r.is_blank()]
    if not rows:
        raise IngestionError("File contains no data rows.")
    return rows


def read_raw_rows(path: Path) -> list[RawRow]:
    """extract_file + rows_from_extraction."""
    return rows_from_extraction(extract_file(path))


def write_template(path: Path) -> Path:
    """Write an import template with the header contract and two sample rows."""
    df = pd.DataFrame(TEMPLATE_SAMPLE_ROWS, columns=list(HEADER_FIELDS.keys()))
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".xlsx":
        df.to_excel(path, index=False, engine="openpyxl")
    else:
        df.to_csv(path, index=False)
    return path
