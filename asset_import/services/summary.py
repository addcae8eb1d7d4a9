from __future__ import annotations

from ..models.decision import AnalysisSummary, BatchSummary

"""SUMMARY line rendering.

Formats:
    SUMMARY phase=analyze rows={total} create={c} update={u} skip={s}
    SUMMARY phase=commit created={c} updated={u} skipped={s} not_processed={n} cancelled={true|false} elapsed_sec={e}

The functions return the text after the ``SUMMARY`` label; the CLI passes
them to ``log_summary`` which adds the label.
"""

__all__ = [
    "format_seconds",
    "analysis_metrics",
    "commit_metrics",
]


def format_seconds(value: float) -> str:
    """Render seconds without scientific notation ("0", "2", "0.000123", "1.25")."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def analysis_metrics(summary: AnalysisSummary) -> str:
    return (
        f"phase=analyze rows={summary.total} "
        f"create={summary.create} "
        f"update={summary.update} "
        f"skip={summary.skip}"
    )


def commit_metrics(summary: BatchSummary) -> str:
    return (
        f"phase=commit created={summary.created} "
        f"updated={summary.updated} "
        f"skipped={summary.skipped} "
        f"not_processed={summary.not_processed} "
        f"cancelled={'true' if summary.cancelled else 'false'} "
        f"elapsed_sec={format_seconds(summary.elapsed_seconds)}"
    )
