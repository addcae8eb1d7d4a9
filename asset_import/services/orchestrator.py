from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, TypeVar

from ..db.store import EntityStore, StoreError
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportConfig
from ..models.decision import AnalysisSummary, BatchSummary, RowDecision, RowFailure, RowOutcome
from ..models.error_record import ErrorRecord
from ..models.raw_row import RawRow
from ..models.resolution import REFERENCE_KINDS, Resolution, ResolutionMode
from ..models.snapshot import Snapshot
from .planner import plan
from .progress import RowProgress
from .resolver import EntityResolver
from .validator import validate

"""Batch orchestration: analyze (dry run) and commit.

analyze():
    snapshot once -> per row: validate -> resolve references (preview) -> plan.
    Never writes to the store.

commit():
    fresh snapshot -> per non-Skip row: re-resolve references (commit mode,
    auto-create) -> re-check the serial number against the commit snapshot ->
    store update / create. A failing row is logged, recorded in the JSONL error
    log and counted as skipped; the batch always runs to the end unless
    cancelled. There is no batch-wide transaction: committed rows stay
    committed.

Rows can run on a bounded thread pool (``workers``). Results are always
returned in input order.
"""

__all__ = [
    "ProcessingError",
    "BatchOrchestrator",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

PHASE_ANALYZE = "analyze"
PHASE_COMMIT = "commit"


class ProcessingError(Exception):
    """Fatal orchestration error (snapshot unavailable, commit without analyze)."""


@dataclass(frozen=True)
class _RowResult:
    outcome: RowOutcome
    asset_id: Any = None
    failure: RowFailure | None = None


class BatchOrchestrator:
    """Runs the analyze and commit phases against one EntityStore."""

    def __init__(
        self,
        store: EntityStore,
        config: ImportConfig | None = None,
        *,
        error_log: ErrorLogBuffer | None = None,
        source_name: str = "<input>",
    ) -> None:
        self.store = store
        self.config = config or ImportConfig()
        self.error_log = error_log if error_log is not None else ErrorLogBuffer(self.config.logs_directory)
        self.source_name = source_name

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _auto_create(self, override: bool | None) -> bool:
        return self.config.auto_create_entities if override is None else override

    def take_snapshot(self, phase: str) -> Snapshot:
        try:
            return Snapshot.take(self.store)
        except StoreError as e:
            raise ProcessingError(f"Failed to load existing records ({phase}): {e}") from e

    def _map_rows(
        self,
        func: Callable[[T], R],
        items: Sequence[T],
        description: str,
        on_result: Callable[[R], dict[str, Any]] | None = None,
    ) -> list[R]:
        """Apply func to every item, preserving input order."""
        results: list[R] = []
        with RowProgress(len(items), description=description) as progress:
            if self.config.workers <= 1 or len(items) <= 1:
                mapped: Iterable[R] = map(func, items)
                for result in mapped:
                    results.append(result)
                    progress.advance(**(on_result(result) if on_result else {}))
            else:
                # Executor.map は入力順で結果を返す
                with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                    for result in pool.map(func, items):
                        results.append(result)
                        progress.advance(**(on_result(result) if on_result else {}))
        return results

    def _record(self, phase: str, row: int, error_type: str, message: str) -> None:
        self.error_log.append(
            ErrorRecord.create(
                file=self.source_name,
                phase=phase,
                row=row,
                error_type=error_type,
                message=message,
            )
        )

    def _flush_error_log(self) -> None:
        try:
            path = self.error_log.flush()
        except OSError as e:
            logger.error("failed to write error log: %s", e)
            return
        if path is not None:
            logger.info("row errors written to %s", path)

    # ------------------------------------------------------------------
    # analyze
    # ------------------------------------------------------------------
    def analyze(
        self,
        rows: Sequence[RawRow],
        auto_create_entities: bool | None = None,
        snapshot: Snapshot | None = None,
    ) -> list[RowDecision]:
        """Dry run: one RowDecision per input row, in input order.

        A snapshot loaded by the caller may be passed in; it is only read.
        """
        auto_create = self._auto_create(auto_create_entities)
        if snapshot is None:
            snapshot = self.take_snapshot(PHASE_ANALYZE)
        resolver = EntityResolver(snapshot, matching=self.config.matching)

        def analyze_row(raw: RawRow) -> RowDecision:
            candidate, errors = validate(raw)
            references = [
                resolver.resolve(kind, raw.reference_name(kind.value), ResolutionMode.PREVIEW, auto_create)
                for kind in REFERENCE_KINDS
            ]
            return plan(raw, candidate, errors, references, snapshot.assets_by_serial)

        logger.info(
            "analyzing %d rows (auto_create=%s, workers=%d)",
            len(rows), auto_create, self.config.workers,
        )
        decisions = self._map_rows(analyze_row, rows, "Analyzing")

        for d in decisions:
            if d.is_skip:
                error_type = (
                    "REFERENCE_ERROR"
                    if any(r.is_failure for r in d.references)
                    else "VALIDATION_ERROR"
                )
                self._record(PHASE_ANALYZE, d.row_number, error_type, d.reason)
                logger.debug("row %d skipped: %s", d.row_number, d.reason)
        self._flush_error_log()
        return decisions

    @staticmethod
    def summarize(decisions: Iterable[RowDecision]) -> AnalysisSummary:
        counts = {RowOutcome.CREATE: 0, RowOutcome.UPDATE: 0, RowOutcome.SKIP: 0}
        for d in decisions:
            counts[d.outcome] += 1
        return AnalysisSummary(
            create=counts[RowOutcome.CREATE],
            update=counts[RowOutcome.UPDATE],
            skip=counts[RowOutcome.SKIP],
        )

    # ------------------------------------------------------------------
    # commit
    # ------------------------------------------------------------------
    def commit(
        self,
        decisions: Sequence[RowDecision],
        auto_create_entities: bool | None = None,
        cancel: threading.Event | None = None,
    ) -> BatchSummary:
        """Apply analyzed decisions to the store.

        Args:
            decisions: output of analyze() for the same rows
            auto_create_entities: overrides the configured default when given
            cancel: set from another thread to stop at the next row boundary

        Returns:
            BatchSummary with created / updated / skipped counts and the ids
            of written assets in input order.
        """
        started = time.perf_counter()
        auto_create = self._auto_create(auto_create_entities)
        snapshot = self.take_snapshot(PHASE_COMMIT)
        resolver = EntityResolver(snapshot, store=self.store, matching=self.config.matching)

        pre_skipped = sum(1 for d in decisions if d.is_skip)
        pending = [d for d in decisions if not d.is_skip]

        def commit_row(decision: RowDecision) -> _RowResult | None:
            if cancel is not None and cancel.is_set():
                return None
            return self._commit_row(decision, snapshot, resolver, auto_create)

        counters = {"created": 0, "updated": 0, "failed": 0}

        def tally(result: _RowResult | None) -> dict[str, Any]:
            if result is None:
                return {}
            if result.failure is not None:
                counters["failed"] += 1
            elif result.outcome is RowOutcome.CREATE:
                counters["created"] += 1
            else:
                counters["updated"] += 1
            return counters

        logger.info(
            "committing %d rows (%d skipped at analysis, auto_create=%s)",
            len(pending), pre_skipped, auto_create,
        )
        results = self._map_rows(commit_row, pending, "Committing", on_result=tally)

        asset_ids: list[Any] = []
        failures: list[RowFailure] = []
        not_processed = 0
        for result in results:
            if result is None:
                not_processed += 1
            elif result.failure is not None:
                failures.append(result.failure)
            else:
                asset_ids.append(result.asset_id)

        cancelled = not_processed > 0
        if cancelled:
            logger.warning("commit cancelled: %d rows not processed", not_processed)
        self._flush_error_log()

        return BatchSummary(
            created=counters["created"],
            updated=counters["updated"],
            skipped=pre_skipped + len(failures),
            asset_ids=asset_ids,
            failures=failures,
            cancelled=cancelled,
            not_processed=not_processed,
            elapsed_seconds=time.perf_counter() - started,
        )

    def _fail(self, decision: RowDecision, error_type: str, message: str) -> _RowResult:
        self._record(PHASE_COMMIT, decision.row_number, error_type, message)
        return _RowResult(
            outcome=RowOutcome.SKIP,
            failure=RowFailure(
                row_number=decision.row_number,
                name=decision.candidate.name,
                reason=message,
            ),
        )

    def _commit_row(
        self,
        decision: RowDecision,
        snapshot: Snapshot,
        resolver: EntityResolver,
        auto_create: bool,
    ) -> _RowResult:
        raw = decision.raw
        try:
            references = [
                resolver.resolve(kind, raw.reference_name(kind.value), ResolutionMode.COMMIT, auto_create)
                for kind in REFERENCE_KINDS
            ]
        except Exception as e:
            logger.error("row %d: reference resolution failed: %s", decision.row_number, e)
            return self._fail(decision, "RESOLUTION_ERROR", str(e))

        problems = [m for m in (r.error_message() for r in references) if m]
        if problems:
            # 分析後に参照先が消えた / 自動作成に失敗した
            message = ", ".join(problems)
            logger.warning("row %d skipped at commit: %s", decision.row_number, message)
            return self._fail(decision, "RESOLUTION_ERROR", message)

        payload = decision.candidate.to_payload()
        payload.update(_reference_ids(references))

        serial_key = decision.candidate.serial_key
        try:
            if serial_key:
                with snapshot.key_lock("asset", serial_key):
                    return self._write_asset(decision, snapshot, payload, serial_key)
            return self._write_asset(decision, snapshot, payload, None)
        except StoreError as e:
            logger.error("row %d: store write failed: %s", decision.row_number, e)
            return self._fail(decision, "STORE_WRITE_ERROR", str(e))
        except Exception as e:
            logger.error("row %d: unexpected error: %s", decision.row_number, e, exc_info=True)
            return self._fail(decision, "UNEXPECTED_ERROR", str(e))

    def _write_asset(
        self,
        decision: RowDecision,
        snapshot: Snapshot,
        payload: dict[str, Any],
        serial_key: str | None,
    ) -> _RowResult:
        existing = snapshot.find_asset(serial_key)
        if existing is not None:
            asset = self.store.update("asset", existing["id"], payload)
            logger.debug("row %d: updated asset id=%s", decision.row_number, existing["id"])
            return _RowResult(outcome=RowOutcome.UPDATE, asset_id=asset.get("id", existing["id"]))

        if decision.outcome is RowOutcome.UPDATE:
            logger.warning(
                "row %d: asset '%s' no longer exists, creating a new one",
                decision.row_number, decision.existing_asset_name,
            )
        asset = self.store.create("asset", payload)
        snapshot.add_asset(asset)
        logger.debug("row %d: created asset id=%s", decision.row_number, asset.get("id"))
        return _RowResult(outcome=RowOutcome.CREATE, asset_id=asset.get("id"))


def _reference_ids(references: Iterable[Resolution]) -> dict[str, Any]:
    # 空欄の参照は送らない (更新時に既存の参照を消さない)
    return {r.kind.id_field: r.entity_id for r in references if r.entity_id is not None}
