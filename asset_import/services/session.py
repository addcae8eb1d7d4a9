from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..db.store import EntityStore
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportConfig
from ..models.decision import AnalysisSummary, BatchSummary, RowDecision
from ..models.raw_row import RawRow
from ..models.snapshot import Snapshot
from .orchestrator import BatchOrchestrator, ProcessingError

"""Import session: cached reference data and the analyze -> commit gate.

LoadCache memoizes one expensive load (the existing-records snapshot). A
second caller that arrives while a load is running waits for that load
instead of starting another one. Subscribers are told about every state
change; subscribe() returns the matching unsubscribe function.

ImportSession owns one LoadCache and one BatchOrchestrator. Every analyze()
drops the cached snapshot and reads the store again; the cache keeps the
latest snapshot visible to subscribers. commit() is only allowed after
analyze() and consumes the analysis: a second commit needs a new analysis.
"""

__all__ = [
    "CacheState",
    "LoadCache",
    "CommitNotAllowedError",
    "ImportSession",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheState(Generic[T]):
    value: T | None
    error: BaseException | None
    loading: bool


Listener = Callable[[CacheState[Any]], None]


class LoadCache(Generic[T]):
    """Single-value cache with in-flight de-duplication."""

    def __init__(self, loader: Callable[[], T]) -> None:
        self._loader = loader
        self._lock = threading.Lock()
        self._value: T | None = None
        self._inflight: Future[T] | None = None
        self._listeners: list[Listener] = []

    @property
    def value(self) -> T | None:
        return self._value

    @property
    def loading(self) -> bool:
        return self._inflight is not None

    def _notify(self, state: CacheState[T]) -> None:
        for listener in list(self._listeners):
            listener(state)

    def get_or_load(self) -> T:
        with self._lock:
            if self._value is not None:
                return self._value
            if self._inflight is None:
                inflight: Future[T] = Future()
                self._inflight = inflight
                owner = True
            else:
                inflight = self._inflight
                owner = False
        if not owner:
            return inflight.result()

        self._notify(CacheState(value=None, error=None, loading=True))
        try:
            value = self._loader()
        except BaseException as e:
            with self._lock:
                self._inflight = None
            inflight.set_exception(e)
            self._notify(CacheState(value=None, error=e, loading=False))
            raise
        with self._lock:
            self._value = value
            self._inflight = None
        inflight.set_result(value)
        self._notify(CacheState(value=value, error=None, loading=False))
        return value

    def invalidate(self) -> None:
        """Drop the cached value; the next get_or_load() reloads."""
        with self._lock:
            self._value = None
        self._notify(CacheState(value=None, error=None, loading=self.loading))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener and call it once with the current state."""
        self._listeners.append(listener)
        listener(CacheState(value=self._value, error=None, loading=self.loading))

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


class CommitNotAllowedError(ProcessingError):
    """commit() was called without a preceding analyze()."""


class ImportSession:
    """One operator session: analyze a file, review, then commit."""

    def __init__(
        self,
        store: EntityStore,
        config: ImportConfig | None = None,
        *,
        error_log: ErrorLogBuffer | None = None,
        source_name: str = "<input>",
    ) -> None:
        self.orchestrator = BatchOrchestrator(
            store, config, error_log=error_log, source_name=source_name
        )
        self.records: LoadCache[Snapshot] = LoadCache(
            lambda: self.orchestrator.take_snapshot("analyze")
        )
        self.decisions: list[RowDecision] | None = None
        self._auto_create: bool | None = None

    def analyze(self, rows: Sequence[RawRow], auto_create_entities: bool | None = None) -> list[RowDecision]:
        # 分析ごとに store を読み直す (他の書き込みを反映)
        self.records.invalidate()
        snapshot = self.records.get_or_load()
        self.decisions = self.orchestrator.analyze(rows, auto_create_entities, snapshot=snapshot)
        self._auto_create = auto_create_entities
        return self.decisions

    def summary(self) -> AnalysisSummary:
        if self.decisions is None:
            raise CommitNotAllowedError("No analysis available. Analyze the file first.")
        return self.orchestrator.summarize(self.decisions)

    def commit(self, cancel: threading.Event | None = None) -> BatchSummary:
        if self.decisions is None:
            raise CommitNotAllowedError("No analysis available. Analyze the file before importing.")
        decisions, self.decisions = self.decisions, None
        try:
            return self.orchestrator.commit(decisions, self._auto_create, cancel=cancel)
        finally:
            # store が変わったのでキャッシュ破棄
            self.records.invalidate()
            logger.debug("reference cache invalidated after commit")
