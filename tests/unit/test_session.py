from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest

from asset_import.models.decision import RowOutcome
from asset_import.models.raw_row import RawRow
from asset_import.services.session import CommitNotAllowedError, ImportSession, LoadCache


def test_load_cache_memoizes():
    loader = MagicMock(return_value={"x": 1})
    cache = LoadCache(loader)
    assert cache.get_or_load() == {"x": 1}
    assert cache.get_or_load() == {"x": 1}
    assert loader.call_count == 1
    assert cache.value == {"x": 1}


def test_load_cache_shares_inflight_load():
    started = threading.Event()
    release = threading.Event()
    calls = []

    def slow_loader():
        calls.append(1)
        started.set()
        release.wait(timeout=5)
        return "loaded"

    cache = LoadCache(slow_loader)
    with ThreadPoolExecutor(max_workers=4) as pool:
        first = pool.submit(cache.get_or_load)
        started.wait(timeout=5)
        others = [pool.submit(cache.get_or_load) for _ in range(3)]
        time.sleep(0.05)
        assert cache.loading is True
        release.set()
        results = [first.result(timeout=5)] + [f.result(timeout=5) for f in others]

    assert results == ["loaded"] * 4
    assert len(calls) == 1
    assert cache.loading is False


def test_load_cache_invalidate_reloads():
    values = iter(["a", "b"])
    cache = LoadCache(lambda: next(values))
    assert cache.get_or_load() == "a"
    cache.invalidate()
    assert cache.value is None
    assert cache.get_or_load() == "b"


def test_load_cache_error_is_raised_and_not_cached():
    loader = MagicMock(side_effect=[RuntimeError("down"), "ok"])
    cache = LoadCache(loader)
    with pytest.raises(RuntimeError, match="down"):
        cache.get_or_load()
    assert cache.loading is False
    assert cache.get_or_load() == "ok"


def test_load_cache_subscribe_and_unsubscribe():
    cache = LoadCache(lambda: 42)
    states = []
    unsubscribe = cache.subscribe(states.append)
    assert states[0].value is None and states[0].loading is False

    cache.get_or_load()
    assert [s.loading for s in states] == [False, True, False]
    assert states[-1].value == 42

    unsubscribe()
    cache.invalidate()
    assert len(states) == 3
    unsubscribe()  # 二重解除は無害


def test_session_commit_requires_analysis(empty_store, error_log):
    session = ImportSession(empty_store, error_log=error_log)
    with pytest.raises(CommitNotAllowedError):
        session.commit()
    with pytest.raises(CommitNotAllowedError):
        session.summary()


def test_session_commit_consumes_analysis(empty_store, error_log):
    session = ImportSession(empty_store, error_log=error_log)
    rows = [RawRow.parse({"name": "Desk", "serialNumber": "D1"}, row_number=1)]
    session.analyze(rows)
    assert session.summary().create == 1

    result = session.commit()
    assert result.created == 1
    with pytest.raises(CommitNotAllowedError):
        session.commit()

    # commit 後は再分析で最新状態を反映
    session.analyze(rows)
    assert session.summary().update == 1


def test_session_reanalyze_reads_store_again(empty_store, error_log):
    session = ImportSession(empty_store, error_log=error_log)
    rows = [RawRow.parse({"name": "Fridge", "serialNumber": "SN1"}, row_number=1)]
    [first] = session.analyze(rows)
    assert first.outcome is RowOutcome.CREATE

    # 別の書き込みで同じシリアルの資産が作られた
    empty_store.create("asset", {"name": "Fridge", "serialNumber": "SN1"})
    [second] = session.analyze(rows)
    assert second.outcome is RowOutcome.UPDATE

    result = session.commit()
    assert (result.created, result.updated) == (0, 1)


def test_session_snapshot_reads_each_kind_once_per_analysis(empty_store, error_log):
    session = ImportSession(empty_store, error_log=error_log)
    rows = [RawRow.parse({"name": "Desk"}, row_number=1)]
    with patch.object(empty_store, "list", wraps=empty_store.list) as spy:
        session.analyze(rows)
        session.analyze(rows)
    # 1 snapshot = asset / category / location / vendor の 4 回
    assert spy.call_count == 8


def test_session_passes_auto_create_choice_to_commit(empty_store, error_log):
    session = ImportSession(empty_store, error_log=error_log)
    rows = [RawRow.parse({"name": "Drill", "category": "Tools"}, row_number=1)]
    decisions = session.analyze(rows, auto_create_entities=False)
    assert decisions[0].is_skip
    result = session.commit()
    assert result.skipped == 1
    assert empty_store.list("category") == []
