from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any

import pandas as pd
import psycopg2
from dotenv import load_dotenv

from asset_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from asset_import.db.connection import db_connection
from asset_import.db.postgres_store import PostgresStore, WriteMetrics
from asset_import.db.store import EntityStore, InMemoryStore, StoreError
from asset_import.excel.reader import IngestionError, extract_file, read_raw_rows, write_template
from asset_import.logging.error_log import ErrorLogBuffer
from asset_import.logging.init import log_summary, set_debug, setup_logging
from asset_import.models.config_models import ImportConfig
from asset_import.models.decision import BatchSummary, RowDecision
from asset_import.services.duplicate_scanner import scan_duplicates
from asset_import.services.orchestrator import ProcessingError
from asset_import.services.session import ImportSession
from asset_import.services.summary import analysis_metrics, commit_metrics

"""CLI entrypoint.

Flow:
- Load .env (override) and config/import.yml
- Read the input file (CSV / XLSX)
- Analyze: print the preview table and the analyze SUMMARY line
- With --commit: write to the store and print the commit SUMMARY line

Store selection: PostgreSQL when reachable, in-memory mock store otherwise
(DISABLE_DB_CONNECT=1 forces mock mode).

Exit codes: 0 every row created/updated (or nothing to do), 2 at least one
row skipped or not processed, 1 fatal (config, input file, store).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

PREVIEW_COLUMNS = ["row", "action", "name", "serialNumber", "reason"]

logger = logging.getLogger("asset_import.cli")


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; .env values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Asset bulk import (CSV / XLSX)")
    p.add_argument("--config", type=Path, default=None, help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--file", type=Path, default=None, help="Input CSV / XLSX file (overrides source_file)")
    p.add_argument("--commit", action="store_true", help="Write to the store after the preview")
    p.add_argument("--no-auto-create", action="store_true", help="Do not create missing categories / locations / vendors")
    p.add_argument("--workers", type=int, default=None, help="Row worker pool size")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print headers & first rows then exit")
    p.add_argument("--scan-duplicates", action="store_true", help="Report duplicate records in the store then exit")
    p.add_argument("--write-template", type=Path, default=None, metavar="PATH", help="Write an import template then exit")
    p.add_argument("--init-db", action="store_true", help="Create database tables if missing then exit")
    return p.parse_args(argv)


def _load_cfg(args: argparse.Namespace) -> ImportConfig:
    if args.config is None and not DEFAULT_CONFIG_PATH.exists():
        logger.info(f"no config file at {DEFAULT_CONFIG_PATH}; using defaults")
        cfg = ImportConfig()
    else:
        cfg = load_config(args.config or DEFAULT_CONFIG_PATH)
    if args.workers is not None:
        if args.workers < 1:
            raise ConfigError("--workers must be >= 1")
        cfg = dataclasses.replace(cfg, workers=args.workers)
    return cfg


def _log_write_metrics(m: WriteMetrics) -> None:
    logger.debug(f"store {m.operation} kind={m.kind} elapsed_sec={m.elapsed_seconds:.4f}")


@contextmanager
def _open_store(cfg: ImportConfig) -> Iterator[tuple[EntityStore, str]]:
    """Yield (store, mode) where mode is "live" or "mock"."""
    # テスト等で DB 接続を完全に無効化: DISABLE_DB_CONNECT=1
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        yield InMemoryStore(), "mock"
        return
    with ExitStack() as stack:
        try:
            conn = stack.enter_context(db_connection(cfg.database))
        except (psycopg2.Error, OSError) as e:
            if os.getenv("SUPPRESS_DB_WARNING") == "1":
                logger.debug(f"DB connection failed (suppressed warn) -> fallback to mock mode: {e}")
            else:
                logger.info(f"DB connection failed -> fallback to mock mode: {e}")
            conn = None
        if conn is None:
            yield InMemoryStore(), "mock"
        else:
            yield PostgresStore(conn, metrics_callback=_log_write_metrics), "live"


def _inspect_data(path: Path) -> int:
    result = extract_file(path)
    if not result.ok:
        print(f"inspect: {result.details}")
        return EXIT_FATAL
    print(f"FILE: {path.name} rows={len(result.output)}")
    if result.output:
        print(f"  columns={list(result.output[0].keys())}")
        for row in result.output[:3]:
            print("  sample_row=", row)
    return EXIT_SUCCESS_ALL


def _scan_duplicates(store: EntityStore) -> int:
    report = scan_duplicates(store)
    if not report.success:
        logger.error(f"duplicate scan failed: {report.error}")
        return EXIT_FATAL
    for issue in report.issues:
        logger.warning(f"{issue.type}: {issue.message}")
    log_summary(f"duplicates issues={report.issues_found}")
    return EXIT_SUCCESS_ALL if not report.issues else EXIT_PARTIAL_FAILURE


def _preview_frame(decisions: list[RowDecision]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "row": d.row_number,
                "action": d.outcome.value,
                "name": d.candidate.name,
                "serialNumber": d.candidate.serial_number or "",
                "reason": d.reason,
            }
            for d in decisions
        ],
        columns=PREVIEW_COLUMNS,
    )


def _report_failures(summary: BatchSummary, limit: int) -> None:
    for failure in summary.failures[:limit]:
        logger.warning(f"row {failure.row_number} ({failure.name}): {failure.reason}")
    hidden = len(summary.failures) - limit
    if hidden > 0:
        logger.warning(f"... and {hidden} more failures (see error log)")


def _run_import(args: argparse.Namespace, cfg: ImportConfig, store: EntityStore, path: Path) -> int:
    try:
        rows = read_raw_rows(path)
    except IngestionError as e:
        logger.error(f"input: {e}")
        return EXIT_FATAL

    auto_create = False if args.no_auto_create else None
    session = ImportSession(
        store,
        cfg,
        error_log=ErrorLogBuffer(cfg.logs_directory),
        source_name=path.name,
    )
    decisions = session.analyze(rows, auto_create_entities=auto_create)
    analysis = session.summary()

    with pd.option_context("display.max_colwidth", 80, "display.width", 200):
        print(_preview_frame(decisions).to_string(index=False))
    log_summary(analysis_metrics(analysis))

    if not args.commit:
        logger.info("dry run only; re-run with --commit to import")
        return EXIT_PARTIAL_FAILURE if analysis.skip else EXIT_SUCCESS_ALL

    cancel = threading.Event()
    previous = signal.getsignal(signal.SIGINT)

    def _request_cancel(signum: int, frame: Any) -> None:
        logger.warning("cancel requested; stopping after the current row")
        cancel.set()

    signal.signal(signal.SIGINT, _request_cancel)
    try:
        result = session.commit(cancel=cancel)
    finally:
        signal.signal(signal.SIGINT, previous)

    _report_failures(result, cfg.max_reported_failures)
    log_summary(commit_metrics(result))
    if result.skipped or result.not_processed:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    setup_logging()

    # None のときのみシステム引数を読む ([] はそのまま使う)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    if args.write_template is not None:
        path = write_template(args.write_template)
        logger.info(f"template written: {path}")
        return EXIT_SUCCESS_ALL

    try:
        cfg = _load_cfg(args)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    source = args.file or (Path(cfg.source_file) if cfg.source_file else None)
    if args.inspect_data:
        if source is None:
            logger.error("no input file (use --file or source_file)")
            return EXIT_FATAL
        return _inspect_data(source)

    try:
        with _open_store(cfg) as (store, mode):
            logger.info(f"mode={mode}")
            if args.init_db:
                if not isinstance(store, PostgresStore):
                    logger.error("--init-db requires a database connection")
                    return EXIT_FATAL
                store.ensure_schema()
                logger.info("database schema ready")
                return EXIT_SUCCESS_ALL
            if args.scan_duplicates:
                return _scan_duplicates(store)
            if source is None:
                logger.error("no input file (use --file or source_file)")
                return EXIT_FATAL
            logger.info(f"Importing: {source}")
            return _run_import(args, cfg, store, source)
    except (ProcessingError, StoreError) as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
