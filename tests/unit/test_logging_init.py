from __future__ import annotations

import logging
from io import StringIO

import asset_import.logging.init as log_init
from asset_import.logging.init import (
    APP_LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    reset_logging,
    set_debug,
    setup_logging,
)


def _capture() -> tuple[logging.Logger, StringIO]:
    reset_logging()
    logger = setup_logging()
    stream = StringIO()
    logger.handlers[0].setStream(stream)
    return logger, stream


def test_setup_logging_is_idempotent():
    reset_logging()
    logger = setup_logging()
    assert logger.name == APP_LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert logger.propagate is False
    assert setup_logging() is logger
    assert get_logger() is logger


def test_labeled_prefixes():
    logger, stream = _capture()
    logger.info("hello")
    logger.warning("careful")
    logger.error("broken")
    log_summary("phase=analyze rows=1 create=1 update=0 skip=0")
    assert stream.getvalue().splitlines() == [
        "INFO hello",
        "WARN careful",
        "ERROR broken",
        "SUMMARY phase=analyze rows=1 create=1 update=0 skip=0",
    ]


def test_module_loggers_propagate_to_app_logger():
    _, stream = _capture()
    logging.getLogger("asset_import.services.orchestrator").info("row 3 skipped")
    assert stream.getvalue() == "INFO row 3 skipped\n"


def test_set_debug_toggles_level():
    logger, stream = _capture()
    logger.debug("hidden")
    set_debug(True)
    logger.debug("shown")
    set_debug(False)
    assert logger.level == logging.INFO
    assert stream.getvalue() == "DEBUG shown\n"


def test_formatter_appends_traceback_for_errors_only():
    fmt = LabeledFormatter()
    try:
        raise ValueError("boom")
    except ValueError:
        import sys
        exc_info = sys.exc_info()
    err = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, exc_info)
    warn = logging.LogRecord("x", logging.WARNING, __file__, 1, "meh", None, exc_info)
    assert "ValueError: boom" in fmt.format(err)
    assert fmt.format(warn) == "WARN meh"
    assert LabeledFormatter.LEVEL_LABELS[SUMMARY_LEVEL] == "SUMMARY"


def test_reset_logging_clears_global():
    setup_logging()
    reset_logging()
    assert log_init._logger is None
