from __future__ import annotations

import logging

from contact_cleaner.logging.init import (
    APP_LOGGER_NAME,
    SUMMARY_LEVEL,
    get_logger,
    log_summary,
    reset_logging,
    set_debug,
    setup_logging,
)


def test_setup_logging_is_idempotent():
    reset_logging()
    first = setup_logging()
    second = setup_logging()

    assert first is second
    assert first.name == APP_LOGGER_NAME
    assert len(first.handlers) == 1
    assert first.level == logging.INFO
    assert first.propagate is False
    assert logging.getLevelName(SUMMARY_LEVEL) == "SUMMARY"


def test_labels(capsys):
    reset_logging()
    logger = setup_logging()

    logger.info("loaded")
    logger.warning("careful")
    logger.error("broken")
    log_summary("rows=1/1")

    lines = capsys.readouterr().out.splitlines()
    assert lines == ["INFO loaded", "WARN careful", "ERROR broken", "SUMMARY rows=1/1"]


def test_debug_hidden_until_enabled(capsys):
    reset_logging()
    logger = setup_logging()

    logger.debug("hidden")
    set_debug(True)
    logger.debug("shown")

    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "DEBUG debug mode enabled" in out
    assert "DEBUG shown" in out

    set_debug(False)
    assert get_logger().level == logging.INFO


def test_module_loggers_propagate_to_app_logger(capsys):
    reset_logging()
    setup_logging()

    logging.getLogger("contact_cleaner.services.orchestrator").warning("row 3/5 failed: boom")

    assert "WARN row 3/5 failed: boom" in capsys.readouterr().out


def test_error_with_exception_includes_traceback(capsys):
    reset_logging()
    logger = setup_logging()

    try:
        raise ValueError("bad value")
    except ValueError:
        logger.exception("failed")

    out = capsys.readouterr().out
    assert out.startswith("ERROR failed\n")
    assert "ValueError: bad value" in out


def test_reset_logging_removes_handlers():
    logger = setup_logging()
    reset_logging()

    assert logger.handlers == []
