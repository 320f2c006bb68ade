from __future__ import annotations

import logging

import pytest

from dynaconn_py import configure_logging
from dynaconn_py.log import get_logger, logger, resolve_level, timed


def test_resolve_level() -> None:
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(" WARN ") == logging.WARNING
    assert resolve_level(None) == logging.INFO
    assert resolve_level(logging.ERROR) == logging.ERROR
    with pytest.raises(ValueError, match="unknown log level: loud"):
        resolve_level("loud")


def test_configure_logging_adds_the_default_handler_once() -> None:
    before = list(logger.handlers)
    try:
        configure_logging("warning")
        configure_logging("debug")

        added = [h for h in logger.handlers if h not in before]
        assert len(added) == 1
        assert logger.level == logging.DEBUG
    finally:
        for handler in [h for h in logger.handlers if h not in before]:
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)


def test_timed_logs_the_statement_with_elapsed_millis(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="dynaconn_py")
    log = get_logger("test")

    with timed(log, "PUT ITEM IN TABLE Order"):
        pass

    record = caplog.records[-1]
    assert record.name == "dynaconn_py.test"
    assert record.getMessage().startswith("PUT ITEM IN TABLE Order [")
    assert record.getMessage().endswith(" ms]")
