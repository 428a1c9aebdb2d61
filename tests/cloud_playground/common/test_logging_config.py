"""
Tests for cloud_playground.common.logging_config: MicrosecondFormatter and configure_logging.
"""

import io
import logging
import re
from collections.abc import Generator
from typing import TypedDict

import pytest

from cloud_playground.common.logging_config import (
    LIBRARY_LOGGERS,
    MicrosecondFormatter,
    configure_logging,
)

TIMESTAMP_PATTERN = r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}"


class LoggingState(TypedDict):
    """Saved state for root and library loggers."""

    root_level: int
    root_handlers: list[logging.Handler]
    lib_levels: dict[str, int]


def _save_logging_state() -> LoggingState:
    root = logging.getLogger()
    return LoggingState(
        root_level=root.level,
        root_handlers=list(root.handlers),
        lib_levels={lib: logging.getLogger(lib).level for lib in LIBRARY_LOGGERS},
    )


def _restore_logging_state(state: LoggingState) -> None:
    root = logging.getLogger()
    root.setLevel(state["root_level"])
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in state["root_handlers"]:
        root.addHandler(handler)
    for lib, level in state["lib_levels"].items():
        logging.getLogger(lib).setLevel(level)


@pytest.fixture
def preserve_logging_state() -> Generator[None, None, None]:
    """Save root logging state before the test and restore it after."""
    state = _save_logging_state()
    yield
    _restore_logging_state(state)


def _record() -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg="Test message",
        args=(),
        exc_info=None,
    )


def test_microsecond_formatter() -> None:
    """Timestamps are truncated to millisecond precision."""
    formatter = MicrosecondFormatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S.%f"
    )
    formatted = formatter.format(_record())
    assert re.match(rf"{TIMESTAMP_PATTERN} - test - INFO - Test message$", formatted), formatted


def test_microsecond_formatter_default_datefmt() -> None:
    formatter = MicrosecondFormatter(fmt="%(asctime)s")
    assert re.fullmatch(TIMESTAMP_PATTERN, formatter.format(_record()))


def test_microsecond_formatter_without_fraction() -> None:
    formatter = MicrosecondFormatter(fmt="%(asctime)s", datefmt="%H:%M:%S")
    assert re.fullmatch(r"\d{2}:\d{2}:\d{2}", formatter.format(_record()))


def test_microsecond_formatter_suffix_after_fraction() -> None:
    formatter = MicrosecondFormatter(fmt="%(asctime)s", datefmt="%H:%M:%S.%f %Y")
    assert re.fullmatch(r"\d{2}:\d{2}:\d{2}\.\d{3} \d{4}", formatter.format(_record()))


def test_configure_logging(preserve_logging_state: None) -> None:
    """configure_logging installs one formatted handler and quiets SDK loggers."""
    configure_logging()
    root_logger = configure_logging(level=logging.INFO)

    # Calling twice does not duplicate handlers
    assert len(root_logger.handlers) == 1
    assert root_logger.level == logging.INFO

    formatter = root_logger.handlers[0].formatter
    assert isinstance(formatter, MicrosecondFormatter)
    assert formatter.datefmt == "%Y-%m-%d %H:%M:%S.%f"

    for lib in LIBRARY_LOGGERS:
        assert logging.getLogger(lib).level == logging.WARNING, lib

    string_io = io.StringIO()
    handler = logging.StreamHandler(string_io)
    handler.setFormatter(formatter)
    root_logger.handlers = [handler]

    logging.getLogger("cloud_playground.test").info("Test message")
    logging.getLogger("botocore").info("This should not appear")
    logging.getLogger("botocore").warning("This should appear")

    log_output = string_io.getvalue()
    assert re.match(
        rf"{TIMESTAMP_PATTERN} - cloud_playground.test - INFO - Test message\n", log_output
    ), log_output
    assert "This should not appear" not in log_output
    assert "This should appear" in log_output


def test_configure_logging_custom_levels(preserve_logging_state: None) -> None:
    root_logger = configure_logging(level=logging.DEBUG, library_level=logging.ERROR)
    assert root_logger.level == logging.DEBUG
    assert logging.getLogger("boto3").level == logging.ERROR
    assert logging.getLogger("oci").level == logging.ERROR


def test_configure_logging_custom_libraries(preserve_logging_state: None) -> None:
    logging.getLogger("aiohttp").setLevel(logging.NOTSET)
    configure_logging(library_level=logging.CRITICAL, libraries=["azure"])
    assert logging.getLogger("azure").level == logging.CRITICAL
    assert logging.getLogger("aiohttp").level == logging.NOTSET
