"""Tests for tsrefactor.logging."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from tsrefactor.logging import LOGGER_NAME, configure_logging, console_level, get_logger, log_stage


@pytest.fixture(autouse=True)
def _restore_logger() -> Iterator[None]:
    logger = logging.getLogger(LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


def test_get_logger_namespaces_children() -> None:
    assert get_logger().name == "tsrefactor"
    assert get_logger("duplicates").name == "tsrefactor.duplicates"


@pytest.mark.parametrize(
    ("verbose", "quiet", "expected"),
    [
        (False, False, logging.INFO),
        (True, False, logging.DEBUG),
        (False, True, logging.WARNING),
        (True, True, logging.DEBUG),
    ],
)
def test_console_level(verbose: bool, quiet: bool, expected: int) -> None:
    assert console_level(verbose=verbose, quiet=quiet) == expected


def test_reconfiguring_replaces_only_its_own_handlers() -> None:
    logger = logging.getLogger(LOGGER_NAME)
    foreign = logging.NullHandler()
    logger.addHandler(foreign)

    configure_logging()
    configure_logging(quiet=True)

    owned = [handler for handler in logger.handlers if handler is not foreign]
    assert foreign in logger.handlers
    assert len(owned) == 1
    assert owned[0].level == logging.WARNING
    assert logger.level == logging.WARNING
    assert logger.propagate is False


def test_log_file_records_debug_even_when_console_is_quiet(tmp_path: Path) -> None:
    log_file = tmp_path / "run.log"

    logger = configure_logging(quiet=True, log_file=log_file)
    get_logger("extraction").debug("Skipping %s", "big.ts")
    for handler in logger.handlers:
        handler.flush()

    assert logger.level == logging.DEBUG
    assert "DEBUG tsrefactor.extraction: Skipping big.ts" in log_file.read_text(encoding="utf-8")


def test_log_stage_reports_start_and_duration(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("stage-timing")

    with caplog.at_level(logging.DEBUG, logger="stage-timing"):
        with log_stage(logger, "Clustering"):
            pass

    started, finished = [record.getMessage() for record in caplog.records]
    assert started == "Clustering started"
    assert finished.startswith("Clustering finished in ")
    assert finished.endswith("s")


def test_log_stage_logs_completion_when_the_stage_raises(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("stage-timing")

    with caplog.at_level(logging.DEBUG, logger="stage-timing"):
        with pytest.raises(ValueError):
            with log_stage(logger, "Planning"):
                raise ValueError("boom")

    assert caplog.records[-1].getMessage().startswith("Planning finished in ")
