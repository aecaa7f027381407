"""Logger hierarchy, console/file handlers and stage timing for tsrefactor runs."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

LOGGER_NAME = "tsrefactor"
CONSOLE_FORMAT = "[tsrefactor] %(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Marks handlers installed by configure_logging so a rerun replaces only those.
_OWNED = "_tsrefactor_handler"


def get_logger(name: str | None = None) -> logging.Logger:
    """``get_logger("duplicates")`` -> ``tsrefactor.duplicates``."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)


def console_level(*, verbose: bool = False, quiet: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    return logging.WARNING if quiet else logging.INFO


def _owned(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _OWNED, True)
    return handler


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: str | Path | None = None,
) -> logging.Logger:
    """Install the console handler (and an optional file sink) on the ``tsrefactor`` logger.

    The console shows DEBUG with ``verbose``, WARNING with ``quiet`` and INFO
    otherwise. The file sink always records DEBUG so per-file parse and
    size warnings survive a quiet console.
    """
    level = console_level(verbose=verbose, quiet=quiet)
    logger = logging.getLogger(LOGGER_NAME)
    logger.propagate = False
    for handler in [handler for handler in logger.handlers if getattr(handler, _OWNED, False)]:
        logger.removeHandler(handler)
        handler.close()

    console = _owned(logging.StreamHandler())
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        sink = _owned(logging.FileHandler(Path(log_file), encoding="utf-8"))
        sink.setLevel(logging.DEBUG)
        sink.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(sink)
        level = logging.DEBUG

    logger.setLevel(level)
    return logger


@contextmanager
def log_stage(logger: logging.Logger, stage: str) -> Iterator[None]:
    """Log the wall-clock duration of one pipeline stage at DEBUG."""
    started = time.perf_counter()
    logger.debug("%s started", stage)
    try:
        yield
    finally:
        logger.debug("%s finished in %.2fs", stage, time.perf_counter() - started)


__all__ = ["LOGGER_NAME", "configure_logging", "console_level", "get_logger", "log_stage"]
