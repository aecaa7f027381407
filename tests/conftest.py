from __future__ import annotations

import logging
import textwrap
from pathlib import Path
from typing import Callable, Iterator

import pytest

from tests._fixtures.repo_builder import RepoBuilder
from tsrefactor.analyzers.parser import ParsedSource, SourceParser
from tsrefactor.logging import LOGGER_NAME


@pytest.fixture(autouse=True)
def _isolate_tsrefactor_logger() -> Iterator[None]:
    """Undo handlers/level/propagate changes that CLI runs leave on the ``tsrefactor`` logger."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture(scope="session")
def source_parser() -> SourceParser:
    return SourceParser()


@pytest.fixture
def parse(source_parser: SourceParser) -> Callable[..., ParsedSource]:
    """Parse an inline snippet as if it were ``path``."""

    def _parse(content: str, path: str = "src/sample.ts") -> ParsedSource:
        return source_parser.parse(path, textwrap.dedent(content).lstrip("\n"))

    return _parse
