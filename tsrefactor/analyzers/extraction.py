"""Batched, thread-backed signature extraction over a list of source files."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..config import DEFAULT_EXTENSIONS, DEFAULT_SKIP_DIRS, LimitsConfig, RefactorConfig
from ..logging import get_logger
from ..models import ExtractionStats, FunctionSignature, TypeSignature
from ..repo_scanner import RepoScanner
from .parser import ParseError, SourceParser
from .signatures import extract_functions, extract_types

logger = get_logger("extraction")


class AnalysisCancelledError(RuntimeError):
    """Raised when a cancellation event is set while an analysis is running."""


@dataclass
class ExtractionResult:
    functions: List[FunctionSignature] = field(default_factory=list)
    types: List[TypeSignature] = field(default_factory=list)
    stats: ExtractionStats = field(default_factory=ExtractionStats)


def relative_path(path: Path, project_root: Path) -> str:
    try:
        return path.resolve().relative_to(project_root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


def _extract_file(
    path: Path,
    project_root: Path,
    parser: SourceParser,
    *,
    include_types: bool,
    max_file_size: int,
    verbose: bool,
) -> ExtractionResult:
    result = ExtractionResult()
    rel_path = relative_path(path, project_root)

    try:
        size = path.stat().st_size
        if size > max_file_size:
            if verbose:
                logger.warning("Skipping %s (%d bytes exceeds limit of %d)", rel_path, size, max_file_size)
            result.stats.skipped = 1
            return result
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        if verbose:
            logger.warning("Failed to decode %s as UTF-8", rel_path)
        result.stats.failed = 1
        return result
    except OSError as exc:
        logger.debug("Unable to read %s: %s", rel_path, exc)
        result.stats.skipped = 1
        return result

    try:
        parsed = parser.parse(path, content)
    except ParseError as exc:
        if verbose:
            logger.warning("Failed to parse %s: %s", rel_path, exc)
        result.stats.failed = 1
        return result

    result.functions = extract_functions(parsed, rel_path)
    if include_types:
        result.types = extract_types(parsed, rel_path)
    result.stats.analyzed = 1
    return result


async def extract_signatures(
    files: Sequence[Path],
    project_root: Path,
    *,
    parser: Optional[SourceParser] = None,
    limits: Optional[LimitsConfig] = None,
    include_types: bool = True,
    cancel_event: Optional[threading.Event] = None,
    verbose: bool = False,
) -> ExtractionResult:
    """Parse ``files`` in batches on worker threads and collect their signatures.

    Files beyond ``limits.max_files`` are dropped (and counted as skipped).
    ``cancel_event`` is checked before every batch.
    """
    limits = limits or LimitsConfig()
    parser = parser or SourceParser()
    combined = ExtractionResult()

    selected = list(files)
    if len(selected) > limits.max_files:
        dropped = len(selected) - limits.max_files
        logger.warning(
            "Found %d files; analyzing the first %d and skipping %d",
            len(selected),
            limits.max_files,
            dropped,
        )
        combined.stats.skipped += dropped
        selected = selected[: limits.max_files]

    for start in range(0, len(selected), limits.batch_size):
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError("Analysis cancelled")
        batch = selected[start : start + limits.batch_size]
        logger.debug("Extracting batch of %d files (offset %d)", len(batch), start)
        outcomes = await asyncio.gather(
            *(
                asyncio.to_thread(
                    _extract_file,
                    path,
                    project_root,
                    parser,
                    include_types=include_types,
                    max_file_size=limits.max_file_size,
                    verbose=verbose,
                )
                for path in batch
            )
        )
        for outcome in outcomes:
            combined.functions.extend(outcome.functions)
            combined.types.extend(outcome.types)
            combined.stats.merge(outcome.stats)

    logger.debug(
        "Extraction finished: %d analyzed, %d skipped, %d failed",
        combined.stats.analyzed,
        combined.stats.skipped,
        combined.stats.failed,
    )
    return combined


@dataclass
class FindDuplicatesOptions:
    """Knobs shared by the function and type duplicate finders.

    ``min_similarity`` is accepted for callers that pass it but is not applied;
    the fixed thresholds in :mod:`similarity` decide recommendations.
    """

    verbose: bool = False
    min_similarity: Optional[float] = None
    ignore_tests: bool = True
    extensions: Sequence[str] = DEFAULT_EXTENSIONS
    skip_dirs: Sequence[str] = DEFAULT_SKIP_DIRS
    exclude_paths: Sequence[str] = ()
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    parser: Optional[SourceParser] = None
    cancel_event: Optional[threading.Event] = None

    @classmethod
    def from_config(cls, config: RefactorConfig, **overrides: object) -> "FindDuplicatesOptions":
        options = cls(
            ignore_tests=config.analysis.ignore_tests,
            extensions=tuple(config.analysis.extensions),
            skip_dirs=tuple(config.analysis.skip_dirs),
            exclude_paths=tuple(config.exclude_paths),
            limits=config.limits,
        )
        for key, value in overrides.items():
            setattr(options, key, value)
        return options


def resolve_target(target_path: str | Path, project_root: str | Path) -> Tuple[Path, Path]:
    """Resolve both paths and require ``target_path`` to live inside ``project_root``."""
    root = Path(project_root).expanduser().resolve()
    target = Path(target_path).expanduser()
    if not target.is_absolute():
        target = root / target
    target = target.resolve()
    if target != root and root not in target.parents:
        raise ValueError(f"Target path {target} is outside project root {root}")
    return target, root


def collect_source_files(target: Path, root: Path, options: FindDuplicatesOptions) -> List[Path]:
    scanner = RepoScanner(
        extensions=options.extensions,
        skip_dirs=options.skip_dirs,
        ignore_tests=options.ignore_tests,
        exclude_paths=options.exclude_paths,
    )
    return scanner.scan(target, project_root=root)


async def gather_signatures(
    target_path: str | Path,
    project_root: str | Path,
    options: Optional[FindDuplicatesOptions] = None,
    *,
    include_types: bool = True,
) -> ExtractionResult:
    """Enumerate the analyzable files under ``target_path`` and extract their signatures."""
    options = options or FindDuplicatesOptions()
    target, root = resolve_target(target_path, project_root)
    files = collect_source_files(target, root, options)
    logger.debug("Collected %d source files under %s", len(files), target)
    return await extract_signatures(
        files,
        root,
        parser=options.parser,
        limits=options.limits,
        include_types=include_types,
        cancel_event=options.cancel_event,
        verbose=options.verbose,
    )


__all__ = [
    "AnalysisCancelledError",
    "ExtractionResult",
    "FindDuplicatesOptions",
    "collect_source_files",
    "extract_signatures",
    "gather_signatures",
    "relative_path",
    "resolve_target",
]
