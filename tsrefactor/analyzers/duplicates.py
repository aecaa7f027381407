"""Duplicate function detection: name clusters plus identical-body clusters."""

from __future__ import annotations

import re
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from ..config import DEFAULT_EXTENSIONS
from ..logging import get_logger
from ..models import DuplicateInfo, DuplicateLocation, FunctionSignature, TypeSignature
from ..repo_scanner import find_files, is_declaration_file
from .extraction import FindDuplicatesOptions, gather_signatures
from .similarity import classify, group_similarity

logger = get_logger("duplicates")

MIN_BODY_LENGTH = 20
IDENTICAL_BODY_LABEL = "[identical body] "

_QUICK_SCAN_SKIP_DIRS = ("node_modules", "dist", ".next")
_EXPORTED_FUNCTION = re.compile(r"export\s+(?:async\s+)?function\s+(\w+)")
_EXPORTED_CONST = re.compile(r"export\s+const\s+(\w+)\s*=")


def sort_group_names(members: Iterable[Union[FunctionSignature, TypeSignature]]) -> List[str]:
    """Distinct member names, exported names first, then alphabetical."""
    names = set()
    exported = set()
    for member in members:
        names.add(member.name)
        if member.exported:
            exported.add(member.name)
    return sorted(names, key=lambda name: (name not in exported, name))


def _locations(members: Sequence[FunctionSignature]) -> List[DuplicateLocation]:
    return [DuplicateLocation(file=sig.file, line=sig.line, exported=sig.exported) for sig in members]


def cluster_functions(signatures: Sequence[FunctionSignature]) -> List[DuplicateInfo]:
    """Group signatures into duplicate clusters.

    Same-name groups are scored with the conservative group similarity.
    Bodies at least ``MIN_BODY_LENGTH`` characters long that hash identically
    under different names form an extra ``merge`` cluster each.
    """
    duplicates: List[DuplicateInfo] = []

    by_name: Dict[str, List[FunctionSignature]] = defaultdict(list)
    for sig in signatures:
        by_name[sig.name].append(sig)

    for name, members in by_name.items():
        if len(members) < 2:
            continue
        similarity = group_similarity([sig.normalized_body for sig in members])
        duplicates.append(
            DuplicateInfo(
                name=name,
                locations=_locations(members),
                similarity=similarity,
                recommendation=classify(similarity),
            )
        )

    by_hash: Dict[str, List[FunctionSignature]] = defaultdict(list)
    for sig in signatures:
        if len(sig.normalized_body) < MIN_BODY_LENGTH:
            continue
        by_hash[sig.body_hash].append(sig)

    for members in by_hash.values():
        if len(members) < 2:
            continue
        if len({sig.name for sig in members}) == 1:
            continue
        duplicates.append(
            DuplicateInfo(
                name=IDENTICAL_BODY_LABEL + " / ".join(sort_group_names(members)),
                locations=_locations(members),
                similarity=1.0,
                recommendation="merge",
            )
        )

    return duplicates


async def find_duplicates(
    target_path: str | Path,
    project_root: str | Path,
    options: Optional[FindDuplicatesOptions] = None,
) -> List[DuplicateInfo]:
    """Scan ``target_path`` and return every duplicate function cluster."""
    options = options or FindDuplicatesOptions()
    result = await gather_signatures(target_path, project_root, options, include_types=False)
    duplicates = cluster_functions(result.functions)
    logger.info(
        "Found %d duplicate function groups across %d files (%d skipped, %d failed)",
        len(duplicates),
        result.stats.analyzed,
        result.stats.skipped,
        result.stats.failed,
    )
    return duplicates


def quick_scan_names(
    target_path: str | Path,
    patterns: Sequence[re.Pattern[str]],
    *,
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
) -> List[str]:
    """List ``name: file1, file2`` for names matched by ``patterns`` in more than one file."""
    files_by_name: Dict[str, List[str]] = defaultdict(list)
    for path in find_files(target_path, extensions=extensions, skip_dirs=_QUICK_SCAN_SKIP_DIRS):
        if is_declaration_file(path):
            continue
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Quick scan could not read %s: %s", path, exc)
            continue
        for pattern in patterns:
            for name in pattern.findall(content):
                if str(path) not in files_by_name[name]:
                    files_by_name[name].append(str(path))

    return [f"{name}: {', '.join(files)}" for name, files in files_by_name.items() if len(files) > 1]


def quick_scan_duplicates(target_path: str | Path) -> List[str]:
    """Regex pre-filter for exported functions and consts declared in several files.

    Much cheaper than :func:`find_duplicates` but blind to bodies; treat the
    output as candidates only.
    """
    return quick_scan_names(target_path, (_EXPORTED_FUNCTION, _EXPORTED_CONST))


__all__ = [
    "FindDuplicatesOptions",
    "IDENTICAL_BODY_LABEL",
    "MIN_BODY_LENGTH",
    "cluster_functions",
    "find_duplicates",
    "quick_scan_duplicates",
    "quick_scan_names",
    "sort_group_names",
]
