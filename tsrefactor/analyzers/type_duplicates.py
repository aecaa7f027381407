"""Duplicate interface and type alias detection."""

from __future__ import annotations

import re
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..logging import get_logger
from ..models import TypeDuplicateInfo, TypeDuplicateLocation, TypeSignature
from .duplicates import quick_scan_names, sort_group_names
from .extraction import FindDuplicatesOptions, gather_signatures
from .similarity import MERGE_THRESHOLD, TYPE_RENAME_THRESHOLD, classify, min_pairwise, type_similarity

logger = get_logger("type_duplicates")

MIN_STRUCTURE_LENGTH = 5
IDENTICAL_STRUCTURE_LABEL = "[identical structure] "

_EXPORTED_INTERFACE = re.compile(r"export\s+interface\s+(\w+)")
_EXPORTED_TYPE = re.compile(r"export\s+type\s+(\w+)\s*=")


def _group_kind(members: Sequence[TypeSignature]) -> str:
    kinds = {sig.kind for sig in members}
    return kinds.pop() if len(kinds) == 1 else "mixed"


def _locations(members: Sequence[TypeSignature]) -> List[TypeDuplicateLocation]:
    return [
        TypeDuplicateLocation(file=sig.file, line=sig.line, exported=sig.exported, name=sig.name)
        for sig in members
    ]


def field_difference(first: TypeSignature, second: TypeSignature) -> Tuple[List[str], List[str], List[str]]:
    """Return ``(common, only_in_first, only_in_second)`` field names, each sorted."""
    fields_first = set(first.fields)
    fields_second = set(second.fields)
    return (
        sorted(fields_first & fields_second),
        sorted(fields_first - fields_second),
        sorted(fields_second - fields_first),
    )


def cluster_types(
    signatures: Sequence[TypeSignature],
    *,
    include_interfaces: bool = True,
    include_types: bool = True,
) -> List[TypeDuplicateInfo]:
    """Group type declarations into same-name and identical-structure clusters."""
    selected = [
        sig
        for sig in signatures
        if (sig.kind == "interface" and include_interfaces) or (sig.kind == "type" and include_types)
    ]
    duplicates: List[TypeDuplicateInfo] = []

    by_name: Dict[str, List[TypeSignature]] = defaultdict(list)
    for sig in selected:
        by_name[sig.name].append(sig)

    for name, members in by_name.items():
        if len(members) < 2:
            continue
        similarity = min_pairwise(members, type_similarity)
        kind = _group_kind(members)
        info = TypeDuplicateInfo(
            name=name,
            kind=kind,  # type: ignore[arg-type]
            locations=_locations(members),
            similarity=similarity,
            recommendation=classify(
                similarity,
                merge_threshold=MERGE_THRESHOLD,
                rename_threshold=TYPE_RENAME_THRESHOLD,
            ),
        )
        if kind == "interface" and len(members) == 2:
            first, second = members
            common, only_first, only_second = field_difference(first, second)
            info.common_fields = common
            if only_first or only_second:
                info.difference = (
                    f"Only in {first.file}: {', '.join(only_first) or 'none'}; "
                    f"Only in {second.file}: {', '.join(only_second) or 'none'}"
                )
        duplicates.append(info)

    by_hash: Dict[str, List[TypeSignature]] = defaultdict(list)
    for sig in selected:
        if len(sig.normalized_structure) < MIN_STRUCTURE_LENGTH:
            continue
        by_hash[sig.structure_hash].append(sig)

    for members in by_hash.values():
        if len(members) < 2 or len({sig.name for sig in members}) == 1:
            continue
        duplicates.append(
            TypeDuplicateInfo(
                name=IDENTICAL_STRUCTURE_LABEL + " / ".join(sort_group_names(members)),
                kind=_group_kind(members),  # type: ignore[arg-type]
                locations=_locations(members),
                similarity=1.0,
                recommendation="merge",
            )
        )

    return duplicates


async def find_type_duplicates(
    target_path: str | Path,
    project_root: str | Path,
    options: Optional[FindDuplicatesOptions] = None,
    *,
    include_interfaces: bool = True,
    include_types: bool = True,
) -> List[TypeDuplicateInfo]:
    """Scan ``target_path`` and return duplicate interface/type alias clusters."""
    options = options or FindDuplicatesOptions()
    result = await gather_signatures(target_path, project_root, options, include_types=True)
    duplicates = cluster_types(
        result.types,
        include_interfaces=include_interfaces,
        include_types=include_types,
    )
    logger.info("Found %d duplicate type groups", len(duplicates))
    return duplicates


def quick_scan_type_duplicates(target_path: str | Path) -> List[str]:
    """Regex pre-filter for exported interfaces and type aliases declared in several files."""
    return quick_scan_names(target_path, (_EXPORTED_INTERFACE, _EXPORTED_TYPE))


__all__ = [
    "IDENTICAL_STRUCTURE_LABEL",
    "MIN_STRUCTURE_LENGTH",
    "cluster_types",
    "field_difference",
    "find_type_duplicates",
    "quick_scan_type_duplicates",
]
