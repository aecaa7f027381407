"""Plans that remove duplicate interfaces and type aliases in favour of one canonical declaration."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Optional, Sequence, Set, Tuple

from ..analyzers.imports import ImportIndex
from ..logging import get_logger
from ..models import (
    TypeDuplicateInfo,
    TypeDuplicateLocation,
    TypeImportUpdate,
    TypeMigrationAction,
    TypeMigrationPlan,
)
from .planner import summarize_risk

logger = get_logger("type_planner")

_TYPES_FILE_NAMES = {"types.ts", "types.d.ts"}


def is_types_file(path: str) -> bool:
    """Dedicated type modules: ``types.ts``, ``*.types.ts`` or anything under a ``types/`` folder."""
    posix = f"/{PurePosixPath(path).as_posix()}"
    name = PurePosixPath(path).name
    return name in _TYPES_FILE_NAMES or name.endswith(".types.ts") or "/types/" in posix or "/core/types" in posix


def has_jsdoc(content: str, type_name: str) -> bool:
    """True when a ``/** ... */`` block directly precedes the declaration of ``type_name``."""
    pattern = re.compile(
        r"/\*\*(?:(?!\*/)[\s\S])*\*/\s*(?:export\s+)?(?:declare\s+)?(?:interface|type)\s+"
        + re.escape(type_name)
        + r"\b"
    )
    return pattern.search(content) is not None


@dataclass
class _Candidate:
    location: TypeDuplicateLocation
    importers: List[str] = field(default_factory=list)
    in_types_file: bool = False
    documented: bool = False

    @property
    def depth(self) -> int:
        return len(PurePosixPath(self.location.file).parts)

    def rank(self) -> Tuple[bool, bool, int, bool, int]:
        """Sort key: exported, dedicated types file, most importers, JSDoc, shallowest path."""
        return (
            not self.location.exported,
            not self.in_types_file,
            -len(self.importers),
            not self.documented,
            self.depth,
        )


def _candidate(
    location: TypeDuplicateLocation, root: Path, index: ImportIndex, lib_root: Optional[Path]
) -> _Candidate:
    try:
        content = (root / location.file).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Cannot read %s for JSDoc detection: %s", location.file, exc)
        content = ""
    return _Candidate(
        location=location,
        importers=index.type_importers(location.name, location.file, lib_root=lib_root),
        in_types_file=is_types_file(location.file),
        documented=has_jsdoc(content, location.name),
    )


def select_canonical(candidates: Sequence[_Candidate]) -> Optional[_Candidate]:
    """First candidate by :meth:`_Candidate.rank`; ties keep discovery order."""
    return min(candidates, key=_Candidate.rank, default=None)


def create_type_migration_plan(
    duplicates: Sequence[TypeDuplicateInfo],
    project_root: str | Path,
    *,
    only_identical: bool = True,
    min_similarity: float = 1.0,
    index: Optional[ImportIndex] = None,
    lib_root: str | Path | None = None,
) -> TypeMigrationPlan:
    """Turn ``merge`` type clusters into ``remove-type`` actions plus importer updates.

    Paths are project-relative. Only fully identical clusters are planned
    unless ``only_identical`` is False; ``min_similarity`` applies either way.
    Duplicates declared in the canonical file itself are left alone.
    """
    root = Path(project_root).expanduser().resolve()
    index = index or ImportIndex.build(root)
    lib = Path(lib_root).expanduser().resolve() if lib_root is not None else None
    actions: List[TypeMigrationAction] = []
    updates: List[TypeImportUpdate] = []

    for duplicate in duplicates:
        if duplicate.recommendation != "merge":
            continue
        if (only_identical and duplicate.similarity < 1.0) or duplicate.similarity < min_similarity:
            continue
        candidates = [_candidate(location, root, index, lib) for location in duplicate.locations]
        canonical = select_canonical(candidates)
        if canonical is None:
            continue
        target = canonical.location

        for candidate in candidates:
            location = candidate.location
            if candidate is canonical or location.file == target.file:
                continue
            action = TypeMigrationAction(
                id=f"type-act-{len(actions) + 1}",
                type_name=location.name,
                source_file=location.file,
                target_file=target.file,
                target_name=target.name,
                risk="safe" if duplicate.similarity >= 1.0 else "medium",
                similarity=duplicate.similarity,
                preserve_jsdoc=candidate.documented and not canonical.documented,
            )
            actions.append(action)
            for importer in candidate.importers:
                if importer == target.file:
                    continue
                updates.append(
                    TypeImportUpdate(
                        id=f"type-imp-{len(updates) + 1}",
                        file=importer,
                        type_name=location.name,
                        old_source=location.file,
                        new_source=target.file,
                        new_name=target.name,
                        action_id=action.id,
                    )
                )

    files: Set[str] = {action.source_file for action in actions} | {update.file for update in updates}
    logger.debug("Planned %d type removals and %d import updates", len(actions), len(updates))
    return TypeMigrationPlan(
        actions=actions,
        import_updates=updates,
        types_to_remove=len(actions),
        imports_to_update=len(updates),
        files_affected=len(files),
        risk_summary=summarize_risk(actions),
    )


__all__ = ["create_type_migration_plan", "has_jsdoc", "is_types_file", "select_canonical"]
