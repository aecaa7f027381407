"""Migration planning: structural issues and duplicate clusters to ordered actions."""

from __future__ import annotations

import os
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..analyzers.imports import ImportIndex
from ..logging import get_logger
from ..models import (
    AffectedDetail,
    ArchHealth,
    DuplicateInfo,
    EnhancedMigrationAction,
    EnhancedMigrationPlan,
    ExecutionStep,
    MigrationAction,
    MigrationActionType,
    MigrationPlan,
    RiskLevel,
    RiskSummary,
    StructureAnalysis,
    TypeMigrationAction,
)

logger = get_logger("planner")

PHASES: Tuple[MigrationActionType, ...] = ("create-barrel", "move", "merge", "delete")
ACTION_RISK: Dict[str, RiskLevel] = {
    "create-barrel": "safe",
    "move": "medium",
    "merge": "risky",
    "delete": "risky",
}
PARALLEL_ACTIONS = {"create-barrel", "delete"}
ROLLBACK_ACTIONS = {"create-barrel", "merge"}

_ActionKey = Tuple[str, str, Optional[str]]


def order_actions(actions: Iterable[MigrationAction]) -> List[MigrationAction]:
    """Stable sort into the create-barrel, move, merge, delete phases."""
    return sorted(actions, key=lambda action: PHASES.index(action.type))


def summarize_risk(actions: Iterable[MigrationAction | TypeMigrationAction]) -> RiskSummary:
    counts = Counter(action.risk for action in actions)
    return RiskSummary(safe=counts["safe"], medium=counts["medium"], risky=counts["risky"])


def count_files_affected(actions: Iterable[MigrationAction]) -> int:
    paths: Set[str] = set()
    for action in actions:
        paths.add(action.source)
        if action.target:
            paths.add(action.target)
        paths.update(action.affected_imports)
    return len(paths)


class _PlanBuilder:
    def __init__(self) -> None:
        self.actions: List[MigrationAction] = []
        self._seen: Set[_ActionKey] = set()

    def add(self, action_type: MigrationActionType, source: str, target: Optional[str] = None) -> None:
        key = (action_type, source, target)
        if key in self._seen:
            return
        self._seen.add(key)
        self.actions.append(
            MigrationAction(type=action_type, source=source, target=target, risk=ACTION_RISK[action_type])
        )


def _rebase(file: str, lib_root: Path, project_root: Optional[Path]) -> str:
    """Express a project-relative path relative to the lib root."""
    if project_root is None:
        return file
    absolute = (project_root / file).resolve()
    try:
        return absolute.relative_to(lib_root).as_posix()
    except ValueError:
        return Path(os.path.relpath(absolute, lib_root)).as_posix()


def _canonical_location(duplicate: DuplicateInfo) -> str:
    for location in duplicate.locations:
        if location.exported:
            return location.file
    return duplicate.locations[0].file


def create_migration_plan(
    duplicates: Sequence[DuplicateInfo],
    structure: Optional[StructureAnalysis],
    lib_root: str | Path,
    project_root: str | Path | None = None,
) -> MigrationPlan:
    """Translate structure issues and ``merge`` duplicate clusters into a phase-ordered plan.

    Action paths are relative to ``lib_root``. Duplicate locations are
    project-relative and get rebased when ``project_root`` is given.
    """
    lib = Path(lib_root).expanduser().resolve()
    root = Path(project_root).expanduser().resolve() if project_root is not None else None
    builder = _PlanBuilder()

    for issue in structure.issues if structure is not None else []:
        if issue.type == "missing-barrel":
            for directory in issue.files:
                builder.add("create-barrel", directory)
        elif issue.type == "double-nesting":
            for nested in issue.files:
                builder.add("move", nested, nested.rsplit("/", 1)[-1])
        elif issue.type == "duplicate-module" and len(issue.files) > 1:
            keep, *others = issue.files
            for other in others:
                builder.add("merge", other, keep)
            for other in others:
                builder.add("delete", other)

    for duplicate in duplicates:
        if duplicate.recommendation != "merge" or not duplicate.locations:
            continue
        canonical = _canonical_location(duplicate)
        target = _rebase(canonical, lib, root)
        for location in duplicate.locations:
            if location.file == canonical:
                continue
            builder.add("merge", _rebase(location.file, lib, root), target)

    actions = order_actions(builder.actions)
    logger.debug("Planned %d migration actions", len(actions))
    return MigrationPlan(
        actions=actions,
        files_affected=count_files_affected(actions),
        imports_to_update=0,
        risk_summary=summarize_risk(actions),
    )


def populate_affected_imports(
    plan: MigrationPlan,
    project_root: str | Path,
    lib_root: str | Path,
    *,
    index: Optional[ImportIndex] = None,
) -> MigrationPlan:
    """Fill ``affected_imports`` of every action from one project-wide import scan.

    Each importing file is listed once per import that reaches the action's
    source, so ``imports_to_update`` counts import statements.
    """
    if not plan.actions:
        return plan
    index = index or ImportIndex.build(project_root)
    lib = Path(lib_root).expanduser().resolve()
    for action in plan.actions:
        action.affected_imports = index.references(lib / action.source, lib_root=lib)
    plan.imports_to_update = sum(len(action.affected_imports) for action in plan.actions)
    plan.files_affected = count_files_affected(plan.actions)
    return plan


def _namespace(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    head = path.split("/", 1)[0]
    return head if head not in {"", ".", ".."} else None


def _base_reason(action: MigrationAction) -> str:
    if action.type == "create-barrel":
        return f"Add a barrel export so {action.source} can be imported as a module"
    if action.type == "move":
        return f"Flatten nested namespace {action.source} to {action.target}"
    if action.type == "merge":
        return f"Consolidate duplicated code from {action.source} into {action.target}"
    return f"Remove {action.source} once its contents are merged"


def _reason(action: MigrationAction, arch_health: Optional[ArchHealth]) -> str:
    reason = _base_reason(action)
    if arch_health is None:
        return reason
    namespaces = {_namespace(action.source), _namespace(action.target)} - {None}
    related = [
        violation.message
        for violation in arch_health.violations
        if violation.from_module in namespaces or violation.to_module in namespaces
    ]
    if related:
        reason += f" (touches: {'; '.join(related)})"
    return reason


def _affected_details(action: MigrationAction) -> List[AffectedDetail]:
    return [AffectedDetail(file=file, import_count=count) for file, count in Counter(action.affected_imports).items()]


def create_enhanced_migration_plan(
    base_plan: MigrationPlan,
    arch_health: Optional[ArchHealth] = None,
) -> EnhancedMigrationPlan:
    """Assign ids, prerequisites, execution steps and rollback points to ``base_plan``."""
    ordered = order_actions(base_plan.actions)
    ids = [f"act-{position}" for position in range(1, len(ordered) + 1)]
    merge_ids = [action_id for action_id, action in zip(ids, ordered) if action.type == "merge"]

    actions: List[EnhancedMigrationAction] = []
    execution_order: List[ExecutionStep] = []
    rollback_points: List[str] = []
    last_move: Optional[str] = None

    for position, (action_id, action) in enumerate(zip(ids, ordered), start=1):
        prerequisite: List[str] = []
        if action.type == "move":
            last_move = action_id
        elif action.type == "merge" and last_move is not None:
            prerequisite = [last_move]
        elif action.type == "delete":
            prerequisite = list(merge_ids)

        actions.append(
            EnhancedMigrationAction(
                type=action.type,
                source=action.source,
                target=action.target,
                risk=action.risk,
                affected_imports=list(action.affected_imports),
                id=action_id,
                order=position,
                prerequisite=prerequisite,
                reason=_reason(action, arch_health),
                affected_details=_affected_details(action),
            )
        )
        execution_order.append(
            ExecutionStep(step=position, action_id=action_id, can_parallelize=action.type in PARALLEL_ACTIONS)
        )
        if action.type in ROLLBACK_ACTIONS:
            rollback_points.append(action_id)

    return EnhancedMigrationPlan(
        actions=actions,
        files_affected=base_plan.files_affected,
        imports_to_update=base_plan.imports_to_update,
        risk_summary=base_plan.risk_summary,
        execution_order=execution_order,
        rollback_points=rollback_points,
    )


__all__ = [
    "ACTION_RISK",
    "PHASES",
    "count_files_affected",
    "create_enhanced_migration_plan",
    "create_migration_plan",
    "order_actions",
    "populate_affected_imports",
    "summarize_risk",
]
