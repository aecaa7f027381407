"""Sequential execution of migration plans against the working tree."""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import List, Optional, Set, Union

from ..analyzers.imports import SOURCE_EXTENSIONS, relocate_relative_imports, rewrite_imports
from ..logging import get_logger
from ..models import EnhancedMigrationAction, EnhancedMigrationPlan, MigrationPlan
from ..repo_scanner import is_declaration_file, is_test_file
from .planner import create_enhanced_migration_plan

logger = get_logger("executor")

BACKUP_DIRNAME = Path(".tsrefactor") / "backups"
BARREL_FILENAME = "index.ts"

_DEFAULT_EXPORT = re.compile(r"export\s+default\s+")
_NAMED_EXPORT = re.compile(r"export\s+(?:const|let|function|async\s+function|class|interface|type|enum)\b")


@dataclass
class ActionResult:
    action_id: str
    success: bool
    message: str


@dataclass
class MigrationExecutionResult:
    success: bool
    dry_run: bool
    results: List[ActionResult] = field(default_factory=list)
    backup_dir: Optional[str] = None


class MigrationError(RuntimeError):
    """Raised inside an action handler to report a failed precondition."""


class BackupStore:
    """Copies of paths about to change, under ``.tsrefactor/backups/<timestamp>``."""

    def __init__(self, project_root: Path, *, enabled: bool = True) -> None:
        self.project_root = project_root
        self.enabled = enabled
        self.directory: Optional[Path] = None

    def save(self, path: Path) -> None:
        if not self.enabled or not path.exists():
            return
        if self.directory is None:
            stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%f")
            self.directory = self.project_root / BACKUP_DIRNAME / stamp
        destination = self.directory / path.relative_to(self.project_root)
        destination.parent.mkdir(parents=True, exist_ok=True)
        if path.is_dir():
            shutil.copytree(path, destination, dirs_exist_ok=True)
        else:
            shutil.copy2(path, destination)
        logger.debug("Backed up %s to %s", path, destination)


class _Executor:
    def __init__(self, project_root: Path, lib_root: Path, *, dry_run: bool, backup: bool) -> None:
        self.project_root = project_root
        self.lib_root = lib_root
        self.dry_run = dry_run
        self.backups = BackupStore(project_root, enabled=backup)

    # -- helpers -------------------------------------------------------

    def within_lib(self, relative: Optional[str]) -> Path:
        if not relative:
            raise MigrationError("Action is missing a path")
        candidate = (self.lib_root / relative).resolve()
        if candidate != self.lib_root and self.lib_root not in candidate.parents:
            raise MigrationError(f"Path escapes lib root: {relative}")
        return candidate

    def update_affected_imports(self, action: EnhancedMigrationAction, old: Path, new: Path) -> int:
        updated = 0
        for rel_path in dict.fromkeys(action.affected_imports):
            importer = (self.project_root / rel_path).resolve()
            if not importer.is_file():
                logger.warning("Affected file %s no longer exists; skipping import update", rel_path)
                continue
            content = importer.read_text(encoding="utf-8")
            rewritten = rewrite_imports(content, importer, old, new, lib_root=self.lib_root)
            if rewritten != content:
                importer.write_text(rewritten, encoding="utf-8")
                updated += 1
        return updated

    # -- handlers ------------------------------------------------------

    def create_barrel(self, action: EnhancedMigrationAction) -> str:
        directory = self.within_lib(action.source)
        if not directory.is_dir():
            raise MigrationError(f"Directory does not exist: {action.source}")
        barrel = directory / BARREL_FILENAME
        if barrel.exists():
            return f"Barrel already exists: {action.source}/{BARREL_FILENAME}"
        if self.dry_run:
            return f"Would create barrel export: {action.source}/{BARREL_FILENAME}"

        lines = barrel_exports(directory)
        barrel.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return f"Created barrel export: {action.source}/{BARREL_FILENAME} ({len(lines)} exports)"

    def move(self, action: EnhancedMigrationAction) -> str:
        source = self.within_lib(action.source)
        target = self.within_lib(action.target)
        if not source.exists():
            raise MigrationError(f"Source does not exist: {action.source}")
        if target.exists():
            raise MigrationError(f"Target already exists: {action.target}. Cannot overwrite.")
        if self.dry_run:
            return f"Would move {action.source} -> {action.target}"

        self.backups.save(source)
        target.parent.mkdir(parents=True, exist_ok=True)
        is_directory = source.is_dir()
        shutil.move(str(source), str(target))

        moved = sorted(target.rglob("*")) if is_directory else [target]
        for new_file in moved:
            if not new_file.is_file() or not new_file.name.endswith(SOURCE_EXTENSIONS):
                continue
            old_file = source / new_file.relative_to(target) if is_directory else source
            content = new_file.read_text(encoding="utf-8")
            relocated = relocate_relative_imports(
                content,
                old_file,
                new_file,
                moved_from=source if is_directory else None,
                moved_to=target if is_directory else None,
            )
            if relocated != content:
                new_file.write_text(relocated, encoding="utf-8")

        updated = self.update_affected_imports(action, source, target)
        return f"Moved {action.source} -> {action.target} ({updated} files updated)"

    def merge(self, action: EnhancedMigrationAction) -> str:
        source = self.within_lib(action.source)
        target = self.within_lib(action.target)
        if self.dry_run:
            return f"Would merge {action.source} into {action.target}"
        if not target.exists():
            raise MigrationError(f"Merge target does not exist: {action.target}")
        updated = self.update_affected_imports(action, source, target)
        return f"Merged imports from {action.source} to {action.target} ({updated} files)"

    def delete(self, action: EnhancedMigrationAction) -> str:
        path = self.within_lib(action.source)
        if path == self.lib_root:
            raise MigrationError("Refusing to delete the lib root")
        if not path.exists():
            raise MigrationError(f"Source does not exist: {action.source}")
        if self.dry_run:
            return f"Would delete {action.source}"

        self.backups.save(path)
        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink()
        return f"Deleted: {action.source}"


def barrel_exports(directory: Path) -> List[str]:
    """Re-export lines for the modules and sub-barrels directly inside ``directory``."""
    lines: List[str] = []
    for entry in sorted(directory.iterdir()):
        if entry.is_dir():
            if (entry / BARREL_FILENAME).exists():
                lines.append(f"export * from './{entry.name}';")
            continue
        if entry.suffix not in {".ts", ".tsx"} or entry.name == BARREL_FILENAME:
            continue
        if is_declaration_file(entry) or is_test_file(entry):
            continue
        name = entry.name[: -len(entry.suffix)]
        content = entry.read_text(encoding="utf-8")
        if _DEFAULT_EXPORT.search(content):
            lines.append(f"export {{ default as {name} }} from './{name}';")
        if _NAMED_EXPORT.search(content):
            lines.append(f"export * from './{name}';")
    return lines


def execute_migration_plan(
    plan: Union[MigrationPlan, EnhancedMigrationPlan],
    project_root: str | Path,
    lib_root: str | Path,
    *,
    dry_run: bool = True,
    backup: bool = True,
) -> MigrationExecutionResult:
    """Run every action of ``plan`` in order, one at a time.

    Failures are reported per action and never raised. An action whose
    prerequisite failed (or was skipped) is skipped as well.
    """
    enhanced = plan if isinstance(plan, EnhancedMigrationPlan) else create_enhanced_migration_plan(plan)
    executor = _Executor(
        Path(project_root).expanduser().resolve(),
        Path(lib_root).expanduser().resolve(),
        dry_run=dry_run,
        backup=backup,
    )
    handlers = {
        "create-barrel": executor.create_barrel,
        "move": executor.move,
        "merge": executor.merge,
        "delete": executor.delete,
    }

    results: List[ActionResult] = []
    failed: Set[str] = set()
    for action in enhanced.actions:
        blocked = [prerequisite for prerequisite in action.prerequisite if prerequisite in failed]
        if blocked:
            failed.add(action.id)
            results.append(
                ActionResult(action.id, False, f"Skipped: prerequisite {', '.join(blocked)} did not complete")
            )
            continue
        try:
            message = handlers[action.type](action)
        except (MigrationError, OSError, ValueError) as exc:
            failed.add(action.id)
            logger.error("%s (%s %s) failed: %s", action.id, action.type, action.source, exc)
            results.append(ActionResult(action.id, False, str(exc)))
            continue
        logger.info("%s %s", action.id, message)
        results.append(ActionResult(action.id, True, message))

    return MigrationExecutionResult(
        success=not failed,
        dry_run=dry_run,
        results=results,
        backup_dir=str(executor.backups.directory) if executor.backups.directory else None,
    )


__all__ = [
    "ActionResult",
    "BackupStore",
    "MigrationError",
    "MigrationExecutionResult",
    "barrel_exports",
    "execute_migration_plan",
]
