"""Execution of type migration plans: drop duplicate declarations and repoint their importers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Set

from tree_sitter import Node

from ..analyzers.imports import (
    ImportMember,
    format_named_import,
    iter_named_imports,
    relative_specifier,
    specifier_reaches,
)
from ..analyzers.parser import ParsedSource, SourceParser
from ..logging import get_logger
from ..models import TypeImportUpdate, TypeMigrationAction, TypeMigrationPlan
from .executor import ActionResult, BackupStore, MigrationError, MigrationExecutionResult

logger = get_logger("type_executor")

_TYPE_DECLARATIONS = {"interface_declaration", "type_alias_declaration"}
_SCRIPT_SUFFIX = re.compile(r"(?:\.d)?\.(?:[cm]?ts|tsx|[cm]?js|jsx)$")


def module_specifier(target: Path, importing_file: Path) -> str:
    """Extension-less relative specifier for ``target``; ``index`` modules resolve to their folder."""
    stem = target.with_name(_SCRIPT_SUFFIX.sub("", target.name))
    return relative_specifier(stem.parent if stem.name == "index" else stem, importing_file)


# ----------------------------------------------------------------------
# Declarations


def find_type_declaration(parsed: ParsedSource, name: str) -> Optional[Node]:
    """Top-level statement declaring interface or type alias ``name`` (``export`` included)."""
    for statement in parsed.root.named_children:
        declaration = statement
        if statement.type == "export_statement":
            declaration = statement.child_by_field_name("declaration")
        if declaration is None or declaration.type not in _TYPE_DECLARATIONS:
            continue
        if parsed.text(declaration.child_by_field_name("name")) == name:
            return statement
    return None


def leading_jsdoc(parsed: ParsedSource, statement: Node) -> Optional[Node]:
    comment = statement.prev_sibling
    if comment is None or comment.type != "comment" or not parsed.text(comment).startswith("/**"):
        return None
    if parsed.source[comment.end_byte : statement.start_byte].strip():
        return None
    return comment


def _iter_nodes(node: Node) -> Iterator[Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(current.children)


def uses_type(parsed: ParsedSource, name: str) -> bool:
    return any(node.type == "type_identifier" and parsed.text(node) == name for node in _iter_nodes(parsed.root))


def _cut(source: bytes, start: int, end: int) -> bytes:
    """Remove ``source[start:end]`` together with its own line breaks."""
    line_start = source.rfind(b"\n", 0, start) + 1
    if not source[line_start:start].strip():
        start = line_start
    newline = source.find(b"\n", end)
    if newline == -1:
        if not source[end:].strip():
            end = len(source)
    elif not source[end:newline].strip():
        end = newline + 1
    head, tail = source[:start], source[end:]
    if not tail.strip():
        return head.rstrip() + b"\n" if head.strip() else b""
    if (not head or head.endswith(b"\n\n")) and tail.startswith(b"\n"):
        tail = tail[1:]
    return head + tail


# ----------------------------------------------------------------------
# Imports


def add_type_import(
    content: str,
    importing_file: Path,
    target: Path,
    imported: str,
    local: str,
    *,
    position: Optional[int] = None,
) -> str:
    """Make ``local`` available in ``content`` as type ``imported`` from ``target``.

    An existing named import of ``target`` is extended. Otherwise an
    ``import type`` statement is inserted at ``position``, after the last
    named import, or at the top of the file.
    """
    statements = iter_named_imports(content)
    for statement in statements:
        if statement.type_only and statement.default:
            continue
        if not specifier_reaches(statement.specifier, importing_file, target):
            continue
        if any(member.imported == imported and member.local == local for member in statement.members):
            return content
        members = [*statement.members, ImportMember(imported, local, type_only=not statement.type_only)]
        rendered = format_named_import(
            members,
            statement.specifier,
            type_only=statement.type_only,
            default=statement.default,
            quote=statement.quote,
        )
        return content[: statement.start] + rendered + content[statement.end :]

    rendered = format_named_import(
        [ImportMember(imported, local)],
        module_specifier(target, importing_file),
        type_only=True,
        quote=statements[0].quote if statements else "'",
    )
    if position is not None:
        return content[:position] + rendered + "\n" + content[position:]
    if statements:
        end = statements[-1].end
        return content[:end] + "\n" + rendered + content[end:]
    return f"{rendered}\n\n{content}" if content.strip() else f"{rendered}\n"


@dataclass
class DroppedImport:
    content: str
    local: str
    position: int


def drop_type_import(
    content: str,
    importing_file: Path,
    source: Path,
    type_name: str,
    *,
    lib_root: Optional[Path] = None,
) -> Optional[DroppedImport]:
    """Remove the named import of ``type_name`` from ``source``.

    Returns the new content, the local binding the import introduced and
    where the statement started, or ``None`` when there was no such import.
    A statement left without bindings is removed entirely.
    """
    for statement in iter_named_imports(content):
        member = statement.imports(type_name)
        if member is None or not specifier_reaches(statement.specifier, importing_file, source, lib_root=lib_root):
            continue
        remaining = [other for other in statement.members if other is not member]
        replacement = ""
        if remaining or statement.default:
            replacement = format_named_import(
                remaining,
                statement.specifier,
                type_only=statement.type_only,
                default=statement.default,
                quote=statement.quote,
            )
        tail = content[statement.end :]
        if not replacement and tail.startswith("\n"):
            tail = tail[1:]
        return DroppedImport(content[: statement.start] + replacement + tail, member.local, statement.start)
    return None


# ----------------------------------------------------------------------
# Executor


class _TypeExecutor:
    def __init__(
        self,
        project_root: Path,
        *,
        dry_run: bool,
        backup: bool,
        parser: SourceParser,
        lib_root: Optional[Path],
    ) -> None:
        self.project_root = project_root
        self.dry_run = dry_run
        self.parser = parser
        self.lib_root = lib_root
        self.backups = BackupStore(project_root, enabled=backup)

    def within_root(self, relative: str) -> Path:
        if not relative:
            raise MigrationError("Action is missing a path")
        candidate = (self.project_root / relative).resolve()
        if self.project_root not in candidate.parents:
            raise MigrationError(f"Path escapes project root: {relative}")
        if not candidate.is_file():
            raise MigrationError(f"File does not exist: {relative}")
        return candidate

    def parse(self, path: Path, content: str) -> ParsedSource:
        return self.parser.parse(path, content)

    def write(self, path: Path, content: str) -> None:
        self.backups.save(path)
        path.write_text(content, encoding="utf-8")

    def remove_type(self, action: TypeMigrationAction) -> str:
        source = self.within_root(action.source_file)
        target = self.within_root(action.target_file)
        parsed = self.parse(source, source.read_text(encoding="utf-8"))
        statement = find_type_declaration(parsed, action.type_name)
        if statement is None:
            raise MigrationError(f"Type {action.type_name} not found in {action.source_file}")
        if self.dry_run:
            return f"Would remove {action.type_name} from {action.source_file}"

        doc = leading_jsdoc(parsed, statement)
        start = doc.start_byte if doc is not None else statement.start_byte
        remaining = _cut(parsed.source, start, statement.end_byte).decode("utf-8")
        still_used = uses_type(self.parse(source, remaining), action.type_name)
        if still_used:
            remaining = add_type_import(remaining, source, target, action.target_name, action.type_name)
        self.write(source, remaining)

        if action.preserve_jsdoc and doc is not None:
            self.adopt_jsdoc(target, action.target_name, parsed.text(doc))
        suffix = f" (now imported from {action.target_file})" if still_used else ""
        return f"Removed {action.type_name} from {action.source_file}{suffix}"

    def adopt_jsdoc(self, target: Path, name: str, doc: str) -> None:
        parsed = self.parse(target, target.read_text(encoding="utf-8"))
        statement = find_type_declaration(parsed, name)
        if statement is None or leading_jsdoc(parsed, statement) is not None:
            return
        line_start = parsed.source.rfind(b"\n", 0, statement.start_byte) + 1
        indent = parsed.source[line_start : statement.start_byte]
        if indent.strip():
            indent = b""
        documented = (
            parsed.source[: statement.start_byte]
            + doc.encode("utf-8")
            + b"\n"
            + indent
            + parsed.source[statement.start_byte :]
        )
        self.write(target, documented.decode("utf-8"))

    def update_import(self, update: TypeImportUpdate) -> str:
        importer = self.within_root(update.file)
        old = (self.project_root / update.old_source).resolve()
        new = (self.project_root / update.new_source).resolve()
        content = importer.read_text(encoding="utf-8")
        dropped = drop_type_import(content, importer, old, update.type_name, lib_root=self.lib_root)
        if dropped is None:
            raise MigrationError(f"{update.file} does not import {update.type_name} from {update.old_source}")
        if self.dry_run:
            return f"Would import {update.new_name} from {update.new_source} in {update.file}"

        rewritten = add_type_import(
            dropped.content, importer, new, update.new_name, dropped.local, position=dropped.position
        )
        self.write(importer, rewritten)
        return f"Updated {update.file}: {update.type_name} now imported from {update.new_source}"


def execute_type_migration_plan(
    plan: TypeMigrationPlan,
    project_root: str | Path,
    *,
    dry_run: bool = True,
    backup: bool = True,
    parser: Optional[SourceParser] = None,
    lib_root: str | Path | None = None,
) -> MigrationExecutionResult:
    """Remove every planned duplicate, then rewrite the imports that pointed at it.

    Failures are reported per item. Import updates that belong to a failed
    removal are skipped.
    """
    executor = _TypeExecutor(
        Path(project_root).expanduser().resolve(),
        dry_run=dry_run,
        backup=backup,
        parser=parser or SourceParser(strict=False),
        lib_root=Path(lib_root).expanduser().resolve() if lib_root is not None else None,
    )
    results: List[ActionResult] = []
    failed: Set[str] = set()

    for action in plan.actions:
        try:
            message = executor.remove_type(action)
        except (MigrationError, OSError, ValueError) as exc:
            failed.add(action.id)
            logger.error("%s (remove %s from %s) failed: %s", action.id, action.type_name, action.source_file, exc)
            results.append(ActionResult(action.id, False, str(exc)))
            continue
        logger.info("%s %s", action.id, message)
        results.append(ActionResult(action.id, True, message))

    for update in plan.import_updates:
        if update.action_id in failed:
            failed.add(update.id)
            results.append(ActionResult(update.id, False, f"Skipped: {update.action_id} did not complete"))
            continue
        try:
            message = executor.update_import(update)
        except (MigrationError, OSError, ValueError) as exc:
            failed.add(update.id)
            logger.error("%s (import update in %s) failed: %s", update.id, update.file, exc)
            results.append(ActionResult(update.id, False, str(exc)))
            continue
        logger.info("%s %s", update.id, message)
        results.append(ActionResult(update.id, True, message))

    return MigrationExecutionResult(
        success=not failed,
        dry_run=dry_run,
        results=results,
        backup_dir=str(executor.backups.directory) if executor.backups.directory else None,
    )


__all__ = [
    "DroppedImport",
    "add_type_import",
    "drop_type_import",
    "execute_type_migration_plan",
    "find_type_declaration",
    "leading_jsdoc",
    "module_specifier",
    "uses_type",
]
