"""Cross-reference scanning: which files import a module, and rewriting those imports."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from tree_sitter import Node

from ..config import DEFAULT_SKIP_DIRS
from ..logging import get_logger
from ..repo_scanner import find_files, is_declaration_file, load_ignore_rules
from .parser import ParsedSource

logger = get_logger("imports")

SOURCE_EXTENSIONS = (".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs")
_JS_SUFFIXES = {".js", ".jsx", ".mjs", ".cjs"}

# import x from '...' | export { x } from '...' | import '...' | require('...') | import('...')
_SPECIFIER = re.compile(
    r"""(?:\bfrom\s*|\bimport\s*|\brequire\s*\(\s*|\bimport\s*\(\s*)(?P<quote>['"])(?P<spec>[^'"\n]+)(?P=quote)"""
)
_ALIAS_SPECIFIER = re.compile(r"^(?:@/|~/|#)|/lib/")


# ----------------------------------------------------------------------
# Specifier resolution


def is_relative_specifier(specifier: str) -> bool:
    return specifier in {".", ".."} or specifier.startswith(("./", "../"))


def resolve_specifier(specifier: str, importing_file: Path) -> Path:
    """Resolve a relative specifier against the importing file, without probing the disk."""
    return Path(os.path.normpath(importing_file.parent / specifier))


def _is_directory(path: Path) -> bool:
    if path.exists():
        return path.is_dir()
    return path.suffix not in SOURCE_EXTENSIONS


def _reference_kind(target: Path, source: Path, source_is_dir: bool) -> Optional[str]:
    """How ``target`` (a resolved specifier) refers to ``source``, or None."""
    if target == source:
        return "exact"
    if source_is_dir:
        return "inside" if source in target.parents else None
    stem = source.with_suffix("")
    if target == stem:
        return "extension"
    if source.stem == "index" and target == source.parent:
        return "index"
    if target.suffix in _JS_SUFFIXES and target.with_suffix("") == stem:
        return "js-extension"
    return None


def _retarget(target: Path, kind: str, old: Path, new: Path) -> Path:
    if kind == "inside":
        return new / target.relative_to(old)
    if kind == "extension":
        return new.with_suffix("")
    if kind == "index":
        return new.parent if new.stem == "index" else new.with_suffix("")
    if kind == "js-extension":
        return new.with_suffix(target.suffix)
    return new


def relative_specifier(target: Path, importing_file: Path) -> str:
    """Relative specifier that reaches ``target`` from ``importing_file``."""
    spec = Path(os.path.relpath(target, importing_file.parent)).as_posix()
    return spec if spec.startswith(".") else f"./{spec}"


def _lib_relative(path: Path, lib_root: Optional[Path]) -> Optional[str]:
    if lib_root is None:
        return None
    try:
        rel = path.relative_to(lib_root)
    except ValueError:
        return None
    if rel.stem == "index" and rel.suffix:
        rel = rel.parent
    elif rel.suffix in SOURCE_EXTENSIONS:
        rel = rel.with_suffix("")
    text = rel.as_posix()
    return None if text in {"", "."} else text


def _alias_match(specifier: str, lib_rel: Optional[str], source_is_dir: bool) -> Optional[re.Match[str]]:
    if not lib_rel or not _ALIAS_SPECIFIER.search(specifier):
        return None
    normalized = re.sub(r"\.(?:[cm]?[jt]sx?)$", "", specifier)
    tail = r"(?:/|$)" if source_is_dir else r"$"
    return re.search(r"(?<=/)" + re.escape(lib_rel) + tail, normalized)


def iter_specifiers(content: str) -> List[str]:
    """Every module specifier referenced by imports, re-exports, require() and import()."""
    return [match.group("spec") for match in _SPECIFIER.finditer(content)]


def _rewrite_specifiers(content: str, replace: Callable[[str], Optional[str]]) -> str:
    pieces: List[str] = []
    last = 0
    for match in _SPECIFIER.finditer(content):
        specifier = match.group("spec")
        updated = replace(specifier)
        if updated is None or updated == specifier:
            continue
        start, end = match.span("spec")
        pieces.append(content[last:start])
        pieces.append(updated)
        last = end
    pieces.append(content[last:])
    return "".join(pieces)


# ----------------------------------------------------------------------
# Named imports


_NAMED_IMPORT = re.compile(
    r"""\bimport\s+(?P<type_only>type\s+)?(?:(?P<default>[\w$]+)\s*,\s*)?\{(?P<members>[^}]*)\}\s*"""
    r"""from\s*(?P<quote>['"])(?P<spec>[^'"\n]+)(?P=quote)[ \t]*;?"""
)


@dataclass
class ImportMember:
    imported: str
    local: str
    type_only: bool = False

    def render(self) -> str:
        prefix = "type " if self.type_only else ""
        alias = "" if self.local == self.imported else f" as {self.local}"
        return f"{prefix}{self.imported}{alias}"


@dataclass
class NamedImport:
    """An ``import [type] [Default,] { ... } from '...'`` statement and its span in the file."""

    specifier: str
    members: List[ImportMember]
    start: int
    end: int
    type_only: bool = False
    default: Optional[str] = None
    quote: str = "'"

    def imports(self, name: str) -> Optional[ImportMember]:
        return next((member for member in self.members if member.imported == name), None)


def _parse_members(text: str) -> List[ImportMember]:
    members: List[ImportMember] = []
    for raw in text.split(","):
        item = " ".join(raw.split())
        if not item:
            continue
        type_only = item.startswith("type ")
        if type_only:
            item = item[len("type ") :]
        imported, _, local = item.partition(" as ")
        members.append(ImportMember(imported=imported.strip(), local=(local or imported).strip(), type_only=type_only))
    return members


def iter_named_imports(content: str) -> List[NamedImport]:
    return [
        NamedImport(
            specifier=match.group("spec"),
            members=_parse_members(match.group("members")),
            start=match.start(),
            end=match.end(),
            type_only=match.group("type_only") is not None,
            default=match.group("default"),
            quote=match.group("quote"),
        )
        for match in _NAMED_IMPORT.finditer(content)
    ]


def format_named_import(
    members: Sequence[ImportMember],
    specifier: str,
    *,
    type_only: bool = False,
    default: Optional[str] = None,
    quote: str = "'",
) -> str:
    """Render an import statement; an empty member list keeps only the default import."""
    keyword = "import type" if type_only else "import"
    bindings: List[str] = [default] if default else []
    if members:
        bindings.append("{ " + ", ".join(member.render() for member in members) + " }")
    return f"{keyword} {', '.join(bindings)} from {quote}{specifier}{quote};"


def specifier_reaches(
    specifier: str,
    importing_file: str | Path,
    source_path: str | Path,
    *,
    lib_root: str | Path | None = None,
) -> bool:
    """True when ``specifier`` written in ``importing_file`` refers to ``source_path``."""
    source = Path(os.path.abspath(source_path))
    lib = Path(os.path.abspath(lib_root)) if lib_root is not None else None
    resolved = (
        resolve_specifier(specifier, Path(os.path.abspath(importing_file)))
        if is_relative_specifier(specifier)
        else None
    )
    return _reaches(ImportedModule(specifier, resolved), source, _is_directory(source), _lib_relative(source, lib))


# ----------------------------------------------------------------------
# Index


@dataclass
class ImportedModule:
    specifier: str
    resolved: Optional[Path] = None


def _reaches(module: ImportedModule, source: Path, source_is_dir: bool, lib_rel: Optional[str]) -> bool:
    if module.resolved is not None:
        return _reference_kind(module.resolved, source, source_is_dir) is not None
    return _alias_match(module.specifier, lib_rel, source_is_dir) is not None


@dataclass
class ImportIndex:
    """Module specifiers of every source file under ``project_root``.

    Built once and reused for every action of a migration plan.
    """

    project_root: Path
    skip_dirs: Sequence[str] = DEFAULT_SKIP_DIRS
    files: Dict[Path, List[ImportedModule]] = field(default_factory=dict)

    @classmethod
    def build(cls, project_root: str | Path, *, skip_dirs: Sequence[str] = DEFAULT_SKIP_DIRS) -> "ImportIndex":
        root = Path(project_root).expanduser().resolve()
        index = cls(project_root=root, skip_dirs=tuple(skip_dirs))
        rules = load_ignore_rules(root)
        for path in find_files(root, extensions=SOURCE_EXTENSIONS, skip_dirs=skip_dirs, rules=rules):
            if is_declaration_file(path):
                continue
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.debug("Skipping unreadable file %s: %s", path, exc)
                continue
            index.files[path] = [
                ImportedModule(
                    specifier=spec,
                    resolved=resolve_specifier(spec, path) if is_relative_specifier(spec) else None,
                )
                for spec in iter_specifiers(content)
            ]
        logger.debug("Indexed imports of %d files under %s", len(index.files), root)
        return index

    def _absolute(self, path: str | Path) -> Path:
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.project_root / candidate
        return candidate.resolve()

    def references(self, source_path: str | Path, *, lib_root: str | Path | None = None) -> List[str]:
        """Project-relative importing files, listed once per specifier that reaches ``source_path``."""
        source = self._absolute(source_path)
        source_is_dir = _is_directory(source)
        lib = self._absolute(lib_root) if lib_root is not None else None
        lib_rel = _lib_relative(source, lib)

        hits: List[str] = []
        for path in sorted(self.files):
            if path == source or (source_is_dir and source in path.parents):
                continue
            rel_path = path.relative_to(self.project_root).as_posix()
            hits.extend(rel_path for module in self.files[path] if _reaches(module, source, source_is_dir, lib_rel))
        return hits

    def importers(self, source_path: str | Path, *, lib_root: str | Path | None = None) -> List[str]:
        """Distinct project-relative files importing ``source_path``."""
        return list(dict.fromkeys(self.references(source_path, lib_root=lib_root)))

    def type_importers(
        self, type_name: str, source_path: str | Path, *, lib_root: str | Path | None = None
    ) -> List[str]:
        """Distinct files with a named import of ``type_name`` from ``source_path``."""
        source = self._absolute(source_path)
        lib = self._absolute(lib_root) if lib_root is not None else None
        hits: List[str] = []
        for rel_path in self.importers(source, lib_root=lib):
            path = self.project_root / rel_path
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.debug("Skipping unreadable file %s: %s", path, exc)
                continue
            if any(
                statement.imports(type_name) is not None
                and specifier_reaches(statement.specifier, path, source, lib_root=lib)
                for statement in iter_named_imports(content)
            ):
                hits.append(rel_path)
        return hits


def find_affected_imports(
    source_path: str | Path,
    project_root: str | Path,
    *,
    lib_root: str | Path | None = None,
) -> List[str]:
    """Every file under ``project_root`` whose imports resolve to ``source_path``."""
    return ImportIndex.build(project_root).importers(source_path, lib_root=lib_root)


# ----------------------------------------------------------------------
# Rewriting


def rewrite_imports(
    content: str,
    importing_file: str | Path,
    old_path: str | Path,
    new_path: str | Path,
    *,
    lib_root: str | Path | None = None,
) -> str:
    """Point specifiers in ``content`` that reach ``old_path`` at ``new_path`` instead.

    All paths are absolute (or relative to the current directory). Relative
    specifiers are recomputed from ``importing_file``; alias specifiers
    have their lib-relative tail swapped when ``lib_root`` is given.
    """
    importer = Path(os.path.abspath(importing_file))
    old = Path(os.path.abspath(old_path))
    new = Path(os.path.abspath(new_path))
    old_is_dir = _is_directory(old) if old.exists() else _is_directory(new)
    lib = Path(os.path.abspath(lib_root)) if lib_root is not None else None
    old_rel = _lib_relative(old, lib)
    new_rel = _lib_relative(new, lib)

    def replace(specifier: str) -> Optional[str]:
        if is_relative_specifier(specifier):
            target = resolve_specifier(specifier, importer)
            kind = _reference_kind(target, old, old_is_dir)
            if kind is None:
                return None
            return relative_specifier(_retarget(target, kind, old, new), importer)
        match = _alias_match(specifier, old_rel, old_is_dir)
        if match is None or new_rel is None:
            return None
        return specifier[: match.start()] + new_rel + specifier[match.start() + len(old_rel) :]

    return _rewrite_specifiers(content, replace)


def relocate_relative_imports(
    content: str,
    old_file: str | Path,
    new_file: str | Path,
    *,
    moved_from: str | Path | None = None,
    moved_to: str | Path | None = None,
) -> str:
    """Keep relative specifiers of a moved file pointing at the same modules.

    When a whole directory moves (``moved_from`` -> ``moved_to``), targets
    inside it move along with the file.
    """
    old = Path(os.path.abspath(old_file))
    new = Path(os.path.abspath(new_file))
    source_dir = Path(os.path.abspath(moved_from)) if moved_from is not None else None
    target_dir = Path(os.path.abspath(moved_to)) if moved_to is not None else None

    def replace(specifier: str) -> Optional[str]:
        if not is_relative_specifier(specifier):
            return None
        target = resolve_specifier(specifier, old)
        if source_dir is not None and target_dir is not None:
            if target == source_dir or source_dir in target.parents:
                target = target_dir / target.relative_to(source_dir)
        return relative_specifier(target, new)

    return _rewrite_specifiers(content, replace)


# ----------------------------------------------------------------------
# Runtime imports (architecture graph)


def _string_value(parsed: ParsedSource, node: Node) -> str:
    text = parsed.text(node)
    return text[1:-1] if len(text) >= 2 and text[0] in "'\"" else text


def _has_type_keyword(node: Node) -> bool:
    return any(child.type == "type" for child in node.children)


def runtime_imports(parsed: ParsedSource) -> List[str]:
    """Specifiers of top-level ``import`` statements that survive type erasure.

    ``import type`` statements and imports whose named specifiers are all
    ``type``-qualified are dropped. Re-exports are not counted.
    """
    specifiers: List[str] = []
    for statement in parsed.root.named_children:
        if statement.type != "import_statement" or _has_type_keyword(statement):
            continue
        source = statement.child_by_field_name("source")
        if source is None:
            continue

        clause = next((child for child in statement.named_children if child.type == "import_clause"), None)
        if clause is not None and len(clause.named_children) == 1:
            named = clause.named_children[0]
            if named.type == "named_imports":
                members = [spec for spec in named.named_children if spec.type == "import_specifier"]
                if members and all(_has_type_keyword(spec) for spec in members):
                    continue

        specifiers.append(_string_value(parsed, source))
    return specifiers


__all__ = [
    "ImportIndex",
    "ImportMember",
    "ImportedModule",
    "NamedImport",
    "SOURCE_EXTENSIONS",
    "find_affected_imports",
    "format_named_import",
    "is_relative_specifier",
    "iter_named_imports",
    "iter_specifiers",
    "relative_specifier",
    "relocate_relative_imports",
    "resolve_specifier",
    "rewrite_imports",
    "runtime_imports",
    "specifier_reaches",
]
