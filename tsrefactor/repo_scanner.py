"""Source file enumeration honoring skip directories and ignore rules."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from .config import CONFIG_FILENAME, DEFAULT_SKIP_DIRS, ConfigError, load_config

_ALWAYS_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".idea",
    ".tsrefactor",
}

_DECLARATION_SUFFIXES = (".d.ts", ".d.mts", ".d.cts")
_TEST_MARKERS = (".test.", ".spec.")


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or .tsrefactor.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        target = rel_path
        if self.anchored or self.has_slash:
            if fnmatchcase(target, self.pattern):
                return True
            if self.directory_only and target.startswith(f"{self.pattern}/"):
                return True
            return False

        for part in target.split("/"):
            if fnmatchcase(part, self.pattern):
                return True
        return False


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    has_slash = "/" in pattern
    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash=has_slash,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _parse_config_excludes(path: Path) -> List[IgnoreRule]:
    try:
        config = load_config(path)
    except ConfigError:
        return []

    rules: List[IgnoreRule] = []
    for pattern in config.exclude_paths:
        rule = build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def load_ignore_rules(project_root: Path, extra_patterns: Iterable[str] = ()) -> List[IgnoreRule]:
    """Collect .gitignore rules, config excludes and caller supplied patterns."""
    rules = _parse_gitignore(project_root / ".gitignore")
    rules.extend(_parse_config_excludes(project_root / CONFIG_FILENAME))
    for pattern in extra_patterns:
        rule = build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _relative_posix(path: Path, base: Path) -> str:
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()


def _iter_files(
    root: Path,
    skip_dirs: Sequence[str],
    max_depth: Optional[int],
    rules: Sequence[IgnoreRule],
    rules_root: Path,
) -> Iterator[Path]:
    excluded = _ALWAYS_EXCLUDED_DIRS.union(skip_dirs)
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        depth = len(current_dir.relative_to(root).parts) + 1

        if max_depth is not None and depth >= max_depth:
            dirnames[:] = []
        else:
            filtered_dirs = []
            for name in sorted(dirnames):
                if name in excluded:
                    continue
                rel_path = _relative_posix(current_dir / name, rules_root)
                if _should_ignore(rel_path, True, rules):
                    continue
                filtered_dirs.append(name)
            dirnames[:] = filtered_dirs

        for filename in sorted(filenames):
            path = current_dir / filename
            if _should_ignore(_relative_posix(path, rules_root), False, rules):
                continue
            yield path


def find_files(
    root: Path | str,
    *,
    extensions: Sequence[str],
    skip_dirs: Sequence[str] = DEFAULT_SKIP_DIRS,
    max_depth: Optional[int] = None,
    rules: Sequence[IgnoreRule] = (),
    rules_root: Path | None = None,
) -> List[Path]:
    """Return files under ``root`` whose suffix is one of ``extensions``.

    ``max_depth=1`` limits the walk to files directly inside ``root``. Ignore
    rules are matched against paths relative to ``rules_root`` (``root`` when
    omitted).
    """
    root_path = Path(root).expanduser().resolve()
    if not root_path.is_dir():
        return []
    wanted = tuple(ext.lower() for ext in extensions)
    base = rules_root.resolve() if rules_root is not None else root_path
    return [
        path
        for path in _iter_files(root_path, skip_dirs, max_depth, rules, base)
        if path.name.lower().endswith(wanted)
    ]


def is_declaration_file(path: Path | str) -> bool:
    return str(path).lower().endswith(_DECLARATION_SUFFIXES)


def is_test_file(path: Path | str) -> bool:
    name = Path(path).name
    return any(marker in name for marker in _TEST_MARKERS)


def list_subdirectories(path: Path) -> List[str]:
    """Return sorted names of the visible subdirectories of ``path``."""
    if not path.is_dir():
        return []
    return sorted(
        entry.name
        for entry in path.iterdir()
        if entry.is_dir() and entry.name not in _ALWAYS_EXCLUDED_DIRS and entry.name != "node_modules"
    )


class RepoScanner:
    """Lists the analyzable source files of a project."""

    def __init__(
        self,
        *,
        extensions: Sequence[str] = (".ts", ".tsx"),
        skip_dirs: Sequence[str] = DEFAULT_SKIP_DIRS,
        ignore_tests: bool = True,
        exclude_paths: Sequence[str] = (),
    ) -> None:
        self.extensions = tuple(extensions)
        self.skip_dirs = tuple(skip_dirs)
        self.ignore_tests = ignore_tests
        self.exclude_paths = tuple(exclude_paths)

    def scan(self, target: str | Path, project_root: str | Path | None = None) -> List[Path]:
        """Return source files under ``target``, minus declarations and (optionally) tests."""
        target_path = Path(target).expanduser().resolve()
        if not target_path.exists():
            raise FileNotFoundError(f"Target path not found: {target}")
        if not target_path.is_dir():
            raise NotADirectoryError(f"Target path is not a directory: {target}")

        root_path = Path(project_root).expanduser().resolve() if project_root else target_path
        rules = load_ignore_rules(root_path, self.exclude_paths)
        files = find_files(
            target_path,
            extensions=self.extensions,
            skip_dirs=self.skip_dirs,
            rules=rules,
            rules_root=root_path,
        )
        files = [path for path in files if not is_declaration_file(path)]
        if self.ignore_tests:
            files = [path for path in files if not is_test_file(path)]
        return files


__all__ = [
    "IgnoreRule",
    "RepoScanner",
    "build_ignore_rule",
    "find_files",
    "is_declaration_file",
    "is_test_file",
    "list_subdirectories",
    "load_ignore_rules",
]
