"""Dependency graph and cycle detection between the top-level lib namespaces."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..logging import get_logger
from ..models import ArchHealth, ArchViolation
from ..repo_scanner import find_files, list_subdirectories
from .imports import is_relative_specifier, resolve_specifier, runtime_imports
from .parser import SourceParser

logger = get_logger("architecture")

ERROR_PENALTY = 15
WARNING_PENALTY = 5

_LIB_ALIAS = re.compile(r"(?:^|/)lib/(@?[\w-]+)")


def _directory_lookup(directories: Sequence[str]) -> Dict[str, str]:
    """Map ``name``, ``@name`` and the bare name to the real directory name."""
    lookup: Dict[str, str] = {}
    for name in directories:
        lookup[name] = name
        if name.startswith("@"):
            lookup.setdefault(name[1:], name)
        else:
            lookup.setdefault(f"@{name}", name)
    return lookup


def _dependency_of(specifier: str, importing_file: Path, lib: Path, lookup: Dict[str, str]) -> Optional[str]:
    if is_relative_specifier(specifier):
        target = resolve_specifier(specifier, importing_file)
        try:
            parts = target.relative_to(lib).parts
        except ValueError:
            return None
        return lookup.get(parts[0]) if parts else None
    match = _LIB_ALIAS.search(specifier)
    return lookup.get(match.group(1)) if match else None


def collect_dependencies(lib: Path, directory: str, lookup: Dict[str, str], parser: SourceParser) -> List[str]:
    """Sibling namespaces that files under ``lib/directory`` import at runtime."""
    dependencies: Set[str] = set()
    for path in find_files(lib / directory, extensions=(".ts", ".tsx"), skip_dirs=("node_modules",)):
        try:
            parsed = parser.parse(path, path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Skipping %s while building the dependency graph: %s", path, exc)
            continue
        for specifier in runtime_imports(parsed):
            dependency = _dependency_of(specifier, path, lib, lookup)
            if dependency is not None and dependency != directory:
                dependencies.add(dependency)
    return sorted(dependencies)


def _canonical(cycle: Sequence[str]) -> Tuple[str, ...]:
    body = list(cycle[:-1])
    pivot = body.index(min(body))
    return tuple(body[pivot:] + body[:pivot])


def find_cycles(graph: Dict[str, List[str]]) -> List[List[str]]:
    """Return each distinct cycle once, as a closed path ``[a, b, ..., a]``."""
    cycles: List[List[str]] = []
    seen: Set[Tuple[str, ...]] = set()
    visited: Set[str] = set()
    on_stack: List[str] = []

    def visit(node: str) -> None:
        visited.add(node)
        on_stack.append(node)
        for dependency in graph.get(node, []):
            if dependency in on_stack:
                cycle = on_stack[on_stack.index(dependency) :] + [dependency]
                key = _canonical(cycle)
                if key not in seen:
                    seen.add(key)
                    cycles.append(cycle)
            elif dependency not in visited:
                visit(dependency)
        on_stack.pop()

    for node in sorted(graph):
        if node not in visited:
            visit(node)
    return cycles


def score_architecture(violations: Sequence[ArchViolation]) -> int:
    penalty = sum(ERROR_PENALTY if violation.severity == "error" else WARNING_PENALTY for violation in violations)
    return max(0, 100 - penalty)


def analyze_architecture(lib_path: str | Path, *, parser: Optional[SourceParser] = None) -> ArchHealth:
    """Build the namespace dependency graph of ``lib_path`` and report circular dependencies."""
    lib = Path(lib_path).expanduser().resolve()
    if not lib.is_dir():
        return ArchHealth()

    parser = parser or SourceParser(strict=False)
    directories = list_subdirectories(lib)
    lookup = _directory_lookup(directories)
    graph = {name: collect_dependencies(lib, name, lookup, parser) for name in directories}

    violations = [
        ArchViolation(
            type="circular",
            severity="error",
            from_module=cycle[0],
            to_module=cycle[-2],
            message=f"Circular dependency: {' -> '.join(cycle)}",
            fix="Break the cycle by extracting shared code or using interfaces",
        )
        for cycle in find_cycles(graph)
    ]
    logger.debug("Dependency graph has %d namespaces and %d cycles", len(graph), len(violations))
    return ArchHealth(score=score_architecture(violations), violations=violations, dependency_graph=graph)


__all__ = ["analyze_architecture", "collect_dependencies", "find_cycles", "score_architecture"]
