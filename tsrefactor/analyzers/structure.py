"""Module layout checks for a lib directory (namespaces, barrels, naming)."""

from __future__ import annotations

import re
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Sequence

from ..models import StructureAnalysis, StructureIssue
from ..repo_scanner import find_files, list_subdirectories

NAMESPACE_PREFIX = "@"
BARREL_FILENAME = "index.ts"

MAX_FLAT_FILES = 3
EXCESSIVE_FLAT_FILES = 10
WELL_ORGANIZED_BONUS = 10
EXCESSIVE_FLAT_PENALTY = 15

SEVERITY_PENALTIES = {"error": 20, "warning": 10, "info": 5}

_UPPERCASE = re.compile(r"[A-Z]")
_STRUCTURE_SKIP_DIRS = ("node_modules",)


def _flat_files(lib_path: Path) -> List[str]:
    files = find_files(lib_path, extensions=(".ts",), skip_dirs=_STRUCTURE_SKIP_DIRS, max_depth=1)
    return [path.name for path in files if path.name != BARREL_FILENAME]


def _naming_issues(flat_files: Sequence[str], subdirectories: Sequence[str]) -> List[StructureIssue]:
    issues: List[StructureIssue] = []

    camel_case = [name for name in flat_files if _UPPERCASE.search(name[: -len(".ts")])]
    kebab_case = [name for name in flat_files if "-" in name]
    if camel_case and kebab_case:
        issues.append(
            StructureIssue(
                type="inconsistent-naming",
                severity="info",
                message="Mixed naming conventions: both camelCase and kebab-case files found",
                files=camel_case + kebab_case,
                fix="Standardize on one naming convention (kebab-case recommended)",
            )
        )

    prefixed = [name for name in subdirectories if name.startswith(NAMESPACE_PREFIX)]
    unprefixed = [name for name in subdirectories if not name.startswith(NAMESPACE_PREFIX)]
    if prefixed and unprefixed:
        issues.append(
            StructureIssue(
                type="inconsistent-naming",
                severity="warning",
                message="Mixed namespace naming: some folders have @ prefix, others do not",
                files=prefixed + unprefixed,
                fix="Standardize on @ prefix for all namespaces or none",
            )
        )

    return issues


def _duplicate_modules(lib_path: Path, flat_files: Sequence[str], subdirectories: Sequence[str]) -> Dict[str, List[str]]:
    by_basename: Dict[str, List[str]] = defaultdict(list)
    for name in flat_files:
        by_basename[Path(name).stem].append(name)

    for directory in subdirectories:
        for path in find_files(lib_path / directory, extensions=(".ts",), skip_dirs=_STRUCTURE_SKIP_DIRS):
            if path.name == BARREL_FILENAME or path.name.endswith(".d.ts"):
                continue
            by_basename[path.stem].append(path.relative_to(lib_path.resolve()).as_posix())

    return {name: locations for name, locations in by_basename.items() if len(locations) > 1}


def score_structure(issues: Sequence[StructureIssue], flat_count: int, namespaced_count: int) -> int:
    score = 100 - sum(SEVERITY_PENALTIES[issue.severity] for issue in issues)
    if namespaced_count > 0 and flat_count <= MAX_FLAT_FILES:
        score += WELL_ORGANIZED_BONUS
    if flat_count > EXCESSIVE_FLAT_FILES:
        score -= EXCESSIVE_FLAT_PENALTY
    return max(0, min(100, score))


def analyze_structure(lib_path: str | Path) -> StructureAnalysis:
    """Inspect the layout of ``lib_path`` and report organization issues.

    Issue paths are relative to ``lib_path``. A missing directory yields an
    empty analysis with a perfect score.
    """
    lib = Path(lib_path).expanduser().resolve()
    if not lib.is_dir():
        return StructureAnalysis()

    flat_files = _flat_files(lib)
    subdirectories = list_subdirectories(lib)

    namespaced: List[str] = []
    double_nested: List[str] = []
    for name in subdirectories:
        if not name.startswith(NAMESPACE_PREFIX):
            continue
        namespaced.append(name)
        for inner in list_subdirectories(lib / name):
            if inner.startswith(NAMESPACE_PREFIX):
                double_nested.append(f"{name}/{inner}")

    issues: List[StructureIssue] = []
    if double_nested:
        issues.append(
            StructureIssue(
                type="double-nesting",
                severity="warning",
                message=f"Double-nested namespaces found: {', '.join(double_nested)}. Consider flattening.",
                files=list(double_nested),
                fix="Move inner namespaces to the top level of the lib directory",
            )
        )

    for name in subdirectories:
        if not (lib / name / BARREL_FILENAME).exists():
            issues.append(
                StructureIssue(
                    type="missing-barrel",
                    severity="warning",
                    message=f"Missing barrel export in {name}",
                    files=[name],
                    fix=f"Create {name}/{BARREL_FILENAME} with re-exports",
                )
            )

    issues.extend(_naming_issues(flat_files, subdirectories))

    for module, locations in _duplicate_modules(lib, flat_files, subdirectories).items():
        issues.append(
            StructureIssue(
                type="duplicate-module",
                severity="error",
                message=f"Duplicate module: {module} found in multiple locations",
                files=locations,
                fix="Consolidate into single location and update imports",
            )
        )

    return StructureAnalysis(
        flat_files=flat_files,
        namespaced_folders=namespaced,
        double_nested=double_nested,
        score=score_structure(issues, len(flat_files), len(namespaced)),
        issues=issues,
    )


__all__ = ["BARREL_FILENAME", "NAMESPACE_PREFIX", "analyze_structure", "score_structure"]
