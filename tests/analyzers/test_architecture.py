"""Tests for namespace dependency graphs and cycle detection."""

from __future__ import annotations

from pathlib import Path

from tests._fixtures.repo_builder import RepoBuilder
from tsrefactor.analyzers.architecture import analyze_architecture, find_cycles, score_architecture
from tsrefactor.models import ArchViolation


def test_circular_namespace_dependency_is_reported(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "lib/@a/index.ts": """
                import { b } from '../@b';
                export const a = () => b();
            """,
            "lib/@b/index.ts": """
                import { helper } from '../@a/helper';
                export const b = () => helper();
            """,
            "lib/@a/helper.ts": "export const helper = () => 1;\n",
            "lib/@c/index.ts": """
                import type { Shape } from '../@a';
                import { a } from '@/lib/a';
                export const c = (s: Shape) => a();
            """,
        }
    )

    health = analyze_architecture(repo_builder.path() / "lib")

    assert health.dependency_graph == {"@a": ["@b"], "@b": ["@a"], "@c": ["@a"]}
    (violation,) = health.violations
    assert violation.type == "circular"
    assert violation.severity == "error"
    assert violation.from_module == "@a"
    assert violation.to_module == "@b"
    assert violation.message == "Circular dependency: @a -> @b -> @a"
    assert health.score == 85


def test_type_only_imports_do_not_create_edges(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "lib/@a/index.ts": "import { type B } from '../@b';\nexport const a = 1;\n",
            "lib/@b/index.ts": "import type { A } from '../@a';\nexport const b = 1;\n",
        }
    )

    health = analyze_architecture(repo_builder.path() / "lib")

    assert health.dependency_graph == {"@a": [], "@b": []}
    assert health.violations == []
    assert health.score == 100


def test_missing_lib_directory_is_healthy(tmp_path: Path) -> None:
    health = analyze_architecture(tmp_path / "missing")

    assert health.score == 100
    assert health.dependency_graph == {}


def test_find_cycles_reports_each_cycle_once() -> None:
    graph = {"a": ["b"], "b": ["c"], "c": ["a"], "d": ["a"]}

    assert find_cycles(graph) == [["a", "b", "c", "a"]]


def test_find_cycles_on_acyclic_graph() -> None:
    assert find_cycles({"a": ["b", "c"], "b": ["c"], "c": []}) == []


def test_score_architecture_floors_at_zero() -> None:
    violations = [
        ArchViolation(
            type="circular",
            severity="error",
            from_module="a",
            to_module="b",
            message="Circular dependency: a -> b -> a",
            fix="Break the cycle by extracting shared code or using interfaces",
        )
        for _ in range(7)
    ]

    assert score_architecture(violations) == 0
    assert score_architecture(violations[:2]) == 70
