"""Tests for the lib layout analyzer."""

from __future__ import annotations

from pathlib import Path

from tests._fixtures.repo_builder import RepoBuilder
from tsrefactor.analyzers.structure import analyze_structure, score_structure
from tsrefactor.models import StructureIssue


def _issues_by_type(analysis):
    grouped = {}
    for issue in analysis.issues:
        grouped.setdefault(issue.type, []).append(issue)
    return grouped


def test_structure_reports_every_issue_kind(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "lib/index.ts": "export * from './dateUtils';\n",
            "lib/dateUtils.ts": "export const a = 1;\n",
            "lib/string-utils.ts": "export const b = 1;\n",
            "lib/@core/index.ts": "export {};\n",
            "lib/@core/@inner/x.ts": "export const x = 1;\n",
            "lib/helpers/dateUtils.ts": "export const a = 2;\n",
        }
    )

    analysis = analyze_structure(repo_builder.path() / "lib")

    assert analysis.flat_files == ["dateUtils.ts", "string-utils.ts"]
    assert analysis.namespaced_folders == ["@core"]
    assert analysis.double_nested == ["@core/@inner"]

    issues = _issues_by_type(analysis)
    (nesting,) = issues["double-nesting"]
    assert nesting.severity == "warning"
    assert nesting.files == ["@core/@inner"]

    (barrel,) = issues["missing-barrel"]
    assert barrel.files == ["helpers"]

    naming = {issue.severity: issue for issue in issues["inconsistent-naming"]}
    assert naming["info"].files == ["dateUtils.ts", "string-utils.ts"]
    assert naming["warning"].files == ["@core", "helpers"]

    (duplicate,) = issues["duplicate-module"]
    assert duplicate.severity == "error"
    assert duplicate.files == ["dateUtils.ts", "helpers/dateUtils.ts"]
    assert "dateUtils" in duplicate.message

    assert analysis.score == 55


def test_well_organized_lib_scores_full_marks(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "lib/@auth/index.ts": "export * from './session';\n",
            "lib/@auth/session.ts": "export const session = 1;\n",
            "lib/@ui/index.ts": "export * from './button';\n",
            "lib/@ui/button.ts": "export const button = 1;\n",
        }
    )

    analysis = analyze_structure(repo_builder.path() / "lib")

    assert analysis.issues == []
    assert analysis.namespaced_folders == ["@auth", "@ui"]
    assert analysis.score == 100


def test_missing_lib_directory_yields_empty_analysis(tmp_path: Path) -> None:
    analysis = analyze_structure(tmp_path / "missing")

    assert analysis.flat_files == []
    assert analysis.issues == []
    assert analysis.score == 100


def test_score_penalizes_excessive_flat_files() -> None:
    assert score_structure([], flat_count=11, namespaced_count=0) == 85
    assert score_structure([], flat_count=2, namespaced_count=0) == 100


def test_score_is_clamped_at_zero() -> None:
    issues = [
        StructureIssue(type="duplicate-module", severity="error", message="dup", files=["a.ts"])
        for _ in range(6)
    ]

    assert score_structure(issues, flat_count=0, namespaced_count=0) == 0
