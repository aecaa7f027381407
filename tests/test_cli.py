"""CLI parser and command behaviour tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tests._fixtures.repo_builder import RepoBuilder
from tsrefactor.cli import _build_parser, main


def _duplicated_project(repo_builder: RepoBuilder) -> Path:
    source = "export function formatDate(d: Date) { return d.toISOString().slice(0, 10); }\n"
    repo_builder.write(
        {
            "src/lib/@dates/index.ts": "export * from './format';\n",
            "src/lib/@dates/format.ts": source,
            "src/lib/@legacy/index.ts": "export * from './format';\n",
            "src/lib/@legacy/format.ts": source,
        }
    )
    return repo_builder.path()


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "analyze"])
    assert args.verbose is True
    assert args.command == "analyze"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["quick-scan", "src", "--verbose"])
    assert args.verbose is True
    assert args.command == "quick-scan"
    assert args.path == "src"


def test_cli_analyze_flags() -> None:
    parser = _build_parser()
    args = parser.parse_args(["analyze", "app", "--lib-path", "packages/lib", "--format", "json", "--no-types"])
    assert args.lib_path == "packages/lib"
    assert args.format == "json"
    assert args.no_types is True
    assert args.verbose is False


def test_cli_migrate_defaults_to_preview() -> None:
    parser = _build_parser()
    args = parser.parse_args(["migrate"])
    assert args.apply is False
    assert args.no_backup is False

    args = parser.parse_args(["migrate", "--apply", "--no-backup"])
    assert args.apply is True
    assert args.no_backup is True


def test_cli_rejects_unknown_format() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["analyze", "--format", "xml"])


def test_analyze_json_output(repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = _duplicated_project(repo_builder)

    main(["analyze", str(root), "--format", "json"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["lib_path"] == str(root / "src" / "lib")
    assert [duplicate["name"] for duplicate in payload["duplicates"]] == ["formatDate"]
    assert payload["duplicates"][0]["recommendation"] == "merge"
    assert payload["stats"]["analyzed"] == 4


def test_analyze_text_output(repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = _duplicated_project(repo_builder)

    main(["analyze", str(root)])

    out = capsys.readouterr().out
    assert "Duplicate functions (1):" in out
    assert "formatDate [merge, 100%]" in out
    assert "Structure score:" in out


def test_analyze_missing_path_exits_with_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["analyze", str(tmp_path / "missing")])

    assert excinfo.value.code == 1
    assert "Path not found" in capsys.readouterr().err


def test_analyze_unknown_lib_path_exits_with_error(
    repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _duplicated_project(repo_builder)

    with pytest.raises(SystemExit) as excinfo:
        main(["analyze", str(root), "--lib-path", "nope"])

    assert excinfo.value.code == 1
    captured = capsys.readouterr()
    assert "Path not found" in captured.err
    assert "Structure score" not in captured.out


def test_analyze_reports_config_errors(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / ".tsrefactor.yml").write_text("limits: [broken\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["analyze", str(tmp_path)])

    assert excinfo.value.code == 1
    assert "tsrefactor analyze failed" in capsys.readouterr().err


def test_quick_scan_prints_candidates(repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = _duplicated_project(repo_builder)

    main(["quick-scan", str(root)])

    out = capsys.readouterr().out
    assert "Functions declared in several files (1):" in out
    assert "formatDate:" in out
    assert "Types declared in several files (0):" in out


def test_migrate_preview_leaves_files_untouched(repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    root = _duplicated_project(repo_builder)

    main(["migrate", str(root)])

    out = capsys.readouterr().out
    assert out.startswith("Migration preview (dry-run):")
    assert "Would merge" in out
    assert (root / "src/lib/@legacy/format.ts").exists()


def test_cli_logging_and_type_flags(tmp_path: Path) -> None:
    parser = _build_parser()

    args = parser.parse_args(["--log-file", str(tmp_path / "run.log"), "migrate", "-q", "--types"])

    assert args.quiet is True
    assert args.log_file == tmp_path / "run.log"
    assert args.types is True
    assert parser.parse_args(["migrate"]).types is False


def _layered_project(repo_builder: RepoBuilder) -> Path:
    user = "export interface User {\n  id: string;\n}\n"
    repo_builder.write(
        {
            "src/lib/@core/index.ts": "export const core = 1;\n",
            "src/lib/@core/types.ts": user,
            "src/lib/@a/index.ts": "import { core } from '../@core';\nexport const a = core;\n",
            "src/lib/@b/user.ts": user,
            "src/app.ts": "import { User } from './lib/@b/user';\n",
        }
    )
    return repo_builder.path()


def test_analyze_text_output_lists_hotspots_and_type_plan(
    repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _layered_project(repo_builder)

    main(["analyze", str(root)])

    out = capsys.readouterr().out
    assert "Type migration plan: 1 types to remove, 1 imports to update" in out
    assert "type-act-1 remove User from src/lib/@b/user.ts -> src/lib/@core/types.ts [safe]" in out
    assert "Dependency hotspots (3):" in out
    assert "  @core [" in out
    assert "Safe refactoring order (3 phases" in out


def test_migrate_with_types_previews_type_removals(
    repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _layered_project(repo_builder)

    main(["migrate", str(root), "--types"])

    out = capsys.readouterr().out
    assert "Type migration preview (dry-run):" in out
    assert "type-act-1 [ok] Would remove User from src/lib/@b/user.ts" in out
    assert repo_builder.read("src/lib/@b/user.ts") == "export interface User {\n  id: string;\n}\n"
