"""Tests for migration plan execution."""

from __future__ import annotations

from pathlib import Path

from tests._fixtures.repo_builder import RepoBuilder
from tsrefactor.migration.executor import barrel_exports, execute_migration_plan
from tsrefactor.migration.planner import create_enhanced_migration_plan, populate_affected_imports
from tsrefactor.models import MigrationAction, MigrationPlan


def _plan(*actions: tuple[str, str, str | None]) -> MigrationPlan:
    risks = {"create-barrel": "safe", "move": "medium", "merge": "risky", "delete": "risky"}
    return MigrationPlan(
        actions=[
            MigrationAction(type=kind, source=source, target=target, risk=risks[kind])  # type: ignore[arg-type]
            for kind, source, target in actions
        ]
    )


def _helpers_lib(repo_builder: RepoBuilder) -> Path:
    repo_builder.write(
        {
            "src/lib/helpers/format.ts": "export const format = (value: string) => value.trim();\n",
            "src/lib/helpers/Widget.tsx": "export default function Widget() { return null; }\n",
            "src/lib/helpers/format.test.ts": "export const spec = 1;\n",
            "src/lib/helpers/sub/index.ts": "export const nested = 1;\n",
        }
    )
    return repo_builder.path()


def test_dry_run_reports_without_touching_files(repo_builder: RepoBuilder) -> None:
    root = _helpers_lib(repo_builder)

    result = execute_migration_plan(_plan(("create-barrel", "helpers", None)), root, root / "src/lib")

    assert result.success is True
    assert result.dry_run is True
    assert result.backup_dir is None
    (outcome,) = result.results
    assert outcome.action_id == "act-1"
    assert outcome.message == "Would create barrel export: helpers/index.ts"
    assert not (root / "src/lib/helpers/index.ts").exists()


def test_create_barrel_writes_re_exports(repo_builder: RepoBuilder) -> None:
    root = _helpers_lib(repo_builder)

    result = execute_migration_plan(
        _plan(("create-barrel", "helpers", None)), root, root / "src/lib", dry_run=False
    )

    assert result.success is True
    assert repo_builder.read("src/lib/helpers/index.ts") == (
        "export { default as Widget } from './Widget';\n"
        "export * from './format';\n"
        "export * from './sub';\n"
    )


def test_barrel_exports_skip_declarations_and_tests(tmp_path: Path) -> None:
    (tmp_path / "types.d.ts").write_text("export interface A {}\n", encoding="utf-8")
    (tmp_path / "a.spec.ts").write_text("export const a = 1;\n", encoding="utf-8")
    (tmp_path / "plain.ts").write_text("const local = 1;\n", encoding="utf-8")

    assert barrel_exports(tmp_path) == []


def test_move_relocates_directory_and_rewrites_importers(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/lib/@core/helper.ts": "export const helper = () => 1;\n",
            "src/lib/@core/@inner/thing.ts": "import { helper } from '../helper';\nexport const thing = helper();\n",
            "src/app.ts": "import { thing } from './lib/@core/@inner/thing';\n",
        }
    )
    root = repo_builder.path()
    lib = root / "src/lib"
    plan = populate_affected_imports(_plan(("move", "@core/@inner", "@inner")), root, lib)

    result = execute_migration_plan(plan, root, lib, dry_run=False)

    assert result.success is True, result.results
    assert result.results[0].message == "Moved @core/@inner -> @inner (1 files updated)"
    assert not (lib / "@core/@inner").exists()
    assert repo_builder.read("src/lib/@inner/thing.ts").startswith("import { helper } from '../@core/helper';")
    assert repo_builder.read("src/app.ts") == "import { thing } from './lib/@inner/thing';\n"

    assert result.backup_dir is not None
    backup = Path(result.backup_dir)
    assert backup.parent == root / ".tsrefactor" / "backups"
    assert (backup / "src/lib/@core/@inner/thing.ts").is_file()


def test_move_refuses_to_overwrite_existing_target(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/lib/@core/@inner/thing.ts": "export const thing = 1;\n",
            "src/lib/@inner/other.ts": "export const other = 1;\n",
        }
    )
    root = repo_builder.path()

    result = execute_migration_plan(_plan(("move", "@core/@inner", "@inner")), root, root / "src/lib")

    assert result.success is False
    assert result.results[0].message == "Target already exists: @inner. Cannot overwrite."


def test_paths_escaping_the_lib_root_fail(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/lib/a.ts": "export const a = 1;\n", "outside/b.ts": "export const b = 1;\n"})
    root = repo_builder.path()

    result = execute_migration_plan(
        _plan(("create-barrel", "../../outside", None)), root, root / "src/lib", dry_run=False
    )

    assert result.success is False
    assert "escapes lib root" in result.results[0].message
    assert not (root / "outside/index.ts").exists()


def test_failed_prerequisites_skip_dependent_actions(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/lib/a.ts": "export const a = 1;\n", "src/lib/b.ts": "export const b = 1;\n"})
    root = repo_builder.path()
    plan = _plan(("move", "missing", "moved"), ("merge", "a.ts", "b.ts"), ("delete", "a.ts", None))

    result = execute_migration_plan(plan, root, root / "src/lib", dry_run=False)

    assert result.success is False
    assert [(outcome.action_id, outcome.success) for outcome in result.results] == [
        ("act-1", False),
        ("act-2", False),
        ("act-3", False),
    ]
    assert result.results[0].message == "Source does not exist: missing"
    assert result.results[1].message == "Skipped: prerequisite act-1 did not complete"
    assert result.results[2].message == "Skipped: prerequisite act-2 did not complete"
    assert (root / "src/lib/a.ts").exists()


def test_merge_then_delete_rewrites_imports_and_removes_source(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/lib/a.ts": "export function formatDate() { return 1; }\n",
            "src/lib/@utils/date.ts": "export function formatDate() { return 1; }\n",
            "src/app.ts": "import { formatDate } from './lib/a';\n",
        }
    )
    root = repo_builder.path()
    lib = root / "src/lib"
    plan = populate_affected_imports(
        _plan(("merge", "a.ts", "@utils/date.ts"), ("delete", "a.ts", None)), root, lib
    )
    enhanced = create_enhanced_migration_plan(plan)

    result = execute_migration_plan(enhanced, root, lib, dry_run=False, backup=False)

    assert result.success is True
    assert result.backup_dir is None
    assert repo_builder.read("src/app.ts") == "import { formatDate } from './lib/@utils/date';\n"
    assert not (lib / "a.ts").exists()


def test_merge_requires_existing_target(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/lib/a.ts": "export const a = 1;\n"})
    root = repo_builder.path()

    result = execute_migration_plan(_plan(("merge", "a.ts", "missing.ts")), root, root / "src/lib", dry_run=False)

    assert result.success is False
    assert result.results[0].message == "Merge target does not exist: missing.ts"


def test_delete_refuses_lib_root(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/lib/a.ts": "export const a = 1;\n"})
    root = repo_builder.path()

    result = execute_migration_plan(_plan(("delete", ".", None)), root, root / "src/lib", dry_run=False)

    assert result.success is False
    assert result.results[0].message == "Refusing to delete the lib root"
    assert (root / "src/lib/a.ts").exists()
