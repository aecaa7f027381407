"""Tests for import cross-referencing and specifier rewriting."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from tests._fixtures.repo_builder import RepoBuilder
from tsrefactor.analyzers.imports import (
    ImportIndex,
    ImportMember,
    find_affected_imports,
    format_named_import,
    iter_named_imports,
    iter_specifiers,
    relocate_relative_imports,
    rewrite_imports,
    runtime_imports,
    specifier_reaches,
)
from tsrefactor.analyzers.parser import ParsedSource


def _project(repo_builder: RepoBuilder) -> Path:
    repo_builder.write(
        {
            "src/lib/@utils/index.ts": "export * from './date';\n",
            "src/lib/@utils/date.ts": "export const formatDate = (d: Date) => d.toISOString();\n",
            "src/components/a.ts": "import { formatDate } from '../lib/@utils/date';\n",
            "src/components/b.ts": "import { formatDate } from '@/lib/@utils/date';\n",
            "src/components/c.ts": "import { other } from '../lib/@utils/other';\n",
            "src/components/d.ts": "import { formatDate } from '../lib/@utils';\n",
            "node_modules/pkg/index.ts": "import { formatDate } from '../../src/lib/@utils/date';\n",
        }
    )
    return repo_builder.path()


def test_iter_specifiers_covers_every_import_form() -> None:
    content = """
        import React from "react";
        import './polyfill';
        export { thing } from '../thing';
        const lazy = import('./lazy');
        const legacy = require("./legacy");
    """

    assert iter_specifiers(content) == ["react", "./polyfill", "../thing", "./lazy", "./legacy"]


def test_find_affected_imports_resolves_relative_and_alias_specifiers(repo_builder: RepoBuilder) -> None:
    root = _project(repo_builder)

    affected = find_affected_imports(
        root / "src/lib/@utils/date.ts",
        root,
        lib_root=root / "src/lib",
    )

    assert affected == ["src/components/a.ts", "src/components/b.ts", "src/lib/@utils/index.ts"]


def test_directory_sources_match_files_inside_them(repo_builder: RepoBuilder) -> None:
    root = _project(repo_builder)

    affected = find_affected_imports("src/lib/@utils", root, lib_root="src/lib")

    assert affected == [
        "src/components/a.ts",
        "src/components/b.ts",
        "src/components/c.ts",
        "src/components/d.ts",
    ]


def test_references_repeat_files_per_matching_statement(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "lib/date.ts": "export const a = 1;\nexport const b = 2;\n",
            "app.ts": "import { a } from './lib/date';\nexport { b } from './lib/date.js';\n",
        }
    )
    index = ImportIndex.build(repo_builder.path())

    assert index.references("lib/date.ts") == ["app.ts", "app.ts"]
    assert index.importers("lib/date.ts") == ["app.ts"]


def test_rewrite_imports_updates_relative_and_alias_specifiers(tmp_path: Path) -> None:
    root = tmp_path / "project"
    content = (
        "import { formatDate } from '../lib/@utils/date';\n"
        "import { parse } from '@/lib/@utils/date';\n"
        "import React from 'react';\n"
    )

    updated = rewrite_imports(
        content,
        root / "src/components/a.ts",
        root / "src/lib/@utils/date.ts",
        root / "src/lib/@core/date.ts",
        lib_root=root / "src/lib",
    )

    assert updated == (
        "import { formatDate } from '../lib/@core/date';\n"
        "import { parse } from '@/lib/@core/date';\n"
        "import React from 'react';\n"
    )


def test_rewrite_imports_keeps_js_extensions(tmp_path: Path) -> None:
    content = "export * from './date.js';\n"

    updated = rewrite_imports(content, tmp_path / "index.ts", tmp_path / "date.ts", tmp_path / "time/date.ts")

    assert updated == "export * from './time/date.js';\n"


def test_rewrite_imports_retargets_paths_inside_moved_directory(tmp_path: Path) -> None:
    content = "import { x } from '../lib/@a/@b/thing';\n"

    updated = rewrite_imports(
        content,
        tmp_path / "src/app.ts",
        tmp_path / "lib/@a/@b",
        tmp_path / "lib/@b",
    )

    assert updated == "import { x } from '../lib/@b/thing';\n"


def test_rewrite_imports_leaves_unrelated_content_untouched(tmp_path: Path) -> None:
    content = "import { y } from './other';\nconst label = './date';\n"

    assert rewrite_imports(content, tmp_path / "a.ts", tmp_path / "date.ts", tmp_path / "new.ts") == content


def test_relocate_relative_imports_follows_moved_directory(tmp_path: Path) -> None:
    content = "import { helper } from './helper';\nimport { shared } from '../shared';\nimport x from 'x';\n"

    updated = relocate_relative_imports(
        content,
        tmp_path / "lib/@a/@b/index.ts",
        tmp_path / "lib/@b/index.ts",
        moved_from=tmp_path / "lib/@a/@b",
        moved_to=tmp_path / "lib/@b",
    )

    assert updated == "import { helper } from './helper';\nimport { shared } from '../@a/shared';\nimport x from 'x';\n"


def test_runtime_imports_skip_type_only_statements(parse: Callable[..., ParsedSource]) -> None:
    parsed = parse(
        """
        import type { A } from './a';
        import { type B, type C } from './b';
        import { d, type E } from './d';
        import './side-effect';
        import * as ns from './ns';
        export { f } from './f';
        """
    )

    assert runtime_imports(parsed) == ["./d", "./side-effect", "./ns"]


def test_iter_named_imports_reads_bindings_and_spans() -> None:
    content = (
        "import React, { useState as state, type Props } from \"react\";\n"
        "import type { User } from './types'\n"
        "import * as path from 'path';\n"
    )

    first, second = iter_named_imports(content)

    assert first.specifier == "react"
    assert first.default == "React"
    assert first.quote == '"'
    assert first.members == [
        ImportMember("useState", "state"),
        ImportMember("Props", "Props", type_only=True),
    ]
    assert first.imports("useState") == ImportMember("useState", "state")
    assert first.imports("state") is None
    assert content[first.start : first.end] == 'import React, { useState as state, type Props } from "react";'

    assert second.type_only is True
    assert second.specifier == "./types"
    assert content[second.start : second.end] == "import type { User } from './types'"


def test_format_named_import_renders_members_and_default() -> None:
    members = [ImportMember("Account", "Profile"), ImportMember("Id", "Id", type_only=True)]

    assert format_named_import(members, "./types") == "import { Account as Profile, type Id } from './types';"
    assert format_named_import(members[:1], "./types", type_only=True, quote='"') == (
        'import type { Account as Profile } from "./types";'
    )
    assert format_named_import([], "./widget", default="Widget") == "import Widget from './widget';"


def test_specifier_reaches_relative_and_alias_imports(tmp_path: Path) -> None:
    lib = tmp_path / "src/lib"
    source = lib / "@utils/date.ts"
    importer = tmp_path / "src/components/a.ts"

    assert specifier_reaches("../lib/@utils/date", importer, source) is True
    assert specifier_reaches("../lib/@utils/date.js", importer, source) is True
    assert specifier_reaches("../lib/@utils/other", importer, source) is False
    assert specifier_reaches("@/lib/@utils/date", importer, source, lib_root=lib) is True
    assert specifier_reaches("@/lib/@utils/date", importer, source) is False


def test_type_importers_require_a_named_import_of_the_type(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/types.ts": "export interface User {\n  id: string;\n}\nexport type Id = string;\n",
            "src/a.ts": "import { User } from './types';\n",
            "src/b.ts": "import type { Id, User as Person } from './types';\n",
            "src/c.ts": "import { Id } from './types';\n",
            "src/d.ts": "import { User } from './other/types';\n",
        }
    )
    index = ImportIndex.build(repo_builder.path())

    assert sorted(index.type_importers("User", "src/types.ts")) == ["src/a.ts", "src/b.ts"]
    assert sorted(index.type_importers("Id", "src/types.ts")) == ["src/b.ts", "src/c.ts"]
    assert index.type_importers("Missing", "src/types.ts") == []
