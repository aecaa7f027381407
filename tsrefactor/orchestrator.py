"""Pipeline orchestration for the analyze, quick-scan and migrate flows."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import List, Optional

from .analyzers.architecture import analyze_architecture
from .analyzers.duplicates import cluster_functions, quick_scan_duplicates
from .analyzers.extraction import FindDuplicatesOptions, gather_signatures
from .analyzers.imports import ImportIndex
from .analyzers.parser import SourceParser
from .analyzers.ranking import analyze_ranking
from .analyzers.structure import analyze_structure
from .analyzers.type_duplicates import cluster_types, quick_scan_type_duplicates
from .config import RefactorConfig, load_config
from .logging import get_logger, log_stage
from .migration.executor import MigrationExecutionResult, execute_migration_plan
from .migration.planner import create_enhanced_migration_plan, create_migration_plan, populate_affected_imports
from .migration.type_executor import execute_type_migration_plan
from .migration.type_planner import create_type_migration_plan
from .models import RefactorAnalysis

DEFAULT_LIB_CANDIDATES = ("src/lib", "lib")


@dataclass
class QuickScanResult:
    """Regex-only duplicate candidates."""

    functions: List[str]
    types: List[str]


@dataclass
class MigrationOutcome:
    """Result of a migrate run: the analysis it was planned from and what executing it did."""

    analysis: RefactorAnalysis
    execution: MigrationExecutionResult
    type_execution: Optional[MigrationExecutionResult] = None

    @property
    def succeeded(self) -> bool:
        return self.execution.success and (self.type_execution is None or self.type_execution.success)


class Orchestrator:
    """Coordinates extraction, clustering, planning and execution for one project."""

    def __init__(self, parser: SourceParser | None = None) -> None:
        self.parser = parser
        self.logger = get_logger("orchestrator")

    def run_analysis(
        self,
        path: str | Path,
        *,
        project_root: str | Path | None = None,
        lib_path: str | Path | None = None,
        include_types: Optional[bool] = None,
        verbose: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> RefactorAnalysis:
        """Analyze ``path`` for duplicates and plan the resulting migration."""
        target = self._resolve_existing(path)
        root = self._resolve_existing(project_root) if project_root is not None else target
        config = load_config(root)
        lib = self._resolve_lib_path(root, config, lib_path)
        with_types = config.analysis.include_types if include_types is None else include_types

        self.logger.info("Starting analysis of %s (lib: %s)", target, lib)
        parser = self.parser or SourceParser()
        options = FindDuplicatesOptions.from_config(
            config,
            verbose=verbose,
            parser=parser,
            cancel_event=cancel_event,
        )
        with log_stage(self.logger, "Extraction"):
            extraction = asyncio.run(gather_signatures(target, root, options, include_types=with_types))
        self.logger.debug(
            "Extracted %d functions and %d types", len(extraction.functions), len(extraction.types)
        )

        with log_stage(self.logger, "Clustering"):
            duplicates = cluster_functions(extraction.functions)
            type_duplicates = cluster_types(extraction.types) if with_types else None
        with log_stage(self.logger, "Structure and architecture"):
            structure = analyze_structure(lib)
            arch_health = analyze_architecture(lib)
            ranking = analyze_ranking(arch_health.dependency_graph)

        with log_stage(self.logger, "Planning"):
            plan = create_migration_plan(duplicates, structure, lib, root)
            index = ImportIndex.build(root, skip_dirs=config.analysis.skip_dirs)
            populate_affected_imports(plan, root, lib, index=index)
            enhanced = create_enhanced_migration_plan(plan, arch_health)
            type_migration = (
                create_type_migration_plan(type_duplicates, root, index=index, lib_root=lib)
                if type_duplicates is not None
                else None
            )

        self.logger.info(
            "Analysis finished: %d duplicate groups, %d planned actions (%d analyzed, %d skipped, %d failed)",
            len(duplicates),
            len(plan.actions),
            extraction.stats.analyzed,
            extraction.stats.skipped,
            extraction.stats.failed,
        )
        return RefactorAnalysis(
            path=str(target),
            lib_path=str(lib),
            duplicates=duplicates,
            structure=structure,
            migration=plan,
            enhanced_migration=enhanced,
            arch_health=arch_health,
            stats=extraction.stats,
            timestamp=datetime.now(UTC).isoformat(),
            type_duplicates=type_duplicates,
            type_migration=type_migration,
            ranking=ranking,
        )

    def run_quick_scan(self, path: str | Path) -> QuickScanResult:
        target = self._resolve_existing(path)
        self.logger.info("Quick scan of %s", target)
        return QuickScanResult(
            functions=quick_scan_duplicates(target),
            types=quick_scan_type_duplicates(target),
        )

    def run_migration(
        self,
        path: str | Path,
        *,
        lib_path: str | Path | None = None,
        dry_run: bool = True,
        backup: bool = True,
        types: bool = False,
        verbose: bool = False,
    ) -> MigrationOutcome:
        """Analyze ``path`` and execute the resulting plan (a preview unless ``dry_run`` is False).

        With ``types`` the duplicate type plan runs after the namespace plan.
        """
        analysis = self.run_analysis(
            path, lib_path=lib_path, include_types=True if types else None, verbose=verbose
        )
        root = Path(analysis.path)
        self.logger.info(
            "Executing %d migration actions%s",
            len(analysis.enhanced_migration.actions),
            " (dry-run)" if dry_run else "",
        )
        with log_stage(self.logger, "Migration"):
            execution = execute_migration_plan(
                analysis.enhanced_migration,
                root,
                analysis.lib_path,
                dry_run=dry_run,
                backup=backup,
            )

        type_execution = None
        if types and analysis.type_migration is not None:
            self.logger.info(
                "Executing %d type removals and %d import updates%s",
                analysis.type_migration.types_to_remove,
                analysis.type_migration.imports_to_update,
                " (dry-run)" if dry_run else "",
            )
            with log_stage(self.logger, "Type migration"):
                type_execution = execute_type_migration_plan(
                    analysis.type_migration,
                    root,
                    dry_run=dry_run,
                    backup=backup,
                    parser=self.parser,
                    lib_root=analysis.lib_path,
                )
        return MigrationOutcome(analysis=analysis, execution=execution, type_execution=type_execution)

    def _resolve_existing(self, path: str | Path) -> Path:
        resolved = Path(path).expanduser().resolve()
        if not resolved.exists():
            raise FileNotFoundError(f"Path not found: {path}")
        if not resolved.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {path}")
        return resolved

    def _resolve_lib_path(self, root: Path, config: RefactorConfig, lib_path: str | Path | None) -> Path:
        requested = lib_path if lib_path is not None else config.lib_path
        if requested:
            candidate = Path(requested).expanduser()
            return self._resolve_existing(candidate if candidate.is_absolute() else root / candidate)
        for candidate in DEFAULT_LIB_CANDIDATES:
            if (root / candidate).is_dir():
                return (root / candidate).resolve()
        return root


__all__ = ["MigrationOutcome", "Orchestrator", "QuickScanResult"]
