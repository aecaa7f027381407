"""Text and JSON rendering of analysis and migration results."""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any, Dict, List

from .migration.executor import MigrationExecutionResult
from .models import RankingAnalysis, RefactorAnalysis, TypeMigrationPlan


def analysis_to_dict(analysis: RefactorAnalysis) -> Dict[str, Any]:
    return asdict(analysis)


def render_json(analysis: RefactorAnalysis) -> str:
    return json.dumps(analysis_to_dict(analysis), indent=2, sort_keys=False)


def _percent(value: float) -> str:
    return f"{round(value * 100)}%"


def render_text(analysis: RefactorAnalysis) -> str:
    """Human-readable summary of one analysis run."""
    stats = analysis.stats
    lines: List[str] = [
        f"Refactor analysis for {analysis.path}",
        f"Lib path: {analysis.lib_path}",
        f"Files: {stats.analyzed} analyzed, {stats.skipped} skipped, {stats.failed} failed",
        "",
    ]

    lines.append(f"Duplicate functions ({len(analysis.duplicates)}):")
    if not analysis.duplicates:
        lines.append("  none")
    for duplicate in analysis.duplicates:
        lines.append(f"  {duplicate.name} [{duplicate.recommendation}, {_percent(duplicate.similarity)}]")
        for location in duplicate.locations:
            marker = " (exported)" if location.exported else ""
            lines.append(f"    - {location.file}:{location.line}{marker}")

    if analysis.type_duplicates is not None:
        lines.append("")
        lines.append(f"Duplicate types ({len(analysis.type_duplicates)}):")
        if not analysis.type_duplicates:
            lines.append("  none")
        for duplicate in analysis.type_duplicates:
            lines.append(
                f"  {duplicate.name} ({duplicate.kind}) [{duplicate.recommendation}, {_percent(duplicate.similarity)}]"
            )
            for location in duplicate.locations:
                lines.append(f"    - {location.name} {location.file}:{location.line}")
            if duplicate.difference:
                lines.append(f"    {duplicate.difference}")

    structure = analysis.structure
    lines.append("")
    lines.append(f"Structure score: {structure.score}/100")
    for issue in structure.issues:
        lines.append(f"  [{issue.severity}] {issue.message}")

    lines.append(f"Architecture score: {analysis.arch_health.score}/100")
    for violation in analysis.arch_health.violations:
        lines.append(f"  [{violation.severity}] {violation.message}")

    plan = analysis.enhanced_migration
    risk = plan.risk_summary
    lines.append("")
    lines.append(
        f"Migration plan: {len(plan.actions)} actions, {plan.files_affected} files affected, "
        f"{plan.imports_to_update} imports to update "
        f"(safe {risk.safe}, medium {risk.medium}, risky {risk.risky})"
    )
    for action in plan.actions:
        target = f" -> {action.target}" if action.target else ""
        after = f" (after {', '.join(action.prerequisite)})" if action.prerequisite else ""
        lines.append(f"  {action.id} {action.type} {action.source}{target} [{action.risk}]{after}")
    if plan.rollback_points:
        lines.append(f"  Rollback points: {', '.join(plan.rollback_points)}")

    if analysis.type_migration is not None:
        lines.extend(_type_migration_lines(analysis.type_migration))
    if analysis.ranking is not None:
        lines.extend(_ranking_lines(analysis.ranking))

    return "\n".join(lines)


def _type_migration_lines(plan: TypeMigrationPlan) -> List[str]:
    risk = plan.risk_summary
    lines = [
        "",
        f"Type migration plan: {plan.types_to_remove} types to remove, {plan.imports_to_update} imports to update, "
        f"{plan.files_affected} files affected (safe {risk.safe}, medium {risk.medium}, risky {risk.risky})",
    ]
    for action in plan.actions:
        alias = f" as {action.target_name}" if action.target_name != action.type_name else ""
        lines.append(
            f"  {action.id} remove {action.type_name} from {action.source_file} "
            f"-> {action.target_file}{alias} [{action.risk}]"
        )
    for update in plan.import_updates:
        lines.append(f"  {update.id} {update.file}: {update.old_source} -> {update.new_source}")
    return lines


def _ranking_lines(ranking: RankingAnalysis) -> List[str]:
    lines = ["", f"Dependency hotspots ({len(ranking.hotspots)}):"]
    if not ranking.hotspots:
        lines.append("  none")
    for hotspot in ranking.hotspots:
        lines.append(
            f"  {hotspot.path} [{hotspot.risk_level}] PageRank {hotspot.page_rank:.4f} "
            f"(p{hotspot.percentile}, Ca {hotspot.coupling.afferent_coupling}, "
            f"Ce {hotspot.coupling.efferent_coupling}, I {hotspot.coupling.instability:.2f}): {hotspot.reason}"
        )

    order = ranking.safe_order
    lines.append(f"Safe refactoring order ({len(order.phases)} phases, estimated risk {order.estimated_risk}):")
    for phase in order.phases:
        parallel = ", parallel" if phase.can_parallelize else ""
        after = f" (after {', '.join(str(item) for item in phase.prerequisites)})" if phase.prerequisites else ""
        lines.append(
            f"  {phase.order}. {', '.join(phase.modules)} [{phase.category}, {phase.risk_level}{parallel}]{after}"
        )
    if order.cycles:
        lines.append(f"  Cycles: {'; '.join(' <-> '.join(cycle) for cycle in order.cycles)}")
    return lines


def render_execution(result: MigrationExecutionResult, *, title: str = "Migration") -> str:
    header = f"{title} preview (dry-run):" if result.dry_run else f"{title} results:"
    lines = [header]
    for item in result.results:
        status = "ok" if item.success else "FAILED"
        lines.append(f"  {item.action_id} [{status}] {item.message}")
    if result.backup_dir:
        lines.append(f"Backups written to {result.backup_dir}")
    return "\n".join(lines)


__all__ = ["analysis_to_dict", "render_execution", "render_json", "render_text"]
