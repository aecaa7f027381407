"""Core data models shared across tsrefactor components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

Recommendation = Literal["merge", "rename", "keep-both"]
TypeKind = Literal["interface", "type"]
Severity = Literal["error", "warning", "info"]
MigrationActionType = Literal["create-barrel", "move", "merge", "delete"]
RiskLevel = Literal["safe", "medium", "risky"]


# ----------------------------------------------------------------------
# Signatures


@dataclass
class FunctionSignature:
    """A named function (or exported function-valued binding) found in a file."""

    name: str
    file: str
    line: int
    params: List[str]
    return_type: str
    exported: bool
    body_hash: str
    normalized_body: str
    is_async: bool = False

    @property
    def param_count(self) -> int:
        return len(self.params)


@dataclass
class TypeSignature:
    """A named interface or type alias declaration."""

    name: str
    file: str
    line: int
    exported: bool
    kind: TypeKind
    normalized_structure: str
    structure_hash: str
    fields: Dict[str, str] = field(default_factory=dict)
    definition: str = ""


# ----------------------------------------------------------------------
# Duplicates


@dataclass
class DuplicateLocation:
    """Where one member of a duplicate group is declared."""

    file: str
    line: int
    exported: bool


@dataclass
class DuplicateInfo:
    """A suspected duplicate function group."""

    name: str
    locations: List[DuplicateLocation]
    similarity: float
    recommendation: Recommendation


@dataclass
class TypeDuplicateLocation:
    file: str
    line: int
    exported: bool
    name: str


@dataclass
class TypeDuplicateInfo:
    """A suspected duplicate interface/type alias group."""

    name: str
    kind: Literal["interface", "type", "mixed"]
    locations: List[TypeDuplicateLocation]
    similarity: float
    recommendation: Recommendation
    common_fields: Optional[List[str]] = None
    difference: Optional[str] = None


@dataclass
class ExtractionStats:
    """Per-run file accounting for the extraction stage."""

    analyzed: int = 0
    skipped: int = 0
    failed: int = 0

    def merge(self, other: "ExtractionStats") -> None:
        self.analyzed += other.analyzed
        self.skipped += other.skipped
        self.failed += other.failed


# ----------------------------------------------------------------------
# Structure and architecture


@dataclass
class StructureIssue:
    """A file-organization problem found under the lib root."""

    type: Literal["double-nesting", "missing-barrel", "inconsistent-naming", "duplicate-module"]
    severity: Severity
    message: str
    files: List[str]
    fix: Optional[str] = None


@dataclass
class StructureAnalysis:
    flat_files: List[str] = field(default_factory=list)
    namespaced_folders: List[str] = field(default_factory=list)
    double_nested: List[str] = field(default_factory=list)
    score: int = 100
    issues: List[StructureIssue] = field(default_factory=list)


@dataclass
class ArchViolation:
    """A dependency between namespaces that breaks architecture rules."""

    type: Literal["circular"]
    severity: Severity
    from_module: str
    to_module: str
    message: str
    fix: str


@dataclass
class ArchHealth:
    score: int = 100
    violations: List[ArchViolation] = field(default_factory=list)
    dependency_graph: Dict[str, List[str]] = field(default_factory=dict)
    layer_compliance: Dict[str, Dict[str, object]] = field(default_factory=dict)


# ----------------------------------------------------------------------
# Migration


@dataclass
class MigrationAction:
    """One planned file-system change, with paths relative to the lib root."""

    type: MigrationActionType
    source: str
    risk: RiskLevel
    target: Optional[str] = None
    affected_imports: List[str] = field(default_factory=list)


@dataclass
class RiskSummary:
    safe: int = 0
    medium: int = 0
    risky: int = 0


@dataclass
class MigrationPlan:
    actions: List[MigrationAction] = field(default_factory=list)
    files_affected: int = 0
    imports_to_update: int = 0
    risk_summary: RiskSummary = field(default_factory=RiskSummary)


@dataclass
class AffectedDetail:
    file: str
    import_count: int


@dataclass
class EnhancedMigrationAction(MigrationAction):
    """A migration action positioned inside an ordered execution plan."""

    id: str = ""
    order: int = 0
    prerequisite: List[str] = field(default_factory=list)
    reason: str = ""
    affected_details: List[AffectedDetail] = field(default_factory=list)


@dataclass
class ExecutionStep:
    step: int
    action_id: str
    can_parallelize: bool


@dataclass
class EnhancedMigrationPlan:
    actions: List[EnhancedMigrationAction] = field(default_factory=list)
    files_affected: int = 0
    imports_to_update: int = 0
    risk_summary: RiskSummary = field(default_factory=RiskSummary)
    execution_order: List[ExecutionStep] = field(default_factory=list)
    rollback_points: List[str] = field(default_factory=list)


# ----------------------------------------------------------------------
# Ranking


RankRiskLevel = Literal["low", "medium", "high", "critical"]


@dataclass
class CouplingMetrics:
    """Afferent (Ca) and efferent (Ce) coupling of one namespace."""

    path: str
    afferent_coupling: int
    efferent_coupling: int
    instability: float
    risk_score: float


@dataclass
class DependencyHotspot:
    path: str
    page_rank: float
    percentile: int
    dependent_count: int
    dependency_count: int
    risk_level: RankRiskLevel
    coupling: CouplingMetrics
    reason: str = ""


@dataclass
class RefactoringPhase:
    """Namespaces that can be refactored together, after the phases in ``prerequisites``."""

    order: int
    modules: List[str]
    can_parallelize: bool
    risk_level: RankRiskLevel
    risk_score: int
    category: Literal["leaf", "intermediate", "core", "cycle"]
    prerequisites: List[int] = field(default_factory=list)


@dataclass
class SafeRefactoringOrder:
    phases: List[RefactoringPhase] = field(default_factory=list)
    total_modules: int = 0
    estimated_risk: RankRiskLevel = "low"
    cycles: List[List[str]] = field(default_factory=list)
    leaf_nodes: List[str] = field(default_factory=list)
    core_nodes: List[str] = field(default_factory=list)


@dataclass
class RankingStats:
    node_count: int = 0
    edge_count: int = 0
    converged: bool = True
    cycle_count: int = 0


@dataclass
class RankingAnalysis:
    page_rank: Dict[str, float] = field(default_factory=dict)
    hotspots: List[DependencyHotspot] = field(default_factory=list)
    coupling_metrics: List[CouplingMetrics] = field(default_factory=list)
    safe_order: SafeRefactoringOrder = field(default_factory=SafeRefactoringOrder)
    stats: RankingStats = field(default_factory=RankingStats)


# ----------------------------------------------------------------------
# Type migration


@dataclass
class TypeMigrationAction:
    """Remove a duplicate type declaration in favour of the canonical one."""

    id: str
    type_name: str
    source_file: str
    target_file: str
    target_name: str
    risk: RiskLevel
    similarity: float
    type: Literal["remove-type"] = "remove-type"
    preserve_jsdoc: bool = False


@dataclass
class TypeImportUpdate:
    """Point one importer of ``type_name`` at the canonical declaration."""

    id: str
    file: str
    type_name: str
    old_source: str
    new_source: str
    new_name: str
    action_id: str


@dataclass
class TypeMigrationPlan:
    actions: List[TypeMigrationAction] = field(default_factory=list)
    import_updates: List[TypeImportUpdate] = field(default_factory=list)
    types_to_remove: int = 0
    imports_to_update: int = 0
    files_affected: int = 0
    risk_summary: RiskSummary = field(default_factory=RiskSummary)


# ----------------------------------------------------------------------
# Analysis result


@dataclass
class RefactorAnalysis:
    """Everything one analysis run produced."""

    path: str
    lib_path: str
    duplicates: List[DuplicateInfo]
    structure: StructureAnalysis
    migration: MigrationPlan
    enhanced_migration: EnhancedMigrationPlan
    arch_health: ArchHealth
    stats: ExtractionStats
    timestamp: str
    type_duplicates: Optional[List[TypeDuplicateInfo]] = None
    type_migration: Optional[TypeMigrationPlan] = None
    ranking: Optional[RankingAnalysis] = None
