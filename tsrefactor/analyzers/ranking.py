"""PageRank hotspots, coupling metrics and a safe refactoring order for lib namespaces.

The input is ``ArchHealth.dependency_graph`` (namespace -> namespaces it
imports). Edges keep that direction, so rank accumulates on the namespaces
many others depend on.

Refactoring order runs from dependents to dependencies: namespaces nothing
imports come first, shared core namespaces last, and every cycle is one
phase.
"""

from __future__ import annotations

import math
from typing import Dict, List, Mapping, Sequence, Tuple

import networkx as nx

from ..logging import get_logger
from ..models import (
    CouplingMetrics,
    DependencyHotspot,
    RankingAnalysis,
    RankingStats,
    RankRiskLevel,
    RefactoringPhase,
    SafeRefactoringOrder,
)

logger = get_logger("ranking")

DEFAULT_HOTSPOT_COUNT = 10
DAMPING = 0.85
MAX_ITERATIONS = 100
TOLERANCE = 1e-6

CRITICAL_PERCENTILE = 95
HIGH_PERCENTILE = 80
MEDIUM_PERCENTILE = 50
CORE_PERCENTILE = 80
LEAF_PERCENTILE = 20
CYCLE_RISK_MULTIPLIER = 1.5


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def percentile(value: float, values: Sequence[float]) -> int:
    """Share of ``values`` strictly below ``value``, as a whole percentage."""
    if not values:
        return 0
    below = sum(1 for other in values if other < value)
    return _round_half_up(below / len(values) * 100)


def build_dependency_digraph(dependency_graph: Mapping[str, Sequence[str]]) -> nx.DiGraph:
    digraph = nx.DiGraph()
    digraph.add_nodes_from(dependency_graph)
    for module, dependencies in dependency_graph.items():
        digraph.add_edges_from((module, dependency) for dependency in dependencies if dependency != module)
    return digraph


def compute_page_rank(digraph: nx.DiGraph) -> Tuple[Dict[str, float], bool]:
    """PageRank scores and whether the power iteration converged.

    A graph that does not converge falls back to uniform scores.
    """
    if digraph.number_of_nodes() == 0:
        return {}, True
    try:
        return nx.pagerank(digraph, alpha=DAMPING, max_iter=MAX_ITERATIONS, tol=TOLERANCE), True
    except nx.PowerIterationFailedConvergence:
        logger.warning("PageRank did not converge after %d iterations; using uniform scores", MAX_ITERATIONS)
        uniform = 1 / digraph.number_of_nodes()
        return {node: uniform for node in digraph}, False


def calculate_coupling_metrics(digraph: nx.DiGraph, page_rank: Mapping[str, float]) -> List[CouplingMetrics]:
    """Ca, Ce and instability per namespace, riskiest first."""
    metrics: List[CouplingMetrics] = []
    for module in digraph:
        afferent = digraph.in_degree(module)
        efferent = digraph.out_degree(module)
        total = afferent + efferent
        metrics.append(
            CouplingMetrics(
                path=module,
                afferent_coupling=afferent,
                efferent_coupling=efferent,
                instability=round(efferent / total, 2) if total else 0.0,
                risk_score=round(page_rank.get(module, 0.0) * afferent * 100, 2),
            )
        )
    return sorted(metrics, key=lambda metric: (-metric.risk_score, metric.path))


# ----------------------------------------------------------------------
# Hotspots


def _hotspot_risk(rank_percentile: int) -> RankRiskLevel:
    if rank_percentile >= CRITICAL_PERCENTILE:
        return "critical"
    if rank_percentile >= HIGH_PERCENTILE:
        return "high"
    if rank_percentile >= MEDIUM_PERCENTILE:
        return "medium"
    return "low"


def _hotspot_reason(rank_percentile: int, dependents: int, instability: float) -> str:
    parts: List[str] = []
    if rank_percentile >= CRITICAL_PERCENTILE:
        parts.append(f"Top {100 - rank_percentile}% by PageRank")
    if dependents > 5:
        parts.append(f"{dependents} dependents")
    if instability < 0.3:
        parts.append("stable core module")
    return ", ".join(parts) or "central in dependency graph"


def detect_hotspots(
    digraph: nx.DiGraph,
    page_rank: Mapping[str, float],
    coupling: Sequence[CouplingMetrics],
    count: int = DEFAULT_HOTSPOT_COUNT,
) -> List[DependencyHotspot]:
    """The ``count`` namespaces with the highest PageRank, ties broken by name."""
    scores = list(page_rank.values())
    by_path = {metric.path: metric for metric in coupling}
    ranked = sorted(page_rank.items(), key=lambda item: (-item[1], item[0]))[:count]

    hotspots: List[DependencyHotspot] = []
    for module, score in ranked:
        rank_percentile = percentile(score, scores)
        metrics = by_path.get(module) or CouplingMetrics(module, 0, 0, 0.0, 0.0)
        dependents = digraph.in_degree(module)
        hotspots.append(
            DependencyHotspot(
                path=module,
                page_rank=round(score, 4),
                percentile=rank_percentile,
                dependent_count=dependents,
                dependency_count=digraph.out_degree(module),
                risk_level=_hotspot_risk(rank_percentile),
                coupling=metrics,
                reason=_hotspot_reason(rank_percentile, dependents, metrics.instability),
            )
        )
    return hotspots


# ----------------------------------------------------------------------
# Safe refactoring order


def classify_node(
    module: str,
    coupling: Mapping[str, CouplingMetrics],
    page_rank: Mapping[str, float],
) -> str:
    """``leaf``, ``core`` or ``intermediate`` from afferent coupling and PageRank percentiles."""
    metrics = coupling.get(module)
    if metrics is None:
        return "intermediate"
    ca_percentile = percentile(metrics.afferent_coupling, [item.afferent_coupling for item in coupling.values()])
    rank_percentile = percentile(page_rank.get(module, 0.0), list(page_rank.values()))
    if metrics.afferent_coupling == 0 or (ca_percentile < LEAF_PERCENTILE and rank_percentile < LEAF_PERCENTILE):
        return "leaf"
    if ca_percentile >= CORE_PERCENTILE or rank_percentile >= CORE_PERCENTILE:
        return "core"
    return "intermediate"


def _phase_risk(
    modules: Sequence[str],
    coupling: Mapping[str, CouplingMetrics],
    page_rank: Mapping[str, float],
    is_cycle: bool,
) -> int:
    if not modules:
        return 0
    total = 0.0
    for module in modules:
        metrics = coupling.get(module)
        afferent = metrics.afferent_coupling if metrics is not None else 0
        total += afferent * 10 + page_rank.get(module, 0.0) * 100
    average = total / len(modules)
    return _round_half_up(average * (CYCLE_RISK_MULTIPLIER if is_cycle else 1))


def _phase_risk_level(score: int) -> RankRiskLevel:
    if score >= 50:
        return "critical"
    if score >= 30:
        return "high"
    if score >= 10:
        return "medium"
    return "low"


def generate_safe_order(
    digraph: nx.DiGraph,
    coupling: Sequence[CouplingMetrics],
    page_rank: Mapping[str, float],
) -> SafeRefactoringOrder:
    """Group namespaces into phases over the condensation of ``digraph``.

    Each strongly connected component becomes one phase. Phases follow the
    topological generations of the condensed graph; a phase lists the
    earlier phases holding its direct dependents as prerequisites.
    """
    if digraph.number_of_nodes() == 0:
        return SafeRefactoringOrder()

    by_path = {metric.path: metric for metric in coupling}
    classification = {module: classify_node(module, by_path, page_rank) for module in sorted(digraph)}
    condensed = nx.condensation(digraph)
    members = {component: sorted(condensed.nodes[component]["members"]) for component in condensed}

    phases: List[RefactoringPhase] = []
    phase_of: Dict[int, int] = {}
    for generation in nx.topological_generations(condensed):
        for component in sorted(generation, key=lambda item: members[item]):
            modules = members[component]
            is_cycle = len(modules) > 1
            if is_cycle:
                category = "cycle"
            elif classification[modules[0]] == "leaf":
                category = "leaf"
            elif classification[modules[0]] == "core":
                category = "core"
            else:
                category = "intermediate"
            score = _phase_risk(modules, by_path, page_rank, is_cycle)
            order = len(phases) + 1
            phase_of[component] = order
            phases.append(
                RefactoringPhase(
                    order=order,
                    modules=modules,
                    can_parallelize=not is_cycle and len(generation) > 1,
                    risk_level=_phase_risk_level(score),
                    risk_score=score,
                    category=category,
                    prerequisites=sorted(phase_of[dependent] for dependent in condensed.predecessors(component)),
                )
            )

    max_score = max((phase.risk_score for phase in phases), default=0)
    return SafeRefactoringOrder(
        phases=phases,
        total_modules=digraph.number_of_nodes(),
        estimated_risk=_phase_risk_level(max_score),
        cycles=sorted(modules for modules in members.values() if len(modules) > 1),
        leaf_nodes=[module for module, kind in classification.items() if kind == "leaf"],
        core_nodes=[module for module, kind in classification.items() if kind == "core"],
    )


def analyze_ranking(
    dependency_graph: Mapping[str, Sequence[str]],
    hotspot_count: int = DEFAULT_HOTSPOT_COUNT,
) -> RankingAnalysis:
    """Hotspots, coupling metrics and a safe refactoring order for ``dependency_graph``."""
    digraph = build_dependency_digraph(dependency_graph)
    page_rank, converged = compute_page_rank(digraph)
    coupling = calculate_coupling_metrics(digraph, page_rank)
    safe_order = generate_safe_order(digraph, coupling, page_rank)
    logger.debug(
        "Ranked %d namespaces (%d edges, %d cycles)",
        digraph.number_of_nodes(),
        digraph.number_of_edges(),
        len(safe_order.cycles),
    )
    return RankingAnalysis(
        page_rank=dict(page_rank),
        hotspots=detect_hotspots(digraph, page_rank, coupling, hotspot_count),
        coupling_metrics=coupling,
        safe_order=safe_order,
        stats=RankingStats(
            node_count=digraph.number_of_nodes(),
            edge_count=digraph.number_of_edges(),
            converged=converged,
            cycle_count=len(safe_order.cycles),
        ),
    )


__all__ = [
    "DEFAULT_HOTSPOT_COUNT",
    "analyze_ranking",
    "build_dependency_digraph",
    "calculate_coupling_metrics",
    "classify_node",
    "compute_page_rank",
    "detect_hotspots",
    "generate_safe_order",
    "percentile",
]
