"""Duplicate detection, layout and dependency analyzers for TypeScript sources."""

from .architecture import analyze_architecture
from .duplicates import cluster_functions, find_duplicates, quick_scan_duplicates
from .extraction import AnalysisCancelledError, ExtractionResult, FindDuplicatesOptions, gather_signatures
from .imports import ImportIndex, find_affected_imports, rewrite_imports
from .parser import ParseError, ParsedSource, SourceParser
from .ranking import analyze_ranking
from .similarity import calculate_similarity, classify, group_similarity
from .structure import analyze_structure
from .type_duplicates import cluster_types, find_type_duplicates, quick_scan_type_duplicates

__all__ = [
    "AnalysisCancelledError",
    "ExtractionResult",
    "FindDuplicatesOptions",
    "ImportIndex",
    "ParseError",
    "ParsedSource",
    "SourceParser",
    "analyze_architecture",
    "analyze_ranking",
    "analyze_structure",
    "calculate_similarity",
    "classify",
    "cluster_functions",
    "cluster_types",
    "find_affected_imports",
    "find_duplicates",
    "find_type_duplicates",
    "gather_signatures",
    "group_similarity",
    "quick_scan_duplicates",
    "quick_scan_type_duplicates",
    "rewrite_imports",
]
