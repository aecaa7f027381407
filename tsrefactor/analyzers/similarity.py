"""Similarity scoring for normalized bodies and type structures."""

from __future__ import annotations

import re
from itertools import combinations
from typing import Callable, Sequence, Set, TypeVar

from ..models import Recommendation, TypeSignature

MERGE_THRESHOLD = 0.8
RENAME_THRESHOLD = 0.3
TYPE_RENAME_THRESHOLD = 0.5
LENGTH_DIFF_THRESHOLD = 0.5

_TYPE_TOKEN_SPLIT = re.compile(r"[^a-zA-Z0-9_]")

T = TypeVar("T")


def jaccard(first: Set[str], second: Set[str]) -> float:
    union = first | second
    if not union:
        return 0.0
    return len(first & second) / len(union)


def calculate_similarity(first: str, second: str) -> float:
    """Token-set Jaccard similarity of two normalized bodies, in ``[0, 1]``."""
    if first == second:
        return 1.0

    longest = max(len(first), len(second))
    if abs(len(first) - len(second)) / longest > LENGTH_DIFF_THRESHOLD:
        return 0.0

    return jaccard(set(first.split()), set(second.split()))


def min_pairwise(items: Sequence[T], score: Callable[[T, T], float]) -> float:
    """Smallest ``score`` over every pair of ``items``; 0.0 for fewer than two."""
    if len(items) < 2:
        return 0.0
    return min(score(a, b) for a, b in combinations(items, 2))


def group_similarity(bodies: Sequence[str]) -> float:
    """Conservative similarity of a group: the minimum over all pairs."""
    return min_pairwise(bodies, calculate_similarity)


def classify(
    similarity: float,
    *,
    merge_threshold: float = MERGE_THRESHOLD,
    rename_threshold: float = RENAME_THRESHOLD,
) -> Recommendation:
    if similarity > merge_threshold:
        return "merge"
    if similarity > rename_threshold:
        return "rename"
    return "keep-both"


def type_similarity(first: TypeSignature, second: TypeSignature) -> float:
    """Structural similarity of two type declarations."""
    if first.structure_hash == second.structure_hash:
        return 1.0

    if first.kind == "interface" and second.kind == "interface":
        return jaccard(set(first.fields), set(second.fields))

    tokens_first = set(_TYPE_TOKEN_SPLIT.split(first.normalized_structure))
    tokens_second = set(_TYPE_TOKEN_SPLIT.split(second.normalized_structure))
    return jaccard(tokens_first, tokens_second)


__all__ = [
    "LENGTH_DIFF_THRESHOLD",
    "MERGE_THRESHOLD",
    "RENAME_THRESHOLD",
    "TYPE_RENAME_THRESHOLD",
    "calculate_similarity",
    "classify",
    "group_similarity",
    "jaccard",
    "min_pairwise",
    "type_similarity",
]
