"""Tests for similarity scoring and recommendation thresholds."""

from __future__ import annotations

import pytest

from tsrefactor.analyzers.normalizer import hash_body
from tsrefactor.analyzers.similarity import (
    calculate_similarity,
    classify,
    group_similarity,
    jaccard,
    type_similarity,
)
from tsrefactor.models import TypeSignature


def _type(name: str, structure: str, *, kind: str = "interface", fields: dict | None = None) -> TypeSignature:
    return TypeSignature(
        name=name,
        file=f"src/{name}.ts",
        line=1,
        exported=True,
        kind=kind,  # type: ignore[arg-type]
        normalized_structure=structure,
        structure_hash=hash_body(structure),
        fields=fields or {},
    )


def test_identical_bodies_score_one() -> None:
    assert calculate_similarity("{ return a; }", "{ return a; }") == 1.0


def test_similarity_is_symmetric_token_jaccard() -> None:
    first = "a b c d"
    second = "a b c e"

    assert calculate_similarity(first, second) == pytest.approx(0.6)
    assert calculate_similarity(second, first) == calculate_similarity(first, second)


def test_large_length_difference_short_circuits_to_zero() -> None:
    assert calculate_similarity("a", "a b c d e f") == 0.0


def test_jaccard_of_empty_sets_is_zero() -> None:
    assert jaccard(set(), set()) == 0.0


def test_group_similarity_uses_weakest_pair() -> None:
    bodies = ["a b c d", "a b c d", "a b c e"]

    assert group_similarity(bodies) == pytest.approx(0.6)
    assert group_similarity(["only"]) == 0.0


@pytest.mark.parametrize(
    ("similarity", "expected"),
    [
        (1.0, "merge"),
        (0.81, "merge"),
        (0.8, "rename"),
        (0.31, "rename"),
        (0.3, "keep-both"),
        (0.0, "keep-both"),
    ],
)
def test_classify_uses_strict_thresholds(similarity: float, expected: str) -> None:
    assert classify(similarity) == expected


def test_classify_accepts_custom_rename_threshold() -> None:
    assert classify(0.4, rename_threshold=0.5) == "keep-both"
    assert classify(0.6, rename_threshold=0.5) == "rename"


def test_type_similarity_compares_interface_fields() -> None:
    first = _type("User", "email:string;id:string", fields={"id": "string", "email": "string"})
    second = _type("User", "id:string;name:string", fields={"id": "string", "name": "string"})

    assert type_similarity(first, second) == pytest.approx(1 / 3)


def test_type_similarity_of_aliases_uses_structure_tokens() -> None:
    first = _type("Status", "'a'|'b'", kind="type")
    second = _type("State", "'a'|'c'", kind="type")

    assert 0.0 < type_similarity(first, second) < 1.0
    assert type_similarity(first, _type("Other", "'a'|'b'", kind="type")) == 1.0
