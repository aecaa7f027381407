"""Canonical text forms of function bodies and type shapes."""

from __future__ import annotations

import hashlib
import re

# Comments and string literals are lexed together in one left-to-right scan.
# An escape may be followed by a newline (line continuation).
_COMMENT_OR_STRING = re.compile(
    r"(?P<line>//[^\n]*)"
    r"|(?P<block>/\*[\s\S]*?\*/)"
    r"|(?P<string>'(?:[^'\\]|\\[\s\S])*'"
    r'|"(?:[^"\\]|\\[\s\S])*"'
    r"|`(?:[^`\\]|\\[\s\S])*`)"
)
_NUMBER_LITERAL = re.compile(r"\b[0-9]+\.?[0-9]*\b", re.ASCII)
_WHITESPACE = re.compile(r"\s+")

_STRING_PLACEHOLDERS = {"'": "'STR'", '"': '"STR"', "`": "`STR`"}
NUMBER_PLACEHOLDER = "NUM"

_IMPORT_QUALIFIER = re.compile(r"import\([^)]+\)\.")
_TYPE_OPERATOR = re.compile(r"[|&]")


def _strip_comment_or_string(match: re.Match[str]) -> str:
    literal = match.group("string")
    if literal is None:
        return ""
    return _STRING_PLACEHOLDERS[literal[0]]


def normalize_body(body: str) -> str:
    """Return ``body`` without comments, literal values or layout whitespace.

    Comments are dropped and string literals replaced in one scan, then
    numbers and whitespace are normalized. Applying the function twice
    yields the same text.
    """
    text = _COMMENT_OR_STRING.sub(_strip_comment_or_string, body)
    text = _NUMBER_LITERAL.sub(NUMBER_PLACEHOLDER, text)
    return _WHITESPACE.sub(" ", text).strip()


def hash_body(normalized: str) -> str:
    """MD5 digest of a normalized body, used for exact-duplicate bucketing."""
    return hashlib.md5(normalized.encode("utf-8"), usedforsecurity=False).hexdigest()


def normalize_type(type_text: str) -> str:
    """Normalize a type expression so member order and spacing do not matter."""
    text = _IMPORT_QUALIFIER.sub("", type_text)
    text = _WHITESPACE.sub("", text)
    members = sorted(part.strip() for part in _TYPE_OPERATOR.split(text))
    return "|".join(members)


__all__ = ["NUMBER_PLACEHOLDER", "hash_body", "normalize_body", "normalize_type"]
