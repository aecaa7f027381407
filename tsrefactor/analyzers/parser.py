"""Tree-sitter parser service for TypeScript and JSX-flavoured sources."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

TYPESCRIPT = "typescript"
TSX = "tsx"

_DIALECT_BY_SUFFIX = {
    ".ts": TYPESCRIPT,
    ".mts": TYPESCRIPT,
    ".cts": TYPESCRIPT,
    ".tsx": TSX,
    # Plain JavaScript may carry JSX, and the tsx grammar accepts both.
    ".js": TSX,
    ".jsx": TSX,
    ".mjs": TSX,
    ".cjs": TSX,
}


class ParseError(ValueError):
    """Raised when a source file cannot be parsed into a clean syntax tree."""


@dataclass
class ParsedSource:
    """A parsed file together with the bytes its node offsets refer to."""

    path: str
    dialect: str
    tree: Tree
    source: bytes

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def text(self, node: Node | None) -> str:
        if node is None:
            return ""
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")

    @staticmethod
    def line(node: Node) -> int:
        return node.start_point[0] + 1


def dialect_for(path: str | Path) -> str:
    """Return the grammar used for ``path``; unknown suffixes get the TypeScript grammar."""
    suffix = Path(path).suffix.lower()
    return _DIALECT_BY_SUFFIX.get(suffix, TYPESCRIPT)


class SourceParser:
    """Shared parsing handle for one analysis run.

    Compiled languages are shared; each worker thread gets its own
    ``tree_sitter.Parser`` because parser instances carry mutable state.
    """

    def __init__(self, *, strict: bool = True) -> None:
        self.strict = strict
        self._languages: Dict[str, Language] = {
            TYPESCRIPT: Language(tree_sitter_typescript.language_typescript()),
            TSX: Language(tree_sitter_typescript.language_tsx()),
        }
        self._local = threading.local()

    def parse(self, path: str | Path, content: str) -> ParsedSource:
        dialect = dialect_for(path)
        source = content.encode("utf-8")
        tree = self._parser_for(dialect).parse(source)
        if self.strict and tree.root_node.has_error:
            raise ParseError(f"Syntax errors in {Path(path).as_posix()} ({dialect} grammar)")
        return ParsedSource(path=Path(path).as_posix(), dialect=dialect, tree=tree, source=source)

    def _parser_for(self, dialect: str) -> Parser:
        parsers: Dict[str, Parser] | None = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = {}
            self._local.parsers = parsers
        parser = parsers.get(dialect)
        if parser is None:
            parser = Parser(self._languages[dialect])
            parsers[dialect] = parser
        return parser


__all__ = ["ParseError", "ParsedSource", "SourceParser", "TSX", "TYPESCRIPT", "dialect_for"]
