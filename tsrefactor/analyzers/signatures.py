"""Function and type signature extraction from tree-sitter syntax trees.

Declarations are dispatched by node kind to one handler each. Handlers read grammar
fields by name and skip anything anonymous.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from tree_sitter import Node

from ..models import FunctionSignature, TypeSignature
from .normalizer import hash_body, normalize_body, normalize_type
from .parser import ParsedSource

UNANNOTATED_PARAM = "any"
UNANNOTATED_RETURN = "unknown"
DEFINITION_PREVIEW = 500

_FUNCTION_VALUE_NODES = {"arrow_function", "function_expression", "function", "generator_function"}
_TRANSPARENT_WRAPPERS = {"parenthesized_expression", "as_expression", "satisfies_expression"}
_NAMESPACE_NODES = {"internal_module", "module"}
_FUNCTION_SCOPE_NODES = {
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "function",
    "generator_function",
}
_PARAMETER_NODES = {"required_parameter", "optional_parameter"}
_WHITESPACE = re.compile(r"\s+")


@dataclass
class _Context:
    parsed: ParsedSource
    file: str
    local_exports: Set[str] = field(default_factory=set)

    def text(self, node: Optional[Node]) -> str:
        return self.parsed.text(node)

    def locally_exported(self, node: Node, name: str) -> bool:
        """True when a module-level ``export { name }`` clause exposes ``name``."""
        parent = node.parent
        return parent is not None and parent.type == "program" and name in self.local_exports


# ----------------------------------------------------------------------
# Tree walking


def _iter_declarations(container: Node, public: bool) -> Iterator[Tuple[Node, bool]]:
    for child in container.named_children:
        if child.type == "export_statement":
            # `export default function name() {}` may surface as a value instead of a declaration.
            declaration = child.child_by_field_name("declaration")
            if declaration is None:
                declaration = child.child_by_field_name("value")
            if declaration is not None:
                yield declaration, public
        elif child.type == "expression_statement" and child.named_child_count == 1:
            inner = child.named_children[0]
            yield (inner if inner.type in _NAMESPACE_NODES else child), False
        else:
            yield child, False


def _walk(container: Node, public: bool = True) -> Iterator[Tuple[Node, bool]]:
    """Yield ``(declaration, exported)`` for module scope, namespace bodies and function bodies.

    Declarations nested in a function body are never exported.
    """
    for declaration, exported in _iter_declarations(container, public):
        body = declaration.child_by_field_name("body")
        if declaration.type in _NAMESPACE_NODES:
            if body is not None:
                yield from _walk(body, exported)
            continue
        yield declaration, exported
        if declaration.type in _FUNCTION_SCOPE_NODES and body is not None and body.type == "statement_block":
            yield from _walk(body, False)


def _collect_local_exports(ctx: _Context) -> Set[str]:
    names: Set[str] = set()
    for child in ctx.parsed.root.named_children:
        if child.type != "export_statement" or child.child_by_field_name("source") is not None:
            continue
        for clause in child.named_children:
            if clause.type != "export_clause":
                continue
            for specifier in clause.named_children:
                if specifier.type == "export_specifier":
                    name = ctx.text(specifier.child_by_field_name("name"))
                    if name:
                        names.add(name)
    return names


# ----------------------------------------------------------------------
# Shared helpers


def _annotation_text(ctx: _Context, node: Optional[Node]) -> str:
    if node is None:
        return ""
    return _WHITESPACE.sub(" ", ctx.text(node)).lstrip(":").strip()


def _param_types(ctx: _Context, function_node: Node) -> List[str]:
    if function_node.child_by_field_name("parameter") is not None:
        return [UNANNOTATED_PARAM]
    parameters = function_node.child_by_field_name("parameters")
    if parameters is None:
        return []
    types: List[str] = []
    for param in parameters.named_children:
        if param.type not in _PARAMETER_NODES:
            continue
        pattern = param.child_by_field_name("pattern")
        if pattern is not None and pattern.type == "this":
            continue
        annotated = _annotation_text(ctx, param.child_by_field_name("type"))
        types.append(annotated or UNANNOTATED_PARAM)
    return types


def _return_type(ctx: _Context, function_node: Node) -> str:
    return _annotation_text(ctx, function_node.child_by_field_name("return_type"))


def _is_async(node: Node) -> bool:
    return any(child.type == "async" for child in node.children)


def _unwrap_function_value(node: Node) -> Optional[Node]:
    current: Optional[Node] = node
    while current is not None and current.type in _TRANSPARENT_WRAPPERS:
        current = current.named_children[0] if current.named_child_count else None
    if current is not None and current.type in _FUNCTION_VALUE_NODES:
        return current
    return None


def looks_like_function(initializer_text: str) -> bool:
    """Textual fallback used when the initializer is not a function node itself.

    Catches wrapped definitions such as ``memoize((a) => a)``.
    """
    return "=>" in initializer_text or initializer_text.lstrip().startswith(("function", "async function"))


# ----------------------------------------------------------------------
# Function handlers


FunctionHandler = Callable[[_Context, Node, bool], Iterable[FunctionSignature]]


def _function_declaration(ctx: _Context, node: Node, exported: bool) -> Iterator[FunctionSignature]:
    name = ctx.text(node.child_by_field_name("name"))
    body = node.child_by_field_name("body")
    if not name or body is None:
        return
    normalized = normalize_body(ctx.text(body))
    yield FunctionSignature(
        name=name,
        file=ctx.file,
        line=ctx.parsed.line(node),
        params=_param_types(ctx, node),
        return_type=_return_type(ctx, node) or UNANNOTATED_RETURN,
        exported=exported or ctx.locally_exported(node, name),
        body_hash=hash_body(normalized),
        normalized_body=normalized,
        is_async=_is_async(node),
    )


def _variable_declaration(ctx: _Context, node: Node, exported: bool) -> Iterator[FunctionSignature]:
    for declarator in node.named_children:
        if declarator.type != "variable_declarator":
            continue
        name_node = declarator.child_by_field_name("name")
        value = declarator.child_by_field_name("value")
        if name_node is None or name_node.type != "identifier" or value is None:
            continue
        name = ctx.text(name_node)
        if not (exported or ctx.locally_exported(node, name)):
            continue

        value_text = ctx.text(value)
        function_node = _unwrap_function_value(value)
        if function_node is None and not looks_like_function(value_text):
            continue

        return_type = ""
        params: List[str] = []
        if function_node is not None:
            params = _param_types(ctx, function_node)
            return_type = _return_type(ctx, function_node)
        if not return_type:
            return_type = _annotation_text(ctx, declarator.child_by_field_name("type"))

        normalized = normalize_body(value_text)
        yield FunctionSignature(
            name=name,
            file=ctx.file,
            line=ctx.parsed.line(declarator),
            params=params,
            return_type=return_type or UNANNOTATED_RETURN,
            exported=True,
            body_hash=hash_body(normalized),
            normalized_body=normalized,
            is_async=function_node is not None and _is_async(function_node),
        )


_FUNCTION_HANDLERS: Dict[str, FunctionHandler] = {
    "function_declaration": _function_declaration,
    "generator_function_declaration": _function_declaration,
    "function_expression": _function_declaration,
    "function": _function_declaration,
    "generator_function": _function_declaration,
    "lexical_declaration": _variable_declaration,
    "variable_declaration": _variable_declaration,
}


# ----------------------------------------------------------------------
# Type handlers


TypeHandler = Callable[[_Context, Node, bool], Iterable[TypeSignature]]


def _object_members(ctx: _Context, body: Optional[Node]) -> Tuple[Dict[str, str], List[str]]:
    fields: Dict[str, str] = {}
    definitions: List[str] = []
    if body is None:
        return fields, definitions
    for member in body.named_children:
        name = ctx.text(member.child_by_field_name("name"))
        if not name:
            continue
        if member.type == "property_signature":
            optional = "?" if any(child.type == "?" for child in member.children) else ""
            member_type = normalize_type(
                _annotation_text(ctx, member.child_by_field_name("type")) or UNANNOTATED_PARAM
            )
            fields[name] = member_type
            definitions.append(f"{name}{optional}:{member_type}")
        elif member.type == "method_signature":
            params = ",".join(normalize_type(param) for param in _param_types(ctx, member))
            returns = normalize_type(_return_type(ctx, member) or UNANNOTATED_PARAM)
            fields[name] = f"({params}):{returns}"
            definitions.append(f"{name}({params}):{returns}")
    return fields, definitions


def _interface_declaration(ctx: _Context, node: Node, exported: bool) -> Iterator[TypeSignature]:
    name = ctx.text(node.child_by_field_name("name"))
    if not name:
        return
    fields, definitions = _object_members(ctx, node.child_by_field_name("body"))
    structure = ";".join(sorted(definitions))
    yield TypeSignature(
        name=name,
        file=ctx.file,
        line=ctx.parsed.line(node),
        exported=exported or ctx.locally_exported(node, name),
        kind="interface",
        normalized_structure=structure,
        structure_hash=hash_body(structure),
        fields=fields,
        definition=ctx.text(node)[:DEFINITION_PREVIEW],
    )


def _type_alias_declaration(ctx: _Context, node: Node, exported: bool) -> Iterator[TypeSignature]:
    name = ctx.text(node.child_by_field_name("name"))
    value = node.child_by_field_name("value")
    if not name or value is None:
        return
    fields: Dict[str, str] = {}
    if value.type == "object_type":
        fields, _ = _object_members(ctx, value)
    structure = normalize_type(ctx.text(value))
    yield TypeSignature(
        name=name,
        file=ctx.file,
        line=ctx.parsed.line(node),
        exported=exported or ctx.locally_exported(node, name),
        kind="type",
        normalized_structure=structure,
        structure_hash=hash_body(structure),
        fields=fields,
        definition=ctx.text(node)[:DEFINITION_PREVIEW],
    )


_TYPE_HANDLERS: Dict[str, TypeHandler] = {
    "interface_declaration": _interface_declaration,
    "type_alias_declaration": _type_alias_declaration,
}


# ----------------------------------------------------------------------
# Public API


def _context(parsed: ParsedSource, file: str) -> _Context:
    ctx = _Context(parsed=parsed, file=file)
    ctx.local_exports = _collect_local_exports(ctx)
    return ctx


def extract_functions(parsed: ParsedSource, file: str) -> List[FunctionSignature]:
    """Return every named function and exported function-valued binding in ``parsed``."""
    ctx = _context(parsed, file)
    signatures: List[FunctionSignature] = []
    for node, exported in _walk(parsed.root):
        handler = _FUNCTION_HANDLERS.get(node.type)
        if handler is not None:
            signatures.extend(handler(ctx, node, exported))
    return signatures


def extract_types(parsed: ParsedSource, file: str) -> List[TypeSignature]:
    """Return every named interface and type alias declared in ``parsed``."""
    ctx = _context(parsed, file)
    signatures: List[TypeSignature] = []
    for node, exported in _walk(parsed.root):
        handler = _TYPE_HANDLERS.get(node.type)
        if handler is not None:
            signatures.extend(handler(ctx, node, exported))
    return signatures


__all__ = ["extract_functions", "extract_types", "looks_like_function"]
