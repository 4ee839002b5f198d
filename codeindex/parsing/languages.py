"""Node tables for the supported languages."""

from __future__ import annotations

import inspect
from typing import Dict, Optional

from tree_sitter import Node

from ..core.models import (
    KIND_CLASS,
    KIND_CONSTANT,
    KIND_ENUM,
    KIND_FUNCTION,
    KIND_IMPL,
    KIND_IMPORT,
    KIND_INTERFACE,
    KIND_METHOD,
    KIND_MODULE,
    KIND_STRUCT,
    KIND_TRAIT,
    KIND_TYPE_ALIAS,
    KIND_VARIABLE,
)
from .base import SCOPE_MODULE, SCOPE_TYPE, LanguageSpec, NodeRule, node_text


def _whole_text(node: Node, source: bytes) -> Optional[str]:
    return node_text(node, source).strip() or None


# ---------------------------------------------------------------------------
# Rust
# ---------------------------------------------------------------------------


def _rust_is_doc(text: str) -> bool:
    if text.startswith(("///", "//!", "/*!")):
        return True
    return text.startswith("/**") and not text.startswith("/***")


def _rust_impl_label(node: Node, type_name: str, source: bytes) -> str:
    trait = node.child_by_field_name("trait")
    if trait is not None:
        return f"impl {node_text(trait, source)} for {type_name}"
    return f"impl {type_name}"


RUST_RULES: Dict[str, NodeRule] = {
    "function_item": NodeRule(KIND_FUNCTION, callable=True),
    "struct_item": NodeRule(KIND_STRUCT),
    "union_item": NodeRule(KIND_STRUCT),
    "enum_item": NodeRule(KIND_ENUM),
    "trait_item": NodeRule(KIND_TRAIT),
    "impl_item": NodeRule(KIND_IMPL, name_fields=("type",), scope=SCOPE_TYPE, label=_rust_impl_label),
    "mod_item": NodeRule(KIND_MODULE, scope=SCOPE_MODULE),
    "use_declaration": NodeRule(KIND_IMPORT, name_of=_whole_text, whole_text_signature=True),
    "extern_crate_declaration": NodeRule(KIND_IMPORT, name_of=_whole_text, whole_text_signature=True),
    "const_item": NodeRule(KIND_CONSTANT, whole_text_signature=True),
    "static_item": NodeRule(KIND_VARIABLE, whole_text_signature=True),
    "type_item": NodeRule(KIND_TYPE_ALIAS, whole_text_signature=True),
}

RUST = LanguageSpec(
    name="rust",
    extensions=("rs",),
    rules=RUST_RULES,
    is_doc_comment=_rust_is_doc,
    comment_kinds=frozenset({"line_comment", "block_comment"}),
    transparent_kinds=frozenset({"attribute_item"}),
    module_separator="::",
)


# ---------------------------------------------------------------------------
# TypeScript / TSX / JavaScript
# ---------------------------------------------------------------------------


def _ts_is_doc(text: str) -> bool:
    # Plain /* block comments are not documentation.
    return text.startswith("//") or text.startswith("/**")


def _ts_import_name(node: Node, source: bytes) -> Optional[str]:
    for child in node.named_children:
        if child.type in ("import_clause", "namespace_import", "named_imports", "identifier"):
            return node_text(child, source)
    module = node.child_by_field_name("source")
    if module is not None:
        return node_text(module, source)
    return _whole_text(node, source)


def _ts_binding_kind(node: Node, name: str, source: bytes) -> str:
    first = node.children[0] if node.children else None
    if first is not None and first.type == "const":
        return KIND_CONSTANT
    return KIND_VARIABLE


def _ts_module_label(node: Node, name: str, source: bytes) -> str:
    # `declare module "lib"` names the module with a string literal.
    return name.strip("'\"")


_TS_DECLARATION = NodeRule(
    KIND_VARIABLE,
    declarators=("variable_declarator",),
    name_fields=("name",),
    value_fields=("value",),
    kind_of=_ts_binding_kind,
)

TS_RULES: Dict[str, NodeRule] = {
    "import_statement": NodeRule(KIND_IMPORT, name_of=_ts_import_name, whole_text_signature=True),
    "function_declaration": NodeRule(KIND_FUNCTION, callable=True),
    "generator_function_declaration": NodeRule(KIND_FUNCTION, callable=True),
    "method_definition": NodeRule(KIND_METHOD),
    "class_declaration": NodeRule(KIND_CLASS, scope=SCOPE_TYPE),
    "abstract_class_declaration": NodeRule(KIND_CLASS, scope=SCOPE_TYPE),
    "interface_declaration": NodeRule(KIND_INTERFACE),
    "enum_declaration": NodeRule(KIND_ENUM),
    "type_alias_declaration": NodeRule(KIND_TYPE_ALIAS, whole_text_signature=True),
    "internal_module": NodeRule(KIND_MODULE, scope=SCOPE_MODULE, label=_ts_module_label),
    "module": NodeRule(KIND_MODULE, scope=SCOPE_MODULE, label=_ts_module_label),
    "lexical_declaration": _TS_DECLARATION,
    "variable_declaration": _TS_DECLARATION,
    "export_statement": NodeRule("", unwrap_fields=("declaration",), keep_wrapper_text=True),
}

_TS_COMMON = dict(
    rules=TS_RULES,
    is_doc_comment=_ts_is_doc,
    transparent_kinds=frozenset({"decorator"}),
    jsx_kinds=frozenset({"jsx_element", "jsx_self_closing_element", "jsx_fragment"}),
    function_literal_kinds=frozenset({"arrow_function", "function_expression", "function", "generator_function"}),
)

TYPESCRIPT = LanguageSpec(name="typescript", extensions=("ts", "mts", "cts"), **_TS_COMMON)
TSX = LanguageSpec(name="tsx", extensions=("tsx",), **_TS_COMMON)
JAVASCRIPT = LanguageSpec(name="javascript", extensions=("js", "jsx", "mjs", "cjs"), **_TS_COMMON)


# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------


def _py_is_doc(text: str) -> bool:
    return text.startswith("#") and not text.startswith("#!")


def _py_binding_kind(node: Node, name: str, source: bytes) -> str:
    return KIND_CONSTANT if name.isupper() else KIND_VARIABLE


def _strip_string_literal(text: str) -> str:
    text = text.strip().lstrip("rRbBuUfF")
    for quote in ('"""', "'''", '"', "'"):
        if text.startswith(quote) and text.endswith(quote) and len(text) >= 2 * len(quote):
            return text[len(quote):-len(quote)]
    return text


def _py_body_docstring(body: Node, source: bytes) -> Optional[str]:
    for child in body.named_children:
        if child.type == "comment":
            continue
        if child.type == "expression_statement" and child.named_children:
            first = child.named_children[0]
            if first.type == "string":
                return inspect.cleandoc(_strip_string_literal(node_text(first, source))) or None
        return None
    return None


PYTHON_RULES: Dict[str, NodeRule] = {
    "function_definition": NodeRule(KIND_FUNCTION, callable=True),
    "class_definition": NodeRule(KIND_CLASS, scope=SCOPE_TYPE),
    "decorated_definition": NodeRule("", unwrap_fields=("definition",), keep_wrapper_text=True),
    "import_statement": NodeRule(KIND_IMPORT, name_of=_whole_text, whole_text_signature=True),
    "import_from_statement": NodeRule(KIND_IMPORT, name_of=_whole_text, whole_text_signature=True),
    "future_import_statement": NodeRule(KIND_IMPORT, name_of=_whole_text, whole_text_signature=True),
    "expression_statement": NodeRule(
        KIND_VARIABLE,
        declarators=("assignment",),
        name_fields=("left",),
        value_fields=("right",),
        declarator_name_kinds=("identifier",),
        kind_of=_py_binding_kind,
    ),
}

PYTHON = LanguageSpec(
    name="python",
    extensions=("py", "pyi"),
    rules=PYTHON_RULES,
    is_doc_comment=_py_is_doc,
    function_literal_kinds=frozenset({"lambda"}),
    body_docstring=_py_body_docstring,
)


LANGUAGES = (RUST, TYPESCRIPT, TSX, JAVASCRIPT, PYTHON)

EXT_TO_LANG: Dict[str, LanguageSpec] = {
    ext: spec for spec in LANGUAGES for ext in spec.extensions
}
