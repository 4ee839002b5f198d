"""Generic syntax-tree traversal that turns interesting nodes into entities.

Each supported language is described by a LanguageSpec: a table mapping
tree-sitter node types to NodeRules plus a doc-comment recognizer. The
EntityCollector walks the tree depth first, emitting one Entity per matched
node and descending only into container bodies (modules, classes, impl
blocks). Nodes that match nothing are walked through transparently.
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Callable, FrozenSet, List, Mapping, NamedTuple, Optional, Tuple

from tree_sitter import Node

from ..core.chunking import split_entity
from ..core.models import (
    KIND_FUNCTION,
    KIND_FUNCTION_COMPONENT,
    KIND_METHOD,
    Entity,
    EntityContext,
)

logger = logging.getLogger(__name__)

SCOPE_MODULE = "module"
SCOPE_TYPE = "type"

MAX_SIGNATURE_LENGTH = 500


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def start_line(node: Node) -> int:
    return node.start_point[0] + 1


def end_line(node: Node) -> int:
    row, column = node.end_point
    # A node ending at column 0 stops before that row's first character.
    if column == 0 and row > node.start_point[0]:
        return row
    return row + 1


def child_by_fields(node: Node, fields: Tuple[str, ...]) -> Optional[Node]:
    for field in fields:
        child = node.child_by_field_name(field)
        if child is not None:
            return child
    return None


def child_by_kinds(node: Node, kinds: Tuple[str, ...]) -> Optional[Node]:
    if not kinds:
        return None
    for child in node.named_children:
        if child.type in kinds:
            return child
    return None


def truncate_signature(text: str, limit: int = MAX_SIGNATURE_LENGTH) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


@dataclasses.dataclass(frozen=True)
class NodeRule:
    """How one syntax node type becomes an entity.

    Three shapes are supported:
      * definitions (default): one entity named by `name_fields`/`name_kinds`
        or `name_of`, optionally a container whose body is walked with an
        extended scope;
      * declarations (`declarators` set): one entity per declarator child,
        reclassified as a function when its value is a function literal;
      * wrappers (`unwrap_fields` set): the wrapped declaration is visited
        with the wrapper's leading comments and start line.
    """

    kind: str
    name_fields: Tuple[str, ...] = ("name",)
    name_kinds: Tuple[str, ...] = ()
    body_fields: Tuple[str, ...] = ("body",)
    body_kinds: Tuple[str, ...] = ()
    scope: Optional[str] = None
    callable: bool = False
    whole_text_signature: bool = False
    name_of: Optional[Callable[[Node, bytes], Optional[str]]] = None
    label: Optional[Callable[[Node, str, bytes], str]] = None
    kind_of: Optional[Callable[[Node, str, bytes], str]] = None
    declarators: Tuple[str, ...] = ()
    value_fields: Tuple[str, ...] = ("value",)
    declarator_name_kinds: Tuple[str, ...] = ()
    unwrap_fields: Tuple[str, ...] = ()
    keep_wrapper_text: bool = False


@dataclasses.dataclass(frozen=True)
class LanguageSpec:
    """Per-language traversal table."""

    name: str
    extensions: Tuple[str, ...]
    rules: Mapping[str, NodeRule]
    is_doc_comment: Callable[[str], bool]
    comment_kinds: FrozenSet[str] = frozenset({"comment"})
    # Attributes / decorators: skipped in signatures and in the doc-comment walk.
    transparent_kinds: FrozenSet[str] = frozenset()
    jsx_kinds: FrozenSet[str] = frozenset()
    function_literal_kinds: FrozenSet[str] = frozenset()
    module_separator: str = "."
    body_docstring: Optional[Callable[[Node, bytes], Optional[str]]] = None


@dataclasses.dataclass(frozen=True)
class Scope:
    module: Optional[str] = None
    type_name: Optional[str] = None

    def enter_module(self, name: str, separator: str) -> "Scope":
        module = f"{self.module}{separator}{name}" if self.module else name
        return dataclasses.replace(self, module=module)

    def enter_type(self, name: str) -> "Scope":
        return dataclasses.replace(self, type_name=name)


class Wrapper(NamedTuple):
    node: Node
    keep_text: bool


class EntityCollector:
    """Collects entities from one parsed file."""

    def __init__(
        self,
        spec: LanguageSpec,
        source: bytes,
        file_path: Path,
        max_snippet_size: Optional[int] = None,
    ) -> None:
        self.spec = spec
        self.source = source
        self.file_path = file_path
        self.max_snippet_size = max_snippet_size
        self.entities: List[Entity] = []

    def collect(self, node: Node, scope: Scope, wrapper: Optional[Wrapper] = None) -> None:
        rule = self.spec.rules.get(node.type)
        if rule is not None and self._visit(node, rule, scope, wrapper):
            return
        for child in node.named_children:
            self.collect(child, scope)

    # -- helpers -----------------------------------------------------------

    def _text(self, node: Node) -> str:
        return node_text(node, self.source)

    def _contains_jsx(self, node: Optional[Node]) -> bool:
        if node is None or not self.spec.jsx_kinds:
            return False
        stack = [node]
        while stack:
            current = stack.pop()
            if current.type in self.spec.jsx_kinds:
                return True
            stack.extend(current.children)
        return False

    def _leading_docs(self, node: Node) -> Tuple[Optional[str], int]:
        """Collect the contiguous comment block right above node.

        Returns the docstring (or None) and the line the block starts on,
        which is the node's own start line when there is no block.
        """
        parts: List[str] = []
        line_from = start_line(node)
        expected_row = node.start_point[0]
        sibling = node.prev_named_sibling

        while sibling is not None:
            if sibling.type in self.spec.transparent_kinds:
                expected_row = sibling.start_point[0]
                sibling = sibling.prev_named_sibling
                continue
            if sibling.type not in self.spec.comment_kinds:
                break
            # A blank line between the comment and what follows detaches it.
            if end_line(sibling) < expected_row:
                break
            text = self._text(sibling).strip()
            if self.spec.is_doc_comment(text):
                parts.insert(0, text)
                line_from = start_line(sibling)
            elif parts:
                break
            expected_row = sibling.start_point[0]
            sibling = sibling.prev_named_sibling

        docstring = "\n".join(parts).strip()
        return (docstring or None), line_from

    def _signature(self, node: Node, body: Optional[Node], rule: NodeRule) -> str:
        if rule.whole_text_signature or body is None:
            start = node.start_byte
            end = node.end_byte
        else:
            start = node.start_byte
            end = body.start_byte
        if not rule.whole_text_signature:
            for child in node.children:
                if child.type in self.spec.transparent_kinds or child.type in self.spec.comment_kinds:
                    continue
                start = child.start_byte
                break
        return truncate_signature(self.source[start:end].decode("utf-8", errors="replace"))

    def _function_kind(self, scope: Scope, body: Optional[Node]) -> str:
        if scope.type_name:
            return KIND_METHOD
        if self._contains_jsx(body):
            return KIND_FUNCTION_COMPONENT
        return KIND_FUNCTION

    def _emit(self, entity: Entity) -> None:
        self.entities.extend(split_entity(entity, self.max_snippet_size))

    def _context(self, scope: Scope, snippet: str) -> EntityContext:
        return EntityContext(
            file_path=str(self.file_path),
            file_name=self.file_path.name,
            snippet=snippet,
            module=scope.module,
            enclosing_type_name=scope.type_name,
        )

    # -- rule shapes -------------------------------------------------------

    def _visit(self, node: Node, rule: NodeRule, scope: Scope, wrapper: Optional[Wrapper]) -> bool:
        if rule.unwrap_fields:
            inner = child_by_fields(node, rule.unwrap_fields)
            if inner is not None:
                self.collect(inner, scope, wrapper or Wrapper(node, rule.keep_wrapper_text))
            return True
        if rule.declarators:
            return self._visit_declarations(node, rule, scope, wrapper)
        return self._visit_definition(node, rule, scope, wrapper)

    def _visit_definition(self, node: Node, rule: NodeRule, scope: Scope, wrapper: Optional[Wrapper]) -> bool:
        name_node = child_by_fields(node, rule.name_fields) or child_by_kinds(node, rule.name_kinds)
        if rule.name_of is not None:
            raw_name = rule.name_of(node, self.source)
        else:
            raw_name = self._text(name_node) if name_node is not None else None
        if not raw_name:
            return False

        body = child_by_fields(node, rule.body_fields) or child_by_kinds(node, rule.body_kinds)

        if rule.kind_of is not None:
            kind = rule.kind_of(node, raw_name, self.source)
        elif rule.callable:
            kind = self._function_kind(scope, body)
        else:
            kind = rule.kind

        anchor = wrapper.node if wrapper is not None else node
        snippet_node = anchor if wrapper is not None and wrapper.keep_text else node
        docstring, doc_line = self._leading_docs(anchor)
        if self.spec.body_docstring is not None and body is not None:
            docstring = self.spec.body_docstring(body, self.source) or docstring

        name = rule.label(node, raw_name, self.source) if rule.label else raw_name
        line = start_line(name_node) if name_node is not None else start_line(node)
        self._emit(
            Entity(
                name=name,
                signature=self._signature(node, body, rule),
                kind=kind,
                docstring=docstring,
                line=line,
                line_from=min(doc_line, start_line(snippet_node), line),
                line_to=end_line(snippet_node),
                context=self._context(scope, self._text(snippet_node)),
            )
        )

        if rule.scope is not None and body is not None:
            if rule.scope == SCOPE_MODULE:
                inner_scope = scope.enter_module(name, self.spec.module_separator)
            else:
                inner_scope = scope.enter_type(raw_name)
            for child in body.named_children:
                self.collect(child, inner_scope)
        return True

    def _visit_declarations(self, node: Node, rule: NodeRule, scope: Scope, wrapper: Optional[Wrapper]) -> bool:
        declarators = [c for c in node.named_children if c.type in rule.declarators]
        if not declarators:
            return False

        anchor = wrapper.node if wrapper is not None else node
        docstring, doc_line = self._leading_docs(anchor)
        first_child = node.children[0] if node.children else None
        keyword = self._text(first_child) if first_child is not None and not first_child.is_named else None
        single = len(declarators) == 1

        emitted = False
        for declarator in declarators:
            name_node = child_by_fields(declarator, rule.name_fields)
            if name_node is None:
                continue
            if rule.declarator_name_kinds and name_node.type not in rule.declarator_name_kinds:
                continue
            raw_name = self._text(name_node)
            value = child_by_fields(declarator, rule.value_fields)

            if value is not None and value.type in self.spec.function_literal_kinds:
                kind = self._function_kind(scope, value)
                fn_body = value.child_by_field_name("body")
                end = fn_body.start_byte if fn_body is not None else declarator.end_byte
                header = self.source[declarator.start_byte:end].decode("utf-8", errors="replace")
            else:
                kind = rule.kind_of(node, raw_name, self.source) if rule.kind_of else rule.kind
                header = self._text(declarator)
            if keyword:
                header = f"{keyword} {header.strip()}"

            if single:
                snippet_node = anchor if wrapper is not None and wrapper.keep_text else node
            else:
                snippet_node = declarator
            line = start_line(name_node)
            line_from = min(doc_line, start_line(snippet_node), line) if not emitted else start_line(snippet_node)

            self._emit(
                Entity(
                    name=raw_name,
                    signature=truncate_signature(header),
                    kind=kind,
                    docstring=docstring if not emitted else None,
                    line=line,
                    line_from=line_from,
                    line_to=end_line(snippet_node),
                    context=self._context(scope, self._text(snippet_node)),
                )
            )
            emitted = True
        return emitted


def collect_entities(
    root: Node,
    spec: LanguageSpec,
    source: bytes,
    file_path: Path,
    max_snippet_size: Optional[int] = None,
) -> List[Entity]:
    """Walk a parsed tree and return its entities (oversized ones already split).

    Top-level items are placed in a module named after the file stem.
    """
    collector = EntityCollector(spec, source, file_path, max_snippet_size)
    collector.collect(root, Scope(module=file_path.stem or None))
    logger.debug(f"Collected {len(collector.entities)} entities from {file_path}")
    return collector.entities
