"""Call-site and name-reference extraction.

The diagnostics producer and the resolution engine work on these owned
records rather than on tree nodes, so a document's analysis never keeps a
node alive past the next parse.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from contract.models import Span
from utils import fold_name

if TYPE_CHECKING:
    from syntax.tree import Node, Tree

ArgumentKind = Literal["literal", "identifier", "call", "other"]
RefContext = Literal["assignment", "value", "return", "expression", "argument"]

_LITERAL_TYPES = {
    "string_literal": "CHARACTER",
    "number_literal": "NUMERIC",
    "boolean_literal": "LOGICAL",
    "unknown_literal": None,
}


def _span(node: Node) -> Span:
    return Span.from_points(node.start_point, node.end_point)


@dataclass(frozen=True)
class ArgumentInfo:
    kind: ArgumentKind
    span: Span
    literal_type: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class CallSite:
    name: str
    offset: int
    name_span: Span
    span: Span
    arguments: tuple[ArgumentInfo, ...]
    args_start: int
    args_end: int
    raw: bool = False

    @property
    def qualified(self) -> bool:
        return "." in self.name or ":" in self.name

    @property
    def key(self) -> str:
        return fold_name(self.name)


@dataclass(frozen=True)
class NameRef:
    name: str
    offset: int
    span: Span
    context: RefContext

    @property
    def key(self) -> str:
        return fold_name(self.name)


@dataclass(frozen=True)
class AssignmentSite:
    """``target = value`` with a plain identifier target."""

    target: str
    offset: int
    span: Span
    value: ArgumentInfo


@dataclass(frozen=True)
class DocumentRefs:
    calls: tuple[CallSite, ...] = ()
    names: tuple[NameRef, ...] = ()
    assignments: tuple[AssignmentSite, ...] = ()
    identifiers: frozenset[str] = frozenset()


def _unwrap(node: Node) -> Node:
    while node.type == "parenthesized_expression":
        inner = node.child_by_field_name("expression")
        if inner is None:
            break
        node = inner
    return node


def describe_value(node: Node) -> ArgumentInfo:
    """Classify an expression for basic type inference."""
    value = _unwrap(node)
    if value.type in _LITERAL_TYPES:
        return ArgumentInfo("literal", _span(node), literal_type=_LITERAL_TYPES[value.type])
    if value.type == "unary_expression":
        operand = value.child_by_field_name("operand")
        operator = value.child_by_field_name("operator")
        if (
            operand is not None
            and operator is not None
            and operator.text in ("-", "+")
            and operand.type == "number_literal"
        ):
            return ArgumentInfo("literal", _span(node), literal_type="NUMERIC")
    if value.type == "identifier" and not value.is_missing:
        return ArgumentInfo("identifier", _span(node), name=value.text)
    if value.type == "function_call":
        callee = value.child_by_field_name("function")
        name = callee.text if callee is not None else None
        return ArgumentInfo("call", _span(node), name=name)
    return ArgumentInfo("other", _span(node))


def _argument_values(arguments: Node) -> list[Node]:
    values: list[Node] = []
    for child in arguments.children:
        if child.type != "argument":
            continue
        value = child.child_by_field_name("value")
        if value is None:
            continue
        # BUFFER b, TABLE tt and similar pass names, not values
        if any(c.type == "keyword" for c in child.children if c.end <= value.start):
            continue
        values.append(value)
    return values


class _Collector:
    def __init__(self) -> None:
        self.calls: list[CallSite] = []
        self.names: dict[int, NameRef] = {}
        self.assignments: list[AssignmentSite] = []
        self.identifiers: set[str] = set()

    def _name(self, node: Node, context: RefContext) -> None:
        if node.is_missing or node.start in self.names:
            return
        self.names[node.start] = NameRef(node.text, node.start, _span(node), context)

    def _expression(self, root: Node, context: RefContext) -> None:
        # explicit stack: operator chains build deep left-leaning trees
        stack = [(root, context)]
        while stack:
            node, node_context = stack.pop()
            node_type = node.type
            if node_type == "identifier":
                self._name(node, node_context)
            elif node_type in ("qualified_name", "object_access", "raw_arguments"):
                continue
            elif node_type in ("function_call", "new_expression"):
                arguments = node.child_by_field_name("arguments")
                if arguments is not None and arguments.type == "arguments":
                    stack.extend(
                        (value, "argument") for value in reversed(_argument_values(arguments))
                    )
            else:
                stack.extend((child, node_context) for child in reversed(node.children))

    def _call(self, node: Node) -> None:
        callee = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        if callee is None or arguments is None:
            return
        raw = arguments.type == "raw_arguments"
        infos: tuple[ArgumentInfo, ...] = ()
        if not raw:
            infos = tuple(
                describe_value(child.child_by_field_name("value") or child)
                for child in arguments.children
                if child.type == "argument"
            )
            for value in _argument_values(arguments):
                self._expression(value, "argument")
        self.calls.append(
            CallSite(
                name=callee.text,
                offset=node.start,
                name_span=_span(callee),
                span=_span(node),
                arguments=infos,
                args_start=arguments.start,
                args_end=arguments.end,
                raw=raw,
            )
        )

    def _assignment(self, left: Node | None, right: Node | None, start: int) -> None:
        if left is not None and left.type == "identifier":
            self._name(left, "assignment")
            if right is not None:
                self.assignments.append(
                    AssignmentSite(left.text, start, _span(left), describe_value(right))
                )
        if right is not None:
            self._expression(right, "value")

    def visit(self, root: Node) -> None:
        for node in root.walk():
            node_type = node.type
            if node_type == "identifier" and not node.is_missing:
                self.identifiers.add(fold_name(node.text))
            elif node_type == "function_call":
                self._call(node)
            elif node_type in ("assignment_statement", "assignment"):
                self._assignment(
                    node.child_by_field_name("left"),
                    node.child_by_field_name("right"),
                    node.start,
                )
            elif node_type == "return_statement":
                value = node.child_by_field_name("value")
                if value is not None:
                    self._expression(value, "return")
            elif node_type == "expression_statement":
                expression = node.child_by_field_name("expression")
                if expression is not None:
                    self._expression(expression, "expression")


def collect_refs(tree: Tree) -> DocumentRefs:
    """Collect call sites, checked name references and assignments."""
    collector = _Collector()
    collector.visit(tree.root_node)
    return DocumentRefs(
        calls=tuple(collector.calls),
        names=tuple(sorted(collector.names.values(), key=lambda ref: ref.offset)),
        assignments=tuple(collector.assignments),
        identifiers=frozenset(collector.identifiers),
    )


__all__ = [
    "ArgumentInfo",
    "AssignmentSite",
    "CallSite",
    "DocumentRefs",
    "NameRef",
    "collect_refs",
    "describe_value",
]
