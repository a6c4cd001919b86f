"""Concrete syntax tree produced by the ABL parser.

The node API follows the shape of tree-sitter's ``Node`` (``type``,
``children``, ``child_by_field_name``, ``start_point``, ``end_point``,
``is_error``, ``is_missing``) so that extraction code reads the same way it
would against a tree-sitter grammar. Offsets are character offsets into the
parsed text, points are zero-based ``(line, column)`` pairs.
"""

from __future__ import annotations

from bisect import bisect_right
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class LineIndex:
    """Offset <-> (line, column) conversion for one source text."""

    def __init__(self, source: str) -> None:
        self._starts = [0]
        for idx, char in enumerate(source):
            if char == "\n":
                self._starts.append(idx + 1)
        self._length = len(source)

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def point(self, offset: int) -> tuple[int, int]:
        offset = max(0, min(offset, self._length))
        line = bisect_right(self._starts, offset) - 1
        return line, offset - self._starts[line]

    def offset(self, line: int, column: int) -> int | None:
        if line < 0 or line >= len(self._starts):
            return None
        start = self._starts[line]
        end = (
            self._starts[line + 1] - 1
            if line + 1 < len(self._starts)
            else self._length
        )
        return min(start + max(column, 0), end)


class Node:
    """A syntax node. Children are owned; ``parent`` is set by ``Tree``."""

    __slots__ = (
        "_fields",
        "_tree",
        "children",
        "end",
        "is_error",
        "is_missing",
        "parent",
        "start",
        "type",
    )

    def __init__(
        self,
        type: str,
        start: int,
        end: int,
        children: list[Node] | None = None,
        fields: dict[str, Node] | None = None,
        *,
        is_error: bool = False,
        is_missing: bool = False,
    ) -> None:
        self.type = type
        self.start = start
        self.end = end
        self.children = children or []
        self._fields = fields or {}
        self.is_error = is_error
        self.is_missing = is_missing
        self.parent: Node | None = None
        self._tree: Tree | None = None

    def __repr__(self) -> str:
        flags = " MISSING" if self.is_missing else " ERROR" if self.is_error else ""
        return f"<Node {self.type}{flags} [{self.start}:{self.end}]>"

    @property
    def text(self) -> str:
        if self._tree is None:
            return ""
        return self._tree.source[self.start : self.end]

    @property
    def start_point(self) -> tuple[int, int]:
        if self._tree is None:
            return (0, self.start)
        return self._tree.line_index.point(self.start)

    @property
    def end_point(self) -> tuple[int, int]:
        if self._tree is None:
            return (0, self.end)
        return self._tree.line_index.point(self.end)

    @property
    def child_count(self) -> int:
        return len(self.children)

    @property
    def has_error(self) -> bool:
        return any(node.is_error or node.is_missing for node in self.walk())

    def child_by_field_name(self, name: str) -> Node | None:
        return self._fields.get(name)

    def children_by_type(self, type: str) -> list[Node]:
        return [child for child in self.children if child.type == type]

    def walk(self) -> Iterator[Node]:
        """Pre-order traversal, iterative so deep files cannot exhaust the stack."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def descendant_for_offset(self, offset: int) -> Node:
        """Return the deepest node whose span contains ``offset``."""
        node = self
        while True:
            for child in node.children:
                if child.start <= offset < child.end or (
                    child.start == child.end == offset
                ):
                    node = child
                    break
            else:
                return node

    def ancestors(self) -> Iterator[Node]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent


class Tree:
    """A parsed source text together with its root node."""

    def __init__(self, source: str, root_node: Node) -> None:
        self.source = source
        self.root_node = root_node
        self.line_index = LineIndex(source)
        self._attach(root_node)

    def _attach(self, root: Node) -> None:
        stack = [root]
        while stack:
            node = stack.pop()
            node._tree = self
            for child in node.children:
                child.parent = node
                stack.append(child)

    def errors(self) -> list[Node]:
        return [
            node
            for node in self.root_node.walk()
            if node.is_error or node.is_missing
        ]


__all__ = ["LineIndex", "Node", "Tree"]
