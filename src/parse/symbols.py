"""Symbol extraction and per-document symbol tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from contract.models import Location, Span
from utils import fold_name

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable
    from pathlib import Path

    from parse.includes import IncludeRef
    from syntax.tree import Node, Tree

SymbolKind = Literal["variable", "function", "buffer", "temp-table", "field"]
ParameterKind = Literal["value", "buffer", "table"]
Scope = tuple[int, int]


@dataclass(frozen=True)
class Parameter:
    name: str
    type_name: str | None = None
    mode: str | None = None
    kind: ParameterKind = "value"
    like: str | None = None

    def render(self) -> str:
        """Render for signatures, e.g. ``INPUT p_a: INTEGER``."""
        if self.kind == "buffer":
            text = f"BUFFER {self.name} FOR {self.type_name or '?'}"
        elif self.kind == "table":
            text = f"TABLE FOR {self.name}"
        elif self.type_name:
            text = f"{self.name}: {self.type_name}"
        elif self.like:
            text = f"{self.name} LIKE {self.like}"
        else:
            text = self.name
        return f"{self.mode} {text}" if self.mode else text


class _Keyed:
    name: str

    @property
    def key(self) -> str:
        return fold_name(self.name)


@dataclass(frozen=True)
class VariableSymbol(_Keyed):
    name: str
    site: Location
    offset: int
    scope: Scope | None = None
    type_name: str | None = None
    like: str | None = None
    is_parameter: bool = False
    mode: str | None = None
    kind: SymbolKind = field(default="variable", init=False)


@dataclass(frozen=True)
class FunctionSymbol(_Keyed):
    name: str
    site: Location
    offset: int
    path: Path
    parameters: tuple[Parameter, ...] = ()
    return_type: str | None = None
    is_forward: bool = False
    scope: Scope | None = None
    kind: SymbolKind = field(default="function", init=False)

    @property
    def arity(self) -> int:
        return len(self.parameters)

    def richness(self) -> tuple[int, bool, bool]:
        return (len(self.parameters), self.return_type is not None, not self.is_forward)

    def signature(self) -> str:
        params = ", ".join(p.render() for p in self.parameters)
        if self.return_type:
            return f"{self.name}({params}) RETURNS {self.return_type}"
        return f"{self.name}({params})"


@dataclass(frozen=True)
class BufferSymbol(_Keyed):
    """A named alias for a schema table or temp-table."""

    name: str
    site: Location
    offset: int
    table: str
    scope: Scope | None = None
    kind: SymbolKind = field(default="buffer", init=False)


@dataclass(frozen=True)
class TempTableFieldSymbol(_Keyed):
    name: str
    site: Location
    offset: int
    table: str
    type_name: str | None = None
    like: str | None = None
    scope: Scope | None = None
    kind: SymbolKind = field(default="field", init=False)


@dataclass(frozen=True)
class TempTableIndex:
    name: str
    fields: tuple[str, ...]
    site: Location


@dataclass(frozen=True)
class TempTableSymbol(_Keyed):
    name: str
    site: Location
    offset: int
    fields: tuple[TempTableFieldSymbol, ...] = ()
    indexes: tuple[TempTableIndex, ...] = ()
    like_table: str | None = None
    scope: Scope | None = None
    kind: SymbolKind = field(default="temp-table", init=False)

    def field(self, name: str) -> TempTableFieldSymbol | None:
        key = fold_name(name)
        for item in reversed(self.fields):
            if item.key == key:
                return item
        return None

    def index(self, name: str) -> TempTableIndex | None:
        key = fold_name(name)
        for item in self.indexes:
            if fold_name(item.name) == key:
                return item
        return None


Symbol = VariableSymbol | FunctionSymbol | BufferSymbol | TempTableSymbol


def is_visible(symbol: Symbol, offset: int) -> bool:
    """Declared at or before ``offset`` and, when scoped, enclosing it."""
    if symbol.offset > offset:
        return False
    if symbol.scope is None:
        return True
    return symbol.scope[0] <= offset <= symbol.scope[1]


def is_exported(symbol: Symbol) -> bool:
    """Visible to files that include the declaring file."""
    if isinstance(symbol, FunctionSymbol):
        return True
    return isinstance(symbol, VariableSymbol) and symbol.scope is None


def _pick(candidates: list[Symbol]) -> Symbol | None:
    if not candidates:
        return None
    last = candidates[-1]
    if not isinstance(last, FunctionSymbol):
        return last
    best = last
    for candidate in candidates:
        if isinstance(candidate, FunctionSymbol) and candidate.richness() >= best.richness():
            best = candidate
    return best


@dataclass(frozen=True)
class FileFacts:
    """Owned data extracted from one parsed file; holds no tree nodes."""

    path: Path
    symbols: tuple[Symbol, ...] = ()
    includes: tuple[IncludeRef, ...] = ()

    @property
    def exports(self) -> tuple[Symbol, ...]:
        return tuple(symbol for symbol in self.symbols if is_exported(symbol))


@dataclass(frozen=True)
class SymbolTable:
    """The symbols of one document: its own plus those of its include graph.

    ``local`` is in declaration order. ``included`` holds the exports of
    every included file in inclusion order; they are visible at any offset.
    """

    path: Path
    local: tuple[Symbol, ...] = ()
    included: tuple[Symbol, ...] = ()

    def visible(self, offset: int, kinds: Collection[str] | None = None) -> list[Symbol]:
        out = [s for s in self.local if is_visible(s, offset)]
        out.extend(self.included)
        if kinds is not None:
            out = [s for s in out if s.kind in kinds]
        return out

    def lookup(
        self,
        name: str,
        offset: int,
        kinds: Collection[str] | None = None,
    ) -> Symbol | None:
        """Resolve ``name`` at ``offset``; the last visible declaration wins.

        Local declarations shadow included ones. Among function declarations
        the richest signature wins, so a later forward declaration does not
        hide the full definition.
        """
        key = fold_name(name)

        def matching(symbols: Iterable[Symbol]) -> list[Symbol]:
            return [
                s
                for s in symbols
                if s.key == key and (kinds is None or s.kind in kinds)
            ]

        local = matching(s for s in self.local if is_visible(s, offset))
        return _pick(local) or _pick(matching(self.included))

    def declarations(self, name: str) -> list[Symbol]:
        """Every declaration of ``name``, ignoring position and shadowing."""
        key = fold_name(name)
        return [s for s in (*self.local, *self.included) if s.key == key]

    def temp_tables(self) -> list[TempTableSymbol]:
        return [s for s in self.local if isinstance(s, TempTableSymbol)]


def _text(node: Node | None) -> str | None:
    if node is None or node.is_missing:
        return None
    text = node.text.strip()
    return text or None


def _location(node: Node, path: Path) -> Location:
    return Location(
        path=path.as_posix(),
        span=Span.from_points(node.start_point, node.end_point),
    )


def _upper(node: Node | None) -> str | None:
    text = _text(node)
    return text.upper() if text else None


class _Extractor:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.symbols: list[Symbol] = []

    def _handle_variable(self, node: Node, scope: Scope | None) -> None:
        name_node = node.child_by_field_name("name")
        name = _text(name_node)
        if name_node is None or name is None:
            return
        is_parameter = node.type == "parameter_definition"
        self.symbols.append(
            VariableSymbol(
                name=name,
                site=_location(name_node, self.path),
                offset=node.start,
                scope=scope,
                type_name=_upper(node.child_by_field_name("type")),
                like=_text(node.child_by_field_name("like")),
                is_parameter=is_parameter,
                mode=_upper(node.child_by_field_name("mode")) if is_parameter else None,
            )
        )

    def _handle_buffer(self, node: Node, scope: Scope | None) -> None:
        name_node = node.child_by_field_name("name")
        name = _text(name_node)
        table = _text(node.child_by_field_name("table"))
        if name_node is None or name is None or table is None:
            return
        self.symbols.append(
            BufferSymbol(
                name=name,
                site=_location(name_node, self.path),
                offset=node.start,
                table=table,
                scope=scope,
            )
        )

    def _handle_definition(self, node: Node, scope: Scope | None) -> None:
        """``DEFINE QUERY q``, ``DEFINE STREAM s`` and similar named objects."""
        name_node = node.child_by_field_name("name")
        name = _text(name_node)
        if name_node is None or name is None:
            return
        type_name = _upper(node.child_by_field_name("type")) or _upper(
            node.child_by_field_name("kind")
        )
        self.symbols.append(
            VariableSymbol(
                name=name,
                site=_location(name_node, self.path),
                offset=node.start,
                scope=scope,
                type_name=type_name,
                like=_text(node.child_by_field_name("like")),
            )
        )

    def _handle_temp_table(self, node: Node, scope: Scope | None) -> None:
        name_node = node.child_by_field_name("name")
        name = _text(name_node)
        if name_node is None or name is None:
            return
        fields: list[TempTableFieldSymbol] = []
        indexes: list[TempTableIndex] = []
        for child in node.children:
            if child.type == "field_definition":
                field_name_node = child.child_by_field_name("name")
                field_name = _text(field_name_node)
                if field_name_node is None or field_name is None:
                    continue
                fields.append(
                    TempTableFieldSymbol(
                        name=field_name,
                        site=_location(field_name_node, self.path),
                        offset=node.start,
                        table=name,
                        type_name=_upper(child.child_by_field_name("type")),
                        like=_text(child.child_by_field_name("like")),
                        scope=scope,
                    )
                )
            elif child.type == "index_definition":
                index_name_node = child.child_by_field_name("name")
                index_name = _text(index_name_node)
                if index_name_node is None or index_name is None:
                    continue
                indexes.append(
                    TempTableIndex(
                        name=index_name,
                        fields=tuple(c.text for c in child.children_by_type("index_field")),
                        site=_location(index_name_node, self.path),
                    )
                )
        self.symbols.append(
            TempTableSymbol(
                name=name,
                site=_location(name_node, self.path),
                offset=node.start,
                fields=tuple(fields),
                indexes=tuple(indexes),
                like_table=_text(node.child_by_field_name("like")),
                scope=scope,
            )
        )

    def _parameters(self, node: Node, scope: Scope | None) -> tuple[Parameter, ...]:
        params_node = node.child_by_field_name("parameters")
        if params_node is None:
            return ()
        params: list[Parameter] = []
        for child in params_node.children:
            mode = _upper(child.child_by_field_name("mode"))
            if child.type == "buffer_parameter":
                name = _text(child.child_by_field_name("name"))
                table = _text(child.child_by_field_name("table"))
                if name is None:
                    continue
                params.append(Parameter(name, table, mode, "buffer"))
                if scope is not None:
                    self._handle_buffer(child, scope)
                continue
            if child.type != "parameter":
                continue
            name_node = child.child_by_field_name("name")
            name = _text(name_node)
            if name_node is None or name is None:
                table = _text(child.child_by_field_name("table"))
                if table is not None:
                    params.append(Parameter(table, None, mode, "table"))
                continue
            type_name = _upper(child.child_by_field_name("type"))
            like = _text(child.child_by_field_name("like"))
            params.append(Parameter(name, type_name, mode, "value", like))
            if scope is not None:
                self.symbols.append(
                    VariableSymbol(
                        name=name,
                        site=_location(name_node, self.path),
                        offset=child.start,
                        scope=scope,
                        type_name=type_name,
                        like=like,
                        is_parameter=True,
                        mode=mode,
                    )
                )
        return tuple(params)

    def _handle_function(self, node: Node) -> None:
        name_node = node.child_by_field_name("name")
        name = _text(name_node)
        is_forward = node.type == "function_forward_definition"
        body_scope = None if is_forward else (node.start, node.end)
        if name_node is not None and name is not None:
            # the function symbol precedes its parameters so declaration order holds
            function_index = len(self.symbols)
            parameters = self._parameters(node, body_scope)
            self.symbols.insert(
                function_index,
                FunctionSymbol(
                    name=name,
                    site=_location(name_node, self.path),
                    offset=node.start,
                    path=self.path,
                    parameters=parameters,
                    return_type=_upper(node.child_by_field_name("type")),
                    is_forward=is_forward,
                ),
            )
        body = node.child_by_field_name("body")
        if body is not None:
            self._traverse_node(body, body_scope)

    def _traverse_node(self, root: Node, scope: Scope | None) -> None:
        """Traverse the syntax tree and collect symbols.

        Pre-order over an explicit stack; long ``ELSE IF`` chains nest as
        deep as they are long.
        """
        stack = [(root, scope)]
        while stack:
            node, node_scope = stack.pop()
            node_type = node.type
            if node_type in ("variable_definition", "parameter_definition"):
                self._handle_variable(node, node_scope)
            elif node_type == "buffer_definition":
                self._handle_buffer(node, node_scope)
            elif node_type == "temp_table_definition":
                self._handle_temp_table(node, node_scope)
            elif node_type == "definition":
                self._handle_definition(node, node_scope)
            elif node_type in ("function_definition", "function_forward_definition"):
                self._handle_function(node)
            elif node_type == "procedure_definition":
                body = node.child_by_field_name("body")
                if body is not None:
                    stack.append((body, (node.start, node.end)))
            else:
                stack.extend((child, node_scope) for child in reversed(node.children))


def extract_symbols(tree: Tree, path: Path) -> list[Symbol]:
    """Extract every declaration of a parsed file in declaration order.

    Extraction is best-effort: declarations inside or after ``ERROR`` nodes
    are still collected when their own statement parsed.
    """
    extractor = _Extractor(path)
    extractor._traverse_node(tree.root_node, None)
    return extractor.symbols


def build_symbol_table(
    path: Path,
    local: Iterable[Symbol],
    included: Iterable[FileFacts],
) -> SymbolTable:
    exported: list[Symbol] = []
    for facts in included:
        exported.extend(facts.exports)
    return SymbolTable(path=path, local=tuple(local), included=tuple(exported))


__all__ = [
    "BufferSymbol",
    "FileFacts",
    "FunctionSymbol",
    "Parameter",
    "Symbol",
    "SymbolKind",
    "SymbolTable",
    "TempTableFieldSymbol",
    "TempTableIndex",
    "TempTableSymbol",
    "VariableSymbol",
    "build_symbol_table",
    "extract_symbols",
    "is_exported",
    "is_visible",
]
