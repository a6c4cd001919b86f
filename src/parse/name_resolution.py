"""Point-in-source name resolution over a symbol table and schema snapshot.

Dotted names are resolved in two stages: the qualifier is resolved to an
owner (temp-table or schema table, with one buffer indirection), then the
member is looked up on that owner. Buffers, temp-tables and schema tables
therefore share one code path.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from contract.models import CompletionItem, Diagnostic, HoverPayload, SignatureInfo
from dbschema.models import SchemaField, SchemaIndex, SchemaTable
from parse.symbols import (
    BufferSymbol,
    FunctionSymbol,
    TempTableFieldSymbol,
    TempTableIndex,
    TempTableSymbol,
    VariableSymbol,
)
from syntax.tree import LineIndex
from utils import fold_name, is_ident_char

if TYPE_CHECKING:
    from contract.models import CompletionKind, Location, Position
    from dbschema.index import SchemaSnapshot
    from parse.calls import CallSite, DocumentRefs
    from parse.symbols import Symbol, SymbolTable

Target = (
    VariableSymbol
    | FunctionSymbol
    | BufferSymbol
    | TempTableSymbol
    | TempTableFieldSymbol
    | TempTableIndex
    | SchemaTable
    | SchemaField
    | SchemaIndex
)

_OWNER_KINDS = frozenset({"buffer", "temp-table", "variable"})


@dataclass(frozen=True)
class ExpressionAt:
    """The dotted expression under a cursor.

    ``parts`` holds every dotted part; ``index`` is the part the cursor is
    on, spanning ``start``..``end`` in the text.
    """

    parts: tuple[str, ...]
    index: int
    start: int
    end: int

    @property
    def path(self) -> tuple[str, ...]:
        """Parts up to and including the one under the cursor."""
        return self.parts[: self.index + 1]

    @property
    def word(self) -> str:
        return self.parts[self.index]


@dataclass(frozen=True)
class CompletionContext:
    prefix: str
    qualifier: tuple[str, ...] | None
    start: int


@dataclass(frozen=True)
class Owner:
    """A record type whose members can be addressed as ``owner.member``."""

    name: str
    temp_table: TempTableSymbol | None = None
    table: SchemaTable | None = None
    via: BufferSymbol | None = None


@dataclass(frozen=True)
class Resolution:
    target: Target
    strategy: str
    owner: Owner | None = None


def _word_bounds(text: str, offset: int) -> tuple[int, int] | None:
    offset = max(0, min(offset, len(text)))
    if offset < len(text) and is_ident_char(text[offset]):
        anchor = offset
    elif offset > 0 and is_ident_char(text[offset - 1]):
        anchor = offset - 1
    else:
        return None
    start = anchor
    while start > 0 and is_ident_char(text[start - 1]):
        start -= 1
    end = anchor + 1
    while end < len(text) and is_ident_char(text[end]):
        end += 1
    return start, end


def expression_at(text: str, offset: int) -> ExpressionAt | None:
    """Locate the (possibly dotted) name under ``offset``.

    Examples:
        >>> expr = expression_at("DISPLAY b_tt.name.", 14)
        >>> expr.parts, expr.index
        (('b_tt', 'name'), 1)
    """
    bounds = _word_bounds(text, offset)
    if bounds is None:
        return None
    start, end = bounds
    before: list[str] = []
    cursor = start
    while cursor > 1 and text[cursor - 1] == "." and is_ident_char(text[cursor - 2]):
        prev = _word_bounds(text, cursor - 2)
        if prev is None:
            break
        before.insert(0, text[prev[0] : prev[1]])
        cursor = prev[0]
    after: list[str] = []
    cursor = end
    while (
        cursor + 1 < len(text)
        and text[cursor] == "."
        and is_ident_char(text[cursor + 1])
    ):
        nxt = _word_bounds(text, cursor + 1)
        if nxt is None:
            break
        after.append(text[nxt[0] : nxt[1]])
        cursor = nxt[1]
    parts = (*before, text[start:end], *after)
    return ExpressionAt(parts=parts, index=len(before), start=start, end=end)


def completion_context(text: str, offset: int) -> CompletionContext:
    """Prefix typed before ``offset`` and the dotted qualifier before it."""
    offset = max(0, min(offset, len(text)))
    start = offset
    while start > 0 and is_ident_char(text[start - 1]):
        start -= 1
    prefix = text[start:offset]
    qualifier: list[str] = []
    cursor = start
    while cursor > 1 and text[cursor - 1] == "." and is_ident_char(text[cursor - 2]):
        end = cursor - 1
        begin = end
        while begin > 0 and is_ident_char(text[begin - 1]):
            begin -= 1
        qualifier.insert(0, text[begin:end])
        cursor = begin
    return CompletionContext(prefix, tuple(qualifier) or None, start)


def active_argument_index(text: str, args_start: int, offset: int) -> int:
    """Count top-level commas between the opening parenthesis and ``offset``."""
    index = 0
    depth = 0
    quote: str | None = None
    for char in text[args_start + 1 : offset]:
        if quote is not None:
            if char == quote:
                quote = None
            continue
        if char in "\"'":
            quote = char
        elif char in "([{":
            depth += 1
        elif char in ")]}":
            depth = max(0, depth - 1)
        elif char == "," and depth == 0:
            index += 1
    return index


def _last_segment(name: str) -> str:
    return name.rsplit(".", 1)[-1]


def _field_documentation(
    label: str | None, format: str | None, description: str | None
) -> str | None:
    lines = []
    if label:
        lines.append(f"Label: {label}")
    if format:
        lines.append(f"Format: {format}")
    if description:
        lines.append(f"Description: {description}")
    return "\n".join(lines) or None


def target_location(target: Target) -> Location:
    if isinstance(target, (SchemaTable, SchemaField, SchemaIndex)):
        return target.location
    return target.site


class ResolutionEngine:
    """Answers definition, reference, completion, hover and arity queries.

    The engine is built for one analysed document and holds only immutable
    inputs: the document text, its symbol table, the schema snapshot taken
    when the query started, and the document's call sites. Every query is a
    pure function of those inputs.
    """

    def __init__(
        self,
        text: str,
        symbols: SymbolTable,
        schema: SchemaSnapshot,
        refs: DocumentRefs | None = None,
        line_index: LineIndex | None = None,
    ) -> None:
        self.text = text
        self.symbols = symbols
        self.schema = schema
        self.refs = refs
        self.line_index = line_index or LineIndex(text)

    def offset(self, position: Position) -> int:
        offset = self.line_index.offset(position.line, position.character)
        return len(self.text) if offset is None else offset

    # -- owner / member resolution ----------------------------------------

    def _table_like(self, name: str, offset: int) -> Owner | None:
        """Resolve a table name (no buffers) to a temp-table or schema table."""
        name = _last_segment(name)
        temp_table = self.symbols.lookup(name, offset, {"temp-table"})
        if isinstance(temp_table, TempTableSymbol):
            like = None
            if temp_table.like_table:
                like = self.schema.table(_last_segment(temp_table.like_table))
            return Owner(temp_table.name, temp_table=temp_table, table=like)
        table = self.schema.table(name)
        if table is not None:
            return Owner(table.name, table=table)
        return None

    def resolve_owner(self, qualifier: tuple[str, ...] | list[str], offset: int) -> Owner | None:
        """Resolve the qualifier of ``owner.member``; ``db.table`` uses the table."""
        if not qualifier:
            return None
        name = qualifier[-1]
        symbol = self.symbols.lookup(name, offset, _OWNER_KINDS)
        if isinstance(symbol, BufferSymbol):
            target = self._table_like(symbol.table, offset)
            if target is None:
                return None
            return Owner(target.name, target.temp_table, target.table, via=symbol)
        if isinstance(symbol, TempTableSymbol):
            return self._table_like(symbol.name, offset)
        if isinstance(symbol, VariableSymbol) and symbol.like:
            owner = self._table_like(symbol.like, offset)
            if owner is not None:
                return owner
        return self._table_like(name, offset)

    def resolve_member(self, owner: Owner, member: str) -> Target | None:
        if owner.temp_table is not None:
            found = owner.temp_table.field(member) or owner.temp_table.index(member)
            if found is not None:
                return found
        if owner.table is not None:
            return owner.table.field(member) or owner.table.index(member)
        return None

    def owner_fields(self, owner: Owner) -> list[TempTableFieldSymbol | SchemaField]:
        fields: list[TempTableFieldSymbol | SchemaField] = []
        if owner.temp_table is not None:
            fields.extend(owner.temp_table.fields)
        if owner.table is not None:
            fields.extend(owner.table.fields)
        return fields

    def _local_field(self, name: str, offset: int) -> TempTableFieldSymbol | None:
        for temp_table in reversed(self.symbols.visible(offset, {"temp-table"})):
            if isinstance(temp_table, TempTableSymbol):
                found = temp_table.field(name)
                if found is not None:
                    return found
        return None

    def resolve_name(self, name: str, offset: int) -> Resolution | None:
        """Resolve a bare name: symbols, schema table, temp-table field, unique schema field."""
        symbol = self.symbols.lookup(name, offset)
        if symbol is not None:
            local = any(s is symbol for s in self.symbols.local)
            return Resolution(symbol, "local" if local else "included")
        table = self.schema.table(name)
        if table is not None:
            return Resolution(table, "schema_table")
        local_field = self._local_field(name, offset)
        if local_field is not None:
            return Resolution(local_field, "temp_table_field")
        unique = self.schema.unique_field(name)
        if unique is not None:
            return Resolution(unique, "schema_field_unique")
        return None

    def resolve_path(self, parts: tuple[str, ...] | list[str], offset: int) -> Resolution | None:
        """Resolve ``name``, ``owner.member`` or ``db.table.member``."""
        parts = tuple(p for p in parts if p)
        if not parts:
            return None
        if len(parts) == 1:
            return self.resolve_name(parts[0], offset)
        owner = self.resolve_owner(parts[:-1], offset)
        if owner is None:
            # db.table
            if len(parts) == 2:
                table = self.schema.table(parts[1])
                if table is not None:
                    return Resolution(table, "schema_table")
            return None
        member = self.resolve_member(owner, parts[-1])
        if member is None:
            return None
        strategy = "buffer_member" if owner.via is not None else "owner_member"
        return Resolution(member, strategy, owner)

    def function_at(self, name: str, offset: int) -> FunctionSymbol | None:
        symbol = self.symbols.lookup(name, offset, {"function"})
        return symbol if isinstance(symbol, FunctionSymbol) else None

    # -- queries ------------------------------------------------------------

    def resolve_definition(self, position: Position) -> Location | None:
        offset = self.offset(position)
        expr = expression_at(self.text, offset)
        if expr is None:
            return None
        resolution = self.resolve_path(expr.path, offset)
        if resolution is None:
            return None
        return target_location(resolution.target)

    def resolve_references(self, position: Position) -> list[Location]:
        """Definition sites of the schema table named under the cursor."""
        expr = expression_at(self.text, self.offset(position))
        if expr is None:
            return []
        return list(self.schema.sites(expr.word))

    def declarations(self, position: Position) -> list[Location]:
        """Every declaration site of the local or included name under the cursor."""
        expr = expression_at(self.text, self.offset(position))
        if expr is None or len(expr.path) != 1:
            return []
        return [symbol.site for symbol in self.symbols.declarations(expr.word)]

    def hover(self, position: Position) -> HoverPayload | None:
        offset = self.offset(position)
        expr = expression_at(self.text, offset)
        if expr is None:
            return None
        resolution = self.resolve_path(expr.path, offset)
        if resolution is None:
            return None
        return self._hover_payload(resolution.target)

    def _hover_payload(self, target: Target) -> HoverPayload | None:
        if isinstance(target, FunctionSymbol):
            return HoverPayload(
                kind="function",
                name=target.name,
                parameters=tuple(p.render() for p in target.parameters),
                return_type=target.return_type,
                path=target.path.as_posix(),
            )
        if isinstance(target, VariableSymbol):
            type_name = target.type_name or (f"LIKE {target.like}" if target.like else None)
            return HoverPayload(
                kind="parameter" if target.is_parameter else "variable",
                name=target.name,
                type_name=type_name,
            )
        if isinstance(target, BufferSymbol):
            return HoverPayload(
                kind="buffer", name=target.name, table=target.table, path=target.site.path
            )
        if isinstance(target, TempTableSymbol):
            return HoverPayload(kind="temp-table", name=target.name, path=target.site.path)
        if isinstance(target, TempTableFieldSymbol):
            type_name = target.type_name or (f"LIKE {target.like}" if target.like else None)
            return HoverPayload(
                kind="field", name=target.name, table=target.table, type_name=type_name
            )
        if isinstance(target, SchemaField):
            return HoverPayload(
                kind="field",
                name=target.name,
                table=target.table,
                type_name=target.type_name,
                label=target.label,
                format=target.format,
                description=target.description,
            )
        if isinstance(target, SchemaTable):
            return HoverPayload(
                kind="table",
                name=target.name,
                label=target.label,
                description=target.description,
                path=target.location.path,
            )
        return None

    def complete(self, position: Position) -> list[CompletionItem]:
        """Completion candidates at ``position``, sorted and de-duplicated.

        After a resolved ``owner.`` only the owner's fields are offered;
        otherwise the symbols visible at the position and every schema table.
        """
        offset = self.offset(position)
        context = completion_context(self.text, offset)
        prefix = fold_name(context.prefix)

        items: list[CompletionItem] = []
        owner = (
            self.resolve_owner(context.qualifier, offset)
            if context.qualifier is not None
            else None
        )
        if owner is not None:
            items.extend(self._field_item(f, owner.name) for f in self.owner_fields(owner))
        else:
            items.extend(self._symbol_item(s) for s in self.symbols.visible(offset))
            items.extend(self._table_item(t) for t in self.schema.tables.values())

        matching = [item for item in items if fold_name(item.label).startswith(prefix)]
        matching.sort(key=lambda item: fold_name(item.label))
        seen: set[str] = set()
        out: list[CompletionItem] = []
        for item in matching:
            key = fold_name(item.label)
            if key in seen:
                continue
            seen.add(key)
            out.append(item)
        return out

    @staticmethod
    def _field_item(item: TempTableFieldSymbol | SchemaField, owner: str) -> CompletionItem:
        type_name = item.type_name or "FIELD"
        documentation = None
        if isinstance(item, SchemaField):
            documentation = _field_documentation(item.label, item.format, item.description)
        return CompletionItem(
            label=item.name,
            kind="field",
            detail=f"{type_name} ({owner})",
            documentation=documentation,
        )

    @staticmethod
    def _symbol_item(symbol: Symbol) -> CompletionItem:
        kind: CompletionKind = symbol.kind
        detail: str | None = None
        if isinstance(symbol, VariableSymbol):
            detail = symbol.type_name or (f"LIKE {symbol.like}" if symbol.like else None)
            if symbol.is_parameter and symbol.mode:
                detail = f"{symbol.mode} {detail or ''}".strip()
        elif isinstance(symbol, FunctionSymbol):
            detail = symbol.signature()
        elif isinstance(symbol, BufferSymbol):
            detail = f"BUFFER FOR {symbol.table}"
        elif isinstance(symbol, TempTableSymbol):
            detail = "TEMP-TABLE"
        return CompletionItem(label=symbol.name, kind=kind, detail=detail)

    @staticmethod
    def _table_item(table: SchemaTable) -> CompletionItem:
        return CompletionItem(
            label=table.name,
            kind="table",
            detail="TABLE",
            documentation=_field_documentation(table.label, None, table.description),
        )

    def check_arity(self, call: CallSite) -> Diagnostic | None:
        """One diagnostic when the argument count differs from the parameter count."""
        if call.raw or call.qualified:
            return None
        function = self.function_at(call.name, call.offset)
        if function is None:
            return None
        got = len(call.arguments)
        if got == function.arity:
            return None
        return Diagnostic(
            span=call.name_span,
            severity="error",
            source="abl-semantic",
            message=f"Function '{function.name}' expects {function.arity} argument(s), got {got}",
            code="arity",
        )

    def signature_at(self, position: Position) -> SignatureInfo | None:
        """Signature of the call whose argument list encloses the cursor."""
        if self.refs is None:
            return None
        offset = self.offset(position)
        enclosing: CallSite | None = None
        for call in self.refs.calls:
            if call.raw or not call.args_start < offset:
                continue
            if offset >= call.args_end:
                closed = self.text[call.args_end - 1 : call.args_end] == ")"
                gap = self.text[call.args_end : offset]
                if closed or "\n" in gap or "." in gap:
                    continue
            if enclosing is None or call.args_start > enclosing.args_start:
                enclosing = call
        if enclosing is None:
            return None
        function = self.function_at(enclosing.name, enclosing.offset)
        if function is None:
            return None
        params = tuple(p.render() for p in function.parameters)
        active = active_argument_index(self.text, enclosing.args_start, offset)
        return SignatureInfo(
            label=function.signature(),
            parameters=params,
            active_parameter=min(active, len(params) - 1) if params else None,
            return_type=function.return_type,
        )


__all__ = [
    "CompletionContext",
    "ExpressionAt",
    "Owner",
    "Resolution",
    "ResolutionEngine",
    "Target",
    "active_argument_index",
    "completion_context",
    "expression_at",
    "target_location",
]
