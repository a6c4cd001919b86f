"""Parser for OpenEdge ``.df`` schema dump files.

The format is line oriented. Statements start in column 0::

    ADD TABLE "customer"
      AREA "Data Area"
      LABEL "Customer"

    ADD FIELD "name" OF "customer" AS character
      FORMAT "x(30)"
      LABEL "Name"

    ADD INDEX "cust-name" ON "customer"
      UNIQUE
      INDEX-FIELD "name" ASCENDING

    .
    PSC
    cpstream=ISO8859-1

Indented lines are attributes of the statement above them. A blank line or
a line holding only ``.`` ends the statement; ``PSC`` starts the trailer.
Statements other than ``ADD TABLE``/``ADD FIELD``/``ADD INDEX`` are skipped
together with their attributes. A quoted value may run over several lines.

Incremental dumps add fields and indexes to tables they do not define
(``UPDATE TABLE`` is skipped). Those land in ``DumpFile.extensions`` and are
attached to the owning table when a snapshot is built.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from contract.models import Location, Span
from dbschema.models import DumpFile, SchemaField, SchemaIndex, SchemaTable
from utils import fold_name

if TYPE_CHECKING:
    from collections.abc import Iterator

_OF_RE = re.compile(r"\bOF\s+(?=[\"'])", re.IGNORECASE)
_ON_RE = re.compile(r"\bON\s+(?=[\"'])", re.IGNORECASE)
_AS_RE = re.compile(r"\bAS\s+([A-Za-z][\w-]*)", re.IGNORECASE)


class DumpFileError(Exception):
    """Raised when a dump file cannot be read or is malformed.

    ``line`` is one-based, ``None`` for file-level failures.
    """

    def __init__(self, path: Path, line: int | None, message: str) -> None:
        self.path = path
        self.line = line
        self.message = message
        where = f"{path}:{line}" if line is not None else str(path)
        super().__init__(f"{where}: {message}")


@dataclass
class _Quoted:
    value: str
    start: int
    end: int


@dataclass
class _TableDraft:
    name: str
    location: Location
    fields: list[SchemaField] = field(default_factory=list)
    indexes: list[SchemaIndex] = field(default_factory=list)
    label: str | None = None
    description: str | None = None


@dataclass
class _FieldDraft:
    name: str
    table: _TableDraft
    type_name: str | None
    location: Location
    attrs: dict[str, str] = field(default_factory=dict)


@dataclass
class _IndexDraft:
    name: str
    table: _TableDraft
    location: Location
    fields: list[str] = field(default_factory=list)
    unique: bool = False
    primary: bool = False


_Draft = _TableDraft | _FieldDraft | _IndexDraft


def _open_quote(line: str, quote: str | None) -> str | None:
    """The quote still open at the end of ``line``, given the one open before it."""
    for char in line:
        if quote is None:
            if char in "\"'":
                quote = char
        elif char == quote:
            # a doubled quote closes and reopens
            quote = None
    return quote


def _logical_lines(text: str) -> Iterator[tuple[int, str]]:
    """Physical lines, joined while a quoted value is left open."""
    pending: list[str] = []
    start = 0
    quote: str | None = None
    for lineno, line in enumerate(text.splitlines()):
        if not pending:
            start = lineno
        pending.append(line)
        quote = _open_quote(line, quote)
        if quote is None:
            yield start, "\n".join(pending)
            pending = []
    if pending:
        # the unterminated quote is reported by the statement parser
        yield start, "\n".join(pending)


class _DumpParser:
    def __init__(self, path: Path, text: str) -> None:
        self.path = path
        self.text = text
        self.tables: dict[str, _TableDraft] = {}
        self.extensions: dict[str, _TableDraft] = {}
        self.current: _Draft | None = None
        self.skipping = False

    def _error(self, lineno: int, message: str) -> DumpFileError:
        return DumpFileError(self.path, lineno + 1, message)

    def _quoted(self, line: str, lineno: int, start: int = 0) -> _Quoted | None:
        """First quoted string at or after ``start``; doubled quotes escape."""
        idx = start
        while idx < len(line) and line[idx] not in "\"'":
            idx += 1
        if idx >= len(line):
            return None
        quote = line[idx]
        pos = idx + 1
        chars: list[str] = []
        while pos < len(line):
            char = line[pos]
            if char == quote:
                if pos + 1 < len(line) and line[pos + 1] == quote:
                    chars.append(quote)
                    pos += 2
                    continue
                return _Quoted("".join(chars), idx, pos + 1)
            chars.append(char)
            pos += 1
        raise self._error(lineno, "unterminated quoted string")

    def _location(self, lineno: int, quoted: _Quoted) -> Location:
        return Location(
            path=self.path.as_posix(),
            span=Span.from_points((lineno, quoted.start), (lineno, quoted.end)),
        )

    def _table_for(self, name: str, location: Location) -> _TableDraft:
        key = fold_name(name)
        table = self.tables.get(key)
        if table is None:
            table = self.extensions.get(key)
        if table is None:
            table = _TableDraft(name, location)
            self.extensions[key] = table
        return table

    def parse(self) -> DumpFile:
        for lineno, line in _logical_lines(self.text):
            stripped = line.strip()
            if not stripped or stripped == ".":
                self._finish()
                continue
            if line[0] not in " \t":
                self._finish()
                upper = stripped.upper()
                if upper.startswith("PSC"):
                    break
                self._statement(line, upper, lineno)
            elif not self.skipping and self.current is not None:
                self._attribute(line, stripped, lineno)
        self._finish()
        return DumpFile(
            path=self.path,
            tables=tuple(self._freeze(t) for t in self.tables.values()),
            extensions=tuple(self._freeze(t) for t in self.extensions.values()),
        )

    def _statement(self, line: str, upper: str, lineno: int) -> None:
        words = upper.split()
        if len(words) < 2 or words[0] != "ADD" or words[1] not in ("TABLE", "FIELD", "INDEX"):
            self.skipping = True
            return
        self.skipping = False
        kind = words[1]
        name = self._quoted(line, lineno, line.upper().index(kind) + len(kind))
        if name is None:
            raise self._error(lineno, f"ADD {kind} without a quoted name")

        if kind == "TABLE":
            key = fold_name(name.value)
            table = self.tables.get(key)
            if table is None:
                table = self.extensions.pop(key, None)
                if table is None:
                    table = _TableDraft(name.value, self._location(lineno, name))
                else:
                    table.name = name.value
                    table.location = self._location(lineno, name)
                self.tables[key] = table
            self.current = table
            return

        if kind == "FIELD":
            match = _OF_RE.search(line, name.end)
            owner = self._quoted(line, lineno, match.end()) if match else None
            if owner is None:
                raise self._error(lineno, f"ADD FIELD '{name.value}' without OF \"table\"")
            type_match = _AS_RE.search(line, owner.end)
            self.current = _FieldDraft(
                name=name.value,
                table=self._table_for(owner.value, self._location(lineno, owner)),
                type_name=type_match.group(1).upper() if type_match else None,
                location=self._location(lineno, name),
            )
            return

        match = _ON_RE.search(line, name.end)
        owner = self._quoted(line, lineno, match.end()) if match else None
        if owner is None:
            raise self._error(lineno, f"ADD INDEX '{name.value}' without ON \"table\"")
        self.current = _IndexDraft(
            name=name.value,
            table=self._table_for(owner.value, self._location(lineno, owner)),
            location=self._location(lineno, name),
        )

    def _attribute(self, line: str, stripped: str, lineno: int) -> None:
        keyword = stripped.split(None, 1)[0].upper()
        current = self.current
        if isinstance(current, _IndexDraft):
            if keyword == "INDEX-FIELD":
                quoted = self._quoted(line, lineno)
                if quoted is not None:
                    current.fields.append(quoted.value)
            elif keyword == "UNIQUE":
                current.unique = True
            elif keyword == "PRIMARY":
                current.primary = True
            return
        if keyword not in ("LABEL", "FORMAT", "DESCRIPTION"):
            return
        quoted = self._quoted(line, lineno)
        if quoted is None:
            return
        if isinstance(current, _FieldDraft):
            current.attrs.setdefault(keyword, quoted.value)
        elif isinstance(current, _TableDraft):
            if keyword == "LABEL" and current.label is None:
                current.label = quoted.value
            elif keyword == "DESCRIPTION" and current.description is None:
                current.description = quoted.value

    def _finish(self) -> None:
        current = self.current
        self.current = None
        self.skipping = False
        if isinstance(current, _FieldDraft):
            current.table.fields.append(
                SchemaField(
                    name=current.name,
                    table=current.table.name,
                    type_name=current.type_name,
                    location=current.location,
                    label=current.attrs.get("LABEL"),
                    format=current.attrs.get("FORMAT"),
                    description=current.attrs.get("DESCRIPTION"),
                )
            )
        elif isinstance(current, _IndexDraft):
            current.table.indexes.append(
                SchemaIndex(
                    name=current.name,
                    table=current.table.name,
                    fields=tuple(current.fields),
                    location=current.location,
                    unique=current.unique,
                    primary=current.primary,
                )
            )

    @staticmethod
    def _freeze(draft: _TableDraft) -> SchemaTable:
        return SchemaTable(
            name=draft.name,
            fields=tuple(draft.fields),
            indexes=tuple(draft.indexes),
            location=draft.location,
            label=draft.label,
            description=draft.description,
        )


def parse_dump_text(text: str, path: Path) -> DumpFile:
    return _DumpParser(path, text).parse()


def parse_dump_file(path: Path) -> DumpFile:
    """Parse one dump file; any failure raises ``DumpFileError``."""
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise DumpFileError(path, None, f"cannot read dump file: {e}") from e
    return parse_dump_text(text, path)


__all__ = ["DumpFileError", "parse_dump_file", "parse_dump_text"]
