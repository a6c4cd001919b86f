"""Schema Index: immutable snapshots behind a swappable reference."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING

import structlog

from dbschema.dumpfile import DumpFileError, parse_dump_file
from utils import fold_name

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from contract.models import Location
    from dbschema.models import DumpFile, SchemaField, SchemaTable

logger = structlog.get_logger()


def _empty_mapping() -> Mapping:
    return MappingProxyType({})


@dataclass(frozen=True)
class SchemaSnapshot:
    """One consistent view of every indexed table.

    ``tables`` maps a case-folded table name to the table from the first
    dump file (in configured order) that defines it. ``table_sites`` keeps
    every definition site. ``field_owners`` maps a case-folded field name to
    the case-folded names of the tables that own it.
    """

    version: int = 0
    tables: Mapping[str, SchemaTable] = field(default_factory=_empty_mapping)
    table_sites: Mapping[str, tuple[Location, ...]] = field(default_factory=_empty_mapping)
    field_owners: Mapping[str, tuple[str, ...]] = field(default_factory=_empty_mapping)
    files: tuple[Path, ...] = ()
    errors: Mapping[str, str] = field(default_factory=_empty_mapping)

    def table(self, name: str) -> SchemaTable | None:
        return self.tables.get(fold_name(name))

    def sites(self, name: str) -> tuple[Location, ...]:
        return self.table_sites.get(fold_name(name), ())

    def owners(self, field_name: str) -> tuple[SchemaTable, ...]:
        return tuple(
            self.tables[key] for key in self.field_owners.get(fold_name(field_name), ())
        )

    def unique_field(self, field_name: str) -> SchemaField | None:
        """The field when exactly one table owns a field of that name."""
        owners = self.owners(field_name)
        if len(owners) != 1:
            return None
        return owners[0].field(field_name)


def _extend(table: SchemaTable, extension: SchemaTable) -> SchemaTable:
    """``table`` plus the fields and indexes it does not have yet."""
    fields = list(table.fields)
    for schema_field in extension.fields:
        if table.field(schema_field.name) is None:
            fields.append(replace(schema_field, table=table.name))
    indexes = list(table.indexes)
    for index in extension.indexes:
        if table.index(index.name) is None:
            indexes.append(replace(index, table=table.name))
    return replace(table, fields=tuple(fields), indexes=tuple(indexes))


def build_snapshot(
    files: Sequence[DumpFile],
    *,
    version: int,
    errors: Mapping[str, str] | None = None,
) -> SchemaSnapshot:
    tables: dict[str, SchemaTable] = {}
    sites: dict[str, list[Location]] = {}
    owners: dict[str, list[str]] = {}
    for dump in files:
        for table in dump.tables:
            key = table.key
            sites.setdefault(key, []).append(table.location)
            if key not in tables:
                tables[key] = table
    for dump in files:
        for extension in dump.extensions:
            owner = tables.get(extension.key)
            # fields of a table no file defines stay out of the index
            if owner is not None:
                tables[owner.key] = _extend(owner, extension)
    for key, table in tables.items():
        for schema_field in table.fields:
            bucket = owners.setdefault(fold_name(schema_field.name), [])
            if key not in bucket:
                bucket.append(key)
    return SchemaSnapshot(
        version=version,
        tables=MappingProxyType(tables),
        table_sites=MappingProxyType({k: tuple(v) for k, v in sites.items()}),
        field_owners=MappingProxyType({k: tuple(v) for k, v in owners.items()}),
        files=tuple(dump.path for dump in files),
        errors=MappingProxyType(dict(errors or {})),
    )


class SchemaStore:
    """Owns the current snapshot; ``reload`` rebuilds and swaps it whole.

    Readers take ``store.snapshot`` once per query and keep using that
    object; a concurrent reload never mutates it.
    """

    def __init__(self) -> None:
        self._snapshot = SchemaSnapshot()
        self._good: dict[Path, DumpFile] = {}
        self._reload_lock = threading.Lock()

    @property
    def snapshot(self) -> SchemaSnapshot:
        return self._snapshot

    def reload(self, paths: Sequence[Path]) -> SchemaSnapshot:
        with self._reload_lock:
            errors: dict[str, str] = {}
            parsed: list[DumpFile] = []
            for path in paths:
                try:
                    dump = parse_dump_file(path)
                except DumpFileError as e:
                    errors[path.as_posix()] = str(e)
                    previous = self._good.get(path)
                    logger.warning(
                        "dump_file_failed",
                        path=path.as_posix(),
                        line=e.line,
                        error=e.message,
                        kept_previous=previous is not None,
                    )
                    if previous is None:
                        continue
                    dump = previous
                else:
                    self._good[path] = dump
                parsed.append(dump)

            wanted = set(paths)
            self._good = {p: d for p, d in self._good.items() if p in wanted}
            snapshot = build_snapshot(
                parsed, version=self._snapshot.version + 1, errors=errors
            )
            self._snapshot = snapshot

        logger.info(
            "schema_reloaded",
            version=snapshot.version,
            tables=len(snapshot.tables),
            files=len(snapshot.files),
            errors=len(errors),
        )
        return snapshot


__all__ = ["SchemaSnapshot", "SchemaStore", "build_snapshot"]
