"""Schema entities read from dump files.

All records are immutable; a schema reload builds new ones and never patches
existing records.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from utils import fold_name

if TYPE_CHECKING:
    from pathlib import Path

    from contract.models import Location


@dataclass(frozen=True)
class SchemaField:
    name: str
    table: str
    type_name: str | None
    location: Location
    label: str | None = None
    format: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class SchemaIndex:
    name: str
    table: str
    fields: tuple[str, ...]
    location: Location
    unique: bool = False
    primary: bool = False


@dataclass(frozen=True)
class SchemaTable:
    name: str
    fields: tuple[SchemaField, ...]
    indexes: tuple[SchemaIndex, ...]
    location: Location
    label: str | None = None
    description: str | None = None

    @property
    def key(self) -> str:
        return fold_name(self.name)

    def field(self, name: str) -> SchemaField | None:
        key = fold_name(name)
        for field in self.fields:
            if fold_name(field.name) == key:
                return field
        return None

    def index(self, name: str) -> SchemaIndex | None:
        key = fold_name(name)
        for index in self.indexes:
            if fold_name(index.name) == key:
                return index
        return None


@dataclass(frozen=True)
class DumpFile:
    """The parsed content of one dump file.

    ``extensions`` holds fields and indexes added to tables the file does
    not define itself.
    """

    path: Path
    tables: tuple[SchemaTable, ...]
    extensions: tuple[SchemaTable, ...] = ()


__all__ = ["DumpFile", "SchemaField", "SchemaIndex", "SchemaTable"]
