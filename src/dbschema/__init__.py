"""Database schema index built from ``.df`` dump files."""

from dbschema.dumpfile import DumpFileError, parse_dump_file, parse_dump_text
from dbschema.index import SchemaSnapshot, SchemaStore, build_snapshot
from dbschema.models import DumpFile, SchemaField, SchemaIndex, SchemaTable

__all__ = [
    "DumpFile",
    "DumpFileError",
    "SchemaField",
    "SchemaIndex",
    "SchemaSnapshot",
    "SchemaStore",
    "SchemaTable",
    "build_snapshot",
    "parse_dump_file",
    "parse_dump_text",
]
