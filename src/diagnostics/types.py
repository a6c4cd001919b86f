"""Basic type model for the type-mismatch checks."""

from __future__ import annotations

from enum import Enum


class BasicType(str, Enum):
    CHARACTER = "CHARACTER"
    NUMERIC = "NUMERIC"
    LOGICAL = "LOGICAL"
    DATE = "DATE"
    HANDLE = "HANDLE"


_ALIASES: dict[str, BasicType] = {
    "CHARACTER": BasicType.CHARACTER,
    "CHAR": BasicType.CHARACTER,
    "LONGCHAR": BasicType.CHARACTER,
    "CLOB": BasicType.CHARACTER,
    "INTEGER": BasicType.NUMERIC,
    "INT": BasicType.NUMERIC,
    "INT64": BasicType.NUMERIC,
    "DECIMAL": BasicType.NUMERIC,
    "DEC": BasicType.NUMERIC,
    "NUMERIC": BasicType.NUMERIC,
    "NUM": BasicType.NUMERIC,
    "LOGICAL": BasicType.LOGICAL,
    "LOG": BasicType.LOGICAL,
    "BOOLEAN": BasicType.LOGICAL,
    "DATE": BasicType.DATE,
    "DATETIME": BasicType.DATE,
    "DATETIME-TZ": BasicType.DATE,
    "HANDLE": BasicType.HANDLE,
    "COM-HANDLE": BasicType.HANDLE,
    "WIDGET-HANDLE": BasicType.HANDLE,
}


def basic_type(raw: str | None) -> BasicType | None:
    """Map a declared type to its basic type; only the first word counts.

    Examples:
        >>> basic_type("char")
        <BasicType.CHARACTER: 'CHARACTER'>
        >>> basic_type("character extent 3")
        <BasicType.CHARACTER: 'CHARACTER'>
        >>> basic_type("Progress.Lang.Object") is None
        True
    """
    if not raw:
        return None
    words = raw.split()
    if not words:
        return None
    return _ALIASES.get(words[0].upper())


__all__ = ["BasicType", "basic_type"]
