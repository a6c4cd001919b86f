"""Shared helpers for names, paths and URIs."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote, urlparse


def fold_name(name: str) -> str:
    """Case-fold an ABL identifier for lookup.

    ABL names are case-insensitive; the folded form is the key everywhere a
    symbol, table or field is indexed. Display keeps the original spelling.

    Examples:
        >>> fold_name("Z9ZW_MSTR") == fold_name("z9zw_mstr")
        True
    """
    return name.casefold()


def to_path(uri_or_path: str | Path) -> Path:
    """Accept a plain path or a ``file://`` URI and return an absolute Path."""
    if isinstance(uri_or_path, Path):
        return uri_or_path.resolve()
    if uri_or_path.startswith("file:"):
        parsed = urlparse(uri_or_path)
        raw = unquote(parsed.path)
        # file:///C:/dir on Windows
        if len(raw) > 2 and raw[0] == "/" and raw[2] == ":":
            raw = raw[1:]
        return Path(raw).resolve()
    return Path(uri_or_path).resolve()


def to_uri(path: Path) -> str:
    return path.resolve().as_uri()


def is_ident_char(char: str) -> bool:
    return char.isalnum() or char in "_-#$%&"


__all__ = ["fold_name", "is_ident_char", "to_path", "to_uri"]
