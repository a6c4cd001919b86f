"""Include-token and dump-file path resolution.

Resolution is strictly ordered and the first existing regular file wins;
there is no "most specific match" heuristic.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rules.config import EffectiveConfig, OriginPath


def normalize_token(token: str) -> str:
    """Strip quotes and whitespace from an include token and use ``/``."""
    value = token.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1].strip()
    return value.replace("\\", "/")


def _is_file(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False


def include_candidates(
    token: str,
    config: EffectiveConfig,
    requesting_file: Path | None = None,
) -> Iterator[Path]:
    """Yield every candidate location for ``token`` in resolution order."""
    value = normalize_token(token)
    if not value:
        return
    relative = Path(value)
    if relative.is_absolute():
        yield relative
    for entry in config.propath:
        yield entry.resolve() / relative
    for config_dir in config.config_dirs:
        yield config_dir / relative
    if requesting_file is not None:
        yield requesting_file.parent / relative


def resolve_include(
    token: str,
    config: EffectiveConfig,
    requesting_file: Path | None = None,
) -> Path | None:
    for candidate in include_candidates(token, config, requesting_file):
        if _is_file(candidate):
            return candidate.resolve()
    return None


def resolve_dumpfile(entry: OriginPath, config: EffectiveConfig) -> Path | None:
    """Resolve a configured dump path: as written, then like an include."""
    direct = entry.resolve()
    if _is_file(direct):
        return direct.resolve()
    return resolve_include(entry.value, config)


def resolve_dumpfiles(config: EffectiveConfig) -> tuple[list[Path], list[OriginPath]]:
    """Resolve every configured dump file; returns (found, unresolved)."""
    found: list[Path] = []
    missing: list[OriginPath] = []
    for entry in config.dumpfile:
        path = resolve_dumpfile(entry, config)
        if path is None:
            missing.append(entry)
        elif path not in found:
            found.append(path)
    return found, missing


__all__ = [
    "include_candidates",
    "normalize_token",
    "resolve_dumpfile",
    "resolve_dumpfiles",
    "resolve_include",
]
