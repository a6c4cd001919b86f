"""Per-rule diagnostic filtering: toggles, ignore lists and exclude globs."""

from __future__ import annotations

from fnmatch import fnmatchcase
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from utils import fold_name

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from rules.config import OriginPath, RuleConfig

_WILDCARDS = frozenset("*?[")


def _normalize(value: str) -> str:
    return value.replace("\\", "/").casefold()


def _candidates(path: Path, origin: Path) -> list[str]:
    absolute = _normalize(path.as_posix())
    out = [absolute, _normalize(path.name)]
    try:
        out.append(_normalize(path.relative_to(origin).as_posix()))
    except ValueError:
        pass
    return out


def path_matches_pattern(path: Path, pattern: OriginPath) -> bool:
    """Match one exclude glob against ``path``.

    The glob is tried against the absolute path, the path relative to the
    directory of the config file that declared it, and the basename. A glob
    without wildcards also matches as a directory prefix.
    """
    raw = _normalize(pattern.value).rstrip("/")
    if not raw:
        return False
    patterns = [raw]
    if not PurePosixPath(raw).is_absolute() and ":" not in raw[:3]:
        patterns.append(_normalize((pattern.origin / pattern.value).as_posix()).rstrip("/"))
    candidates = _candidates(path, pattern.origin)

    if _WILDCARDS.isdisjoint(raw):
        return any(
            candidate == pat or candidate.startswith(pat + "/")
            for pat in patterns
            for candidate in candidates
        )
    return any(fnmatchcase(candidate, pat) for pat in patterns for candidate in candidates)


def path_matches_any_pattern(path: Path, patterns: Iterable[OriginPath]) -> bool:
    return any(path_matches_pattern(path, pattern) for pattern in patterns)


def is_suppressed(rule: RuleConfig, name: str, path: Path) -> bool:
    """True when ``rule`` must not report ``name`` in ``path``."""
    if not rule.enabled:
        return True
    if fold_name(name) in rule.ignore:
        return True
    return path_matches_any_pattern(path, rule.exclude)


__all__ = ["is_suppressed", "path_matches_any_pattern", "path_matches_pattern"]
