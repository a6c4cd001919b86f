"""Workspace source-file discovery for the check command."""

from __future__ import annotations

from fnmatch import fnmatch
from typing import TYPE_CHECKING, cast

from gitignore_parser import parse_gitignore  # type: ignore[import-untyped]

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

ABL_SUFFIXES = frozenset({".p", ".w", ".i", ".cls"})


def _is_within_root(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
    except (OSError, ValueError):
        return False
    return True


def _build_gitignore_matcher(root: Path) -> Callable[[str], bool] | None:
    gitignore_paths = sorted(
        {path for path in [root / ".gitignore", *root.rglob(".gitignore")] if path.is_file()},
        key=lambda p: p.relative_to(root).as_posix(),
    )
    if not gitignore_paths:
        return None
    if len(gitignore_paths) == 1:
        return cast("Callable[[str], bool]", parse_gitignore(gitignore_paths[0]))

    matchers = [parse_gitignore(path) for path in gitignore_paths]

    def matches(path_str: str) -> bool:
        for matcher in matchers:
            try:
                if matcher(path_str):
                    return True
            except ValueError:
                # path outside this .gitignore's base directory
                continue
        return False

    return matches


def _should_include_file(
    path: Path,
    directory: Path,
    gitignore_matches: Callable[[str], bool] | None,
    exclude_patterns: list[str] | None,
) -> bool:
    if path.suffix.lower() not in ABL_SUFFIXES:
        return False
    if not path.is_file() or path.is_symlink():
        return False
    if not _is_within_root(path, directory):
        return False
    if gitignore_matches is not None and gitignore_matches(str(path)):
        return False
    rel_path_str = path.relative_to(directory).as_posix()
    return not (
        exclude_patterns and any(fnmatch(rel_path_str, pat) for pat in exclude_patterns)
    )


def find_source_files(
    directory: Path,
    *,
    exclude_patterns: list[str] | None = None,
) -> Iterator[Path]:
    """Find ABL sources (.p, .w, .i, .cls) under ``directory``.

    Files ignored by any ``.gitignore`` in the tree are skipped. Results are
    sorted by relative path for deterministic ordering.
    """
    gitignore_matches = _build_gitignore_matcher(directory)
    matched_files = [
        path
        for path in directory.rglob("*")
        if _should_include_file(path, directory, gitignore_matches, exclude_patterns)
    ]
    matched_files.sort(key=lambda p: p.relative_to(directory).as_posix())
    yield from matched_files


__all__ = ["ABL_SUFFIXES", "find_source_files"]
