from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from scan.files import find_source_files

if TYPE_CHECKING:
    from pathlib import Path


def _touch(path: Path, content: str = "DISPLAY 1.\n") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _found(root: Path, **kwargs) -> list[str]:
    return [path.relative_to(root).as_posix() for path in find_source_files(root, **kwargs)]


def test_only_abl_sources_sorted(tmp_path: Path) -> None:
    _touch(tmp_path / "src" / "order.p")
    _touch(tmp_path / "inc" / "common.i")
    _touch(tmp_path / "ui" / "main.W")
    _touch(tmp_path / "cls" / "Thing.cls")
    _touch(tmp_path / "db" / "sports.df")
    _touch(tmp_path / "README.md")

    assert _found(tmp_path) == ["cls/Thing.cls", "inc/common.i", "src/order.p", "ui/main.W"]


def test_gitignored_sources_skipped(tmp_path: Path) -> None:
    _touch(tmp_path / "src" / "order.p")
    _touch(tmp_path / "build" / "gen.p")
    _touch(tmp_path / "src" / "scratch.p")
    (tmp_path / ".gitignore").write_text("build/\n", encoding="utf-8")
    (tmp_path / "src" / ".gitignore").write_text("scratch.p\n", encoding="utf-8")

    assert _found(tmp_path) == ["src/order.p"]


def test_exclude_patterns(tmp_path: Path) -> None:
    _touch(tmp_path / "src" / "order.p")
    _touch(tmp_path / "legacy" / "old.p")

    assert _found(tmp_path, exclude_patterns=["legacy/*"]) == ["src/order.p"]


@pytest.mark.skipif(
    os.name == "nt",
    reason="Symlink semantics vary on Windows test runners.",
)
def test_symlinked_dirs_do_not_leak(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _touch(repo_root / "src" / "order.p")
    external_root = tmp_path / "external"
    _touch(external_root / "leak.p")
    (repo_root / "linked").symlink_to(external_root, target_is_directory=True)
    (repo_root / "alias.p").symlink_to(repo_root / "src" / "order.p")

    results = _found(repo_root)

    assert "src/order.p" in results
    assert "linked/leak.p" not in results
    assert "alias.p" not in results
