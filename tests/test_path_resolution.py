from __future__ import annotations

from pathlib import Path

from rules.config import load_config
from scan.paths import normalize_token, resolve_dumpfiles, resolve_include


def _touch(path: Path, content: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path.resolve()


def test_normalize_token_strips_quotes_and_backslashes() -> None:
    assert normalize_token(' "inc\\common.i" ') == "inc/common.i"
    assert normalize_token("'x.i'") == "x.i"
    assert normalize_token("plain.i") == "plain.i"


def test_propath_entries_tried_in_order(tmp_path: Path) -> None:
    (tmp_path / "abl.toml").write_text('propath = ["first", "second"]\n', encoding="utf-8")
    _touch(tmp_path / "second" / "common.i")
    expected = _touch(tmp_path / "first" / "common.i")

    config = load_config(tmp_path)

    assert resolve_include("common.i", config) == expected


def test_absolute_token_wins_over_propath(tmp_path: Path) -> None:
    (tmp_path / "abl.toml").write_text('propath = ["inc"]\n', encoding="utf-8")
    _touch(tmp_path / "inc" / "common.i")
    absolute = _touch(tmp_path / "elsewhere" / "common.i")

    config = load_config(tmp_path)

    assert resolve_include(absolute.as_posix(), config) == absolute


def test_config_directory_after_propath(tmp_path: Path) -> None:
    (tmp_path / "abl.toml").write_text('propath = ["inc"]\n', encoding="utf-8")
    expected = _touch(tmp_path / "root_only.i")

    config = load_config(tmp_path)

    assert resolve_include("root_only.i", config) == expected


def test_requesting_file_directory_is_last_resort(tmp_path: Path) -> None:
    requester = _touch(tmp_path / "app" / "main.p")
    sibling = _touch(tmp_path / "app" / "local.i")

    config = load_config(tmp_path)

    assert resolve_include("local.i", config) is None
    assert resolve_include("local.i", config, requester) == sibling


def test_directories_never_match(tmp_path: Path) -> None:
    (tmp_path / "dir.i").mkdir()

    config = load_config(tmp_path)

    assert resolve_include("dir.i", config) is None


def test_resolve_dumpfiles_reports_missing(tmp_path: Path) -> None:
    (tmp_path / "abl.toml").write_text(
        'dumpfile = ["db/sports.df", "db/gone.df", "db/sports.df"]\n',
        encoding="utf-8",
    )
    dump = _touch(tmp_path / "db" / "sports.df")

    config = load_config(tmp_path)
    found, missing = resolve_dumpfiles(config)

    assert found == [dump]
    assert [entry.value for entry in missing] == ["db/gone.df"]


def test_dumpfile_found_through_propath(tmp_path: Path) -> None:
    (tmp_path / "abl.toml").write_text(
        'propath = ["schema"]\ndumpfile = "sports.df"\n', encoding="utf-8"
    )
    dump = _touch(tmp_path / "schema" / "sports.df")

    found, missing = resolve_dumpfiles(load_config(tmp_path))

    assert found == [dump]
    assert missing == []
