from __future__ import annotations

from pathlib import Path

import pytest

from rules.config import ConfigError, load_config, load_config_file


def _write(path: Path, toml_content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(toml_content.strip() + "\n", encoding="utf-8")
    return path


def _values(entries) -> list[str]:
    return [entry.value for entry in entries]


def test_missing_config_is_default(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config.propath == ()
    assert config.dumpfile == ()
    assert config.completion_enabled
    assert config.diagnostics_enabled
    assert config.unknown_variables.enabled
    assert config.config_dirs == (tmp_path.resolve(),)


def test_unknown_top_level_key_rejected(tmp_path: Path) -> None:
    _write(tmp_path / "abl.toml", "bogus_key = true")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_unknown_rule_key_rejected(tmp_path: Path) -> None:
    _write(
        tmp_path / "abl.toml",
        """
[diagnostics.unknown_variables]
severity = "hint"
""",
    )

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_invalid_toml_rejected(tmp_path: Path) -> None:
    _write(tmp_path / "abl.toml", "propath = [")

    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(tmp_path)


def test_missing_parent_rejected(tmp_path: Path) -> None:
    _write(tmp_path / "abl.toml", 'inherits = "nowhere.toml"')

    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path)


def test_error_lists_every_file_read_before_failing(tmp_path: Path) -> None:
    root_config = _write(tmp_path / "abl.toml", 'inherits = ["ok.toml", "shared/broken.toml"]')
    ok = _write(tmp_path / "ok.toml", 'propath = ["ok"]')
    broken = _write(tmp_path / "shared" / "broken.toml", "propath = [")

    with pytest.raises(ConfigError, match="Invalid TOML") as excinfo:
        load_config(tmp_path)

    assert excinfo.value.paths == (
        root_config.resolve(),
        ok.resolve(),
        broken.resolve(),
    )


def test_string_accepted_for_list_keys(tmp_path: Path) -> None:
    _write(
        tmp_path / "abl.toml",
        """
propath = "src"
dumpfile = ["db/a.df", "db/b.df"]
""",
    )

    config = load_config(tmp_path)

    assert _values(config.propath) == ["src"]
    assert _values(config.dumpfile) == ["db/a.df", "db/b.df"]


def test_parent_lists_come_first(tmp_path: Path) -> None:
    _write(tmp_path / "parent.toml", 'propath = ["a"]')
    _write(
        tmp_path / "abl.toml",
        """
inherits = "parent.toml"
propath = ["b"]
""",
    )

    config = load_config(tmp_path)

    assert _values(config.propath) == ["a", "b"]


def test_inherits_list_processed_in_order(tmp_path: Path) -> None:
    _write(tmp_path / "one.toml", 'dumpfile = "one.df"')
    _write(tmp_path / "two.toml", 'dumpfile = "two.df"')
    _write(
        tmp_path / "abl.toml",
        """
inherits = ["one.toml", "two.toml"]
dumpfile = "own.df"
""",
    )

    config = load_config(tmp_path)

    assert _values(config.dumpfile) == ["one.df", "two.df", "own.df"]
    assert [p.name for p in config.sources] == ["one.toml", "two.toml", "abl.toml"]


def test_values_tagged_with_origin_directory(tmp_path: Path) -> None:
    shared = _write(tmp_path / "shared" / "base.toml", 'propath = ["inc"]')
    _write(
        tmp_path / "abl.toml",
        """
inherits = "shared/base.toml"
propath = ["src"]
""",
    )

    config = load_config(tmp_path)

    assert [entry.resolve() for entry in config.propath] == [
        shared.parent.resolve() / "inc",
        tmp_path.resolve() / "src",
    ]
    assert config.config_dirs == (shared.parent.resolve(), tmp_path.resolve())


def test_child_scalars_override_parent(tmp_path: Path) -> None:
    _write(
        tmp_path / "parent.toml",
        """
[completion]
enabled = false

[diagnostics.unknown_functions]
enabled = false
ignore = ["Foo"]
""",
    )
    _write(
        tmp_path / "abl.toml",
        """
inherits = "parent.toml"

[completion]
enabled = true
""",
    )

    config = load_config(tmp_path)

    assert config.completion_enabled
    assert not config.unknown_functions.enabled
    assert config.unknown_functions.ignore == frozenset({"foo"})


def test_child_ignore_list_replaces_parent(tmp_path: Path) -> None:
    _write(
        tmp_path / "parent.toml",
        """
[diagnostics.unknown_variables]
ignore = ["Foo"]
exclude = ["legacy/**"]
""",
    )
    _write(
        tmp_path / "abl.toml",
        """
inherits = "parent.toml"

[diagnostics.unknown_variables]
ignore = ["BAR"]
""",
    )

    config = load_config(tmp_path)

    assert config.unknown_variables.ignore == frozenset({"bar"})
    assert _values(config.unknown_variables.exclude) == ["legacy/**"]


def test_inheritance_cycle_rejected(tmp_path: Path) -> None:
    _write(tmp_path / "a.toml", 'inherits = "b.toml"')
    _write(tmp_path / "b.toml", 'inherits = "a.toml"')
    _write(tmp_path / "abl.toml", 'inherits = "a.toml"')

    with pytest.raises(ConfigError, match="cycle"):
        load_config(tmp_path)


def test_self_inheritance_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path / "abl.toml", 'inherits = "abl.toml"')

    with pytest.raises(ConfigError, match="cycle"):
        load_config_file(path)


def test_diamond_parent_merged_once(tmp_path: Path) -> None:
    _write(tmp_path / "base.toml", 'propath = ["base"]')
    _write(
        tmp_path / "left.toml",
        """
inherits = "base.toml"
propath = ["left"]
""",
    )
    _write(
        tmp_path / "right.toml",
        """
inherits = "base.toml"
propath = ["right"]
""",
    )
    _write(tmp_path / "abl.toml", 'inherits = ["left.toml", "right.toml"]')

    config = load_config(tmp_path)

    assert _values(config.propath) == ["base", "left", "right"]
    assert [p.name for p in config.sources] == [
        "base.toml",
        "left.toml",
        "right.toml",
        "abl.toml",
    ]
