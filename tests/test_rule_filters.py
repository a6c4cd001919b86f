from __future__ import annotations

from pathlib import Path

from rules.config import OriginPath, RuleConfig
from rules.filters import is_suppressed, path_matches_pattern


def test_disabled_rule_suppresses_everything(tmp_path: Path) -> None:
    rule = RuleConfig(enabled=False)

    assert is_suppressed(rule, "anything", tmp_path / "main.p")


def test_ignore_list_is_case_insensitive(tmp_path: Path) -> None:
    rule = RuleConfig(ignore=frozenset({"ext_lookup"}))

    assert is_suppressed(rule, "EXT_LOOKUP", tmp_path / "main.p")
    assert not is_suppressed(rule, "other", tmp_path / "main.p")


def test_exclude_glob_relative_to_origin(tmp_path: Path) -> None:
    rule = RuleConfig(exclude=(OriginPath("legacy/**", tmp_path),))

    assert is_suppressed(rule, "x", tmp_path / "legacy" / "old" / "report.p")
    assert not is_suppressed(rule, "x", tmp_path / "src" / "report.p")


def test_pattern_without_wildcards_matches_directory_prefix(tmp_path: Path) -> None:
    pattern = OriginPath("legacy", tmp_path)

    assert path_matches_pattern(tmp_path / "legacy" / "a.p", pattern)
    assert not path_matches_pattern(tmp_path / "legacy2" / "a.p", pattern)


def test_pattern_matches_basename_and_ignores_case(tmp_path: Path) -> None:
    pattern = OriginPath("*.I", tmp_path / "config")

    assert path_matches_pattern(tmp_path / "src" / "common.i", pattern)
    assert not path_matches_pattern(tmp_path / "src" / "main.p", pattern)
