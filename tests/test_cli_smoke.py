from __future__ import annotations

import shutil
from pathlib import Path

import orjson
import pytest

from cli import main

FIXTURE_REPO = Path(__file__).parent / "fixtures" / "sports_repo"


def _copy_fixture(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    shutil.copytree(FIXTURE_REPO, root)
    return root


def test_check_reports_arity_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _copy_fixture(tmp_path)

    exit_code = main(["check", "--root", str(root)])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert captured.out.splitlines() == [
        "order.p:7:5: error: Function 'inc_add' expects 2 argument(s), got 1 [abl-semantic]"
    ]
    assert captured.err == ""


def test_check_single_clean_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _copy_fixture(tmp_path)

    exit_code = main(["check", "--root", str(root), str(root / "inc" / "common.i")])

    assert exit_code == 0
    assert capsys.readouterr().out == ""


def test_check_json_lists_every_source(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _copy_fixture(tmp_path)

    exit_code = main(["--json", "check", "--root", str(root)])

    report = orjson.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert [entry["path"] for entry in report] == ["inc/common.i", "order.p"]
    assert report[0]["diagnostics"] == []
    (diag,) = report[1]["diagnostics"]
    assert diag["code"] == "arity"
    assert diag["span"]["start"] == {"line": 6, "character": 4}


def test_check_reports_config_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _copy_fixture(tmp_path)
    (root / "abl.toml").write_text("propath = [\n", encoding="utf-8")

    main(["check", "--root", str(root)])

    assert "config: Invalid TOML" in capsys.readouterr().err


def test_definition_of_schema_field(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _copy_fixture(tmp_path)
    order = root / "order.p"

    exit_code = main(["--json", "definition", "--root", str(root), str(order), "9", "15"])

    location = orjson.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert location["path"].endswith("db/sports.df")
    assert location["span"]["start"]["line"] == 12


def test_definition_plain_output(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _copy_fixture(tmp_path)
    order = root / "order.p"

    exit_code = main(["definition", "--root", str(root), str(order), "6", "7"])

    assert exit_code == 0
    assert capsys.readouterr().out == "inc/common.i:2:10\n"


def test_definition_not_found(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _copy_fixture(tmp_path)

    exit_code = main(["definition", "--root", str(root), str(root / "order.p"), "2", "1"])

    assert exit_code == 1
    assert "no definition found" in capsys.readouterr().err


def test_hover_on_included_function(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _copy_fixture(tmp_path)

    exit_code = main(["hover", "--root", str(root), str(root / "order.p"), "6", "7"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "inc_add(INPUT p_a: INTEGER, INPUT p_b: INTEGER) RETURNS INTEGER" in out
    assert "common.i" in out


def test_complete_buffer_fields(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _copy_fixture(tmp_path)

    exit_code = main(["complete", "--root", str(root), str(root / "order.p"), "9", "15"])

    labels = [line.split("\t")[0] for line in capsys.readouterr().out.splitlines()]
    assert exit_code == 0
    assert labels == ["CustNum", "Name"]


def test_includes_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _copy_fixture(tmp_path)

    exit_code = main(["--json", "includes", "--root", str(root), str(root / "order.p")])

    graph = orjson.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert graph == {
        "root": "order.p",
        "includes": [{"path": "inc/common.i", "token": "common.i", "from": "order.p"}],
        "unresolved": [],
        "cycles": [],
    }


def test_schema_listing(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _copy_fixture(tmp_path)

    exit_code = main(["--json", "schema", "--root", str(root)])

    schema = orjson.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert [table["name"] for table in schema["tables"]] == ["Customer", "Z9ZW_MSTR"]
    assert schema["tables"][0]["fields"] == ["CustNum", "Name"]
    assert schema["files"] == ["db/sports.df"]
    assert schema["errors"] == {}


def test_config_failure_is_logged_as_json(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _copy_fixture(tmp_path)
    (root / "abl.toml").write_text("bogus = 1\n", encoding="utf-8")

    main(["--log-json", "schema", "--root", str(root)])

    records = [
        orjson.loads(line)
        for line in capsys.readouterr().err.splitlines()
        if line.startswith("{")
    ]
    assert [record["event"] for record in records] == ["config_load_failed"]
    assert records[0]["level"] == "warning"
    assert records[0]["root"] == root.resolve().as_posix()
