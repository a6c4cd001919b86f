from __future__ import annotations

from pathlib import Path

from contract.models import Diagnostic
from workspace.state import Workspace

LOCAL_MUL = """\
FUNCTION local_mul RETURNS INTEGER (p_a AS INTEGER, p_b AS INTEGER):
    RETURN p_a * p_b.
END FUNCTION.

DEFINE VARIABLE x AS INTEGER NO-UNDO.
"""


def _diagnostics(
    tmp_path: Path,
    text: str,
    *,
    config: str | None = None,
    name: str = "main.p",
) -> list[Diagnostic]:
    if config is not None:
        (tmp_path / "abl.toml").write_text(config.strip() + "\n", encoding="utf-8")
    workspace = Workspace(tmp_path)
    return list(workspace.open_document(tmp_path / name, text).diagnostics)


def _codes(diagnostics: list[Diagnostic]) -> list[str | None]:
    return [d.code for d in diagnostics]


def test_arity_mismatch_is_reported_on_the_call_name(tmp_path: Path) -> None:
    diagnostics = _diagnostics(tmp_path, LOCAL_MUL + "x = local_mul(x).\n")

    assert _codes(diagnostics) == ["arity"]
    diag = diagnostics[0]
    assert diag.message == "Function 'local_mul' expects 2 argument(s), got 1"
    assert diag.severity == "error"
    assert diag.source == "abl-semantic"
    assert (diag.span.start.line, diag.span.start.character) == (5, 4)
    assert (diag.span.end.line, diag.span.end.character) == (5, 13)


def test_matching_call_is_clean(tmp_path: Path) -> None:
    assert _diagnostics(tmp_path, LOCAL_MUL + "x = local_mul(x, 2).\n") == []


def test_too_many_arguments(tmp_path: Path) -> None:
    diagnostics = _diagnostics(tmp_path, LOCAL_MUL + "x = local_mul(x, 2, 3).\n")

    assert _codes(diagnostics) == ["arity"]
    assert diagnostics[0].message.endswith("got 3")


def test_argument_type_mismatch(tmp_path: Path) -> None:
    diagnostics = _diagnostics(tmp_path, LOCAL_MUL + 'x = local_mul("5", 1).\n')

    assert _codes(diagnostics) == ["type_mismatch"]
    assert diagnostics[0].message == (
        "Function 'local_mul' argument 1 expects NUMERIC, got CHARACTER"
    )
    assert diagnostics[0].span.start.character == 14


def test_unknown_function(tmp_path: Path) -> None:
    text = "DEFINE VARIABLE x AS INTEGER NO-UNDO.\nx = mystery_fn(x).\n"

    diagnostics = _diagnostics(tmp_path, text)

    assert _codes(diagnostics) == ["unknown_function"]
    assert diagnostics[0].message == "Unknown function 'mystery_fn'"


def test_unknown_function_ignore_list_is_case_insensitive(tmp_path: Path) -> None:
    text = "DEFINE VARIABLE x AS INTEGER NO-UNDO.\nx = mystery_fn(x).\n"
    config = """
[diagnostics.unknown_functions]
ignore = ["MYSTERY_FN"]
"""

    assert _diagnostics(tmp_path, text, config=config) == []


def test_call_before_function_definition_is_unknown(tmp_path: Path) -> None:
    text = (
        "DEFINE VARIABLE x AS INTEGER NO-UNDO.\n"
        "x = later_fn(x).\n"
        "FUNCTION later_fn RETURNS INTEGER (p AS INTEGER):\n"
        "    RETURN p.\n"
        "END FUNCTION.\n"
    )

    diagnostics = _diagnostics(tmp_path, text)

    assert _codes(diagnostics) == ["unknown_function"]


def test_unknown_variable(tmp_path: Path) -> None:
    text = "DEFINE VARIABLE x AS INTEGER NO-UNDO.\nx = y + 1.\n"

    diagnostics = _diagnostics(tmp_path, text)

    assert _codes(diagnostics) == ["unknown_variable"]
    assert diagnostics[0].message == "Unknown variable 'y'"
    assert (diagnostics[0].span.start.line, diagnostics[0].span.start.character) == (1, 4)


def test_unknown_variable_exclude_glob(tmp_path: Path) -> None:
    text = "DEFINE VARIABLE x AS INTEGER NO-UNDO.\nx = y + 1.\n"
    config = """
[diagnostics.unknown_variables]
exclude = ["legacy/*.p"]
"""
    (tmp_path / "abl.toml").write_text(config.strip() + "\n", encoding="utf-8")
    workspace = Workspace(tmp_path)

    excluded = workspace.open_document(tmp_path / "legacy" / "old.p", text)
    checked = workspace.open_document(tmp_path / "main.p", text)

    assert excluded.diagnostics == ()
    assert _codes(list(checked.diagnostics)) == ["unknown_variable"]


def test_disabled_rule_reports_nothing(tmp_path: Path) -> None:
    text = "DEFINE VARIABLE x AS INTEGER NO-UNDO.\nx = y + 1.\n"
    config = """
[diagnostics.unknown_variables]
enabled = false
"""

    assert _diagnostics(tmp_path, text, config=config) == []


def test_builtins_are_never_unknown(tmp_path: Path) -> None:
    text = (
        "DEFINE VARIABLE n AS INTEGER NO-UNDO.\n"
        "DEFINE VARIABLE d AS DATE NO-UNDO.\n"
        'n = NUM-ENTRIES("a,b", ",").\n'
        "d = TODAY.\n"
        "n = num-entries(STRING(n), \",\").\n"
    )

    assert _diagnostics(tmp_path, text) == []


def test_parameters_resolve_inside_function_body(tmp_path: Path) -> None:
    assert _diagnostics(tmp_path, LOCAL_MUL) == []


def test_assignment_type_mismatch(tmp_path: Path) -> None:
    text = (
        "DEFINE VARIABLE c AS CHARACTER NO-UNDO.\n"
        'c = "ok".\n'
        "c = 42.\n"
    )

    diagnostics = _diagnostics(tmp_path, text)

    assert _codes(diagnostics) == ["type_mismatch"]
    assert diagnostics[0].message == (
        "Type mismatch: cannot assign NUMERIC to CHARACTER variable 'c'"
    )
    assert diagnostics[0].span.start.line == 2


def test_missing_period_is_a_syntax_error(tmp_path: Path) -> None:
    text = "DEFINE VARIABLE x AS INTEGER NO-UNDO.\nx = 1\nDISPLAY x.\n"

    diagnostics = _diagnostics(tmp_path, text)

    assert _codes(diagnostics) == ["syntax"]
    assert diagnostics[0].message == "Missing ."
    assert diagnostics[0].source == "abl-syntax"
    assert (diagnostics[0].span.start.line, diagnostics[0].span.start.character) == (1, 5)


def test_disabled_diagnostics_keep_syntax_errors(tmp_path: Path) -> None:
    text = "DEFINE VARIABLE x AS INTEGER NO-UNDO.\nx = mystery_fn(y)\nDISPLAY x.\n"
    config = """
[diagnostics]
enabled = false
"""

    enabled = _diagnostics(tmp_path, text)
    disabled = _diagnostics(tmp_path, text, config=config)

    assert sorted(_codes(enabled)) == ["syntax", "unknown_function", "unknown_variable"]
    assert _codes(disabled) == ["syntax"]
    assert disabled[0].message == "Missing ."


def test_unresolved_include_is_a_warning(tmp_path: Path) -> None:
    diagnostics = _diagnostics(tmp_path, "{missing.i}\nDISPLAY 1.\n")

    assert _codes(diagnostics) == ["include"]
    assert diagnostics[0].severity == "warning"
    assert diagnostics[0].message == "Cannot resolve include 'missing.i'"
    assert diagnostics[0].span.start.line == 0


def test_included_function_is_checked(tmp_path: Path) -> None:
    (tmp_path / "mul.i").write_text(
        "FUNCTION inc_mul RETURNS INTEGER (p_a AS INTEGER, p_b AS INTEGER):\n"
        "    RETURN p_a * p_b.\n"
        "END FUNCTION.\n",
        encoding="utf-8",
    )
    text = "{mul.i}\nDEFINE VARIABLE x AS INTEGER NO-UNDO.\nx = inc_mul(x).\nx = p_a.\n"

    diagnostics = _diagnostics(tmp_path, text)

    assert _codes(diagnostics) == ["arity", "unknown_variable"]
    assert diagnostics[1].message == "Unknown variable 'p_a'"


def test_diagnostics_are_sorted_by_position(tmp_path: Path) -> None:
    text = (
        "DEFINE VARIABLE c AS CHARACTER NO-UNDO.\n"
        "c = 1.\n"
        "c = nope_fn(zz).\n"
        "{missing.i}\n"
        "c = 2\n"
    )

    diagnostics = _diagnostics(tmp_path, text)

    assert diagnostics == sorted(diagnostics, key=Diagnostic.sort_key)
    assert [d.span.start.line for d in diagnostics] == sorted(
        d.span.start.line for d in diagnostics
    )
    assert {"type_mismatch", "unknown_function", "unknown_variable", "include", "syntax"} <= set(
        _codes(diagnostics)
    )


def test_header_parameters_before_returns(tmp_path: Path) -> None:
    header = (
        "FUNCTION local_mul(p_a INT, p_b INT) RETURNS INT:\n"
        "    RETURN p_a * p_b.\n"
        "END FUNCTION.\n"
        "DEFINE VARIABLE x AS INTEGER NO-UNDO.\n"
    )

    assert _codes(_diagnostics(tmp_path, header + "x = local_mul(x).\n")) == ["arity"]
    assert _diagnostics(tmp_path, header + "x = local_mul(x, 2).\n") == []
    assert _codes(_diagnostics(tmp_path, header + 'x = local_mul("5", 1).\n')) == [
        "type_mismatch"
    ]
