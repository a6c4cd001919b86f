from __future__ import annotations

from syntax.lexer import TokenKind, tokenize
from syntax.parser import ABLParser, parse_source


def _types(source: str) -> list[str]:
    return [child.type for child in parse_source(source).root_node.children]


def test_lexer_distinguishes_dot_from_statement_period() -> None:
    kinds = [tok.kind for tok in tokenize("DISPLAY sports.Customer.Name.\n")]

    assert kinds == [
        TokenKind.IDENT,
        TokenKind.IDENT,
        TokenKind.DOT,
        TokenKind.IDENT,
        TokenKind.DOT,
        TokenKind.IDENT,
        TokenKind.PERIOD,
        TokenKind.EOF,
    ]


def test_lexer_trivia_and_brace_tokens() -> None:
    source = (
        "/* outer /* nested */ still comment */\n"
        "&GLOBAL-DEFINE MODE 1\n"
        "{inc/common.i &mode=2} {&MODE} // trailing\n"
    )

    tokens = tokenize(source)

    assert [tok.kind for tok in tokens] == [
        TokenKind.INCLUDE,
        TokenKind.PREPROC_REF,
        TokenKind.EOF,
    ]
    assert tokens[0].text == "{inc/common.i &mode=2}"


def test_definitions_and_abbreviations() -> None:
    source = (
        "DEF VAR cnt AS INT NO-UNDO.\n"
        "DEFINE INPUT PARAMETER p_name AS CHARACTER NO-UNDO.\n"
        "DEFINE BUFFER bCust FOR Customer.\n"
        "DEFINE TEMP-TABLE tt NO-UNDO FIELD f AS CHARACTER INDEX ix f.\n"
        "DEFINE QUERY q FOR Customer.\n"
    )

    assert _types(source) == [
        "variable_definition",
        "parameter_definition",
        "buffer_definition",
        "temp_table_definition",
        "definition",
    ]


def test_function_definition_fields() -> None:
    source = (
        "FUNCTION local_mul RETURNS INTEGER (INPUT p_a AS INTEGER, p_b AS INT):\n"
        "    RETURN p_a * p_b.\n"
        "END FUNCTION.\n"
    )

    tree = parse_source(source)
    function = tree.root_node.children[0]

    assert function.type == "function_definition"
    assert function.child_by_field_name("name").text == "local_mul"
    assert function.child_by_field_name("type").text == "INTEGER"
    params = function.child_by_field_name("parameters")
    assert [p.child_by_field_name("name").text for p in params.children] == ["p_a", "p_b"]
    assert params.children[0].child_by_field_name("mode").text == "INPUT"
    assert params.children[1].child_by_field_name("type").text == "INT"
    assert function.child_by_field_name("body") is not None
    assert not tree.errors()


def test_forward_declaration() -> None:
    assert _types("FUNCTION f RETURNS LOGICAL (INPUT a AS CHARACTER) FORWARD.\n") == [
        "function_forward_definition"
    ]


def test_calls_and_dotted_names() -> None:
    tree = parse_source("x = f(1, \"a\", g(y)) + sports.Customer.CustNum.\n")

    types = [node.type for node in tree.root_node.walk()]

    assert types.count("function_call") == 2
    assert "qualified_name" in types
    assert not tree.errors()


def test_missing_period_before_next_statement() -> None:
    tree = parse_source("x = 1\nDISPLAY x.\n")

    errors = tree.errors()

    assert len(errors) == 1
    assert errors[0].is_missing
    assert errors[0].type == "."
    assert errors[0].start_point == (0, 5)


def test_unexpected_tokens_wrapped_in_error() -> None:
    tree = parse_source("x = 1 2.\nDISPLAY x.\n")

    errors = tree.errors()

    assert [node.is_error for node in errors] == [True]
    assert errors[0].text == "2"
    assert tree.root_node.children[-1].type == "statement"


def test_unclosed_call_and_block() -> None:
    tree = parse_source("DO:\n    x = f(1.\n")

    missing = [node.type for node in tree.errors() if node.is_missing]

    assert ")" in missing
    assert "END" in missing


def test_parser_never_raises_on_garbage() -> None:
    tree = parse_source(')) ((( END. "unterminated')

    assert tree.root_node.has_error
    assert tree.root_node.end == len(')) ((( END. "unterminated')


def test_parser_counts_parses() -> None:
    parser = ABLParser()

    parser.parse("x = 1.")
    parser.parse("y = 2.")

    assert parser.parse_count == 2


def test_descendant_for_offset_and_line_index() -> None:
    source = "DEFINE VARIABLE x AS INTEGER.\nx = 10.\n"
    tree = parse_source(source)

    node = tree.root_node.descendant_for_offset(source.index("10"))

    assert node.type == "number_literal"
    assert node.start_point == (1, 4)
    assert tree.line_index.offset(1, 99) == len(source) - 1
    assert tree.line_index.offset(5, 0) is None


def test_deep_parentheses_collapse_into_one_error() -> None:
    depth = 500
    source = (
        "x = " + "(" * depth + "1" + ")" * depth + ".\n"
        "DEFINE VARIABLE y AS INTEGER.\n"
    )

    tree = parse_source(source)

    assert [node.is_error for node in tree.errors()] == [True]
    assert _types(source) == ["assignment_statement", "variable_definition"]


def test_deep_blocks_collapse_into_one_error() -> None:
    depth = 500
    source = "DO:\n" * depth + "x = 1.\n" + "END.\n" * depth + "DEFINE VARIABLE y AS INTEGER.\n"

    tree = parse_source(source)

    assert [node.is_error for node in tree.errors()] == [True]
    assert _types(source) == ["block_statement", "variable_definition"]


def test_nested_calls_past_the_cap_still_parse() -> None:
    depth = 300
    source = "x = " + "f(" * depth + "1" + ")" * depth + ".\nDISPLAY x.\n"

    tree = parse_source(source)

    assert tree.root_node.has_error
    assert _types(source) == ["assignment_statement", "statement"]


def test_long_else_if_chain_is_not_capped() -> None:
    branches = "".join(f"ELSE IF x = {i} THEN y = {i}.\n" for i in range(1, 2000))
    source = "IF x = 0 THEN y = 0.\n" + branches + "ELSE y = -1.\n"

    tree = parse_source(source)

    assert not tree.errors()
    node = tree.root_node.children[0]
    chain = 0
    while node.type == "if_statement":
        chain += 1
        node = node.child_by_field_name("alternative")
    assert chain == 2000
    assert node.type == "assignment_statement"
