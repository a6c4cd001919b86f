"""Tolerant recursive-descent parser for ABL.

The parser never raises. Unexpected tokens are wrapped in ``ERROR`` nodes and
tokens that should be present but are not (statement period, closing
parenthesis, ``END``) are represented by zero-width ``MISSING`` nodes whose
``type`` is the expected token.

Nesting (blocks, parentheses, calls, nested conditions) is capped at
``MAX_NESTING``; anything deeper is skipped iteratively into one ``ERROR``
node so pathological input cannot exhaust the interpreter stack. ``ELSE IF``
chains are read in a loop and do not count towards the cap.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from syntax import keywords as kw
from syntax.lexer import Token, TokenKind, tokenize
from syntax.tree import Node, Tree

if TYPE_CHECKING:
    from collections.abc import Callable

_K = TokenKind

_LEAF_KINDS = {
    _K.NUMBER: "number_literal",
    _K.STRING: "string_literal",
    _K.UNKNOWN: "unknown_literal",
    _K.INCLUDE: "include",
    _K.PREPROC_REF: "preprocessor_reference",
}

_BINARY_LEVELS: tuple[frozenset[str], ...] = (
    frozenset({"OR"}),
    frozenset({"AND"}),
    kw.COMPARISON_KEYWORDS | kw.COMPARISON_OPERATORS,
    frozenset({"+", "-"}),
    frozenset({"*", "/", "MODULO"}),
)
_COMPARISON_LEVEL = 2

_BLOCK_WORDS = frozenset({"DO", "FOR", "REPEAT"})
_EXPRESSION_KEYWORDS = frozenset({"NOT", "IF"})
_INDEX_WORDS = frozenset(
    {"IS", "PRIMARY", "UNIQUE", "WORD-INDEX", "ASCENDING", "DESCENDING", "ASC", "DESC"}
)
_HANDLE_PARAMETERS = ("TABLE-HANDLE", "DATASET-HANDLE")

MAX_NESTING = 40


class _Parser:
    def __init__(self, source: str) -> None:
        self.source = source
        self._tokens = tokenize(source)
        self._pos = 0
        self._depth = 0

    def parse(self) -> Tree:
        children = self._statements(top_level=True)
        root = Node("source_code", 0, len(self.source), children)
        return Tree(self.source, root)

    # -- token helpers ------------------------------------------------------

    @property
    def _tok(self) -> Token:
        return self._tokens[self._pos]

    def _peek(self, ahead: int = 1) -> Token:
        return self._tokens[min(self._pos + ahead, len(self._tokens) - 1)]

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if tok.kind is not _K.EOF:
            self._pos += 1
        return tok

    def _last_end(self) -> int:
        return self._tokens[self._pos - 1].end if self._pos else 0

    def _at(self, *kinds: TokenKind) -> bool:
        return self._tok.kind in kinds

    def _at_word(self, *words: str) -> bool:
        tok = self._tok
        return tok.kind is _K.IDENT and any(kw.matches(tok.text, w) for w in words)

    def _at_op(self, op: str) -> bool:
        return self._tok.kind is _K.OP and self._tok.text == op

    def _on_new_line(self) -> bool:
        return "\n" in self.source[self._last_end() : self._tok.start]

    def _leaf(self, type: str) -> Node:
        tok = self._advance()
        return Node(type, tok.start, tok.end)

    def _missing(self, type: str) -> Node:
        end = self._last_end()
        return Node(type, end, end, is_missing=True)

    def _finish(
        self,
        type: str,
        start: int,
        children: list[Node],
        fields: dict[str, Node] | None = None,
    ) -> Node:
        return Node(type, start, max(start, self._last_end()), children, fields)

    def _name_leaf(self) -> Node:
        if self._at(_K.IDENT):
            return self._leaf("identifier")
        return self._missing("identifier")

    # -- nesting --------------------------------------------------------------

    def _nested(self, parse: Callable[[], Node], skip: Callable[[], Node]) -> Node:
        if self._depth >= MAX_NESTING:
            return skip()
        self._depth += 1
        node = parse()
        self._depth -= 1
        return node

    def _skip_nested(self) -> Node:
        """One balanced bracket group, or tokens up to an unmatched close, comma or period."""
        start = self._tok.start
        depth = 0
        while not self._at(_K.PERIOD, _K.EOF):
            kind = self._tok.kind
            if kind in (_K.LPAREN, _K.LBRACKET):
                depth += 1
            elif kind in (_K.RPAREN, _K.RBRACKET):
                if depth == 0:
                    break
                depth -= 1
                if depth == 0:
                    self._advance()
                    break
            elif kind is _K.COMMA and depth == 0:
                break
            self._advance()
        return Node("ERROR", start, max(start, self._last_end()), is_error=True)

    def _skip_block(self) -> Node:
        """A block body up to the ``END`` that closes it."""
        start = self._tok.start
        depth = 0
        at_start = True
        while not self._at(_K.EOF):
            tok = self._tok
            if (
                at_start
                and tok.kind is _K.IDENT
                and tok.upper not in kw.RESERVED
                and self._peek().kind is _K.COLON
                and self._peek(2).kind is _K.IDENT
                and self._peek(2).upper in _BLOCK_WORDS
            ):
                # block label
                self._advance()
                self._advance()
                continue
            if at_start and self._at_word("END"):
                if depth == 0:
                    break
                depth -= 1
            elif tok.kind is _K.COLON:
                depth += 1
            at_start = tok.kind in (_K.PERIOD, _K.COLON)
            self._advance()
        return Node("ERROR", start, max(start, self._last_end()), is_error=True)

    # -- statements ---------------------------------------------------------

    def _statements(self, *, top_level: bool) -> list[Node]:
        out: list[Node] = []
        while not self._at(_K.EOF):
            if self._at_word("END"):
                if not top_level:
                    break
                out.append(self._error_statement())
                continue
            mark = self._pos
            stmt = self._statement()
            if stmt is not None:
                out.append(stmt)
            if self._pos == mark:
                out.append(self._error_statement())
        return out

    def _statement(self) -> Node | None:
        tok = self._tok
        if tok.kind is _K.PERIOD:
            self._advance()
            return None
        if tok.kind is _K.INCLUDE:
            return self._leaf("include")
        if tok.kind is _K.PREPROC_REF:
            return self._generic()
        if tok.kind is not _K.IDENT:
            return self._error_statement()

        nxt = self._peek()
        word = tok.upper
        if (
            nxt.kind is _K.COLON
            and word not in kw.RESERVED
            and self._peek(2).kind is _K.IDENT
            and self._peek(2).upper in _BLOCK_WORDS
        ):
            # block label
            self._advance()
            self._advance()
            return self._statement()

        if nxt.kind is _K.OP and nxt.text == "=" and word not in kw.RESERVED:
            return self._assignment_statement()
        if kw.matches(word, "DEFINE"):
            return self._define()
        if word == "FUNCTION":
            return self._function()
        if kw.matches(word, "PROCEDURE"):
            return self._procedure()
        if word == "ASSIGN":
            return self._assign_statement()
        if word == "RETURN":
            return self._return()
        if word in ("IF", "WHEN"):
            return self._conditional()
        if word == "OTHERWISE":
            start = self._advance().start
            body = self._statement_or_missing()
            return self._finish("otherwise_clause", start, [body], {"consequence": body})
        if word in ("THEN", "ELSE"):
            return self._error_statement()
        if word == "RUN":
            return self._run()
        stmt = self._assignment_or_call()
        if stmt is not None:
            return stmt
        return self._generic()

    def _statement_or_missing(self) -> Node:
        if self._at(_K.EOF) or self._at_word("END"):
            return self._missing("statement")
        if self._at(_K.PERIOD):
            tok = self._advance()
            return Node("empty_statement", tok.start, tok.end)
        return self._statement() or self._missing("statement")

    def _end_statement(self, children: list[Node]) -> None:
        while self._at_word("NO-ERROR"):
            children.append(self._leaf("keyword"))
        if self._at(_K.PERIOD):
            self._advance()
            return
        if self._at(_K.EOF) or self._on_new_line():
            children.append(self._missing("."))
            return
        children.append(self._error_until(lambda tok: tok.kind is _K.PERIOD))
        if self._at(_K.PERIOD):
            self._advance()

    def _error_statement(self) -> Node:
        start = self._tok.start
        items: list[Node] = []
        first = self._run_item(stray_ok=True)
        if first is not None:
            items.append(first)
        while not self._at(_K.PERIOD, _K.EOF):
            item = self._run_item(stray_ok=True)
            if item is not None:
                items.append(item)
        node = Node("ERROR", start, max(start, self._last_end()), items, is_error=True)
        if self._at(_K.PERIOD):
            self._advance()
        return node

    def _error_until(self, stop: Callable[[Token], bool]) -> Node:
        start = self._tok.start
        items: list[Node] = []
        while not self._at(_K.EOF) and not stop(self._tok):
            item = self._run_item(stray_ok=True)
            if item is not None:
                items.append(item)
        return Node("ERROR", start, max(start, self._last_end()), items, is_error=True)

    def _generic(self) -> Node:
        start = self._tok.start
        children = self._token_run()
        if self._at(_K.COLON):
            self._advance()
            body = self._block()
            children.append(body)
            return self._finish("block_statement", start, children, {"body": body})
        self._end_statement(children)
        return self._finish("statement", start, children)

    def _block(self) -> Node:
        start = self._last_end()
        if self._depth >= MAX_NESTING:
            children = [self._skip_block()]
        else:
            self._depth += 1
            children = self._statements(top_level=False)
            self._depth -= 1
        if self._at_word("END"):
            self._advance()
            if (
                self._at(_K.IDENT)
                and not self._on_new_line()
                and not (self._peek().kind is _K.OP and self._peek().text == "=")
            ):
                self._advance()
            self._end_statement(children)
        else:
            children.append(self._missing("END"))
        return self._finish("body", start, children)

    def _assignment_statement(self) -> Node:
        start = self._tok.start
        left = self._postfix(self._primary())
        self._advance()
        right = self._expression()
        children = [left, right]
        self._end_statement(children)
        return self._finish(
            "assignment_statement", start, children, {"left": left, "right": right}
        )

    def _assignment_or_call(self) -> Node | None:
        tok = self._tok
        nxt = self._peek()
        if tok.upper in kw.RESERVED:
            return None
        if nxt.kind not in (_K.DOT, _K.OBJ_COLON, _K.LBRACKET, _K.LPAREN):
            return None
        if nxt.kind is _K.LPAREN and tok.upper in kw.NON_CALL_WORDS:
            return None
        mark = self._pos
        left = self._postfix(self._primary())
        if self._at_op("="):
            self._advance()
            right = self._expression()
            children = [left, right]
            self._end_statement(children)
            return self._finish(
                "assignment_statement",
                tok.start,
                children,
                {"left": left, "right": right},
            )
        if left.type in ("function_call", "object_access"):
            children = [left]
            self._end_statement(children)
            return self._finish(
                "expression_statement", tok.start, children, {"expression": left}
            )
        self._pos = mark
        return None

    def _assign_statement(self) -> Node:
        start = self._advance().start
        children: list[Node] = []
        while not self._at(_K.PERIOD, _K.EOF):
            if self._at_word("NO-ERROR"):
                break
            tok = self._tok
            if tok.kind is _K.IDENT and tok.upper not in kw.RESERVED:
                left = self._postfix(self._primary())
                if self._at_op("="):
                    self._advance()
                    right = self._expression()
                    children.append(
                        Node(
                            "assignment",
                            left.start,
                            max(left.end, right.end),
                            [left, right],
                            {"left": left, "right": right},
                        )
                    )
                else:
                    children.append(left)
            elif tok.kind is _K.IDENT and self._on_new_line():
                break
            else:
                item = self._run_item()
                if item is not None:
                    children.append(item)
        self._end_statement(children)
        return self._finish("assign_statement", start, children)

    def _return(self) -> Node:
        start = self._advance().start
        children: list[Node] = []
        fields: dict[str, Node] = {}
        if self._at_word("ERROR", "NO-APPLY"):
            children.append(self._leaf("keyword"))
        if self._starts_expression():
            value = self._expression()
            children.append(value)
            fields["value"] = value
        self._end_statement(children)
        return self._finish("return_statement", start, children, fields)

    def _conditional(self) -> Node:
        heads: list[tuple[int, list[Node], dict[str, Node]]] = []
        alternative: Node | None = None
        while True:
            start = self._advance().start
            condition_start = self._tok.start
            parts = self._token_run(lambda tok: tok.kind is _K.IDENT and tok.upper == "THEN")
            condition = self._finish("condition", condition_start, parts)
            children = [condition]
            fields = {"condition": condition}
            heads.append((start, children, fields))
            if not self._at_word("THEN"):
                children.append(self._missing("THEN"))
                if self._at(_K.PERIOD):
                    self._advance()
                break
            self._advance()
            consequence = self._nested(self._statement_or_missing, self._error_statement)
            children.append(consequence)
            fields["consequence"] = consequence
            if not self._at_word("ELSE"):
                break
            self._advance()
            if self._at(_K.IDENT) and self._tok.upper == "IF":
                continue
            alternative = self._statement_or_missing()
            break

        # ELSE IF: each later head is the alternative of the one before
        node = alternative
        for start, children, fields in reversed(heads):
            if node is not None:
                children.append(node)
                fields["alternative"] = node
            node = self._finish("if_statement", start, children, fields)
        return node

    def _run(self) -> Node:
        start = self._advance().start
        children: list[Node] = []
        fields: dict[str, Node] = {}
        if self._at(_K.IDENT, _K.STRING, _K.PREPROC_REF, _K.INCLUDE):
            target_start = self._tok.start
            self._advance()
            while (
                self._tok.start == self._last_end()
                and not self._at(_K.LPAREN, _K.PERIOD, _K.EOF, _K.COLON)
            ):
                self._advance()
            target = Node("procedure_name", target_start, self._last_end())
            children.append(target)
            fields["procedure"] = target
        children.extend(self._token_run())
        self._end_statement(children)
        return self._finish("run_statement", start, children, fields)

    # -- DEFINE -------------------------------------------------------------

    def _define(self) -> Node:
        start = self._advance().start
        mode_tok: Token | None = None
        while self._at(_K.IDENT):
            word = self._tok.upper
            if word in kw.DEFINE_MODIFIERS:
                self._advance()
            elif word in kw.PARAMETER_MODES:
                mode_tok = self._advance()
            else:
                break
        if self._at_word("VARIABLE"):
            self._advance()
            return self._define_variable(start)
        if self._at_word("PARAMETER"):
            self._advance()
            return self._define_parameter(start, mode_tok)
        if self._at_word("BUFFER"):
            self._advance()
            return self._define_buffer(start)
        if self._at_word("TEMP-TABLE", "WORK-TABLE", "WORKFILE"):
            self._advance()
            return self._define_temp_table(start)
        return self._define_other(start)

    def _definition_options(
        self,
        children: list[Node],
        fields: dict[str, Node],
        stop: frozenset[str] = frozenset(),
    ) -> None:
        while not self._at(_K.PERIOD, _K.EOF):
            if self._tok.kind is _K.IDENT and self._tok.upper in stop:
                return
            if self._at_word("AS"):
                self._advance()
                if self._at_word("CLASS"):
                    self._advance()
                type_node = self._type_name()
                fields.setdefault("type", type_node)
                children.append(type_node)
            elif self._at_word("LIKE"):
                self._advance()
                like = self._name() if self._at(_K.IDENT) else self._missing("identifier")
                fields.setdefault("like", like)
                children.append(like)
            else:
                item = self._run_item()
                if item is not None:
                    children.append(item)

    def _type_name(self) -> Node:
        if not self._at(_K.IDENT, _K.PREPROC_REF):
            return self._missing("type")
        start = self._advance().start
        while self._at(_K.DOT) and self._peek().kind is _K.IDENT:
            self._advance()
            self._advance()
        return Node("type_name", start, self._last_end())

    def _define_variable(self, start: int) -> Node:
        name = self._name_leaf()
        children = [name]
        fields = {"name": name}
        self._definition_options(children, fields)
        self._end_statement(children)
        return self._finish("variable_definition", start, children, fields)

    def _define_parameter(self, start: int, mode_tok: Token | None) -> Node:
        children: list[Node] = []
        fields: dict[str, Node] = {}
        if mode_tok is not None:
            mode = Node("parameter_mode", mode_tok.start, mode_tok.end)
            children.append(mode)
            fields["mode"] = mode
        if self._at_word("BUFFER"):
            self._advance()
            self._buffer_target(children, fields)
            self._definition_options(children, fields)
            self._end_statement(children)
            return self._finish("buffer_definition", start, children, fields)
        if self._at_word("TABLE", "DATASET") and self._peek().upper == "FOR":
            self._advance()
            self._advance()
            table = self._name_leaf()
            children.append(table)
            fields["table"] = table
            self._definition_options(children, fields)
            self._end_statement(children)
            return self._finish("table_parameter_definition", start, children, fields)
        if self._at_word(*_HANDLE_PARAMETERS):
            type_node = self._leaf("type_name")
            children.append(type_node)
            fields["type"] = type_node
        name = self._name_leaf()
        children.append(name)
        fields["name"] = name
        self._definition_options(children, fields)
        self._end_statement(children)
        return self._finish("parameter_definition", start, children, fields)

    def _buffer_target(self, children: list[Node], fields: dict[str, Node]) -> None:
        name = self._name_leaf()
        children.append(name)
        fields["name"] = name
        if not self._at_word("FOR"):
            children.append(self._missing("FOR"))
            return
        self._advance()
        if self._at_word("TEMP-TABLE"):
            self._advance()
        table = self._name() if self._at(_K.IDENT) else self._missing("identifier")
        children.append(table)
        fields["table"] = table

    def _define_buffer(self, start: int) -> Node:
        children: list[Node] = []
        fields: dict[str, Node] = {}
        self._buffer_target(children, fields)
        self._definition_options(children, fields)
        self._end_statement(children)
        return self._finish("buffer_definition", start, children, fields)

    def _define_temp_table(self, start: int) -> Node:
        name = self._name_leaf()
        children = [name]
        fields = {"name": name}
        while not self._at(_K.PERIOD, _K.EOF):
            if self._at_word("FIELD", "FIELDS"):
                children.append(self._field_clause())
            elif self._at_word("INDEX"):
                children.append(self._index_clause())
            elif self._at_word("LIKE", "LIKE-SEQUENTIAL"):
                self._advance()
                like = self._name() if self._at(_K.IDENT) else self._missing("identifier")
                fields.setdefault("like", like)
                children.append(like)
            else:
                item = self._run_item()
                if item is not None:
                    children.append(item)
        self._end_statement(children)
        return self._finish("temp_table_definition", start, children, fields)

    def _field_clause(self) -> Node:
        start = self._advance().start
        name = self._name_leaf()
        children = [name]
        fields = {"name": name}
        self._definition_options(children, fields, kw.TEMP_TABLE_CLAUSES)
        return self._finish("field_definition", start, children, fields)

    def _index_clause(self) -> Node:
        start = self._advance().start
        name = self._name_leaf()
        children = [name]
        while not self._at(_K.PERIOD, _K.EOF):
            tok = self._tok
            if tok.kind is _K.IDENT and tok.upper in kw.TEMP_TABLE_CLAUSES:
                break
            if tok.kind is _K.IDENT and tok.upper in _INDEX_WORDS:
                self._advance()
            elif tok.kind is _K.IDENT:
                children.append(self._leaf("index_field"))
            else:
                item = self._run_item()
                if item is not None:
                    children.append(item)
        return self._finish("index_definition", start, children, {"name": name})

    def _define_other(self, start: int) -> Node:
        children: list[Node] = []
        fields: dict[str, Node] = {}
        if self._at(_K.IDENT):
            kind = self._leaf("definition_kind")
            children.append(kind)
            fields["kind"] = kind
            if self._at(_K.IDENT):
                name = self._leaf("identifier")
                children.append(name)
                fields["name"] = name
        self._definition_options(children, fields)
        self._end_statement(children)
        return self._finish("definition", start, children, fields)

    # -- FUNCTION / PROCEDURE ----------------------------------------------

    def _function(self) -> Node:
        start = self._advance().start
        name = self._name_leaf()
        children = [name]
        fields = {"name": name}
        while not self._at(_K.PERIOD, _K.COLON, _K.EOF):
            if self._at_word("RETURNS", "RETURN"):
                self._advance()
                if self._at_word("CLASS"):
                    self._advance()
                type_node = self._type_name()
                fields.setdefault("type", type_node)
                children.append(type_node)
            elif self._at(_K.LPAREN):
                params = self._parameters()
                fields.setdefault("parameters", params)
                children.append(params)
            else:
                item = self._run_item()
                if item is not None:
                    children.append(item)
        if self._at(_K.COLON):
            self._advance()
            body = self._block()
            children.append(body)
            fields["body"] = body
            return self._finish("function_definition", start, children, fields)
        self._end_statement(children)
        return self._finish("function_forward_definition", start, children, fields)

    def _parameters(self) -> Node:
        start = self._advance().start
        children: list[Node] = []

        def stop(tok: Token) -> bool:
            return tok.kind in (_K.COMMA, _K.RPAREN, _K.PERIOD, _K.COLON)

        while not self._at(_K.RPAREN, _K.PERIOD, _K.COLON, _K.EOF):
            children.append(self._parameter(stop))
            if self._at(_K.COMMA):
                self._advance()
                continue
            if self._at(_K.RPAREN, _K.PERIOD, _K.COLON, _K.EOF):
                break
            children.append(self._error_until(stop))
            if self._at(_K.COMMA):
                self._advance()
        if self._at(_K.RPAREN):
            self._advance()
        else:
            children.append(self._missing(")"))
        return self._finish("parameters", start, children)

    def _parameter(self, stop: Callable[[Token], bool]) -> Node:
        start = self._tok.start
        children: list[Node] = []
        fields: dict[str, Node] = {}
        if self._tok.upper in kw.PARAMETER_MODES and self._peek().kind is _K.IDENT:
            mode = self._leaf("parameter_mode")
            children.append(mode)
            fields["mode"] = mode
        if self._at_word("BUFFER") and self._peek().kind is _K.IDENT:
            self._advance()
            self._buffer_target(children, fields)
            return self._finish("buffer_parameter", start, children, fields)
        if self._at_word("TABLE", "DATASET") and self._peek().upper == "FOR":
            self._advance()
            self._advance()
            table = self._name_leaf()
            children.append(table)
            fields["table"] = table
        else:
            if self._at_word(*_HANDLE_PARAMETERS):
                type_node = self._leaf("type_name")
                children.append(type_node)
                fields["type"] = type_node
            name = self._name_leaf()
            children.append(name)
            fields["name"] = name
            if self._at_word("AS"):
                self._advance()
                if self._at_word("CLASS"):
                    self._advance()
            if self._at_word("LIKE"):
                self._advance()
                like = self._name() if self._at(_K.IDENT) else self._missing("identifier")
                children.append(like)
                fields["like"] = like
            elif "type" not in fields and self._at(_K.IDENT, _K.PREPROC_REF):
                type_node = self._type_name()
                children.append(type_node)
                fields["type"] = type_node
        while not self._at(_K.EOF) and not stop(self._tok):
            item = self._run_item()
            if item is not None:
                children.append(item)
        return self._finish("parameter", start, children, fields)

    def _procedure(self) -> Node:
        start = self._advance().start
        if self._at(_K.IDENT, _K.STRING):
            name = self._leaf("identifier")
        else:
            name = self._missing("identifier")
        children = [name]
        fields = {"name": name}
        children.extend(self._token_run())
        if self._at(_K.COLON):
            self._advance()
            body = self._block()
            children.append(body)
            fields["body"] = body
        else:
            self._end_statement(children)
        return self._finish("procedure_definition", start, children, fields)

    # -- token runs -----------------------------------------------------------

    def _token_run(self, stop: Callable[[Token], bool] | None = None) -> list[Node]:
        nodes: list[Node] = []
        while not self._at(_K.PERIOD, _K.COLON, _K.EOF):
            if stop is not None and stop(self._tok):
                break
            item = self._run_item()
            if item is not None:
                nodes.append(item)
        return nodes

    def _run_item(self, *, stray_ok: bool = False) -> Node | None:
        tok = self._tok
        kind = tok.kind
        if kind is _K.IDENT:
            word = tok.upper
            if word in kw.LOGICAL_LITERALS:
                return self._leaf("boolean_literal")
            nxt = self._peek()
            if nxt.kind is _K.LPAREN and word not in kw.NON_CALL_WORDS and word not in kw.RESERVED:
                return self._postfix(self._nested(self._call, self._skip_nested))
            if word in kw.RESERVED:
                return self._leaf("keyword")
            return self._postfix(self._name())
        if kind in _LEAF_KINDS:
            return self._leaf(_LEAF_KINDS[kind])
        if kind is _K.LPAREN:
            return self._nested(lambda: self._group(_K.RPAREN, ")"), self._skip_nested)
        if kind is _K.LBRACKET:
            return self._nested(lambda: self._group(_K.RBRACKET, "]"), self._skip_nested)
        if kind is _K.ERROR or (kind in (_K.RPAREN, _K.RBRACKET) and not stray_ok):
            tok = self._advance()
            return Node("ERROR", tok.start, tok.end, is_error=True)
        self._advance()
        return None

    def _group(self, close: TokenKind, close_text: str) -> Node:
        start = self._advance().start
        children: list[Node] = []
        while not self._at(close, _K.PERIOD, _K.EOF):
            item = self._run_item()
            if item is not None:
                children.append(item)
        if self._at(close):
            self._advance()
        else:
            children.append(self._missing(close_text))
        return self._finish("parenthesized_tokens", start, children)

    # -- expressions ----------------------------------------------------------

    def _starts_expression(self) -> bool:
        tok = self._tok
        if tok.kind in (_K.NUMBER, _K.STRING, _K.UNKNOWN, _K.LPAREN, _K.INCLUDE, _K.PREPROC_REF):
            return True
        if tok.kind is _K.OP:
            return tok.text in ("+", "-")
        if tok.kind is _K.IDENT:
            return tok.upper not in kw.RESERVED or tok.upper in _EXPRESSION_KEYWORDS
        return False

    def _expression(self) -> Node:
        return self._nested(lambda: self._binary(0), self._skip_nested)

    def _binary_operator(self) -> str | None:
        tok = self._tok
        if tok.kind in (_K.OP, _K.IDENT):
            return tok.upper
        return None

    def _binary(self, level: int) -> Node:
        if level == len(_BINARY_LEVELS):
            return self._unary()
        left = self._binary(level + 1)
        while self._binary_operator() in _BINARY_LEVELS[level]:
            op_tok = self._advance()
            operator = Node("operator", op_tok.start, op_tok.end)
            right = self._binary(level + 1)
            left = Node(
                "binary_expression",
                left.start,
                max(right.end, op_tok.end),
                [left, operator, right],
                {"left": left, "operator": operator, "right": right},
            )
        return left

    def _unary(self) -> Node:
        tok = self._tok
        is_not = tok.kind is _K.IDENT and tok.upper == "NOT"
        if is_not or (tok.kind is _K.OP and tok.text in ("+", "-")):
            self._advance()
            operator = Node("operator", tok.start, tok.end)
            if is_not:
                operand = self._nested(lambda: self._binary(_COMPARISON_LEVEL), self._skip_nested)
            else:
                operand = self._nested(self._unary, self._skip_nested)
            return Node(
                "unary_expression",
                tok.start,
                max(operand.end, tok.end),
                [operator, operand],
                {"operator": operator, "operand": operand},
            )
        return self._postfix(self._primary())

    def _primary(self) -> Node:
        tok = self._tok
        kind = tok.kind
        if kind in _LEAF_KINDS:
            return self._leaf(_LEAF_KINDS[kind])
        if kind is _K.LPAREN:
            start = self._advance().start
            inner = self._expression()
            children = [inner]
            if self._at(_K.RPAREN):
                self._advance()
            else:
                children.append(self._missing(")"))
            return self._finish("parenthesized_expression", start, children, {"expression": inner})
        if kind is _K.ERROR:
            self._advance()
            return Node("ERROR", tok.start, tok.end, is_error=True)
        if kind is not _K.IDENT:
            return self._missing("expression")
        word = tok.upper
        if word in kw.LOGICAL_LITERALS:
            return self._leaf("boolean_literal")
        if word == "IF":
            return self._conditional_expression()
        if word == "NEW" and self._peek().kind is _K.IDENT:
            return self._new_expression()
        if word in kw.RESERVED:
            return self._missing("expression")
        if self._peek().kind is _K.LPAREN and word not in kw.NON_CALL_WORDS:
            return self._call()
        return self._name()

    def _name(self) -> Node:
        first = self._advance()
        parts = [Node("identifier", first.start, first.end)]
        while self._at(_K.DOT) and self._peek().kind is _K.IDENT:
            self._advance()
            part = self._advance()
            parts.append(Node("identifier", part.start, part.end))
        if len(parts) == 1:
            return parts[0]
        return Node("qualified_name", first.start, parts[-1].end, parts)

    def _call(self) -> Node:
        name_tok = self._advance()
        callee = Node("identifier", name_tok.start, name_tok.end)
        raw = name_tok.upper in kw.RAW_ARGUMENT_FUNCTIONS
        arguments = self._arguments(raw=raw)
        return Node(
            "function_call",
            name_tok.start,
            arguments.end,
            [callee, arguments],
            {"function": callee, "arguments": arguments},
        )

    def _arguments(self, *, raw: bool = False) -> Node:
        start = self._advance().start
        children: list[Node] = []

        def stop(tok: Token) -> bool:
            return tok.kind in (_K.COMMA, _K.RPAREN, _K.PERIOD)

        if raw:
            while not self._at(_K.RPAREN, _K.PERIOD, _K.EOF):
                item = self._run_item()
                if item is not None:
                    children.append(item)
        elif not self._at(_K.RPAREN):
            while True:
                children.append(self._argument(stop))
                if self._at(_K.COMMA):
                    self._advance()
                    continue
                break
        if self._at(_K.RPAREN):
            self._advance()
        else:
            children.append(self._missing(")"))
        return self._finish("raw_arguments" if raw else "arguments", start, children)

    def _argument(self, stop: Callable[[Token], bool]) -> Node:
        start = self._tok.start
        children: list[Node] = []
        if self._tok.upper in kw.PARAMETER_MODES and self._peek().kind is not _K.COMMA:
            children.append(self._leaf("parameter_mode"))
        if self._at_word("BUFFER", "TABLE", "TABLE-HANDLE", "DATASET", "DATASET-HANDLE"):
            children.append(self._leaf("keyword"))
        value = self._expression()
        children.append(value)
        while not self._at(_K.EOF) and not stop(self._tok):
            item = self._run_item()
            if item is not None:
                children.append(item)
        return self._finish("argument", start, children, {"value": value})

    def _postfix(self, node: Node) -> Node:
        while True:
            if self._at(_K.OBJ_COLON) and self._peek().kind is _K.IDENT:
                self._advance()
                member_tok = self._advance()
                member = Node("identifier", member_tok.start, member_tok.end)
                children = [node, member]
                fields = {"object": node, "member": member}
                if self._at(_K.LPAREN):
                    arguments = self._arguments()
                    children.append(arguments)
                    fields["arguments"] = arguments
                node = self._finish("object_access", node.start, children, fields)
            elif self._at(_K.LBRACKET):
                self._advance()
                index = self._expression()
                children = [node, index]
                if self._at(_K.RBRACKET):
                    self._advance()
                else:
                    children.append(self._missing("]"))
                node = self._finish("subscript_expression", node.start, children, {"value": node, "index": index})
            else:
                return node

    def _conditional_expression(self) -> Node:
        start = self._advance().start
        condition = self._expression()
        children = [condition]
        fields = {"condition": condition}
        if not self._at_word("THEN"):
            children.append(self._missing("THEN"))
            return self._finish("conditional_expression", start, children, fields)
        self._advance()
        consequence = self._expression()
        children.append(consequence)
        fields["consequence"] = consequence
        if self._at_word("ELSE"):
            self._advance()
            alternative = self._expression()
            children.append(alternative)
            fields["alternative"] = alternative
        else:
            children.append(self._missing("ELSE"))
        return self._finish("conditional_expression", start, children, fields)

    def _new_expression(self) -> Node:
        start = self._advance().start
        type_node = self._type_name()
        children = [type_node]
        fields = {"type": type_node}
        if self._at(_K.LPAREN):
            arguments = self._arguments()
            children.append(arguments)
            fields["arguments"] = arguments
        return self._finish("new_expression", start, children, fields)


class ABLParser:
    """Parses full document text into a ``Tree``.

    One instance is shared per workspace and guarded by the workspace's
    parser lock; ``parse_count`` is only read by diagnostics and tests.
    """

    def __init__(self) -> None:
        self.parse_count = 0

    def parse(self, source: str) -> Tree:
        self.parse_count += 1
        return _Parser(source).parse()


def parse_source(source: str) -> Tree:
    return _Parser(source).parse()


__all__ = ["ABLParser", "parse_source"]
