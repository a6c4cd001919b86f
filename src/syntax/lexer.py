"""Tokenizer for ABL source text.

Comments, whitespace and preprocessor directive lines (``&GLOBAL-DEFINE`` and
friends) are trivia and never reach the parser. Include references
(``{file.i ...}``) and preprocessor references (``{&NAME}``) are single
tokens. Malformed input (an unterminated string, comment or brace) becomes an
``ERROR`` token instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenKind(str, Enum):
    IDENT = "ident"
    NUMBER = "number"
    STRING = "string"
    PERIOD = "period"
    DOT = "dot"
    COLON = "colon"
    OBJ_COLON = "obj_colon"
    LPAREN = "lparen"
    RPAREN = "rparen"
    LBRACKET = "lbracket"
    RBRACKET = "rbracket"
    COMMA = "comma"
    OP = "op"
    UNKNOWN = "unknown"
    INCLUDE = "include"
    PREPROC_REF = "preproc_ref"
    ERROR = "error"
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    start: int
    end: int

    @property
    def upper(self) -> str:
        return self.text.upper()


_IDENT_START = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_")
_IDENT_PART = _IDENT_START | frozenset("0123456789#$%&-")
_DIGITS = frozenset("0123456789")
_STRING_ATTRIBUTE = frozenset("RLCTUrlctu0123456789")
_PUNCTUATION = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    ",": TokenKind.COMMA,
}


def _is_ident_part(source: str, idx: int) -> bool:
    """Hyphen only continues an identifier when another identifier char follows."""
    char = source[idx]
    if char == "-":
        return idx + 1 < len(source) and (
            source[idx + 1] in _IDENT_START or source[idx + 1] in _DIGITS
        )
    return char in _IDENT_PART


class Lexer:
    def __init__(self, source: str) -> None:
        self.source = source
        self.pos = 0
        self.length = len(source)

    def tokens(self) -> list[Token]:
        out: list[Token] = []
        while True:
            token = self._next()
            out.append(token)
            if token.kind is TokenKind.EOF:
                return out

    # -- trivia -------------------------------------------------------------

    def _at_line_start(self, idx: int) -> bool:
        back = idx - 1
        while back >= 0 and self.source[back] in " \t":
            back -= 1
        return back < 0 or self.source[back] in "\r\n"

    def _skip_directive(self) -> None:
        # runs to end of line; "~" continues onto the next line
        src = self.source
        while self.pos < self.length and src[self.pos] not in "\r\n":
            if src[self.pos] == "~" and self.pos + 1 < self.length:
                self.pos += 2
                continue
            self.pos += 1

    def _skip_block_comment(self) -> bool:
        """Skip a nested ``/* */`` comment. False when it never closes."""
        src = self.source
        depth = 0
        while self.pos < self.length:
            if src.startswith("/*", self.pos):
                depth += 1
                self.pos += 2
            elif src.startswith("*/", self.pos):
                depth -= 1
                self.pos += 2
                if depth == 0:
                    return True
            else:
                self.pos += 1
        return False

    # -- tokens -------------------------------------------------------------

    def _token(self, kind: TokenKind, start: int) -> Token:
        return Token(kind, self.source[start : self.pos], start, self.pos)

    def _next(self) -> Token:
        src = self.source
        while self.pos < self.length:
            char = src[self.pos]
            if char in " \t\r\n\f":
                self.pos += 1
            elif src.startswith("/*", self.pos):
                start = self.pos
                if not self._skip_block_comment():
                    return self._token(TokenKind.ERROR, start)
            elif src.startswith("//", self.pos):
                while self.pos < self.length and src[self.pos] not in "\r\n":
                    self.pos += 1
            elif (
                char == "&"
                and self.pos + 1 < self.length
                and src[self.pos + 1] in _IDENT_START
                and self._at_line_start(self.pos)
            ):
                self._skip_directive()
            else:
                break
        if self.pos >= self.length:
            return Token(TokenKind.EOF, "", self.length, self.length)

        start = self.pos
        char = src[start]
        if char in _IDENT_START:
            self.pos += 1
            while self.pos < self.length and _is_ident_part(src, self.pos):
                self.pos += 1
            return self._token(TokenKind.IDENT, start)
        if char in _DIGITS:
            return self._number(start)
        if char in "\"'":
            return self._string(start)
        if char == "{":
            return self._brace(start)
        if char == ".":
            return self._dot(start)
        if char == ":":
            self.pos += 1
            nxt = src[self.pos] if self.pos < self.length else " "
            if nxt in _IDENT_START:
                return self._token(TokenKind.OBJ_COLON, start)
            return self._token(TokenKind.COLON, start)
        if char in _PUNCTUATION:
            self.pos += 1
            return self._token(_PUNCTUATION[char], start)
        if char == "?":
            self.pos += 1
            return self._token(TokenKind.UNKNOWN, start)
        if char in "<>":
            self.pos += 1
            if self.pos < self.length and src[self.pos] in "=>" and not (
                char == ">" and src[self.pos] == ">"
            ):
                self.pos += 1
            return self._token(TokenKind.OP, start)
        if char in "=+-*/":
            self.pos += 1
            return self._token(TokenKind.OP, start)
        self.pos += 1
        return self._token(TokenKind.ERROR, start)

    def _number(self, start: int) -> Token:
        src = self.source
        while self.pos < self.length and src[self.pos] in _DIGITS:
            self.pos += 1
        if (
            self.pos + 1 < self.length
            and src[self.pos] == "."
            and src[self.pos + 1] in _DIGITS
        ):
            self.pos += 1
            while self.pos < self.length and src[self.pos] in _DIGITS:
                self.pos += 1
        return self._token(TokenKind.NUMBER, start)

    def _string(self, start: int) -> Token:
        src = self.source
        quote = src[start]
        self.pos += 1
        while self.pos < self.length:
            char = src[self.pos]
            if char == "~":
                self.pos += 2
                continue
            if char == quote:
                if self.pos + 1 < self.length and src[self.pos + 1] == quote:
                    self.pos += 2
                    continue
                self.pos += 1
                self._string_attribute()
                return self._token(TokenKind.STRING, start)
            self.pos += 1
        self.pos = self.length
        return self._token(TokenKind.ERROR, start)

    def _string_attribute(self) -> None:
        # "text":U, "text":T30 and similar translation attributes
        src = self.source
        if self.pos >= self.length or src[self.pos] != ":":
            return
        end = self.pos + 1
        while end < self.length and src[end] in _STRING_ATTRIBUTE:
            end += 1
        if end == self.pos + 1:
            return
        if end < self.length and _is_ident_part(src, end):
            return
        self.pos = end

    def _brace(self, start: int) -> Token:
        src = self.source
        depth = 0
        quote: str | None = None
        while self.pos < self.length:
            char = src[self.pos]
            if quote is not None:
                if char == quote:
                    quote = None
                self.pos += 1
                continue
            if char in "\"'" and depth > 0:
                quote = char
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    self.pos += 1
                    kind = (
                        TokenKind.PREPROC_REF
                        if src.startswith("{&", start)
                        else TokenKind.INCLUDE
                    )
                    return self._token(kind, start)
            self.pos += 1
        # unterminated: the error covers the rest of the line
        self.pos = start + 1
        while self.pos < self.length and src[self.pos] not in "\r\n":
            self.pos += 1
        return self._token(TokenKind.ERROR, start)

    def _dot(self, start: int) -> Token:
        src = self.source
        self.pos += 1
        prev_ident = start > 0 and src[start - 1] in _IDENT_PART
        next_ident = self.pos < self.length and src[self.pos] in _IDENT_START
        if prev_ident and next_ident:
            return self._token(TokenKind.DOT, start)
        return self._token(TokenKind.PERIOD, start)


def tokenize(source: str) -> list[Token]:
    return Lexer(source).tokens()


__all__ = ["Lexer", "Token", "TokenKind", "tokenize"]
