"""Keyword tables for the ABL parser.

ABL keywords are case-insensitive and many accept abbreviations down to a
minimum length (``DEF``, ``VAR``, ``PARAM``). ``matches`` implements that rule.
"""

from __future__ import annotations

# keyword -> shortest accepted abbreviation length
_ABBREVIATIONS: dict[str, int] = {
    "DEFINE": 3,
    "VARIABLE": 3,
    "PARAMETER": 5,
    "PROCEDURE": 4,
    "FUNCTION": 8,
    "CHARACTER": 4,
    "INTEGER": 3,
    "DECIMAL": 3,
    "LOGICAL": 3,
    "INITIAL": 4,
    "FORWARD": 7,
    "RETURNS": 7,
    "TEMP-TABLE": 10,
    "WORK-TABLE": 8,
    "WORKFILE": 8,
}


def matches(word: str, keyword: str) -> bool:
    """True when ``word`` spells ``keyword`` or an accepted abbreviation."""
    upper = word.upper()
    if upper == keyword:
        return True
    minimum = _ABBREVIATIONS.get(keyword)
    if minimum is None:
        return False
    return len(upper) >= minimum and keyword.startswith(upper)


def matches_any(word: str, keywords: tuple[str, ...]) -> str | None:
    for keyword in keywords:
        if matches(word, keyword):
            return keyword
    return None


DEFINE_MODIFIERS: frozenset[str] = frozenset(
    {
        "NEW",
        "GLOBAL",
        "SHARED",
        "PRIVATE",
        "PROTECTED",
        "PUBLIC",
        "PACKAGE-PRIVATE",
        "PACKAGE-PROTECTED",
        "STATIC",
        "ABSTRACT",
        "OVERRIDE",
        "SERIALIZABLE",
        "NON-SERIALIZABLE",
    }
)

PARAMETER_MODES: tuple[str, ...] = ("INPUT-OUTPUT", "INPUT", "OUTPUT", "RETURN")

# clauses that end a FIELD or INDEX clause inside DEFINE TEMP-TABLE
TEMP_TABLE_CLAUSES: frozenset[str] = frozenset({"FIELD", "FIELDS", "INDEX"})

LOGICAL_LITERALS: frozenset[str] = frozenset({"TRUE", "FALSE", "YES", "NO"})

COMPARISON_KEYWORDS: frozenset[str] = frozenset(
    {"EQ", "NE", "LT", "GT", "LE", "GE", "BEGINS", "MATCHES", "CONTAINS"}
)
COMPARISON_OPERATORS: frozenset[str] = frozenset({"=", "<>", "<", ">", "<=", ">="})

# pseudo-functions whose parenthesised part is not an expression list
RAW_ARGUMENT_FUNCTIONS: frozenset[str] = frozenset(
    {
        "CAN-FIND",
        "AVAILABLE",
        "AVAIL",
        "LOCKED",
        "AMBIGUOUS",
        "CURRENT-CHANGED",
        "RECID",
        "ROWID",
    }
)

# words that are never treated as callees even when followed by "("
NON_CALL_WORDS: frozenset[str] = frozenset(
    {
        "AND",
        "OR",
        "NOT",
        "IF",
        "THEN",
        "ELSE",
        "WHERE",
        "BY",
        "EACH",
        "FIRST",
        "LAST",
        "OF",
        "TO",
        "WITH",
        "FORMAT",
        "LABEL",
        "COLUMN-LABEL",
        "INPUT",
        "OUTPUT",
        "INPUT-OUTPUT",
        "RETURN",
        "RUN",
        "DISPLAY",
        "MESSAGE",
        "UPDATE",
        "SET",
        "EXTENT",
        "VIEW-AS",
        "FRAME",
        "DOWN",
        "ON",
        "IN",
        "PUT",
        "SKIP",
        "SPACE",
        "UNFORMATTED",
        "PAGE-TOP",
        "TITLE",
        "FIELDS",
        "EXCEPT",
        "USING",
        "PROCEDURE",
        "FUNCTION",
        "BUFFER",
        "TABLE",
        "DATASET",
        "WHEN",
    }
)

# reserved words reported as ``keyword`` leaves rather than identifiers
RESERVED: frozenset[str] = frozenset(
    {
        "ASSIGN",
        "AND",
        "OR",
        "NOT",
        "IF",
        "THEN",
        "ELSE",
        "DO",
        "END",
        "FOR",
        "EACH",
        "FIRST",
        "LAST",
        "NEXT",
        "PREV",
        "WHERE",
        "BY",
        "OF",
        "NO-LOCK",
        "EXCLUSIVE-LOCK",
        "SHARE-LOCK",
        "NO-ERROR",
        "NO-WAIT",
        "NO-UNDO",
        "FIND",
        "CREATE",
        "DELETE",
        "RELEASE",
        "REPEAT",
        "WHILE",
        "LEAVE",
        "UNDO",
        "RETRY",
        "CASE",
        "WHEN",
        "OTHERWISE",
        "RUN",
        "DISPLAY",
        "MESSAGE",
        "VIEW-AS",
        "ALERT-BOX",
        "WITH",
        "FRAME",
        "TO",
        "TRANSACTION",
        "BREAK",
        "USE-INDEX",
        "INPUT",
        "OUTPUT",
        "INPUT-OUTPUT",
        "RETURN",
        "ERROR",
        "APPLY",
        "ON",
        "CATCH",
        "FINALLY",
        "BLOCK-LEVEL",
        "ROUTINE-LEVEL",
        "THROW",
        "QUIT",
        "STOP",
        "PAUSE",
        "EMPTY",
        "TEMP-TABLE",
        "BUFFER",
        "TABLE",
        "FIELDS",
        "EXCEPT",
        "SKIP",
        "PUT",
        "STREAM",
        "UNFORMATTED",
        "CLOSE",
        "OPEN",
        "QUERY",
        "GET",
        "IN",
        "UPDATE",
        "SET",
        "PROMPT-FOR",
        "CLASS",
        "METHOD",
        "CONSTRUCTOR",
        "DESTRUCTOR",
        "INHERITS",
        "IMPLEMENTS",
        "FINAL",
        "VOID",
        "USING",
        "PROPATH",
        "SUPER",
    }
)


def is_reserved(word: str) -> bool:
    return word.upper() in RESERVED


__all__ = [
    "COMPARISON_KEYWORDS",
    "COMPARISON_OPERATORS",
    "DEFINE_MODIFIERS",
    "LOGICAL_LITERALS",
    "NON_CALL_WORDS",
    "PARAMETER_MODES",
    "RAW_ARGUMENT_FUNCTIONS",
    "RESERVED",
    "TEMP_TABLE_CLAUSES",
    "is_reserved",
    "matches",
    "matches_any",
]
