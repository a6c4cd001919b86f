"""Built-in ABL functions and system variables.

Names the unknown-symbol checks must never report. Abbreviations accepted by
the compiler are listed explicitly.
"""

from __future__ import annotations

from utils import fold_name

BUILTIN_FUNCTIONS = frozenset(
    fold_name(name)
    for name in (
        "ABSOLUTE", "ADD-INTERVAL", "ALIAS", "ASC", "AVAILABLE", "AVAIL",
        "AMBIGUOUS", "BASE64-DECODE", "BASE64-ENCODE", "BOX", "CAN-DO",
        "CAN-FIND", "CAN-QUERY", "CAN-SET", "CAPS", "CAST", "CHR", "CODEPAGE-CONVERT",
        "COMPARE", "CONNECTED", "COUNT-OF", "CURRENT-CHANGED", "CURRENT-VALUE",
        "DATE", "DATE-TZ", "DATETIME", "DATETIME-TZ", "DAY", "DBNAME", "DECIMAL", "DEC",
        "DECRYPT", "DYNAMIC-CAST", "DYNAMIC-FUNCTION", "DYNAMIC-NEW", "ENCODE",
        "ENCRYPT", "ENTRY", "ERROR", "ETIME", "EXP", "EXTENT", "FILL", "FIRST",
        "FIRST-OF", "FRAME-VALUE", "GET-BYTE", "GET-CLASS", "GET-CODEPAGE",
        "GET-SIZE", "GUID", "HANDLE", "HEX-DECODE", "HEX-ENCODE", "INDEX",
        "INT64", "INTEGER", "INT", "INTERVAL", "IS-LEAD-BYTE", "ISO-DATE", "KEYCODE",
        "KEYFUNCTION", "KEYLABEL", "LAST", "LAST-OF", "LC", "LEFT-TRIM", "LENGTH",
        "LIBRARY", "LOCKED", "LOG", "LOGICAL", "LOOKUP", "MAXIMUM", "MAX", "MD5-DIGEST",
        "MEMBER", "MESSAGE-DIGEST", "MINIMUM", "MIN", "MONTH", "MTIME", "NEW",
        "NEXT-VALUE", "NORMALIZE", "NUM-ENTRIES", "NUM-RESULTS", "OPSYS",
        "OS-GETENV", "PROGRAM-NAME", "PROPATH", "QUERY-OFF-END", "QUOTER",
        "R-INDEX", "RANDOM", "RECID", "REPLACE", "RETRY", "RGB-VALUE",
        "RIGHT-TRIM", "ROUND", "ROWID", "SEARCH", "SETUSERID", "SHA1-DIGEST",
        "SQRT", "STRING", "SUBSTITUTE", "SUBSTRING", "SUBSTR", "TIMEZONE",
        "TO-ROWID", "TRIM", "TRUNCATE", "TRUNC", "TYPE-OF", "USERID",
        "VALID-EVENT", "VALID-HANDLE", "VALID-OBJECT", "WEEKDAY", "WIDGET-HANDLE",
        "YEAR",
    )
)

BUILTIN_VARIABLES = frozenset(
    fold_name(name)
    for name in (
        "ACTIVE-WINDOW", "COLOR-TABLE", "COMPILER", "CURRENT-LANGUAGE",
        "CURRENT-WINDOW", "DEBUGGER", "DEFAULT-WINDOW", "ERROR-STATUS",
        "FILE-INFO", "FILE-INFORMATION", "FOCUS", "FONT-TABLE", "LAST-EVENT",
        "LOG-MANAGER", "NOW", "OPSYS", "PROGRESS", "PROPATH", "RETURN-VALUE",
        "SECURITY-POLICY", "SELF", "SESSION", "SOURCE-PROCEDURE", "SUPER",
        "TARGET-PROCEDURE", "TERMINAL", "THIS-OBJECT", "THIS-PROCEDURE",
        "TIME", "TODAY", "TRANSACTION", "WEB-CONTEXT",
    )
)


def is_builtin_function(name: str) -> bool:
    return fold_name(name) in BUILTIN_FUNCTIONS


def is_builtin_variable(name: str) -> bool:
    return fold_name(name) in BUILTIN_VARIABLES


__all__ = [
    "BUILTIN_FUNCTIONS",
    "BUILTIN_VARIABLES",
    "is_builtin_function",
    "is_builtin_variable",
]
