"""Syntax and semantic diagnostics for ABL documents."""

from diagnostics.producer import (
    MAX_SYNTAX_DIAGNOSTICS,
    produce_diagnostics,
    semantic_diagnostics,
    syntax_diagnostics,
)
from diagnostics.types import BasicType, basic_type

__all__ = [
    "MAX_SYNTAX_DIAGNOSTICS",
    "BasicType",
    "basic_type",
    "produce_diagnostics",
    "semantic_diagnostics",
    "syntax_diagnostics",
]
