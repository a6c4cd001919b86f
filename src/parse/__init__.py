"""Analysis of parsed ABL files: includes, symbols, call sites, resolution."""

from parse.calls import CallSite, DocumentRefs, NameRef, collect_refs
from parse.includes import (
    IncludeGraph,
    IncludeRef,
    build_include_graph,
    collect_include_refs,
    include_token,
)
from parse.name_resolution import (
    ResolutionEngine,
    completion_context,
    expression_at,
)
from parse.symbols import (
    FileFacts,
    FunctionSymbol,
    SymbolTable,
    build_symbol_table,
    extract_symbols,
)

__all__ = [
    "CallSite",
    "DocumentRefs",
    "FileFacts",
    "FunctionSymbol",
    "IncludeGraph",
    "IncludeRef",
    "NameRef",
    "ResolutionEngine",
    "SymbolTable",
    "build_include_graph",
    "build_symbol_table",
    "collect_include_refs",
    "collect_refs",
    "completion_context",
    "expression_at",
    "extract_symbols",
    "include_token",
]
