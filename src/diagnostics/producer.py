"""Diagnostics Producer.

Two streams are merged per document: syntax diagnostics translated directly
from ``ERROR``/``MISSING`` nodes, and semantic diagnostics computed through
the resolution engine. Semantic rules are filtered by their toggles, ignore
lists and path excludes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from contract.models import Diagnostic, Span
from diagnostics.builtins import is_builtin_function, is_builtin_variable
from diagnostics.types import BasicType, basic_type
from parse.symbols import FunctionSymbol, VariableSymbol
from rules.filters import is_suppressed

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from contract.models import Severity
    from parse.calls import ArgumentInfo, CallSite, DocumentRefs, NameRef
    from parse.includes import UnresolvedInclude
    from parse.name_resolution import ResolutionEngine
    from rules.config import EffectiveConfig
    from syntax.tree import Tree

MAX_SYNTAX_DIAGNOSTICS = 100

SYNTAX_SOURCE = "abl-syntax"
SEMANTIC_SOURCE = "abl-semantic"


def syntax_diagnostics(tree: Tree, limit: int = MAX_SYNTAX_DIAGNOSTICS) -> list[Diagnostic]:
    """One diagnostic per error or missing node, in tree order, capped at ``limit``."""
    out: list[Diagnostic] = []
    for node in tree.root_node.walk():
        if len(out) >= limit:
            break
        if not (node.is_error or node.is_missing):
            continue
        message = f"Missing {node.type}" if node.is_missing else "Syntax error"
        out.append(
            Diagnostic(
                span=Span.from_points(node.start_point, node.end_point),
                severity="error",
                source=SYNTAX_SOURCE,
                message=message,
                code="syntax",
            )
        )
    return out


def _semantic(
    span: Span, message: str, code: str, severity: Severity = "error"
) -> Diagnostic:
    return Diagnostic(
        span=span, severity=severity, source=SEMANTIC_SOURCE, message=message, code=code
    )


class _TypeInference:
    """Basic types of simple expressions from declared types only."""

    def __init__(self, engine: ResolutionEngine) -> None:
        self.engine = engine

    def variable_type(self, name: str, offset: int) -> BasicType | None:
        symbol = self.engine.symbols.lookup(name, offset, {"variable"})
        if isinstance(symbol, VariableSymbol):
            return basic_type(symbol.type_name)
        return None

    def value_type(self, value: ArgumentInfo, offset: int) -> BasicType | None:
        if value.kind == "literal":
            return basic_type(value.literal_type)
        if value.kind == "identifier" and value.name:
            return self.variable_type(value.name, offset)
        if value.kind == "call" and value.name:
            function = self.engine.function_at(value.name, offset)
            if function is not None:
                return basic_type(function.return_type)
        return None


def _argument_type_diagnostics(
    call: CallSite, function: FunctionSymbol, types: _TypeInference
) -> Iterable[Diagnostic]:
    for idx, (argument, parameter) in enumerate(
        zip(call.arguments, function.parameters, strict=True), start=1
    ):
        if parameter.kind != "value":
            continue
        expected = basic_type(parameter.type_name)
        actual = types.value_type(argument, call.offset)
        if expected is None or actual is None or expected is actual:
            continue
        yield _semantic(
            argument.span,
            f"Function '{function.name}' argument {idx} expects "
            f"{expected.value}, got {actual.value}",
            "type_mismatch",
        )


def _call_diagnostics(
    engine: ResolutionEngine,
    calls: Iterable[CallSite],
    config: EffectiveConfig,
    path: Path,
) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    types = _TypeInference(engine)
    rule = config.unknown_functions
    for call in calls:
        if call.raw:
            continue
        function = engine.function_at(call.name, call.offset)
        if function is None:
            if (
                call.qualified
                or is_builtin_function(call.name)
                or is_suppressed(rule, call.name, path)
            ):
                continue
            out.append(
                _semantic(call.name_span, f"Unknown function '{call.name}'", "unknown_function")
            )
            continue
        arity = engine.check_arity(call)
        if arity is not None:
            out.append(arity)
            continue
        out.extend(_argument_type_diagnostics(call, function, types))
    return out


def _is_known_name(engine: ResolutionEngine, ref: NameRef, referenced: frozenset[str]) -> bool:
    if is_builtin_variable(ref.name) or is_builtin_function(ref.name):
        return True
    if engine.resolve_name(ref.name, ref.offset) is not None:
        return True
    # unqualified field of a table used elsewhere in the file
    return any(table.key in referenced for table in engine.schema.owners(ref.name))


def _name_diagnostics(
    engine: ResolutionEngine,
    refs: DocumentRefs,
    config: EffectiveConfig,
    path: Path,
) -> list[Diagnostic]:
    rule = config.unknown_variables
    out: list[Diagnostic] = []
    for ref in refs.names:
        if is_suppressed(rule, ref.name, path):
            continue
        if _is_known_name(engine, ref, refs.identifiers):
            continue
        out.append(_semantic(ref.span, f"Unknown variable '{ref.name}'", "unknown_variable"))
    return out


def _assignment_diagnostics(engine: ResolutionEngine, refs: DocumentRefs) -> list[Diagnostic]:
    types = _TypeInference(engine)
    out: list[Diagnostic] = []
    for site in refs.assignments:
        expected = types.variable_type(site.target, site.offset)
        if expected is None:
            continue
        actual = types.value_type(site.value, site.offset)
        if actual is None or actual is expected:
            continue
        out.append(
            _semantic(
                site.value.span,
                f"Type mismatch: cannot assign {actual.value} to "
                f"{expected.value} variable '{site.target}'",
                "type_mismatch",
            )
        )
    return out


def include_diagnostics(unresolved: Iterable[UnresolvedInclude], path: Path) -> list[Diagnostic]:
    """Warnings for unresolved includes written in ``path`` itself."""
    here = path.as_posix()
    return [
        _semantic(item.site.span, f"Cannot resolve include '{item.token}'", "include", "warning")
        for item in unresolved
        if item.site.path == here
    ]


def semantic_diagnostics(
    engine: ResolutionEngine,
    refs: DocumentRefs,
    config: EffectiveConfig,
    path: Path,
    unresolved: Iterable[UnresolvedInclude] = (),
) -> list[Diagnostic]:
    if not config.diagnostics_enabled:
        return []
    out = include_diagnostics(unresolved, path)
    out.extend(_call_diagnostics(engine, refs.calls, config, path))
    out.extend(_name_diagnostics(engine, refs, config, path))
    out.extend(_assignment_diagnostics(engine, refs))
    return out


def produce_diagnostics(
    tree: Tree,
    engine: ResolutionEngine,
    refs: DocumentRefs,
    config: EffectiveConfig,
    path: Path,
    unresolved: Iterable[UnresolvedInclude] = (),
) -> list[Diagnostic]:
    """All diagnostics of one document, sorted by position then message."""
    out = syntax_diagnostics(tree)
    out.extend(semantic_diagnostics(engine, refs, config, path, unresolved))
    out.sort(key=Diagnostic.sort_key)
    return out


__all__ = [
    "MAX_SYNTAX_DIAGNOSTICS",
    "SEMANTIC_SOURCE",
    "SYNTAX_SOURCE",
    "include_diagnostics",
    "produce_diagnostics",
    "semantic_diagnostics",
    "syntax_diagnostics",
]
