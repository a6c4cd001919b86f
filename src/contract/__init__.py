"""Stable result models shared by the engine and the protocol layer.

Treat these exports as the boundary: everything a query returns is one of
these frozen pydantic models.
"""

from contract.models import (
    CompletionItem,
    CompletionKind,
    Diagnostic,
    HoverKind,
    HoverPayload,
    Location,
    Position,
    Severity,
    SignatureInfo,
    Span,
)

__all__ = [
    "CompletionItem",
    "CompletionKind",
    "Diagnostic",
    "HoverKind",
    "HoverPayload",
    "Location",
    "Position",
    "Severity",
    "SignatureInfo",
    "Span",
]
