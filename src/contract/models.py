"""Result models handed from the engine to the protocol layer.

Positions are zero-based ``line``/``character`` pairs, characters counted in
code points. Every model is frozen so results can be cached and compared.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["error", "warning", "information", "hint"]
CompletionKind = Literal["variable", "function", "buffer", "temp-table", "field", "table"]
HoverKind = Literal[
    "variable", "parameter", "function", "buffer", "temp-table", "field", "table"
]


class Position(BaseModel):
    model_config = ConfigDict(frozen=True)

    line: int = Field(ge=0)
    character: int = Field(ge=0)


class Span(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: Position
    end: Position

    @classmethod
    def from_points(cls, start: tuple[int, int], end: tuple[int, int]) -> Span:
        return cls(
            start=Position(line=start[0], character=start[1]),
            end=Position(line=end[0], character=end[1]),
        )

    def contains(self, position: Position) -> bool:
        start = (self.start.line, self.start.character)
        end = (self.end.line, self.end.character)
        return start <= (position.line, position.character) <= end


class Location(BaseModel):
    """A span inside a file; ``path`` is an absolute POSIX path."""

    model_config = ConfigDict(frozen=True)

    path: str
    span: Span


class Diagnostic(BaseModel):
    model_config = ConfigDict(frozen=True)

    span: Span
    severity: Severity = "error"
    source: str
    message: str
    code: str | None = Field(
        default=None, description="Rule that produced the diagnostic"
    )

    def sort_key(self) -> tuple[int, int, str]:
        return (self.span.start.line, self.span.start.character, self.message)


class CompletionItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    kind: CompletionKind
    detail: str | None = None
    documentation: str | None = None


class HoverPayload(BaseModel):
    """Structured hover content; ``to_markdown`` renders it for editors."""

    model_config = ConfigDict(frozen=True)

    kind: HoverKind
    name: str
    type_name: str | None = None
    parameters: tuple[str, ...] = ()
    return_type: str | None = None
    path: str | None = Field(default=None, description="Declaring file")
    table: str | None = Field(default=None, description="Owning table of a field")
    label: str | None = None
    format: str | None = None
    description: str | None = None

    def signature(self) -> str:
        params = ", ".join(self.parameters)
        if self.return_type:
            return f"FUNCTION {self.name}({params}) RETURNS {self.return_type}"
        return f"FUNCTION {self.name}({params})"

    def to_markdown(self) -> str:
        if self.kind == "function":
            lines = [f"`{self.signature()}`"]
            if self.path:
                lines.append(f"Defined in `{self.path}`")
            return "\n\n".join(lines)
        if self.kind == "field":
            lines = [f"**Field** `{self.name}`"]
            if self.table:
                lines.append(f"Table: `{self.table}`")
            if self.type_name:
                lines.append(f"Type: `{self.type_name}`")
            if self.label:
                lines.append(f"Label: {self.label}")
            if self.format:
                lines.append(f"Format: `{self.format}`")
            if self.description:
                lines.append(f"Description: {self.description}")
            return "\n\n".join(lines)
        if self.kind in ("table", "temp-table", "buffer"):
            title = {"table": "Table", "temp-table": "Temp-table", "buffer": "Buffer"}
            lines = [f"**{title[self.kind]}** `{self.name}`"]
            if self.table and self.table != self.name:
                lines.append(f"For: `{self.table}`")
            if self.path:
                lines.append(f"Defined in `{self.path}`")
            return "\n\n".join(lines)
        title = "Parameter" if self.kind == "parameter" else "Variable"
        type_part = f" AS {self.type_name}" if self.type_name else ""
        return f"**{title}** `{self.name}{type_part}`"


class SignatureInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    parameters: tuple[str, ...]
    active_parameter: int | None = None
    return_type: str | None = None


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
