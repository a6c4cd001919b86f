"""Per-root analysis state: documents, configuration, schema."""

from workspace.state import DocumentState, Workspace

__all__ = ["DocumentState", "Workspace"]
