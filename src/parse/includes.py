"""Include graph construction.

Every ``{token}`` reference of a document is resolved through the path
resolver. Resolved files are visited depth-first in textual order; a file
already visited is not expanded again, so include cycles terminate and show
up only as back edges.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from contract.models import Location, Span
from graph.algos import build_include_adjacency, find_cycles
from scan.paths import normalize_token, resolve_include

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from rules.config import EffectiveConfig
    from syntax.tree import Node, Tree

logger = structlog.get_logger()


@dataclass(frozen=True)
class IncludeRef:
    """One ``{...}`` reference as written in a file."""

    token: str
    raw: str
    site: Location
    offset: int


@dataclass(frozen=True)
class IncludeEntry:
    """A resolved file of the graph and the reference that first reached it."""

    path: Path
    token: str
    site: Location
    parent: Path


@dataclass(frozen=True)
class UnresolvedInclude:
    token: str
    site: Location
    parent: Path


@dataclass(frozen=True)
class IncludeGraph:
    root: Path
    entries: tuple[IncludeEntry, ...] = ()
    unresolved: tuple[UnresolvedInclude, ...] = ()
    edges: tuple[tuple[Path, Path], ...] = field(default=())

    @property
    def paths(self) -> tuple[Path, ...]:
        """Resolved include files in inclusion order, the root excluded."""
        return tuple(entry.path for entry in self.entries)

    def contains(self, path: Path) -> bool:
        return path == self.root or any(entry.path == path for entry in self.entries)

    def cycles(self) -> list[list[str]]:
        adjacency = build_include_adjacency(
            (parent.as_posix(), child.as_posix()) for parent, child in self.edges
        )
        return find_cycles(adjacency)


def include_token(text: str) -> str | None:
    """Extract the file token from the text of an ``{...}`` reference.

    Returns None for preprocessor references (``{&NAME}``), include argument
    references (``{1}``) and nested braces.

    Examples:
        >>> include_token('{ "inc/common.i" &mode=2 }')
        'inc/common.i'
        >>> include_token("{&WINDOW-NAME}") is None
        True
    """
    body = text.strip()
    if body.startswith("{"):
        body = body[1:]
    if body.endswith("}"):
        body = body[:-1]
    parts = body.split()
    if not parts:
        return None
    first = parts[0]
    if first.startswith("&") or "{" in first or first.isdigit():
        return None
    token = normalize_token(first)
    return token or None


def collect_include_refs(tree: Tree, path: Path) -> list[IncludeRef]:
    """All include references of a tree in textual order."""
    refs: list[IncludeRef] = []
    for node in tree.root_node.walk():
        if node.type != "include":
            continue
        token = include_token(node.text)
        if token is None:
            continue
        refs.append(
            IncludeRef(
                token=token,
                raw=node.text,
                site=_node_location(node, path),
                offset=node.start,
            )
        )
    return refs


def _node_location(node: Node, path: Path) -> Location:
    return Location(
        path=path.as_posix(),
        span=Span.from_points(node.start_point, node.end_point),
    )


def build_include_graph(
    root_path: Path,
    root_refs: Sequence[IncludeRef],
    config: EffectiveConfig,
    load_refs: Callable[[Path], Sequence[IncludeRef] | None],
) -> IncludeGraph:
    """Resolve the transitive includes of ``root_path``.

    Args:
        root_path: The analysed document
        root_refs: Include references of the document's current text
        config: Effective configuration of the workspace root
        load_refs: Returns the include references of an included file, or
            None when the file cannot be read

    Returns:
        The graph; every resolved edge is kept, even when its target was
        already visited.
    """
    visited: set[Path] = {root_path}
    entries: list[IncludeEntry] = []
    unresolved: list[UnresolvedInclude] = []
    edges: list[tuple[Path, Path]] = []

    stack: list[tuple[Path, IncludeRef]] = [(root_path, ref) for ref in reversed(root_refs)]
    while stack:
        parent, ref = stack.pop()
        target = resolve_include(ref.token, config, parent)
        if target is None:
            unresolved.append(UnresolvedInclude(ref.token, ref.site, parent))
            logger.debug(
                "include_unresolved", token=ref.token, parent=parent.as_posix()
            )
            continue
        edges.append((parent, target))
        if target in visited:
            continue
        visited.add(target)
        entries.append(IncludeEntry(target, ref.token, ref.site, parent))
        child_refs = load_refs(target)
        if child_refs:
            stack.extend((target, child) for child in reversed(child_refs))

    return IncludeGraph(
        root=root_path,
        entries=tuple(entries),
        unresolved=tuple(unresolved),
        edges=tuple(edges),
    )


__all__ = [
    "IncludeEntry",
    "IncludeGraph",
    "IncludeRef",
    "UnresolvedInclude",
    "build_include_graph",
    "collect_include_refs",
    "include_token",
]
