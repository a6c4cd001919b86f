"""Graph algorithms for include graphs."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


def build_include_adjacency(edges: Iterable[tuple[str, str]]) -> dict[str, set[str]]:
    """Build ``includer -> {included}`` adjacency from (parent, child) edges."""
    graph: dict[str, set[str]] = defaultdict(set)
    for parent, child in edges:
        graph[parent].add(child)
        graph.setdefault(child, set())
    return dict(graph)


class _TarjanState:
    """Mutable state for Tarjan's SCC algorithm."""

    def __init__(self) -> None:
        self.index = 0
        self.indices: dict[str, int] = {}
        self.low_link: dict[str, int] = {}
        self.on_stack: set[str] = set()
        self.stack: list[str] = []
        self.sccs: list[list[str]] = []

    def visit(self, node: str) -> None:
        self.indices[node] = self.index
        self.low_link[node] = self.index
        self.index += 1
        self.stack.append(node)
        self.on_stack.add(node)

    def pop_component(self, root: str) -> list[str]:
        scc: list[str] = []
        while self.stack:
            w = self.stack.pop()
            self.on_stack.remove(w)
            scc.append(w)
            if w == root:
                break
        if root not in scc:
            msg = (
                f"Tarjan algorithm invariant violated: root node {root!r} "
                "not found in stack during SCC extraction."
            )
            raise RuntimeError(msg)
        return scc


def _strongconnect(start: str, graph: dict[str, set[str]], state: _TarjanState) -> None:
    # explicit work stack: include chains can be deeper than the recursion limit
    state.visit(start)
    work: list[tuple[str, list[str]]] = [(start, sorted(graph.get(start, set())))]
    while work:
        node, pending = work[-1]
        if pending:
            neighbor = pending.pop(0)
            if neighbor not in state.indices:
                state.visit(neighbor)
                work.append((neighbor, sorted(graph.get(neighbor, set()))))
            elif neighbor in state.on_stack:
                state.low_link[node] = min(state.low_link[node], state.indices[neighbor])
            continue
        work.pop()
        if work:
            parent = work[-1][0]
            state.low_link[parent] = min(state.low_link[parent], state.low_link[node])
        if state.low_link[node] == state.indices[node]:
            scc = state.pop_component(node)
            if len(scc) > 1 or node in graph.get(node, set()):
                state.sccs.append(sorted(scc))


def find_cycles(graph: dict[str, set[str]]) -> list[list[str]]:
    """Find include cycles (non-trivial SCCs and self-includes).

    Args:
        graph: ``includer -> {included}`` adjacency

    Returns:
        List of cycles, each a sorted list of file paths
    """
    state = _TarjanState()
    for node in sorted(graph):
        if node not in state.indices:
            _strongconnect(node, graph, state)
    return sorted(state.sccs)


__all__ = ["build_include_adjacency", "find_cycles"]
