"""Per-root workspace state.

One ``Workspace`` serves one root directory. It owns the single parser
instance (guarded by a lock), the open documents, the effective
configuration and the schema store. Document state is replaced whole on
every change; configuration and schema are immutable snapshots swapped by a
single assignment, so a query that already took a snapshot keeps using it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from contract.models import Location, Span
from dbschema.index import SchemaStore
from diagnostics.producer import produce_diagnostics
from parse.calls import collect_refs
from parse.includes import build_include_graph, collect_include_refs
from parse.name_resolution import ResolutionEngine
from parse.symbols import FileFacts, build_symbol_table, extract_symbols
from rules.config import CONFIG_FILENAME, ConfigError, EffectiveConfig, load_config
from scan.paths import resolve_dumpfiles, resolve_include
from syntax.parser import ABLParser
from utils import to_path, to_uri

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from contract.models import (
        CompletionItem,
        Diagnostic,
        HoverPayload,
        Position,
        SignatureInfo,
    )
    from parse.calls import DocumentRefs
    from parse.includes import IncludeGraph, IncludeRef
    from parse.symbols import SymbolTable
    from syntax.tree import Tree

    Publisher = Callable[[str, list[Diagnostic]], None]

logger = structlog.get_logger()


@dataclass(frozen=True)
class DocumentState:
    """Everything derived from one version of a document's text."""

    path: Path
    text: str
    version: int
    tree: Tree
    facts: FileFacts
    refs: DocumentRefs
    graph: IncludeGraph
    symbols: SymbolTable
    config: EffectiveConfig
    diagnostics: tuple[Diagnostic, ...]

    @property
    def uri(self) -> str:
        return to_uri(self.path)


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


class Workspace:
    def __init__(
        self,
        root: Path | str,
        *,
        publish: Publisher | None = None,
        parser: ABLParser | None = None,
    ) -> None:
        self.root = Path(root).resolve()
        self._publish = publish
        self._parser = parser or ABLParser()
        self._parser_lock = threading.Lock()
        self._documents: dict[Path, DocumentState] = {}
        self._documents_lock = threading.Lock()
        self._facts: dict[Path, tuple[tuple[int, int], FileFacts]] = {}
        self._facts_lock = threading.Lock()
        self._config = EffectiveConfig.empty(self.root)
        self._config_paths: frozenset[Path] = frozenset()
        self._dump_paths: frozenset[Path] = frozenset()
        self.config_error: str | None = None
        self.schema = SchemaStore()
        self.reload_config()

    @property
    def config(self) -> EffectiveConfig:
        return self._config

    @property
    def parse_count(self) -> int:
        return self._parser.parse_count

    # -- configuration and schema -------------------------------------------

    def reload_config(self) -> EffectiveConfig:
        """Rebuild the effective configuration, then the schema."""
        try:
            config = load_config(self.root)
        except ConfigError as e:
            error = str(e)
            if error != self.config_error:
                logger.warning("config_load_failed", root=self.root.as_posix(), error=error)
            self.config_error = error
            # keep watching the chain so that fixing any file of it reloads
            self._config_paths = frozenset(e.paths)
            config = EffectiveConfig.empty(self.root)
        else:
            self.config_error = None
            self._config_paths = frozenset(config.sources)
        self._config = config
        self.reload_schema()
        return config

    def reload_schema(self) -> None:
        config = self._config
        found, missing = resolve_dumpfiles(config)
        for entry in missing:
            logger.warning(
                "dump_file_failed",
                path=entry.value,
                origin=entry.origin.as_posix(),
                error="not found",
            )
        self._dump_paths = frozenset(found)
        self.schema.reload(found)

    def _is_config_file(self, path: Path) -> bool:
        return path in self._config_paths or path == self.root / CONFIG_FILENAME

    # -- parsing --------------------------------------------------------------

    def _parse(self, text: str) -> Tree:
        with self._parser_lock:
            return self._parser.parse(text)

    def _extract_facts(self, path: Path, tree: Tree) -> FileFacts:
        return FileFacts(
            path=path,
            symbols=tuple(extract_symbols(tree, path)),
            includes=tuple(collect_include_refs(tree, path)),
        )

    def load_facts(self, path: Path) -> FileFacts | None:
        """Facts of an included file, from the open document or a cached parse."""
        state = self._documents.get(path)
        if state is not None:
            return state.facts
        try:
            stat = path.stat()
        except OSError:
            return None
        key = (stat.st_mtime_ns, stat.st_size)
        with self._facts_lock:
            cached = self._facts.get(path)
        if cached is not None and cached[0] == key:
            return cached[1]
        text = _read_text(path)
        if text is None:
            return None
        facts = self._extract_facts(path, self._parse(text))
        with self._facts_lock:
            self._facts[path] = (key, facts)
        return facts

    def _load_refs(self, path: Path) -> Sequence[IncludeRef] | None:
        facts = self.load_facts(path)
        return facts.includes if facts is not None else None

    def analyze(self, path: Path, text: str, version: int = 0) -> DocumentState:
        """Parse and analyse one document version without storing it."""
        config = self._config
        tree = self._parse(text)
        facts = self._extract_facts(path, tree)
        graph = build_include_graph(path, facts.includes, config, self._load_refs)
        included = [f for f in (self.load_facts(p) for p in graph.paths) if f is not None]
        symbols = build_symbol_table(path, facts.symbols, included)
        refs = collect_refs(tree)
        engine = ResolutionEngine(text, symbols, self.schema.snapshot, refs, tree.line_index)
        diagnostics = produce_diagnostics(tree, engine, refs, config, path, graph.unresolved)
        logger.debug(
            "document_analyzed",
            path=path.as_posix(),
            version=version,
            includes=len(graph.entries),
            unresolved=len(graph.unresolved),
            diagnostics=len(diagnostics),
        )
        return DocumentState(
            path=path,
            text=text,
            version=version,
            tree=tree,
            facts=facts,
            refs=refs,
            graph=graph,
            symbols=symbols,
            config=config,
            diagnostics=tuple(diagnostics),
        )

    def _store(self, state: DocumentState, *, replaces: DocumentState | None = None) -> bool:
        """Store ``state`` and publish its diagnostics.

        With ``replaces``, the store only happens while that exact state is
        still the stored one; a newer edit or a close in between wins.
        """
        with self._documents_lock:
            if replaces is not None and self._documents.get(state.path) is not replaces:
                return False
            self._documents[state.path] = state
        if self._publish is not None:
            self._publish(state.uri, list(state.diagnostics))
        return True

    # -- document lifecycle -------------------------------------------------

    def open_document(self, uri: str | Path, text: str, version: int = 0) -> DocumentState:
        path = to_path(uri)
        state = self.analyze(path, text, version)
        self._store(state)
        return state

    def change_document(self, uri: str | Path, text: str, version: int = 0) -> DocumentState:
        """Re-analyse from the full new text; the previous state is replaced whole."""
        return self.open_document(uri, text, version)

    def close_document(self, uri: str | Path) -> None:
        path = to_path(uri)
        with self._documents_lock:
            state = self._documents.pop(path, None)
        if state is not None and self._publish is not None:
            self._publish(state.uri, [])

    def save_document(self, uri: str | Path, text: str | None = None) -> list[Path]:
        """Apply the reload triggers of a saved file.

        Returns the paths of the documents that were re-analysed.
        """
        path = to_path(uri)
        with self._facts_lock:
            self._facts.pop(path, None)
        state = self._documents.get(path)
        if state is not None and text is not None and text != state.text:
            self._store(self.analyze(path, text, state.version), replaces=state)

        if self._is_config_file(path):
            self.reload_config()
            return self.reanalyze()
        if path in self._dump_paths:
            self.reload_schema()
            return self.reanalyze()
        with self._documents_lock:
            dependents = [
                p
                for p, s in self._documents.items()
                if p != path and s.graph.contains(path)
            ]
        return self.reanalyze(dependents)

    def reanalyze(self, paths: Sequence[Path] | None = None) -> list[Path]:
        with self._documents_lock:
            states = [
                s for p, s in self._documents.items() if paths is None or p in paths
            ]
        return [
            state.path
            for state in states
            if self._store(
                self.analyze(state.path, state.text, state.version), replaces=state
            )
        ]

    def document(self, uri: str | Path) -> DocumentState | None:
        """The open document, or a transient analysis of the file on disk."""
        path = to_path(uri)
        state = self._documents.get(path)
        if state is not None:
            return state
        text = _read_text(path)
        if text is None:
            return None
        return self.analyze(path, text)

    @property
    def open_paths(self) -> list[Path]:
        return sorted(self._documents)

    # -- queries --------------------------------------------------------------

    def _engine(self, uri: str | Path) -> tuple[DocumentState, ResolutionEngine] | None:
        state = self.document(uri)
        if state is None:
            return None
        engine = ResolutionEngine(
            state.text,
            state.symbols,
            self.schema.snapshot,
            state.refs,
            state.tree.line_index,
        )
        return state, engine

    def definition(self, uri: str | Path, position: Position) -> Location | None:
        found = self._engine(uri)
        if found is None:
            return None
        state, engine = found
        for ref in state.facts.includes:
            if ref.site.span.contains(position):
                target = resolve_include(ref.token, state.config, state.path)
                return _file_start(target) if target is not None else None
        return engine.resolve_definition(position)

    def references(self, uri: str | Path, position: Position) -> list[Location]:
        found = self._engine(uri)
        return found[1].resolve_references(position) if found else []

    def declarations(self, uri: str | Path, position: Position) -> list[Location]:
        found = self._engine(uri)
        return found[1].declarations(position) if found else []

    def completion(self, uri: str | Path, position: Position) -> list[CompletionItem]:
        found = self._engine(uri)
        if found is None or not found[0].config.completion_enabled:
            return []
        return found[1].complete(position)

    def hover(self, uri: str | Path, position: Position) -> HoverPayload | None:
        found = self._engine(uri)
        return found[1].hover(position) if found else None

    def signature_help(self, uri: str | Path, position: Position) -> SignatureInfo | None:
        found = self._engine(uri)
        return found[1].signature_at(position) if found else None

    def diagnostics(self, uri: str | Path) -> list[Diagnostic]:
        state = self.document(uri)
        return list(state.diagnostics) if state is not None else []


def _file_start(path: Path) -> Location:
    return Location(path=path.as_posix(), span=Span.from_points((0, 0), (0, 0)))


__all__ = ["DocumentState", "Workspace"]
