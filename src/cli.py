"""Command-line interface for abl-ls."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import orjson

from contract.models import Position
from log import configure_logging
from scan.files import find_source_files
from workspace.state import Workspace


def _add_common_paths(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--root",
        default=".",
        help="Workspace root holding abl.toml (default: .)",
    )


def _add_position(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("file", help="Source file")
    parser.add_argument("line", type=int, help="Line (1-based)")
    parser.add_argument("column", type=int, help="Column (1-based)")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="abl-ls")
    parser.add_argument("--json", action="store_true", help="Emit JSON output")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Minimum level of log records on stderr (default: WARNING)",
    )
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check", help="Report diagnostics")
    _add_common_paths(check_parser)
    check_parser.add_argument(
        "paths",
        nargs="*",
        help="Files to check (default: every source file under the root)",
    )

    for name, help_text in (
        ("definition", "Go to the definition of the name at a position"),
        ("hover", "Show hover information for the name at a position"),
        ("complete", "List completion candidates at a position"),
    ):
        query_parser = subparsers.add_parser(name, help=help_text)
        _add_common_paths(query_parser)
        _add_position(query_parser)

    includes_parser = subparsers.add_parser("includes", help="Show the include graph of a file")
    _add_common_paths(includes_parser)
    includes_parser.add_argument("file", help="Source file")

    schema_parser = subparsers.add_parser("schema", help="List indexed schema tables")
    _add_common_paths(schema_parser)

    return parser


def _emit_json(payload: Any) -> None:
    opts = orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2
    sys.stdout.buffer.write(orjson.dumps(payload, option=opts))
    sys.stdout.buffer.write(b"\n")
    sys.stdout.flush()


def _position(args: argparse.Namespace) -> Position:
    return Position(line=max(args.line - 1, 0), character=max(args.column - 1, 0))


def _display_path(path: Path | str, root: Path) -> str:
    path = Path(path)
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def _handle_check(workspace: Workspace, paths: list[str], *, as_json: bool) -> int:
    root = workspace.root
    files = [Path(p).expanduser().resolve() for p in paths] or list(find_source_files(root))
    has_errors = False
    report: list[dict[str, Any]] = []
    for file in files:
        diagnostics = workspace.diagnostics(file)
        has_errors = has_errors or any(d.severity == "error" for d in diagnostics)
        if as_json:
            report.append(
                {
                    "path": _display_path(file, root),
                    "diagnostics": [d.model_dump(mode="json") for d in diagnostics],
                }
            )
            continue
        for diag in diagnostics:
            start = diag.span.start
            sys.stdout.write(
                f"{_display_path(file, root)}:{start.line + 1}:{start.character + 1}: "
                f"{diag.severity}: {diag.message} [{diag.source}]\n"
            )
    if as_json:
        _emit_json(report)
    if workspace.config_error:
        sys.stderr.write(f"config: {workspace.config_error}\n")
    return 1 if has_errors else 0


def _handle_definition(workspace: Workspace, args: argparse.Namespace) -> int:
    location = workspace.definition(Path(args.file).resolve(), _position(args))
    if location is None:
        sys.stderr.write("no definition found\n")
        return 1
    if args.json:
        _emit_json(location.model_dump(mode="json"))
        return 0
    start = location.span.start
    sys.stdout.write(
        f"{_display_path(location.path, workspace.root)}:{start.line + 1}:{start.character + 1}\n"
    )
    return 0


def _handle_hover(workspace: Workspace, args: argparse.Namespace) -> int:
    payload = workspace.hover(Path(args.file).resolve(), _position(args))
    if payload is None:
        sys.stderr.write("nothing to show\n")
        return 1
    if args.json:
        _emit_json(payload.model_dump(mode="json"))
        return 0
    sys.stdout.write(payload.to_markdown() + "\n")
    return 0


def _handle_complete(workspace: Workspace, args: argparse.Namespace) -> int:
    items = workspace.completion(Path(args.file).resolve(), _position(args))
    if args.json:
        _emit_json([item.model_dump(mode="json") for item in items])
        return 0
    for item in items:
        sys.stdout.write(f"{item.label}\t{item.kind}\t{item.detail or ''}\n")
    return 0


def _handle_includes(workspace: Workspace, args: argparse.Namespace) -> int:
    state = workspace.document(Path(args.file).resolve())
    if state is None:
        sys.stderr.write(f"cannot read {args.file}\n")
        return 2
    root = workspace.root
    graph = state.graph
    if args.json:
        _emit_json(
            {
                "root": _display_path(graph.root, root),
                "includes": [
                    {
                        "path": _display_path(entry.path, root),
                        "token": entry.token,
                        "from": _display_path(entry.parent, root),
                    }
                    for entry in graph.entries
                ],
                "unresolved": [
                    {"token": item.token, "from": _display_path(item.parent, root)}
                    for item in graph.unresolved
                ],
                "cycles": [
                    [_display_path(p, root) for p in cycle] for cycle in graph.cycles()
                ],
            }
        )
        return 0
    for entry in graph.entries:
        sys.stdout.write(
            f"{_display_path(entry.path, root)} <- {{{entry.token}}} "
            f"in {_display_path(entry.parent, root)}\n"
        )
    for item in graph.unresolved:
        sys.stdout.write(
            f"unresolved: {{{item.token}}} in {_display_path(item.parent, root)}\n"
        )
    for cycle in graph.cycles():
        sys.stdout.write("cycle: " + " -> ".join(_display_path(p, root) for p in cycle) + "\n")
    return 0


def _handle_schema(workspace: Workspace, *, as_json: bool) -> int:
    snapshot = workspace.schema.snapshot
    tables = sorted(snapshot.tables.values(), key=lambda t: t.key)
    if as_json:
        _emit_json(
            {
                "version": snapshot.version,
                "files": [_display_path(p, workspace.root) for p in snapshot.files],
                "errors": dict(snapshot.errors),
                "tables": [
                    {
                        "name": table.name,
                        "fields": [f.name for f in table.fields],
                        "indexes": [i.name for i in table.indexes],
                        "path": _display_path(table.location.path, workspace.root),
                    }
                    for table in tables
                ],
            }
        )
        return 0
    for table in tables:
        sys.stdout.write(
            f"{table.name}\t{len(table.fields)} field(s)\t"
            f"{_display_path(table.location.path, workspace.root)}\n"
        )
    for path, error in sorted(snapshot.errors.items()):
        sys.stderr.write(f"{path}: {error}\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, json_format=args.log_json)
    root = Path(args.root).expanduser().resolve()
    workspace = Workspace(root)

    if args.command == "check":
        return _handle_check(workspace, args.paths, as_json=args.json)

    if args.command == "definition":
        return _handle_definition(workspace, args)

    if args.command == "hover":
        return _handle_hover(workspace, args)

    if args.command == "complete":
        return _handle_complete(workspace, args)

    if args.command == "includes":
        return _handle_includes(workspace, args)

    if args.command == "schema":
        return _handle_schema(workspace, as_json=args.json)

    raise AssertionError


if __name__ == "__main__":
    raise SystemExit(main())
