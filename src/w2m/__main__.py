"""Entry point: python -m w2m [chat|serve|categories ...]

- No args / "chat":  Interactive CLI REPL (development/testing)
- "serve":           Daemon mode (production, with configured connectors)
- "categories":      Manage category definitions
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from w2m.config import W2MConfig, load_config
from w2m.storage.base import StorageError

if TYPE_CHECKING:
    from w2m.core import W2M


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _run_cli(config: W2MConfig) -> int:
    """Interactive CLI REPL mode."""
    from w2m.connectors.cli import CLIConnector
    from w2m.daemon import W2MDaemon

    w2m = W2MDaemon(config).build_w2m()
    w2m.add_connector(CLIConnector())

    try:
        asyncio.run(w2m.start())
    except KeyboardInterrupt:
        pass
    return 0


def _run_serve(config: W2MConfig) -> int:
    """Daemon mode: connectors only, until SIGTERM/SIGINT."""
    from w2m.daemon import W2MDaemon

    return asyncio.run(W2MDaemon(config).run())


# ── categories subcommand ────────────────────────────────────


def _build_categories_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="w2m categories", description="Manage categories")
    sub = parser.add_subparsers(dest="action", required=True)

    sub.add_parser("list", help="List categories")

    show = sub.add_parser("show", help="Show a category and its archived messages")
    show.add_argument("name")

    for action in ("add", "update"):
        p = sub.add_parser(action, help=f"{action.capitalize()} a category")
        p.add_argument("name")
        p.add_argument("--description", "-d")
        p.add_argument("--fields", "-f", help="Comma list of AUTOR,HORA,FECHA,CONTENIDO")
        p.add_argument("--separator", "-s", help="1-3 character prefix (default ',,')")

    remove = sub.add_parser("remove", help="Remove a category")
    remove.add_argument("name")
    remove.add_argument("--purge", action="store_true", help="Also delete its markdown file")

    return parser


def _run_categories(config: W2MConfig, argv: list[str]) -> int:
    from w2m.categories.registry import CategoryField
    from w2m.core import W2M

    args = _build_categories_parser().parse_args(argv)
    w2m = W2M(config)

    fields = None
    if getattr(args, "fields", None):
        try:
            fields = CategoryField.parse(args.fields.split(","))
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2

    try:
        return _dispatch_categories(w2m, args, fields)
    except (StorageError, OSError) as e:
        print(f"Storage error: {e}", file=sys.stderr)
        return 1


def _dispatch_categories(w2m: W2M, args: argparse.Namespace, fields) -> int:
    registry = w2m.registry

    if args.action == "list":
        if not len(registry):
            print("No categories configured.")
        for category in registry.list():
            print(
                f"{category.separator}{category.name}  "
                f"[{', '.join(category.enabled_fields.labels)}]"
                + (f"  {category.description}" if category.description else "")
            )
        return 0

    if args.action == "show":
        category = registry.get(args.name)
        if category is None:
            print(f"Category not found: {args.name}", file=sys.stderr)
            return 1
        doc = asyncio.run(w2m.writer.read_document(category.name))
        count = len(doc.messages) if doc else 0
        print(f"{category.name} ({registry.markdown_path(category.name)}): {count} messages")
        for message in doc.messages if doc else []:
            print(f"  [{message.date} {message.time}] {message.sender}: {message.content}")
        return 0

    if args.action == "add":
        try:
            added = registry.add(args.name, args.description, fields, args.separator)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
        if not added:
            print(f"Category already exists: {args.name}", file=sys.stderr)
            return 1
        asyncio.run(_init_document(w2m, args.name))
        category = registry.get(args.name)
        print(f"Added {category.name}; write messages as '{category.separator}{category.name} ...'")
        return 0

    if args.action == "update":
        if not registry.update(args.name, args.description, fields, args.separator):
            print(f"Category not found: {args.name}", file=sys.stderr)
            return 1
        print(f"Updated {args.name}")
        return 0

    if args.action == "remove":
        if not registry.remove(args.name):
            print(f"Category not found: {args.name}", file=sys.stderr)
            return 1
        if args.purge:
            asyncio.run(w2m.writer.delete_document(args.name))
        print(f"Removed {args.name}")
        return 0

    return 2


async def _init_document(w2m: W2M, name: str) -> None:
    await w2m.storage.initialize()
    await w2m.writer.create_document(name)


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    cmd = argv[0] if argv else "chat"

    config = load_config()
    _setup_logging(config.log_level)

    if cmd in ("chat", "repl"):
        return _run_cli(config)
    elif cmd == "serve":
        return _run_serve(config)
    elif cmd == "categories":
        return _run_categories(config, argv[1:])
    else:
        print("Usage: python -m w2m [chat|serve|categories]")
        print("  chat        Interactive CLI REPL (default)")
        print("  serve       Daemon mode with configured connectors")
        print("  categories  list | show | add | update | remove")
        return 1


if __name__ == "__main__":
    sys.exit(main())
