"""memstore command line entry point.

Operates on a snapshot file: the store is loaded from it, the command runs,
and the snapshot is written back on shutdown.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict, replace
from pathlib import Path

from memstore.memory import StoreAccessor
from memstore.service.config import StoreConfig
from memstore.service.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memstore",
        description="memstore - vector-backed memory store",
    )
    parser.add_argument(
        "--data",
        help="Snapshot file (default: $MEMSTORE_PERSISTENCE_PATH)",
    )
    parser.add_argument(
        "--log-level",
        default="warning",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Log level (default: warning)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Force JSON log output (default: auto-detect)",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("collections", help="List collections")

    stats = commands.add_parser("stats", help="Show collection statistics")
    stats.add_argument("collection")

    export = commands.add_parser("export", help="Export a collection as JSON")
    export.add_argument("collection")
    export.add_argument("-o", "--output", help="Write to file instead of stdout")
    export.add_argument(
        "--no-embeddings",
        action="store_true",
        help="Leave embedding vectors out of the export",
    )

    imp = commands.add_parser("import", help="Import a JSON export into a collection")
    imp.add_argument("collection")
    imp.add_argument("file")

    return parser


async def run(args: argparse.Namespace, config: StoreConfig) -> int:
    accessor = StoreAccessor(config)
    store = await accessor.get_store()
    try:
        if args.command == "collections":
            for name in await store.list_collections():
                print(name)
        elif args.command == "stats":
            stats = await store.get_memory_stats(args.collection)
            print(json.dumps(asdict(stats), indent=2))
        elif args.command == "export":
            payload = await store.export_memories(
                args.collection, include_embeddings=not args.no_embeddings
            )
            if args.output:
                Path(args.output).write_text(payload, encoding="utf-8")
            else:
                print(payload)
        elif args.command == "import":
            data = Path(args.file).read_text(encoding="utf-8")
            count = await store.import_memories(args.collection, data)
            logger.info("import_complete", imported=count)
            print(f"Imported {count} memories into '{args.collection}'")
    finally:
        await accessor.shutdown()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the memstore CLI."""
    args = build_parser().parse_args(argv)

    configure_logging(
        level=args.log_level.upper(),
        json_output=args.json_logs if args.json_logs else None,
    )

    try:
        config = StoreConfig.from_env()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 2

    if args.data:
        config = replace(config, persistence_path=args.data)
    if not config.persistence_path:
        print("Error: no snapshot file; pass --data or set MEMSTORE_PERSISTENCE_PATH",
              file=sys.stderr)
        return 2

    bind_context(command=args.command)
    try:
        return asyncio.run(run(args, config))
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    finally:
        clear_context()


if __name__ == "__main__":
    sys.exit(main())
