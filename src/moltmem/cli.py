"""moltmem CLI -- store, recall, forget, stats and server management."""

import argparse
import json
import sys
import time
from datetime import datetime, timezone

from moltmem.types import MemoryCategory


def _open_store(args):
    """Open a store from MOLTMEM_* env vars, honouring --db."""
    from moltmem.config import StoreConfig
    from moltmem.sqlite_store import SQLiteStore

    store = SQLiteStore(StoreConfig.from_env(db_path=getattr(args, "db", None)))
    store.init()
    return store


def _format_age(created_at: str) -> str:
    """Format an ISO timestamp as a short relative age string."""
    try:
        dt = datetime.fromisoformat(created_at)
    except (TypeError, ValueError):
        return ""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    seconds = int((datetime.now(timezone.utc) - dt).total_seconds())
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    days = seconds // 86400
    if days < 7:
        return f"{days}d ago"
    if days < 30:
        return f"{days // 7}w ago"
    return f"{days // 30}mo ago"


def cmd_store(args):
    """Store a memory."""
    text = " ".join(args.text)
    if not text.strip():
        print("Usage: moltmem store <text> [-c CATEGORY] [-i IMPORTANCE]", file=sys.stderr)
        sys.exit(1)

    store = _open_store(args)
    try:
        record = store.store(
            text=text,
            category=args.category,
            importance=args.importance,
            session_key=args.session,
        )
    finally:
        store.close()
    print(f"Stored [{record.category}] {record.id}: {text[:80]}")


def cmd_recall(args):
    """Recall memories by keyword, category and date range."""
    query_text = " ".join(args.query_text)
    start = time.monotonic()

    store = _open_store(args)
    try:
        results = store.recall(
            query=query_text,
            limit=args.limit,
            category=args.category,
            date_from=args.date_from,
            date_to=args.date_to,
            filter_noise=not args.no_filter_noise,
        )
    finally:
        store.close()
    elapsed = time.monotonic() - start

    if args.json:
        out = [r.to_dict() for r in results]
        print(json.dumps({"results": out, "count": len(out), "elapsed_s": round(elapsed, 3)}, indent=2))
        return

    if not results:
        print(f'No results for "{query_text}" ({elapsed:.2f}s)')
        return
    for r in results:
        preview = r.text[:120].replace("\n", " ")
        print(f"{r.importance:>5.2f}  {r.category:<12} {preview}  ({_format_age(r.created_at)}, {r.id[:8]})")
    print(f"\n{len(results)} result(s) ({elapsed:.2f}s)")


def cmd_forget(args):
    """Delete a memory by id, or every memory matching a query."""
    query_text = " ".join(args.query_text)
    if not args.id and not query_text.strip():
        print("Usage: moltmem forget (--id ID | <query>)", file=sys.stderr)
        sys.exit(1)

    store = _open_store(args)
    try:
        result = store.forget(memory_id=args.id, query=query_text or None)
    finally:
        store.close()
    print(f"Deleted {result['deleted']} memor{'y' if result['deleted'] == 1 else 'ies'}")


def cmd_stats(args):
    """Show memory counts per category."""
    store = _open_store(args)
    try:
        stats = store.stats()
    finally:
        store.close()

    if args.json:
        print(json.dumps(stats, indent=2))
        return

    print(f"Memories: {stats['total']}  ({store.db_path})")
    for category, count in sorted(stats["by_category"].items(), key=lambda x: -x[1]):
        print(f"  {category:<14} {count}")


def cmd_serve(args):
    """Run the MCP server (stdio by default, Streamable HTTP with --http)."""
    import asyncio
    from moltmem.config import StoreConfig

    config = StoreConfig.from_env(db_path=getattr(args, "db", None))

    if args.http:
        from moltmem.server.http_server import get_or_create_api_key, run_http

        api_key = None if args.no_auth else get_or_create_api_key()
        asyncio.run(run_http(args.host, args.port, api_key, config=config))
    else:
        from moltmem.server.mcp_server import main

        asyncio.run(main(config))


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="moltmem",
        description="moltmem -- SQLite long-term memory for AI agents",
    )
    parser.add_argument("--db", default=None, help="Database file (default: $MOLTMEM_DB_PATH or ~/.moltbot/memory.db)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    categories = list(MemoryCategory.values())

    store_parser = subparsers.add_parser("store", help="Store a memory")
    store_parser.add_argument("text", nargs="+", help="Memory text")
    store_parser.add_argument("-c", "--category", default=None, choices=categories, help="Category (default: other)")
    store_parser.add_argument("-i", "--importance", type=float, default=None, help="Importance (default: 0.7)")
    store_parser.add_argument("--session", default=None, help="Session key")

    recall_parser = subparsers.add_parser("recall", help="Recall memories by keyword")
    recall_parser.add_argument("query_text", nargs="*", help="Keywords (empty = top memories)")
    recall_parser.add_argument("--limit", type=int, default=5, help="Max results (default: 5)")
    recall_parser.add_argument("-c", "--category", default=None, choices=categories, help="Filter by category")
    recall_parser.add_argument("--from", dest="date_from", default=None, help="Created at or after (ISO-8601)")
    recall_parser.add_argument("--to", dest="date_to", default=None, help="Created at or before (ISO-8601)")
    recall_parser.add_argument("--no-filter-noise", action="store_true", help="Include filler like 'ok'")
    recall_parser.add_argument("--json", action="store_true", help="Output as JSON")

    forget_parser = subparsers.add_parser("forget", help="Delete memories by id or query")
    forget_parser.add_argument("query_text", nargs="*", help="Delete memories matching these keywords")
    forget_parser.add_argument("--id", default=None, help="Delete exactly this memory")

    stats_parser = subparsers.add_parser("stats", help="Show memory counts per category")
    stats_parser.add_argument("--json", action="store_true", help="Output as JSON")

    serve_parser = subparsers.add_parser("serve", help="Run MCP server (stdio, or HTTP with --http)")
    serve_parser.add_argument("--http", action="store_true", help="Serve Streamable HTTP instead of stdio")
    serve_parser.add_argument("--host", default="127.0.0.1", help="HTTP bind host (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8089, help="HTTP port (default: 8089)")
    serve_parser.add_argument("--no-auth", action="store_true", help="Disable the HTTP API key check")

    args = parser.parse_args(argv)

    commands = {
        "store": cmd_store,
        "recall": cmd_recall,
        "forget": cmd_forget,
        "stats": cmd_stats,
        "serve": cmd_serve,
    }

    if args.command not in commands:
        parser.print_help()
        return

    from moltmem.errors import MemoryStoreError

    try:
        commands[args.command](args)
    except MemoryStoreError as e:
        print(f"Error ({e.kind}): {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
