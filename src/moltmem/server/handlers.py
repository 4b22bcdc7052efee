"""
moltmem MCP Handlers -- Maps tool names to async handler functions.

Each handler takes the server's PluginContext plus the tool arguments,
delegates to moltmem.plugin and returns an MCP-compatible response dict
whose text is the JSON result.
"""

import json
import logging
from typing import Any, Dict

from moltmem import plugin
from moltmem.errors import MemoryStoreError
from moltmem.plugin import PluginContext

logger = logging.getLogger("moltmem.server.handlers")

_MAX_RECALL_LIMIT = 100


def _clamp_int(value, default: int, min_val: int = 1, max_val: int = _MAX_RECALL_LIMIT) -> int:
    """Clamp a numeric argument to safe bounds."""
    try:
        v = int(value)
        return max(min_val, min(v, max_val))
    except (TypeError, ValueError):
        return default


# ============================================================================
# Response Helpers
# ============================================================================


def mcp_response(text: str) -> dict:
    """Build a successful MCP response."""
    return {"content": [{"type": "text", "text": str(text)}]}


def mcp_error(text: str) -> dict:
    """Build an error MCP response."""
    return {"content": [{"type": "text", "text": f"Error: {text}"}], "isError": True}


def _json_response(data: Any) -> dict:
    return mcp_response(json.dumps(data, indent=2))


def _store_error(tool: str, e: MemoryStoreError) -> dict:
    logger.error("%s failed (%s): %s", tool, e.kind, e)
    return mcp_error(f"[{e.kind}] {e}")


# ============================================================================
# Handler: memory_store
# ============================================================================


async def handle_memory_store(ctx: PluginContext, arguments: dict) -> dict:
    """Store a memory; returns the stored record."""
    text = arguments.get("text")
    if not isinstance(text, str):
        return mcp_error("text is required")

    try:
        record = plugin.memory_store(ctx, arguments)
        return _json_response(record)
    except MemoryStoreError as e:
        return _store_error("memory_store", e)
    except (TypeError, ValueError) as e:
        logger.error("memory_store rejected arguments: %s", e)
        return mcp_error(f"Invalid arguments: {e}")


# ============================================================================
# Handler: memory_recall
# ============================================================================


async def handle_memory_recall(ctx: PluginContext, arguments: dict) -> dict:
    """Recall memories ranked by importance, then recency."""
    params = dict(arguments)
    params["query"] = arguments.get("query") or ""
    params["limit"] = _clamp_int(arguments.get("limit", 5), default=5)

    try:
        records = plugin.memory_recall(ctx, params)
        return _json_response({"count": len(records), "memories": records})
    except MemoryStoreError as e:
        return _store_error("memory_recall", e)


# ============================================================================
# Handler: memory_forget
# ============================================================================


async def handle_memory_forget(ctx: PluginContext, arguments: dict) -> dict:
    """Delete by memoryId, or everything an unfiltered recall for query finds."""
    memory_id = (arguments.get("memoryId") or "").strip()
    query = (arguments.get("query") or "").strip()
    if not memory_id and not query:
        return mcp_error("memoryId or query is required")

    try:
        result = plugin.memory_forget(ctx, {"memoryId": memory_id or None, "query": query or None})
        return _json_response(result)
    except MemoryStoreError as e:
        return _store_error("memory_forget", e)


# ============================================================================
# Handler: memory_stats
# ============================================================================


async def handle_memory_stats(ctx: PluginContext, arguments: dict) -> dict:
    """Count memories in total and per category."""
    try:
        return _json_response(plugin.memory_stats(ctx, arguments))
    except MemoryStoreError as e:
        return _store_error("memory_stats", e)


HANDLERS: Dict[str, Any] = {
    "memory_store": handle_memory_store,
    "memory_recall": handle_memory_recall,
    "memory_forget": handle_memory_forget,
    "memory_stats": handle_memory_stats,
}
