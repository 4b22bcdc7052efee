"""
moltmem Plugin -- the host-facing request/response contract.

The host calls ``init(config)`` once, keeps the returned PluginContext and
passes it into every handler call; there is no module-level store instance.
Handlers take and return plain dicts using the host's camelCase keys.

    ctx = init({"dbPath": "/tmp/memory.db", "maxMemories": 500})
    HANDLERS["memory_store"](ctx, {"text": "User prefers dark mode", "category": "preference"})
    HANDLERS["memory_recall"](ctx, {"query": "dark mode"})
    shutdown(ctx)
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from moltmem import __version__
from moltmem.config import StoreConfig
from moltmem.errors import NotInitializedError
from moltmem.sqlite_store import SQLiteStore

logger = logging.getLogger("moltmem.plugin")

PLUGIN_ID = "moltbot-memory-sqlite"
PLUGIN_NAME = "SQLite Memory"
PLUGIN_SLOT = "memory"
PLUGIN_VERSION = __version__


class PluginContext:
    """Owns the active store for one host session."""

    __slots__ = ("store",)

    def __init__(self, store: Optional[SQLiteStore] = None):
        self.store = store

    def require_store(self) -> SQLiteStore:
        if self.store is None:
            raise NotInitializedError("Plugin not initialized")
        return self.store


def init(config: Union[StoreConfig, Mapping[str, Any], None] = None) -> PluginContext:
    """Open a store from *config* and return the context the handlers need."""
    if not isinstance(config, StoreConfig):
        config = StoreConfig.from_mapping(config)
    store = SQLiteStore(config)
    store.init()
    logger.info("%s %s initialized (db=%s)", PLUGIN_ID, PLUGIN_VERSION, config.db_path)
    return PluginContext(store)


def shutdown(ctx: PluginContext) -> None:
    """Flush and close the context's store. Safe to call more than once."""
    if ctx.store is not None:
        ctx.store.close()
        ctx.store = None


# ============================================================================
# Handlers
# ============================================================================


def memory_store(ctx: PluginContext, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Store a memory. Params: text, category, importance, sessionKey, metadata."""
    store = ctx.require_store()
    record = store.store(
        text=params.get("text"),
        category=params.get("category"),
        importance=params.get("importance"),
        session_key=params.get("sessionKey"),
        metadata=params.get("metadata"),
    )
    return record.to_dict()


def memory_recall(ctx: PluginContext, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Recall memories. Params: query, limit, category, dateFrom, dateTo, filterNoise."""
    store = ctx.require_store()
    records = store.recall(
        query=params.get("query", ""),
        limit=params.get("limit"),
        category=params.get("category"),
        date_from=params.get("dateFrom"),
        date_to=params.get("dateTo"),
        filter_noise=params.get("filterNoise", True),
    )
    return [r.to_dict() for r in records]


def memory_forget(ctx: PluginContext, params: Mapping[str, Any]) -> Dict[str, int]:
    """Delete memories. Params: memoryId, or query."""
    store = ctx.require_store()
    return store.forget(memory_id=params.get("memoryId"), query=params.get("query"))


def memory_stats(ctx: PluginContext, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Total count and per-category counts."""
    stats = ctx.require_store().stats()
    return {"total": stats["total"], "byCategory": stats["by_category"]}


HANDLERS: Dict[str, Callable[..., Any]] = {
    "memory_store": memory_store,
    "memory_recall": memory_recall,
    "memory_forget": memory_forget,
    "memory_stats": memory_stats,
}
