"""moltmem -- SQLite long-term memory for AI agents.

Direct Python API::

    from moltmem import SQLiteStore, StoreConfig
    with SQLiteStore(StoreConfig(db_path="~/.moltbot/memory.db")) as store:
        store.store("User prefers dark mode", category="preference", importance=0.9)
        results = store.recall("dark mode")

Host plugin contract (explicit context, no global state)::

    from moltmem import plugin
    ctx = plugin.init({"dbPath": "~/.moltbot/memory.db"})
    plugin.HANDLERS["memory_recall"](ctx, {"query": "dark mode"})
    plugin.shutdown(ctx)

MCP server: ``moltmem serve`` (stdio) or ``moltmem serve --http``.
"""

__version__ = "0.1.0"

from moltmem.config import StoreConfig
from moltmem.errors import (
    MemoryStoreError,
    NotInitializedError,
    SchemaError,
    StorageIOError,
)
from moltmem.sqlite_store import SQLiteStore, StoreState
from moltmem.types import MemoryCategory, MemoryRecord

__all__ = [
    "SQLiteStore",
    "StoreState",
    "StoreConfig",
    # Types
    "MemoryCategory",
    "MemoryRecord",
    # Errors
    "MemoryStoreError",
    "NotInitializedError",
    "SchemaError",
    "StorageIOError",
    # Meta
    "__version__",
]
