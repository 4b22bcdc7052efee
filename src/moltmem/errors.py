"""moltmem error kinds.

Every failure surfaced by the store is a MemoryStoreError subclass whose
``kind`` names the condition, so callers (and the MCP layer) can tell them
apart without string matching.
"""


class MemoryStoreError(Exception):
    """Base exception for all moltmem errors."""

    kind = "error"


class NotInitializedError(MemoryStoreError):
    """Operation invoked before init() succeeded or after close()."""

    kind = "not_initialized"

    def __init__(self, message: str = "Memory store not initialized. Call init() first."):
        super().__init__(message)


class StorageIOError(MemoryStoreError):
    """Directory creation, load or flush of the database file failed."""

    kind = "storage_io"


class SchemaError(MemoryStoreError):
    """Table or index creation failed; the store cannot initialize."""

    kind = "schema"
