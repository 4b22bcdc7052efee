"""
moltmem SQLite Store -- long-term agent memory in a single SQLite file.

The database is worked on as an in-memory image (see moltmem.persistence)
and written back to disk either after every write (autosave_interval=0) or
by a background timer plus a final flush on close.

Retrieval is plain substring matching over a lowercased copy of the text,
ranked by importance then recency; there is no relevance scoring.

Usage:
    store = SQLiteStore(StoreConfig(db_path="/tmp/memory.db"))
    store.init()
    record = store.store("User prefers dark mode", category="preference", importance=0.9)
    results = store.recall("dark mode", limit=5)
    store.close()
"""

import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from moltmem.config import StoreConfig
from moltmem.errors import NotInitializedError, StorageIOError
from moltmem.persistence import flush_image, load_image
from moltmem.schema import ensure_schema
from moltmem.types import DEFAULT_CATEGORY, MemoryCategory, MemoryRecord

logger = logging.getLogger("moltmem.sqlite_store")

DEFAULT_RECALL_LIMIT = 5
FORGET_QUERY_CAP = 100
# Rows fetched per requested result, to make up for noise dropped after the fetch
_OVERFETCH_FACTOR = 2

_SELECT_COLUMNS = "id, text, category, importance, created_at, updated_at, session_key, metadata"


class StoreState(Enum):
    """Lifecycle of a SQLiteStore."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _query_tokens(query: Optional[str]) -> List[str]:
    """Lowercased whitespace tokens longer than one character."""
    return [w for w in (query or "").lower().split() if len(w) > 1]


def _like_escape(token: str) -> str:
    return token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---------------------------------------------------------------------------
# Background auto-save
# ---------------------------------------------------------------------------


class _AutoSaveTimer(threading.Thread):
    """Flushes the store every *interval_s* seconds while it is dirty."""

    def __init__(self, store: "SQLiteStore", interval_s: float):
        super().__init__(name="moltmem-autosave", daemon=True)
        self._store = store
        self._interval_s = interval_s
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.wait(self._interval_s):
            try:
                self._store.save_if_dirty()
            except StorageIOError as e:
                # Dirty flag stays set: the next tick or close() retries.
                logger.warning("Auto-save failed: %s", e)

    def cancel(self) -> None:
        self._stop_event.set()


# ---------------------------------------------------------------------------
# SQLiteStore
# ---------------------------------------------------------------------------


class SQLiteStore:
    """SQLite-backed memory store.

    Single-process, single-writer. Every public operation and every flush
    holds ``self._lock``, so the auto-save thread only ever sees a quiescent
    image.
    """

    def __init__(self, config: Optional[StoreConfig] = None, **overrides):
        if config is None:
            config = StoreConfig.from_mapping(overrides)
        elif overrides:
            raise TypeError("Pass either a StoreConfig or keyword overrides, not both")
        self.config = config
        self.db_path: Path = config.db_path

        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._dirty = False
        self._state = StoreState.UNINITIALIZED
        self._timer: Optional[_AutoSaveTimer] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def dirty(self) -> bool:
        return self._dirty

    def init(self) -> None:
        """Load the database file, ensure the schema and start accepting calls.

        No-op when already READY. A closed store can be initialized again.
        Raises StorageIOError or SchemaError; the store is then left
        UNINITIALIZED.
        """
        with self._lock:
            if self._state is StoreState.READY:
                return
            self._state = StoreState.INITIALIZING
            try:
                conn = load_image(self.db_path)
                try:
                    ensure_schema(conn)
                    flush_image(conn, self.db_path)
                except Exception:
                    conn.close()
                    raise
            except Exception:
                self._state = StoreState.UNINITIALIZED
                raise
            self._conn = conn
            self._dirty = False
            self._state = StoreState.READY
            count = self._count()

        self._start_timer()
        logger.info("Memory store ready at %s (%d memories)", self.db_path, count)

    def close(self) -> None:
        """Stop the auto-save timer, flush if dirty and release the image.

        Idempotent. If the final flush fails the store stays open and the
        StorageIOError propagates, so the caller can retry close().
        """
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            timer.join()

        with self._lock:
            if self._conn is None:
                self._state = StoreState.CLOSED
                return
            if self._dirty:
                try:
                    self._flush_locked()
                except StorageIOError:
                    self._start_timer()
                    raise
            self._conn.close()
            self._conn = None
            self._state = StoreState.CLOSED
        logger.info("Memory store closed (%s)", self.db_path)

    def __enter__(self) -> "SQLiteStore":
        self.init()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _start_timer(self) -> None:
        if self.config.write_through or self._timer is not None:
            return
        self._timer = _AutoSaveTimer(self, self.config.autosave_interval / 1000.0)
        self._timer.start()

    def _require_ready(self) -> None:
        if self._state is not StoreState.READY or self._conn is None:
            raise NotInitializedError()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _flush_locked(self) -> None:
        flush_image(self._conn, self.db_path)
        self._dirty = False
        logger.debug("Flushed memory image to %s", self.db_path)

    def _mark_dirty(self) -> None:
        """Record an unflushed change; write through immediately if configured."""
        self._dirty = True
        if self.config.write_through:
            self._flush_locked()

    def flush(self) -> None:
        """Write the full image to disk now, dirty or not."""
        with self._lock:
            self._require_ready()
            self._flush_locked()

    def save_if_dirty(self) -> bool:
        """Flush only when there are unflushed writes. Returns True if it flushed."""
        with self._lock:
            if self._state is not StoreState.READY or not self._dirty:
                return False
            self._flush_locked()
            return True

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def store(
        self,
        text: str,
        category: Optional[str] = None,
        importance: Optional[float] = None,
        session_key: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MemoryRecord:
        """Store a memory and return it with its generated id and timestamps.

        Nothing about the content is validated: empty text, out-of-range
        importance and unknown categories are stored as given. Importance is
        only coerced to float (TypeError/ValueError if it can't be).
        """
        if not isinstance(text, str):
            raise TypeError(f"text must be a string, got {type(text).__name__}")

        category = getattr(category, "value", category) or DEFAULT_CATEGORY
        if not MemoryCategory.is_known(category):
            logger.warning("Storing memory with unknown category %r", category)
        if importance is None:
            importance = self.config.default_importance
        importance = float(importance)
        now = _now_iso()
        record = MemoryRecord(
            id=str(uuid.uuid4()),
            text=text,
            category=category,
            importance=importance,
            created_at=now,
            updated_at=now,
            session_key=session_key or None,
            metadata=metadata,
        )
        metadata_json = json.dumps(metadata) if metadata is not None else None

        with self._lock:
            self._require_ready()
            self._conn.execute(
                """INSERT INTO memories
                   (id, text, text_lower, category, importance,
                    created_at, updated_at, session_key, metadata)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.id,
                    record.text,
                    record.text.lower(),
                    record.category,
                    record.importance,
                    record.created_at,
                    record.updated_at,
                    record.session_key,
                    metadata_json,
                ),
            )
            self._conn.commit()
            self._mark_dirty()
            self._evict_surplus()

        return record

    def recall(
        self,
        query: Optional[str] = "",
        limit: int = DEFAULT_RECALL_LIMIT,
        category: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        filter_noise: Optional[bool] = True,
    ) -> List[MemoryRecord]:
        """Return up to *limit* memories, most important first, then newest.

        Args:
            query: Whitespace-separated keywords. A memory matches if its text
                contains any keyword longer than one character
                (case-insensitive). Empty or all-short queries match everything.
            limit: Max results, truncated to an int; falsy, non-numeric or
                non-positive means the default of 5.
            category: Exact category filter.
            date_from: Inclusive lower bound on created_at (ISO-8601 string).
            date_to: Inclusive upper bound on created_at (ISO-8601 string).
            filter_noise: Drop memories whose text matches a noise pattern.
                Only an explicit False disables it.

        Noise is removed from a fetch of ``2 * limit`` ranked rows, so when
        noise crowds the top of the ranking fewer than *limit* results can
        come back even though more non-noise matches exist further down.
        """
        with self._lock:
            self._require_ready()
            return self._recall_locked(query, limit, category, date_from, date_to, filter_noise)

    def forget(self, memory_id: Optional[str] = None, query: Optional[str] = None) -> Dict[str, int]:
        """Delete one memory by id, or every memory an unfiltered recall finds.

        *memory_id* wins when both are given; with neither nothing is deleted.
        Query deletion reuses recall(query, limit=100, filter_noise=False).
        Returns {"deleted": <rows actually removed>}.
        """
        with self._lock:
            self._require_ready()
            deleted = 0
            if memory_id:
                cur = self._conn.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
                deleted = cur.rowcount
            elif query:
                matches = self._recall_locked(query, FORGET_QUERY_CAP, None, None, None, False)
                if matches:
                    ids = [m.id for m in matches]
                    placeholders = ",".join("?" * len(ids))
                    cur = self._conn.execute(f"DELETE FROM memories WHERE id IN ({placeholders})", ids)
                    deleted = cur.rowcount
            self._conn.commit()

            if deleted > 0:
                self._mark_dirty()

        if deleted:
            logger.debug("Forgot %d memories", deleted)
        return {"deleted": deleted}

    def stats(self) -> Dict[str, Any]:
        """Total memory count and counts per category."""
        with self._lock:
            self._require_ready()
            total = self._count()
            rows = self._conn.execute(
                "SELECT category, COUNT(*) FROM memories GROUP BY category"
            ).fetchall()
        return {"total": total, "by_category": {cat: n for cat, n in rows}}

    def count(self) -> int:
        """Return total number of memories."""
        with self._lock:
            self._require_ready()
            return self._count()

    # ------------------------------------------------------------------
    # Internals (caller holds self._lock)
    # ------------------------------------------------------------------

    def _count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM memories").fetchone()[0]

    def _recall_locked(
        self,
        query: Optional[str],
        limit: Any,
        category: Optional[str],
        date_from: Optional[str],
        date_to: Optional[str],
        filter_noise: Optional[bool],
    ) -> List[MemoryRecord]:
        try:
            limit = int(limit or DEFAULT_RECALL_LIMIT)
        except (TypeError, ValueError):
            limit = DEFAULT_RECALL_LIMIT
        if limit < 1:
            limit = DEFAULT_RECALL_LIMIT

        conditions: List[str] = []
        values: List[Any] = []

        tokens = _query_tokens(query)
        if tokens:
            conditions.append("(" + " OR ".join(["text_lower LIKE ? ESCAPE '\\'"] * len(tokens)) + ")")
            values.extend(f"%{_like_escape(t)}%" for t in tokens)

        if category:
            conditions.append("category = ?")
            values.append(getattr(category, "value", category))
        if date_from:
            conditions.append("created_at >= ?")
            values.append(date_from)
        if date_to:
            conditions.append("created_at <= ?")
            values.append(date_to)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        values.append(limit * _OVERFETCH_FACTOR)

        # rowid breaks ties between identical timestamps (insertion order)
        rows = self._conn.execute(
            f"""SELECT {_SELECT_COLUMNS}
                FROM memories
                {where}
                ORDER BY importance DESC, created_at DESC, rowid DESC
                LIMIT ?""",
            values,
        ).fetchall()

        results = [self._row_to_record(row) for row in rows]
        if filter_noise is not False:
            results = [r for r in results if not self._is_noise(r.text)]
        return results[:limit]

    def _evict_surplus(self) -> int:
        """Delete the least important, oldest memories above max_memories."""
        surplus = self._count() - self.config.max_memories
        if surplus <= 0:
            return 0

        cur = self._conn.execute(
            """DELETE FROM memories
               WHERE id IN (
                   SELECT id FROM memories
                   ORDER BY importance ASC, created_at ASC, rowid ASC
                   LIMIT ?
               )""",
            (surplus,),
        )
        self._conn.commit()
        evicted = cur.rowcount
        if evicted:
            logger.debug("Evicted %d memories (limit %d)", evicted, self.config.max_memories)
            self._mark_dirty()
        return evicted

    def _is_noise(self, text: str) -> bool:
        return any(rx.search(text) for rx in self.config.noise_regexes)

    @staticmethod
    def _row_to_record(row: tuple) -> MemoryRecord:
        """Convert a database row to a MemoryRecord."""
        mid, text, category, importance, created_at, updated_at, session_key, metadata_json = row
        return MemoryRecord(
            id=mid,
            text=text,
            category=category,
            importance=importance,
            created_at=created_at,
            updated_at=updated_at,
            session_key=session_key or None,
            metadata=json.loads(metadata_json) if metadata_json else None,
        )
