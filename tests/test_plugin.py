"""Tests for the host plugin contract: init, HANDLERS, shutdown."""
import pytest

from moltmem import plugin
from moltmem.config import StoreConfig
from moltmem.errors import NotInitializedError


@pytest.fixture
def ctx(db_path):
    c = plugin.init({"dbPath": str(db_path)})
    yield c
    plugin.shutdown(c)


class TestDescriptor:

    def test_identity(self):
        assert plugin.PLUGIN_ID == "moltbot-memory-sqlite"
        assert plugin.PLUGIN_SLOT == "memory"
        assert plugin.PLUGIN_NAME == "SQLite Memory"

    def test_handler_names(self):
        assert set(plugin.HANDLERS) == {"memory_store", "memory_recall", "memory_forget", "memory_stats"}


class TestLifecycle:

    def test_init_from_mapping(self, db_path):
        c = plugin.init({"dbPath": str(db_path), "maxMemories": 3})
        try:
            assert c.store.config.max_memories == 3
            assert db_path.exists()
        finally:
            plugin.shutdown(c)

    def test_init_from_store_config(self, config):
        c = plugin.init(config)
        try:
            assert c.store.config is config
        finally:
            plugin.shutdown(c)

    def test_handlers_fail_after_shutdown(self, db_path):
        c = plugin.init({"dbPath": str(db_path)})
        plugin.shutdown(c)
        assert c.store is None
        with pytest.raises(NotInitializedError, match="Plugin not initialized"):
            plugin.HANDLERS["memory_recall"](c, {"query": "x"})

    def test_shutdown_idempotent(self, db_path):
        c = plugin.init({"dbPath": str(db_path)})
        plugin.shutdown(c)
        plugin.shutdown(c)

    def test_empty_context(self):
        with pytest.raises(NotInitializedError):
            plugin.HANDLERS["memory_stats"](plugin.PluginContext(), {})

    def test_independent_contexts(self, tmp_path):
        a = plugin.init({"dbPath": str(tmp_path / "a.db")})
        b = plugin.init({"dbPath": str(tmp_path / "b.db")})
        try:
            plugin.memory_store(a, {"text": "only in a"})
            assert plugin.memory_stats(a)["total"] == 1
            assert plugin.memory_stats(b)["total"] == 0
        finally:
            plugin.shutdown(a)
            plugin.shutdown(b)


class TestHandlers:

    def test_store_returns_camel_case_record(self, ctx):
        rec = plugin.HANDLERS["memory_store"](ctx, {
            "text": "User lives in Switzerland",
            "category": "fact",
            "importance": 0.8,
            "sessionKey": "s-1",
            "metadata": {"source": "chat"},
        })
        assert rec["text"] == "User lives in Switzerland"
        assert rec["category"] == "fact"
        assert rec["importance"] == 0.8
        assert rec["sessionKey"] == "s-1"
        assert rec["metadata"] == {"source": "chat"}
        assert rec["createdAt"] == rec["updatedAt"]
        assert "textLower" not in rec

    def test_store_minimal(self, ctx):
        rec = plugin.HANDLERS["memory_store"](ctx, {"text": "bare"})
        assert rec["category"] == "other"
        assert rec["importance"] == 0.7
        assert "sessionKey" not in rec
        assert "metadata" not in rec

    def test_recall_params(self, ctx):
        store = plugin.HANDLERS["memory_store"]
        store(ctx, {"text": "ok", "importance": 0.99})
        pref = store(ctx, {"text": "Prefers dark mode", "category": "preference"})
        store(ctx, {"text": "Dark roast coffee", "category": "fact"})

        results = plugin.HANDLERS["memory_recall"](ctx, {"query": "dark", "category": "preference"})
        assert [r["id"] for r in results] == [pref["id"]]

        everything = plugin.HANDLERS["memory_recall"](ctx, {"limit": 10, "filterNoise": False})
        assert everything[0]["text"] == "ok"
        assert len(everything) == 3

        filtered = plugin.HANDLERS["memory_recall"](ctx, {})
        assert "ok" not in [r["text"] for r in filtered]

    @pytest.mark.parametrize("limit,expected", [
        (2.5, 2), ("3", 3), (None, 4), ("many", 4), (-1, 4), (0, 4),
    ])
    def test_recall_loose_limit(self, ctx, limit, expected):
        """Host limits are truncated to int; unusable ones fall back to 5."""
        for i in range(4):
            plugin.HANDLERS["memory_store"](ctx, {"text": f"memory {i}"})
        results = plugin.HANDLERS["memory_recall"](ctx, {"query": "memory", "limit": limit})
        assert len(results) == expected

    def test_recall_date_params(self, ctx):
        rec = plugin.HANDLERS["memory_store"](ctx, {"text": "dated"})
        assert plugin.HANDLERS["memory_recall"](ctx, {"dateFrom": rec["createdAt"]})[0]["id"] == rec["id"]
        assert plugin.HANDLERS["memory_recall"](ctx, {"dateTo": "2000-01-01"}) == []

    def test_forget_by_id_and_query(self, ctx):
        store = plugin.HANDLERS["memory_store"]
        a = store(ctx, {"text": "alpha entry"})
        store(ctx, {"text": "beta entry"})
        store(ctx, {"text": "beta again"})

        assert plugin.HANDLERS["memory_forget"](ctx, {"memoryId": a["id"]}) == {"deleted": 1}
        assert plugin.HANDLERS["memory_forget"](ctx, {"query": "beta"}) == {"deleted": 2}
        assert plugin.HANDLERS["memory_forget"](ctx, {}) == {"deleted": 0}

    def test_stats(self, ctx):
        plugin.HANDLERS["memory_store"](ctx, {"text": "a", "category": "fact"})
        plugin.HANDLERS["memory_store"](ctx, {"text": "b"})
        assert plugin.HANDLERS["memory_stats"](ctx, {}) == {
            "total": 2,
            "byCategory": {"fact": 1, "other": 1},
        }

    def test_records_persist_across_sessions(self, db_path):
        c1 = plugin.init(StoreConfig(db_path=db_path, autosave_interval=60_000))
        plugin.memory_store(c1, {"text": "flushed on shutdown"})
        plugin.shutdown(c1)

        c2 = plugin.init({"dbPath": str(db_path)})
        try:
            assert [r["text"] for r in plugin.memory_recall(c2, {"query": "flushed"})] == ["flushed on shutdown"]
        finally:
            plugin.shutdown(c2)
