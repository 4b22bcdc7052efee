"""Tests for StoreConfig defaults, host mappings and environment variables."""
from pathlib import Path

import pytest

from moltmem.config import (
    DEFAULT_IMPORTANCE,
    DEFAULT_MAX_MEMORIES,
    DEFAULT_NOISE_PATTERNS,
    StoreConfig,
    default_db_path,
)


class TestDefaults:

    def test_defaults(self, tmp_moltmem_dir):
        cfg = StoreConfig()
        assert cfg.db_path == tmp_moltmem_dir / "memory.db"
        assert cfg.max_memories == DEFAULT_MAX_MEMORIES == 10000
        assert cfg.default_importance == DEFAULT_IMPORTANCE == 0.7
        assert cfg.noise_patterns == list(DEFAULT_NOISE_PATTERNS)
        assert cfg.autosave_interval == 0
        assert cfg.write_through is True

    def test_default_db_path_follows_home(self, tmp_moltmem_dir):
        assert default_db_path() == tmp_moltmem_dir / "memory.db"

    def test_noise_patterns_are_case_insensitive(self):
        cfg = StoreConfig(db_path="/tmp/x.db")
        assert any(rx.search("THANK YOU") for rx in cfg.noise_regexes)
        assert not any(rx.search("thank you for the report") for rx in cfg.noise_regexes)

    @pytest.mark.parametrize("text,noise", [
        ("ok", True), ("OK", True), ("ok\n", False), ("ok ", False), ("\n", True), ("", True),
    ])
    def test_noise_end_anchor(self, text, noise):
        cfg = StoreConfig(db_path="/tmp/x.db")
        assert any(rx.search(text) for rx in cfg.noise_regexes) is noise

    @pytest.mark.parametrize("pattern,text", [
        (r"^cost \$5$", "cost $5"),
        (r"^[$]+$", "$$"),
    ])
    def test_literal_dollars_untouched(self, pattern, text):
        cfg = StoreConfig(db_path="/tmp/x.db", noise_patterns=[pattern])
        assert cfg.noise_regexes[0].search(text)
        assert not cfg.noise_regexes[0].search(text + "\n")

    def test_write_back(self):
        assert StoreConfig(db_path="/tmp/x.db", autosave_interval=5000).write_through is False


class TestValidation:

    def test_coerces_strings(self):
        cfg = StoreConfig(db_path="~/mem.db", max_memories="50", default_importance="0.4", autosave_interval="100")
        assert cfg.db_path == Path("~/mem.db").expanduser()
        assert cfg.max_memories == 50
        assert cfg.default_importance == 0.4
        assert cfg.autosave_interval == 100

    @pytest.mark.parametrize("value", [0, -5])
    def test_max_memories_must_be_positive(self, value):
        with pytest.raises(ValueError, match="max_memories"):
            StoreConfig(db_path="/tmp/x.db", max_memories=value)

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError, match="autosave_interval"):
            StoreConfig(db_path="/tmp/x.db", autosave_interval=-1)

    def test_bad_regex_rejected(self):
        with pytest.raises(ValueError, match="noise pattern"):
            StoreConfig(db_path="/tmp/x.db", noise_patterns=["(unclosed"])

    @pytest.mark.parametrize("value", [0.5, "0.5", 1500.25])
    def test_fractional_interval_rejected(self, value):
        """A sub-millisecond interval must not silently become write-through."""
        with pytest.raises(ValueError, match="whole number"):
            StoreConfig(db_path="/tmp/x.db", autosave_interval=value)

    def test_integral_float_interval_accepted(self):
        cfg = StoreConfig(db_path="/tmp/x.db", autosave_interval=2000.0, max_memories="100")
        assert cfg.autosave_interval == 2000
        assert cfg.max_memories == 100
        assert cfg.write_through is False

    def test_fractional_max_memories_rejected(self):
        with pytest.raises(ValueError, match="max_memories"):
            StoreConfig(db_path="/tmp/x.db", max_memories=10.5)

    def test_non_numeric_rejected(self):
        with pytest.raises(ValueError):
            StoreConfig(db_path="/tmp/x.db", max_memories="lots")


class TestFromMapping:

    def test_host_keys(self, tmp_path):
        cfg = StoreConfig.from_mapping({
            "dbPath": str(tmp_path / "host.db"),
            "maxMemories": 250,
            "defaultImportance": 0.5,
            "noisePatterns": ["^meh$"],
            "autoSaveInterval": 30000,
        })
        assert cfg.db_path == tmp_path / "host.db"
        assert cfg.max_memories == 250
        assert cfg.default_importance == 0.5
        assert cfg.noise_patterns == ["^meh$"]
        assert cfg.autosave_interval == 30000

    def test_field_names_also_accepted(self, tmp_path):
        cfg = StoreConfig.from_mapping({"db_path": tmp_path / "a.db", "max_memories": 7})
        assert cfg.max_memories == 7

    def test_missing_values_fall_back_per_field(self, tmp_moltmem_dir):
        cfg = StoreConfig.from_mapping({"maxMemories": None, "defaultImportance": 0.9, "dbPath": ""})
        assert cfg.max_memories == DEFAULT_MAX_MEMORIES
        assert cfg.default_importance == 0.9
        assert cfg.db_path == tmp_moltmem_dir / "memory.db"

    def test_unknown_keys_ignored(self, tmp_path):
        cfg = StoreConfig.from_mapping({"dbPath": str(tmp_path / "a.db"), "embeddingModel": "none"})
        assert cfg.db_path == tmp_path / "a.db"

    def test_overrides_win(self, tmp_path):
        cfg = StoreConfig.from_mapping({"maxMemories": 10}, max_memories=20, db_path=tmp_path / "b.db")
        assert cfg.max_memories == 20

    def test_none_mapping(self, tmp_moltmem_dir):
        assert StoreConfig.from_mapping(None).db_path == tmp_moltmem_dir / "memory.db"


class TestFromEnv:

    def test_reads_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MOLTMEM_DB_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("MOLTMEM_MAX_MEMORIES", "123")
        monkeypatch.setenv("MOLTMEM_DEFAULT_IMPORTANCE", "0.3")
        monkeypatch.setenv("MOLTMEM_AUTOSAVE_INTERVAL", "2000")
        cfg = StoreConfig.from_env()
        assert cfg.db_path == tmp_path / "env.db"
        assert cfg.max_memories == 123
        assert cfg.default_importance == 0.3
        assert cfg.autosave_interval == 2000

    def test_empty_env_values_use_defaults(self, tmp_moltmem_dir, monkeypatch):
        monkeypatch.setenv("MOLTMEM_MAX_MEMORIES", "")
        monkeypatch.delenv("MOLTMEM_DB_PATH", raising=False)
        cfg = StoreConfig.from_env()
        assert cfg.max_memories == DEFAULT_MAX_MEMORIES
        assert cfg.db_path == tmp_moltmem_dir / "memory.db"

    def test_explicit_db_path_beats_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MOLTMEM_DB_PATH", str(tmp_path / "env.db"))
        cfg = StoreConfig.from_env(db_path=str(tmp_path / "cli.db"))
        assert cfg.db_path == tmp_path / "cli.db"

    def test_none_override_keeps_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MOLTMEM_DB_PATH", str(tmp_path / "env.db"))
        assert StoreConfig.from_env(db_path=None).db_path == tmp_path / "env.db"
