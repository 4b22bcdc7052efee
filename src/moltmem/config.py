"""
moltmem configuration -- a single StoreConfig with documented defaults.

Fields can come from three places, merged field by field over the defaults:
  - keyword arguments (Python callers),
  - a host mapping using the host's keys (dbPath, maxMemories, ...),
  - MOLTMEM_* environment variables (CLI and servers).
"""

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, List, Mapping, Optional, Pattern, Tuple

DEFAULT_MAX_MEMORIES = 10000
DEFAULT_IMPORTANCE = 0.7
DEFAULT_AUTOSAVE_INTERVAL_MS = 0
DEFAULT_NOISE_PATTERNS: Tuple[str, ...] = (
    r"^(ok|okay|yes|no|thanks|thank you|sure|got it|cool|nice|great)$",
    r"^\s*$",
)

# Host key -> dataclass field
_HOST_KEYS = {
    "dbPath": "db_path",
    "maxMemories": "max_memories",
    "defaultImportance": "default_importance",
    "noisePatterns": "noise_patterns",
    "autoSaveInterval": "autosave_interval",
}


def _strict_end_anchors(pattern: str) -> str:
    """Rewrite bare ``$`` (outside character classes) as ``\\Z``.

    Python's ``$`` also matches just before a trailing newline; noise
    patterns are meant to anchor at the true end of the text, so "ok\\n"
    is not "ok".
    """
    out = []
    escaped = in_class = False
    for ch in pattern:
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif in_class:
            in_class = ch != "]"
        elif ch == "[":
            in_class = True
        elif ch == "$":
            out.append(r"\Z")
            continue
        out.append(ch)
    return "".join(out)


def _integral(name: str, value: Any) -> int:
    number = float(value)
    if not number.is_integer():
        raise ValueError(f"{name} must be a whole number, got {value!r}")
    return int(number)


def moltmem_home() -> Path:
    """Resolve MOLTMEM_HOME lazily so tests can override via env var."""
    return Path(os.environ.get("MOLTMEM_HOME", str(Path.home() / ".moltbot")))


def default_db_path() -> Path:
    return moltmem_home() / "memory.db"


@dataclass
class StoreConfig:
    """Store settings.

    Attributes:
        db_path: Database file. Parent directories are created on init.
        max_memories: Record-count ceiling enforced after every store.
        default_importance: Importance used when a store call omits one.
        noise_patterns: Case-insensitive regexes searched in the text; a
            recalled memory matching any of them is dropped unless filtering
            is disabled. ``$`` anchors at the very end of the text only.
        autosave_interval: Milliseconds between background flushes.
            0 flushes synchronously after every write. Must be a whole number.
    """

    db_path: Path = field(default_factory=default_db_path)
    max_memories: int = DEFAULT_MAX_MEMORIES
    default_importance: float = DEFAULT_IMPORTANCE
    noise_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_NOISE_PATTERNS))
    autosave_interval: int = DEFAULT_AUTOSAVE_INTERVAL_MS

    def __post_init__(self):
        self.db_path = Path(self.db_path).expanduser()
        self.max_memories = _integral("max_memories", self.max_memories)
        self.default_importance = float(self.default_importance)
        self.autosave_interval = _integral("autosave_interval", self.autosave_interval)
        self.noise_patterns = list(self.noise_patterns)
        if self.max_memories < 1:
            raise ValueError(f"max_memories must be a positive integer, got {self.max_memories}")
        if self.autosave_interval < 0:
            raise ValueError(f"autosave_interval must be >= 0 ms, got {self.autosave_interval}")
        try:
            self._noise_res = [
                re.compile(_strict_end_anchors(p), re.IGNORECASE) for p in self.noise_patterns
            ]
        except re.error as e:
            raise ValueError(f"Invalid noise pattern: {e}") from e

    @property
    def noise_regexes(self) -> List[Pattern]:
        return self._noise_res

    @property
    def write_through(self) -> bool:
        return self.autosave_interval == 0

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None, **overrides) -> "StoreConfig":
        """Build a config from host keys (dbPath, ...) or field names.

        Missing, None or empty-string values fall back to the defaults one
        field at a time. Unknown keys are ignored.
        """
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for source in (data or {}, overrides):
            for key, value in source.items():
                name = _HOST_KEYS.get(key, key)
                if name in names and value is not None and value != "":
                    kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_env(cls, **overrides) -> "StoreConfig":
        """Build a config from MOLTMEM_* environment variables."""
        env = {
            "db_path": os.environ.get("MOLTMEM_DB_PATH"),
            "max_memories": os.environ.get("MOLTMEM_MAX_MEMORIES"),
            "default_importance": os.environ.get("MOLTMEM_DEFAULT_IMPORTANCE"),
            "autosave_interval": os.environ.get("MOLTMEM_AUTOSAVE_INTERVAL"),
        }
        return cls.from_mapping(env, **overrides)
