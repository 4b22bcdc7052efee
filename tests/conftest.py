"""moltmem test configuration."""
import os
import sys
import pytest
from pathlib import Path

# Ensure moltmem package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def tmp_moltmem_dir(tmp_path):
    """Create a temporary MOLTMEM_HOME for testing."""
    home = tmp_path / ".moltbot"
    home.mkdir()
    old_home = os.environ.get("MOLTMEM_HOME")
    os.environ["MOLTMEM_HOME"] = str(home)
    yield home
    if old_home is not None:
        os.environ["MOLTMEM_HOME"] = old_home
    else:
        os.environ.pop("MOLTMEM_HOME", None)


@pytest.fixture
def db_path(tmp_moltmem_dir):
    return tmp_moltmem_dir / "test.db"


@pytest.fixture
def config(db_path):
    """Write-through config pointing at the temp database."""
    from moltmem.config import StoreConfig
    return StoreConfig(db_path=db_path)


@pytest.fixture
def store(config):
    """Create and initialize a fresh SQLiteStore for testing."""
    from moltmem.sqlite_store import SQLiteStore
    s = SQLiteStore(config)
    s.init()
    yield s
    s.close()


@pytest.fixture
def make_store(db_path):
    """Factory for stores with custom settings; all are closed at teardown."""
    from moltmem.config import StoreConfig
    from moltmem.sqlite_store import SQLiteStore

    created = []

    def _make(**kwargs):
        kwargs.setdefault("db_path", db_path)
        s = SQLiteStore(StoreConfig(**kwargs))
        s.init()
        created.append(s)
        return s

    yield _make
    for s in created:
        s.close()
