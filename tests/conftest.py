"""
Shared fixtures for the Bedside Board test suite.

The global storage instance is created on import, so DB_PATH and LOG_DIR are
pointed at a scratch directory before any `bedside` module is loaded. Each
test then works against its own SQLite file under `tmp_path`.
"""
import os
import tempfile

_scratch = tempfile.mkdtemp(prefix="bedside-tests-")
os.environ["DB_PATH"] = os.path.join(_scratch, "import.db")
os.environ["LOG_DIR"] = os.path.join(_scratch, "logs")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from bedside.care import CareRecords  # noqa: E402
from bedside.days import DayBook  # noqa: E402
from bedside.main import app  # noqa: E402
from bedside.middleware.rate_limiter import write_limiter  # noqa: E402
from bedside.models import Metric, Settings  # noqa: E402
from bedside.settings import SettingsStore  # noqa: E402
from bedside.storage import BoardStorage, storage  # noqa: E402


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "board.db")


@pytest.fixture
def store(db_path):
    """A fresh, isolated storage instance."""
    return BoardStorage(db_path=db_path)


@pytest.fixture
def settings_store(store):
    return SettingsStore(store)


@pytest.fixture
def day_book(store):
    return DayBook(store)


@pytest.fixture
def care(store):
    return CareRecords(store)


@pytest.fixture
def client(tmp_path, monkeypatch):
    """
    TestClient bound to the app's global services, re-pointed at a new database.
    """
    monkeypatch.setattr(storage, "db_path", str(tmp_path / "api.db"))
    storage._init_db()
    write_limiter.reset()
    return TestClient(app)


@pytest.fixture
def headers():
    return {"X-User-Id": "patient-1"}


@pytest.fixture
def pain_energy_settings():
    """Settings with Pain and Energy on a 0-10 scale, admitted two days before 2024-03-15."""
    return Settings(
        metrics=[
            Metric(id="pain", name="Pain", icon="😣", min_value=0, max_value=10, default_value=0, sort_order=0),
            Metric(id="energy", name="Energy", icon="⚡", min_value=0, max_value=10, default_value=5, sort_order=1),
        ],
        event_types=[],
        admission_date="2024-03-13",
    )
