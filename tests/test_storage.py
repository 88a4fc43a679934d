import sqlite3

import pytest

from bedside.days import DayBook
from bedside.models import EventEntry, Question
from bedside.settings import SettingsStore
from bedside.storage import BoardStorage


def _user_count(store, user_id):
    with store._get_db() as conn:
        return conn.execute("SELECT COUNT(*) FROM users WHERE id = ?", (user_id,)).fetchone()[0]


def test_schema_uses_wal_and_creates_tables(store):
    with store._get_db() as conn:
        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}

    assert mode.lower() == "wal"
    for table in ("users", "metrics", "event_types", "day_data", "events", "questions",
                  "vitals", "medications", "medication_doses", "care_team"):
        assert table in tables


def test_ensure_user_is_idempotent(store):
    assert store.ensure_user("u1") is True
    assert store.ensure_user("u1") is False
    assert _user_count(store, "u1") == 1
    assert store.get_admission_date("u1") is None


def test_admission_date_set_and_clear(store):
    store.update_admission_date("u1", "2024-03-10")
    assert store.get_admission_date("u1") == "2024-03-10"

    store.update_admission_date("u1", None)
    assert store.get_admission_date("u1") is None


def test_unknown_user_has_no_admission_date(store):
    assert store.get_admission_date("nobody") is None


def test_transaction_rolls_back_on_error(store):
    with pytest.raises(RuntimeError):
        with store.transaction() as cursor:
            store._ensure_user(cursor, "u1")
            raise RuntimeError("boom")

    assert _user_count(store, "u1") == 0


def test_reopening_existing_database_keeps_data(db_path):
    first = BoardStorage(db_path=db_path)
    first.update_admission_date("u1", "2024-01-01")

    second = BoardStorage(db_path=db_path)
    assert second.get_admission_date("u1") == "2024-01-01"


def test_legacy_fixed_columns_migrate_to_metric_values(tmp_path):
    path = str(tmp_path / "legacy.db")
    conn = sqlite3.connect(path)
    conn.executescript('''
        CREATE TABLE users (
            id TEXT PRIMARY KEY,
            name TEXT,
            admission_date TEXT,
            created_at TEXT DEFAULT (datetime('now'))
        );
        CREATE TABLE day_data (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            mood INTEGER,
            pain INTEGER DEFAULT 0,
            anxiety INTEGER DEFAULT 0,
            energy INTEGER DEFAULT 5,
            notes TEXT DEFAULT '',
            created_at TEXT DEFAULT (datetime('now')),
            updated_at TEXT DEFAULT (datetime('now')),
            UNIQUE(user_id, date)
        );
        CREATE TABLE events (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            time TEXT NOT NULL,
            type TEXT NOT NULL,
            note TEXT,
            created_at TEXT DEFAULT (datetime('now'))
        );
        INSERT INTO users (id, admission_date) VALUES ('old-user', '2024-03-10');
        INSERT INTO day_data (user_id, date, mood, pain, anxiety, energy, notes)
            VALUES ('old-user', '2024-03-12', 2, 3, 1, 7, 'before upgrade');
        INSERT INTO events (id, user_id, date, time, type) VALUES ('e1', 'old-user', '2024-03-12', '10:00', 'ECG');
    ''')
    conn.commit()
    conn.close()

    store = BoardStorage(db_path=path)
    day = DayBook(store).get_day("old-user", "2024-03-12")

    assert day.mood == 2
    assert day.metric_values == {"pain": 3, "anxiety": 1, "energy": 7}
    assert day.notes == "before upgrade"
    assert [e.id for e in day.events] == ["e1"]
    assert store.get_admission_date("old-user") == "2024-03-10"


def test_migrated_rows_merge_like_new_ones(tmp_path):
    path = str(tmp_path / "legacy.db")
    conn = sqlite3.connect(path)
    conn.executescript('''
        CREATE TABLE day_data (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            mood INTEGER,
            pain INTEGER DEFAULT 0,
            anxiety INTEGER DEFAULT 0,
            energy INTEGER DEFAULT 5,
            notes TEXT DEFAULT '',
            created_at TEXT,
            updated_at TEXT,
            UNIQUE(user_id, date)
        );
        INSERT INTO day_data (user_id, date, pain) VALUES ('u', '2024-03-12', 4);
    ''')
    conn.commit()
    conn.close()

    days = DayBook(BoardStorage(db_path=path))
    days.update_day("u", "2024-03-12", {"metric_values": {"pain": 6}})

    assert days.get_day("u", "2024-03-12").metric_values == {"pain": 6, "anxiety": 0, "energy": 5}


def test_reads_do_not_wait_for_a_writer(db_path):
    store = BoardStorage(db_path=db_path, busy_timeout=0.2)
    days = DayBook(store)
    settings = SettingsStore(store)
    days.update_day("u1", "2024-03-15", {"notes": "committed"})
    settings.get_settings("u1")

    blocker = sqlite3.connect(db_path)
    blocker.execute("BEGIN IMMEDIATE")
    blocker.execute("UPDATE day_data SET notes = 'pending' WHERE user_id = 'u1'")
    try:
        with pytest.raises(sqlite3.OperationalError):
            store.ensure_user("someone-new")

        assert days.get_day("u1", "2024-03-15").notes == "committed"
        assert len(settings.get_settings("u1").metrics) == 3
        assert days.list_days_with_data("u1") == ["2024-03-15"]
    finally:
        blocker.rollback()
        blocker.close()


def test_child_tables_are_keyed_by_sequence(store):
    with store._get_db() as conn:
        for table in ("metrics", "event_types", "events", "questions", "vitals",
                      "medications", "medication_doses", "care_team"):
            pk = [info[1] for info in conn.execute(f"PRAGMA table_info({table})") if info[5]]
            assert pk == ["seq"], table


def test_event_order_survives_vacuum(store):
    days = DayBook(store)
    for event_id in ["e-b", "e-c", "e-a"]:
        days.add_event("u1", "2024-03-15", EventEntry(id=event_id, time="08:00", type="Obs done"))
    days.delete_event("u1", "e-c")

    with store._get_db() as conn:
        conn.execute("VACUUM")

    days.add_event("u1", "2024-03-15", EventEntry(id="e-d", time="09:00", type="ECG"))
    assert [e.id for e in days.get_day("u1", "2024-03-15").events] == ["e-d", "e-a", "e-b"]


def test_tables_without_sequence_are_rebuilt_in_order(tmp_path):
    path = str(tmp_path / "composite.db")
    conn = sqlite3.connect(path)
    conn.executescript('''
        CREATE TABLE questions (
            id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            text TEXT NOT NULL,
            answered INTEGER NOT NULL DEFAULT 0,
            created_at TEXT,
            PRIMARY KEY (user_id, id)
        );
        CREATE INDEX idx_questions_user_date ON questions(user_id, date);
        INSERT INTO questions (id, user_id, date, text) VALUES ('q-z', 'u1', '2024-03-15', 'First?');
        INSERT INTO questions (id, user_id, date, text, answered) VALUES ('q-a', 'u1', '2024-03-15', 'Second?', 1);
    ''')
    conn.commit()
    conn.close()

    store = BoardStorage(db_path=path)
    days = DayBook(store)
    days.add_question("u1", "2024-03-15", Question(id="q-m", text="Third?"))

    questions = days.get_day("u1", "2024-03-15").questions
    assert [q.id for q in questions] == ["q-z", "q-a", "q-m"]
    assert [q.answered for q in questions] == [False, True, False]
    with pytest.raises(ValueError):
        days.add_question("u1", "2024-03-15", Question(id="q-z", text="Again?"))

    # Reopening does not rebuild a second time
    BoardStorage(db_path=path)
    assert [q.id for q in days.get_day("u1", "2024-03-15").questions] == ["q-z", "q-a", "q-m"]
