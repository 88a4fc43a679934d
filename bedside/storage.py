import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from bedside.config import config

logger = logging.getLogger(__name__)

# Default metric ids, shared with the legacy fixed columns of day_data
LEGACY_METRIC_COLUMNS = ("pain", "anxiety", "energy")

# Per-user child tables. Listing order is creation order, kept in the
# AUTOINCREMENT seq column; ids are unique per user only.
SEQUENCED_TABLES = {
    "metrics": '''
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        id TEXT NOT NULL,
        name TEXT NOT NULL,
        icon TEXT NOT NULL,
        min_value INTEGER NOT NULL,
        max_value INTEGER NOT NULL,
        default_value INTEGER NOT NULL,
        sort_order INTEGER NOT NULL DEFAULT 0,
        UNIQUE (user_id, id)
    ''',
    "event_types": '''
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        id TEXT NOT NULL,
        name TEXT NOT NULL,
        icon TEXT NOT NULL,
        sort_order INTEGER NOT NULL DEFAULT 0,
        UNIQUE (user_id, id)
    ''',
    "events": '''
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        date TEXT NOT NULL,       -- YYYY-MM-DD
        time TEXT NOT NULL,       -- HH:MM
        type TEXT NOT NULL,
        note TEXT,
        created_at TEXT,
        UNIQUE (user_id, id)
    ''',
    "questions": '''
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        date TEXT NOT NULL,
        text TEXT NOT NULL,
        answered INTEGER NOT NULL DEFAULT 0,
        created_at TEXT,
        UNIQUE (user_id, id)
    ''',
    "vitals": '''
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        date TEXT NOT NULL,
        time TEXT NOT NULL,
        type TEXT NOT NULL,       -- blood_pressure, heart_rate, ...
        value TEXT NOT NULL,
        unit TEXT NOT NULL,
        note TEXT,
        created_at TEXT,
        UNIQUE (user_id, id)
    ''',
    "medications": '''
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        dosage TEXT NOT NULL DEFAULT '',
        frequency TEXT NOT NULL DEFAULT '',
        icon TEXT NOT NULL,
        notes TEXT,
        active INTEGER NOT NULL DEFAULT 1,
        UNIQUE (user_id, id)
    ''',
    "medication_doses": '''
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        date TEXT NOT NULL,
        medication_id TEXT NOT NULL,
        time TEXT NOT NULL,
        taken INTEGER NOT NULL DEFAULT 1,
        skipped_reason TEXT,
        UNIQUE (user_id, id)
    ''',
    "care_team": '''
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        role TEXT NOT NULL,
        icon TEXT NOT NULL,
        notes TEXT,
        sort_order INTEGER NOT NULL DEFAULT 0,
        UNIQUE (user_id, id)
    ''',
}


class BoardStorage:
    def __init__(self, db_path: str = None, busy_timeout: float = None):
        self.db_path = db_path or config.db_path
        self.busy_timeout = config.db_busy_timeout if busy_timeout is None else busy_timeout
        self._init_db()

    @contextmanager
    def _get_db(self):
        # Ensure directory exists (important)
        if os.path.dirname(self.db_path):
            os.makedirs(os.path.dirname(self.db_path), exist_ok=True)

        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self):
        """
        One logical unit of work holding the database write lock from the start.
        Commits on success; anything raised inside rolls the whole unit back.
        """
        with self._get_db() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn.cursor()
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    @contextmanager
    def snapshot(self):
        """
        Read-only unit of work. Every SELECT inside sees the same committed
        state, and under WAL it neither waits for nor blocks a writer.
        """
        with self._get_db() as conn:
            conn.execute("BEGIN DEFERRED")
            try:
                yield conn.cursor()
            finally:
                conn.rollback()

    def _init_db(self):
        """Initialize the database schema."""
        with self._get_db() as conn:
            cursor = conn.cursor()

            # Write-Ahead Logging lets readers run alongside the single writer
            cursor.execute('PRAGMA journal_mode=WAL;')
            cursor.execute('PRAGMA synchronous = NORMAL;')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    admission_date TEXT,      -- YYYY-MM-DD or NULL
                    created_at TEXT
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS day_data (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    date TEXT NOT NULL,       -- YYYY-MM-DD
                    mood INTEGER,
                    metric_values TEXT NOT NULL DEFAULT '{}',  -- JSON object {metric_id: number}
                    notes TEXT NOT NULL DEFAULT '',
                    created_at TEXT,
                    updated_at TEXT,
                    UNIQUE(user_id, date)
                )
            ''')

            for table, columns in SEQUENCED_TABLES.items():
                cursor.execute(f'CREATE TABLE IF NOT EXISTS {table} ({columns})')

            self._migrate_day_data(cursor)
            for table in SEQUENCED_TABLES:
                self._migrate_to_seq(cursor, table)

            cursor.execute('CREATE INDEX IF NOT EXISTS idx_day_data_user_date ON day_data(user_id, date)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_events_user_date ON events(user_id, date)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_questions_user_date ON questions(user_id, date)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_vitals_user_date ON vitals(user_id, date)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_doses_user_date ON medication_doses(user_id, date)')

            conn.commit()

    def _migrate_day_data(self, cursor):
        """Move the old fixed pain/anxiety/energy columns into metric_values."""
        cursor.execute("PRAGMA table_info(day_data)")
        columns = [info[1] for info in cursor.fetchall()]
        if "metric_values" in columns:
            return

        logger.info("Migrating DB: Adding metric_values to day_data...")
        cursor.execute("ALTER TABLE day_data ADD COLUMN metric_values TEXT NOT NULL DEFAULT '{}'")

        legacy = [c for c in LEGACY_METRIC_COLUMNS if c in columns]
        if not legacy:
            return

        cursor.execute(f"SELECT id, {', '.join(legacy)} FROM day_data")
        rows = cursor.fetchall()
        for row in rows:
            values = {name: value for name, value in zip(legacy, row[1:]) if value is not None}
            cursor.execute(
                "UPDATE day_data SET metric_values = ? WHERE id = ?",
                (json.dumps(values), row[0]),
            )
        logger.info(f"Migrated {len(rows)} day rows to metric_values")

    def _migrate_to_seq(self, cursor, table: str):
        """Rebuild a table created without the seq column, keeping its row order."""
        cursor.execute(f"PRAGMA table_info({table})")
        old_columns = [info[1] for info in cursor.fetchall()]
        if "seq" in old_columns:
            return

        logger.info(f"Migrating DB: Adding seq ordering to {table}...")
        cursor.execute(f"ALTER TABLE {table} RENAME TO {table}_old")
        cursor.execute(f"CREATE TABLE {table} ({SEQUENCED_TABLES[table]})")
        cursor.execute(f"PRAGMA table_info({table})")
        shared = [info[1] for info in cursor.fetchall() if info[1] in old_columns]
        column_list = ", ".join(shared)
        cursor.execute(f'''
            INSERT INTO {table} ({column_list})
            SELECT {column_list} FROM {table}_old ORDER BY rowid
        ''')
        cursor.execute(f"DROP TABLE {table}_old")

    # --- Identity ---

    def _ensure_user(self, cursor, user_id: str) -> bool:
        """Insert the user row if missing. Returns True when it was created."""
        cursor.execute(
            'INSERT OR IGNORE INTO users (id, admission_date, created_at) VALUES (?, NULL, ?)',
            (user_id, datetime.now().isoformat()),
        )
        created = cursor.rowcount == 1
        if created:
            logger.info(f"Created user {user_id}")
        return created

    def user_exists(self, user_id: str) -> bool:
        with self._get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT 1 FROM users WHERE id = ?', (user_id,))
            return cursor.fetchone() is not None

    def ensure_user(self, user_id: str) -> bool:
        """Create the user on first sight. Known users cost a read, not the write lock."""
        if self.user_exists(user_id):
            return False
        with self.transaction() as cursor:
            return self._ensure_user(cursor, user_id)

    def get_admission_date(self, user_id: str) -> Optional[str]:
        with self._get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT admission_date FROM users WHERE id = ?', (user_id,))
            row = cursor.fetchone()
            return row[0] if row else None

    def _update_admission_date(self, cursor, user_id: str, admission_date: Optional[str]):
        cursor.execute('UPDATE users SET admission_date = ? WHERE id = ?', (admission_date, user_id))

    def update_admission_date(self, user_id: str, admission_date: Optional[str]):
        with self.transaction() as cursor:
            self._ensure_user(cursor, user_id)
            self._update_admission_date(cursor, user_id, admission_date)


# Global instance
storage = BoardStorage()
