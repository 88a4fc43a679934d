import logging
import uuid

from bedside.models import EventType, EventTypeInput, Metric, MetricInput, Settings
from bedside.storage import BoardStorage, storage

logger = logging.getLogger(__name__)

DEFAULT_METRICS = [
    {"id": "pain", "name": "Pain", "icon": "😣", "min_value": 0, "max_value": 10, "default_value": 0},
    {"id": "anxiety", "name": "Anxiety", "icon": "😰", "min_value": 0, "max_value": 10, "default_value": 0},
    {"id": "energy", "name": "Energy", "icon": "⚡", "min_value": 0, "max_value": 10, "default_value": 5},
]

DEFAULT_EVENT_TYPES = [
    {"name": "Obs done", "icon": "🩺"},
    {"name": "Bloods", "icon": "🩸"},
    {"name": "ECG", "icon": "💓"},
    {"name": "Scan/X-ray", "icon": "📷"},
    {"name": "Doctor round", "icon": "👨‍⚕️"},
    {"name": "Medication", "icon": "💊"},
    {"name": "Meal", "icon": "🍽️"},
]


def generate_id() -> str:
    return str(uuid.uuid4())


class SettingsStore:
    """
    Per-user metric and event type lists.

    Both lists are seeded with defaults by `ensure_defaults` whenever they are
    empty, which includes a user who deleted every entry: the next settings
    read brings the defaults back.
    """

    def __init__(self, store: BoardStorage = None):
        self.storage = store or storage

    def _ensure_defaults(self, cursor, user_id: str):
        cursor.execute('SELECT COUNT(*) FROM metrics WHERE user_id = ?', (user_id,))
        if cursor.fetchone()[0] == 0:
            for order, metric in enumerate(DEFAULT_METRICS):
                cursor.execute('''
                    INSERT INTO metrics (user_id, id, name, icon, min_value, max_value, default_value, sort_order)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''', (user_id, metric["id"], metric["name"], metric["icon"], metric["min_value"],
                      metric["max_value"], metric["default_value"], order))
            logger.info(f"Seeded {len(DEFAULT_METRICS)} default metrics for {user_id}")

        cursor.execute('SELECT COUNT(*) FROM event_types WHERE user_id = ?', (user_id,))
        if cursor.fetchone()[0] == 0:
            for order, event_type in enumerate(DEFAULT_EVENT_TYPES):
                cursor.execute('''
                    INSERT INTO event_types (user_id, id, name, icon, sort_order)
                    VALUES (?, ?, ?, ?, ?)
                ''', (user_id, generate_id(), event_type["name"], event_type["icon"], order))
            logger.info(f"Seeded {len(DEFAULT_EVENT_TYPES)} default event types for {user_id}")

    def ensure_defaults(self, user_id: str):
        """Seed default metrics / event types for any list that is currently empty."""
        with self.storage.transaction() as cursor:
            self.storage._ensure_user(cursor, user_id)
            self._ensure_defaults(cursor, user_id)

    def _needs_defaults(self, user_id: str) -> bool:
        with self.storage._get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT
                    (SELECT COUNT(*) FROM users WHERE id = ?),
                    (SELECT COUNT(*) FROM metrics WHERE user_id = ?),
                    (SELECT COUNT(*) FROM event_types WHERE user_id = ?)
            ''', (user_id, user_id, user_id))
            return 0 in cursor.fetchone()

    def get_settings(self, user_id: str) -> Settings:
        # Only a missing user or an empty list takes the write lock
        if self._needs_defaults(user_id):
            self.ensure_defaults(user_id)

        with self.storage.snapshot() as cursor:
            cursor.execute('''
                SELECT id, name, icon, min_value, max_value, default_value, sort_order
                FROM metrics WHERE user_id = ?
                ORDER BY sort_order ASC, seq ASC
            ''', (user_id,))
            metrics = [
                Metric(id=r[0], name=r[1], icon=r[2], min_value=r[3], max_value=r[4],
                       default_value=r[5], sort_order=r[6])
                for r in cursor.fetchall()
            ]

            cursor.execute('''
                SELECT id, name, icon, sort_order FROM event_types
                WHERE user_id = ?
                ORDER BY sort_order ASC, seq ASC
            ''', (user_id,))
            event_types = [
                EventType(id=r[0], name=r[1], icon=r[2], sort_order=r[3])
                for r in cursor.fetchall()
            ]

            cursor.execute('SELECT admission_date FROM users WHERE id = ?', (user_id,))
            row = cursor.fetchone()
            admission_date = row[0] if row else None

        return Settings(metrics=metrics, event_types=event_types, admission_date=admission_date)

    # --- Metrics ---

    def add_metric(self, user_id: str, data: MetricInput) -> Metric:
        metric = Metric(id=generate_id(), **data.model_dump())
        with self.storage.transaction() as cursor:
            self.storage._ensure_user(cursor, user_id)
            cursor.execute('''
                INSERT INTO metrics (user_id, id, name, icon, min_value, max_value, default_value, sort_order)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ''', (user_id, metric.id, metric.name, metric.icon, metric.min_value,
                  metric.max_value, metric.default_value, metric.sort_order))
        return metric

    def update_metric(self, user_id: str, metric: Metric):
        with self.storage.transaction() as cursor:
            cursor.execute('''
                UPDATE metrics
                SET name = ?, icon = ?, min_value = ?, max_value = ?, default_value = ?, sort_order = ?
                WHERE user_id = ? AND id = ?
            ''', (metric.name, metric.icon, metric.min_value, metric.max_value,
                  metric.default_value, metric.sort_order, user_id, metric.id))

    def delete_metric(self, user_id: str, metric_id: str):
        # Stored day metric_values keep their key for this id; readers ignore it
        with self.storage.transaction() as cursor:
            cursor.execute('DELETE FROM metrics WHERE user_id = ? AND id = ?', (user_id, metric_id))

    # --- Event types ---

    def add_event_type(self, user_id: str, data: EventTypeInput) -> EventType:
        event_type = EventType(id=generate_id(), **data.model_dump())
        with self.storage.transaction() as cursor:
            self.storage._ensure_user(cursor, user_id)
            cursor.execute('''
                INSERT INTO event_types (user_id, id, name, icon, sort_order)
                VALUES (?, ?, ?, ?, ?)
            ''', (user_id, event_type.id, event_type.name, event_type.icon, event_type.sort_order))
        return event_type

    def update_event_type(self, user_id: str, event_type: EventType):
        with self.storage.transaction() as cursor:
            cursor.execute('''
                UPDATE event_types SET name = ?, icon = ?, sort_order = ?
                WHERE user_id = ? AND id = ?
            ''', (event_type.name, event_type.icon, event_type.sort_order, user_id, event_type.id))

    def delete_event_type(self, user_id: str, event_type_id: str):
        with self.storage.transaction() as cursor:
            cursor.execute('DELETE FROM event_types WHERE user_id = ? AND id = ?', (user_id, event_type_id))


# Global instance
settings_store = SettingsStore()
