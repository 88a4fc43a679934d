import json
import logging
import sqlite3
from datetime import datetime
from typing import Dict, List, Optional, Union

from bedside.models import (
    DEFAULT_DAYS_LIMIT,
    MAX_DAYS_LIMIT,
    DayAggregate,
    DayPatch,
    EventEntry,
    Question,
    check_date,
)
from bedside.storage import BoardStorage, storage

logger = logging.getLogger(__name__)


class MetricValues(dict):
    """
    Sparse {metric_id: value} map of one day.

    A metric without a key has not been recorded that day and reads as the
    metric's default value. Persisted as a JSON object in day_data.metric_values.
    """

    @classmethod
    def from_json(cls, raw: Optional[str]) -> "MetricValues":
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise sqlite3.DataError(f"Stored metric_values is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise sqlite3.DataError("Stored metric_values is not a JSON object")
        return cls(data)

    def merge(self, changes: Dict[str, float]) -> "MetricValues":
        """New keys are added, existing keys overwritten, all others kept."""
        merged = MetricValues(self)
        merged.update(changes)
        return merged

    def to_json(self) -> str:
        return json.dumps(self, sort_keys=True)


class DayBook:
    """Reads and writes one user's calendar days: mood, metrics, notes, events, questions."""

    def __init__(self, store: BoardStorage = None):
        self.storage = store or storage

    # --- Reads ---

    def get_day(self, user_id: str, date: str) -> DayAggregate:
        """
        Assemble the day view. A date that was never written yields the empty
        view (no mood, no metric values, empty notes) and nothing is persisted
        for it; only the user row may be created.
        """
        check_date(date)
        self.storage.ensure_user(user_id)

        with self.storage.snapshot() as cursor:
            cursor.execute('''
                SELECT mood, metric_values, notes FROM day_data
                WHERE user_id = ? AND date = ?
            ''', (user_id, date))
            row = cursor.fetchone()

            cursor.execute('''
                SELECT id, time, type, note FROM events
                WHERE user_id = ? AND date = ?
                ORDER BY seq DESC
            ''', (user_id, date))
            events = [EventEntry(id=r[0], time=r[1], type=r[2], note=r[3]) for r in cursor.fetchall()]

            cursor.execute('''
                SELECT id, text, answered FROM questions
                WHERE user_id = ? AND date = ?
                ORDER BY seq ASC
            ''', (user_id, date))
            questions = [Question(id=r[0], text=r[1], answered=bool(r[2])) for r in cursor.fetchall()]

        if row:
            mood, metric_values, notes = row[0], MetricValues.from_json(row[1]), row[2] or ""
        else:
            mood, metric_values, notes = None, MetricValues(), ""

        return DayAggregate(
            date=date,
            mood=mood,
            metric_values=metric_values,
            notes=notes,
            events=events,
            questions=questions,
        )

    def list_days_with_data(self, user_id: str, limit: int = DEFAULT_DAYS_LIMIT) -> List[str]:
        """Dates holding a day row, newest first. Days with only events/questions are not listed."""
        if not 1 <= limit <= MAX_DAYS_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_DAYS_LIMIT}")
        with self.storage._get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT DISTINCT date FROM day_data
                WHERE user_id = ?
                ORDER BY date DESC
                LIMIT ?
            ''', (user_id, limit))
            return [r[0] for r in cursor.fetchall()]

    # --- Day row mutation ---

    def update_day(self, user_id: str, date: str, patch: Union[DayPatch, dict]):
        """
        Apply a partial update to a day.

        Scalar fields present in the patch overwrite the stored ones and
        metricValues is merged key by key. The first write to a date creates
        the row and takes metricValues as given. admissionDate belongs to the
        user, so it is set whichever date the patch targets.

        The read-merge-write runs under one write transaction so two patches
        of the same day cannot drop each other's metric keys.
        """
        check_date(date)
        if isinstance(patch, dict):
            patch = DayPatch.model_validate(patch)
        fields = patch.present()
        now = datetime.now().isoformat()

        with self.storage.transaction() as cursor:
            self.storage._ensure_user(cursor, user_id)

            cursor.execute('SELECT id, metric_values FROM day_data WHERE user_id = ? AND date = ?', (user_id, date))
            row = cursor.fetchone()

            if row:
                updates = []
                params = []
                if "mood" in fields:
                    updates.append("mood = ?")
                    params.append(fields["mood"])
                if "metric_values" in fields:
                    merged = MetricValues.from_json(row[1]).merge(fields["metric_values"] or {})
                    updates.append("metric_values = ?")
                    params.append(merged.to_json())
                if "notes" in fields:
                    updates.append("notes = ?")
                    params.append(fields["notes"] or "")

                if updates:
                    updates.append("updated_at = ?")
                    params.append(now)
                    params.append(row[0])
                    sql = f"UPDATE day_data SET {', '.join(updates)} WHERE id = ?"
                    cursor.execute(sql, params)
            else:
                cursor.execute('''
                    INSERT INTO day_data (user_id, date, mood, metric_values, notes, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                ''', (
                    user_id,
                    date,
                    fields.get("mood"),
                    MetricValues(fields.get("metric_values") or {}).to_json(),
                    fields.get("notes") or "",
                    now,
                    now,
                ))

            if "admission_date" in fields:
                self.storage._update_admission_date(cursor, user_id, fields["admission_date"])

    # --- Events ---

    def add_event(self, user_id: str, date: str, event: EventEntry):
        check_date(date)
        with self.storage.transaction() as cursor:
            self.storage._ensure_user(cursor, user_id)
            try:
                cursor.execute('''
                    INSERT INTO events (id, user_id, date, time, type, note, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                ''', (event.id, user_id, date, event.time, event.type, event.note, datetime.now().isoformat()))
            except sqlite3.IntegrityError as e:
                raise ValueError(f"Event {event.id} already exists") from e

    def delete_event(self, user_id: str, event_id: str):
        with self.storage.transaction() as cursor:
            cursor.execute('DELETE FROM events WHERE id = ? AND user_id = ?', (event_id, user_id))

    # --- Questions ---

    def add_question(self, user_id: str, date: str, question: Question):
        check_date(date)
        with self.storage.transaction() as cursor:
            self.storage._ensure_user(cursor, user_id)
            try:
                cursor.execute('''
                    INSERT INTO questions (id, user_id, date, text, answered, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                ''', (question.id, user_id, date, question.text, 1 if question.answered else 0,
                      datetime.now().isoformat()))
            except sqlite3.IntegrityError as e:
                raise ValueError(f"Question {question.id} already exists") from e

    def update_question(self, user_id: str, question_id: str, answered: bool):
        with self.storage.transaction() as cursor:
            cursor.execute(
                'UPDATE questions SET answered = ? WHERE id = ? AND user_id = ?',
                (1 if answered else 0, question_id, user_id),
            )

    def delete_question(self, user_id: str, question_id: str):
        with self.storage.transaction() as cursor:
            cursor.execute('DELETE FROM questions WHERE id = ? AND user_id = ?', (question_id, user_id))


# Global instance
day_book = DayBook()
