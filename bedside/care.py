import sqlite3
from datetime import datetime
from typing import List

from bedside.models import (
    CareTeamMember,
    CareTeamMemberInput,
    Medication,
    MedicationDose,
    MedicationInput,
    VitalsReading,
    check_date,
)
from bedside.settings import generate_id
from bedside.storage import BoardStorage, storage


class CareRecords:
    """Vitals readings, medications with their daily doses, and care team contacts."""

    def __init__(self, store: BoardStorage = None):
        self.storage = store or storage

    # --- Vitals ---

    def add_vitals_reading(self, user_id: str, date: str, reading: VitalsReading):
        check_date(date)
        with self.storage.transaction() as cursor:
            self.storage._ensure_user(cursor, user_id)
            try:
                cursor.execute('''
                    INSERT INTO vitals (id, user_id, date, time, type, value, unit, note, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ''', (reading.id, user_id, date, reading.time, reading.type, reading.value,
                      reading.unit, reading.note, datetime.now().isoformat()))
            except sqlite3.IntegrityError as e:
                raise ValueError(f"Vitals reading {reading.id} already exists") from e

    def list_vitals_readings(self, user_id: str, date: str) -> List[VitalsReading]:
        """Readings of one day, newest first."""
        check_date(date)
        with self.storage._get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT id, time, type, value, unit, note FROM vitals
                WHERE user_id = ? AND date = ?
                ORDER BY seq DESC
            ''', (user_id, date))
            return [
                VitalsReading(id=r[0], time=r[1], type=r[2], value=r[3], unit=r[4], note=r[5])
                for r in cursor.fetchall()
            ]

    def delete_vitals_reading(self, user_id: str, reading_id: str):
        with self.storage.transaction() as cursor:
            cursor.execute('DELETE FROM vitals WHERE id = ? AND user_id = ?', (reading_id, user_id))

    # --- Medications ---

    def list_medications(self, user_id: str) -> List[Medication]:
        with self.storage._get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT id, name, dosage, frequency, icon, notes, active FROM medications
                WHERE user_id = ?
                ORDER BY seq ASC
            ''', (user_id,))
            return [
                Medication(id=r[0], name=r[1], dosage=r[2], frequency=r[3], icon=r[4],
                           notes=r[5], active=bool(r[6]))
                for r in cursor.fetchall()
            ]

    def add_medication(self, user_id: str, data: MedicationInput) -> Medication:
        medication = Medication(id=generate_id(), **data.model_dump())
        with self.storage.transaction() as cursor:
            self.storage._ensure_user(cursor, user_id)
            cursor.execute('''
                INSERT INTO medications (id, user_id, name, dosage, frequency, icon, notes, active)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ''', (medication.id, user_id, medication.name, medication.dosage, medication.frequency,
                  medication.icon, medication.notes, 1 if medication.active else 0))
        return medication

    def update_medication(self, user_id: str, medication: Medication):
        with self.storage.transaction() as cursor:
            cursor.execute('''
                UPDATE medications
                SET name = ?, dosage = ?, frequency = ?, icon = ?, notes = ?, active = ?
                WHERE id = ? AND user_id = ?
            ''', (medication.name, medication.dosage, medication.frequency, medication.icon,
                  medication.notes, 1 if medication.active else 0, medication.id, user_id))

    def delete_medication(self, user_id: str, medication_id: str):
        # Doses already recorded for this medication stay in the day log
        with self.storage.transaction() as cursor:
            cursor.execute('DELETE FROM medications WHERE id = ? AND user_id = ?', (medication_id, user_id))

    # --- Doses ---

    def record_dose(self, user_id: str, date: str, dose: MedicationDose):
        check_date(date)
        with self.storage.transaction() as cursor:
            self.storage._ensure_user(cursor, user_id)
            try:
                cursor.execute('''
                    INSERT INTO medication_doses (id, user_id, date, medication_id, time, taken, skipped_reason)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                ''', (dose.id, user_id, date, dose.medication_id, dose.time,
                      1 if dose.taken else 0, dose.skipped_reason))
            except sqlite3.IntegrityError as e:
                raise ValueError(f"Dose {dose.id} already exists") from e

    def list_doses(self, user_id: str, date: str) -> List[MedicationDose]:
        check_date(date)
        with self.storage._get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT id, medication_id, time, taken, skipped_reason FROM medication_doses
                WHERE user_id = ? AND date = ?
                ORDER BY seq ASC
            ''', (user_id, date))
            return [
                MedicationDose(id=r[0], medication_id=r[1], time=r[2], taken=bool(r[3]), skipped_reason=r[4])
                for r in cursor.fetchall()
            ]

    def delete_dose(self, user_id: str, dose_id: str):
        with self.storage.transaction() as cursor:
            cursor.execute('DELETE FROM medication_doses WHERE id = ? AND user_id = ?', (dose_id, user_id))

    # --- Care team ---

    def list_care_team(self, user_id: str) -> List[CareTeamMember]:
        with self.storage._get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT id, name, role, icon, notes, sort_order FROM care_team
                WHERE user_id = ?
                ORDER BY sort_order ASC, seq ASC
            ''', (user_id,))
            return [
                CareTeamMember(id=r[0], name=r[1], role=r[2], icon=r[3], notes=r[4], sort_order=r[5])
                for r in cursor.fetchall()
            ]

    def add_care_team_member(self, user_id: str, data: CareTeamMemberInput) -> CareTeamMember:
        with self.storage.transaction() as cursor:
            self.storage._ensure_user(cursor, user_id)
            sort_order = data.sort_order
            if sort_order is None:
                cursor.execute('SELECT COALESCE(MAX(sort_order) + 1, 0) FROM care_team WHERE user_id = ?', (user_id,))
                sort_order = cursor.fetchone()[0]
            member = CareTeamMember(
                id=generate_id(),
                name=data.name,
                role=data.role,
                icon=data.icon,
                notes=data.notes,
                sort_order=sort_order,
            )
            cursor.execute('''
                INSERT INTO care_team (id, user_id, name, role, icon, notes, sort_order)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            ''', (member.id, user_id, member.name, member.role, member.icon, member.notes, member.sort_order))
        return member

    def update_care_team_member(self, user_id: str, member: CareTeamMember):
        with self.storage.transaction() as cursor:
            cursor.execute('''
                UPDATE care_team SET name = ?, role = ?, icon = ?, notes = ?, sort_order = ?
                WHERE id = ? AND user_id = ?
            ''', (member.name, member.role, member.icon, member.notes, member.sort_order, member.id, user_id))

    def delete_care_team_member(self, user_id: str, member_id: str):
        with self.storage.transaction() as cursor:
            cursor.execute('DELETE FROM care_team WHERE id = ? AND user_id = ?', (member_id, user_id))


# Global instance
care_records = CareRecords()
