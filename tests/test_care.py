import pytest

from bedside.models import CareTeamMember, CareTeamMemberInput, Medication, MedicationDose, MedicationInput, VitalsReading

DAY = "2024-03-15"


def _reading(reading_id, time="08:00", type="heart_rate", value="72", unit="bpm", note=None):
    return VitalsReading(id=reading_id, time=time, type=type, value=value, unit=unit, note=note)


def test_vitals_are_newest_first(care):
    care.add_vitals_reading("u1", DAY, _reading("v1"))
    care.add_vitals_reading("u1", DAY, _reading("v2", type="blood_pressure", value="120/80", unit="mmHg"))

    readings = care.list_vitals_readings("u1", DAY)
    assert [r.id for r in readings] == ["v2", "v1"]
    assert readings[0].value == "120/80"
    assert care.list_vitals_readings("u1", "2024-03-16") == []
    assert care.list_vitals_readings("u2", DAY) == []


def test_vitals_delete_is_scoped(care):
    care.add_vitals_reading("u1", DAY, _reading("v1"))

    care.delete_vitals_reading("u2", "v1")
    assert len(care.list_vitals_readings("u1", DAY)) == 1

    care.delete_vitals_reading("u1", "v1")
    care.delete_vitals_reading("u1", "v1")
    assert care.list_vitals_readings("u1", DAY) == []


def test_duplicate_vitals_id_is_rejected(care):
    care.add_vitals_reading("u1", DAY, _reading("v1"))
    with pytest.raises(ValueError):
        care.add_vitals_reading("u1", DAY, _reading("v1"))


def test_vitals_reject_bad_date(care):
    with pytest.raises(ValueError):
        care.add_vitals_reading("u1", "15-03-2024", _reading("v1"))


def test_medications_crud(care):
    paracetamol = care.add_medication("u1", MedicationInput(name="Paracetamol", dosage="1g", frequency="QDS"))
    care.add_medication("u1", MedicationInput(name="Omeprazole", dosage="20mg"))

    meds = care.list_medications("u1")
    assert [m.name for m in meds] == ["Paracetamol", "Omeprazole"]
    assert meds[0] == paracetamol
    assert meds[0].active is True

    care.update_medication("u1", paracetamol.model_copy(update={"active": False, "notes": "stopped"}))
    updated = care.list_medications("u1")[0]
    assert updated.active is False
    assert updated.notes == "stopped"

    care.delete_medication("u1", paracetamol.id)
    assert [m.name for m in care.list_medications("u1")] == ["Omeprazole"]


def test_foreign_medication_changes_are_silent(care):
    med = care.add_medication("u1", MedicationInput(name="Paracetamol"))

    care.update_medication("u2", Medication(id=med.id, name="Changed"))
    care.delete_medication("u2", med.id)

    assert care.list_medications("u1")[0].name == "Paracetamol"
    assert care.list_medications("u2") == []


def test_doses_are_recorded_per_day(care):
    med = care.add_medication("u1", MedicationInput(name="Paracetamol"))
    care.record_dose("u1", DAY, MedicationDose(id="d1", medication_id=med.id, time="08:00"))
    care.record_dose("u1", DAY, MedicationDose(id="d2", medication_id=med.id, time="14:00",
                                               taken=False, skipped_reason="nil by mouth"))

    doses = care.list_doses("u1", DAY)
    assert [d.id for d in doses] == ["d1", "d2"]
    assert doses[1].taken is False
    assert doses[1].skipped_reason == "nil by mouth"
    assert care.list_doses("u1", "2024-03-16") == []


def test_doses_survive_medication_delete(care):
    med = care.add_medication("u1", MedicationInput(name="Paracetamol"))
    care.record_dose("u1", DAY, MedicationDose(id="d1", medication_id=med.id, time="08:00"))

    care.delete_medication("u1", med.id)

    assert [d.id for d in care.list_doses("u1", DAY)] == ["d1"]


def test_dose_delete_and_duplicate(care):
    care.record_dose("u1", DAY, MedicationDose(id="d1", medication_id="m", time="08:00"))
    with pytest.raises(ValueError):
        care.record_dose("u1", DAY, MedicationDose(id="d1", medication_id="m", time="09:00"))

    care.delete_dose("u2", "d1")
    assert len(care.list_doses("u1", DAY)) == 1
    care.delete_dose("u1", "d1")
    assert care.list_doses("u1", DAY) == []


def test_care_team_sort_order_defaults_to_end(care):
    first = care.add_care_team_member("u1", CareTeamMemberInput(name="Dr Patel", role="Consultant"))
    second = care.add_care_team_member("u1", CareTeamMemberInput(name="Sam", role="Nurse"))
    pinned = care.add_care_team_member("u1", CareTeamMemberInput(name="Alex", role="Physio", sort_order=0))

    assert (first.sort_order, second.sort_order, pinned.sort_order) == (0, 1, 0)
    assert [m.name for m in care.list_care_team("u1")] == ["Dr Patel", "Alex", "Sam"]


def test_care_team_update_and_delete(care):
    member = care.add_care_team_member("u1", CareTeamMemberInput(name="Sam", role="Nurse"))

    care.update_care_team_member("u1", CareTeamMember(id=member.id, name="Sam", role="Charge nurse", sort_order=3))
    assert care.list_care_team("u1")[0].role == "Charge nurse"
    assert care.list_care_team("u1")[0].sort_order == 3

    care.delete_care_team_member("u2", member.id)
    assert len(care.list_care_team("u1")) == 1
    care.delete_care_team_member("u1", member.id)
    assert care.list_care_team("u1") == []
