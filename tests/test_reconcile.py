import pytest

from crm_adapter.models import LocalDoctor, LocalPatient
from crm_adapter.reconcile import Reconciler, match_patient_by_email, split_name
from crm_adapter.store import StoreError

from conftest import HOSPITAL, FailingInsertStore


@pytest.mark.parametrize("full,expected", [
    ("Doe", ("Doe", "")),
    ("Jane Extra Smith", ("Jane", "Extra Smith")),
    ("  Jane   Smith ", ("Jane", "Smith")),
])
def test_split_name(full, expected):
    assert split_name(full) == expected

@pytest.mark.asyncio
async def test_patient_matched_by_phone_twice_is_the_same_row(seeded_store):
    rec = Reconciler(seeded_store, HOSPITAL)
    local = LocalPatient(id="p1", name="Ravi K", phone="9829000001")

    first = await rec.find_or_create_patient(local)
    second = await rec.find_or_create_patient(local)

    assert first.id == second.id == "pat-row-1"
    assert seeded_store.inserts == []
    assert seeded_store.lookups[0] == ("patients", {"hospital_id": HOSPITAL, "phone": "9829000001"})

@pytest.mark.asyncio
async def test_patient_matched_by_email_when_phone_misses(seeded_store):
    rec = Reconciler(seeded_store, HOSPITAL)
    patient = await rec.find_or_create_patient(
        LocalPatient(id="p1", name="Ravi", phone="0000000000", email="ravi@example.com")
    )
    assert patient.id == "pat-row-1"
    assert [filters for _, filters in seeded_store.lookups] == [
        {"hospital_id": HOSPITAL, "phone": "0000000000"},
        {"hospital_id": HOSPITAL, "email": "ravi@example.com"},
    ]

@pytest.mark.asyncio
async def test_patient_lookup_is_scoped_to_the_hospital(seeded_store):
    rec = Reconciler(seeded_store, "another-hospital")
    patient = await rec.find_or_create_patient(LocalPatient(id="p1", name="Ravi", phone="9829000001"))
    assert patient.id != "pat-row-1"
    assert patient.hospital_id == "another-hospital"

@pytest.mark.asyncio
async def test_patient_without_contact_details_is_created_without_lookup(store):
    rec = Reconciler(store, HOSPITAL)
    patient = await rec.find_or_create_patient(LocalPatient(id="p1", name="Jane Extra Smith"))

    assert store.lookups == []
    assert store.inserts == ["patients"]
    assert patient.first_name == "Jane"
    assert patient.last_name == "Extra Smith"
    assert patient.gender == "M"
    assert patient.age is None
    assert patient.is_confirmed is False
    assert patient.patient_id.startswith("PAT")
    assert patient.patient_id.endswith("0001")

@pytest.mark.asyncio
async def test_custom_patient_matchers(seeded_store):
    rec = Reconciler(seeded_store, HOSPITAL, patient_matchers=[match_patient_by_email])
    await rec.find_or_create_patient(LocalPatient(id="p1", name="Ravi", phone="9829000001"))
    # phone is no longer a key, and without an email nothing is looked up
    assert seeded_store.lookups == []
    assert seeded_store.inserts == ["patients"]

@pytest.mark.asyncio
async def test_patient_creation_failure_propagates():
    store = FailingInsertStore("patients")
    with pytest.raises(StoreError, match="patients"):
        await Reconciler(store, HOSPITAL).find_or_create_patient(LocalPatient(id="p1", name="Jane"))

@pytest.mark.asyncio
async def test_doctor_matched_by_crm_id(seeded_store):
    rec = Reconciler(seeded_store, HOSPITAL)
    doctor = await rec.find_or_create_doctor(LocalDoctor(id="d1", name="Someone Else", crm_id="doc-row-1"))
    assert doctor.id == "doc-row-1"
    assert len(seeded_store.lookups) == 1

@pytest.mark.asyncio
async def test_doctor_falls_back_to_name_match(seeded_store):
    rec = Reconciler(seeded_store, HOSPITAL)
    doctor = await rec.find_or_create_doctor(LocalDoctor(id="d1", name="Dr. Alice Smith", crm_id="stale-id"))
    assert doctor.id == "doc-row-1"
    assert seeded_store.inserts == []

@pytest.mark.asyncio
async def test_unknown_doctor_gets_placeholder(store):
    rec = Reconciler(store, HOSPITAL)
    doctor = await rec.find_or_create_doctor(LocalDoctor(id="d1", name="Dr. New", phone="5550199"))

    assert store.inserts == ["doctors"]
    assert doctor.department == "General Medicine"
    assert doctor.specialization == "General Physician"
    assert doctor.fee == 500.0
    assert doctor.is_active is True
    assert doctor.phone == "5550199"

@pytest.mark.asyncio
async def test_placeholder_doctor_uses_specialty(store):
    doctor = await Reconciler(store, HOSPITAL).find_or_create_doctor(
        LocalDoctor(id="d1", name="Dr. New", specialty="Neurology")
    )
    assert doctor.department == doctor.specialization == "Neurology"

@pytest.mark.asyncio
async def test_doctor_creation_failure_propagates():
    store = FailingInsertStore("doctors")
    with pytest.raises(StoreError):
        await Reconciler(store, HOSPITAL).find_or_create_doctor(LocalDoctor(id="d1", name="Dr. New"))
