"""Find-or-create of patients and doctors in the hospital CRM.

Local records only carry weak identity (a phone, an email, a display name),
so matching is a list of matcher functions tried in order. Each matcher maps
the local record to the column filters to look up with, or ``None`` when it
has nothing to go on. The first row found wins; if none is found a new CRM
row is created.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Sequence

from . import config
from .ids import next_sequential_id
from .models import CRMDoctor, CRMPatient, LocalDoctor, LocalPatient
from .store import RecordStore, StoreError

logger = logging.getLogger(__name__)

DEFAULT_GENDER = "M"
DEFAULT_DEPARTMENT = "General Medicine"
DEFAULT_SPECIALIZATION = "General Physician"
DEFAULT_DOCTOR_FEE = 500.00

Matcher = Callable[[Any], "dict[str, Any] | None"]


def match_patient_by_phone(patient: LocalPatient) -> dict[str, Any] | None:
    return {"phone": patient.phone} if patient.phone else None


def match_patient_by_email(patient: LocalPatient) -> dict[str, Any] | None:
    return {"email": patient.email} if patient.email else None


def match_doctor_by_crm_id(doctor: LocalDoctor) -> dict[str, Any] | None:
    return {"id": doctor.crm_id} if doctor.crm_id else None


def match_doctor_by_name(doctor: LocalDoctor) -> dict[str, Any] | None:
    return {"name": doctor.name} if doctor.name else None


PATIENT_MATCHERS: tuple[Matcher, ...] = (match_patient_by_phone, match_patient_by_email)
DOCTOR_MATCHERS: tuple[Matcher, ...] = (match_doctor_by_crm_id, match_doctor_by_name)


def split_name(full_name: str) -> tuple[str, str]:
    """'Jane Extra Smith' -> ('Jane', 'Extra Smith'); 'Doe' -> ('Doe', '')."""
    parts = full_name.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


class Reconciler:
    def __init__(
        self,
        store: RecordStore,
        hospital_id: str = config.HOSPITAL_ID,
        patient_matchers: Sequence[Matcher] = PATIENT_MATCHERS,
        doctor_matchers: Sequence[Matcher] = DOCTOR_MATCHERS,
    ):
        self.store = store
        self.hospital_id = hospital_id
        self.patient_matchers = tuple(patient_matchers)
        self.doctor_matchers = tuple(doctor_matchers)

    async def _match(self, table: str, local: Any, matchers: Sequence[Matcher]) -> dict[str, Any] | None:
        for matcher in matchers:
            filters = matcher(local)
            if not filters:
                continue
            logger.debug("Looking up %s by %s", table, ", ".join(filters))
            row = await self.store.find_one(table, hospital_id=self.hospital_id, **filters)
            if row:
                return row
        return None

    async def _create(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        try:
            return await self.store.insert(table, record)
        except StoreError as exc:
            logger.error("Creating CRM %s row failed: %s (code=%s)", table, exc, exc.code)
            raise StoreError(f"Failed to create CRM {table} row: {exc}", code=exc.code, details=exc.details) from exc

    async def find_or_create_patient(self, patient: LocalPatient) -> CRMPatient:
        row = await self._match("patients", patient, self.patient_matchers)
        if row:
            logger.info("Found existing CRM patient %s", row.get("id"))
            return CRMPatient.model_validate(row)

        logger.info("Patient %s not found in CRM, creating", patient.name)
        first_name, last_name = split_name(patient.name)
        record = {
            "patient_id": await next_sequential_id(self.store, "PAT"),
            "first_name": first_name,
            "last_name": last_name,
            "phone": patient.phone or None,
            "email": patient.email or None,
            "gender": DEFAULT_GENDER,
            "age": None,
            "hospital_id": self.hospital_id,
            "is_active": True,
            # confirmed by hospital admin once the appointment is approved
            "is_confirmed": False,
        }
        created = CRMPatient.model_validate(await self._create("patients", record))
        logger.info("Created CRM patient %s (%s)", created.patient_id, created.id)
        return created

    async def find_or_create_doctor(self, doctor: LocalDoctor) -> CRMDoctor:
        row = await self._match("doctors", doctor, self.doctor_matchers)
        if row:
            logger.info("Found existing CRM doctor %s", row.get("id"))
            return CRMDoctor.model_validate(row)

        logger.info("Doctor %s not found in CRM, creating placeholder", doctor.name)
        record = {
            "name": doctor.name,
            "department": doctor.specialty or DEFAULT_DEPARTMENT,
            "specialization": doctor.specialty or DEFAULT_SPECIALIZATION,
            "fee": DEFAULT_DOCTOR_FEE,
            "phone": doctor.phone or None,
            "email": doctor.email or None,
            "hospital_id": self.hospital_id,
            "is_active": True,
        }
        created = CRMDoctor.model_validate(await self._create("doctors", record))
        logger.info("Created CRM doctor %s (%s)", created.name, created.id)
        return created
