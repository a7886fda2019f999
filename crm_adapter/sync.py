"""Appointment sync from the booking app into the hospital CRM.

``CRMSync.sync_appointment`` is the only entry point booking surfaces call.
It never raises: any failure along the way comes back as a ``SyncFailure``
so the caller can keep the local booking and report the CRM as pending.
"""
from __future__ import annotations
import logging
import math
from datetime import datetime

from . import config
from .ids import next_sequential_id
from .models import AppointmentData, CRMAppointment, SyncFailure, SyncResult, SyncSuccess
from .reconcile import Reconciler
from .status import map_status
from .store import BoundedStore, RecordStore

logger = logging.getLogger(__name__)

APPOINTMENT_TYPE = "CONSULTATION"
APPOINTMENT_SOURCE = "APPOINTMENTS_APP"  # booked outside the CRM
DEFAULT_DURATION_MINUTES = 30


def calculate_duration(start: datetime, end: datetime) -> int:
    """Whole minutes between start and end, rounded half up; 30 when not positive."""
    # a lone naive end of a zoned start is read in the start zone, and vice versa
    if start.tzinfo is not None and end.tzinfo is None:
        end = end.replace(tzinfo=start.tzinfo)
    elif end.tzinfo is not None and start.tzinfo is None:
        start = start.replace(tzinfo=end.tzinfo)
    minutes = math.floor((end - start).total_seconds() / 60 + 0.5)
    return minutes if minutes > 0 else DEFAULT_DURATION_MINUTES


class CRMSync:
    def __init__(
        self,
        store: RecordStore,
        hospital_id: str = config.HOSPITAL_ID,
        call_timeout: float = config.CRM_CALL_TIMEOUT,
        reconciler: Reconciler | None = None,
    ):
        self.store = BoundedStore(store, call_timeout)
        self.hospital_id = hospital_id
        self.reconciler = reconciler or Reconciler(self.store, hospital_id)

    async def sync_appointment(self, data: AppointmentData) -> SyncResult:
        logger.info(
            "Starting CRM sync: patient=%s (%s) doctor=%s (%s, crm_id=%s)",
            data.patient.id, data.patient.name, data.doctor.id, data.doctor.name, data.doctor.crm_id,
        )
        stage = "patient"
        try:
            patient = await self.reconciler.find_or_create_patient(data.patient)
            logger.info("CRM patient %s / %s", patient.id, patient.patient_id)

            stage = "doctor"
            doctor = await self.reconciler.find_or_create_doctor(data.doctor)
            logger.info("CRM doctor %s / %s", doctor.id, doctor.name)

            stage = "appointment"
            appointment = await self._create_appointment(data, patient.id, doctor.id)
        except Exception as exc:
            logger.exception("CRM sync failed at %s stage", stage)
            return SyncFailure(stage=stage, reason=str(exc) or type(exc).__name__)

        logger.info("CRM sync done: appointment %s (%s)", appointment.appointment_id, appointment.id)
        return SyncSuccess(appointment_id=appointment.appointment_id)

    async def _create_appointment(self, data: AppointmentData, patient_row_id: str, doctor_row_id: str) -> CRMAppointment:
        duration = calculate_duration(data.start_time, data.end_time)
        record = {
            "appointment_id": await next_sequential_id(self.store, "APT"),
            "patient_id": patient_row_id,
            "doctor_id": doctor_row_id,
            "department_id": None,
            "appointment_type": APPOINTMENT_TYPE,
            "status": map_status(data.status),
            "scheduled_at": data.start_time.isoformat(),
            "duration": duration,
            "hospital_id": self.hospital_id,
            "source": APPOINTMENT_SOURCE,
            # set by the CRM when an admin confirms
            "confirmation_date": None,
        }
        logger.debug("Inserting CRM appointment %s", record)
        row = await self.store.insert("appointments", record)
        return CRMAppointment.model_validate(row)
