from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

SYNC_FAILED = "SYNC_FAILED"

# Local side: what the booking surfaces hand us

class LocalPatient(BaseModel):
    id: str
    name: str  # free text, the only identity we get for matching on create
    email: str | None = None
    phone: str | None = None

class LocalDoctor(BaseModel):
    id: str
    name: str
    specialty: str | None = None
    email: str | None = None
    phone: str | None = None
    crm_id: str | None = None

class AppointmentData(BaseModel):
    patient: LocalPatient
    doctor: LocalDoctor
    start_time: datetime
    end_time: datetime
    status: str = "scheduled"

# CRM side: rows as stored in the hospital CRM

class CRMRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    hospital_id: str

class CRMPatient(CRMRecord):
    patient_id: str
    first_name: str
    last_name: str = ""
    phone: str | None = None
    email: str | None = None
    gender: str | None = None
    age: str | None = None
    is_active: bool = True
    is_confirmed: bool = False

class CRMDoctor(CRMRecord):
    name: str
    department: str | None = None
    specialization: str | None = None
    fee: float | None = None
    phone: str | None = None
    email: str | None = None
    is_active: bool = True

class CRMAppointment(CRMRecord):
    appointment_id: str
    patient_id: str
    doctor_id: str
    department_id: str | None = None
    appointment_type: str = "CONSULTATION"
    status: str
    scheduled_at: str  # ISO-8601 dateTime
    duration: int
    source: str | None = None
    confirmation_date: str | None = None

# Sync outcome

class SyncSuccess(BaseModel):
    status: Literal["synced"] = "synced"
    appointment_id: str

    @property
    def code(self) -> str:
        return self.appointment_id

class SyncFailure(BaseModel):
    """Sync did not reach the CRM; the local booking still stands."""
    status: Literal["failed"] = "failed"
    stage: Literal["patient", "doctor", "appointment"]
    reason: str

    @property
    def code(self) -> str:
        return SYNC_FAILED

SyncResult = Annotated[Union[SyncSuccess, SyncFailure], Field(discriminator="status")]

# HTTP payloads

class ExternalBookRequest(BaseModel):
    patient_name: str
    patient_phone: str | None = None
    patient_email: str | None = None
    doctor_crm_id: str
    doctor_name: str | None = None
    doctor_phone: str | None = None
    slot_time: datetime
    slot_end: datetime | None = None

class BookingResponse(BaseModel):
    success: bool
    crm_appointment_id: str  # CRM code or SYNC_FAILED, verbatim
    sync_status: Literal["synced", "pending"]
    failure_stage: str | None = None
    message: str

class NotifyRequest(BaseModel):
    to: str | None = None
    message: str | None = None
    type: str = "sms"

class NotifyResponse(BaseModel):
    success: bool
    status: Literal["sent", "failed"]

class DoctorListing(BaseModel):
    """Doctor as offered to booking surfaces."""
    id: str
    name: str
    specialty: str
    phone: str
    crm_id: str
