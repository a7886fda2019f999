import logging
import uuid
from datetime import timedelta
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException

from . import config
from .models import (
    AppointmentData,
    BookingResponse,
    DoctorListing,
    ExternalBookRequest,
    LocalDoctor,
    LocalPatient,
    NotifyRequest,
    NotifyResponse,
    SyncSuccess,
)
from .notifications import send_notification
from .store import InMemoryStore, SupabaseStore
from .sync import DEFAULT_DURATION_MINUTES, CRMSync

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Doctor directory used while OFFLINE_MODE=1; crm_id doubles as the CRM row id
DEMO_DOCTORS = [
    DoctorListing(id="uuid-1", name="Dr. Alice Smith", specialty="Cardiology", phone="+15550101", crm_id="CRM-001"),
    DoctorListing(id="uuid-2", name="Dr. Bob Jones", specialty="Dermatology", phone="+15550102", crm_id="CRM-002"),
    DoctorListing(id="uuid-3", name="Dr. Carol White", specialty="Pediatrics", phone="+15550103", crm_id="CRM-003"),
]

app = FastAPI(title="Hospital CRM Adapter Service")

_offline_store: Optional[InMemoryStore] = None

def _get_offline_store() -> InMemoryStore:
    global _offline_store
    if _offline_store is None:
        _offline_store = InMemoryStore({
            "doctors": [
                {
                    "id": d.crm_id,
                    "name": d.name,
                    "department": d.specialty,
                    "specialization": d.specialty,
                    "fee": 500.0,
                    "phone": d.phone,
                    "hospital_id": config.HOSPITAL_ID,
                    "is_active": True,
                }
                for d in DEMO_DOCTORS
            ]
        })
    return _offline_store

def get_sync() -> CRMSync:
    """CRM sync bound to the in-memory store offline, Supabase otherwise."""
    if config.offline_mode():
        return CRMSync(_get_offline_store())
    return CRMSync(SupabaseStore(timeout=config.CRM_CALL_TIMEOUT))

def get_notifier():
    return send_notification

def verify_api_key(x_api_key: Optional[str] = Header(None)):
    """Partner keys are issued with a fixed prefix."""
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing x-api-key header")
    if not x_api_key.startswith(config.EXTERNAL_API_KEY_PREFIX):
        raise HTTPException(status_code=403, detail="Invalid API Key")

async def _book(data: AppointmentData, sync: CRMSync, notify, notify_to: Optional[str], channel: str) -> BookingResponse:
    result = await sync.sync_appointment(data)

    if notify_to:
        when = data.start_time.strftime("%Y-%m-%d %H:%M")
        # a failed notification must not change the booking outcome
        try:
            delivered = await notify(notify_to, f"New appointment: {data.patient.name} @ {when}", channel)
        except Exception:
            logger.exception("Doctor notification to %s raised", notify_to)
            delivered = False
        if not delivered:
            logger.warning("Doctor notification to %s was not delivered", notify_to)

    if isinstance(result, SyncSuccess):
        return BookingResponse(
            success=True,
            crm_appointment_id=result.code,
            sync_status="synced",
            message=f"Appointment booked and recorded in hospital CRM as {result.code}",
        )
    return BookingResponse(
        success=True,
        crm_appointment_id=result.code,
        sync_status="pending",
        failure_stage=result.stage,
        message="Appointment booked locally; hospital CRM sync is pending",
    )

# Booking related endpoints -------------------------------------------------

@app.post("/appointments", response_model=BookingResponse, status_code=201)
async def book_appointment(data: AppointmentData, sync: CRMSync = Depends(get_sync), notify=Depends(get_notifier)):
    """Direct booking from the portal form; the doctor is notified by SMS when a phone is known."""
    return await _book(data, sync, notify, data.doctor.phone, "sms")

@app.post("/external/book", dependencies=[Depends(verify_api_key)], response_model=BookingResponse)
async def external_book(req: ExternalBookRequest, sync: CRMSync = Depends(get_sync), notify=Depends(get_notifier)):
    """Partner booking by doctor CRM id."""
    data = AppointmentData(
        patient=LocalPatient(
            id=f"ext-{uuid.uuid4()}",
            name=req.patient_name,
            phone=req.patient_phone,
            email=req.patient_email,
        ),
        doctor=LocalDoctor(
            id=req.doctor_crm_id,
            name=req.doctor_name or req.doctor_crm_id,
            phone=req.doctor_phone,
            crm_id=req.doctor_crm_id,
        ),
        start_time=req.slot_time,
        end_time=req.slot_end or req.slot_time + timedelta(minutes=DEFAULT_DURATION_MINUTES),
    )
    return await _book(data, sync, notify, req.doctor_phone or config.NOTIFY_FALLBACK_TO, "whatsapp")

@app.post("/notify", response_model=NotifyResponse)
async def notify_endpoint(req: NotifyRequest, notify=Depends(get_notifier)):
    if not req.to or not req.message:
        raise HTTPException(status_code=422, detail='Missing "to" or "message" fields')
    try:
        sent = await notify(req.to, req.message, req.type)
    except Exception:
        logger.exception("Notification to %s raised", req.to)
        sent = False
    return NotifyResponse(success=sent, status="sent" if sent else "failed")

# Read-only endpoints

@app.get("/doctors", response_model=list[DoctorListing])
async def list_doctors():
    """Doctor directory. Only the demo directory exists so far."""
    if config.offline_mode():
        return DEMO_DOCTORS
    raise HTTPException(status_code=501, detail="Live doctor directory not implemented")
