STATUS_MAP = {
    "scheduled": "SCHEDULED",
    "completed": "COMPLETED",
    "cancelled": "CANCELLED",
}
DEFAULT_STATUS = "SCHEDULED"


def map_status(value: str | None) -> str:
    """Translate a booking-app status to the CRM vocabulary (unknown -> SCHEDULED)."""
    if not value:
        return DEFAULT_STATUS
    return STATUS_MAP.get(value.strip().lower(), DEFAULT_STATUS)
