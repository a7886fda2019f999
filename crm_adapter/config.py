"""Environment-driven settings for the CRM adapter."""
import os
from dotenv import load_dotenv

load_dotenv()

_ENV_URL = os.getenv("SUPABASE_URL", "")
_ENV_KEY = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_ANON_KEY", "")

SUPABASE_URL = _ENV_URL if _ENV_URL.startswith("http") else "https://placeholder.supabase.co"
SUPABASE_KEY = _ENV_KEY or "placeholder"

# Bhilwara hospital; every CRM row is scoped by it
HOSPITAL_ID = os.getenv("CRM_HOSPITAL_ID", "550e8400-e29b-41d4-a716-446655440000")
CRM_CALL_TIMEOUT = float(os.getenv("CRM_CALL_TIMEOUT", "15"))

EXTERNAL_API_KEY_PREFIX = os.getenv("EXTERNAL_API_KEY_PREFIX", "sk_seva_")
NOTIFY_FALLBACK_TO = os.getenv("NOTIFY_FALLBACK_TO", "+0000000000")
NOTIFY_SIMULATED_DELAY = float(os.getenv("NOTIFY_SIMULATED_DELAY", "0"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def offline_mode() -> bool:
    return os.getenv("OFFLINE_MODE", "0") == "1"
