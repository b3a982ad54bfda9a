"""Configuration for the clinic queue.

Business constants live here so a clinic can change its windows, services
and retry policy without touching code. Deployment settings are read from
the environment (a local .env file is loaded if present).
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Daily service windows: [start_hour, end_hour) in clinic wall time.
# Any hour outside every window falls into FALLBACK_SLOT.
SLOT_TABLE = [
    {"name": "Morning", "start_hour": 9, "end_hour": 12},
    {"name": "Evening", "start_hour": 13, "end_hour": 17},
]
FALLBACK_SLOT = "Evening"

CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "UTC")

# Dashboard figure; not measured from timestamps.
AVERAGE_WAIT_TIME_MINUTES = 15

# Queue sequencer retry policy (exponential backoff between attempts)
SEQUENCER_MAX_ATTEMPTS = int(os.getenv("SEQUENCER_MAX_ATTEMPTS", "8"))
SEQUENCER_BACKOFF_MIN = float(os.getenv("SEQUENCER_BACKOFF_MIN", "0.01"))
SEQUENCER_BACKOFF_MAX = float(os.getenv("SEQUENCER_BACKOFF_MAX", "0.5"))

# Initial attempt plus one retry after a concurrent status edit
STATUS_UPDATE_MAX_ATTEMPTS = 2

# Unknown ?status= values: False treats them as "all", True rejects them.
STRICT_STATUS_FILTER = _env_bool("STRICT_STATUS_FILTER", False)

# Persistence
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///mediq.db")
SQLITE_BUSY_TIMEOUT_SECONDS = 30

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = _env_bool("LOG_JSON", True)

# API server
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "5000"))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if origin.strip()
]

# WhatsApp notifications (disabled unless all three are set)
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_WHATSAPP_NUMBER = os.getenv("TWILIO_WHATSAPP_NUMBER")
MESSAGING_MAX_ATTEMPTS = 3


def messaging_enabled() -> bool:
    """True when Twilio credentials and a sender number are configured."""
    return bool(TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_WHATSAPP_NUMBER)
