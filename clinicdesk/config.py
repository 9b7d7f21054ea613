# clinicdesk/config.py
import logging
import os
from datetime import time
from dotenv import load_dotenv
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./clinicdesk.db")

# --- Auth ---
JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "720"))
# bcrypt work factor; 4 is the minimum the library accepts
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# --- CORS ---
CLIENT_URL = os.getenv("CLIENT_URL", "*")
CORS_ORIGINS = [origin.strip() for origin in CLIENT_URL.split(",") if origin.strip()]

# --- Clinic hours used when a doctor has not configured their own ---
DEFAULT_CHECK_IN_TIME = time.fromisoformat(os.getenv("DEFAULT_CHECK_IN_TIME", "09:00:00"))
DEFAULT_CHECK_OUT_TIME = time.fromisoformat(os.getenv("DEFAULT_CHECK_OUT_TIME", "17:00:00"))

ID_GENERATION_MAX_ATTEMPTS = int(os.getenv("ID_GENERATION_MAX_ATTEMPTS", "50"))

SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

TZ_NAME = os.getenv("TZ", "UTC")
try:
    SERVER_TIMEZONE = ZoneInfo(TZ_NAME)
except (ZoneInfoNotFoundError, ValueError):
    logger.warning("CONFIG: Invalid TZ name '%s'. Defaulting to UTC.", TZ_NAME)
    SERVER_TIMEZONE = ZoneInfo("UTC")

if not JWT_SECRET:
    logger.warning("CONFIG: JWT_SECRET not set in .env. Using an insecure development secret.")
    JWT_SECRET = "clinicdesk-dev-secret"
