"""Environment configuration for the finance tracker API."""
import os
from dotenv import load_dotenv

load_dotenv() # Searches for .env in current dir and parents


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


MONGODB_URI = os.getenv("MONGODB_URI")
DB_NAME = os.getenv("DB_NAME", "finance_db")
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "transactions")

# Stand-in owner used until a real auth layer supplies X-Owner-Id
DEFAULT_OWNER_ID = os.getenv("DEFAULT_OWNER_ID", "").strip()

ALLOW_ZERO_AMOUNT = _as_bool(os.getenv("ALLOW_ZERO_AMOUNT", "false"))

RATE_LIMIT = os.getenv("RATE_LIMIT", "60/minute")
RATE_LIMIT_ENABLED = _as_bool(os.getenv("RATE_LIMIT_ENABLED", "true"))

MAX_BODY_SIZE = int(os.getenv("MAX_BODY_SIZE", str(64 * 1024)))

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
