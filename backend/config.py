# Runtime configuration read from the environment (and .env)
import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./survey.db")

SESSION_SECRET = os.getenv("SESSION_SECRET", "dev-secret")
SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "168"))
SESSION_BIND_DEVICE = _flag("SESSION_BIND_DEVICE", "true")

ORIGINS = [o.strip() for o in os.getenv("ORIGINS", "http://localhost:5173").split(",") if o.strip()]
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:5173").rstrip("/")

# accounts signing up with one of these emails also get the admin role
ADMIN_EMAILS = {e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()}

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
AUDIT_LOG_LIMIT = int(os.getenv("AUDIT_LOG_LIMIT", "100"))
RECENT_DAYS = int(os.getenv("RECENT_DAYS", "7"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
