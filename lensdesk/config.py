import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Upstream REST API (owns persistence, business rules and sessions)
UPSTREAM_API_URL = os.getenv("UPSTREAM_API_URL", "http://localhost:5000")
UPSTREAM_TIMEOUT = float(os.getenv("UPSTREAM_TIMEOUT", "30"))
# Session cookie issued by the upstream API and forwarded on every call
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "connect.sid")

# Redis: REDIS_URL wins over the host/port settings
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"

# Query cache and pending-submission locks (Redis)
QUERY_CACHE_TTL = int(os.getenv("QUERY_CACHE_TTL", "60"))
SUBMIT_LOCK_TTL = int(os.getenv("SUBMIT_LOCK_TTL", "30"))

# Agenda: all day/week math happens in this zone
CONSOLE_TIMEZONE = os.getenv("CONSOLE_TIMEZONE", "Europe/Amsterdam")

# Agenda grid: working-hours band and pixel sizes of the time grid
AGENDA_WORK_START = int(os.getenv("AGENDA_WORK_START", "7"))
AGENDA_WORK_END = int(os.getenv("AGENDA_WORK_END", "20"))
AGENDA_HOUR_HEIGHT = int(os.getenv("AGENDA_HOUR_HEIGHT", "60"))
AGENDA_COLLAPSED_HEIGHT = int(os.getenv("AGENDA_COLLAPSED_HEIGHT", "36"))

if not 0 <= AGENDA_WORK_START < AGENDA_WORK_END <= 24:
    raise ValueError(
        f"Invalid agenda working hours: {AGENDA_WORK_START}-{AGENDA_WORK_END}"
    )

# Maximum number of files per upload request
MAX_UPLOAD_FILES = int(os.getenv("MAX_UPLOAD_FILES", "10"))

# Frontend base URL for CORS
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:3000"
).split(",")

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
