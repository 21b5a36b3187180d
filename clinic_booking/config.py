"""Configuration for the clinic booking service.

Runtime settings come from environment variables (a local .env file is
honoured). Hospital schedules live in JSON files under HOSPITAL_CONFIG_DIR,
one file per hospital - modify them and redeploy, no code changes needed.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = Path(__file__).parent.parent

# Persistence
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///clinic_booking.db")

# Schedule catalog
HOSPITAL_CONFIG_DIR = os.getenv(
    "HOSPITAL_CONFIG_DIR",
    str(PROJECT_ROOT / "data" / "hospitals")
)

# Weekly closure day shared by every hospital (no slots may be configured on it)
CLOSURE_WEEKDAY = os.getenv("CLOSURE_WEEKDAY", "friday").lower()

# Booking transactions
BOOKING_TIMEOUT_SECONDS = float(os.getenv("BOOKING_TIMEOUT_SECONDS", "5"))

# Availability / calendar
AVAILABILITY_CACHE_TTL = int(os.getenv("AVAILABILITY_CACHE_TTL", "300"))  # 5 minutes
CALENDAR_DEFAULT_DAYS = int(os.getenv("CALENDAR_DEFAULT_DAYS", "7"))
CALENDAR_MAX_DAYS = int(os.getenv("CALENDAR_MAX_DAYS", "60"))
BULK_MAX_SLOTS = int(os.getenv("BULK_MAX_SLOTS", "100"))

# Rate limiting for booking requests (per client address)
RATE_LIMIT_REQUESTS = int(os.getenv("RATE_LIMIT_REQUESTS", "100"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "900"))  # 15 minutes

# API server
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
API_BASE_URL = os.getenv("API_BASE_URL", f"http://localhost:{API_PORT}")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173"
    ).split(",")
    if origin.strip()
]
