import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./bookings.db")

# Redis - booking session entries and rate limiting
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"

# Booking sessions - one Redis entry per browsing session
BOOKING_SESSION_KEY_PREFIX = os.getenv("BOOKING_SESSION_KEY_PREFIX", "booking-data")
# In-progress sessions expire after 7 days of inactivity
BOOKING_SESSION_TTL_SECONDS = int(os.getenv("BOOKING_SESSION_TTL_SECONDS", str(7 * 24 * 3600)))

# Referral validation - per-IP limit against code guessing
REFERRAL_VALIDATE_RATE_LIMIT = int(os.getenv("REFERRAL_VALIDATE_RATE_LIMIT", "20"))
REFERRAL_VALIDATE_RATE_WINDOW = int(os.getenv("REFERRAL_VALIDATE_RATE_WINDOW", "300"))

# Default discount for newly issued partner staff codes
PARTNER_STAFF_DISCOUNT_PERCENT = os.getenv("PARTNER_STAFF_DISCOUNT_PERCENT", "10.00")

# Frontend base URL for CORS
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Comma-separated extra origins allowed by CORS
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]

# Shared secret for the referral code admin endpoints; unset disables them
ADMIN_API_KEY = os.getenv("ADMIN_API_KEY")
