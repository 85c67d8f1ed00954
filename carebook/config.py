import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./carebook.db")

# Firebase Configuration (identity provider)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Frontend base URL for links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Carebook <noreply@carebook.app>")

# Booking policy
BOOKING_MIN_HOURS_AHEAD = int(os.getenv("BOOKING_MIN_HOURS_AHEAD", "24"))
CANCELLATION_HOURS_AHEAD = int(os.getenv("CANCELLATION_HOURS_AHEAD", "24"))
DEFAULT_SLOT_MINUTES = int(os.getenv("DEFAULT_SLOT_MINUTES", "30"))
AVAILABILITY_DAYS_AHEAD = int(os.getenv("AVAILABILITY_DAYS_AHEAD", "14"))
AVAILABILITY_MAX_DAYS = 60
MAX_RECURRING_OCCURRENCES = 12
# Confirmed bookings are closed as COMPLETED this long after they end
AUTO_COMPLETE_AFTER_HOURS = int(os.getenv("AUTO_COMPLETE_AFTER_HOURS", "24"))

# Rate limits (requests per window)
BOOKING_RATE_LIMIT = int(os.getenv("BOOKING_RATE_LIMIT", "10"))
BOOKING_RATE_WINDOW_SECONDS = int(os.getenv("BOOKING_RATE_WINDOW_SECONDS", "60"))

# Cache TTLs (seconds)
BOOKING_LIST_CACHE_TTL = int(os.getenv("BOOKING_LIST_CACHE_TTL", "300"))
BOOKING_STATS_CACHE_TTL = int(os.getenv("BOOKING_STATS_CACHE_TTL", "60"))
