import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./care_booking.db")

# Firebase Configuration (identity provider)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Frontend base URL for redirects and email links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Stripe Connect Configuration (payment processor)
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "usd")

# Platform fee rates per booking path. The two paths historically charged
# different rates; keep them separately configurable.
APPOINTMENT_FEE_RATE = float(os.getenv("APPOINTMENT_FEE_RATE", "0.10"))
CONSULTATION_FEE_RATE = float(os.getenv("CONSULTATION_FEE_RATE", "0.15"))

# Hourly rate bounds in cents ($10 - $1000 per hour)
MIN_HOURLY_RATE = int(os.getenv("MIN_HOURLY_RATE", "1000"))
MAX_HOURLY_RATE = int(os.getenv("MAX_HOURLY_RATE", "100000"))
DEFAULT_HOURLY_RATE = int(os.getenv("DEFAULT_HOURLY_RATE", "10000"))

# Slot generation (minutes)
SLOT_STRIDE_MINUTES = int(os.getenv("SLOT_STRIDE_MINUTES", "30"))
DEFAULT_APPOINTMENT_DURATION = int(os.getenv("DEFAULT_APPOINTMENT_DURATION", "60"))
MIN_APPOINTMENT_DURATION = int(os.getenv("MIN_APPOINTMENT_DURATION", "15"))
MAX_APPOINTMENT_DURATION = int(os.getenv("MAX_APPOINTMENT_DURATION", "480"))

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "CaregiversCommunity <noreply@caregiverscommunity.com>")

# Google Calendar OAuth Configuration
# Tokens are obtained by the calendar connect flow; this service only refreshes them.
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")

# CORS origins (comma separated)
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
