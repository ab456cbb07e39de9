import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./rsvp_manager.db")

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "10080"))  # 7 days

# New accounts wait for a platform owner to approve them when enabled
REQUIRE_USER_APPROVAL = os.getenv("REQUIRE_USER_APPROVAL", "false").lower() == "true"

# Public base URL used to build RSVP links sent to guests
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")

# Cloudflare R2 Configuration (event archives)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "rsvp-manager")

# Redis / ARQ - leave unset to run bulk jobs in-process
REDIS_URL = os.getenv("REDIS_URL")

# Shared secret for the external cron trigger (Authorization: Bearer <CRON_SECRET>)
CRON_SECRET = os.getenv("CRON_SECRET")

# Bulk messaging
BULK_CHUNK_SIZE = int(os.getenv("BULK_CHUNK_SIZE", "10"))
BULK_MESSAGE_DELAY_SECONDS = float(os.getenv("BULK_MESSAGE_DELAY_SECONDS", "1.0"))
# Items stuck in PROCESSING longer than this are handed back to the queue
BULK_ITEM_STALE_SECONDS = int(os.getenv("BULK_ITEM_STALE_SECONDS", "300"))

# Twilio status callbacks
# Public URL Twilio posts to, needed to recompute the signature behind a proxy
TWILIO_WEBHOOK_BASE_URL = os.getenv("TWILIO_WEBHOOK_BASE_URL")
# Reject callbacks with a bad signature instead of only logging them
TWILIO_WEBHOOK_STRICT = os.getenv("TWILIO_WEBHOOK_STRICT", "false").lower() == "true"

# Per-message cost in USD, written to the cost log
WHATSAPP_MESSAGE_COST = float(os.getenv("WHATSAPP_MESSAGE_COST", "0.0055"))
SMS_MESSAGE_COST = float(os.getenv("SMS_MESSAGE_COST", "0.0741"))

# Events are closed this many days after the wedding date
AUTO_CLOSE_AFTER_DAYS = int(os.getenv("AUTO_CLOSE_AFTER_DAYS", "7"))

# CORS and response hardening
ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv("ALLOWED_ORIGINS", f"{APP_URL},http://localhost:5173").split(",") if o.strip()
]
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
IS_PRODUCTION = ENVIRONMENT.lower() == "production"
