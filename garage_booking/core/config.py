"""Environment-driven settings for the booking backend."""

import os

from dotenv import load_dotenv

# Load environment variables from .env (for local development)
load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./garage.db")

# Reminder scheduler
REMINDER_SCHEDULER_ENABLED = _bool_env("REMINDER_SCHEDULER_ENABLED", True)
REMINDER_POLL_INTERVAL_SECONDS = _int_env("REMINDER_POLL_INTERVAL_SECONDS", 10)
REMINDER_LOCK_SECONDS = _int_env("REMINDER_LOCK_SECONDS", 120)
REMINDER_MAX_ATTEMPTS = _int_env("REMINDER_MAX_ATTEMPTS", 5)
REMINDER_WORKERS = _int_env("REMINDER_WORKERS", 4)
REMINDER_POLL_BATCH_SIZE = _int_env("REMINDER_POLL_BATCH_SIZE", 50)

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")

# Notification delivery
NOTIFICATION_QUEUE_SIZE = _int_env("NOTIFICATION_QUEUE_SIZE", 100)

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = _int_env("SMTP_PORT", 587)
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
MAIL_FROM = os.getenv("MAIL_FROM", "no-reply@garage.local")

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_WHATSAPP_FROM = os.getenv(
    "TWILIO_WHATSAPP_FROM",
    "whatsapp:+14155238886",  # Twilio Sandbox default
)
