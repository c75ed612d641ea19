"""Twilio client configuration for WhatsApp messaging."""

import logging

from twilio.rest import Client

from garage_booking.core.config import (
    TWILIO_ACCOUNT_SID,
    TWILIO_AUTH_TOKEN,
    TWILIO_WHATSAPP_FROM,
)

logger = logging.getLogger(__name__)

_client: Client | None = None


def get_client() -> Client:
    global _client
    if _client is None:
        if not TWILIO_ACCOUNT_SID or not TWILIO_AUTH_TOKEN:
            raise RuntimeError("Twilio client is not configured.")
        _client = Client(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN)
    return _client


def send_whatsapp_message(to: str, body: str) -> str:
    """Send a WhatsApp message via Twilio and return the message SID."""
    if not to.startswith("+"):
        raise ValueError("Phone number must be in E.164 format.")

    message = get_client().messages.create(
        from_=TWILIO_WHATSAPP_FROM,
        to=f"whatsapp:{to}",
        body=body,
    )

    logger.info("WhatsApp message sent to %s (SID: %s)", to, message.sid)
    return message.sid
