"""Outbound customer notifications.

``send_notification`` validates and renders a message synchronously, then
hands it to a bounded queue drained by a single background consumer. Delivery
happens on the consumer thread: email addresses go out over SMTP, E.164 phone
numbers over Twilio WhatsApp. Delivery failures are logged and not retried.
"""

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from garage_booking.core.config import NOTIFICATION_QUEUE_SIZE
from garage_booking.services.email_client import send_email
from garage_booking.services.twilio_client import send_whatsapp_message

logger = logging.getLogger(__name__)

# Required data fields per template type.
TEMPLATE_FIELDS: dict[str, tuple[str, ...]] = {
    "bookingConfirmation": (
        "name",
        "bookingId",
        "garageName",
        "garageAddress",
        "garagePhone",
        "date",
        "time",
        "services",
        "totalAmount",
        "pickupDropService",
        "dashboardUrl",
    ),
    "bookingStatusUpdate": (
        "name",
        "bookingId",
        "garageName",
        "status",
        "statusMessage",
        "date",
        "notes",
        "dashboardUrl",
    ),
    "bookingReminder": (
        "name",
        "garageName",
        "reminderTime",
        "date",
        "time",
        "address",
        "phone",
        "pickupDropService",
        "pickupAddress",
        "dashboardUrl",
        "cancelUrl",
    ),
}

_TEMPLATES = {
    "bookingConfirmation": (
        "Hi {name},\n\n"
        "Your booking #{bookingId} at {garageName} is confirmed for {date} at {time}.\n"
        "Services: {services}\n"
        "Total: {totalAmount}\n"
        "Pickup & drop: {pickupDropService}\n\n"
        "{garageName}, {garageAddress} ({garagePhone})\n"
        "Manage your booking: {dashboardUrl}\n"
    ),
    "bookingStatusUpdate": (
        "Hi {name},\n\n"
        "{statusMessage}\n"
        "Booking #{bookingId} at {garageName} on {date} is now {status}.\n"
        "Notes: {notes}\n\n"
        "Details: {dashboardUrl}\n"
    ),
    "bookingReminder": (
        "Hi {name},\n\n"
        "This is a reminder that your appointment at {garageName} is in {reminderTime}.\n"
        "When: {date}, {time}\n"
        "Where: {address} ({phone})\n"
        "Pickup & drop: {pickupDropService} (pickup from {pickupAddress})\n\n"
        "View booking: {dashboardUrl}\n"
        "Need to cancel? {cancelUrl}\n"
    ),
}


class NotificationError(Exception):
    """Raised when a notification cannot be accepted for delivery."""


@dataclass(frozen=True)
class Notification:
    to: str
    subject: str
    template_type: str
    body: str


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(
            item.get("name", str(item)) if isinstance(item, dict) else str(item)
            for item in value
        )
    return "" if value is None else str(value)


def render_notification(to: str, subject: str, template_type: str, data: dict[str, Any]) -> Notification:
    required = TEMPLATE_FIELDS.get(template_type)
    if required is None:
        raise NotificationError(f"Unknown notification type: {template_type}")

    missing = [field for field in required if field not in data]
    if missing:
        raise NotificationError(f"Missing fields: {', '.join(missing)}")

    if not to:
        raise NotificationError("Notification recipient is empty.")

    values = {key: _format_value(value) for key, value in data.items()}
    return Notification(
        to=to,
        subject=subject,
        template_type=template_type,
        body=_TEMPLATES[template_type].format(**values),
    )


def deliver(notification: Notification) -> None:
    if "@" in notification.to:
        send_email(notification.to, notification.subject, notification.body)
    elif notification.to.startswith("+"):
        send_whatsapp_message(
            to=notification.to,
            body=f"{notification.subject}\n\n{notification.body}",
        )
    else:
        raise NotificationError(f"Unsupported recipient: {notification.to}")


class NotificationDispatcher:
    """Bounded queue with one consumer thread."""

    def __init__(
        self,
        maxsize: int = NOTIFICATION_QUEUE_SIZE,
        deliver_fn: Callable[[Notification], None] = deliver,
    ) -> None:
        self._queue: queue.Queue[Notification | None] = queue.Queue(maxsize=maxsize)
        self._deliver = deliver_fn
        self._worker: threading.Thread | None = None
        self._lock = threading.Lock()

    def send_notification(
        self,
        to: str,
        subject: str,
        template_type: str,
        data: dict[str, Any],
    ) -> None:
        notification = render_notification(to, subject, template_type, data)
        self._ensure_worker()
        try:
            self._queue.put_nowait(notification)
        except queue.Full as exc:
            raise NotificationError("Notification queue is full.") from exc
        logger.info("Queued %s notification to %s", template_type, to)

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(
                target=self._consume,
                name="notification-dispatcher",
                daemon=True,
            )
            self._worker.start()

    def _consume(self) -> None:
        while True:
            notification = self._queue.get()
            try:
                if notification is None:
                    return
                self._deliver(notification)
            except Exception:
                logger.exception(
                    "Failed to deliver %s notification to %s",
                    notification.template_type,
                    notification.to,
                )
            finally:
                self._queue.task_done()

    def join(self) -> None:
        """Block until every queued notification has been handled."""
        self._queue.join()

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._lock:
            worker = self._worker
            self._worker = None
        if worker is None or not worker.is_alive():
            return
        self._queue.put(None)
        worker.join(timeout)


_dispatcher: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


def send_notification(to: str, subject: str, template_type: str, data: dict[str, Any]) -> None:
    get_dispatcher().send_notification(to, subject, template_type, data)
