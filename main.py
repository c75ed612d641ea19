"""FastAPI entrypoint for the garage booking backend.

- `garage_booking/routes/` for API endpoints
- `garage_booking/services/` for booking, reminder and notification logic
- `garage_booking/db/` for SQLAlchemy models and session management
- `garage_booking/scheduler/` for the reminder trigger store and polling runtime
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.exceptions import HTTPException

from garage_booking.core.config import REMINDER_SCHEDULER_ENABLED
from garage_booking.core.domain_exceptions import DomainException
from garage_booking.core.exceptions import domain_exception_handler, http_exception_handler
from garage_booking.core.middleware import RequestContextMiddleware
from garage_booking.db.init_db import init_db
from garage_booking.routes import bookings
from garage_booking.scheduler.reminder_scheduler import start_scheduler, stop_scheduler
from garage_booking.services.notification_service import get_dispatcher

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Initialize app resources before serving traffic."""
    init_db()
    logger.info("Database tables initialized.")

    scheduler = None
    if REMINDER_SCHEDULER_ENABLED:
        try:
            scheduler = start_scheduler()
        except Exception:
            logger.exception("Failed to start reminder scheduler.")

    yield

    # Graceful shutdown.
    if scheduler:
        stop_scheduler(wait=False)
    get_dispatcher().stop()


app = FastAPI(
    title="Garage Booking API",
    version="0.1.0",
    description="Garage booking backend with scheduled appointment reminders.",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(DomainException, domain_exception_handler)

app.include_router(bookings.router)


@app.get("/", tags=["health"])
def root() -> dict[str, str]:
    """Simple status endpoint for uptime checks."""
    return {"status": "Garage Booking Running"}
