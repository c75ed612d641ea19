"""Database initialization utilities."""

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from garage_booking.db import models  # noqa: F401 - ensure model metadata is registered
from garage_booking.db.session import Base, engine as default_engine

logger = logging.getLogger(__name__)

# Columns added after the first schema release; created additively on older databases.
_ADDITIVE_COLUMNS = (
    ("bookings", "reminder_sent_one_hour", "reminder_sent_one_hour BOOLEAN NOT NULL DEFAULT 0"),
    (
        "bookings",
        "reminder_sent_twenty_four_hour",
        "reminder_sent_twenty_four_hour BOOLEAN NOT NULL DEFAULT 0",
    ),
    ("bookings", "selected_time_slot", "selected_time_slot VARCHAR(64)"),
    ("booking_reminder_triggers", "attempts", "attempts INTEGER NOT NULL DEFAULT 0"),
    ("booking_reminder_triggers", "last_error", "last_error TEXT"),
    ("booking_reminder_triggers", "last_run_at", "last_run_at DATETIME"),
)


def _get_columns(engine: Engine, table_name: str) -> set[str]:
    inspector = inspect(engine)
    if table_name not in inspector.get_table_names():
        return set()
    return {column["name"] for column in inspector.get_columns(table_name)}


def _ensure_column(engine: Engine, table_name: str, column_name: str, column_ddl: str) -> None:
    existing_columns = _get_columns(engine, table_name)
    if not existing_columns or column_name in existing_columns:
        return

    with engine.begin() as connection:
        connection.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_ddl}"))
    logger.info("Added column %s.%s", table_name, column_name)


def _ensure_index(engine: Engine, table_name: str, index_name: str, columns: list[str]) -> None:
    if not _get_columns(engine, table_name):
        return

    columns_sql = ", ".join(columns)
    with engine.begin() as connection:
        connection.execute(
            text(
                f"CREATE INDEX IF NOT EXISTS {index_name} "
                f"ON {table_name} ({columns_sql})"
            )
        )


def init_db(engine: Engine | None = None) -> None:
    """Create and migrate schema in a SQLite-safe, additive manner."""
    engine = engine or default_engine
    Base.metadata.create_all(bind=engine)

    for table_name, column_name, column_ddl in _ADDITIVE_COLUMNS:
        _ensure_column(engine, table_name, column_name, column_ddl)

    # Due-polling scans by fire time and lock expiry together.
    _ensure_index(
        engine,
        table_name="booking_reminder_triggers",
        index_name="ix_booking_reminder_triggers_due",
        columns=["fire_at", "locked_until"],
    )
