from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "email", "role", "department", "is_active"},
    "exams": {"id", "date", "start_time", "end_time", "classroom_id"},
    "duty_assignments": {"id", "exam_id", "faculty_id", "classroom_id", "date", "start_time", "status"},
    "duty_acknowledgments": {"assignment_id", "status", "deadline", "reminder_sent"},
    "duty_live_statuses": {"assignment_id", "status", "opens_at", "closes_at"},
    "reserved_faculty_entries": {"id", "assignment_id", "faculty_id", "priority", "status"},
}


def _ensure_acknowledgment_reminder_column() -> None:
    # Databases created before reminders existed lack the flag.
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "duty_acknowledgments" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("duty_acknowledgments")}
        if "reminder_sent" in column_names:
            return
        connection.execute(
            text("ALTER TABLE duty_acknowledgments ADD COLUMN reminder_sent BOOLEAN NOT NULL DEFAULT FALSE")
        )


def missing_schema_parts() -> tuple[list[str], dict[str, list[str]]]:
    with engine.connect() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables: list[str] = []
        missing_columns: dict[str, list[str]] = {}
        for table_name, required in REQUIRED_COLUMNS.items():
            if table_name not in table_names:
                missing_tables.append(table_name)
                continue
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            missing = sorted(required - existing)
            if missing:
                missing_columns[table_name] = missing
    return missing_tables, missing_columns


def ensure_runtime_schema(create_missing: bool = False) -> None:
    try:
        if create_missing:
            Base.metadata.create_all(bind=engine)
        _ensure_acknowledgment_reminder_column()
        missing_tables, missing_columns = missing_schema_parts()
    except SQLAlchemyError as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema bootstrap failed")
        raise RuntimeError("Runtime schema bootstrap failed") from exc

    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")
    if missing_columns:
        flat = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
        raise RuntimeError(f"Missing required columns: {', '.join(flat)}")
