import pytest
from sqlalchemy.exc import OperationalError

from app.db import bootstrap


def test_runtime_schema_reports_missing_tables(monkeypatch):
    monkeypatch.setattr(bootstrap, "_ensure_acknowledgment_reminder_column", lambda: None)
    monkeypatch.setattr(
        bootstrap,
        "missing_schema_parts",
        lambda: (["duty_assignments"], {}),
    )

    with pytest.raises(RuntimeError, match="Missing required tables: duty_assignments"):
        bootstrap.ensure_runtime_schema()


def test_runtime_schema_reports_missing_columns(monkeypatch):
    monkeypatch.setattr(bootstrap, "_ensure_acknowledgment_reminder_column", lambda: None)
    monkeypatch.setattr(
        bootstrap,
        "missing_schema_parts",
        lambda: ([], {"duty_acknowledgments": ["reminder_sent"]}),
    )

    with pytest.raises(RuntimeError, match="duty_acknowledgments.reminder_sent"):
        bootstrap.ensure_runtime_schema()


def test_runtime_schema_wraps_storage_failures(monkeypatch):
    def unavailable():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(bootstrap, "_ensure_acknowledgment_reminder_column", unavailable)

    with pytest.raises(RuntimeError, match="Runtime schema bootstrap failed"):
        bootstrap.ensure_runtime_schema()


def test_create_missing_builds_every_table(monkeypatch):
    created = []
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: created.append(bind))
    monkeypatch.setattr(bootstrap, "_ensure_acknowledgment_reminder_column", lambda: None)
    monkeypatch.setattr(bootstrap, "missing_schema_parts", lambda: ([], {}))

    bootstrap.ensure_runtime_schema(create_missing=True)

    assert created == [bootstrap.engine]
