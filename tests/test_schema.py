from pathlib import Path

import pytest

from halo.store.migrations import SchemaError, load_schema
from halo.store.records import StoreError
from halo.store.sqlite import SqliteStore

SCHEMA_PATH = Path(__file__).resolve().parents[1] / "resources" / "schema" / "canonical.yaml"


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(tmp_path / "test.sqlite")
    store.apply_schema(SCHEMA_PATH)
    return store


def test_apply_schema_creates_tables(tmp_path: Path) -> None:
    store = _store(tmp_path)
    for table in ("campaigns", "leads", "jobs"):
        row = store.fetch_one(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
        )
        assert row is not None


def test_apply_schema_is_repeatable(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.apply_schema(SCHEMA_PATH)
    row = store.fetch_one("SELECT version FROM __schema_meta")
    assert row["version"] == 1


def test_foreign_keys_enforced(tmp_path: Path) -> None:
    store = _store(tmp_path)
    with pytest.raises(StoreError):
        store.execute(
            "INSERT INTO leads (lead_id, campaign_id, name, email, phone, submitted_at, "
            "contact_attempt, is_cold_lead, job_status, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                "lead-1",
                "missing-campaign",
                "Dana",
                "dana@example.com",
                "5551234567",
                "2026-01-01T00:00:00+00:00",
                0,
                0,
                "new",
                "2026-01-01T00:00:00+00:00",
            ),
        )


def test_enum_columns_reject_unknown_values(tmp_path: Path) -> None:
    store = _store(tmp_path)
    with pytest.raises(StoreError):
        store.execute(
            "INSERT INTO campaigns (campaign_id, contractor_id, name, status, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            ("c-1", "contractor-1", "Spring", "Paused", "2026-01-01", "2026-01-01"),
        )


def test_load_schema_lists_columns() -> None:
    schema = load_schema(SCHEMA_PATH)
    assert "tentative_date" in schema.columns("leads")
    assert "scheduled_inspection_date" in schema.columns("jobs")
    assert schema.columns("missing") == []


def test_unknown_enum_reference_is_rejected(tmp_path: Path) -> None:
    schema_path = tmp_path / "bad.yaml"
    schema_path.write_text(
        "version: 1\n"
        "enums: {}\n"
        "tables:\n"
        "  things:\n"
        "    primary_key: thing_id\n"
        "    fields:\n"
        "      thing_id: {type: uuid, required: true}\n"
        "      state: {type: enum, enum: missing}\n",
        encoding="utf-8",
    )
    store = SqliteStore(tmp_path / "test.sqlite")
    with pytest.raises(SchemaError):
        store.apply_schema(schema_path)
