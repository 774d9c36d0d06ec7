"""Tests for database initialization and the payout audit table."""

import json


async def test_init_creates_tables(db):
    """Test that init_db creates the audit table."""
    rows = await db.fetch_all(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    )
    tables = [row[0] for row in rows]
    assert "payout_audit" in tables


async def test_init_is_idempotent(db):
    from admin_portal.database import init_db

    await init_db()
    rows = await db.fetch_all("SELECT name FROM sqlite_master WHERE name = 'payout_audit'")
    assert len(rows) == 1


async def test_insert_audit_row(db):
    await db.execute(
        "INSERT INTO payout_audit (person_id, attempted_at, amount, outcome, warnings) "
        "VALUES (?, ?, ?, ?, ?)",
        ("7", "2026-01-01T00:00:00Z", "100.00", "Succeeded", json.dumps(["not saved"])),
    )
    await db.commit()

    row = await db.fetch_one("SELECT * FROM payout_audit WHERE person_id = ?", ("7",))
    assert row["outcome"] == "Succeeded"
    assert json.loads(row["warnings"]) == ["not saved"]
    assert row["created_at"] is not None


async def test_warnings_default_to_empty_list(db):
    await db.execute(
        "INSERT INTO payout_audit (person_id, attempted_at, amount, outcome) VALUES (?, ?, ?, ?)",
        ("8", "2026-01-01T00:00:00Z", "5", "Failed"),
    )
    await db.commit()

    row = await db.fetch_one("SELECT warnings FROM payout_audit WHERE person_id = ?", ("8",))
    assert row["warnings"] == "[]"
