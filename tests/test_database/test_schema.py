"""Tests for schema creation and migrations."""

import sqlite3

import pytest

from stone_yard.database.connection import DatabaseConnection
from stone_yard.database.schema import SCHEMA_VERSION, initialize_database


def _tables(db):
    rows = db.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
    return {r["name"] for r in rows}


def _insert(conn, block_id, job_no, status="Gantry", machine=None,
            batch=None):
    conn.execute(
        "INSERT INTO blocks (id, job_no, company, material, status, "
        "entered_by, assigned_machine_id, resin_batch_id) "
        "VALUES (?, ?, 'ACME', 'GRANITE', ?, 'ADMIN', ?, ?)",
        (block_id, job_no, status, machine, batch),
    )


class TestInitialize:
    def test_creates_tables(self, db):
        assert {"blocks", "staff", "change_log", "schema_version"} <= _tables(db)

    def test_records_latest_version(self, db):
        rows = db.execute("SELECT MAX(version) AS v FROM schema_version")
        assert rows[0]["v"] == SCHEMA_VERSION

    def test_is_idempotent(self, db):
        initialize_database(db)
        rows = db.execute("SELECT COUNT(*) AS cnt FROM schema_version")
        assert rows[0]["cnt"] == SCHEMA_VERSION

    def test_migrates_v1_database(self, tmp_path):
        db = DatabaseConnection(tmp_path / "old.db")
        initialize_database(db, target_version=1)
        assert "change_log" not in _tables(db)

        initialize_database(db)
        assert "change_log" in _tables(db)
        columns = {r["name"] for r in db.execute("PRAGMA table_info(blocks)")}
        assert "resin_batch_id" in columns


class TestConstraints:
    def test_job_no_unique_ignoring_case(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            with db.get_connection() as conn:
                _insert(conn, "a", "JOB-1")
                _insert(conn, "b", "job-1")

    def test_one_block_per_cutting_machine(self, db):
        with db.get_connection() as conn:
            _insert(conn, "a", "JOB-1", "Cutting", machine="Machine 1")
        with pytest.raises(sqlite3.IntegrityError):
            with db.get_connection() as conn:
                _insert(conn, "b", "JOB-2", "Cutting", machine="Machine 1")

    def test_machine_reusable_after_cutting(self, db):
        with db.get_connection() as conn:
            _insert(conn, "a", "JOB-1", "Processing", machine="Machine 1")
            _insert(conn, "b", "JOB-2", "Cutting", machine="Machine 1")

    def test_single_resin_batch(self, db):
        with db.get_connection() as conn:
            _insert(conn, "a", "JOB-1", "Resining", batch="batch-1")
            _insert(conn, "b", "JOB-2", "Resining", batch="batch-1")
            _insert(conn, "c", "JOB-3", "Processing")
        with pytest.raises(sqlite3.IntegrityError, match="resin line occupied"):
            with db.get_connection() as conn:
                conn.execute(
                    "UPDATE blocks SET status = 'Resining', "
                    "resin_batch_id = 'batch-2' WHERE id = 'c'"
                )

    def test_negative_weight_rejected(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            with db.get_connection() as conn:
                conn.execute(
                    "INSERT INTO blocks (id, job_no, company, material, "
                    "weight, entered_by) VALUES ('x', 'J', 'A', 'M', -1, 'A')"
                )

    def test_unknown_status_rejected(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            with db.get_connection() as conn:
                _insert(conn, "a", "JOB-1", "Lost")
