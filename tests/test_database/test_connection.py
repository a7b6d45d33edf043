"""Tests for the DatabaseConnection class."""

import sqlite3

import pytest

from stone_yard.database.connection import DatabaseConnection


class TestDatabaseConnectionInit:
    def test_creates_parent_dirs(self, tmp_path):
        db_path = tmp_path / "sub" / "deep" / "yard.db"
        DatabaseConnection(str(db_path))
        assert db_path.parent.exists()

    def test_db_path_stored_as_path(self, tmp_path):
        db = DatabaseConnection(str(tmp_path / "stored.db"))
        assert db.db_path == tmp_path / "stored.db"


class TestGetConnection:
    def test_row_factory_is_row(self, tmp_path):
        db = DatabaseConnection(tmp_path / "row.db")
        with db.get_connection() as conn:
            assert conn.row_factory == sqlite3.Row

    def test_auto_commits(self, tmp_path):
        db = DatabaseConnection(tmp_path / "commit.db")
        with db.get_connection() as conn:
            conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
            conn.execute("INSERT INTO t (v) VALUES ('slab')")
        rows = db.execute("SELECT v FROM t")
        assert [r["v"] for r in rows] == ["slab"]

    def test_rolls_back_on_error(self, tmp_path):
        db = DatabaseConnection(tmp_path / "rollback.db")
        db.execute("CREATE TABLE t (v TEXT)")
        with pytest.raises(RuntimeError):
            with db.get_connection() as conn:
                conn.execute("INSERT INTO t (v) VALUES ('lost')")
                raise RuntimeError("boom")
        assert db.execute("SELECT * FROM t") == []


class TestWriteTransaction:
    def test_commits_all_statements(self, tmp_path):
        db = DatabaseConnection(tmp_path / "tx.db")
        db.execute("CREATE TABLE t (v TEXT)")
        with db.write_transaction() as conn:
            conn.execute("INSERT INTO t (v) VALUES ('a')")
            conn.execute("INSERT INTO t (v) VALUES ('b')")
        assert len(db.execute("SELECT * FROM t")) == 2

    def test_failure_discards_every_statement(self, tmp_path):
        db = DatabaseConnection(tmp_path / "tx.db")
        db.execute("CREATE TABLE t (v TEXT NOT NULL)")
        with pytest.raises(sqlite3.IntegrityError):
            with db.write_transaction() as conn:
                conn.execute("INSERT INTO t (v) VALUES ('a')")
                conn.execute("INSERT INTO t (v) VALUES (NULL)")
        assert db.execute("SELECT * FROM t") == []
