"""Shared test fixtures."""

from datetime import datetime, timedelta

import pytest

from stone_yard.config import Config
from stone_yard.database.connection import DatabaseConnection
from stone_yard.database.repository import Repository
from stone_yard.database.schema import initialize_database
from stone_yard.lifecycle.service import BlockLifecycle

ADMIN = "ADMIN"
COMPANY = "ACME STONE"


class FakeClock:
    """A settable clock for deterministic timestamps."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture(autouse=True)
def floor_config(monkeypatch):
    """Pin the factory settings so .env or settings.json cannot leak in."""
    monkeypatch.setattr(Config, "ADMIN_OPERATOR", ADMIN)
    monkeypatch.setattr(Config, "PURCHASE_COMPANY", "HI-LINE")
    monkeypatch.setattr(Config, "CUTTING_MACHINES",
                        ["Machine 1", "Machine 2", "Thin Wire Machine"])
    monkeypatch.setattr(Config, "THICKNESS_CLASSES", ["16mm", "18mm", "20mm"])
    monkeypatch.setattr(Config, "SPLIT_SUFFIX_PREFIX", "P")


@pytest.fixture
def db_path(tmp_path):
    """Provide a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def db(db_path):
    """Provide an initialized database connection."""
    conn = DatabaseConnection(db_path)
    initialize_database(conn)
    return conn


@pytest.fixture
def repo(db):
    """Provide a repository with an initialized database."""
    return Repository(db)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 4, 9, 0))


@pytest.fixture
def lifecycle(repo, clock):
    """Provide a lifecycle service on a fixed clock."""
    return BlockLifecycle(repo, now=clock)


@pytest.fixture
def receive(lifecycle):
    """Factory: put a raw block on the gantry."""
    def _receive(job_no="JOB-1", company=COMPANY, weight=5.0,
                 material="Black Galaxy"):
        return lifecycle.receive_block(
            ADMIN, job_no, company, material, weight, 110, 70, 60,
            mines_marka="MK",
        )
    return _receive


@pytest.fixture
def processed(lifecycle, receive, clock):
    """Factory: a block that has been cut and is in Processing."""
    def _processed(job_no="JOB-1", company=COMPANY, machine="Machine 1"):
        block = receive(job_no=job_no, company=company)
        lifecycle.start_cutting(ADMIN, block.id, machine, thickness="18mm")
        clock.advance(hours=2)
        return lifecycle.finish_cutting(ADMIN, block.id)
    return _processed


@pytest.fixture
def in_yard(lifecycle, processed):
    """Factory: a finished block in the stockyard with slabs."""
    def _in_yard(job_no="JOB-1", sqft=100.0, slabs=10, company=COMPANY):
        block = processed(job_no=job_no, company=company)
        lifecycle.finish_processing(ADMIN, block.id, 110, 70, slabs, sqft)
        return lifecycle.transfer_to_yard(ADMIN, block.id, "Showroom")
    return _in_yard
