"""Tests for edits, deletes and storage failure handling."""

import sqlite3

import pytest

from stone_yard.lifecycle.errors import (
    DuplicateIdentifierError,
    InvalidQuantityError,
    InvalidTransitionError,
    PermissionDeniedError,
    RemoteFailureError,
    ValidationError,
)
from stone_yard.lifecycle.splitting import split_job_no

ADMIN = "ADMIN"
COMPANY = "ACME STONE"


class TestEditBlock:
    def test_edit_descriptive_fields(self, lifecycle, repo, receive):
        block = receive()
        lifecycle.edit_block(COMPANY, block.id, material="tan brown", msp="450")
        stored = repo.get_block_by_id(block.id)
        assert stored.material == "TAN BROWN"
        assert stored.msp == "450"
        assert stored.status == "Gantry"

    def test_no_changes_returns_block(self, lifecycle, receive):
        block = receive()
        assert lifecycle.edit_block(ADMIN, block.id).id == block.id

    @pytest.mark.parametrize("name", [
        "status", "start_time", "power_cuts", "sold_at", "resin_batch_id",
        "sold_to", "bill_no", "is_sent_to_resin", "processing_stage",
        "resin_treatment_type", "cut_by_machine", "processing_started_at",
    ])
    def test_lifecycle_fields_refused(self, lifecycle, receive, name):
        with pytest.raises(ValidationError, match="managed by the lifecycle"):
            lifecycle.edit_block(ADMIN, receive().id, **{name: None})

    def test_unknown_field(self, lifecycle, receive):
        with pytest.raises(ValidationError, match="Unknown fields"):
            lifecycle.edit_block(ADMIN, receive().id, colour="red")

    def test_invalid_choice(self, lifecycle, receive):
        with pytest.raises(ValidationError):
            lifecycle.edit_block(ADMIN, receive().id, stockyard_location="Roof")

    def test_negative_weight(self, lifecycle, receive):
        with pytest.raises(InvalidQuantityError):
            lifecycle.edit_block(ADMIN, receive().id, weight=-2)

    @pytest.mark.parametrize("name, value", [
        ("total_sqft", "abc"),
        ("slab_count", "x"),
        ("weight", "heavy"),
        ("slab_count", 2.5),
    ])
    def test_bad_quantity_refused(self, lifecycle, repo, receive, name, value):
        block = receive()
        before = repo.get_block_by_id(block.id)
        with pytest.raises(InvalidQuantityError):
            lifecycle.edit_block(ADMIN, block.id, **{name: value})
        assert repo.get_block_by_id(block.id) == before

    def test_numeric_text_accepted(self, lifecycle, repo, receive):
        block = receive()
        lifecycle.edit_block(ADMIN, block.id, weight="6.5", slab_count="12")
        stored = repo.get_block_by_id(block.id)
        assert stored.weight == 6.5
        assert stored.slab_count == 12

    def test_empty_job_no(self, lifecycle, receive):
        with pytest.raises(ValidationError):
            lifecycle.edit_block(ADMIN, receive().id, job_no=" ")

    def test_job_no_must_stay_unique(self, lifecycle, receive):
        receive("JOB-1")
        other = receive("JOB-2")
        with pytest.raises(DuplicateIdentifierError):
            lifecycle.edit_block(ADMIN, other.id, job_no="job-1")

    def test_renaming_to_same_job_no(self, lifecycle, repo, receive):
        block = receive("JOB-1")
        lifecycle.edit_block(ADMIN, block.id, job_no="job-1", weight=6)
        assert repo.get_block_by_id(block.id).weight == 6.0

    def test_cannot_move_block_to_other_company(self, lifecycle, repo, receive):
        block = receive()
        with pytest.raises(PermissionDeniedError):
            lifecycle.edit_block(COMPANY, block.id, company="GRANITO EXPORTS")
        assert repo.get_block_by_id(block.id).company == COMPANY

    def test_admin_moves_block(self, lifecycle, repo, receive):
        block = receive()
        lifecycle.edit_block(ADMIN, block.id, company="Granito Exports")
        assert repo.get_block_by_id(block.id).company == "GRANITO EXPORTS"

    def test_guest_refused(self, lifecycle, receive):
        with pytest.raises(PermissionDeniedError):
            lifecycle.edit_block("GUEST", receive().id, material="X")

    def test_missing_block(self, lifecycle):
        with pytest.raises(ValidationError, match="not found"):
            lifecycle.edit_block(ADMIN, "nope", material="X")


class TestDelete:
    def test_delete_block(self, lifecycle, repo, receive):
        block = receive()
        lifecycle.delete_block(COMPANY, block.id)
        assert repo.get_block_by_id(block.id) is None

    def test_delete_blocks(self, lifecycle, repo, receive):
        ids = [receive(f"JOB-{n}").id for n in range(3)]
        assert lifecycle.delete_blocks(ADMIN, ids) == 3
        assert repo.block_count() == 0

    def test_delete_blocks_all_or_nothing(self, lifecycle, repo, receive):
        own = receive("JOB-1", company=COMPANY)
        other = receive("JOB-2", company="GRANITO EXPORTS")
        with pytest.raises(PermissionDeniedError):
            lifecycle.delete_blocks(COMPANY, [own.id, other.id])
        assert repo.block_count() == 2

    def test_guest_cannot_bulk_delete(self, lifecycle, receive):
        with pytest.raises(PermissionDeniedError):
            lifecycle.delete_blocks("GUEST", [receive().id])

    def test_unknown_ids(self, lifecycle):
        with pytest.raises(ValidationError, match="not found"):
            lifecycle.delete_blocks(ADMIN, ["nope"])


class TestStorageErrors:
    def test_stale_status_is_reported(self, lifecycle, repo, receive, monkeypatch):
        block = receive()
        stale = repo.get_block_by_id(block.id)
        repo.update_block(block.id, {"status": "Sold"})
        monkeypatch.setattr(lifecycle, "_load", lambda block_id: stale)
        with pytest.raises(InvalidTransitionError, match="Reload"):
            lifecycle.start_cutting(ADMIN, block.id, "Machine 1",
                                    thickness="18mm")
        assert repo.get_block_by_id(block.id).status == "Sold"

    def test_store_failure_is_remote_failure(self, lifecycle, repo, receive,
                                             monkeypatch):
        block = receive()

        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(repo, "apply_block_updates", broken)
        with pytest.raises(RemoteFailureError) as exc_info:
            lifecycle.set_priority(ADMIN, block.id, True)
        assert exc_info.value.block_ids == [block.id]
        assert isinstance(exc_info.value.cause, sqlite3.OperationalError)

    def test_duplicate_job_no_caught_by_store(self, lifecycle, repo, receive,
                                              monkeypatch):
        receive("JOB-1")
        monkeypatch.setattr(repo, "job_no_exists", lambda *a, **kw: False)
        with pytest.raises(DuplicateIdentifierError) as exc_info:
            receive("JOB-1")
        assert exc_info.value.job_no == "JOB-1"
        assert repo.block_count() == 1

    def test_busy_machine_caught_by_store(self, lifecycle, repo, receive,
                                          monkeypatch):
        first, second = receive("JOB-1"), receive("JOB-2")
        lifecycle.start_cutting(ADMIN, first.id, "Machine 1", thickness="18mm")
        monkeypatch.setattr(repo, "get_machine_block", lambda machine_id: None)
        with pytest.raises(InvalidTransitionError,
                           match="already cutting another block"):
            lifecycle.start_cutting(ADMIN, second.id, "Machine 1",
                                    thickness="18mm")
        assert repo.get_block_by_id(second.id).status == "Gantry"

    def test_occupied_resin_line_caught_by_store(self, lifecycle, repo,
                                                 processed, monkeypatch):
        ids = []
        for job_no in ("JOB-1", "JOB-2"):
            block = processed(job_no=job_no)
            lifecycle.finish_processing(ADMIN, block.id, 110, 70, 10, 100,
                                        send_to_resin=True)
            ids.append(block.id)
        lifecycle.start_resin_batch(ADMIN, [ids[0]], "Resin")
        monkeypatch.setattr(lifecycle, "active_resin_batch", lambda: None)
        with pytest.raises(InvalidTransitionError, match="another batch"):
            lifecycle.start_resin_batch(ADMIN, [ids[1]], "Resin")
        assert repo.get_block_by_id(ids[1]).status == "Processing"

    def test_split_sale_reports_new_job_no(self, lifecycle, repo, receive,
                                           in_yard, clock, monkeypatch):
        block = in_yard("JOB-1")
        taken = split_job_no("JOB-1", lambda _: False,
                             clock=lambda: clock().timestamp())
        receive(taken)
        monkeypatch.setattr(repo, "job_no_exists", lambda *a, **kw: False)
        with pytest.raises(DuplicateIdentifierError) as exc_info:
            lifecycle.sell_area(ADMIN, block.id, 40, "MART", "INV-1")
        assert exc_info.value.job_no == taken
        assert repo.get_block_by_id(block.id).total_sqft == 100.0

    def test_listing(self, lifecycle, receive):
        receive("JOB-1")
        receive("JOB-2")
        assert {b.job_no for b in lifecycle.blocks()} == {"JOB-1", "JOB-2"}
        assert lifecycle.blocks("Sold") == []


class TestAllOrNothing:
    def test_sell_blocks(self, lifecycle, repo, in_yard, monkeypatch):
        first, second = in_yard("JOB-1"), in_yard("JOB-2")
        stale = repo.get_blocks_by_ids([first.id, second.id])
        repo.update_block(second.id, {"status": "Completed"})
        monkeypatch.setattr(lifecycle, "_load_many", lambda block_ids: stale)
        with pytest.raises(InvalidTransitionError, match="Reload"):
            lifecycle.sell_blocks(ADMIN, [first.id, second.id], "MART", "INV-1")
        assert repo.get_block_by_id(first.id).status == "In Stockyard"
        assert repo.get_block_by_id(second.id).status == "Completed"

    def test_start_resin_batch(self, lifecycle, repo, processed, monkeypatch):
        ids = []
        for job_no in ("JOB-1", "JOB-2"):
            block = processed(job_no=job_no)
            lifecycle.finish_processing(ADMIN, block.id, 110, 70, 10, 100,
                                        send_to_resin=True)
            ids.append(block.id)
        stale = repo.get_blocks_by_ids(ids)
        repo.update_block(ids[1], {"status": "Completed"})
        monkeypatch.setattr(lifecycle, "_load_many", lambda block_ids: stale)
        with pytest.raises(InvalidTransitionError, match="Reload"):
            lifecycle.start_resin_batch(ADMIN, ids, "Resin")
        untouched = repo.get_block_by_id(ids[0])
        assert untouched.status == "Processing"
        assert untouched.resin_batch_id is None

    def test_delete_blocks(self, lifecycle, repo, receive, monkeypatch):
        first, second = receive("JOB-1"), receive("JOB-2")
        log_change = repo._log_change

        def failing_log(conn, action, block_id):
            if block_id == second.id:
                raise sqlite3.OperationalError("disk I/O error")
            log_change(conn, action, block_id)

        monkeypatch.setattr(repo, "_log_change", failing_log)
        with pytest.raises(RemoteFailureError):
            lifecycle.delete_blocks(ADMIN, [first.id, second.id])
        assert repo.block_count() == 2
