"""Tests for read-side statistics."""

import random

from stone_yard.database.models import Block
from stone_yard.lifecycle.aggregates import (
    average_recovery,
    dashboard_stats,
    machine_occupancy,
    queue_lengths,
    search_blocks,
    sold_companies,
    sold_history,
    status_breakdown,
    summarize,
)


def _blocks():
    return [
        Block(id="1", job_no="G-1", company="ACME", status="Gantry", weight=4.1),
        Block(id="2", job_no="G-2", company="ACME", status="Gantry", weight=3.3,
              is_to_be_cut=True, mines_marka="RIDGE"),
        Block(id="3", job_no="C-1", company="BETA", status="Cutting", weight=5.0,
              assigned_machine_id="Machine 2"),
        Block(id="4", job_no="P-1", company="ACME", status="Processing",
              weight=2.0, is_sent_to_resin=True),
        Block(id="5", job_no="R-1", company="ACME", status="Completed",
              weight=2.0, total_sqft=300.0),
        Block(id="6", job_no="Y-1", company="BETA", status="In Stockyard",
              weight=4.0, total_sqft=410.55, slab_count=30),
        Block(id="7", job_no="S-1", company="ACME", status="Sold", weight=3.0,
              total_sqft=120.1, sold_to="MART", bill_no="INV-9",
              sold_at="2024-03-05T10:00:00"),
        Block(id="8", job_no="S-2", company="BETA", status="Sold", weight=6.0,
              total_sqft=0.0, sold_to="TRADERS", bill_no="INV-10",
              sold_at="2024-04-01T08:00:00"),
        Block(id="9", job_no="T-1", company="ACME", status="Purchased", weight=9.0),
    ]


class TestSummaries:
    def test_summarize_by_status_and_company(self):
        totals = summarize(_blocks(), status="Gantry", company="ACME")
        assert totals["count"] == 2
        assert totals["weight"] == 7.4
        assert totals["sqft"] == 0.0

    def test_summarize_all(self):
        totals = summarize(_blocks())
        assert totals["count"] == 9
        assert totals["slabs"] == 30
        assert totals["sqft"] == 830.65

    def test_average_recovery_counts_all_weight(self):
        blocks = [Block(weight=2.0, total_sqft=300.0),
                  Block(weight=4.0, total_sqft=300.0),
                  Block(weight=10.0)]
        assert average_recovery(blocks) == 37.5

    def test_average_recovery_no_weight(self):
        assert average_recovery([Block(total_sqft=50.0)]) == 0.0
        assert average_recovery([]) == 0.0

    def test_status_breakdown_covers_every_status(self):
        breakdown = status_breakdown(_blocks())
        assert list(breakdown)[0] == "Purchased"
        assert breakdown["Sold"] == {"count": 2, "weight": 9.0}
        assert sum(v["count"] for v in breakdown.values()) == 9

    def test_queue_lengths(self):
        queues = queue_lengths(_blocks())
        assert queues == {
            "in_transit": 1,
            "gantry": 2,
            "cutting_queue": 1,
            "cutting": 1,
            "processing": 0,
            "resin_queue": 1,
            "resining": 0,
            "ready_stock": 1,
            "stockyard": 1,
        }

    def test_dashboard_stats(self):
        stats = dashboard_stats(_blocks())
        assert stats == {
            "total_gantry_weight": 7.4,
            "active_cutting_count": 1,
            "ready_stock_count": 1,
            "yard_area": 410.55,
            "sold_area": 120.1,
            "resin_queue": 1,
        }

    def test_order_independent(self):
        blocks = _blocks()
        expected = (dashboard_stats(blocks), summarize(blocks))
        shuffled = list(blocks)
        random.Random(7).shuffle(shuffled)
        assert (dashboard_stats(shuffled), summarize(shuffled)) == expected

    def test_inputs_untouched(self):
        blocks = _blocks()
        before = [b.to_dict() for b in blocks]
        dashboard_stats(blocks)
        queue_lengths(blocks)
        sold_history(blocks, search="mart")
        assert [b.to_dict() for b in blocks] == before


class TestLookups:
    def test_machine_occupancy(self):
        occupancy = machine_occupancy(_blocks(), ["Machine 1", "Machine 2"])
        assert occupancy["Machine 1"] is None
        assert occupancy["Machine 2"].job_no == "C-1"

    def test_search_matches_marka(self):
        assert [b.id for b in search_blocks(_blocks(), "ridge")] == ["2"]

    def test_empty_search_returns_all(self):
        assert len(search_blocks(_blocks(), "  ")) == 9


class TestSoldHistory:
    def test_newest_first(self):
        assert [b.job_no for b in sold_history(_blocks())] == ["S-2", "S-1"]

    def test_month_is_one_based(self):
        march = sold_history(_blocks(), month=3, year=2024)
        assert [b.job_no for b in march] == ["S-1"]

    def test_company_filter(self):
        assert [b.job_no for b in sold_history(_blocks(), company="BETA")] == ["S-2"]

    def test_search_on_bill(self):
        assert [b.job_no for b in sold_history(_blocks(), search="inv-10")] == ["S-2"]

    def test_sold_companies(self):
        assert sold_companies(_blocks()) == ["ACME", "BETA"]
