"""Read-side statistics over a block collection.

Everything here is a pure function of the blocks passed in. Sums use
``math.fsum`` so the result does not depend on the order of the list.
"""

import math
from typing import Iterable, Optional

from stone_yard.database.models import Block, parse_timestamp
from stone_yard.utils.constants import (
    BLOCK_STATUSES,
    STATUS_COMPLETED,
    STATUS_CUTTING,
    STATUS_GANTRY,
    STATUS_IN_STOCKYARD,
    STATUS_PROCESSING,
    STATUS_PURCHASED,
    STATUS_RESINING,
    STATUS_SOLD,
)


def _sum(values) -> float:
    return round(math.fsum(v or 0 for v in values), 2)


def recovery(block: Block) -> float:
    """Square feet per ton for one block, 0.0 when weight is zero."""
    return block.recovery


def average_recovery(blocks: Iterable[Block]) -> float:
    """Total area over total weight, in sqft per tonne."""
    blocks = list(blocks)
    weight = math.fsum(float(b.weight or 0) for b in blocks)
    if not weight:
        return 0.0
    return round(math.fsum(float(b.total_sqft or 0) for b in blocks) / weight, 2)


def summarize(blocks: Iterable[Block], status: Optional[str] = None,
              company: Optional[str] = None) -> dict:
    """Count, weight, area and slabs of the blocks matching the filters."""
    selected = [
        b for b in blocks
        if (status is None or b.status == status)
        and (company is None or b.company == company)
    ]
    return {
        "count": len(selected),
        "weight": _sum(b.weight for b in selected),
        "sqft": _sum(b.total_sqft for b in selected),
        "slabs": sum(int(b.slab_count or 0) for b in selected),
        "recovery": average_recovery(selected),
    }


def status_breakdown(blocks: Iterable[Block]) -> dict:
    """Count and total weight for every status, in pipeline order."""
    blocks = list(blocks)
    breakdown = {}
    for status in BLOCK_STATUSES:
        members = [b for b in blocks if b.status == status]
        breakdown[status] = {
            "count": len(members),
            "weight": _sum(b.weight for b in members),
        }
    return breakdown


def queue_lengths(blocks: Iterable[Block]) -> dict:
    """How many blocks wait at, or occupy, each stage."""
    blocks = list(blocks)

    def count(predicate) -> int:
        return sum(1 for b in blocks if predicate(b))

    return {
        "in_transit": count(lambda b: b.status == STATUS_PURCHASED),
        "gantry": count(lambda b: b.status == STATUS_GANTRY),
        "cutting_queue": count(
            lambda b: b.status == STATUS_GANTRY and b.is_to_be_cut
        ),
        "cutting": count(lambda b: b.status == STATUS_CUTTING),
        "processing": count(
            lambda b: b.status == STATUS_PROCESSING and not b.is_sent_to_resin
        ),
        "resin_queue": count(
            lambda b: b.status == STATUS_PROCESSING and b.is_sent_to_resin
        ),
        "resining": count(lambda b: b.status == STATUS_RESINING),
        "ready_stock": count(lambda b: b.status == STATUS_COMPLETED),
        "stockyard": count(lambda b: b.status == STATUS_IN_STOCKYARD),
    }


def dashboard_stats(blocks: Iterable[Block]) -> dict:
    """Headline figures for the factory dashboard."""
    blocks = list(blocks)
    return {
        "total_gantry_weight": _sum(
            b.weight for b in blocks if b.status == STATUS_GANTRY
        ),
        "active_cutting_count": sum(
            1 for b in blocks if b.status == STATUS_CUTTING
        ),
        "ready_stock_count": sum(
            1 for b in blocks if b.status == STATUS_COMPLETED
        ),
        "yard_area": _sum(
            b.total_sqft for b in blocks if b.status == STATUS_IN_STOCKYARD
        ),
        "sold_area": _sum(
            b.total_sqft for b in blocks if b.status == STATUS_SOLD
        ),
        "resin_queue": sum(
            1 for b in blocks
            if b.status == STATUS_PROCESSING and b.is_sent_to_resin
        ),
    }


def machine_occupancy(blocks: Iterable[Block],
                      machines: Iterable[str]) -> dict:
    """Map each machine to the block cutting on it, or None."""
    occupancy = {m: None for m in machines}
    for block in blocks:
        if block.status == STATUS_CUTTING and block.assigned_machine_id:
            occupancy[block.assigned_machine_id] = block
    return occupancy


def search_blocks(blocks: Iterable[Block], term: str) -> list[Block]:
    """Case-insensitive match on job no, company, material and marka."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(blocks)
    return [
        b for b in blocks
        if any(
            needle in (value or "").lower()
            for value in (b.job_no, b.company, b.material, b.mines_marka)
        )
    ]


def sold_history(blocks: Iterable[Block], company: Optional[str] = None,
                 month: Optional[int] = None, year: Optional[int] = None,
                 search: str = "") -> list[Block]:
    """Sold blocks filtered by company, sale month/year and a search term.

    ``month`` is 1-12. The newest sale comes first.
    """
    needle = (search or "").strip().lower()
    result = []
    for block in blocks:
        if block.status != STATUS_SOLD:
            continue
        if company and block.company != company:
            continue
        sold_at = parse_timestamp(block.sold_at)
        if month is not None and (sold_at is None or sold_at.month != month):
            continue
        if year is not None and (sold_at is None or sold_at.year != year):
            continue
        if needle and not any(
            needle in (value or "").lower()
            for value in (block.sold_to, block.bill_no, block.job_no,
                          block.company)
        ):
            continue
        result.append(block)
    return sorted(result, key=lambda b: (b.sold_at or "", b.job_no),
                  reverse=True)


def sold_companies(blocks: Iterable[Block]) -> list[str]:
    """Companies that have sold blocks, for the history filter."""
    return sorted({b.company for b in blocks if b.status == STATUS_SOLD})
