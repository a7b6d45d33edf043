"""Partial-sale arithmetic.

A sale that takes part of a block produces a new Sold record carrying
the sold portion and shrinks the original by the same amount. These
helpers only compute the two halves; ``BlockLifecycle`` writes them.
"""

import math
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from .errors import InvalidQuantityError, ValidationError


def round2(value) -> float:
    return round(float(value or 0), 2)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class SplitPlan:
    """Outcome of a sale request against one block."""
    full: bool
    sold: dict = field(default_factory=dict)
    remainder: dict = field(default_factory=dict)


def _check_amount(requested, current, unit: str) -> tuple[float, float]:
    try:
        requested = round2(requested)
    except (TypeError, ValueError):
        raise InvalidQuantityError(f"{requested!r} is not a valid {unit} amount")
    current = round2(current)
    if requested <= 0:
        raise InvalidQuantityError(f"Sale amount must be more than 0 {unit}")
    if requested > current:
        raise InvalidQuantityError(
            f"Cannot sell {requested:.2f} {unit}, only {current:.2f} {unit} available"
        )
    return requested, current


def plan_area_sale(total_sqft, slab_count, requested_sqft) -> SplitPlan:
    """Split a block's area and slabs for an area sale."""
    requested, current = _check_amount(requested_sqft, total_sqft, "sqft")
    if requested == current:
        return SplitPlan(full=True)

    slabs = int(slab_count or 0)
    sold_slabs = round_half_up(slabs * requested / current)
    return SplitPlan(
        full=False,
        sold={"total_sqft": requested, "slab_count": sold_slabs},
        remainder={
            "total_sqft": round2(current - requested),
            "slab_count": slabs - sold_slabs,
        },
    )


def plan_weight_sale(weight, requested_weight) -> SplitPlan:
    """Split a raw block's weight for a weight sale."""
    requested, current = _check_amount(requested_weight, weight, "T")
    if requested == current:
        return SplitPlan(full=True, sold={"total_sqft": 0.0})
    return SplitPlan(
        full=False,
        sold={"weight": requested, "total_sqft": 0.0},
        remainder={"weight": round2(current - requested)},
    )


def split_job_no(job_no: str, exists: Callable[[str], bool],
                 prefix: str = "P",
                 clock: Optional[Callable[[], float]] = None) -> str:
    """Derive ``JOB-P1234`` from the clock, bumping the digits on collision."""
    clock = clock or time.time
    seed = int(clock() * 1000) % 10000
    for offset in range(10000):
        candidate = f"{job_no}-{prefix}{(seed + offset) % 10000:04d}"
        if not exists(candidate):
            return candidate
    raise ValidationError(f"No free split number left for {job_no}")
