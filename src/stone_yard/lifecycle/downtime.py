"""Elapsed time and power-cut accounting.

Net time for a stage is wall-clock time since the stage started minus
the logged power-cut windows. Overlapping cuts are summed as logged.
"""

import math
from datetime import datetime, timedelta
from typing import Iterable, Optional

from stone_yard.database.models import PowerCut, new_id, parse_timestamp
from stone_yard.utils.formatters import format_elapsed

from .errors import ValidationError


def make_power_cut(start, end) -> PowerCut:
    """Build a power cut after checking its window."""
    start_at = parse_timestamp(start)
    end_at = parse_timestamp(end)
    if start_at is None or end_at is None:
        raise ValidationError("Power cut needs both a start and an end time")
    if end_at < start_at:
        raise ValidationError("Power cut cannot end before it starts")
    return PowerCut(id=new_id(), start=start_at.isoformat(),
                    end=end_at.isoformat())


def downtime(power_cuts: Iterable[PowerCut]) -> timedelta:
    """Total logged downtime, using each cut's whole-minute duration."""
    return timedelta(minutes=sum(c.duration_minutes for c in power_cuts))


def net_elapsed(start, power_cuts: Iterable[PowerCut],
                now) -> timedelta:
    """Running time of a live stage, never negative."""
    start_at = parse_timestamp(start)
    if start_at is None:
        return timedelta(0)
    elapsed = parse_timestamp(now) - start_at - downtime(power_cuts)
    return max(elapsed, timedelta(0))


def net_duration_minutes(start, end, power_cuts: Iterable[PowerCut]) -> int:
    """Final net duration in whole minutes, stored when a stage finishes."""
    elapsed = net_elapsed(start, power_cuts, end)
    return math.floor(elapsed.total_seconds() / 60 + 0.5)


class ElapsedTicker:
    """Live HH:MM:SS display for a cutting or resin stage.

    ``stage`` is ``"cutting"`` or ``"resin"``; the ticker reads the
    matching start/end and power cuts from the block on every tick.
    """

    def __init__(self, block, stage: str = "cutting"):
        if stage not in ("cutting", "resin"):
            raise ValueError(f"Unknown stage: {stage}")
        self.block = block
        self.stage = stage

    def _window(self):
        if self.stage == "resin":
            return (self.block.resin_start_time, self.block.resin_end_time,
                    self.block.resin_power_cuts)
        return (self.block.start_time, self.block.end_time,
                self.block.power_cuts)

    @property
    def running(self) -> bool:
        start, end, _ = self._window()
        return bool(start) and not end

    def elapsed(self, now: Optional[datetime] = None) -> timedelta:
        start, end, cuts = self._window()
        return net_elapsed(start, cuts, end or now or datetime.now())

    def tick(self, now: Optional[datetime] = None) -> str:
        return format_elapsed(self.elapsed(now))
