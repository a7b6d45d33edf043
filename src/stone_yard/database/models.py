"""Data models for the database layer."""

import json
import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime
from typing import Optional

from stone_yard.lifecycle.splitting import round_half_up
from stone_yard.utils.constants import (
    NUMERIC_FIELDS,
    STATUS_SOLD,
    UPPERCASE_FIELDS,
)


def new_id() -> str:
    """Generate an opaque unique identifier for a record."""
    return str(uuid.uuid4())


def normalize_text(value) -> str:
    """Trim and uppercase a textual identifier. None becomes ''."""
    if value is None:
        return ""
    return str(value).strip().upper()


def to_number(value, default: float = 0.0) -> float:
    """Coerce a measurement to float, falling back to default."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_local(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_timestamp(value) -> Optional[datetime]:
    """Accept a datetime or an ISO-8601 string; None/'' stay None.

    Timestamps are naive local time throughout; an offset such as a
    trailing ``Z`` is converted to local time and dropped.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _to_local(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return _to_local(datetime.fromisoformat(text))


def to_iso(value) -> Optional[str]:
    """Render a timestamp for storage."""
    parsed = parse_timestamp(value)
    return parsed.isoformat() if parsed else None


@dataclass(frozen=True)
class PowerCut:
    """A logged interruption window.

    Only the window is stored authoritatively; the duration is derived
    from it every time it is read.
    """
    id: str = ""
    start: str = ""
    end: str = ""

    @property
    def duration_seconds(self) -> float:
        return (parse_timestamp(self.end)
                - parse_timestamp(self.start)).total_seconds()

    @property
    def duration_minutes(self) -> int:
        return round_half_up(self.duration_seconds / 60)

    def to_dict(self) -> dict:
        # durationMinutes is informational for report consumers
        return {
            "id": self.id,
            "start": self.start,
            "end": self.end,
            "durationMinutes": self.duration_minutes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PowerCut":
        return cls(
            id=str(data.get("id", "")),
            start=str(data.get("start", "")),
            end=str(data.get("end", "")),
        )


def power_cuts_to_json(cuts: list[PowerCut]) -> str:
    return json.dumps([c.to_dict() for c in cuts or []])


def power_cuts_from_json(raw) -> list[PowerCut]:
    if not raw:
        return []
    try:
        items = json.loads(raw) if isinstance(raw, str) else raw
    except (json.JSONDecodeError, TypeError):
        return []
    return [PowerCut.from_dict(item) for item in items]


@dataclass
class Block:
    """One physical unit of stone and its processing history."""
    id: str = ""
    job_no: str = ""
    company: str = ""
    material: str = ""
    mines_marka: str = ""
    status: str = ""
    # Raw block, inches / tons
    length: float = 0.0
    width: float = 0.0
    height: float = 0.0
    weight: float = 0.0
    arrival_date: str = ""
    is_priority: bool = False
    is_to_be_cut: bool = False
    entered_by: str = ""
    # Purchase logistics
    country: str = ""
    supplier: str = ""
    forwarder: str = ""
    shipment_group: str = ""
    loading_date: Optional[str] = None
    expected_arrival_date: Optional[str] = None
    # Cutting
    thickness: Optional[str] = None
    pre_cutting_process: str = "None"
    assigned_machine_id: Optional[str] = None
    cut_by_machine: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    power_cuts: list[PowerCut] = field(default_factory=list)
    total_cutting_time_minutes: Optional[int] = None
    # Production results
    slab_length: Optional[float] = None
    slab_width: Optional[float] = None
    slab_count: Optional[int] = None
    total_sqft: Optional[float] = None
    # Processing / resin line
    processing_stage: Optional[str] = None
    processing_started_at: Optional[str] = None
    is_sent_to_resin: bool = False
    resin_start_time: Optional[str] = None
    resin_end_time: Optional[str] = None
    resin_power_cuts: list[PowerCut] = field(default_factory=list)
    resin_treatment_type: Optional[str] = None
    resin_batch_id: Optional[str] = None
    # Yard
    stockyard_location: Optional[str] = None
    transferred_to_yard_at: Optional[str] = None
    msp: str = ""
    # Sale
    sold_to: Optional[str] = None
    bill_no: Optional[str] = None
    sold_at: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def recovery(self) -> float:
        """Square feet produced per ton, 0.00 when weight is zero."""
        if not self.weight or not self.total_sqft:
            return 0.0
        return round(self.total_sqft / self.weight, 2)

    @property
    def is_sold(self) -> bool:
        return self.status == STATUS_SOLD

    @property
    def is_weight_sale(self) -> bool:
        """Sold by weight straight from the gantry (no slab breakdown)."""
        return self.is_sold and not self.total_sqft and not self.slab_count

    @property
    def cutting_downtime_minutes(self) -> int:
        return sum(c.duration_minutes for c in self.power_cuts)

    @property
    def resin_downtime_minutes(self) -> int:
        return sum(c.duration_minutes for c in self.resin_power_cuts)

    def copy(self, **changes) -> "Block":
        """Return a detached copy with the given fields replaced."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["power_cuts"] = list(self.power_cuts)
        data["resin_power_cuts"] = list(self.resin_power_cuts)
        data.update(changes)
        return Block(**data)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["power_cuts"] = [c.to_dict() for c in self.power_cuts]
        data["resin_power_cuts"] = [c.to_dict() for c in self.resin_power_cuts]
        return data


BLOCK_FIELDS = tuple(f.name for f in fields(Block))


def normalize_block_fields(values: dict) -> dict:
    """Apply uppercase trimming and numeric coercion to a field dict."""
    result = dict(values)
    for name in UPPERCASE_FIELDS:
        if name in result and result[name] is not None:
            result[name] = normalize_text(result[name])
    for name in NUMERIC_FIELDS:
        if name in result and result[name] is not None:
            result[name] = to_number(result[name])
    if result.get("slab_count") is not None:
        result["slab_count"] = int(round(to_number(result["slab_count"])))
    return result


def new_block(*, job_no: str, company: str, material: str, weight: float,
              arrival_date, status: str, entered_by: str,
              **optional) -> Block:
    """Build a fresh Block with a generated id and normalized fields.

    The required keywords mirror what intake must know about a block;
    everything else belongs to a later stage and may be omitted.
    """
    values = normalize_block_fields({
        "job_no": job_no,
        "company": company,
        "material": material,
        "weight": weight,
        **optional,
    })
    arrival = parse_timestamp(arrival_date) or datetime.now()
    return Block(
        id=new_id(),
        arrival_date=arrival.date().isoformat(),
        status=status,
        entered_by=normalize_text(entered_by),
        power_cuts=[],
        **values,
    )


@dataclass
class StaffMember:
    name: str = ""
    pin_hash: str = ""
    created_at: Optional[datetime] = None


@dataclass
class ChangeEvent:
    """One row of the change log ('something changed, re-fetch')."""
    id: Optional[int] = None
    action: str = ""
    block_id: Optional[str] = None
    changed_at: Optional[datetime] = None
