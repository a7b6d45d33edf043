"""The block status graph."""

from stone_yard.utils.constants import (
    STATUS_COMPLETED,
    STATUS_CUTTING,
    STATUS_GANTRY,
    STATUS_IN_STOCKYARD,
    STATUS_PROCESSING,
    STATUS_PURCHASED,
    STATUS_RESINING,
    STATUS_SOLD,
)

from .errors import InvalidTransitionError

# (from, to) -> the action that performs it
TRANSITIONS = {
    (STATUS_PURCHASED, STATUS_GANTRY): "record arrival",
    (STATUS_GANTRY, STATUS_CUTTING): "start cutting",
    (STATUS_CUTTING, STATUS_GANTRY): "undo cutting",
    (STATUS_CUTTING, STATUS_PROCESSING): "finish cutting",
    (STATUS_PROCESSING, STATUS_RESINING): "start resin",
    (STATUS_RESINING, STATUS_PROCESSING): "undo resin",
    (STATUS_RESINING, STATUS_COMPLETED): "finish resin",
    (STATUS_PROCESSING, STATUS_COMPLETED): "finish processing",
    (STATUS_COMPLETED, STATUS_IN_STOCKYARD): "transfer to yard",
    (STATUS_GANTRY, STATUS_SOLD): "sell",
    (STATUS_PROCESSING, STATUS_SOLD): "sell",
    (STATUS_IN_STOCKYARD, STATUS_SOLD): "sell",
}


def is_allowed(current: str, target: str) -> bool:
    return (current, target) in TRANSITIONS


def allowed_targets(current: str) -> list[str]:
    """Statuses reachable from ``current`` in one step."""
    return [to for (frm, to) in TRANSITIONS if frm == current]


def validate_transition(current: str, target: str, job_no: str = ""):
    """Raise InvalidTransitionError unless current -> target is an edge."""
    if not is_allowed(current, target):
        label = f"Block {job_no}" if job_no else "Block"
        raise InvalidTransitionError(
            f"{label} cannot move from {current or 'no status'} to {target}"
        )
