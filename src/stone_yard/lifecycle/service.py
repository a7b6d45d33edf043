"""BlockLifecycle — every operator action that changes a block.

Each operation takes the acting operator first, checks the permission
gate and the status graph, then writes through the repository. Status
writes are conditional on the status that was checked, so a block that
changed underneath the caller is reported instead of overwritten.
"""

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from stone_yard.config import Config
from stone_yard.database.models import (
    BLOCK_FIELDS,
    Block,
    PowerCut,
    new_block,
    new_id,
    normalize_block_fields,
    normalize_text,
    parse_timestamp,
    to_number,
)
from stone_yard.database.repository import Repository, StaleRecordError
from stone_yard.utils.constants import (
    LIFECYCLE_OWNED_FIELDS,
    LOGISTICS_FIELDS,
    NUMERIC_FIELDS,
    PRE_CUTTING_PROCESSES,
    PROCESSING_STAGE_FIELD,
    PROCESSING_STAGE_RESIN_PLANT,
    RESIN_TREATMENT_TYPES,
    SALEABLE_STATUSES,
    SHIPMENT_FIELDS,
    STATUS_COMPLETED,
    STATUS_CUTTING,
    STATUS_GANTRY,
    STATUS_IN_STOCKYARD,
    STATUS_PROCESSING,
    STATUS_PURCHASED,
    STATUS_RESINING,
    STATUS_SOLD,
    STOCKYARD_LOCATIONS,
)

from .downtime import make_power_cut, net_duration_minutes
from .errors import (
    DuplicateIdentifierError,
    InvalidQuantityError,
    InvalidTransitionError,
    RemoteFailureError,
    ValidationError,
)
from .permissions import require_operator, require_write
from .splitting import plan_area_sale, plan_weight_sale, split_job_no
from .transitions import validate_transition

logger = logging.getLogger(__name__)


@dataclass
class ResinBatch:
    """The blocks currently on the resin line, run as one timer."""
    batch_id: str
    treatment_type: str
    start_time: str
    blocks: list[Block] = field(default_factory=list)

    @property
    def block_ids(self) -> list[str]:
        return [b.id for b in self.blocks]

    @property
    def power_cuts(self) -> list[PowerCut]:
        # Every member carries the same cuts; read them off the earliest
        return list(self.blocks[0].resin_power_cuts) if self.blocks else []


def _require_text(value, label: str) -> str:
    text = normalize_text(value)
    if not text:
        raise ValidationError(f"{label} is required")
    return text


def _require_measure(value, label: str) -> float:
    number = to_number(value, default=-1.0)
    if number < 0:
        raise InvalidQuantityError(f"{label} must be a number of 0 or more")
    return number


class BlockLifecycle:
    """Guarded status transitions and edits on the block store."""

    def __init__(self, repo: Repository,
                 now: Optional[Callable[[], datetime]] = None):
        self.repo = repo
        self._now = now or datetime.now

    # ── Helpers ─────────────────────────────────────────────────

    @contextmanager
    def _storage(self, operation: str, block_ids=(), job_no: str = ""):
        """Translate block store failures into lifecycle errors."""
        try:
            yield
        except StaleRecordError as exc:
            logger.warning("%s rejected: %s", operation, exc)
            raise InvalidTransitionError(
                f"{operation} failed: {exc}. Reload and try again."
            ) from exc
        except sqlite3.IntegrityError as exc:
            message = str(exc)
            if "blocks.job_no" in message:
                raise DuplicateIdentifierError(job_no) from exc
            if "blocks.assigned_machine_id" in message:
                raise InvalidTransitionError(
                    f"{operation} failed: the machine is already cutting "
                    "another block"
                ) from exc
            if "resin line occupied" in message:
                raise InvalidTransitionError(
                    f"{operation} failed: another batch is on the resin line"
                ) from exc
            logger.error("%s failed for %s: %s", operation, list(block_ids), exc)
            raise RemoteFailureError(operation, block_ids, exc) from exc
        except sqlite3.Error as exc:
            logger.error("%s failed for %s: %s", operation, list(block_ids), exc)
            raise RemoteFailureError(operation, block_ids, exc) from exc

    def _timestamp(self, value=None) -> datetime:
        return parse_timestamp(value) or self._now()

    def _load(self, block_id: str) -> Block:
        with self._storage("Load block", [block_id]):
            block = self.repo.get_block_by_id(block_id)
        if block is None:
            raise ValidationError(f"Block {block_id} not found")
        return block

    def _load_for(self, operator: str, block_id: str, action: str) -> Block:
        """Load a block the operator is allowed to change."""
        block = self._load(block_id)
        require_write(operator, block.company, action)
        return block

    def _load_many(self, block_ids: list[str]) -> list[Block]:
        ids = list(dict.fromkeys(block_ids or []))
        if not ids:
            raise ValidationError("No blocks selected")
        with self._storage("Load blocks", ids):
            blocks = self.repo.get_blocks_by_ids(ids)
        missing = set(ids) - {b.id for b in blocks}
        if missing:
            raise ValidationError(
                f"Blocks not found: {', '.join(sorted(missing))}"
            )
        return blocks

    def _check_new_job_no(self, job_no: str, exclude_id: str = None):
        with self._storage("Check job no"):
            taken = self.repo.job_no_exists(job_no, exclude_id=exclude_id)
        if taken:
            raise DuplicateIdentifierError(job_no)

    @staticmethod
    def _require_status(block: Block, *statuses: str, action: str):
        if block.status not in statuses:
            raise InvalidTransitionError(
                f"Cannot {action} block {block.job_no} while it is {block.status}"
            )

    def _move(self, operator: str, block: Block, target: str,
              fields: dict, action: str) -> Block:
        """Apply one status transition to one block."""
        validate_transition(block.status, target, block.job_no)
        changes = dict(fields, status=target)
        with self._storage(action.capitalize(), [block.id], block.job_no):
            self.repo.update_block(block.id, changes, expected_status=block.status)
        logger.info("Block %s: %s -> %s by %s",
                    block.job_no, block.status, target, operator)
        return block.copy(**changes)

    def _update(self, operator: str, block: Block, fields: dict,
                action: str) -> Block:
        """Change fields without moving the block."""
        with self._storage(action.capitalize(), [block.id], block.job_no):
            self.repo.update_block(block.id, fields, expected_status=block.status)
        logger.info("Block %s: %s by %s", block.job_no, action, operator)
        return block.copy(**fields)

    # ── Intake ──────────────────────────────────────────────────

    def register_purchase(self, operator: str, job_no: str, material: str,
                          weight, supplier: str = "", country: str = "",
                          company: Optional[str] = None) -> Block:
        """Record a block bought from a quarry, before it ships."""
        company = normalize_text(company or Config.PURCHASE_COMPANY)
        require_write(operator, company, "purchase")
        job_no = _require_text(job_no, "Job no")
        block = new_block(
            job_no=job_no,
            company=company,
            material=_require_text(material, "Material"),
            weight=_require_measure(weight, "Weight"),
            arrival_date=self._now(),
            status=STATUS_PURCHASED,
            entered_by=operator,
            supplier=supplier,
            country=country,
        )
        self._check_new_job_no(job_no)
        with self._storage("Register purchase", [block.id], job_no):
            self.repo.create_block(block)
        logger.info("Purchase %s registered by %s", job_no, operator)
        return block

    def receive_block(self, operator: str, job_no: str, company: str,
                      material: str, weight, length, width, height,
                      mines_marka: str = "", arrival_date=None) -> Block:
        """Enter a block that arrived without a purchase record."""
        company = normalize_text(company)
        require_write(operator, company, "receive")
        company = _require_text(company, "Company")
        job_no = _require_text(job_no, "Job no")
        block = new_block(
            job_no=job_no,
            company=company,
            material=_require_text(material, "Material"),
            weight=_require_measure(weight, "Weight"),
            arrival_date=self._timestamp(arrival_date),
            status=STATUS_GANTRY,
            entered_by=operator,
            length=_require_measure(length, "Length"),
            width=_require_measure(width, "Width"),
            height=_require_measure(height, "Height"),
            mines_marka=mines_marka,
        )
        self._check_new_job_no(job_no)
        with self._storage("Receive block", [block.id], job_no):
            self.repo.create_block(block)
        logger.info("Block %s received at gantry by %s", job_no, operator)
        return block

    def schedule_shipment(self, operator: str, block_ids: list[str],
                          loading_date, forwarder: str, shipment_group: str,
                          expected_arrival_date) -> list[Block]:
        """Put purchased blocks on one shipment."""
        blocks = self._load_many(block_ids)
        for block in blocks:
            require_write(operator, block.company, "ship")
            self._require_status(block, STATUS_PURCHASED, action="ship")
        loading = parse_timestamp(loading_date)
        expected = parse_timestamp(expected_arrival_date)
        if loading is None or expected is None:
            raise ValidationError("Loading date and expected arrival are required")
        if expected < loading:
            raise ValidationError("Expected arrival cannot be before loading")
        fields = normalize_block_fields({
            "loading_date": loading.date().isoformat(),
            "expected_arrival_date": expected.date().isoformat(),
            "forwarder": forwarder or "",
            "shipment_group": shipment_group or "",
        })
        ids = [b.id for b in blocks]
        with self._storage("Schedule shipment", ids):
            self.repo.apply_block_updates(
                [(b.id, fields, STATUS_PURCHASED) for b in blocks]
            )
        logger.info("Shipment %s scheduled for %d blocks by %s",
                    fields["shipment_group"], len(blocks), operator)
        return [b.copy(**fields) for b in blocks]

    def reset_loading(self, operator: str, block_id: str) -> Block:
        """Take a purchased block off its shipment."""
        block = self._load_for(operator, block_id, "reset loading of")
        self._require_status(block, STATUS_PURCHASED, action="reset loading of")
        fields = {
            name: None if name.endswith("_date") else ""
            for name in SHIPMENT_FIELDS
        }
        return self._update(operator, block, fields, "reset loading of")

    def record_arrival(self, operator: str, block_id: str, length, width,
                       height, mines_marka: str = "",
                       arrival_date=None) -> Block:
        """A purchased block reached the factory: measure it and store it."""
        block = self._load_for(operator, block_id, "receive")
        self._require_status(block, STATUS_PURCHASED, action="record arrival of")
        fields = {
            name: None if name.endswith("_date") else ""
            for name in LOGISTICS_FIELDS
        }
        fields.update({
            "length": _require_measure(length, "Length"),
            "width": _require_measure(width, "Width"),
            "height": _require_measure(height, "Height"),
            "mines_marka": normalize_text(mines_marka),
            "arrival_date": self._timestamp(arrival_date).date().isoformat(),
        })
        return self._move(operator, block, STATUS_GANTRY, fields, "receive")

    # ── Gantry ──────────────────────────────────────────────────

    def queue_for_cutting(self, operator: str, block_id: str,
                          thickness: str) -> Block:
        block = self._load_for(operator, block_id, "queue")
        self._require_status(block, STATUS_GANTRY, action="queue")
        thickness = self._check_thickness(thickness)
        return self._update(operator, block,
                            {"is_to_be_cut": True, "thickness": thickness},
                            "queue")

    def dequeue_cutting(self, operator: str, block_id: str) -> Block:
        block = self._load_for(operator, block_id, "dequeue")
        self._require_status(block, STATUS_GANTRY, action="dequeue")
        return self._update(operator, block,
                            {"is_to_be_cut": False, "thickness": None},
                            "dequeue")

    def set_pre_cutting_process(self, operator: str, block_id: str,
                                process: str) -> Block:
        """Mark a gantry block for TENNAX or VACCUM treatment before cutting."""
        block = self._load_for(operator, block_id, "set pre-cutting process of")
        self._require_status(block, STATUS_GANTRY,
                             action="set pre-cutting process of")
        if process not in PRE_CUTTING_PROCESSES:
            raise ValidationError(f"Unknown pre-cutting process: {process}")
        return self._update(operator, block, {"pre_cutting_process": process},
                            "set pre-cutting process of")

    def set_priority(self, operator: str, block_id: str, flag: bool) -> Block:
        block = self._load_for(operator, block_id, "prioritise")
        if block.is_sold:
            raise InvalidTransitionError(
                f"Block {block.job_no} is sold and cannot be prioritised"
            )
        return self._update(operator, block, {"is_priority": bool(flag)},
                            "prioritise")

    @staticmethod
    def _check_thickness(thickness) -> str:
        if not thickness:
            raise ValidationError("A thickness class is required")
        if thickness not in Config.get_thickness_classes():
            raise ValidationError(f"Unknown thickness class: {thickness}")
        return thickness

    # ── Cutting ─────────────────────────────────────────────────

    def start_cutting(self, operator: str, block_id: str, machine_id: str,
                      thickness: Optional[str] = None,
                      start_time=None) -> Block:
        """Load a gantry block onto a free machine."""
        block = self._load_for(operator, block_id, "cut")
        validate_transition(block.status, STATUS_CUTTING, block.job_no)
        if machine_id not in Config.get_cutting_machines():
            raise ValidationError(f"Unknown machine: {machine_id}")
        thickness = self._check_thickness(thickness or block.thickness)
        with self._storage("Start cutting", [block.id]):
            busy = self.repo.get_machine_block(machine_id)
        if busy is not None:
            raise InvalidTransitionError(
                f"{machine_id} is already cutting {busy.job_no}"
            )
        fields = {
            "assigned_machine_id": machine_id,
            "thickness": thickness,
            "start_time": self._timestamp(start_time).isoformat(),
            "end_time": None,
            "power_cuts": [],
            "is_to_be_cut": False,
        }
        return self._move(operator, block, STATUS_CUTTING, fields, "cut")

    def undo_cutting(self, operator: str, block_id: str) -> Block:
        """Send a cutting block back to the gantry as if never started."""
        block = self._load_for(operator, block_id, "undo cutting of")
        self._require_status(block, STATUS_CUTTING, action="undo cutting of")
        fields = {
            "assigned_machine_id": None,
            "start_time": None,
            "end_time": None,
            "thickness": None,
            "power_cuts": [],
        }
        return self._move(operator, block, STATUS_GANTRY, fields, "undo cutting of")

    def log_cutting_power_cut(self, operator: str, block_id: str,
                              start, end) -> PowerCut:
        block = self._load_for(operator, block_id, "log a power cut on")
        self._require_status(block, STATUS_CUTTING,
                             action="log a power cut on")
        cut = make_power_cut(start, end)
        self._update(operator, block,
                     {"power_cuts": block.power_cuts + [cut]},
                     "log a power cut on")
        return cut

    def finish_cutting(self, operator: str, block_id: str,
                       end_time=None) -> Block:
        """Close the cutting stage and store the net cutting minutes."""
        block = self._load_for(operator, block_id, "finish cutting of")
        self._require_status(block, STATUS_CUTTING, action="finish cutting of")
        end = self._timestamp(end_time)
        start = parse_timestamp(block.start_time)
        if start is not None and end < start:
            raise ValidationError("Cutting cannot end before it started")
        fields = {
            "end_time": end.isoformat(),
            "total_cutting_time_minutes": net_duration_minutes(
                block.start_time, end, block.power_cuts
            ),
            "cut_by_machine": block.assigned_machine_id,
            "assigned_machine_id": None,
            "processing_stage": PROCESSING_STAGE_FIELD,
            "processing_started_at": end.isoformat(),
        }
        return self._move(operator, block, STATUS_PROCESSING, fields,
                          "finish cutting of")

    # ── Processing ──────────────────────────────────────────────

    def finish_processing(self, operator: str, block_id: str, slab_length,
                          slab_width, slab_count, total_sqft,
                          send_to_resin: bool = False) -> Block:
        """Record the slab output; complete the block or queue it for resin."""
        block = self._load_for(operator, block_id, "finish")
        self._require_status(block, STATUS_PROCESSING, action="finish")
        count = to_number(slab_count, default=-1)
        if count < 0 or count != int(count):
            raise InvalidQuantityError("Slab count must be a whole number of 0 or more")
        fields = {
            "slab_length": _require_measure(slab_length, "Slab length"),
            "slab_width": _require_measure(slab_width, "Slab width"),
            "slab_count": int(count),
            "total_sqft": round(_require_measure(total_sqft, "Total sqft"), 2),
        }
        if send_to_resin:
            fields.update({
                "is_sent_to_resin": True,
                "processing_stage": PROCESSING_STAGE_RESIN_PLANT,
            })
            return self._update(operator, block, fields, "send to resin")
        fields.update({
            "is_sent_to_resin": False,
            "processing_stage": PROCESSING_STAGE_FIELD,
        })
        return self._move(operator, block, STATUS_COMPLETED, fields, "finish")

    # ── Resin line ──────────────────────────────────────────────

    def active_resin_batch(self) -> Optional[ResinBatch]:
        with self._storage("Load resin line"):
            members = self.repo.get_all_blocks(STATUS_RESINING)
        if not members:
            return None
        members.sort(key=lambda b: (b.resin_start_time or "", b.job_no))
        lead = members[0]
        return ResinBatch(
            batch_id=lead.resin_batch_id or "",
            treatment_type=lead.resin_treatment_type or "",
            start_time=lead.resin_start_time or "",
            blocks=members,
        )

    def start_resin_batch(self, operator: str, block_ids: list[str],
                          treatment_type: str, start_time=None) -> ResinBatch:
        """Load queued blocks onto the resin line together."""
        require_operator(operator, "start resin")
        blocks = self._load_many(block_ids)
        for block in blocks:
            require_write(operator, block.company, "start resin on")
            validate_transition(block.status, STATUS_RESINING, block.job_no)
            if not block.is_sent_to_resin:
                raise InvalidTransitionError(
                    f"Block {block.job_no} was not sent to the resin plant"
                )
        if treatment_type not in RESIN_TREATMENT_TYPES:
            raise ValidationError(f"Unknown resin treatment: {treatment_type}")
        if self.active_resin_batch() is not None:
            raise InvalidTransitionError("Another batch is on the resin line")

        fields = {
            "status": STATUS_RESINING,
            "resin_batch_id": new_id(),
            "resin_treatment_type": treatment_type,
            "resin_start_time": self._timestamp(start_time).isoformat(),
            "resin_end_time": None,
            "resin_power_cuts": [],
        }
        ids = [b.id for b in blocks]
        with self._storage("Start resin batch", ids):
            self.repo.apply_block_updates(
                [(b.id, fields, STATUS_PROCESSING) for b in blocks]
            )
        logger.info("Resin batch %s started with %d blocks by %s",
                    fields["resin_batch_id"], len(blocks), operator)
        return ResinBatch(
            batch_id=fields["resin_batch_id"],
            treatment_type=treatment_type,
            start_time=fields["resin_start_time"],
            blocks=[b.copy(**fields) for b in blocks],
        )

    def _require_batch(self, operator: str, action: str) -> ResinBatch:
        require_operator(operator, action + " the resin line")
        batch = self.active_resin_batch()
        if batch is None:
            raise InvalidTransitionError("No batch is on the resin line")
        for block in batch.blocks:
            require_write(operator, block.company, action)
        return batch

    def log_resin_power_cut(self, operator: str, start, end) -> PowerCut:
        """Record one power cut against every block on the resin line."""
        batch = self._require_batch(operator, "log a power cut on")
        cut = make_power_cut(start, end)
        with self._storage("Log resin power cut", batch.block_ids):
            self.repo.apply_block_updates([
                (b.id, {"resin_power_cuts": b.resin_power_cuts + [cut]},
                 STATUS_RESINING)
                for b in batch.blocks
            ])
        logger.info("Resin power cut %s logged on %d blocks by %s",
                    cut.id, len(batch.blocks), operator)
        return cut

    def undo_resin(self, operator: str, block_id: str) -> Block:
        """Take one block off the resin line and back into the resin queue."""
        block = self._load_for(operator, block_id, "undo resin of")
        self._require_status(block, STATUS_RESINING, action="undo resin of")
        fields = {
            "resin_start_time": None,
            "resin_end_time": None,
            "resin_power_cuts": [],
            "resin_treatment_type": None,
            "resin_batch_id": None,
        }
        return self._move(operator, block, STATUS_PROCESSING, fields,
                          "undo resin of")

    def finish_resin_batch(self, operator: str,
                           end_time=None) -> list[Block]:
        """Complete every block on the resin line with one end time."""
        batch = self._require_batch(operator, "finish")
        end = self._timestamp(end_time)
        start = parse_timestamp(batch.start_time)
        if start is not None and end < start:
            raise ValidationError("Resin treatment cannot end before it started")
        fields = {
            "status": STATUS_COMPLETED,
            "resin_end_time": end.isoformat(),
            "processing_stage": PROCESSING_STAGE_FIELD,
        }
        with self._storage("Finish resin batch", batch.block_ids):
            self.repo.apply_block_updates(
                [(b.id, fields, STATUS_RESINING) for b in batch.blocks]
            )
        logger.info("Resin batch %s finished by %s", batch.batch_id, operator)
        return [b.copy(**fields) for b in batch.blocks]

    # ── Yard ────────────────────────────────────────────────────

    def transfer_to_yard(self, operator: str, block_id: str,
                         location: str) -> Block:
        block = self._load_for(operator, block_id, "transfer")
        if location not in STOCKYARD_LOCATIONS:
            raise ValidationError(f"Unknown stockyard location: {location}")
        fields = {
            "stockyard_location": location,
            "transferred_to_yard_at": self._now().isoformat(),
        }
        return self._move(operator, block, STATUS_IN_STOCKYARD, fields,
                          "transfer")

    # ── Sales ───────────────────────────────────────────────────

    def _sale_fields(self, sold_to, bill_no) -> dict:
        return {
            "sold_to": _require_text(sold_to, "Sold to"),
            "bill_no": _require_text(bill_no, "Bill no"),
            "sold_at": self._now().isoformat(),
        }

    def _split_sale(self, operator: str, block: Block, plan, sale: dict) -> Block:
        """Write the sold part as a new record and shrink the original."""
        validate_transition(block.status, STATUS_SOLD, block.job_no)
        with self._storage("Sell", [block.id]):
            job_no = split_job_no(
                block.job_no,
                self.repo.job_no_exists,
                prefix=Config.SPLIT_SUFFIX_PREFIX,
                clock=lambda: self._now().timestamp(),
            )
        sold = block.copy(
            id=new_id(),
            job_no=job_no,
            status=STATUS_SOLD,
            is_priority=False,
            is_to_be_cut=False,
            created_at=None,
            **plan.sold,
            **sale,
        )
        with self._storage("Sell", [block.id, sold.id], job_no):
            self.repo.split_block(block.id, plan.remainder, sold, block.status)
        logger.info("Block %s: partial sale as %s to %s by %s",
                    block.job_no, job_no, sale["sold_to"], operator)
        return sold

    def sell_area(self, operator: str, block_id: str, sqft, sold_to: str,
                  bill_no: str) -> Block:
        """Sell slabs by area. Returns the Sold record."""
        block = self._load_for(operator, block_id, "sell")
        self._require_status(block, STATUS_PROCESSING, STATUS_IN_STOCKYARD,
                             action="sell by area")
        sale = self._sale_fields(sold_to, bill_no)
        plan = plan_area_sale(block.total_sqft, block.slab_count, sqft)
        if plan.full:
            return self._move(operator, block, STATUS_SOLD, sale, "sell")
        return self._split_sale(operator, block, plan, sale)

    def sell_weight(self, operator: str, block_id: str, weight, sold_to: str,
                    bill_no: str) -> Block:
        """Sell a raw gantry block by weight. Returns the Sold record."""
        block = self._load_for(operator, block_id, "sell")
        self._require_status(block, STATUS_GANTRY, action="sell by weight")
        sale = self._sale_fields(sold_to, bill_no)
        plan = plan_weight_sale(block.weight, weight)
        if plan.full:
            fields = dict(sale, is_to_be_cut=False, **plan.sold)
            return self._move(operator, block, STATUS_SOLD, fields, "sell")
        return self._split_sale(operator, block, plan, sale)

    def sell_blocks(self, operator: str, block_ids: list[str], sold_to: str,
                    bill_no: str) -> list[Block]:
        """Sell whole blocks on one bill."""
        blocks = self._load_many(block_ids)
        for block in blocks:
            require_write(operator, block.company, "sell")
            self._require_status(block, *SALEABLE_STATUSES, action="sell")
        sale = self._sale_fields(sold_to, bill_no)
        changes = []
        for block in blocks:
            fields = dict(sale, status=STATUS_SOLD)
            if block.status == STATUS_GANTRY:
                fields.update({"total_sqft": 0.0, "is_to_be_cut": False})
            changes.append((block.id, fields, block.status))
        ids = [b.id for b in blocks]
        with self._storage("Sell blocks", ids):
            self.repo.apply_block_updates(changes)
        logger.info("%d blocks sold to %s on bill %s by %s",
                    len(blocks), sale["sold_to"], sale["bill_no"], operator)
        return [b.copy(**fields) for b, (_, fields, _) in zip(blocks, changes)]

    def correct_sale(self, operator: str, block_id: str,
                     sold_to: Optional[str] = None,
                     bill_no: Optional[str] = None,
                     sold_at=None) -> Block:
        """Fix the buyer, bill or date of a committed sale."""
        block = self._load_for(operator, block_id, "correct the sale of")
        self._require_status(block, STATUS_SOLD, action="correct the sale of")
        fields = {}
        if sold_to is not None:
            fields["sold_to"] = _require_text(sold_to, "Sold to")
        if bill_no is not None:
            fields["bill_no"] = _require_text(bill_no, "Bill no")
        if sold_at is not None:
            fields["sold_at"] = self._timestamp(sold_at).isoformat()
        if not fields:
            return block
        return self._update(operator, block, fields, "correct the sale of")

    # ── Maintenance ─────────────────────────────────────────────

    _CHOICES = {
        "pre_cutting_process": PRE_CUTTING_PROCESSES,
        "stockyard_location": STOCKYARD_LOCATIONS,
    }

    def edit_block(self, operator: str, block_id: str, **fields) -> Block:
        """Correct descriptive fields; status and timings stay untouched."""
        block = self._load_for(operator, block_id, "edit")
        if not fields:
            return block
        owned = sorted(set(fields) & set(LIFECYCLE_OWNED_FIELDS))
        if owned:
            raise ValidationError(
                f"Fields managed by the lifecycle cannot be edited: {', '.join(owned)}"
            )
        unknown = sorted(set(fields) - set(BLOCK_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(unknown)}")

        for name in (*NUMERIC_FIELDS, "slab_count"):
            if fields.get(name) is not None:
                _require_measure(fields[name], name)
        if fields.get("slab_count") is not None:
            count = to_number(fields["slab_count"])
            if count != int(count):
                raise InvalidQuantityError("slab_count must be a whole number")

        fields = normalize_block_fields(fields)
        for name, choices in self._CHOICES.items():
            if fields.get(name) is not None and fields[name] not in choices:
                raise ValidationError(f"Invalid {name}: {fields[name]}")
        for name in ("job_no", "company", "material"):
            if name in fields and not fields[name]:
                raise ValidationError(f"{name} cannot be empty")

        if "company" in fields and fields["company"] != block.company:
            require_write(operator, fields["company"], "move blocks to")
        if "job_no" in fields and fields["job_no"] != block.job_no:
            self._check_new_job_no(fields["job_no"], exclude_id=block.id)

        with self._storage("Edit block", [block.id], fields.get("job_no", "")):
            self.repo.update_block(block.id, fields, expected_status=block.status)
        logger.info("Block %s edited by %s: %s",
                    block.job_no, operator, ", ".join(sorted(fields)))
        return block.copy(**fields)

    def delete_block(self, operator: str, block_id: str):
        """Remove a block for good."""
        block = self._load_for(operator, block_id, "delete")
        with self._storage("Delete block", [block.id]):
            self.repo.delete_block(block.id)
        logger.info("Block %s deleted by %s", block.job_no, operator)

    def delete_blocks(self, operator: str, block_ids: list[str]) -> int:
        """Remove several blocks in one step; none go if any is refused."""
        require_operator(operator, "delete blocks")
        blocks = self._load_many(block_ids)
        for block in blocks:
            require_write(operator, block.company, "delete")
        ids = [b.id for b in blocks]
        with self._storage("Delete blocks", ids):
            count = self.repo.delete_blocks(ids)
        logger.info("%d blocks deleted by %s", count, operator)
        return count

    # ── Reads ───────────────────────────────────────────────────

    def blocks(self, status: Optional[str] = None) -> list[Block]:
        """Current block collection, newest first."""
        with self._storage("Load blocks"):
            return self.repo.get_all_blocks(status)
