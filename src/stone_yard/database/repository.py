"""Repository layer — all CRUD operations and queries for the block store."""

import hashlib
import logging
from typing import Callable, Iterable, Optional

from .connection import DatabaseConnection
from .models import (
    BLOCK_FIELDS,
    Block,
    ChangeEvent,
    StaffMember,
    power_cuts_from_json,
    power_cuts_to_json,
)

logger = logging.getLogger(__name__)

_BOOL_COLUMNS = ("is_priority", "is_to_be_cut", "is_sent_to_resin")
_JSON_COLUMNS = ("power_cuts", "resin_power_cuts")
# created_at is assigned by the database
_WRITABLE_COLUMNS = tuple(f for f in BLOCK_FIELDS if f != "created_at")


class StaleRecordError(ValueError):
    """A conditional write found the row missing or in another status."""

    def __init__(self, block_id: str, message: str):
        super().__init__(message)
        self.block_id = block_id


def _row_to_block(row) -> Block:
    data = {k: row[k] for k in row.keys() if k in BLOCK_FIELDS}
    for name in _BOOL_COLUMNS:
        data[name] = bool(data.get(name))
    for name in _JSON_COLUMNS:
        data[name] = power_cuts_from_json(data.get(name))
    for name in ("country", "supplier", "forwarder", "shipment_group",
                 "mines_marka", "msp"):
        if data.get(name) is None:
            data[name] = ""
    return Block(**data)


def _to_columns(values: dict) -> dict:
    """Translate model values to column values."""
    unknown = set(values) - set(_WRITABLE_COLUMNS)
    if unknown:
        raise ValueError(f"Unknown block fields: {', '.join(sorted(unknown))}")
    columns = {}
    for name, value in values.items():
        if name in _BOOL_COLUMNS:
            value = 1 if value else 0
        elif name in _JSON_COLUMNS:
            value = power_cuts_to_json(value)
        columns[name] = value
    return columns


class Repository:
    """Provides all database operations for the block store."""

    def __init__(self, db: DatabaseConnection):
        self.db = db
        self._listeners: list[Callable[[str, list[str]], None]] = []

    # ── Blocks: reads ───────────────────────────────────────────

    def get_all_blocks(self, status: Optional[str] = None) -> list[Block]:
        if status:
            rows = self.db.execute(
                "SELECT * FROM blocks WHERE status = ? "
                "ORDER BY created_at DESC, rowid DESC",
                (status,),
            )
        else:
            rows = self.db.execute(
                "SELECT * FROM blocks ORDER BY created_at DESC, rowid DESC"
            )
        return [_row_to_block(r) for r in rows]

    def get_block_by_id(self, block_id: str) -> Optional[Block]:
        rows = self.db.execute(
            "SELECT * FROM blocks WHERE id = ?", (block_id,)
        )
        return _row_to_block(rows[0]) if rows else None

    def get_blocks_by_ids(self, block_ids: Iterable[str]) -> list[Block]:
        ids = list(dict.fromkeys(block_ids))
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = self.db.execute(
            f"SELECT * FROM blocks WHERE id IN ({placeholders})", tuple(ids)
        )
        by_id = {r["id"]: _row_to_block(r) for r in rows}
        return [by_id[i] for i in ids if i in by_id]

    def get_block_by_job_no(self, job_no: str) -> Optional[Block]:
        """Case-insensitive lookup (job_no is COLLATE NOCASE)."""
        rows = self.db.execute(
            "SELECT * FROM blocks WHERE job_no = ?", (job_no.strip(),)
        )
        return _row_to_block(rows[0]) if rows else None

    def job_no_exists(self, job_no: str,
                      exclude_id: Optional[str] = None) -> bool:
        if exclude_id:
            rows = self.db.execute(
                "SELECT COUNT(*) AS cnt FROM blocks "
                "WHERE job_no = ? AND id != ?",
                (job_no.strip(), exclude_id),
            )
        else:
            rows = self.db.execute(
                "SELECT COUNT(*) AS cnt FROM blocks WHERE job_no = ?",
                (job_no.strip(),),
            )
        return bool(rows and rows[0]["cnt"])

    def get_machine_block(self, machine_id: str) -> Optional[Block]:
        """The block currently cutting on a machine, if any."""
        rows = self.db.execute(
            "SELECT * FROM blocks WHERE status = 'Cutting' "
            "AND assigned_machine_id = ?",
            (machine_id,),
        )
        return _row_to_block(rows[0]) if rows else None

    def block_count(self) -> int:
        rows = self.db.execute("SELECT COUNT(*) AS cnt FROM blocks")
        return rows[0]["cnt"] if rows else 0

    # ── Blocks: writes ──────────────────────────────────────────

    def create_block(self, block: Block) -> str:
        with self.db.write_transaction() as conn:
            self._insert_block(conn, block)
            self._log_change(conn, "create", block.id)
        self._notify("create", [block.id])
        return block.id

    def create_blocks(self, blocks: list[Block]) -> int:
        """Insert several blocks in one transaction. All or nothing."""
        with self.db.write_transaction() as conn:
            for block in blocks:
                self._insert_block(conn, block)
                self._log_change(conn, "create", block.id)
        self._notify("create", [b.id for b in blocks])
        return len(blocks)

    def update_block(self, block_id: str, fields: dict,
                     expected_status: Optional[str] = None):
        """Update some fields of one block.

        With ``expected_status`` the write only applies while the row is
        still in that status (compare-and-swap); otherwise
        StaleRecordError is raised and nothing changes.
        """
        self.apply_block_updates([(block_id, fields, expected_status)])

    def apply_block_updates(
        self,
        changes: list[tuple[str, dict, Optional[str]]],
    ):
        """Apply (block_id, fields, expected_status) updates atomically."""
        if not changes:
            return
        with self.db.write_transaction() as conn:
            for block_id, fields, expected_status in changes:
                self._update_row(conn, block_id, fields, expected_status)
                self._log_change(conn, "update", block_id)
        self._notify("update", [c[0] for c in changes])

    def split_block(self, original_id: str, remainder_fields: dict,
                    new_block: Block, expected_status: str):
        """Insert a derived block and shrink the original in one unit."""
        with self.db.write_transaction() as conn:
            self._insert_block(conn, new_block)
            self._update_row(conn, original_id, remainder_fields,
                             expected_status)
            self._log_change(conn, "create", new_block.id)
            self._log_change(conn, "update", original_id)
        self._notify("split", [original_id, new_block.id])

    def delete_block(self, block_id: str) -> bool:
        with self.db.write_transaction() as conn:
            cursor = conn.execute("DELETE FROM blocks WHERE id = ?", (block_id,))
            deleted = cursor.rowcount > 0
            if deleted:
                self._log_change(conn, "delete", block_id)
        if deleted:
            self._notify("delete", [block_id])
        return deleted

    def delete_blocks(self, block_ids: list[str]) -> int:
        """Hard-delete several blocks in one transaction."""
        ids = list(dict.fromkeys(block_ids))
        with self.db.write_transaction() as conn:
            count = 0
            for block_id in ids:
                cursor = conn.execute(
                    "DELETE FROM blocks WHERE id = ?", (block_id,)
                )
                if cursor.rowcount:
                    count += 1
                    self._log_change(conn, "delete", block_id)
        self._notify("delete", ids)
        return count

    def _insert_block(self, conn, block: Block):
        columns = _to_columns(
            {name: getattr(block, name) for name in _WRITABLE_COLUMNS}
        )
        names = ", ".join(columns)
        placeholders = ", ".join("?" for _ in columns)
        conn.execute(
            f"INSERT INTO blocks ({names}) VALUES ({placeholders})",
            tuple(columns.values()),
        )

    def _update_row(self, conn, block_id: str, fields: dict,
                    expected_status: Optional[str]):
        columns = _to_columns(fields)
        if not columns:
            return
        assignments = ", ".join(f"{name} = ?" for name in columns)
        params = list(columns.values()) + [block_id]
        sql = f"UPDATE blocks SET {assignments} WHERE id = ?"
        if expected_status is not None:
            sql += " AND status = ?"
            params.append(expected_status)
        cursor = conn.execute(sql, tuple(params))
        if cursor.rowcount == 0:
            row = conn.execute(
                "SELECT job_no, status FROM blocks WHERE id = ?", (block_id,)
            ).fetchone()
            if not row:
                raise StaleRecordError(block_id, f"Block {block_id} not found")
            raise StaleRecordError(
                block_id,
                f"Block {row['job_no']} is {row['status']}, "
                f"expected {expected_status}",
            )

    # ── Staff ───────────────────────────────────────────────────

    @staticmethod
    def hash_pin(pin: str) -> str:
        """Hash a PIN using SHA-256."""
        return hashlib.sha256(str(pin).encode("utf-8")).hexdigest()

    def get_staff_names(self) -> list[str]:
        rows = self.db.execute("SELECT name FROM staff ORDER BY name")
        return [r["name"] for r in rows]

    def get_staff(self, name: str) -> Optional[StaffMember]:
        rows = self.db.execute(
            "SELECT * FROM staff WHERE name = ?", (name,)
        )
        return StaffMember(**dict(rows[0])) if rows else None

    def authenticate_staff(self, name: str, pin: str) -> bool:
        """Check a name/PIN pair against the directory."""
        member = self.get_staff(name)
        return bool(member and member.pin_hash == self.hash_pin(pin))

    def create_staff(self, name: str, pin: str):
        with self.db.get_connection() as conn:
            conn.execute(
                "INSERT INTO staff (name, pin_hash) VALUES (?, ?)",
                (name, self.hash_pin(pin)),
            )

    def update_staff_pin(self, name: str, pin: str) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                "UPDATE staff SET pin_hash = ? WHERE name = ?",
                (self.hash_pin(pin), name),
            )
            return cursor.rowcount > 0

    def delete_staff(self, name: str) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.execute("DELETE FROM staff WHERE name = ?", (name,))
            return cursor.rowcount > 0

    # ── Change log ──────────────────────────────────────────────

    def latest_change_id(self) -> int:
        rows = self.db.execute("SELECT MAX(id) AS last FROM change_log")
        return (rows[0]["last"] or 0) if rows else 0

    def get_changes_since(self, change_id: int,
                          limit: int = 500) -> list[ChangeEvent]:
        rows = self.db.execute(
            "SELECT * FROM change_log WHERE id > ? ORDER BY id LIMIT ?",
            (change_id, limit),
        )
        return [ChangeEvent(**dict(r)) for r in rows]

    def subscribe(self, listener: Callable[[str, list[str]], None]):
        """Register an in-process listener called after each commit."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[str, list[str]], None]):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _log_change(self, conn, action: str, block_id: Optional[str]):
        conn.execute(
            "INSERT INTO change_log (action, block_id) VALUES (?, ?)",
            (action, block_id),
        )

    def _notify(self, action: str, block_ids: list[str]):
        for listener in list(self._listeners):
            try:
                listener(action, block_ids)
            except Exception:
                # A faulty listener must not undo a committed write
                logger.exception("Change listener %r failed", listener)
