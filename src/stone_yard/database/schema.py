"""Database schema definition, initialization, and migrations."""

import logging
import sqlite3

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

_STATUS_CHECK = (
    "status IN ('Purchased', 'Gantry', 'Cutting', 'Processing', "
    "'Resining', 'Completed', 'In Stockyard', 'Sold')"
)

# Each statement is a separate string to avoid executescript issues
_V1_STATEMENTS = [
    """CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Blocks: one row per physical block or split descendant
    f"""CREATE TABLE IF NOT EXISTS blocks (
        id TEXT PRIMARY KEY,
        job_no TEXT NOT NULL UNIQUE COLLATE NOCASE,
        company TEXT NOT NULL,
        material TEXT NOT NULL,
        mines_marka TEXT DEFAULT '',
        status TEXT NOT NULL DEFAULT 'Gantry' CHECK ({_STATUS_CHECK}),
        length REAL DEFAULT 0,
        width REAL DEFAULT 0,
        height REAL DEFAULT 0,
        weight REAL NOT NULL DEFAULT 0 CHECK (weight >= 0),
        arrival_date TEXT,
        is_priority INTEGER NOT NULL DEFAULT 0,
        is_to_be_cut INTEGER NOT NULL DEFAULT 0,
        entered_by TEXT NOT NULL,
        country TEXT DEFAULT '',
        supplier TEXT DEFAULT '',
        forwarder TEXT DEFAULT '',
        shipment_group TEXT DEFAULT '',
        loading_date TEXT,
        expected_arrival_date TEXT,
        thickness TEXT,
        pre_cutting_process TEXT NOT NULL DEFAULT 'None'
            CHECK (pre_cutting_process IN ('None', 'TENNAX', 'VACCUM')),
        assigned_machine_id TEXT,
        cut_by_machine TEXT,
        start_time TEXT,
        end_time TEXT,
        power_cuts TEXT NOT NULL DEFAULT '[]',
        total_cutting_time_minutes INTEGER,
        slab_length REAL,
        slab_width REAL,
        slab_count INTEGER CHECK (slab_count IS NULL OR slab_count >= 0),
        total_sqft REAL CHECK (total_sqft IS NULL OR total_sqft >= 0),
        processing_stage TEXT,
        processing_started_at TEXT,
        is_sent_to_resin INTEGER NOT NULL DEFAULT 0,
        resin_start_time TEXT,
        resin_end_time TEXT,
        resin_power_cuts TEXT NOT NULL DEFAULT '[]',
        resin_treatment_type TEXT,
        stockyard_location TEXT,
        transferred_to_yard_at TEXT,
        msp TEXT DEFAULT '',
        sold_to TEXT,
        bill_no TEXT,
        sold_at TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Operators
    """CREATE TABLE IF NOT EXISTS staff (
        name TEXT PRIMARY KEY COLLATE NOCASE,
        pin_hash TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    "CREATE INDEX IF NOT EXISTS idx_blocks_status ON blocks(status)",
    "CREATE INDEX IF NOT EXISTS idx_blocks_company ON blocks(company)",

    """CREATE TRIGGER IF NOT EXISTS update_blocks_timestamp AFTER UPDATE ON blocks
    WHEN NEW.updated_at = OLD.updated_at BEGIN
        UPDATE blocks SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
    END""",

    "INSERT OR REPLACE INTO schema_version (version) VALUES (1)",
]


# ── Migration from v1 → v2 ──────────────────────────────────────
# Storage-level guards for the shared floor resources, resin batches,
# and the change log behind the "re-fetch" notifications.
_MIGRATION_V2_STATEMENTS = [
    "ALTER TABLE blocks ADD COLUMN resin_batch_id TEXT",

    # One block per machine while cutting
    """CREATE UNIQUE INDEX IF NOT EXISTS idx_blocks_machine_cutting
        ON blocks(assigned_machine_id) WHERE status = 'Cutting'""",

    "CREATE INDEX IF NOT EXISTS idx_blocks_resin_batch ON blocks(resin_batch_id)",

    # One batch on the resin line at a time
    """CREATE TRIGGER IF NOT EXISTS single_resin_batch_update
    BEFORE UPDATE OF status ON blocks
    WHEN NEW.status = 'Resining' AND OLD.status != 'Resining' BEGIN
        SELECT RAISE(ABORT, 'resin line occupied')
        WHERE EXISTS (
            SELECT 1 FROM blocks
            WHERE status = 'Resining' AND id != NEW.id
              AND COALESCE(resin_batch_id, '') != COALESCE(NEW.resin_batch_id, '')
        );
    END""",

    """CREATE TRIGGER IF NOT EXISTS single_resin_batch_insert
    BEFORE INSERT ON blocks
    WHEN NEW.status = 'Resining' BEGIN
        SELECT RAISE(ABORT, 'resin line occupied')
        WHERE EXISTS (
            SELECT 1 FROM blocks
            WHERE status = 'Resining'
              AND COALESCE(resin_batch_id, '') != COALESCE(NEW.resin_batch_id, '')
        );
    END""",

    """CREATE TABLE IF NOT EXISTS change_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        action TEXT NOT NULL,
        block_id TEXT,
        changed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    "INSERT OR REPLACE INTO schema_version (version) VALUES (2)",
]


def _get_schema_version(conn) -> int:
    """Get the current schema version, or 0 if no schema exists."""
    try:
        row = conn.execute(
            "SELECT MAX(version) as v FROM schema_version"
        ).fetchone()
        return row["v"] if row and row["v"] else 0
    except sqlite3.OperationalError:
        return 0


def _create_v1(conn):
    for stmt in _V1_STATEMENTS:
        conn.execute(stmt)


def _migrate_v1_to_v2(conn):
    """Upgrade schema from v1 to v2."""
    for stmt in _MIGRATION_V2_STATEMENTS:
        conn.execute(stmt)


def initialize_database(db_connection, target_version: int = SCHEMA_VERSION):
    """Create all tables, indexes, and triggers.

    On a fresh database, builds v1 and migrates forward, so fresh and
    upgraded databases end up with the same shape. ``target_version`` only
    exists so migrations can be tested from an older baseline.
    """
    with db_connection.get_connection() as conn:
        version = _get_schema_version(conn)

        if version == 0:
            _create_v1(conn)
            version = 1
            logger.info("Created block store schema v1")
        if version < 2 <= target_version:
            _migrate_v1_to_v2(conn)
            logger.info("Migrated block store schema v1 -> v2")
