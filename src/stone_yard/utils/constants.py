"""Application-wide constants."""

APP_NAME = "Stone-Yard"
APP_VERSION = "1.0.0"

# ── Block statuses ───────────────────────────────────────────────
STATUS_PURCHASED = "Purchased"
STATUS_GANTRY = "Gantry"
STATUS_CUTTING = "Cutting"
STATUS_PROCESSING = "Processing"
STATUS_RESINING = "Resining"
STATUS_COMPLETED = "Completed"  # "Ready Stock" on the floor
STATUS_IN_STOCKYARD = "In Stockyard"
STATUS_SOLD = "Sold"

# Pipeline order
BLOCK_STATUSES = [
    STATUS_PURCHASED,
    STATUS_GANTRY,
    STATUS_CUTTING,
    STATUS_PROCESSING,
    STATUS_RESINING,
    STATUS_COMPLETED,
    STATUS_IN_STOCKYARD,
    STATUS_SOLD,
]

# Statuses a sale may start from
SALEABLE_STATUSES = (STATUS_GANTRY, STATUS_PROCESSING, STATUS_IN_STOCKYARD)

# ── Process metadata ─────────────────────────────────────────────
PRE_CUTTING_PROCESSES = ["None", "TENNAX", "VACCUM"]

PROCESSING_STAGE_FIELD = "Field"
PROCESSING_STAGE_RESIN_PLANT = "Resin Plant"
PROCESSING_STAGES = [PROCESSING_STAGE_FIELD, PROCESSING_STAGE_RESIN_PLANT]

RESIN_TREATMENT_TYPES = ["Resin", "GP", "CC"]

STOCKYARD_LOCATIONS = ["Showroom", "Service Lane", "Field", "RP Yard"]

# ── Operators ────────────────────────────────────────────────────
# Read-only session with no company affiliation
GUEST_OPERATOR = "GUEST"

STAFF_PIN_LENGTH = 4

# ── Field groups ─────────────────────────────────────────────────
# Cleared once a purchased block reaches the factory
LOGISTICS_FIELDS = (
    "country",
    "supplier",
    "forwarder",
    "shipment_group",
    "loading_date",
    "expected_arrival_date",
)

# Shipment fields only (reset_loading keeps supplier/country)
SHIPMENT_FIELDS = (
    "forwarder",
    "shipment_group",
    "loading_date",
    "expected_arrival_date",
)

# Never changed through the free-form edit path
LIFECYCLE_OWNED_FIELDS = (
    "id",
    "status",
    "entered_by",
    "created_at",
    "assigned_machine_id",
    "start_time",
    "end_time",
    "power_cuts",
    "total_cutting_time_minutes",
    "resin_start_time",
    "resin_end_time",
    "resin_power_cuts",
    "resin_batch_id",
    "sold_at",
    "sold_to",
    "bill_no",
    "cut_by_machine",
    "processing_stage",
    "processing_started_at",
    "is_sent_to_resin",
    "resin_treatment_type",
)

# Textual identifiers stored uppercase
UPPERCASE_FIELDS = (
    "job_no",
    "company",
    "material",
    "mines_marka",
    "supplier",
    "country",
    "forwarder",
    "shipment_group",
    "sold_to",
    "bill_no",
)

NUMERIC_FIELDS = (
    "length",
    "width",
    "height",
    "weight",
    "slab_length",
    "slab_width",
    "total_sqft",
)
