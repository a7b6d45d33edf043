"""Excel (XLSX) reports for block collections."""

from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from openpyxl import Workbook
from openpyxl.styles import Font

from stone_yard.config import Config
from stone_yard.database.models import Block
from stone_yard.database.repository import Repository
from stone_yard.lifecycle.aggregates import sold_history, summarize
from stone_yard.utils.constants import (
    STATUS_COMPLETED,
    STATUS_CUTTING,
    STATUS_GANTRY,
    STATUS_IN_STOCKYARD,
    STATUS_PROCESSING,
    STATUS_RESINING,
)
from stone_yard.utils.formatters import format_dimensions, format_thickness

Column = tuple[str, Callable[[Block], object]]

GANTRY_COLUMNS: list[Column] = [
    ("Job #", lambda b: b.job_no),
    ("Company", lambda b: b.company),
    ("Material", lambda b: b.material),
    ("Marka", lambda b: b.mines_marka),
    ("Size (L x H x W)", lambda b: format_dimensions(b.length, b.width, b.height)),
    ("Weight (T)", lambda b: b.weight),
    ("Arrival", lambda b: b.arrival_date),
    ("Priority", lambda b: "YES" if b.is_priority else ""),
    ("Queued", lambda b: format_thickness(b.thickness) if b.is_to_be_cut else ""),
    ("Pre-cutting", lambda b: "" if b.pre_cutting_process == "None" else b.pre_cutting_process),
]

PRODUCTION_COLUMNS: list[Column] = [
    ("Job #", lambda b: b.job_no),
    ("Company", lambda b: b.company),
    ("Material", lambda b: b.material),
    ("Status", lambda b: b.status),
    ("Machine", lambda b: b.assigned_machine_id or b.cut_by_machine or ""),
    ("Thickness", lambda b: format_thickness(b.thickness)),
    ("Cutting (min)", lambda b: b.total_cutting_time_minutes),
    ("Power cuts (min)", lambda b: b.cutting_downtime_minutes),
    ("Stage", lambda b: b.processing_stage or ""),
    ("Resin", lambda b: b.resin_treatment_type or ""),
    ("Resin downtime (min)", lambda b: b.resin_downtime_minutes),
    ("Weight (T)", lambda b: b.weight),
    ("Sqft", lambda b: b.total_sqft),
    ("Recovery", lambda b: b.recovery),
]

STOCKYARD_COLUMNS: list[Column] = [
    ("Job #", lambda b: b.job_no),
    ("Company", lambda b: b.company),
    ("Material", lambda b: b.material),
    ("Location", lambda b: b.stockyard_location or ""),
    ("Slab size", lambda b: format_dimensions(b.slab_length, b.slab_width)),
    ("Slabs", lambda b: b.slab_count),
    ("Sqft", lambda b: b.total_sqft),
    ("Weight (T)", lambda b: b.weight),
    ("Recovery", lambda b: b.recovery),
    ("MSP", lambda b: b.msp),
]

SOLD_COLUMNS: list[Column] = [
    ("Sold on", lambda b: (b.sold_at or "")[:10]),
    ("Job #", lambda b: b.job_no),
    ("Company", lambda b: b.company),
    ("Material", lambda b: b.material),
    ("Sold to", lambda b: b.sold_to),
    ("Bill #", lambda b: b.bill_no),
    ("Slabs", lambda b: b.slab_count),
    ("Sqft", lambda b: b.total_sqft),
    ("Weight (T)", lambda b: b.weight),
    ("Recovery", lambda b: b.recovery),
]


def write_blocks_sheet(ws, title: str, columns: list[Column],
                       blocks: Iterable[Block]) -> int:
    """Fill a worksheet with a title row, a header and one row per block."""
    blocks = list(blocks)
    ws.append([title])
    ws.cell(row=1, column=1).font = Font(bold=True, size=14)
    ws.append([header for header, _ in columns])
    for cell in ws[2]:
        cell.font = Font(bold=True)

    for block in blocks:
        ws.append([getter(block) for _, getter in columns])

    totals = summarize(blocks)
    ws.append([])
    ws.append(["Total", f"{totals['count']} blocks",
               f"{totals['weight']:.2f} T", f"{totals['sqft']:.2f} sqft"])

    # Auto-fit column widths (approximate); the title row spans wide
    for col in ws.iter_cols(min_row=2):
        max_len = max(len(str(cell.value or "")) for cell in col)
        ws.column_dimensions[col[0].column_letter].width = min(max_len + 2, 40)
    return len(blocks)


def _export(filepath: str | Path, sheet: str, heading: str,
            columns: list[Column], blocks: Iterable[Block]) -> int:
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    ws = wb.active
    ws.title = sheet
    title = f"{Config.REPORT_TITLE} - {heading} ({datetime.now():%d-%m-%Y})"
    count = write_blocks_sheet(ws, title, columns, blocks)
    wb.save(filepath)
    return count


def export_gantry_excel(repo: Repository, filepath: str | Path) -> int:
    """Raw blocks waiting at the gantry, priority first. Returns row count."""
    blocks = sorted(repo.get_all_blocks(STATUS_GANTRY),
                    key=lambda b: (not b.is_priority, b.job_no))
    return _export(filepath, "Gantry", "Gantry Stock", GANTRY_COLUMNS, blocks)


def export_production_excel(repo: Repository, filepath: str | Path) -> int:
    """Blocks on the factory floor, from cutting to ready stock."""
    floor = (STATUS_CUTTING, STATUS_PROCESSING, STATUS_RESINING,
             STATUS_COMPLETED)
    blocks = [b for b in repo.get_all_blocks() if b.status in floor]
    return _export(filepath, "Production", "Production",
                   PRODUCTION_COLUMNS, blocks)


def export_stockyard_excel(repo: Repository, filepath: str | Path) -> int:
    blocks = sorted(repo.get_all_blocks(STATUS_IN_STOCKYARD),
                    key=lambda b: (b.stockyard_location or "", b.job_no))
    return _export(filepath, "Stockyard", "Stockyard", STOCKYARD_COLUMNS,
                   blocks)


def export_sold_excel(repo: Repository, filepath: str | Path,
                      company: str = None, month: int = None,
                      year: int = None, search: str = "") -> int:
    """Sold history with the same filters as the history screen."""
    blocks = sold_history(repo.get_all_blocks(), company=company,
                          month=month, year=year, search=search)
    return _export(filepath, "Sold", "Sold History", SOLD_COLUMNS, blocks)


REPORTS = {
    "gantry": export_gantry_excel,
    "production": export_production_excel,
    "stockyard": export_stockyard_excel,
    "sold": export_sold_excel,
}
