"""Seed the block store with a small working factory for demos.

Creates:
  - the administrator plus 2 company operators (all PIN 1423)
  - 2 purchases in transit on one shipment
  - 6 gantry blocks, 2 of them queued for cutting
  - 1 block cutting on Machine 1 (with a power cut)
  - 2 blocks on the resin line, 1 in ready stock, 2 in the stockyard
  - 1 partial area sale

Run:
    python -m execution.seed_mock_data          (from project root)
    python execution/seed_mock_data.py          (direct)

WARNING: job numbers must be unique. Run against a fresh DB; delete
data/stone_yard.db first for a clean start.
"""

import os
import sys
from datetime import datetime, timedelta

# Ensure project src is on the path
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(_ROOT, "src"))

from stone_yard.app import configure_logging, open_yard
from stone_yard.config import Config

PIN = "1423"


def seed(yard):
    """Populate the block store with mock data."""
    admin = Config.ADMIN_OPERATOR
    life = yard.lifecycle
    start = datetime.now().replace(minute=0, second=0, microsecond=0)

    # ── 1. Operators ──────────────────────────────────────────────
    print("Creating operators...")
    yard.staff.bootstrap_admin(PIN)
    for name in ("GRANITO EXPORTS", "SUNRISE MARBLE"):
        yard.staff.add(admin, name, PIN)
    print(f"  → 3 operators (all PIN {PIN})")

    # ── 2. Purchases in transit ───────────────────────────────────
    print("Registering purchases...")
    bought = [
        life.register_purchase(admin, "HL-101", "Black Galaxy", 21.4,
                               supplier="Ongole Quarries", country="India"),
        life.register_purchase(admin, "HL-102", "Absolute Black", 19.8,
                               supplier="Ongole Quarries", country="India"),
    ]
    life.schedule_shipment(admin, [b.id for b in bought],
                           start - timedelta(days=3), "Blue Line Cargo",
                           "SHIP-07", start + timedelta(days=12))
    print(f"  → {len(bought)} purchases on shipment SHIP-07")

    # ── 3. Gantry ─────────────────────────────────────────────────
    print("Receiving blocks...")
    received = [
        ("GE-201", "GRANITO EXPORTS", "Tan Brown", 18.2, 118, 74, 62),
        ("GE-202", "GRANITO EXPORTS", "Tan Brown", 16.9, 110, 70, 60),
        ("GE-203", "GRANITO EXPORTS", "Steel Grey", 20.5, 120, 76, 64),
        ("SM-301", "SUNRISE MARBLE", "Statuario", 12.1, 96, 60, 52),
        ("SM-302", "SUNRISE MARBLE", "Statuario", 11.4, 94, 58, 50),
        ("SM-303", "SUNRISE MARBLE", "Makrana White", 14.0, 100, 64, 56),
        ("GE-204", "GRANITO EXPORTS", "Steel Grey", 19.7, 118, 75, 63),
        ("GE-205", "GRANITO EXPORTS", "Black Pearl", 17.3, 112, 72, 61),
        ("SM-304", "SUNRISE MARBLE", "Makrana White", 13.2, 98, 62, 54),
        ("SM-305", "SUNRISE MARBLE", "Statuario", 10.8, 92, 58, 50),
        ("GE-206", "GRANITO EXPORTS", "Black Pearl", 18.9, 116, 74, 62),
        ("GE-207", "GRANITO EXPORTS", "Tan Brown", 17.7, 114, 72, 60),
    ]
    blocks = {}
    for job_no, company, material, weight, length, width, height in received:
        blocks[job_no] = life.receive_block(
            company, job_no, company, material, weight, length, width,
            height, mines_marka="M-" + job_no[-3:],
            arrival_date=start - timedelta(days=10),
        )
    thicknesses = Config.get_thickness_classes()
    life.queue_for_cutting(admin, blocks["GE-202"].id, thicknesses[-1])
    life.queue_for_cutting(admin, blocks["SM-302"].id, thicknesses[0])
    life.set_priority(admin, blocks["SM-302"].id, True)
    print(f"  → {len(received)} blocks received")

    # ── 4. Production ─────────────────────────────────────────────
    print("Running production...")
    machines = Config.get_cutting_machines()
    default_thickness = thicknesses[len(thicknesses) // 2]

    def cut(job_no, hours_ago, duration_hours):
        block_id = blocks[job_no].id
        began = start - timedelta(hours=hours_ago)
        life.start_cutting(admin, block_id, machines[0],
                           thickness=default_thickness, start_time=began)
        life.log_cutting_power_cut(admin, block_id,
                                   began + timedelta(minutes=40),
                                   began + timedelta(minutes=55))
        life.finish_cutting(admin, block_id,
                            end_time=began + timedelta(hours=duration_hours))
        return block_id

    resin_ids = []
    for job_no, sqft in (("GE-204", 640.5), ("GE-205", 588.0)):
        block_id = cut(job_no, 60, 9)
        life.finish_processing(admin, block_id, 118, 72, 48, sqft,
                               send_to_resin=True)
        resin_ids.append(block_id)
    life.start_resin_batch(admin, resin_ids, "Resin",
                           start_time=start - timedelta(hours=5))
    life.log_resin_power_cut(admin, start - timedelta(hours=3),
                             start - timedelta(hours=2, minutes=30))

    ready = cut("SM-304", 48, 8)
    life.finish_processing(admin, ready, 96, 60, 40, 402.25)

    for job_no, location, sqft, slabs in (("SM-305", "Showroom", 360.0, 36),
                                          ("GE-206", "Field", 610.0, 50)):
        block_id = cut(job_no, 96, 10)
        life.finish_processing(admin, block_id, 112, 70, slabs, sqft)
        life.transfer_to_yard(admin, block_id, location)

    # Leave one block on the saw
    life.start_cutting(admin, blocks["GE-207"].id, machines[0],
                       thickness=default_thickness,
                       start_time=start - timedelta(hours=2))
    print("  → production pipeline populated")

    # ── 5. Sales ──────────────────────────────────────────────────
    print("Recording sales...")
    sold = life.sell_area(admin, blocks["GE-206"].id, 244.0,
                          "Marble Mart", "INV-1001")
    life.sell_weight(admin, blocks["SM-303"].id, 14.0,
                     "Stone Traders", "INV-1002")
    print(f"  → partial sale {sold.job_no}, 1 weight sale")

    # ── Done ──────────────────────────────────────────────────────
    print("\n✓ Mock data seeded successfully!")
    print(f"  Blocks: {len(life.blocks())}")
    print(f"  Operators: {len(yard.staff.list_names()) - 1} (all PIN {PIN})")


def main():
    configure_logging("WARNING")
    db_path = Config.DATABASE_PATH
    print(f"Database: {db_path}")

    # Confirm if DB exists
    if os.path.exists(db_path):
        resp = input("Database already exists. Seed anyway? (y/N): ").strip().lower()
        if resp != "y":
            print("Aborted.")
            return

    seed(open_yard(db_path))


if __name__ == "__main__":
    main()
