"""Database backup script — creates a timestamped copy of the block store."""

import sqlite3
import sys
from datetime import datetime
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from stone_yard.config import Config

KEEP_BACKUPS = 10


def backup_database():
    """Snapshot the database with SQLite's online backup, keeping the newest few."""
    db_path = Config.DATABASE_PATH
    backup_dir = Config.BACKUP_PATH
    backup_dir.mkdir(parents=True, exist_ok=True)

    if not db_path.exists():
        print(f"Database not found at {db_path}")
        return

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_file = backup_dir / f"stone_yard_{timestamp}.db"
    source = sqlite3.connect(str(db_path))
    target = sqlite3.connect(str(backup_file))
    try:
        # Consistent even while the app is writing
        source.backup(target)
    finally:
        target.close()
        source.close()
    print(f"Backup created: {backup_file}")

    backups = sorted(backup_dir.glob("stone_yard_*.db"), reverse=True)
    for old in backups[KEEP_BACKUPS:]:
        old.unlink()
        print(f"Removed old backup: {old.name}")


if __name__ == "__main__":
    backup_database()
