"""Application configuration — loads .env, then overrides from settings.json."""

import json
import os
from pathlib import Path

from dotenv import load_dotenv

# Find the project root (where .env lives)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# Runtime settings file for in-app configuration
_SETTINGS_FILE = _PROJECT_ROOT / "data" / "settings.json"


def _load_settings() -> dict:
    """Load saved runtime settings from JSON file."""
    if _SETTINGS_FILE.exists():
        try:
            return json.loads(_SETTINGS_FILE.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def _save_settings(settings: dict):
    """Persist runtime settings to JSON file."""
    _SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    _SETTINGS_FILE.write_text(
        json.dumps(settings, indent=2), encoding="utf-8"
    )


def _env_list(name: str, default: str) -> list[str]:
    """Read a comma-separated list from the environment."""
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# Load saved settings once at import time
_runtime = _load_settings()


class Config:
    """Central configuration: .env defaults, settings.json overrides."""

    # Paths
    PROJECT_ROOT: Path = _PROJECT_ROOT
    DATABASE_PATH: Path = Path(
        os.getenv("DATABASE_PATH", str(_PROJECT_ROOT / "data" / "stone_yard.db"))
    )
    BACKUP_PATH: Path = Path(
        os.getenv("DATABASE_BACKUP_PATH", str(_PROJECT_ROOT / "data" / "backups"))
    )
    REPORTS_DIRECTORY: str = _runtime.get(
        "reports_directory",
        os.getenv("REPORTS_DIRECTORY", str(_PROJECT_ROOT / "data" / "reports")),
    )

    # Operators
    ADMIN_OPERATOR: str = _runtime.get(
        "admin_operator",
        os.getenv("ADMIN_OPERATOR", "ADMIN"),
    ).strip().upper()

    # Company stamped on blocks bought directly from the quarry
    PURCHASE_COMPANY: str = _runtime.get(
        "purchase_company",
        os.getenv("PURCHASE_COMPANY", "HI-LINE"),
    ).strip().upper()
    REPORT_TITLE: str = _runtime.get(
        "report_title",
        os.getenv("REPORT_TITLE", "HI-LINE STONE"),
    )

    # Factory floor
    CUTTING_MACHINES: list = _runtime.get(
        "cutting_machines",
        _env_list("CUTTING_MACHINES", "Machine 1,Machine 2,Thin Wire Machine"),
    )
    THICKNESS_CLASSES: list = _runtime.get(
        "thickness_classes",
        _env_list("THICKNESS_CLASSES", "16mm,18mm,20mm"),
    )

    # Partial sales: sold part of JOB-1 becomes JOB-1-P1234
    SPLIT_SUFFIX_PREFIX: str = _runtime.get(
        "split_suffix_prefix",
        os.getenv("SPLIT_SUFFIX_PREFIX", "P"),
    )

    # Change watcher
    CHANGE_POLL_SECONDS: float = float(_runtime.get(
        "change_poll_seconds",
        os.getenv("CHANGE_POLL_SECONDS", "5"),
    ))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def update_admin_operator(cls, name: str):
        """Change the administrator identity and persist."""
        cls.ADMIN_OPERATOR = name.strip().upper()

        settings = _load_settings()
        settings["admin_operator"] = cls.ADMIN_OPERATOR
        _save_settings(settings)

    @classmethod
    def update_purchase_settings(cls, company: str, report_title: str):
        """Update the purchasing company and report branding, then persist."""
        cls.PURCHASE_COMPANY = company.strip().upper()
        cls.REPORT_TITLE = report_title

        settings = _load_settings()
        settings["purchase_company"] = cls.PURCHASE_COMPANY
        settings["report_title"] = report_title
        _save_settings(settings)

    @classmethod
    def update_floor_settings(cls, machines: list[str],
                              thickness_classes: list[str]):
        """Update the cutting machine roster and thickness classes."""
        cls.CUTTING_MACHINES = list(machines)
        cls.THICKNESS_CLASSES = list(thickness_classes)

        settings = _load_settings()
        settings["cutting_machines"] = cls.CUTTING_MACHINES
        settings["thickness_classes"] = cls.THICKNESS_CLASSES
        _save_settings(settings)

    @classmethod
    def update_change_poll(cls, seconds: float):
        """Update the change watcher polling interval and persist."""
        cls.CHANGE_POLL_SECONDS = float(seconds)

        settings = _load_settings()
        settings["change_poll_seconds"] = cls.CHANGE_POLL_SECONDS
        _save_settings(settings)

    @classmethod
    def get_cutting_machines(cls) -> list[str]:
        """Return a copy of the configured cutting machines."""
        return list(cls.CUTTING_MACHINES)

    @classmethod
    def get_thickness_classes(cls) -> list[str]:
        """Return a copy of the configured thickness classes."""
        return list(cls.THICKNESS_CLASSES)
