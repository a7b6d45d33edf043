"""Operator directory with the reserved-name rules."""

import logging
import sqlite3

from stone_yard.config import Config
from stone_yard.database.models import normalize_text
from stone_yard.database.repository import Repository
from stone_yard.utils.constants import GUEST_OPERATOR, STAFF_PIN_LENGTH

from .errors import RemoteFailureError, ValidationError
from .permissions import require_admin

logger = logging.getLogger(__name__)


def _check_pin(pin: str) -> str:
    pin = str(pin or "").strip()
    if len(pin) != STAFF_PIN_LENGTH or not pin.isdigit():
        raise ValidationError(f"PIN must be exactly {STAFF_PIN_LENGTH} digits")
    return pin


class StaffDirectory:
    """Staff names and PINs. Only the administrator may change them."""

    def __init__(self, repo: Repository):
        self.repo = repo

    def list_names(self) -> list[str]:
        """Names offered at login; the guest session is always available."""
        try:
            names = self.repo.get_staff_names()
        except sqlite3.Error as exc:
            logger.error("Could not load staff list: %s", exc)
            return [GUEST_OPERATOR]
        return [GUEST_OPERATOR] + [n for n in names if n != GUEST_OPERATOR]

    def verify(self, name: str, pin: str) -> bool:
        name = normalize_text(name)
        if name == GUEST_OPERATOR:
            return True
        try:
            return self.repo.authenticate_staff(name, str(pin or "").strip())
        except sqlite3.Error as exc:
            logger.error("PIN check for %s failed: %s", name, exc)
            return False

    def bootstrap_admin(self, pin: str) -> bool:
        """Register the administrator on a fresh directory.

        Returns False when the administrator already exists.
        """
        admin = normalize_text(Config.ADMIN_OPERATOR)
        if self.repo.get_staff(admin):
            return False
        self.repo.create_staff(admin, _check_pin(pin))
        logger.info("Administrator %s registered", admin)
        return True

    def add(self, operator: str, name: str, pin: str) -> str:
        require_admin(operator, "register operators")
        name = normalize_text(name)
        if not name or name == GUEST_OPERATOR:
            raise ValidationError(f"'{name}' cannot be used as an operator name")
        pin = _check_pin(pin)
        if self.repo.get_staff(name):
            raise ValidationError(f"Operator {name} already exists")
        try:
            self.repo.create_staff(name, pin)
        except sqlite3.Error as exc:
            raise RemoteFailureError(f"Register operator {name}", cause=exc) from exc
        logger.info("Operator %s registered by %s", name, operator)
        return name

    def change_pin(self, operator: str, name: str, pin: str):
        require_admin(operator, "change PINs")
        name = normalize_text(name)
        pin = _check_pin(pin)
        try:
            updated = self.repo.update_staff_pin(name, pin)
        except sqlite3.Error as exc:
            raise RemoteFailureError(f"Change PIN for {name}", cause=exc) from exc
        if not updated:
            raise ValidationError(f"Operator {name} not found")
        logger.info("PIN for %s changed by %s", name, operator)

    def remove(self, operator: str, name: str):
        require_admin(operator, "remove operators")
        name = normalize_text(name)
        if name == normalize_text(Config.ADMIN_OPERATOR):
            raise ValidationError("The administrator cannot be removed")
        try:
            removed = self.repo.delete_staff(name)
        except sqlite3.Error as exc:
            raise RemoteFailureError(f"Remove operator {name}", cause=exc) from exc
        if not removed:
            raise ValidationError(f"Operator {name} not found")
        logger.info("Operator %s removed by %s", name, operator)
