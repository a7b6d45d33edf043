"""Per-operator write authorization.

Staff logins are scoped to the company whose name matches the login
name; the administrator may write anything and the guest nothing.
"""

import re

from stone_yard.config import Config
from stone_yard.utils.constants import GUEST_OPERATOR

from .errors import PermissionDeniedError

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def normalize_name(name) -> str:
    """Strip every non-alphanumeric character and uppercase."""
    return _NON_ALNUM.sub("", str(name or "")).upper()


def is_guest(operator) -> bool:
    return normalize_name(operator) in ("", GUEST_OPERATOR)


def is_admin(operator) -> bool:
    admin = normalize_name(Config.ADMIN_OPERATOR)
    return bool(admin) and normalize_name(operator) == admin


def can_write(operator, company) -> bool:
    if is_guest(operator):
        return False
    if is_admin(operator):
        return True
    return normalize_name(operator) == normalize_name(company)


def require_write(operator, company, action: str = "modify"):
    """Raise PermissionDeniedError unless ``can_write`` holds."""
    if not can_write(operator, company):
        raise PermissionDeniedError(operator, company, action)


def require_admin(operator, action: str):
    if not is_admin(operator):
        raise PermissionDeniedError(operator, "", action)


def require_operator(operator, action: str = "modify"):
    """Raise PermissionDeniedError for the guest session."""
    if is_guest(operator):
        raise PermissionDeniedError(operator, "", action)
