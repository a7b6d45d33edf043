"""Exceptions raised by block lifecycle operations."""


class LifecycleError(Exception):
    """Base exception for block lifecycle operations."""


class ValidationError(LifecycleError, ValueError):
    """Input or state rejected before anything was written."""


class DuplicateIdentifierError(ValidationError):
    """A job number is already used by another block."""

    def __init__(self, job_no: str):
        super().__init__(f"Job no {job_no} already exists")
        self.job_no = job_no


class InvalidQuantityError(ValidationError):
    """A sale or split amount is out of range for the block."""


class InvalidTransitionError(ValidationError):
    """The requested status change is not allowed from the current status."""


class PermissionDeniedError(LifecycleError, PermissionError):
    """The operator may not modify blocks of this company."""

    def __init__(self, operator: str, company: str = "", action: str = "modify"):
        target = f" {company} blocks" if company else ""
        super().__init__(
            f"{operator or 'Unknown operator'} may not {action}{target}"
        )
        self.operator = operator
        self.company = company
        self.action = action


class RemoteFailureError(LifecycleError):
    """The block store failed while running an operation.

    Multi-record operations run in one transaction, so ``block_ids``
    lists records that were left untouched, not half-written.
    """

    def __init__(self, operation: str, block_ids=(), cause: Exception = None):
        detail = f": {cause}" if cause else ""
        super().__init__(f"{operation} failed{detail}")
        self.operation = operation
        self.block_ids = list(block_ids)
        self.cause = cause
