from __future__ import annotations

import sqlite3


# ----------------------------
# Domain errors (friendly)
# ----------------------------
class DomainError(Exception):
    """Domain-level error suitable for surfacing to the UI."""


class ValidationError(DomainError):
    """A required field is missing or malformed; nothing was written."""


class NotFoundError(DomainError):
    """A referenced supplier/product/account/sale/purchase does not exist."""

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} not found: {entity_id!r}")
        self.entity = entity
        self.entity_id = entity_id


class InsufficientFundsError(DomainError):
    """A payment would take the source account below zero."""

    def __init__(self, account_name: str, available: float, requested: float):
        super().__init__(
            f"Insufficient balance in {account_name}. "
            f"Available: {available:.2f}, requested: {requested:.2f}"
        )
        self.available = available
        self.requested = requested


class ConstraintViolationError(DomainError):
    """Uniqueness/foreign-key violation surfaced from SQLite; wraps the original error."""

    def __init__(self, message: str, *, original: BaseException | None = None):
        super().__init__(message)
        self.original = original


class SilentAuditFailure(DomainError):
    """Audit write failed. Raised and caught inside the audit boundary only."""


def map_integrity_error(e: sqlite3.Error) -> DomainError:
    """Translate a sqlite3 constraint error into a domain error."""
    msg = str(e)
    if "UNIQUE constraint failed" in msg:
        column = msg.split(":", 1)[-1].strip()
        return ConstraintViolationError(f"Duplicate value for {column}.", original=e)
    if "FOREIGN KEY constraint failed" in msg:
        return ConstraintViolationError("Referenced record is missing or still in use.", original=e)
    return ConstraintViolationError(msg, original=e)
