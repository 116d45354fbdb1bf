"""Append-only enforcement for the points ledger using SQLAlchemy events."""

import logging

from sqlalchemy import event

from reservations.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify an append-only ledger row."""

    def __init__(self, model_name: str, operation: str, record_id: str):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot {operation} {model_name} record {record_id}. "
            "Ledger entries are append-only."
        )


def _reject(model_name: str, operation: str, record_id: str) -> None:
    logger.error(f"IMMUTABILITY_VIOLATION: attempted {operation} on {model_name} record_id={record_id}")
    raise ImmutabilityViolationError(model_name, operation, record_id)


def register_immutability_enforcement() -> None:
    """Register listeners rejecting UPDATE and DELETE of PointsHistory rows.

    Safe to call more than once.
    """
    global _registered
    if _registered:
        return

    from reservations.models.user import PointsHistory

    @event.listens_for(PointsHistory, "before_update")
    def prevent_points_history_update(mapper, connection, target):
        _reject("PointsHistory", "UPDATE", str(target.id))

    @event.listens_for(PointsHistory, "before_delete")
    def prevent_points_history_delete(mapper, connection, target):
        _reject("PointsHistory", "DELETE", str(target.id))

    _registered = True
