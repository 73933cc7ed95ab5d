"""Typed failures surfaced to callers of the work order service."""

from __future__ import annotations


class WorkOrderError(RuntimeError):
    """Base class for every failure the service reports to a caller."""

    code = "WORK_ORDER_ERROR"
    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(WorkOrderError):
    """Unknown order number or log entry id."""

    code = "NOT_FOUND"
    http_status = 404


class ForbiddenError(WorkOrderError):
    """The caller's role may not perform the action."""

    code = "FORBIDDEN"
    http_status = 403


class InvalidStateError(WorkOrderError):
    """The action is not allowed in the order's current status."""

    code = "INVALID_STATE"
    http_status = 409


class ValidationError(WorkOrderError):
    """A required field is missing, blank or out of range."""

    code = "VALIDATION_ERROR"
    http_status = 422


class DuplicateRecordError(WorkOrderError):
    """A record with the same key already exists."""

    code = "DUPLICATE"
    http_status = 409


class StoreError(WorkOrderError):
    """The record store failed underneath the request."""

    code = "STORE_ERROR"
    http_status = 500


__all__ = [
    "WorkOrderError",
    "NotFoundError",
    "ForbiddenError",
    "InvalidStateError",
    "ValidationError",
    "DuplicateRecordError",
    "StoreError",
]
