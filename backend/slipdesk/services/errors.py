# Overview: Error taxonomy shared by the inventory, pricing and slip services.

from __future__ import annotations


class SlipdeskError(Exception):
    """Base for errors that map onto a JSON error response."""

    status_code = 500

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(SlipdeskError):
    """Malformed or missing request fields."""
    status_code = 400


class InvalidLine(ValidationError):
    """A product line that cannot be priced (quantity <= 0, negative base price)."""


class ConflictError(SlipdeskError):
    """Business rule conflict such as a duplicate SKU."""
    status_code = 409


class ProductNotFound(SlipdeskError):
    status_code = 400


class InsufficientStock(SlipdeskError):
    status_code = 400

    def __init__(self, message: str, available: int, details: str | None = None):
        super().__init__(message, details or f"Available: {available}")
        self.available = available


class AlreadyCancelled(SlipdeskError):
    status_code = 400

    def __init__(self, message: str, cancelled_at=None):
        details = None
        if cancelled_at is not None:
            details = f"This slip was cancelled on {cancelled_at.isoformat(sep=' ', timespec='seconds')}"
        super().__init__(message, details)
        self.cancelled_at = cancelled_at


class NotFound(SlipdeskError):
    status_code = 404


class DatabaseUnavailable(SlipdeskError):
    """Persistence layer unreachable or timed out. Safe to retry."""
    status_code = 503
