# Overview: Domain error taxonomy shared by services and routes.

"""
Ordering error taxonomy.

Services raise these; blueprints translate them to JSON responses with
the attached status code. Messages are human-readable and name the rule
that was broken, so callers never need to inspect internal state.
"""

from __future__ import annotations


class OrderingError(Exception):
    """Base class for all domain errors."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(OrderingError):
    """Referenced entity (retailer, product, order, delivery) is absent."""
    status_code = 404


class PreconditionFailedError(OrderingError):
    """
    Business-rule violation: inactive entity, insufficient stock, credit
    exceeded, invalid status transition, non-cancellable order.
    """
    status_code = 412


class ConflictError(OrderingError):
    """Uniqueness violation (e.g. duplicate order_number)."""
    status_code = 409


class InternalError(OrderingError):
    """Underlying store failure. Never carries storage internals."""
    status_code = 500
