# Overview: Domain error taxonomy shared by services and routes.

"""
Purchase-cycle errors.

Every error a service raises on purpose derives from PurchaseCycleError and
carries the HTTP status the route layer answers with. Anything else that
escapes a service is a bug and surfaces as a 500.

Precondition errors (EmptySelectionError, NoRequestsError, NoValidPricesError)
are raised before any write, so the store is left untouched.
"""

from __future__ import annotations


class PurchaseCycleError(Exception):
    """Base class for all domain errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(PurchaseCycleError, ValueError):
    """Malformed input: empty required field, non-positive quantity, bad price."""


class NotFoundError(PurchaseCycleError, LookupError):
    """A referenced id has no backing row."""

    status_code = 404


class EmptySelectionError(PurchaseCycleError):
    """A bulk operation was asked to work on nothing."""


class NoRequestsError(PurchaseCycleError):
    """A sheet cannot move to comparison without book requests."""


class NoValidPricesError(PurchaseCycleError):
    """Finalization found no book with a positive recorded price."""


class InvalidTransitionError(PurchaseCycleError):
    """Illegal purchase-sheet status transition."""

    status_code = 409


class ConflictError(PurchaseCycleError):
    """409-level business rule conflict (e.g., duplicate email)."""

    status_code = 409


class ImmutableHistoryError(ConflictError):
    """History rows are append-only snapshots."""


class PermissionDeniedError(PurchaseCycleError):
    """The acting profile may not perform this operation."""

    status_code = 403


class StoreError(PurchaseCycleError):
    """
    The persistence layer failed.

    The underlying exception is chained as __cause__; the unit of work has
    already been rolled back when this is raised.
    """

    status_code = 503
