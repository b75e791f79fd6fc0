# Overview: Domain error taxonomy shared by services and routes.

"""
Every error a service raises on purpose derives from DomainError and carries
the HTTP status the API layer answers with. Anything else reaching a route is
an unexpected fault (500).

None of these are retried internally. Only the concurrency layer
(services/concurrency.py) retries, and only on database lock/version conflicts.
"""


class DomainError(Exception):
    """Base class for recoverable business errors."""
    status_code = 400


class NotFoundError(DomainError):
    """A product, user, or handover id does not resolve."""
    status_code = 404


class InsufficientStockError(DomainError):
    """A stock commit would take on-hand quantity below zero."""
    status_code = 400


class InvalidTransitionError(DomainError):
    """The record is not in a status that allows the requested event."""
    status_code = 409


class ForbiddenError(DomainError):
    """Capability or ownership check failed."""
    status_code = 403


class ValidationError(DomainError, ValueError):
    """Malformed input, rejected before anything is written."""
    status_code = 400


class ConflictError(DomainError, ValueError):
    """Uniqueness conflict (e.g., duplicate email)."""
    status_code = 409
