# app/domain/errors.py
"""
Business errors.

Services raise these; the API turns each one into an HTTP response
(see app/api/errors.py) and the bots turn them into a chat reply.
"""


class DomainError(Exception):
    """Base class. ``status_code`` is the HTTP status the API answers with."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(DomainError):
    status_code = 400


class InvalidState(DomainError):
    """The entity is not in a state that allows the operation."""
    status_code = 400


class InvalidTransition(InvalidState):
    def __init__(self, current, requested):
        current = getattr(current, "value", current)
        requested = getattr(requested, "value", requested)
        super().__init__(f"Invalid status transition from {current} to {requested}")
        self.current = current
        self.requested = requested


class NotFound(DomainError):
    status_code = 404


class PermissionDenied(DomainError):
    status_code = 403


class Unauthorized(DomainError):
    status_code = 401
