# core/exceptions.py
"""
Domain error taxonomy shared by the inventory and production services.

Every error is a Django ``ValidationError`` so forms, admin and views keep
handling them the usual way, while callers that need to branch on the kind
of failure can use ``exc.code`` or ``isinstance`` checks.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError


class OperationError(ValidationError):
    """
    Base class for rejected service operations.

    - message: human readable reason (already translated)
    - code:    stable machine code (see ``default_code`` on subclasses)
    - params:  optional structured details for API payloads
    """

    default_code = "invalid"

    def __init__(self, message, code=None, params=None):
        super().__init__(message, code=code or self.default_code, params=params)

    def __str__(self) -> str:
        return str(self.message)


class NotFound(OperationError):
    default_code = "not_found"


class InvalidInput(OperationError):
    default_code = "invalid_input"


class InvalidOperation(OperationError):
    default_code = "invalid_operation"


class InsufficientInventory(OperationError):
    default_code = "insufficient_inventory"


class InvalidStatus(OperationError):
    default_code = "invalid_status"


class LocationValidationError(OperationError):
    """Raised when a receiving/production location cannot be resolved or is inactive."""

    default_code = "validation_error"
