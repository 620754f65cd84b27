"""
Error taxonomy shared by every service.

Each error carries a machine-readable code and the HTTP status the API layer
renders it with.
"""
from typing import Any, Dict, Optional


class LatticeError(Exception):
    """Base class for all engine errors."""
    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class ValidationError(LatticeError):
    """Malformed input on a management operation (empty key, bad effect, ...)."""
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(LatticeError):
    """A referenced role, context, permission or policy does not exist."""
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found" + (f" with id: {identifier}" if identifier else "")
        super().__init__(message, {"resource": resource, "id": identifier})


class ForbiddenError(LatticeError):
    """The acting user lacks a permission a management operation requires."""
    code = "FORBIDDEN"
    status_code = 403


class ConflictError(LatticeError):
    code = "CONFLICT"
    status_code = 409


class StorageError(LatticeError):
    """Any persistence failure."""
    code = "STORAGE_ERROR"
    status_code = 500


class ConditionEvaluationError(LatticeError):
    """An ABAC condition could not be parsed or evaluated."""
    code = "CONDITION_ERROR"
    status_code = 422
