"""Typed failures raised by the scoring core and mapped to HTTP responses."""

from typing import Any, Dict


class BirdifyError(Exception):
    status_code = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.details}


class ValidationError(BirdifyError):
    """Caller-correctable input or state problem."""

    status_code = 400


class NotFoundError(BirdifyError):
    status_code = 404


class ConflictError(BirdifyError):
    """Another writer got there first; re-fetch the scorecard and retry."""

    status_code = 409


class TransientStoreError(BirdifyError):
    """The database could not complete the operation; safe to retry."""

    status_code = 503


__all__ = [
    "BirdifyError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "TransientStoreError",
]
