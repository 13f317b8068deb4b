"""Application error taxonomy mapped to HTTP responses in main.py."""

from typing import Optional


class AppError(Exception):
    """Base class for errors that carry their own HTTP status."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.error)
        self.message = message or self.error

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message}


class ValidationError(AppError):
    """Malformed or out-of-range client input, with per-field details."""

    status_code = 400
    error = "Validation failed"

    def __init__(self, details: list[dict], message: Optional[str] = None):
        super().__init__(message)
        self.details = details

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "details": self.details}


class NotFoundError(AppError):
    status_code = 404
    error = "Resource not found"


class PersistenceError(AppError):
    """Storage failure; the client only ever sees the generic message."""

    status_code = 500
    error = "Internal server error"


class RateLimitError(AppError):
    status_code = 429
    error = "Too many requests from this IP, please try again later."
