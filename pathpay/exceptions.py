"""Custom exceptions for the PathPay loan calculator."""

from typing import Optional


class PathPayError(Exception):
    """Base exception for all PathPay errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class InvalidInputError(PathPayError, ValueError):
    """Raised when loan parameters violate a precondition of the engine."""

    def __init__(self, message: str, field: Optional[str] = None, value: object = None):
        details = {}
        if field:
            details["field"] = field
            details["value"] = value
        super().__init__(message, details)
        self.field = field


class StorageError(PathPayError):
    """Raised when the history or compare store cannot complete an operation."""
    pass


class CompareListFullError(StorageError):
    """Raised when adding to a compare list that already holds the maximum."""

    def __init__(self, limit: int):
        super().__init__(f"You can only compare up to {limit} items", {"limit": limit})
        self.limit = limit
