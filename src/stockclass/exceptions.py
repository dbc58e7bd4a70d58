"""Custom exception hierarchy for the StockClass package."""

from __future__ import annotations


class StockClassError(Exception):
    """Base class for all StockClass specific errors."""


class PayloadDecodeError(StockClassError):
    """Raised when a student's ``data`` payload cannot be decoded."""


class InvalidStudentNameError(StockClassError):
    """Raised when a batch of student names contains an invalid entry."""

    def __init__(self, message: str, invalid: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.invalid = invalid


class HandleExhaustedError(StockClassError):
    """Raised when no unused account handle could be drawn for a name."""


class StudentNotFoundError(StockClassError):
    """Raised when a student lookup fails within a teacher's scope."""


class InvalidPasswordError(StockClassError):
    """Raised when a replacement password is empty."""
