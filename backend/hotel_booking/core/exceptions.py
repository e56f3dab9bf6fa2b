"""
Domain errors raised by the eligibility evaluator and capacity allocator.

There are exactly two kinds. The API layer maps each kind to a status code;
nothing below it knows about HTTP.
"""

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


class BookingError(Exception):
    """A booking request was refused. Always terminal for the request."""

    def __init__(self, kind: ErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"<BookingError(kind={self.kind.value}, message={self.message!r})>"


def not_found_error(message: str = "Not found") -> BookingError:
    return BookingError(ErrorKind.NOT_FOUND, message)


def forbidden_error(message: str = "Forbidden") -> BookingError:
    return BookingError(ErrorKind.FORBIDDEN, message)
