"""Application error taxonomy.

Each error carries the HTTP status the API answers with; ``main`` registers a
single handler for ``AppError`` that renders ``{"error": {"message", "status"}}``.
"""
from typing import Any


class AppError(Exception):
    """Base class; an unmapped ``AppError`` is a server error."""

    status_code = 500

    def __init__(self, message: Any = "Internal Server Error") -> None:
        super().__init__(message)
        self.message = message


class MalformedRequestError(AppError):
    """Empty update payload, unknown field or filter, failed validation."""

    status_code = 400


class ReferentialError(AppError):
    """A write referenced a row that does not exist (foreign-key violation)."""

    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class UnauthorizedError(AppError):
    status_code = 401

    def __init__(self, message: Any = "Unauthorized") -> None:
        super().__init__(message)
