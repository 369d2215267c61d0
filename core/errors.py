"""
Application error taxonomy.

Business-rule violations are raised as typed errors where they are detected
and translated into HTTP responses by the handlers registered in ``main.py``.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base class for errors that map to a client-facing response."""

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None, errors: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors


class ValidationError(AppError):
    status_code = 400


class ForbiddenError(AppError):
    status_code = 403

    def __init__(self, message: str = "Forbidden", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class InternalError(AppError):
    status_code = 500

    def __init__(self, message: str = "Internal server error", **kwargs):
        super().__init__(message, **kwargs)


class ServiceUnavailableError(AppError):
    status_code = 503
