"""
Domain errors raised by the borrowing workflow, reports and catalog.

Each error carries a human-readable message and the HTTP status the API
layer should answer with.
"""

from __future__ import annotations


class LibraryError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LibraryError):
    status_code = 404


class ConflictError(LibraryError):
    status_code = 409


class ForbiddenError(LibraryError):
    status_code = 403
