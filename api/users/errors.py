"""
User service errors.

Each error carries the client-safe message and the HTTP status it maps to.
The app registers one handler that renders them as `{"error": message}`.
"""

from __future__ import annotations

from fastapi import status


class UserServiceError(RuntimeError):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(UserServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(UserServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(UserServiceError):
    status_code = status.HTTP_409_CONFLICT


class StorageFailure(UserServiceError):
    # Never carries store details; the cause is logged where it is raised.
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
