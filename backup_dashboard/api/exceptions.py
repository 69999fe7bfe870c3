"""Custom exceptions for FastAPI application."""

from fastapi import HTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
)


class DashboardError(HTTPException):
    """Base exception for dashboard API errors."""
    pass


class AuthenticationRequiredError(DashboardError):
    def __init__(self):
        super().__init__(
            HTTP_401_UNAUTHORIZED,
            "Authentication required",
            headers={"WWW-Authenticate": 'Basic realm="Backup Dashboard"'},
        )


class BackupNotFoundError(DashboardError):
    def __init__(self, artifact_id: str):
        super().__init__(HTTP_404_NOT_FOUND, f"Backup {artifact_id} not found")


class InvalidBackupIdError(DashboardError):
    def __init__(self, artifact_id: str):
        super().__init__(HTTP_400_BAD_REQUEST, f"Invalid backup identifier: {artifact_id}")


class OperationFailedError(DashboardError):
    def __init__(self, label: str):
        super().__init__(HTTP_500_INTERNAL_SERVER_ERROR, f"{label} failed")


class StorageUnavailableError(DashboardError):
    def __init__(self):
        super().__init__(HTTP_503_SERVICE_UNAVAILABLE, "Object storage temporarily unavailable")
