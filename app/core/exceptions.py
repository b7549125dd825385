"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class AuthMissing(UnauthorizedException):
    """No active session; the caller must leave the dashboard."""

    def __init__(self, message: str = "No active session", redirect_to: str = "/auth"):
        """Initialize with the redirect target."""
        super().__init__(message)
        self.redirect_to = redirect_to


class GatewayFailure(AppException):
    """A data gateway call failed."""

    def __init__(
        self,
        message: str,
        table: str,
        reason: Any = None,
        status_code: int = 502,
    ):
        """Initialize with the table and the opaque backend error payload."""
        super().__init__(message, status_code=status_code)
        self.table = table
        self.reason = reason


class FetchFailure(GatewayFailure):
    """A read against the data gateway failed."""


class WriteFailure(GatewayFailure):
    """An insert, update or delete against the data gateway failed."""


class RecordNotFound(WriteFailure):
    """A write targeted a record that does not exist."""

    def __init__(self, table: str, record_id: int):
        """Initialize with 404 status code."""
        super().__init__(
            f"Record {record_id} not found in {table}",
            table=table,
            status_code=404,
        )
        self.record_id = record_id
