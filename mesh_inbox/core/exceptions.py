"""Custom exception classes for the mesh inbox.

Includes:
- Base exception carrying an HTTP status and a stable error code
- Client errors raised by the command normalizer (4xx)
- Backing-store failures (5xx)
"""

from collections.abc import Iterable
from datetime import UTC, datetime


class MeshInboxException(Exception):
    """Base exception for all mesh inbox errors."""

    def __init__(
        self, detail: str, status_code: int = 500, error_code: str = "INTERNAL_ERROR"
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)

    def to_dict(self):
        """Convert exception to dictionary for API response."""
        return {
            "success": False,
            "error": self.detail,
            "error_code": self.error_code,
            "timestamp": self.timestamp,
        }


# =============================================================================
# CLIENT ERRORS
# =============================================================================


class ClientError(MeshInboxException):
    """Request rejected before any operation was attempted."""

    def __init__(self, detail: str, error_code: str = "BAD_REQUEST"):
        super().__init__(detail=detail, status_code=400, error_code=error_code)


class MissingFieldError(ClientError):
    """Raised when a required command field is absent or empty."""

    def __init__(self, field_name: str, aliases: Iterable[str] = ()):
        accepted = " or ".join(aliases)
        detail = f'Missing or invalid "{field_name}"'
        if accepted:
            detail = f"{detail} ({accepted})"
        super().__init__(detail=detail, error_code="MISSING_FIELD")
        self.field_name = field_name


class InvalidFieldError(ClientError):
    """Raised when a field is present but has the wrong shape."""

    def __init__(self, field_name: str, reason: str):
        super().__init__(
            detail=f'Invalid "{field_name}": {reason}', error_code="INVALID_FIELD"
        )
        self.field_name = field_name


class UnsupportedOperationError(ClientError):
    """Raised when a surface carries an operation outside the canonical set."""

    def __init__(self, operation: str | None, supported: Iterable[str]):
        self.operation = operation
        self.supported = list(supported)
        super().__init__(
            detail=f"Unsupported operation: {operation}",
            error_code="UNSUPPORTED_OPERATION",
        )

    def to_dict(self):
        base = super().to_dict()
        base["supported"] = self.supported
        return base


# =============================================================================
# BACKING STORE
# =============================================================================


class StorageError(MeshInboxException):
    """Raised when the backing key-value store fails or times out."""

    def __init__(self, operation: str, original_error: Exception | None = None):
        reason = f": {original_error}" if original_error else ""
        super().__init__(
            detail=f"Storage {operation} failed{reason}",
            status_code=503,
            error_code="STORAGE_UNAVAILABLE",
        )
        self.operation = operation
        self.original_error = original_error
