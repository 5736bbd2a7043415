"""HTTP error types rendered as ``{"ok": false, "error": <code>}``."""

from fastapi import HTTPException, status


class ApiError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "internal_error"

    def __init__(self, error: str | None = None, headers: dict[str, str] | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=error or self.error,
            headers=headers,
        )


class ValidationFailed(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "missing_fields"


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthorized"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class StorageFailed(ApiError):
    error = "storage_error"


class MailFailed(ApiError):
    error = "mail_error"


class AdminNotConfigured(ApiError):
    error = "admin_pin_not_configured"
