"""
API error type and the JSON envelope shared by every response.

All responses look like ``{"success": bool, "data"?: ..., "message"?: ...}``,
optionally with extra detail keys (``required``, ``limit``, ``amount``...).
"""
from typing import Any

from fastapi import HTTPException, status


class APIError(HTTPException):
    """
    HTTPException carrying a user-facing message and extra response fields.

    Usage:
        raise APIError(403, "Cannot delete system roles")
        raise permission_denied("Access Denied: Insufficient permissions", required="admin.manage_roles")
    """

    def __init__(self, status_code: int, message: str, **extra: Any):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.extra = extra

    def to_content(self) -> dict[str, Any]:
        return error_body(self.message, **self.extra)


def error_body(message: str, **extra: Any) -> dict[str, Any]:
    """Build an error envelope."""
    body: dict[str, Any] = {"success": False, "message": message}
    body.update(extra)
    return body


def authentication_required() -> APIError:
    return APIError(status.HTTP_401_UNAUTHORIZED, "Authentication required")


def permission_denied(message: str, **extra: Any) -> APIError:
    return APIError(status.HTTP_403_FORBIDDEN, message, **extra)


def not_found(message: str) -> APIError:
    return APIError(status.HTTP_404_NOT_FOUND, message)


def validation_error(message: str, **extra: Any) -> APIError:
    return APIError(status.HTTP_400_BAD_REQUEST, message, **extra)
