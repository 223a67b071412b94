"""
Error handling for picture-api.

Every business failure is a ServiceError carrying a stable error code, so
clients can branch on `code` while `message` stays human-readable.
"""
from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    """Standardized error codes for the entire application."""

    # Upload errors (UPLOAD_xxx)
    UPLOAD_FILE_TOO_LARGE = "UPLOAD_001"
    UPLOAD_INVALID_TYPE = "UPLOAD_002"
    UPLOAD_MISSING_FILE = "UPLOAD_003"

    # Picture errors (PICTURE_xxx)
    PICTURE_NOT_FOUND = "PICTURE_001"
    PICTURE_CREATE_FAILED = "PICTURE_002"
    PICTURE_UPDATE_FAILED = "PICTURE_003"
    PICTURE_DELETE_FAILED = "PICTURE_004"

    # Validation errors (VAL_xxx)
    VAL_INVALID_POSITION = "VAL_001"
    VAL_DESCRIPTION_TOO_LONG = "VAL_002"
    VAL_INVALID_TITLE = "VAL_003"
    VAL_EMPTY_ID_LIST = "VAL_004"


class ServiceError(HTTPException):
    """
    Base class for business logic errors.

    Rendered by the exception handler as:

    {
        "success": false,
        "code": "PICTURE_001",
        "message": "Picture not found",
        "details": {"picture_id": "..."}
    }
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status_code,
            detail={
                "code": code.value,
                "message": message,
                "details": details or {}
            }
        )
        self.code = code
        self.message = message
        self.details = details or {}


def validation_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    """Create an input validation error (400 Bad Request)."""
    return ServiceError(status.HTTP_400_BAD_REQUEST, code, message, details)


def upload_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    """Create an upload-related error (413 for size, 415 for type, 400 otherwise)."""
    if code == ErrorCode.UPLOAD_FILE_TOO_LARGE:
        status_code = HTTPStatus.REQUEST_ENTITY_TOO_LARGE
    elif code == ErrorCode.UPLOAD_INVALID_TYPE:
        status_code = HTTPStatus.UNSUPPORTED_MEDIA_TYPE
    else:
        status_code = HTTPStatus.BAD_REQUEST
    return ServiceError(status_code, code, message, details)


def storage_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    """Create a storage/database failure (500). Message must stay generic."""
    return ServiceError(status.HTTP_500_INTERNAL_SERVER_ERROR, code, message, details)


def not_found_error(code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> ServiceError:
    """Create a not-found error (404 Not Found)."""
    return ServiceError(status.HTTP_404_NOT_FOUND, code, message, details)
