"""FastAPI dependencies for authentication, upload validation and services."""

from fastapi import Depends, HTTPException, status, Header, Request, UploadFile
import magic
from typing import Optional, Callable
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from picture_api.core.config import settings
from picture_api.core.errors import ErrorCode, upload_error
from picture_api.core.logging_config import get_logger
from picture_api.db.session import get_session
from picture_api.services.picture_service import PictureService
from picture_api.storage import get_storage


logger = get_logger(__name__)


# ============================================================================
# Data Models
# ============================================================================


class AuthContext(BaseModel):
    """Authenticated admin context from a validated JWT token."""
    user_id: str
    permissions: list[str] = []
    email: Optional[str] = None
    name: Optional[str] = None


# ============================================================================
# Upload validation
# ============================================================================


async def verify_content_length(content_length: Optional[int] = Header(None)) -> Optional[int]:
    """Reject oversized requests before the body is parsed.

    Raises:
        ServiceError: 413 if Content-Length exceeds MAX_UPLOAD_SIZE_MB
    """
    if content_length and content_length > settings.max_upload_bytes:
        raise upload_error(
            ErrorCode.UPLOAD_FILE_TOO_LARGE,
            f"File too large. Maximum allowed: {settings.MAX_UPLOAD_SIZE_MB}MB",
            details={"max_size_mb": settings.MAX_UPLOAD_SIZE_MB},
        )
    return content_length


async def validate_upload_file(file: UploadFile) -> str:
    """Validate an uploaded file by size and by magic bytes.

    Never trust client-provided MIME types - always verify with magic bytes.

    Returns:
        str: Detected MIME type

    Raises:
        ServiceError: 413 if too large, 415 if the type is not allowed
    """
    if file.size is not None and file.size > settings.max_upload_bytes:
        raise upload_error(
            ErrorCode.UPLOAD_FILE_TOO_LARGE,
            f"File too large. Maximum allowed: {settings.MAX_UPLOAD_SIZE_MB}MB",
            details={"max_size_mb": settings.MAX_UPLOAD_SIZE_MB, "size": file.size},
        )

    header = await file.read(2048)
    mime = magic.from_buffer(header, mime=True)

    # Rewind for the storage backend
    await file.seek(0)

    if mime not in settings.ALLOWED_MIME_TYPES:
        logger.warning(
            "upload_type_rejected",
            filename=file.filename,
            detected_mime=mime,
            declared_content_type=file.content_type,
        )
        raise upload_error(
            ErrorCode.UPLOAD_INVALID_TYPE,
            f"Unsupported file type: {mime}. Allowed: {', '.join(settings.ALLOWED_MIME_TYPES)}",
            details={"detected_mime": mime},
        )

    return mime


# ============================================================================
# Admin authorization
# ============================================================================


def get_auth_context(request: Request) -> AuthContext:
    """Admin context from the claims JWTAuthMiddleware put on request.state.

    Raises:
        HTTPException: 401 without a usable token or with claims missing `sub`
    """
    claims = getattr(request.state, "auth_payload", None)
    if not getattr(request.state, "authenticated", False) or claims is None:
        detail = getattr(request.state, "auth_error", None) or "Not authenticated"
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)

    try:
        return AuthContext(
            user_id=claims["sub"],
            permissions=claims.get("permissions", []),
            email=claims.get("email"),
            name=claims.get("name"),
        )
    except (KeyError, ValidationError) as e:
        logger.warning("invalid_token_claims", error=str(e), claim_names=sorted(claims))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")


def require_permission(permission: str) -> Callable[..., AuthContext]:
    """Dependency that lets the request through only if the token grants `permission`."""

    def _check_permission(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if permission not in auth.permissions:
            logger.warning("permission_denied", user_id=auth.user_id, required_permission=permission)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission '{permission}' required",
            )
        return auth

    return _check_permission


require_admin = require_permission(settings.ADMIN_PERMISSION)


# ============================================================================
# Services
# ============================================================================


def get_picture_service(session: AsyncSession = Depends(get_session)) -> PictureService:
    """PictureService bound to the request's session and the configured storage."""
    return PictureService(session, get_storage())
