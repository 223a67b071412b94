"""Health and monitoring API endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from picture_api.core.config import settings
from picture_api.core.logging_config import get_logger
from picture_api.db.models import Slot
from picture_api.db.session import get_session
from picture_api.repositories.picture_repository import PictureRepository


logger = get_logger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/")
async def health_check():
    """Basic liveness check for load balancers."""
    return {
        "status": "healthy",
        "service": settings.SERVICE_NAME,
        "version": settings.VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/stats")
async def get_statistics(session: AsyncSession = Depends(get_session)):
    """Database connectivity plus picture counts per ranking."""
    repository = PictureRepository(session)

    try:
        async with session.begin():
            await session.execute(text("SELECT 1"))
            stats = {
                "total": await repository.count_all(),
                "gallery": await repository.count_ranked(Slot.GALLERY),
                "start_page": await repository.count_ranked(Slot.STARTPAGE),
            }
        database = "healthy"
    except Exception as e:
        logger.warning("health_database_check_failed", error_type=type(e).__name__, error=str(e))
        stats = None
        database = "down"

    return {
        "status": "healthy" if database == "healthy" else "degraded",
        "database": database,
        "storage_backend": settings.STORAGE_BACKEND,
        "pictures": stats,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
