"""Public read endpoints for pictures."""

from typing import List

from fastapi import APIRouter, Depends

from picture_api.api.dependencies import get_picture_service
from picture_api.core.logging_config import get_logger
from picture_api.schemas import PictureCase, PictureOut, SortOrder
from picture_api.services.picture_service import PictureService


logger = get_logger(__name__)
router = APIRouter(prefix="/api/v1", tags=["pictures"])


@router.get("/pictures", response_model=List[PictureOut])
@router.get("/pictures/{case}", response_model=List[PictureOut])
@router.get("/pictures/{case}/{sort}", response_model=List[PictureOut])
async def list_pictures(
    case: PictureCase = PictureCase.none,
    sort: SortOrder = SortOrder.desc,
    service: PictureService = Depends(get_picture_service),
):
    """List pictures for a use case.

    - gallery: pictures with a gallery position, ordered by it
    - startPage: pictures with a start page position, ordered by it
    - none: all pictures, ordered by last update

    `originalPath` is returned as a public URL.
    """
    pictures = await service.list_pictures(case, sort)
    logger.info("pictures_returned", case=case.value, sort=sort.value, count=len(pictures))
    return pictures


@router.get("/picture/{picture_id}", response_model=PictureOut)
async def get_picture(
    picture_id: str,
    service: PictureService = Depends(get_picture_service),
):
    """Get a single picture by id."""
    return await service.get_picture(picture_id)
