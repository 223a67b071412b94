"""
Admin endpoints for creating, updating and deleting pictures.

Router handles HTTP concerns (multipart parsing, MIME sniffing, response
shape); PictureService handles positions, storage and transactions. Every
route requires an authenticated admin token.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from picture_api.api.dependencies import (
    AuthContext,
    get_picture_service,
    require_admin,
    validate_upload_file,
    verify_content_length,
)
from picture_api.api.v1.metrics import record_operation
from picture_api.core.errors import ServiceError
from picture_api.core.logging_config import get_logger
from picture_api.schemas import BulkDeleteRequest, BulkDeleteResponse, OperationResponse
from picture_api.services.picture_service import PictureService


logger = get_logger(__name__)
router = APIRouter(
    prefix="/api/v1/admin",
    tags=["admin"],
    dependencies=[Depends(verify_content_length)],
)


@router.post("/picture", status_code=status.HTTP_201_CREATED, response_model=OperationResponse)
async def create_picture(
    title: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    galleryPosition: Optional[int] = Form(None),
    startpagePosition: Optional[int] = Form(None),
    description: Optional[str] = Form(None),
    auth: AuthContext = Depends(require_admin),
    service: PictureService = Depends(get_picture_service),
):
    """Create a picture entry from multipart form data.

    `title` and `file` (PNG, JPEG or PDF) are required. Positions of 0 or
    omitted leave the picture out of that ranking.
    """
    logger.info(
        "picture_create_requested",
        user_id=auth.user_id,
        filename=file.filename if file else None,
        gallery_position=galleryPosition,
        startpage_position=startpagePosition,
    )

    try:
        mime_type = await validate_upload_file(file) if file else None
        picture = await service.create_picture(
            title=title,
            file=file.file if file else None,
            mime_type=mime_type,
            gallery_position=galleryPosition,
            startpage_position=startpagePosition,
            description=description,
        )
    except ServiceError:
        record_operation("create", success=False)
        raise

    record_operation("create", success=True)
    return {"success": True, "message": "Picture created successfully", "picture": picture}


@router.patch("/picture/{picture_id}", response_model=OperationResponse)
@router.post("/picture/{picture_id}", response_model=OperationResponse)
async def update_picture(
    picture_id: str,
    title: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    galleryPosition: Optional[int] = Form(None),
    startpagePosition: Optional[int] = Form(None),
    description: Optional[str] = Form(None),
    auth: AuthContext = Depends(require_admin),
    service: PictureService = Depends(get_picture_service),
):
    """Update a picture; only the supplied fields are applied."""
    logger.info(
        "picture_update_requested",
        user_id=auth.user_id,
        picture_id=picture_id,
        file_supplied=file is not None,
        gallery_position=galleryPosition,
        startpage_position=startpagePosition,
    )

    try:
        mime_type = await validate_upload_file(file) if file else None
        picture = await service.update_picture(
            picture_id,
            title=title,
            file=file.file if file else None,
            mime_type=mime_type,
            gallery_position=galleryPosition,
            startpage_position=startpagePosition,
            description=description,
        )
    except ServiceError:
        record_operation("update", success=False)
        raise

    record_operation("update", success=True)
    return {"success": True, "message": "Picture updated successfully", "picture": picture}


@router.delete("/picture/{picture_id}", response_model=OperationResponse)
async def delete_picture(
    picture_id: str,
    auth: AuthContext = Depends(require_admin),
    service: PictureService = Depends(get_picture_service),
):
    """Delete a picture, its file, and its place in both rankings."""
    logger.info("picture_delete_requested", user_id=auth.user_id, picture_id=picture_id)

    try:
        await service.delete_picture(picture_id)
    except ServiceError:
        record_operation("delete", success=False)
        raise

    record_operation("delete", success=True)
    return {"success": True, "message": "Picture deleted successfully."}


@router.delete("/pictures", response_model=BulkDeleteResponse)
@router.post("/pictures/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_pictures(
    body: BulkDeleteRequest,
    auth: AuthContext = Depends(require_admin),
    service: PictureService = Depends(get_picture_service),
):
    """Delete several pictures; each id succeeds or fails on its own.

    The response lists the deleted ids and, for each failed id, the error
    code and message. `success` is true only when every id was deleted.
    """
    logger.info("picture_bulk_delete_requested", user_id=auth.user_id, count=len(body.ids))

    result = await service.bulk_delete(body.ids)
    for _ in result["deleted"]:
        record_operation("delete", success=True)
    for _ in result["failed"]:
        record_operation("delete", success=False)

    if result["failed"]:
        message = f"{len(result['deleted'])} of {len(result['deleted']) + len(result['failed'])} pictures deleted"
    else:
        message = "Pictures deleted successfully"

    return {
        "success": not result["failed"],
        "message": message,
        "deleted": result["deleted"],
        "failed": result["failed"],
    }
