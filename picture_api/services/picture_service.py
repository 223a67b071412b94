"""
Picture Service Layer - Business Logic Orchestration

Every mutating operation is one unit of work: position shifts, the picture
row and the storage reference commit together or roll back together. Blob
files are written inside the unit of work and cleaned up if it fails; old
blobs are deleted only after a successful commit, and a failure there is
logged instead of failing the request.

Does NOT know about:
- HTTP status codes (raises ServiceError, the API layer renders it)
- Multipart parsing, MIME sniffing or authentication
"""
from typing import Any, BinaryIO, Dict, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from picture_api.core.config import settings
from picture_api.core.errors import (
    ErrorCode,
    ServiceError,
    not_found_error,
    storage_error,
    validation_error,
)
from picture_api.core.logging_config import get_logger
from picture_api.db.models import Picture, Slot
from picture_api.repositories.picture_repository import PictureRepository
from picture_api.schemas import PictureCase, SortOrder
from picture_api.services.position_ledger import PositionLedger
from picture_api.storage.protocol import StorageBackend

logger = get_logger(__name__)

FILE_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "application/pdf": ".pdf",
}


class PictureService:
    """
    Core service for picture management.

    Responsibilities:
    - Validate field values
    - Keep gallery and start page positions consistent via PositionLedger
    - Coordinate database and blob store inside one transaction
    """

    def __init__(self, session: AsyncSession, storage: StorageBackend):
        self.session = session
        self.storage = storage
        self.repository = PictureRepository(session)
        self.ledger = PositionLedger(self.repository)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_pictures(
        self,
        case: PictureCase = PictureCase.none,
        sort: SortOrder = SortOrder.desc,
    ) -> List[Dict[str, Any]]:
        """List pictures for a use case, with storage refs resolved to URLs.

        gallery / startPage only return pictures ranked in that slot, ordered
        by position; none returns everything ordered by last update.
        """
        descending = sort is SortOrder.desc
        async with self.session.begin():
            if case.slot is not None:
                pictures = await self.repository.list_ranked(case.slot, descending=descending)
            else:
                pictures = await self.repository.list_all(descending=descending)

        result = []
        for picture in pictures:
            result.append(await self._serialize(picture))

        logger.debug("pictures_listed", case=case.value, sort=sort.value, count=len(result))
        return result

    async def get_picture(self, picture_id: str) -> Dict[str, Any]:
        async with self.session.begin():
            picture = await self.repository.get(picture_id)
        if picture is None:
            raise self._not_found(picture_id)
        return await self._serialize(picture)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_picture(
        self,
        title: Optional[str],
        file: Optional[BinaryIO],
        mime_type: Optional[str],
        gallery_position: Optional[int] = None,
        startpage_position: Optional[int] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a picture, storing its file and taking the requested positions.

        Positions of None or 0 leave the picture unranked in that slot.

        Raises:
            ServiceError: VAL_xxx on bad input, PICTURE_CREATE_FAILED on
                database or storage failure (nothing is committed)
        """
        if title is None or not title.strip():
            raise validation_error(ErrorCode.VAL_INVALID_TITLE, "The title field is required.")
        if file is None:
            raise validation_error(ErrorCode.UPLOAD_MISSING_FILE, "The file field is required.")
        self._validate_fields(title, description, gallery_position, startpage_position)

        stored_ref: Optional[str] = None
        try:
            async with self.session.begin():
                fields: Dict[str, Any] = {"title": title.strip()}
                if description is not None:
                    fields["description"] = description
                picture = Picture(**fields)

                await self.ledger.place(picture, Slot.STARTPAGE, startpage_position)
                await self.ledger.place(picture, Slot.GALLERY, gallery_position)

                stored_ref = await self.storage.save(
                    file, settings.PICTURE_DIRECTORY, self._new_filename(mime_type)
                )
                picture.original_path = stored_ref
                picture = await self.repository.save(picture)

        except ServiceError:
            await self._discard_blob(stored_ref, reason="create_rolled_back")
            raise
        except Exception as exc:
            logger.error(
                "picture_create_failed",
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            await self._discard_blob(stored_ref, reason="create_rolled_back")
            raise storage_error(
                ErrorCode.PICTURE_CREATE_FAILED,
                "Picture could not be created.",
            )

        logger.info(
            "picture_created",
            picture_id=picture.id,
            gallery_position=picture.gallery_position,
            startpage_position=picture.startpage_position,
            ref=picture.original_path,
        )
        return await self._serialize(picture)

    async def update_picture(
        self,
        picture_id: str,
        title: Optional[str] = None,
        file: Optional[BinaryIO] = None,
        mime_type: Optional[str] = None,
        gallery_position: Optional[int] = None,
        startpage_position: Optional[int] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Apply only the supplied fields to an existing picture.

        A supplied position moves the picture within that ranking; None or 0
        leaves its position untouched. A new file replaces the stored one and
        the old blob is deleted after commit.

        Raises:
            ServiceError: PICTURE_NOT_FOUND, VAL_xxx, or PICTURE_UPDATE_FAILED
        """
        if title is not None and not title.strip():
            raise validation_error(ErrorCode.VAL_INVALID_TITLE, "The title field must not be empty.")
        self._validate_fields(title, description, gallery_position, startpage_position)

        new_ref: Optional[str] = None
        old_ref: Optional[str] = None
        try:
            async with self.session.begin():
                picture = await self.repository.get(picture_id)
                if picture is None:
                    raise self._not_found(picture_id)

                if title is not None:
                    picture.title = title.strip()
                if description is not None:
                    picture.description = description

                await self.ledger.place(picture, Slot.STARTPAGE, startpage_position)
                await self.ledger.place(picture, Slot.GALLERY, gallery_position)

                if file is not None:
                    new_ref = await self.storage.save(
                        file, settings.PICTURE_DIRECTORY, self._new_filename(mime_type)
                    )
                    old_ref = picture.original_path
                    picture.original_path = new_ref

                picture = await self.repository.save(picture)

        except ServiceError:
            await self._discard_blob(new_ref, reason="update_rolled_back")
            raise
        except Exception as exc:
            logger.error(
                "picture_update_failed",
                picture_id=picture_id,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            await self._discard_blob(new_ref, reason="update_rolled_back")
            raise storage_error(
                ErrorCode.PICTURE_UPDATE_FAILED,
                "Picture could not be updated.",
                details={"picture_id": picture_id},
            )

        if old_ref and old_ref != new_ref:
            await self._discard_blob(old_ref, reason="replaced")

        logger.info(
            "picture_updated",
            picture_id=picture.id,
            gallery_position=picture.gallery_position,
            startpage_position=picture.startpage_position,
            file_replaced=new_ref is not None,
        )
        return await self._serialize(picture)

    async def delete_picture(self, picture_id: str) -> None:
        """Delete a picture and close the gaps it leaves in both rankings.

        Positions are vacated before the row is removed, in the same
        transaction. The blob is deleted after commit.

        Raises:
            ServiceError: PICTURE_NOT_FOUND or PICTURE_DELETE_FAILED
        """
        try:
            async with self.session.begin():
                picture = await self.repository.get(picture_id)
                if picture is None:
                    raise self._not_found(picture_id)

                ref = picture.original_path
                await self.ledger.vacate(picture, Slot.STARTPAGE)
                await self.ledger.vacate(picture, Slot.GALLERY)
                await self.repository.delete(picture_id)

        except ServiceError:
            raise
        except Exception as exc:
            logger.error(
                "picture_delete_failed",
                picture_id=picture_id,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            raise storage_error(
                ErrorCode.PICTURE_DELETE_FAILED,
                "An error occurred while deleting the picture.",
                details={"picture_id": picture_id},
            )

        await self._discard_blob(ref, reason="deleted")
        logger.info("picture_deleted", picture_id=picture_id)

    async def bulk_delete(self, picture_ids: Sequence[str]) -> Dict[str, Any]:
        """Delete several pictures, each in its own transaction.

        A failing id does not stop the others; earlier deletions stay
        committed. Duplicate ids are deleted once.

        Returns:
            {"deleted": [ids], "failed": [{"id", "code", "message"}]}
        """
        if not picture_ids:
            raise validation_error(ErrorCode.VAL_EMPTY_ID_LIST, "No picture IDs provided")

        deleted: List[str] = []
        failed: List[Dict[str, str]] = []
        for picture_id in dict.fromkeys(picture_ids):
            try:
                await self.delete_picture(picture_id)
                deleted.append(picture_id)
            except ServiceError as exc:
                failed.append({"id": picture_id, "code": exc.code.value, "message": exc.message})

        log = logger.warning if failed else logger.info
        log("pictures_bulk_deleted", requested=len(picture_ids), deleted=len(deleted), failed=len(failed))
        return {"deleted": deleted, "failed": failed}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_fields(
        title: Optional[str],
        description: Optional[str],
        gallery_position: Optional[int],
        startpage_position: Optional[int],
    ) -> None:
        if title is not None and len(title.strip()) > settings.TITLE_MAX_LENGTH:
            raise validation_error(
                ErrorCode.VAL_INVALID_TITLE,
                f"The title may not be greater than {settings.TITLE_MAX_LENGTH} characters.",
            )
        if description is not None and len(description) > settings.DESCRIPTION_MAX_LENGTH:
            raise validation_error(
                ErrorCode.VAL_DESCRIPTION_TOO_LONG,
                f"The description may not be greater than {settings.DESCRIPTION_MAX_LENGTH} characters.",
                details={"max_length": settings.DESCRIPTION_MAX_LENGTH, "length": len(description)},
            )
        for slot, value in ((Slot.GALLERY, gallery_position), (Slot.STARTPAGE, startpage_position)):
            if value is not None and value < 0:
                raise validation_error(
                    ErrorCode.VAL_INVALID_POSITION,
                    f"The {slot.field_name} must be at least 0.",
                    details={"field": slot.field_name, "value": value},
                )

    @staticmethod
    def _new_filename(mime_type: Optional[str]) -> str:
        return f"{uuid4().hex}{FILE_EXTENSIONS.get(mime_type or '', '')}"

    @staticmethod
    def _not_found(picture_id: str) -> ServiceError:
        return not_found_error(
            ErrorCode.PICTURE_NOT_FOUND,
            "Picture not found.",
            details={"picture_id": picture_id},
        )

    async def _discard_blob(self, ref: Optional[str], reason: str) -> None:
        """Delete a blob; failures leave an orphaned file and are only logged."""
        if not ref:
            return
        try:
            await self.storage.delete(ref)
        except Exception as exc:
            logger.warning(
                "blob_delete_failed",
                ref=ref,
                reason=reason,
                error_type=type(exc).__name__,
                error=str(exc),
            )

    async def _serialize(self, picture: Picture) -> Dict[str, Any]:
        return picture.to_dict(await self.storage.get_url(picture.original_path))
