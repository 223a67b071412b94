"""Request and response models shared by the API and the service layer."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from picture_api.db.models import Slot


class PictureCase(str, Enum):
    """Which listing a client asks for."""
    gallery = "gallery"
    startPage = "startPage"
    none = "none"

    @property
    def slot(self) -> Optional[Slot]:
        if self is PictureCase.gallery:
            return Slot.GALLERY
        if self is PictureCase.startPage:
            return Slot.STARTPAGE
        return None


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


class PictureOut(BaseModel):
    id: str
    title: str
    originalPath: str
    galleryPosition: int
    startpagePosition: int
    description: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class OperationResponse(BaseModel):
    """Body of every mutating endpoint."""
    success: bool
    message: str
    picture: Optional[PictureOut] = None


class BulkDeleteRequest(BaseModel):
    ids: List[str] = Field(default_factory=list)


class BulkDeleteFailure(BaseModel):
    id: str
    code: str
    message: str


class BulkDeleteResponse(BaseModel):
    success: bool
    message: str
    deleted: List[str] = Field(default_factory=list)
    failed: List[BulkDeleteFailure] = Field(default_factory=list)
