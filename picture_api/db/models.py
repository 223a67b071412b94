"""SQLAlchemy models for the application."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import String, Integer, DateTime, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, InstrumentedAttribute
from sqlalchemy.sql import func

from picture_api.core.config import settings
from picture_api.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Picture(Base):
    """A picture entry with its two independent display positions.

    A position of 0 means the picture is not part of that ranking.
    """
    __tablename__ = "pictures"
    __table_args__ = (
        CheckConstraint("gallery_position >= 0", name="ck_pictures_gallery_position"),
        CheckConstraint("startpage_position >= 0", name="ck_pictures_startpage_position"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    original_path: Mapped[str] = mapped_column(String(1000), nullable=False)

    gallery_position: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    startpage_position: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=lambda: settings.DEFAULT_DESCRIPTION,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        nullable=False
    )
    # Set explicitly so listing order does not depend on the database clock
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
        index=True,
    )

    def to_dict(self, url: str) -> dict[str, Any]:
        """Serialize for API responses, with the storage ref resolved to `url`."""
        return {
            "id": self.id,
            "title": self.title,
            "originalPath": url,
            "galleryPosition": self.gallery_position,
            "startpagePosition": self.startpage_position,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Slot(str, Enum):
    """The two rankings a picture can take part in."""

    GALLERY = "gallery"
    STARTPAGE = "startPage"

    @property
    def column(self) -> InstrumentedAttribute[int]:
        """Mapped column holding this ranking."""
        if self is Slot.GALLERY:
            return Picture.gallery_position
        return Picture.startpage_position

    @property
    def field_name(self) -> str:
        """Name of the field in API payloads."""
        if self is Slot.GALLERY:
            return "galleryPosition"
        return "startpagePosition"

    def read(self, picture: Picture) -> int:
        if self is Slot.GALLERY:
            return picture.gallery_position or 0
        return picture.startpage_position or 0

    def write(self, picture: Picture, value: int) -> None:
        if self is Slot.GALLERY:
            picture.gallery_position = value
        else:
            picture.startpage_position = value
