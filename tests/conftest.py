"""
Pytest configuration and shared fixtures for picture-api tests.

This module provides:
- An isolated SQLite database per test
- Local storage in a temporary directory
- Service and API client fixtures wired to both
- Admin token fixtures
- Seeding and inspection helpers for positions
"""

import base64
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator, Dict, List, Optional, Sequence, Tuple

# Settings are read at import time; keep the app away from the working directory
_TEST_ROOT = tempfile.mkdtemp(prefix="picture-api-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_ROOT}/app.db")
os.environ.setdefault("STORAGE_PATH", os.path.join(_TEST_ROOT, "storage"))
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from picture_api.api.dependencies import get_picture_service
from picture_api.core.config import settings
from picture_api.db.models import Picture, Slot
from picture_api.db.session import build_engine, get_session, init_models
from picture_api.main import app
from picture_api.services.picture_service import PictureService
from picture_api.storage.local import LocalStorageBackend


# ============================================================================
# Database fixtures
# ============================================================================

@pytest.fixture
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database with the schema created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", busy_timeout=1.0)
    await init_models(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker:
    """Session factory configured like the application's."""
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


# ============================================================================
# Storage fixtures
# ============================================================================

@pytest.fixture
def test_storage(tmp_path: Path) -> LocalStorageBackend:
    return LocalStorageBackend(base_path=str(tmp_path / "storage"))


# ============================================================================
# Service fixtures
# ============================================================================

@pytest.fixture
async def make_service(session_factory, test_storage):
    """Build PictureService instances, each with its own session.

    Usage:
        service = make_service()                 # local test storage
        service = make_service(storage=mock)     # injected storage
    """
    sessions: List[AsyncSession] = []

    def _make(storage=None) -> PictureService:
        session = session_factory()
        sessions.append(session)
        return PictureService(session, storage or test_storage)

    yield _make

    for session in sessions:
        await session.close()


# ============================================================================
# API Client fixtures
# ============================================================================

@pytest.fixture
async def async_client(session_factory, test_storage) -> AsyncGenerator[AsyncClient, None]:
    """ASGI client with database and storage dependencies overridden."""

    async def override_get_session():
        async with session_factory() as session:
            yield session

    async def override_get_picture_service():
        async with session_factory() as session:
            yield PictureService(session, test_storage)

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_picture_service] = override_get_picture_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Authentication fixtures
# ============================================================================

def make_token(permissions: Sequence[str] = ("picture:write",), expires_in: int = 3600) -> str:
    payload = {
        "sub": "admin-123",
        "permissions": list(permissions),
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}


# ============================================================================
# Test data fixtures
# ============================================================================

# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

PDF_BYTES = (
    b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n"
    b"2 0 obj\n<< /Type /Pages /Kids [] /Count 0 >>\nendobj\n"
    b"trailer\n<< /Root 1 0 R >>\n%%EOF\n"
)


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def pdf_bytes() -> bytes:
    return PDF_BYTES


# ============================================================================
# Utility functions
# ============================================================================

async def seed_pictures(
    session_factory,
    positions: Sequence[Tuple[int, int]],
) -> List[str]:
    """Insert pictures with (gallery_position, startpage_position) pairs.

    updated_at increases with the index, so the i-th picture is the i-th
    oldest. Returns ids in the same order.
    """
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    pictures = [
        Picture(
            title=f"Picture {index}",
            original_path=f"public/gallery/seed-{index}.png",
            gallery_position=gallery,
            startpage_position=startpage,
            updated_at=base + timedelta(minutes=index),
        )
        for index, (gallery, startpage) in enumerate(positions)
    ]
    async with session_factory() as session:
        async with session.begin():
            session.add_all(pictures)
    return [picture.id for picture in pictures]


async def read_positions(session_factory, slot: Slot) -> Dict[str, int]:
    """Map of picture id to its position in `slot` (0 when unranked)."""
    async with session_factory() as session:
        rows = (await session.execute(select(Picture.id, slot.column))).all()
    return {picture_id: position for picture_id, position in rows}


def ranked_values(positions: Dict[str, int]) -> List[int]:
    return sorted(value for value in positions.values() if value > 0)


def assert_gap_free(positions: Dict[str, int], expected_count: Optional[int] = None) -> None:
    """Positive positions must be exactly 1..N."""
    values = ranked_values(positions)
    assert values == list(range(1, len(values) + 1)), f"positions not dense: {values}"
    if expected_count is not None:
        assert len(values) == expected_count
