"""
Services package - Business Logic Layer

Contains all business logic separated from HTTP/API concerns.
"""
from picture_api.services.picture_service import PictureService
from picture_api.services.position_ledger import PositionLedger

__all__ = ["PictureService", "PositionLedger"]
