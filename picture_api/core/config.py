"""Application configuration using Pydantic Settings."""

import os
import re
from typing import List, Literal, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_BUCKET_NAME = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
_IP_ADDRESS = re.compile(r"^\d+\.\d+\.\d+\.\d+$")


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Service Identity
    SERVICE_NAME: str = "picture-api"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging Configuration
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True    # JSON logs (prod) vs pretty console (dev)
    DEBUG: bool = False      # Enable debug mode features

    # Database
    DATABASE_URL: str = f"sqlite+aiosqlite:///{os.path.join(os.getcwd(), 'pictures.db')}"
    DATABASE_BUSY_TIMEOUT: float = 5.0  # seconds a SQLite writer waits for the lock

    # Storage Backend Configuration
    STORAGE_BACKEND: Literal["local", "s3"] = "local"
    STORAGE_PATH: str = os.path.join(os.getcwd(), "storage")
    PICTURE_DIRECTORY: str = "public/gallery"

    # S3 Storage Configuration
    AWS_REGION: str = "eu-west-1"
    AWS_S3_BUCKET_NAME: str = "picture-api-dev"
    AWS_ENDPOINT_URL: Optional[str] = None  # For MinIO or S3-compatible services
    S3_URL_EXPIRES_IN: int = 3600

    # Security - HS256 bearer tokens issued by the admin login service
    JWT_SECRET_KEY: str = "change-this-in-production"
    JWT_ALGORITHM: str = "HS256"
    ADMIN_PERMISSION: str = "picture:write"

    # Upload Constraints
    MAX_UPLOAD_SIZE_MB: int = 10
    ALLOWED_MIME_TYPES: List[str] = ["image/png", "image/jpeg", "application/pdf"]

    # Picture fields
    TITLE_MAX_LENGTH: int = 255
    DESCRIPTION_MAX_LENGTH: int = 500
    DEFAULT_DESCRIPTION: str = "Bildbeschreibung derzeit nicht verfügbar."

    @field_validator('AWS_S3_BUCKET_NAME')
    @classmethod
    def validate_s3_bucket_name(cls, v: str) -> str:
        """AWS bucket naming rules; empty is allowed for the local backend."""
        if not v:
            return v
        if not _BUCKET_NAME.match(v) or '..' in v or _IP_ADDRESS.match(v):
            raise ValueError(
                f"Invalid S3 bucket name '{v}': use 3-63 lowercase letters, digits, "
                "hyphens or single dots, starting and ending with a letter or digit"
            )
        return v

    @field_validator('AWS_ENDPOINT_URL')
    @classmethod
    def validate_endpoint_url(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"AWS_ENDPOINT_URL must start with http:// or https://, got '{v}'")
        return v.rstrip('/')

    @field_validator('PICTURE_DIRECTORY')
    @classmethod
    def validate_picture_directory(cls, v: str) -> str:
        """Relative path inside the blob store, no '..' segments."""
        v = v.strip().strip('/')
        if not v:
            raise ValueError("PICTURE_DIRECTORY cannot be empty")
        if '..' in v.split('/'):
            raise ValueError("PICTURE_DIRECTORY cannot contain '..' segments")
        return v

    @model_validator(mode='after')
    def validate_s3_configuration(self):
        if self.STORAGE_BACKEND == "s3":
            missing = [name for name in ("AWS_S3_BUCKET_NAME", "AWS_REGION") if not getattr(self, name)]
            if missing:
                raise ValueError(f"{', '.join(missing)} must be set when STORAGE_BACKEND=s3")
        return self

    @property
    def is_debug_mode(self) -> bool:
        return self.DEBUG or self.LOG_LEVEL.upper() == "DEBUG"

    @property
    def use_json_logs(self) -> bool:
        """JSON logs everywhere except in debug mode with LOG_JSON=false outside production."""
        if self.ENVIRONMENT == "production" or not self.DEBUG:
            return True
        return self.LOG_JSON

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()
