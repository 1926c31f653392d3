"""
Configuration module for the listing data-access core.

This module provides centralized configuration management using Pydantic settings.
All configuration values can be overridden via environment variables or .env file.
"""

from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the listing data-access core.

    Attributes:
        SERVICE_NAME: Name used for logger identification
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_JSON: Emit JSON logs instead of console output
        GRAPHQL_ENDPOINT: URL of the remote data gateway
        GRAPHQL_API_KEY: API key sent with every gateway request
        REQUEST_TIMEOUT: Transport timeout for gateway requests in seconds
        SUPABASE_URL: Object storage project URL
        SUPABASE_SERVICE_KEY: Object storage service key
        SUPABASE_JWT_SECRET: Secret used to decode session tokens
        STORAGE_BUCKET: Bucket holding listing images
        STORAGE_ROOT: Root folder of every stored object path
        IMAGE_PREFIX: Folder under the root reserved for listing images
        TEMP_CONTAINER: Container name for images not yet promoted
        MAX_IMAGE_SIZE_BYTES: Upper bound for a single image upload
        ALLOWED_IMAGE_TYPES: Accepted image MIME types
        SIGNED_URL_TTL: Lifetime of retrieval URLs in seconds
        STORAGE_STEP_ATTEMPTS: Attempts per idempotent image saga step
    """

    SERVICE_NAME: str = Field(default="listing-core")

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    LOG_JSON: bool = Field(default=False)

    # Remote data gateway
    GRAPHQL_ENDPOINT: str = Field(
        default="http://localhost:20002/graphql",
        description="URL of the remote data gateway",
    )
    GRAPHQL_API_KEY: str = Field(default="")
    REQUEST_TIMEOUT: float = Field(
        default=10.0,
        gt=0,
        le=60.0,
        description="Timeout for gateway requests in seconds",
    )

    # Object storage
    SUPABASE_URL: str = Field(default="")
    SUPABASE_SERVICE_KEY: str = Field(default="")
    SUPABASE_JWT_SECRET: str = Field(default="")
    STORAGE_BUCKET: str = Field(default="listing-images")
    STORAGE_ROOT: str = Field(default="public")
    IMAGE_PREFIX: str = Field(default="roomimages")
    TEMP_CONTAINER: str = Field(default="temp")

    MAX_IMAGE_SIZE_BYTES: int = Field(default=10 * 1024 * 1024, gt=0)
    ALLOWED_IMAGE_TYPES: List[str] = Field(
        default=[
            "image/jpeg",
            "image/jpg",
            "image/png",
            "image/webp",
            "image/heic",
            "image/heif",
        ]
    )
    SIGNED_URL_TTL: int = Field(default=86400, gt=0)
    STORAGE_STEP_ATTEMPTS: int = Field(default=2, ge=1, le=5)

    # Listing defaults
    DEFAULT_CURRENCY: str = Field(default="MYR", max_length=3)
    DEFAULT_STATE: str = Field(default="Sarawak")
    DEFAULT_NOTICE_PERIOD: int = Field(default=30, ge=0)
    DEFAULT_PAGE_SIZE: int = Field(default=10, ge=1, le=1000)
    OWNER_LISTINGS_LIMIT: int = Field(default=100, ge=1)
    FAVORITES_LIMIT: int = Field(default=100, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("GRAPHQL_ENDPOINT")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """
        Validate that the gateway URL is properly formatted.

        Args:
            value: The URL to validate

        Returns:
            The validated URL without trailing slash

        Raises:
            ValueError: If URL is invalid
        """
        if not value:
            raise ValueError("Gateway URL cannot be empty")

        value = value.rstrip("/")

        if not (value.startswith("http://") or value.startswith("https://")):
            raise ValueError(
                f"Gateway URL must start with http:// or https://, got: {value}"
            )

        return value

    @field_validator("STORAGE_ROOT", "IMAGE_PREFIX", "TEMP_CONTAINER")
    @classmethod
    def strip_slashes(cls, value: str) -> str:
        """Path segments are stored without surrounding slashes."""
        value = value.strip("/")
        if not value:
            raise ValueError("Storage path segment cannot be empty")
        return value


# Global settings instance
settings = Settings()
