"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class StorageConfig:
    """
    Which storage backends to build, decided once at process start.

    Passed explicitly to ``create_storage``; nothing downstream reads the
    environment to pick a backend.
    """

    mongodb_uri: str = ""
    mongodb_database: str = "memehub"

    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "memes"

    local_asset_dir: str = "./data/uploads"
    public_asset_url: str = "/uploads"

    @property
    def use_mongodb(self) -> bool:
        return bool(self.mongodb_uri)

    @property
    def use_cloudinary(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 5000
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # ==========================================================================
    # Record store (MongoDB, falls back to in-memory when unset)
    # ==========================================================================

    mongodb_uri: str = ""
    mongodb_database: str = "memehub"

    # ==========================================================================
    # Asset store (Cloudinary, falls back to a local directory when unset)
    # ==========================================================================

    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "memes"

    local_asset_dir: str = "./data/uploads"
    public_asset_url: str = "/uploads"

    # ==========================================================================
    # Uploads
    # ==========================================================================

    max_upload_bytes: int = 10 * 1024 * 1024
    max_bulk_files: int = 50
    bulk_placeholder_title: str = "Untitled Meme"
    bulk_placeholder_tag: str = "meme"

    # ==========================================================================
    # Authentication
    # ==========================================================================

    jwt_secret_key: str = "dev-jwt-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 12

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def storage_config(self) -> StorageConfig:
        """Freeze the storage-related settings into a ``StorageConfig``."""
        return StorageConfig(
            mongodb_uri=self.mongodb_uri,
            mongodb_database=self.mongodb_database,
            cloudinary_cloud_name=self.cloudinary_cloud_name,
            cloudinary_api_key=self.cloudinary_api_key,
            cloudinary_api_secret=self.cloudinary_api_secret,
            cloudinary_folder=self.cloudinary_folder,
            local_asset_dir=self.local_asset_dir,
            public_asset_url=self.public_asset_url,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
