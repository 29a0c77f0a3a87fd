"""
Storage abstraction layer.

All persistence goes through these interfaces. The backends are picked once
at startup from a ``StorageConfig`` (see ``memehub.storage.factory``) and
handed to the lifecycle coordinator and the API explicitly.

Integration Points:
- RecordStore → MongoDB (durable) or in-memory (development)
- AdminStore → MongoDB or in-memory
- AssetStore → Cloudinary or local filesystem (development)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator

from pydantic import BaseModel

from memehub.core.models import (
    AdminRecord,
    Meme,
    MemeEdit,
    MemeFields,
    MemeQuery,
    MemeUpdate,
)


# =============================================================================
# Record Store
# =============================================================================


class RecordStore(ABC):
    """
    Key-addressed collection of meme records.

    Durable Implementation: MongoDB
    Local Implementation: In-memory dict

    Both implementations must filter, sort and paginate identically.
    """

    @abstractmethod
    async def get(self, meme_id: str) -> Meme | None:
        """Get a meme by ID."""
        pass

    @abstractmethod
    async def list(self, query: MemeQuery | None = None) -> list[Meme]:
        """
        List memes.

        ``search`` matches title or any tag, case-insensitive substring.
        Sorting and then ``offset``/``limit`` are applied after filtering.
        """
        pass

    @abstractmethod
    async def count(self, search: str | None = None) -> int:
        """Count memes matching ``search`` (all memes if None)."""
        pass

    @abstractmethod
    async def create(self, fields: MemeFields) -> Meme:
        """Create a meme; assigns id and createdAt, zeroes counters and flags."""
        pass

    @abstractmethod
    async def create_bulk(self, items: list[MemeFields]) -> list[Meme]:
        """
        Create one meme per item, in order.

        Each item is created on its own; items created before a failure
        stay created.
        """
        pass

    @abstractmethod
    async def update(self, meme_id: str, update: MemeUpdate) -> Meme | None:
        """Partial update. Never touches edit history or counters."""
        pass

    @abstractmethod
    async def apply_edit(self, meme_id: str, edit: MemeEdit) -> Meme | None:
        """
        Apply a community edit atomically.

        Snapshots the current title/tags into a history entry, writes the new
        values, increments ``edited_by_users`` and sets ``last_edited_at``.

        Raises:
            MemeLocked: The meme is locked; nothing is modified.
        """
        pass

    @abstractmethod
    async def delete(self, meme_id: str) -> bool:
        """Delete a meme. True iff it existed."""
        pass

    @abstractmethod
    def iter_image_urls(self) -> AsyncIterator[str]:
        """Yield the image URL of every stored meme."""
        pass

    async def initialize(self) -> None:
        """
        Prepare the backend (indexes, connections).

        Called once at startup.
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the backend."""
        pass


class AdminStore(ABC):
    """Admin accounts, keyed by username."""

    @abstractmethod
    async def get_by_username(self, username: str) -> AdminRecord | None:
        pass

    @abstractmethod
    async def create(self, admin: AdminRecord) -> AdminRecord:
        """Store a new admin. Raises ValueError if the username is taken."""
        pass

    @abstractmethod
    async def count(self) -> int:
        pass

    async def initialize(self) -> None:
        pass


# =============================================================================
# Asset Store
# =============================================================================


@dataclass(frozen=True)
class AssetUpload:
    """Raw image bytes on their way into the asset store."""

    data: bytes
    filename: str = "image"
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class UploadedAsset:
    """A stored asset: its delivery URL and the id used to delete it."""

    url: str
    provider_id: str


class DeleteOutcome(str, Enum):
    """Result of ``AssetStore.delete_by_id``."""

    OK = "ok"
    NOT_FOUND = "not_found"  # Callers treat this as OK (idempotent delete)
    ERROR = "error"


class AssetStore(ABC):
    """
    Binary object storage with public delivery URLs.

    Production Implementation: Cloudinary
    Local Implementation: Filesystem
    """

    @abstractmethod
    async def upload(self, asset: AssetUpload) -> UploadedAsset:
        """
        Store an asset and return where it lives.

        Raises:
            AssetUploadFailed: The asset could not be stored.
        """
        pass

    @abstractmethod
    async def delete_by_id(self, provider_id: str) -> DeleteOutcome:
        """
        Delete an asset by provider id.

        Returns NOT_FOUND when the asset is already gone and ERROR when the
        provider refused the delete.

        Raises:
            AssetDeleteFailed: The provider could not be reached.
        """
        pass

    @abstractmethod
    def provider_id_for(self, url: str) -> str | None:
        """
        Derive the provider id from a delivery URL.

        Returns None if this store does not manage the URL.

        Raises:
            MalformedProviderUrl: The URL looks managed but is unparseable.
        """
        pass

    @abstractmethod
    def list_ids(self, prefix: str = "") -> AsyncIterator[str]:
        """List provider ids with optional prefix."""
        pass

    @property
    def folder(self) -> str:
        """Prefix under which this store places uploads."""
        return ""


# =============================================================================
# Storage Provider (dependency injection container)
# =============================================================================


class StorageProvider(BaseModel):
    """
    Container for all storage backends.

    Built once at app startup by ``create_storage``. Services receive this
    and use the interfaces without knowing the underlying implementation.
    """

    model_config = {"arbitrary_types_allowed": True}

    records: RecordStore
    admins: AdminStore
    assets: AssetStore

    async def initialize(self) -> None:
        await self.records.initialize()
        await self.admins.initialize()

    async def close(self) -> None:
        await self.records.close()


# =============================================================================
# Collection Names
# =============================================================================


class Collections:
    """Collection names used by the durable backend."""

    MEMES = "memes"
    ADMINS = "admins"
