"""
Local storage implementations for development.

In-memory record/admin stores and a filesystem asset store that work
without any external services. Records do not survive a restart.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import uuid
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Callable

from memehub.core.errors import MalformedProviderUrl, MemeLocked
from memehub.core.models import (
    AdminRecord,
    EditHistoryEntry,
    Meme,
    MemeEdit,
    MemeFields,
    MemeQuery,
    MemeUpdate,
    SortBy,
)
from memehub.core.utils import generate_id, utc_now
from memehub.storage.base import (
    AdminStore,
    AssetStore,
    AssetUpload,
    DeleteOutcome,
    RecordStore,
    UploadedAsset,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Shared list semantics
# =============================================================================


def matches_search(meme: Meme, search: str | None) -> bool:
    """Case-insensitive substring match on the title or any tag."""
    if not search:
        return True
    needle = search.lower()
    return needle in meme.title.lower() or any(needle in tag.lower() for tag in meme.tags)


def sort_memes(memes: list[Meme], sort_by: SortBy) -> list[Meme]:
    """
    Order memes the way the MongoDB backend's sort specs do.

    Sorts are stable, so applying the keys from least to most significant
    yields the compound ordering; ``id`` ascending is the final tie-break.
    """
    ordered = sorted(memes, key=lambda m: m.id)
    ordered.sort(key=lambda m: m.created_at, reverse=True)
    if sort_by == SortBy.POPULAR:
        ordered.sort(key=lambda m: m.edited_by_users, reverse=True)
    elif sort_by == SortBy.FEATURED:
        ordered.sort(key=lambda m: m.is_featured, reverse=True)
    return ordered


# =============================================================================
# In-Memory Record Store
# =============================================================================


class InMemoryRecordStore(RecordStore):
    """
    Dict-backed meme store for development.

    Every mutation runs under one lock so concurrent requests cannot corrupt
    the map, and each ``apply_edit`` is a single critical section. Copies
    are returned so callers never hold a reference to stored state.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._memes: dict[str, Meme] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, meme_id: str) -> Meme | None:
        meme = self._memes.get(meme_id)
        return meme.model_copy(deep=True) if meme else None

    async def list(self, query: MemeQuery | None = None) -> list[Meme]:
        query = query or MemeQuery()
        results = [m for m in self._memes.values() if matches_search(m, query.search)]
        results = sort_memes(results, query.sort_by)
        page = results[query.offset:query.offset + query.limit]
        return [m.model_copy(deep=True) for m in page]

    async def count(self, search: str | None = None) -> int:
        return sum(1 for m in self._memes.values() if matches_search(m, search))

    async def create(self, fields: MemeFields) -> Meme:
        async with self._lock:
            return self._insert(fields)

    async def create_bulk(self, items: list[MemeFields]) -> list[Meme]:
        created = []
        for fields in items:
            async with self._lock:
                created.append(self._insert(fields))
        return created

    def _insert(self, fields: MemeFields) -> Meme:
        meme = Meme(
            title=fields.title,
            tags=list(fields.tags),
            image_url=fields.image_url,
            created_at=self._clock(),
        )
        while meme.id in self._memes:
            meme.id = generate_id()
        self._memes[meme.id] = meme
        return meme.model_copy(deep=True)

    async def update(self, meme_id: str, update: MemeUpdate) -> Meme | None:
        async with self._lock:
            meme = self._memes.get(meme_id)
            if meme is None:
                return None
            changed = meme.model_copy(update=update.changes(), deep=True)
            self._memes[meme_id] = changed
            return changed.model_copy(deep=True)

    async def apply_edit(self, meme_id: str, edit: MemeEdit) -> Meme | None:
        async with self._lock:
            meme = self._memes.get(meme_id)
            if meme is None:
                return None
            if meme.is_locked:
                raise MemeLocked(meme_id)

            now = self._clock()
            entry = EditHistoryEntry(
                previous_name=meme.title,
                previous_tags=list(meme.tags),
                edited_at=now,
            )
            edited = meme.model_copy(
                update={
                    "title": edit.title,
                    "tags": list(edit.tags),
                    "edited_by_users": meme.edited_by_users + 1,
                    "last_edited_at": now,
                    "edit_history": [*meme.edit_history, entry],
                },
                deep=True,
            )
            self._memes[meme_id] = edited
            return edited.model_copy(deep=True)

    async def delete(self, meme_id: str) -> bool:
        async with self._lock:
            return self._memes.pop(meme_id, None) is not None

    async def iter_image_urls(self) -> AsyncIterator[str]:
        for meme in list(self._memes.values()):
            yield meme.image_url


# =============================================================================
# In-Memory Admin Store
# =============================================================================


class InMemoryAdminStore(AdminStore):
    """Admin accounts held in a dict keyed by username."""

    def __init__(self):
        self._admins: dict[str, AdminRecord] = {}
        self._lock = asyncio.Lock()

    async def get_by_username(self, username: str) -> AdminRecord | None:
        return self._admins.get(username)

    async def create(self, admin: AdminRecord) -> AdminRecord:
        async with self._lock:
            if admin.username in self._admins:
                raise ValueError(f"Username already exists: {admin.username}")
            self._admins[admin.username] = admin
        return admin

    async def count(self) -> int:
        return len(self._admins)


# =============================================================================
# Local Filesystem Asset Store
# =============================================================================


class LocalAssetStore(AssetStore):
    """
    Store images on the local filesystem.

    Files are served by the API under ``public_url``, so a stored URL looks
    like ``/uploads/memes/3f2a....png`` and its provider id is
    ``memes/3f2a....png``.
    """

    def __init__(
        self,
        base_path: str = "./data/uploads",
        public_url: str = "/uploads",
        folder: str = "memes",
    ):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_url = public_url.rstrip("/")
        self._folder = folder.strip("/")

    @property
    def folder(self) -> str:
        return self._folder

    def _key_to_path(self, key: str) -> Path:
        return self.base_path / key

    def _extension(self, asset: AssetUpload) -> str:
        suffix = Path(asset.filename).suffix.lower()
        if suffix:
            return suffix
        return mimetypes.guess_extension(asset.content_type) or ""

    async def upload(self, asset: AssetUpload) -> UploadedAsset:
        key = f"{self._folder}/{uuid.uuid4().hex}{self._extension(asset)}"
        path = self._key_to_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(asset.data)
        return UploadedAsset(url=f"{self.public_url}/{key}", provider_id=key)

    async def delete_by_id(self, provider_id: str) -> DeleteOutcome:
        path = self._key_to_path(provider_id)
        if not path.exists():
            return DeleteOutcome.NOT_FOUND
        try:
            path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete local asset {provider_id}: {e}")
            return DeleteOutcome.ERROR
        return DeleteOutcome.OK

    def provider_id_for(self, url: str) -> str | None:
        prefix = f"{self.public_url}/"
        if not url.startswith(prefix):
            return None
        key = url[len(prefix):].split("?", 1)[0].strip("/")
        if not key or ".." in key.split("/"):
            raise MalformedProviderUrl(url, "bad local asset key")
        return key

    async def list_ids(self, prefix: str = "") -> AsyncIterator[str]:
        search_path = self.base_path / prefix if prefix else self.base_path
        if search_path.exists():
            for path in search_path.rglob("*"):
                if path.is_file():
                    yield path.relative_to(self.base_path).as_posix()
