"""
Shared fixtures.

The record-store fixture runs every contract test against the in-memory
store and, when ``MEMEHUB_TEST_MONGODB_URI`` is set, against MongoDB too.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from memehub.core.errors import AssetDeleteFailed, AssetUploadFailed
from memehub.media.lifecycle import MediaLifecycleCoordinator
from memehub.media.public_id import extract_provider_id
from memehub.storage.base import AssetStore, AssetUpload, DeleteOutcome, UploadedAsset
from memehub.storage.memory import InMemoryRecordStore

MONGODB_URI = os.environ.get("MEMEHUB_TEST_MONGODB_URI", "")


# =============================================================================
# Test doubles
# =============================================================================


class TickingClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class FakeAssetStore(AssetStore):
    """
    Cloudinary-shaped asset store kept in a dict.

    Records every call so tests can assert on ordering and arguments.
    Writes also go to ``calls``, which can be shared with a record store.
    """

    def __init__(self, folder: str = "memes", calls: list[str] | None = None):
        self.calls = calls if calls is not None else []
        self.assets: dict[str, bytes] = {}
        self.uploads: list[str] = []
        self.deletes: list[str] = []
        self.fail_uploads = False
        self.delete_outcome: DeleteOutcome | None = None
        self.delete_raises = False
        self._folder = folder
        self._counter = 0

    @property
    def folder(self) -> str:
        return self._folder

    def url_for(self, provider_id: str) -> str:
        return f"https://res.cloudinary.com/test/image/upload/v1700000000/{provider_id}.png"

    async def upload(self, asset: AssetUpload) -> UploadedAsset:
        if self.fail_uploads:
            raise AssetUploadFailed("provider unavailable")
        self._counter += 1
        provider_id = f"{self._folder}/img{self._counter}"
        self.assets[provider_id] = asset.data
        self.uploads.append(provider_id)
        self.calls.append(f"asset.upload:{provider_id}")
        return UploadedAsset(url=self.url_for(provider_id), provider_id=provider_id)

    async def delete_by_id(self, provider_id: str) -> DeleteOutcome:
        self.deletes.append(provider_id)
        self.calls.append(f"asset.delete:{provider_id}")
        if self.delete_raises:
            raise AssetDeleteFailed("provider unreachable")
        if self.delete_outcome is not None:
            return self.delete_outcome
        if self.assets.pop(provider_id, None) is None:
            return DeleteOutcome.NOT_FOUND
        return DeleteOutcome.OK

    def provider_id_for(self, url: str) -> str | None:
        return extract_provider_id(url)

    async def list_ids(self, prefix: str = ""):
        for provider_id in list(self.assets):
            if provider_id.startswith(prefix):
                yield provider_id


class RecordingRecordStore(InMemoryRecordStore):
    """In-memory record store that logs its writes to a shared call list."""

    def __init__(self, calls: list[str], clock):
        super().__init__(clock=clock)
        self.calls = calls

    async def create(self, fields):
        meme = await super().create(fields)
        self.calls.append(f"record.create:{meme.id}")
        return meme

    async def create_bulk(self, items):
        created = await super().create_bulk(items)
        self.calls.extend(f"record.create:{meme.id}" for meme in created)
        return created

    async def update(self, meme_id, update):
        self.calls.append(f"record.update:{meme_id}")
        return await super().update(meme_id, update)

    async def delete(self, meme_id):
        self.calls.append(f"record.delete:{meme_id}")
        return await super().delete(meme_id)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def calls():
    """Write log shared by the record and asset stores."""
    return []


@pytest.fixture
def records(clock, calls):
    """Fresh in-memory record store with a deterministic clock."""
    return RecordingRecordStore(calls, clock=clock)


@pytest.fixture
def assets(calls):
    return FakeAssetStore(calls=calls)


@pytest.fixture
def coordinator(records, assets):
    return MediaLifecycleCoordinator(records=records, assets=assets)


@pytest.fixture
def image():
    return AssetUpload(data=b"\x89PNG fake image", filename="cat.png", content_type="image/png")


@pytest_asyncio.fixture(params=["memory", "mongo"])
async def record_store(request, clock):
    """Each record store backend, empty."""
    if request.param == "memory":
        yield InMemoryRecordStore(clock=clock)
        return

    if not MONGODB_URI:
        pytest.skip("MEMEHUB_TEST_MONGODB_URI not set")

    from pymongo import AsyncMongoClient

    from memehub.storage.mongo import MongoRecordStore

    client = AsyncMongoClient(MONGODB_URI, tz_aware=True)
    database = f"memehub_test_{os.getpid()}"
    store = MongoRecordStore(client, database, clock=clock)
    await store.initialize()
    try:
        yield store
    finally:
        await client.drop_database(database)
        await client.close()
