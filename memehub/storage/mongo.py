"""
MongoDB storage implementations.

One ``memes`` collection keyed by ``id`` and one ``admins`` collection keyed
by ``username``. Documents use the camelCase layout of the models.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, AsyncIterator, Callable

from pydantic.alias_generators import to_camel
from pymongo import ASCENDING, DESCENDING, TEXT, AsyncMongoClient, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from memehub.core.errors import MemeLocked, RecordStoreError, RecordWriteFailed
from memehub.core.models import (
    AdminRecord,
    Meme,
    MemeEdit,
    MemeFields,
    MemeQuery,
    MemeUpdate,
    SortBy,
)
from memehub.core.utils import utc_now
from memehub.storage.base import AdminStore, Collections, RecordStore

logger = logging.getLogger(__name__)

# Never hand Mongo's own _id back to the models
PROJECTION = {"_id": 0}

SORT_SPECS: dict[SortBy, list[tuple[str, int]]] = {
    SortBy.RECENT: [("createdAt", DESCENDING), ("id", ASCENDING)],
    SortBy.POPULAR: [("editedByUsers", DESCENDING), ("createdAt", DESCENDING), ("id", ASCENDING)],
    SortBy.FEATURED: [("isFeatured", DESCENDING), ("createdAt", DESCENDING), ("id", ASCENDING)],
}


def search_filter(search: str | None) -> dict[str, Any]:
    """Case-insensitive substring match on title or any tag."""
    if not search:
        return {}
    pattern = re.escape(search)
    return {
        "$or": [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"tags": {"$regex": pattern, "$options": "i"}},
        ]
    }


def to_meme(doc: dict[str, Any]) -> Meme:
    return Meme.model_validate(doc)


# =============================================================================
# Meme records
# =============================================================================


class MongoRecordStore(RecordStore):
    """
    Durable meme store.

    Relies on MongoDB's per-document write atomicity: every mutation is a
    single-document operation, including ``apply_edit``.
    """

    def __init__(
        self,
        client: AsyncMongoClient,
        database: str,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.db: AsyncDatabase = client[database]
        self.collection: AsyncCollection = self.db[Collections.MEMES]
        self._clock = clock

    async def initialize(self) -> None:
        try:
            await self.collection.create_index([("id", ASCENDING)], unique=True)
            await self.collection.create_index([("title", TEXT), ("tags", TEXT)])
            await self.collection.create_index([("createdAt", DESCENDING)])
        except PyMongoError as e:
            raise RecordStoreError(f"Failed to create meme indexes: {e}") from e
        logger.info(f"MongoDB record store ready (database={self.db.name})")

    async def close(self) -> None:
        await self.client.close()

    async def get(self, meme_id: str) -> Meme | None:
        try:
            doc = await self.collection.find_one({"id": meme_id}, PROJECTION)
        except PyMongoError as e:
            raise RecordStoreError(f"Failed to get meme {meme_id}: {e}") from e
        return to_meme(doc) if doc else None

    async def list(self, query: MemeQuery | None = None) -> list[Meme]:
        query = query or MemeQuery()
        cursor = (
            self.collection.find(search_filter(query.search), PROJECTION)
            .sort(SORT_SPECS[query.sort_by])
            .skip(query.offset)
            .limit(query.limit)
        )
        try:
            docs = await cursor.to_list()
        except PyMongoError as e:
            raise RecordStoreError(f"Failed to list memes: {e}") from e
        return [to_meme(doc) for doc in docs]

    async def count(self, search: str | None = None) -> int:
        try:
            return await self.collection.count_documents(search_filter(search))
        except PyMongoError as e:
            raise RecordStoreError(f"Failed to count memes: {e}") from e

    async def create(self, fields: MemeFields) -> Meme:
        meme = Meme(
            title=fields.title,
            tags=list(fields.tags),
            image_url=fields.image_url,
            created_at=self._clock(),
        )
        try:
            await self.collection.insert_one(meme.to_document())
        except PyMongoError as e:
            raise RecordWriteFailed(f"Failed to create meme: {e}") from e
        return meme

    async def create_bulk(self, items: list[MemeFields]) -> list[Meme]:
        return [await self.create(fields) for fields in items]

    async def update(self, meme_id: str, update: MemeUpdate) -> Meme | None:
        changes = {to_camel(key): value for key, value in update.changes().items()}
        try:
            if changes:
                doc = await self.collection.find_one_and_update(
                    {"id": meme_id},
                    {"$set": changes},
                    projection=PROJECTION,
                    return_document=ReturnDocument.AFTER,
                )
            else:
                doc = await self.collection.find_one({"id": meme_id}, PROJECTION)
        except PyMongoError as e:
            raise RecordWriteFailed(f"Failed to update meme {meme_id}: {e}") from e
        return to_meme(doc) if doc else None

    async def apply_edit(self, meme_id: str, edit: MemeEdit) -> Meme | None:
        now = self._clock()
        # Pipeline update: "$title"/"$tags" still refer to the pre-edit values
        # inside this stage, so snapshot and write happen in one document op.
        pipeline = [
            {
                "$set": {
                    "editHistory": {
                        "$concatArrays": [
                            {"$ifNull": ["$editHistory", []]},
                            [
                                {
                                    "previousName": "$title",
                                    "previousTags": "$tags",
                                    "editedAt": now,
                                }
                            ],
                        ]
                    },
                    "title": {"$literal": edit.title},
                    "tags": {"$literal": list(edit.tags)},
                    "editedByUsers": {"$add": [{"$ifNull": ["$editedByUsers", 0]}, 1]},
                    "lastEditedAt": now,
                }
            }
        ]
        try:
            doc = await self.collection.find_one_and_update(
                {"id": meme_id, "isLocked": {"$ne": True}},
                pipeline,
                projection=PROJECTION,
                return_document=ReturnDocument.AFTER,
            )
            if doc:
                return to_meme(doc)
            existing = await self.collection.find_one({"id": meme_id}, {"_id": 0, "isLocked": 1})
        except PyMongoError as e:
            raise RecordWriteFailed(f"Failed to edit meme {meme_id}: {e}") from e

        if existing is None:
            return None
        raise MemeLocked(meme_id)

    async def delete(self, meme_id: str) -> bool:
        try:
            result = await self.collection.delete_one({"id": meme_id})
        except PyMongoError as e:
            raise RecordWriteFailed(f"Failed to delete meme {meme_id}: {e}") from e
        return result.deleted_count > 0

    async def iter_image_urls(self) -> AsyncIterator[str]:
        try:
            async for doc in self.collection.find({}, {"_id": 0, "imageUrl": 1}):
                if doc.get("imageUrl"):
                    yield doc["imageUrl"]
        except PyMongoError as e:
            raise RecordStoreError(f"Failed to scan meme image URLs: {e}") from e


# =============================================================================
# Admin accounts
# =============================================================================


class MongoAdminStore(AdminStore):
    """Admin accounts in the ``admins`` collection."""

    def __init__(self, client: AsyncMongoClient, database: str):
        self.collection: AsyncCollection = client[database][Collections.ADMINS]

    async def initialize(self) -> None:
        try:
            await self.collection.create_index([("username", ASCENDING)], unique=True)
        except PyMongoError as e:
            raise RecordStoreError(f"Failed to create admin indexes: {e}") from e

    async def get_by_username(self, username: str) -> AdminRecord | None:
        try:
            doc = await self.collection.find_one({"username": username}, PROJECTION)
        except PyMongoError as e:
            raise RecordStoreError(f"Failed to get admin {username}: {e}") from e
        return AdminRecord.model_validate(doc) if doc else None

    async def create(self, admin: AdminRecord) -> AdminRecord:
        try:
            await self.collection.insert_one(admin.to_document())
        except DuplicateKeyError:
            raise ValueError(f"Username already exists: {admin.username}")
        except PyMongoError as e:
            raise RecordWriteFailed(f"Failed to create admin {admin.username}: {e}") from e
        return admin

    async def count(self) -> int:
        try:
            return await self.collection.count_documents({})
        except PyMongoError as e:
            raise RecordStoreError(f"Failed to count admins: {e}") from e
