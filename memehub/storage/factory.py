"""
Build the storage backends from an explicit ``StorageConfig``.
"""

from __future__ import annotations

import logging

from pymongo import AsyncMongoClient

from memehub.config import StorageConfig
from memehub.storage.base import AdminStore, AssetStore, RecordStore, StorageProvider
from memehub.storage.cloudinary_store import CloudinaryAssetStore
from memehub.storage.memory import InMemoryAdminStore, InMemoryRecordStore, LocalAssetStore
from memehub.storage.mongo import MongoAdminStore, MongoRecordStore

logger = logging.getLogger(__name__)


def create_storage(config: StorageConfig) -> StorageProvider:
    """
    Create a StorageProvider for the given configuration.

    MongoDB is used when a URI is configured, Cloudinary when all of its
    credentials are present; otherwise the development backends are used.
    The choice is made once, here.
    """
    records: RecordStore
    admins: AdminStore
    assets: AssetStore

    if config.use_mongodb:
        client = AsyncMongoClient(config.mongodb_uri, tz_aware=True)
        records = MongoRecordStore(client, config.mongodb_database)
        admins = MongoAdminStore(client, config.mongodb_database)
        logger.info(f"Using MongoDB record store (database={config.mongodb_database})")
    else:
        records = InMemoryRecordStore()
        admins = InMemoryAdminStore()
        logger.warning("MONGODB_URI not set - using in-memory record store (not durable)")

    if config.use_cloudinary:
        assets = CloudinaryAssetStore(
            cloud_name=config.cloudinary_cloud_name,
            api_key=config.cloudinary_api_key,
            api_secret=config.cloudinary_api_secret,
            folder=config.cloudinary_folder,
        )
        logger.info(f"Using Cloudinary asset store (folder={config.cloudinary_folder})")
    else:
        assets = LocalAssetStore(
            base_path=config.local_asset_dir,
            public_url=config.public_asset_url,
            folder=config.cloudinary_folder,
        )
        logger.warning(f"Cloudinary not configured - storing images in {config.local_asset_dir}")

    return StorageProvider(records=records, admins=admins, assets=assets)
