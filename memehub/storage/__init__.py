"""
Storage abstractions.

Integration Points:
- RecordStore → MongoDB, or in-memory for development
- AdminStore → MongoDB, or in-memory for development
- AssetStore → Cloudinary, or the local filesystem for development
"""

from memehub.storage.base import (
    AdminStore,
    AssetStore,
    AssetUpload,
    Collections,
    DeleteOutcome,
    RecordStore,
    StorageProvider,
    UploadedAsset,
)
from memehub.storage.factory import create_storage

__all__ = [
    "AdminStore",
    "AssetStore",
    "AssetUpload",
    "Collections",
    "DeleteOutcome",
    "RecordStore",
    "StorageProvider",
    "UploadedAsset",
    "create_storage",
]
