"""
Core module - data models, errors and shared utilities.

This module contains:
- models: Meme records, drafts/edits/updates, list queries, admin accounts
- errors: The error taxonomy shared by stores and the lifecycle coordinator
- utils: Shared utility functions
"""

from memehub.core.models import (
    AdminRecord,
    EditHistoryEntry,
    Meme,
    MemeDraft,
    MemeEdit,
    MemeFields,
    MemeQuery,
    MemeUpdate,
    SortBy,
    parse_tags,
)

from memehub.core.errors import (
    AssetDeleteFailed,
    AssetUploadFailed,
    MalformedProviderUrl,
    MemeHubError,
    MemeLocked,
    RecordNotFound,
    RecordStoreError,
    RecordWriteFailed,
)

from memehub.core.utils import (
    generate_id,
    utc_now,
)

__all__ = [
    # Models
    "AdminRecord",
    "EditHistoryEntry",
    "Meme",
    "MemeDraft",
    "MemeEdit",
    "MemeFields",
    "MemeQuery",
    "MemeUpdate",
    "SortBy",
    "parse_tags",
    # Errors
    "AssetDeleteFailed",
    "AssetUploadFailed",
    "MalformedProviderUrl",
    "MemeHubError",
    "MemeLocked",
    "RecordNotFound",
    "RecordStoreError",
    "RecordWriteFailed",
    # Utils
    "generate_id",
    "utc_now",
]
