"""
Media lifecycle: keeping meme records and their stored images consistent.

- public_id: derive asset-store ids from delivery URLs
- lifecycle: ordered create / rename / delete across both stores
- orphans: manual sweep of assets no record references
"""

from memehub.media.public_id import extract_provider_id
from memehub.media.lifecycle import (
    AssetDeletion,
    BulkUploadResult,
    DeleteResult,
    MediaLifecycleCoordinator,
    RenameResult,
)
from memehub.media.orphans import SweepReport, find_orphans, sweep_orphans

__all__ = [
    "AssetDeletion",
    "BulkUploadResult",
    "DeleteResult",
    "MediaLifecycleCoordinator",
    "RenameResult",
    "SweepReport",
    "extract_provider_id",
    "find_orphans",
    "sweep_orphans",
]
