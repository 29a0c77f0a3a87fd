"""
Error taxonomy for the storage and media-lifecycle layer.

Validation problems never get this far: they are rejected by the pydantic
models at the boundary before any side effect happens.
"""

from __future__ import annotations


class MemeHubError(Exception):
    """Base exception for MemeHub errors."""
    pass


class RecordNotFound(MemeHubError):
    """No meme record exists with the given ID."""

    def __init__(self, meme_id: str):
        super().__init__(f"Meme not found: {meme_id}")
        self.meme_id = meme_id


class MemeLocked(MemeHubError):
    """Community edits are blocked because an admin locked the meme."""

    def __init__(self, meme_id: str):
        super().__init__(f"Meme is locked: {meme_id}")
        self.meme_id = meme_id


class RecordStoreError(MemeHubError):
    """The record store could not complete an operation."""
    pass


class RecordWriteFailed(RecordStoreError):
    """A create/update/delete against the record store failed."""
    pass


class AssetUploadFailed(MemeHubError):
    """The asset store rejected or failed an upload."""
    pass


class AssetDeleteFailed(MemeHubError):
    """
    The asset store failed to delete an asset.

    Never fatal: the coordinator turns it into a status flag.
    """
    pass


class MalformedProviderUrl(MemeHubError):
    """A URL looks provider-managed but does not have the expected shape."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Malformed provider URL ({reason}): {url}")
        self.url = url
        self.reason = reason
