"""
Media lifecycle coordinator.

Keeps a meme record (record store) and its image (asset store) consistent
across create, rename-with-replace and delete. The two stores share no
transaction, so consistency comes from the order of operations:

- Create: upload the asset, then create the record. If the record write
  fails the fresh upload is deleted again.
- Rename with a new image: upload the new asset, update the record, and only
  then delete the old asset. A failed old-asset delete leaves an orphan,
  which is reported but never rolls the record back.
- Delete: delete the asset (failures tolerated), then the record. The
  record outcome decides success.

A record pointing at a missing asset is worse than an unreferenced asset,
and these orderings never produce the former, even after a crash between
steps.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from memehub.core.errors import (
    AssetDeleteFailed,
    AssetUploadFailed,
    MalformedProviderUrl,
    RecordNotFound,
    RecordStoreError,
)
from memehub.core.models import Meme, MemeDraft, MemeEdit, MemeFields, MemeUpdate
from memehub.integrations.sentry import capture_message
from memehub.storage.base import (
    AssetStore,
    AssetUpload,
    DeleteOutcome,
    RecordStore,
    UploadedAsset,
)

if TYPE_CHECKING:
    from memehub.auth.context import AdminContext

logger = logging.getLogger(__name__)

DEFAULT_BULK_TITLE = "Untitled Meme"
DEFAULT_BULK_TAG = "meme"


# =============================================================================
# Results
# =============================================================================


class AssetDeletion(str, Enum):
    """What happened to an asset the coordinator tried to delete."""

    DELETED = "deleted"
    ALREADY_GONE = "already_gone"  # Provider reported not found
    NOT_MANAGED = "not_managed"  # URL is not ours to delete
    SKIPPED_MALFORMED = "skipped_malformed"  # Could not derive a provider id
    FAILED = "failed"  # Provider error; the asset is now an orphan

    @property
    def removed(self) -> bool:
        return self in (AssetDeletion.DELETED, AssetDeletion.ALREADY_GONE)


@dataclass
class DeleteResult:
    """Outcome of ``delete_meme``. Success is decided by the record side."""

    meme_id: str
    asset_status: AssetDeletion
    record_deleted: bool

    @property
    def asset_deleted(self) -> bool:
        return self.asset_status.removed

    @property
    def ok(self) -> bool:
        return self.record_deleted


@dataclass
class RenameResult:
    """Outcome of ``rename_meme``. ``old_asset`` is None when no image was replaced."""

    meme: Meme
    old_asset: AssetDeletion | None = None


@dataclass
class BulkFailure:
    filename: str
    error: str


@dataclass
class BulkUploadResult:
    created: list[Meme] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)


# =============================================================================
# Coordinator
# =============================================================================


class MediaLifecycleCoordinator:
    """
    Sequences asset-store and record-store operations.

    Admin entry points take the ``AdminContext`` resolved by the auth layer
    and trust it; it is only used to attribute log lines.
    """

    def __init__(
        self,
        records: RecordStore,
        assets: AssetStore,
        bulk_title: str = DEFAULT_BULK_TITLE,
        bulk_tag: str = DEFAULT_BULK_TAG,
    ):
        self.records = records
        self.assets = assets
        self.bulk_title = bulk_title
        self.bulk_tag = bulk_tag

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    async def create_meme(self, draft: MemeDraft, image: AssetUpload) -> Meme:
        """
        Upload the image, then create the record pointing at it.

        Raises:
            AssetUploadFailed: Nothing was written.
            RecordStoreError: The record write failed; the uploaded asset
                has been cleaned up (best effort).
        """
        uploaded = await self.assets.upload(image)
        fields = MemeFields(title=draft.title, tags=draft.tags, image_url=uploaded.url)
        try:
            meme = await self.records.create(fields)
        except RecordStoreError:
            await self._discard_upload(uploaded)
            raise

        logger.info(f"Created meme {meme.id} ({meme.title!r})")
        return meme

    async def create_bulk(self, image_urls: list[str]) -> list[Meme]:
        """
        Create one record per already-uploaded asset URL.

        Every record gets the placeholder title and tag; real metadata is
        expected later through a rename or a community edit.
        """
        items = [
            MemeFields(title=self.bulk_title, tags=[self.bulk_tag], image_url=url)
            for url in image_urls
        ]
        return await self.records.create_bulk(items)

    async def bulk_upload(
        self,
        images: list[AssetUpload],
        actor: AdminContext | None = None,
    ) -> BulkUploadResult:
        """
        Upload each image in order, then create placeholder records for the
        ones that made it into the asset store.
        """
        result = BulkUploadResult()
        uploaded: list[UploadedAsset] = []

        for image in images:
            try:
                uploaded.append(await self.assets.upload(image))
            except AssetUploadFailed as e:
                logger.warning(f"Bulk upload of {image.filename} failed: {e}")
                result.failed.append(BulkFailure(filename=image.filename, error=str(e)))

        if not uploaded:
            return result

        try:
            result.created = await self.create_bulk([asset.url for asset in uploaded])
        except RecordStoreError:
            # Records already written keep their assets
            remaining = await self._unreferenced(uploaded)
            for asset in remaining:
                await self._discard_upload(asset)
            raise

        logger.info(
            f"Bulk upload by {_who(actor)}: {len(result.created)} created, "
            f"{len(result.failed)} failed"
        )
        return result

    # -------------------------------------------------------------------------
    # Rename
    # -------------------------------------------------------------------------

    async def rename_meme(
        self,
        meme_id: str,
        title: str,
        tags: list[str] | None = None,
        image: AssetUpload | None = None,
        actor: AdminContext | None = None,
    ) -> RenameResult:
        """
        Rename a meme, optionally replacing its image.

        Tags are kept when ``tags`` is None. With a new image the order is:
        upload new → update record → delete old.

        Raises:
            RecordNotFound: Unknown meme; nothing was uploaded.
            AssetUploadFailed: The record is unchanged.
            RecordStoreError: The record is unchanged; the new upload has been
                cleaned up (best effort).
        """
        current = await self.records.get(meme_id)
        if current is None:
            raise RecordNotFound(meme_id)

        update = MemeUpdate(title=title, tags=current.tags if tags is None else tags)

        uploaded = None
        if image is not None:
            uploaded = await self.assets.upload(image)
            update = update.model_copy(update={"image_url": uploaded.url})

        try:
            renamed = await self.records.update(meme_id, update)
        except RecordStoreError:
            if uploaded:
                await self._discard_upload(uploaded)
            raise

        if renamed is None:
            # Deleted between the read and the write
            if uploaded:
                await self._discard_upload(uploaded)
            raise RecordNotFound(meme_id)

        logger.info(f"Meme {meme_id} renamed to {renamed.title!r} by {_who(actor)}")

        if uploaded is None:
            return RenameResult(meme=renamed)

        old_asset = await self._delete_asset(current.image_url, meme_id=meme_id)
        return RenameResult(meme=renamed, old_asset=old_asset)

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    async def delete_meme(
        self,
        meme_id: str,
        actor: AdminContext | None = None,
    ) -> DeleteResult:
        """
        Delete the asset (non-fatal), then the record.

        Raises:
            RecordNotFound: Unknown meme; nothing was touched.
            RecordWriteFailed: The record could not be deleted.
        """
        meme = await self.records.get(meme_id)
        if meme is None:
            raise RecordNotFound(meme_id)

        asset_status = await self._delete_asset(meme.image_url, meme_id=meme_id)
        record_deleted = await self.records.delete(meme_id)

        result = DeleteResult(
            meme_id=meme_id,
            asset_status=asset_status,
            record_deleted=record_deleted,
        )
        logger.info(
            f"Delete of meme {meme_id} by {_who(actor)}: "
            f"asset={asset_status.value} record_deleted={record_deleted}"
        )
        return result

    # -------------------------------------------------------------------------
    # Community edits and moderation
    # -------------------------------------------------------------------------

    async def edit_meme(self, meme_id: str, edit: MemeEdit) -> Meme:
        """
        Apply an anonymous community edit.

        Raises:
            RecordNotFound: Unknown meme.
            MemeLocked: An admin locked the meme; nothing changed.
        """
        edited = await self.records.apply_edit(meme_id, edit)
        if edited is None:
            raise RecordNotFound(meme_id)
        return edited

    async def set_locked(self, meme_id: str, locked: bool, actor: AdminContext) -> Meme:
        """Lock or unlock community edits."""
        meme = await self.records.update(meme_id, MemeUpdate(is_locked=locked))
        if meme is None:
            raise RecordNotFound(meme_id)
        logger.info(f"Meme {meme_id} {'locked' if locked else 'unlocked'} by {_who(actor)}")
        return meme

    async def set_featured(self, meme_id: str, featured: bool, actor: AdminContext) -> Meme:
        """Feature or unfeature a meme."""
        meme = await self.records.update(meme_id, MemeUpdate(is_featured=featured))
        if meme is None:
            raise RecordNotFound(meme_id)
        logger.info(f"Meme {meme_id} {'featured' if featured else 'unfeatured'} by {_who(actor)}")
        return meme

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _delete_asset(self, url: str, meme_id: str | None = None) -> AssetDeletion:
        """Delete the asset behind ``url``. Never raises."""
        try:
            provider_id = self.assets.provider_id_for(url)
        except MalformedProviderUrl as e:
            logger.warning(f"Not deleting asset for meme {meme_id}: {e}")
            return AssetDeletion.SKIPPED_MALFORMED

        if provider_id is None:
            return AssetDeletion.NOT_MANAGED

        try:
            outcome = await self.assets.delete_by_id(provider_id)
        except AssetDeleteFailed as e:
            logger.error(f"Asset delete failed for {provider_id}: {e}")
            outcome = DeleteOutcome.ERROR

        if outcome == DeleteOutcome.OK:
            return AssetDeletion.DELETED
        if outcome == DeleteOutcome.NOT_FOUND:
            return AssetDeletion.ALREADY_GONE

        capture_message(
            "Orphaned asset: delete failed",
            level="warning",
            provider_id=provider_id,
            meme_id=meme_id,
        )
        return AssetDeletion.FAILED

    async def _discard_upload(self, uploaded: UploadedAsset) -> None:
        """Best-effort removal of an upload no record points at."""
        try:
            outcome = await self.assets.delete_by_id(uploaded.provider_id)
        except AssetDeleteFailed as e:
            logger.error(f"Cleanup of {uploaded.provider_id} failed: {e}")
            outcome = DeleteOutcome.ERROR

        if outcome == DeleteOutcome.ERROR:
            capture_message(
                "Orphaned asset: cleanup after failed record write",
                level="warning",
                provider_id=uploaded.provider_id,
            )

    async def _unreferenced(self, uploaded: list[UploadedAsset]) -> list[UploadedAsset]:
        """Uploads whose URL no stored record references."""
        try:
            referenced = {url async for url in self.records.iter_image_urls()}
        except RecordStoreError:
            # Cannot tell; keep everything rather than break a live record
            return []
        return [asset for asset in uploaded if asset.url not in referenced]


def _who(actor: AdminContext | None) -> str:
    return actor.username if actor else "system"
