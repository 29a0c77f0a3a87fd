"""
Orphaned asset sweep.

An orphan is an asset in the asset store that no meme record references,
typically left behind when deleting the old image after a rename failed.
The coordinator never retries those deletes; this sweep is the manual,
out-of-band cleanup (``memehub sweep-orphans``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from memehub.core.errors import AssetDeleteFailed, MalformedProviderUrl
from memehub.storage.base import AssetStore, DeleteOutcome, RecordStore

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    orphans: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    dry_run: bool = True


async def referenced_ids(records: RecordStore, assets: AssetStore) -> set[str]:
    """Provider ids of every asset a stored meme points at."""
    used = set()
    async for url in records.iter_image_urls():
        try:
            provider_id = assets.provider_id_for(url)
        except MalformedProviderUrl as e:
            logger.warning(f"Skipping unparseable image URL: {e}")
            continue
        if provider_id:
            used.add(provider_id)
    return used


async def find_orphans(
    records: RecordStore,
    assets: AssetStore,
    prefix: str | None = None,
) -> list[str]:
    """
    List asset ids under ``prefix`` that no record references.

    The prefix defaults to the asset store's upload folder, so assets that
    were never MemeHub's are left alone.
    """
    if prefix is None:
        prefix = f"{assets.folder}/" if assets.folder else ""

    used = await referenced_ids(records, assets)
    return [asset_id async for asset_id in assets.list_ids(prefix) if asset_id not in used]


async def sweep_orphans(
    records: RecordStore,
    assets: AssetStore,
    prefix: str | None = None,
    dry_run: bool = True,
) -> SweepReport:
    """Find orphaned assets and, unless ``dry_run``, delete them."""
    report = SweepReport(dry_run=dry_run)
    report.orphans = await find_orphans(records, assets, prefix)
    logger.info(f"Found {len(report.orphans)} orphaned assets")

    if dry_run:
        return report

    for asset_id in report.orphans:
        try:
            outcome = await assets.delete_by_id(asset_id)
        except AssetDeleteFailed as e:
            logger.error(f"Failed to delete {asset_id}: {e}")
            report.failed.append(asset_id)
            continue

        if outcome == DeleteOutcome.ERROR:
            report.failed.append(asset_id)
        else:
            logger.info(f"Deleted orphan {asset_id}")
            report.deleted.append(asset_id)

    return report
