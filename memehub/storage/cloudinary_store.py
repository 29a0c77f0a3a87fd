"""
Cloudinary asset store.

Uploads land in one folder (``memes`` by default) and are delivered from
``res.cloudinary.com``. The SDK is blocking, so every call runs in the
default executor.
"""

from __future__ import annotations

import asyncio
import io
import logging
from functools import partial
from typing import Any, AsyncIterator

import cloudinary.api
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from cloudinary.exceptions import GeneralError, NotFound, RateLimited
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from memehub.core.errors import AssetDeleteFailed, AssetUploadFailed
from memehub.media.public_id import extract_provider_id
from memehub.storage.base import AssetStore, AssetUpload, DeleteOutcome, UploadedAsset

logger = logging.getLogger(__name__)

ALLOWED_FORMATS = ["jpg", "jpeg", "png", "gif", "webp"]
LIST_PAGE_SIZE = 500


class CloudinaryAssetStore(AssetStore):
    """Store meme images in Cloudinary."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "memes",
    ):
        self._credentials = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
        }
        self._folder = folder.strip("/")

    @property
    def folder(self) -> str:
        return self._folder

    async def _call(self, func, *args, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, partial(func, *args, **self._credentials, **kwargs)
        )

    async def upload(self, asset: AssetUpload) -> UploadedAsset:
        try:
            result = await self._call(
                cloudinary.uploader.upload,
                io.BytesIO(asset.data),
                folder=self._folder,
                resource_type="image",
                allowed_formats=ALLOWED_FORMATS,
            )
        except CloudinaryError as e:
            raise AssetUploadFailed(f"Cloudinary upload failed for {asset.filename}: {e}") from e

        url = result.get("secure_url") or result.get("url")
        public_id = result.get("public_id")
        if not url or not public_id:
            raise AssetUploadFailed(f"Cloudinary upload returned no URL for {asset.filename}")

        logger.info(f"Uploaded {asset.filename} to Cloudinary as {public_id}")
        return UploadedAsset(url=url, provider_id=public_id)

    async def delete_by_id(self, provider_id: str) -> DeleteOutcome:
        try:
            result = await self._call(
                cloudinary.uploader.destroy,
                provider_id,
                invalidate=True,
            )
        except NotFound:
            return DeleteOutcome.NOT_FOUND
        except CloudinaryError as e:
            raise AssetDeleteFailed(f"Cloudinary delete failed for {provider_id}: {e}") from e

        status = result.get("result")
        if status == "ok":
            return DeleteOutcome.OK
        if status == "not found":
            return DeleteOutcome.NOT_FOUND
        logger.error(f"Cloudinary delete of {provider_id} returned {status!r}")
        return DeleteOutcome.ERROR

    def provider_id_for(self, url: str) -> str | None:
        return extract_provider_id(url)

    @retry(
        retry=retry_if_exception_type((RateLimited, GeneralError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _list_page(self, prefix: str, next_cursor: str | None) -> dict[str, Any]:
        """Fetch one page of resources, retrying rate limits."""
        options: dict[str, Any] = {
            "type": "upload",
            "prefix": prefix,
            "max_results": LIST_PAGE_SIZE,
        }
        if next_cursor:
            options["next_cursor"] = next_cursor
        return await self._call(cloudinary.api.resources, **options)

    async def list_ids(self, prefix: str = "") -> AsyncIterator[str]:
        next_cursor = None
        while True:
            page = await self._list_page(prefix, next_cursor)
            for resource in page.get("resources", []):
                yield resource["public_id"]
            next_cursor = page.get("next_cursor")
            if not next_cursor:
                break
