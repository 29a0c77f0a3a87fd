"""
Meme routes.

Every route validates its input first, then makes one coordinator or store
call. Store and lifecycle errors are mapped to HTTP statuses by the handlers
registered in ``memehub.api.app``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from memehub.auth.context import AdminContext
from memehub.auth.policies import require_admin
from memehub.config import Settings
from memehub.core.errors import RecordNotFound
from memehub.core.models import Meme, MemeDraft, MemeEdit, MemeHubModel, MemeQuery, SortBy
from memehub.media.lifecycle import AssetDeletion, MediaLifecycleCoordinator
from memehub.api.dependencies import get_app_settings, get_coordinator, get_storage
from memehub.storage.base import AssetUpload, StorageProvider

router = APIRouter(tags=["memes"])

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}


# =============================================================================
# Request/Response Models
# =============================================================================


class ModerationUpdate(MemeHubModel):
    is_locked: bool | None = None
    is_featured: bool | None = None


class RenameResponse(MemeHubModel):
    meme: Meme
    old_asset_status: AssetDeletion | None = None


class DeleteResponse(MemeHubModel):
    asset_deleted: bool
    record_deleted: bool
    asset_status: AssetDeletion


class BulkFailureResponse(BaseModel):
    filename: str
    error: str


class BulkUploadResponse(BaseModel):
    created: list[Meme]
    failed: list[BulkFailureResponse]


# =============================================================================
# Validation helpers
# =============================================================================


def validation_failed(errors: list[dict[str, Any]]) -> RequestValidationError:
    """Rejected input; rendered as a 400 by the app's validation handler."""
    return RequestValidationError(errors)


def parse_draft(title: str, tags: str) -> MemeDraft:
    try:
        return MemeDraft(title=title, tags=tags)
    except ValidationError as e:
        raise validation_failed(e.errors(include_url=False, include_context=False, include_input=False))


def check_image(filename: str, content_type: str | None, data: bytes, max_bytes: int) -> str | None:
    """Return why an image is unacceptable, or None if it is fine."""
    if not data:
        return "Image file is empty"
    if len(data) > max_bytes:
        return f"Image exceeds {max_bytes // (1024 * 1024)}MB limit"
    unsupported = "Unsupported image type (allowed: jpg, jpeg, png, gif, webp)"
    if Path(filename).suffix.lower() not in ALLOWED_EXTENSIONS:
        return unsupported
    if content_type and content_type not in ALLOWED_CONTENT_TYPES:
        return unsupported
    return None


async def read_image(upload: UploadFile | None, settings: Settings) -> AssetUpload:
    if upload is None or not upload.filename:
        raise validation_failed([{"loc": ["image"], "msg": "No image file provided", "type": "missing"}])

    data = await upload.read()
    problem = check_image(upload.filename, upload.content_type, data, settings.max_upload_bytes)
    if problem:
        raise validation_failed([{"loc": ["image"], "msg": problem, "type": "value_error"}])

    return AssetUpload(
        data=data,
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
    )


# =============================================================================
# Public
# =============================================================================


@router.get("/api/memes", response_model=list[Meme])
async def list_memes(
    response: Response,
    search: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: SortBy = Query(SortBy.RECENT, alias="sortBy"),
    storage: StorageProvider = Depends(get_storage),
):
    """List memes, newest first unless ``sortBy`` says otherwise."""
    query = MemeQuery(search=search, limit=limit, offset=offset, sort_by=sort_by)
    response.headers["X-Total-Count"] = str(await storage.records.count(query.search))
    return await storage.records.list(query)


@router.get("/api/memes/{meme_id}", response_model=Meme)
async def get_meme(
    meme_id: str,
    storage: StorageProvider = Depends(get_storage),
):
    meme = await storage.records.get(meme_id)
    if not meme:
        raise RecordNotFound(meme_id)
    return meme


@router.post("/api/memes", response_model=Meme, status_code=201)
async def upload_meme(
    title: str = Form(""),
    tags: str = Form(""),
    image: UploadFile | None = File(None),
    settings: Settings = Depends(get_app_settings),
    coordinator: MediaLifecycleCoordinator = Depends(get_coordinator),
):
    """Upload an image with a title and comma-separated tags."""
    draft = parse_draft(title, tags)
    asset = await read_image(image, settings)
    return await coordinator.create_meme(draft, asset)


@router.post("/api/memes/{meme_id}/edit", response_model=Meme)
async def edit_meme(
    meme_id: str,
    edit: MemeEdit,
    coordinator: MediaLifecycleCoordinator = Depends(get_coordinator),
):
    """Community edit of title and tags. Rejected with 423 while locked."""
    return await coordinator.edit_meme(meme_id, edit)


# =============================================================================
# Admin
# =============================================================================


@router.patch("/api/memes/{meme_id}", response_model=Meme)
async def moderate_meme(
    meme_id: str,
    update: ModerationUpdate,
    ctx: AdminContext = Depends(require_admin),
    coordinator: MediaLifecycleCoordinator = Depends(get_coordinator),
):
    """Lock/unlock or feature/unfeature a meme."""
    if update.is_locked is None and update.is_featured is None:
        raise validation_failed([{"loc": ["body"], "msg": "Nothing to update", "type": "value_error"}])

    meme = None
    if update.is_locked is not None:
        meme = await coordinator.set_locked(meme_id, update.is_locked, ctx)
    if update.is_featured is not None:
        meme = await coordinator.set_featured(meme_id, update.is_featured, ctx)
    return meme


@router.patch("/api/memes/{meme_id}/rename", response_model=RenameResponse)
async def rename_meme(
    meme_id: str,
    title: str = Form(""),
    tags: str | None = Form(None),
    image: UploadFile | None = File(None),
    ctx: AdminContext = Depends(require_admin),
    settings: Settings = Depends(get_app_settings),
    coordinator: MediaLifecycleCoordinator = Depends(get_coordinator),
):
    """Rename a meme; tags are kept unless given; an image replaces the old one."""
    draft = parse_draft(title, tags or "")
    asset = await read_image(image, settings) if image is not None and image.filename else None

    result = await coordinator.rename_meme(
        meme_id,
        title=draft.title,
        tags=draft.tags if tags is not None else None,
        image=asset,
        actor=ctx,
    )
    return RenameResponse(meme=result.meme, old_asset_status=result.old_asset)


@router.delete("/api/memes/{meme_id}", response_model=DeleteResponse)
async def delete_meme(
    meme_id: str,
    ctx: AdminContext = Depends(require_admin),
    coordinator: MediaLifecycleCoordinator = Depends(get_coordinator),
):
    """Delete the image (best effort) and then the record."""
    result = await coordinator.delete_meme(meme_id, actor=ctx)
    body = DeleteResponse(
        asset_deleted=result.asset_deleted,
        record_deleted=result.record_deleted,
        asset_status=result.asset_status,
    )
    if not result.ok:
        return JSONResponse(status_code=404, content=body.model_dump(mode="json", by_alias=True))
    return body


@router.post("/api/admin/bulk-upload", response_model=BulkUploadResponse, status_code=201)
async def bulk_upload(
    images: list[UploadFile] = File(...),
    ctx: AdminContext = Depends(require_admin),
    settings: Settings = Depends(get_app_settings),
    coordinator: MediaLifecycleCoordinator = Depends(get_coordinator),
):
    """
    Upload many images at once.

    Each becomes a meme with the placeholder title and tag. Files that fail
    validation are reported and never uploaded.
    """
    if len(images) > settings.max_bulk_files:
        raise validation_failed([{
            "loc": ["images"],
            "msg": f"At most {settings.max_bulk_files} files per request",
            "type": "value_error",
        }])

    accepted: list[AssetUpload] = []
    rejected: list[BulkFailureResponse] = []
    for upload in images:
        filename = upload.filename or "image"
        data = await upload.read()
        problem = check_image(filename, upload.content_type, data, settings.max_upload_bytes)
        if problem:
            rejected.append(BulkFailureResponse(filename=filename, error=problem))
            continue
        accepted.append(AssetUpload(
            data=data,
            filename=filename,
            content_type=upload.content_type or "application/octet-stream",
        ))

    result = await coordinator.bulk_upload(accepted, actor=ctx)
    failed = rejected + [BulkFailureResponse(filename=f.filename, error=f.error) for f in result.failed]
    return BulkUploadResponse(created=result.created, failed=failed)
