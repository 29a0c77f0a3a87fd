"""
FastAPI application for MemeHub.

``create_app`` builds the storage backends once, wires the lifecycle
coordinator onto ``app.state`` and maps MemeHub errors to HTTP statuses.
Run with ``memehub serve`` or ``uvicorn memehub.api.app:create_app --factory``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from memehub import __version__
from memehub.auth import auth_router
from memehub.config import Settings, get_settings
from memehub.core.errors import (
    AssetUploadFailed,
    MemeLocked,
    RecordNotFound,
    RecordStoreError,
)
from memehub.integrations.sentry import init_sentry
from memehub.media.lifecycle import MediaLifecycleCoordinator
from memehub.api.memes import router as memes_router
from memehub.storage import StorageProvider, create_storage
from memehub.storage.memory import LocalAssetStore

logger = logging.getLogger(__name__)


# =============================================================================
# Error handlers
# =============================================================================


async def record_not_found(request: Request, exc: RecordNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"message": "Meme not found"})


async def meme_locked(request: Request, exc: MemeLocked) -> JSONResponse:
    return JSONResponse(
        status_code=423,
        content={"message": "This meme is locked and cannot be edited"},
    )


async def asset_upload_failed(request: Request, exc: AssetUploadFailed) -> JSONResponse:
    logger.error(f"Asset upload failed: {exc}")
    return JSONResponse(status_code=502, content={"message": "Image upload failed"})


async def record_store_error(request: Request, exc: RecordStoreError) -> JSONResponse:
    logger.exception(f"Record store error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"message": "Database error"})


async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Validation failed", "errors": errors})


# =============================================================================
# App Setup
# =============================================================================


def create_app(
    settings: Settings | None = None,
    storage: StorageProvider | None = None,
) -> FastAPI:
    """
    Build the API.

    ``storage`` is built from ``settings.storage_config()`` unless given;
    tests inject in-memory backends this way.
    """
    settings = settings or get_settings()
    storage = storage or create_storage(settings.storage_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if init_sentry(settings):
            logger.info("Sentry error tracking enabled")

        await storage.initialize()
        app.state.settings = settings
        app.state.storage = storage
        app.state.coordinator = MediaLifecycleCoordinator(
            records=storage.records,
            assets=storage.assets,
            bulk_title=settings.bulk_placeholder_title,
            bulk_tag=settings.bulk_placeholder_tag,
        )
        logger.info(f"MemeHub API starting in {settings.environment} mode")

        yield

        await storage.close()
        logger.info("MemeHub API shutting down")

    app = FastAPI(
        title="MemeHub API",
        description="Upload, search, edit and moderate memes",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RecordNotFound, record_not_found)
    app.add_exception_handler(MemeLocked, meme_locked)
    app.add_exception_handler(AssetUploadFailed, asset_upload_failed)
    app.add_exception_handler(RecordStoreError, record_store_error)
    app.add_exception_handler(RequestValidationError, request_validation_error)

    app.include_router(auth_router)
    app.include_router(memes_router)

    # Local development images are served by the API itself
    if isinstance(storage.assets, LocalAssetStore):
        app.mount(
            storage.assets.public_url,
            StaticFiles(directory=storage.assets.base_path),
            name="uploads",
        )

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": __version__}

    return app
