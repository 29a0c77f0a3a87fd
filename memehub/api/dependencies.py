"""
FastAPI dependencies.

The storage provider and coordinator are built once in the app lifespan and
kept on ``app.state``; routes receive them through these dependencies.
"""

from __future__ import annotations

from fastapi import Request

from memehub.config import Settings
from memehub.media.lifecycle import MediaLifecycleCoordinator
from memehub.storage.base import StorageProvider


def get_storage(request: Request) -> StorageProvider:
    return request.app.state.storage


def get_coordinator(request: Request) -> MediaLifecycleCoordinator:
    return request.app.state.coordinator


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
