"""
Core data models for MemeHub.

Attributes are snake_case in Python; the JSON and MongoDB form is camelCase
(``imageUrl``, ``editedByUsers``...) so stored documents keep the layout the
frontend already speaks.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from memehub.core.utils import generate_id, utc_now

MAX_TITLE_LENGTH = 200
MAX_TAGS = 10


def parse_tags(value: Any) -> list[str]:
    """
    Normalize tags from a list or a comma-separated string.

    Tags are stripped, empty tags dropped, and only the first
    ``MAX_TAGS`` are kept.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        raise ValueError("tags must be a list or a comma-separated string")

    tags = []
    for tag in value:
        if not isinstance(tag, str):
            raise ValueError("each tag must be a string")
        tag = tag.strip()
        if tag:
            tags.append(tag)
    return tags[:MAX_TAGS]


class MemeHubModel(BaseModel):
    """Base model: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_document(self) -> dict[str, Any]:
        """Serialize to the camelCase document layout."""
        return self.model_dump(by_alias=True)


# =============================================================================
# Enums
# =============================================================================


class SortBy(str, Enum):
    """Orderings supported by ``RecordStore.list``."""

    RECENT = "recent"  # createdAt desc
    POPULAR = "popular"  # editedByUsers desc, then createdAt desc
    FEATURED = "featured"  # isFeatured desc, then createdAt desc


# =============================================================================
# Meme
# =============================================================================


class EditHistoryEntry(MemeHubModel):
    """Snapshot of a meme taken immediately before a community edit."""

    previous_name: str
    previous_tags: list[str] = Field(default_factory=list)
    edited_at: datetime


class Meme(MemeHubModel):
    """
    A meme record.

    The record points at exactly one live asset via ``image_url``. Whether
    that asset is provider-managed is derived from the URL, never stored.
    """

    id: str = Field(default_factory=generate_id)
    title: str
    tags: list[str] = Field(default_factory=list)
    image_url: str
    created_at: datetime = Field(default_factory=utc_now)

    # Community edit ledger
    edited_by_users: int = Field(0, ge=0)
    last_edited_at: datetime | None = None
    edit_history: list[EditHistoryEntry] = Field(default_factory=list)

    # Moderation
    is_locked: bool = False
    is_featured: bool = False


class MemeDraft(MemeHubModel):
    """User-supplied metadata for a new meme."""

    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)
    tags: list[str] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("tags", mode="before")
    @classmethod
    def _parse_tags(cls, value: Any) -> list[str]:
        return parse_tags(value)


class MemeFields(MemeDraft):
    """Everything ``RecordStore.create`` needs: metadata plus the live asset URL."""

    image_url: str = Field(min_length=1)


class MemeEdit(MemeDraft):
    """A community edit of title and tags."""
    pass


class MemeUpdate(MemeHubModel):
    """
    Partial admin update (rename, lock, feature).

    Only fields explicitly set are written; history and counters are
    never touched through this path.
    """

    title: str | None = Field(None, min_length=1, max_length=MAX_TITLE_LENGTH)
    tags: list[str] | None = None
    image_url: str | None = None
    is_locked: bool | None = None
    is_featured: bool | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("tags", mode="before")
    @classmethod
    def _parse_tags(cls, value: Any) -> list[str] | None:
        if value is None:
            return None
        return parse_tags(value)

    def changes(self) -> dict[str, Any]:
        """Explicitly set fields, keyed by attribute name."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class MemeQuery(MemeHubModel):
    """Filter, ordering and page for ``RecordStore.list``."""

    search: str | None = None
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)
    sort_by: SortBy = SortBy.RECENT

    @field_validator("search", mode="before")
    @classmethod
    def _blank_search_is_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


# =============================================================================
# Admin
# =============================================================================


class AdminRecord(MemeHubModel):
    """An admin account. Credentials are checked by the auth layer only."""

    id: str = Field(default_factory=generate_id)
    username: str = Field(min_length=3)
    password_hash: str
    role: str = "admin"
    created_at: datetime = Field(default_factory=utc_now)
