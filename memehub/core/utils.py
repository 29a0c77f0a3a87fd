"""
Shared utility functions for MemeHub.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone


def generate_id() -> str:
    """Generate an opaque, never-reused record ID."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """
    Get current UTC datetime at millisecond precision.

    BSON dates only carry milliseconds, so both record backends use this
    clock to sort identically.
    """
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)
