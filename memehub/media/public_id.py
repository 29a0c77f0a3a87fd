"""
Derive the asset-store identifier from a delivered asset URL.

Cloudinary delivery URLs look like::

    https://res.cloudinary.com/<cloud>/image/upload/v1712345678/memes/abc123.jpg

and the public id needed to delete that asset is ``memes/abc123``. The
version segment is optional and must not be mistaken for a folder.
"""

from __future__ import annotations

import re

from memehub.core.errors import MalformedProviderUrl

UPLOAD_MARKER = "/upload/"
PROVIDER_HOST = "res.cloudinary.com"

_VERSION_SEGMENT = re.compile(r"^v\d+/")


def extract_provider_id(
    url: str,
    *,
    marker: str = UPLOAD_MARKER,
    provider_host: str = PROVIDER_HOST,
) -> str | None:
    """
    Extract the provider id from an asset URL.

    Args:
        url: The asset URL stored on a meme record
        marker: Path marker that precedes the id in provider URLs
        provider_host: Host that identifies provider-managed URLs

    Returns:
        The provider id, or None if the URL is not provider-managed
        (locally or third-party hosted images have nothing to delete).

    Raises:
        MalformedProviderUrl: The URL is provider-managed but does not
            match ``.../upload/<optional version>/<id>.<ext>``.
    """
    if marker not in url:
        if provider_host and provider_host in url:
            raise MalformedProviderUrl(url, "missing upload path")
        return None

    parts = url.split(marker)
    if len(parts) != 2:
        raise MalformedProviderUrl(url, "upload path appears more than once")

    remainder = parts[1].split("#", 1)[0].split("?", 1)[0]

    # Extension: everything after the last dot of the last path segment
    dot = remainder.rfind(".")
    if dot != -1 and "/" not in remainder[dot:]:
        remainder = remainder[:dot]

    remainder = _VERSION_SEGMENT.sub("", remainder, count=1)

    provider_id = remainder.strip("/")
    if not provider_id:
        raise MalformedProviderUrl(url, "empty public id")
    return provider_id
