"""
Open Library cover lookup.

``find_cover_url()`` searches Open Library for a title (and author when
known) and builds a cover image URL from the first hit's cover id.
Lookups are anonymous and uncached; a failed or empty search simply
means "no image" so the caller can fall back to a generated description.
"""

import logging
from typing import Optional

import httpx

from ..config import Settings, settings as default_settings
from .http_client import HTTPClient

logger = logging.getLogger(__name__)

COVER_URL = "https://covers.openlibrary.org/b/id/{cover_id}-M.jpg"


class OpenLibraryService:
    """Service for searching Open Library"""

    def __init__(self, http_client: HTTPClient, config: Optional[Settings] = None):
        config = config or default_settings
        self.http_client = http_client
        self.base_url = config.openlibrary_base_url.rstrip("/")
        self.timeout = config.openlibrary_timeout

    async def find_cover_url(self, title: str, author: Optional[str] = None) -> Optional[str]:
        """Return a medium-size cover URL for the best search hit, or None."""
        query = f"{title} {author}" if author else title
        url = f"{self.base_url}/search.json"
        try:
            response = await self.http_client.get(
                url, params={"q": query, "limit": 1}, timeout=self.timeout
            )
        except httpx.RequestError as exc:
            logger.warning("Open Library search for %r failed: %s", query, exc)
            return None

        if response.status_code != 200:
            logger.warning("Open Library search for %r returned status %s", query, response.status_code)
            return None

        try:
            docs = response.json().get("docs") or []
        except (ValueError, AttributeError):
            logger.warning("Open Library returned malformed JSON for %r", query)
            return None

        if not isinstance(docs, list) or not docs or not isinstance(docs[0], dict):
            return None
        cover_id = docs[0].get("cover_i")
        if not cover_id:
            return None
        return COVER_URL.format(cover_id=cover_id)
