"""Cover resolution for stored books.

A cover image from Open Library is preferred; when none is found a
generated description is requested from the AI text service. Nothing is
cached or retried; the consumer decides how to render the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from .book import Book
from .exceptions import ExternalServiceError
from .services.hugging_face_service import BookDetails, CoverDescription

logger = logging.getLogger(__name__)

SOURCE_OPEN_LIBRARY = "openlibrary"
SOURCE_AI_GENERATED = "ai-generated"


class DetailsExtractor(Protocol):
    async def extract_details(self, image: bytes, content_type: str = ...) -> BookDetails: ...


class CoverLookup(Protocol):
    async def find_cover_url(self, title: str, author: Optional[str] = None) -> Optional[str]: ...


class CoverDescriber(Protocol):
    async def describe_cover(self, title: str, author: Optional[str] = None) -> CoverDescription: ...


@dataclass
class CoverResult:
    source: str
    cover_url: Optional[str] = None
    description: Optional[str] = None
    confidence: Optional[float] = None

    def to_dict(self) -> dict:
        payload: dict = {"source": self.source}
        if self.cover_url is not None:
            payload["coverUrl"] = self.cover_url
        if self.description is not None:
            payload["description"] = self.description
        if self.confidence is not None:
            payload["confidence"] = self.confidence
        return payload


class CoverResolver:
    """Finds something to show for a book's cover."""

    def __init__(self, lookup: CoverLookup, describer: CoverDescriber) -> None:
        self.lookup = lookup
        self.describer = describer

    async def resolve(self, book: Book) -> CoverResult:
        cover_url = await self.lookup.find_cover_url(book.title, book.author)
        if cover_url:
            return CoverResult(source=SOURCE_OPEN_LIBRARY, cover_url=cover_url)

        try:
            generated = await self.describer.describe_cover(book.title, book.author)
        except ExternalServiceError as exc:
            logger.warning("Cover description for %r unavailable: %s", book.title, exc)
            return CoverResult(source=SOURCE_AI_GENERATED, confidence=0.0)
        return CoverResult(
            source=SOURCE_AI_GENERATED,
            description=generated.description,
            confidence=generated.confidence,
        )
