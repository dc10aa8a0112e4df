from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from booksnap.api import create_app
from booksnap.config import Settings
from booksnap.covers import CoverResolver
from booksnap.library import Library
from booksnap.services.hugging_face_service import BookDetails, CoverDescription, HuggingFaceAPIError


class FakeClock:
    """Deterministic clock; advances by ``step`` on every call."""

    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(seconds=1)):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


class FakeExtractor:
    def __init__(self, result: Optional[BookDetails] = None, error: Optional[Exception] = None):
        self.result = result or BookDetails(title="Dune", author="Frank Herbert", confidence=0.93)
        self.error = error
        self.calls = []

    async def extract_details(self, image: bytes, content_type: str = "image/jpeg") -> BookDetails:
        self.calls.append((image, content_type))
        if self.error:
            raise self.error
        return self.result


class FakeCoverLookup:
    def __init__(self, cover_url: Optional[str] = None):
        self.cover_url = cover_url
        self.calls = []

    async def find_cover_url(self, title: str, author: Optional[str] = None) -> Optional[str]:
        self.calls.append((title, author))
        return self.cover_url


class FakeCoverDescriber:
    def __init__(self, description: Optional[CoverDescription] = None, fail: bool = False):
        self.description = description or CoverDescription(description="A red desert at dusk.", confidence=0.8)
        self.fail = fail
        self.calls = []

    async def describe_cover(self, title: str, author: Optional[str] = None) -> CoverDescription:
        self.calls.append((title, author))
        if self.fail:
            raise HuggingFaceAPIError("AI service is not configured")
        return self.description


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lib(clock):
    return Library(clock=clock)


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def cover_lookup():
    return FakeCoverLookup()


@pytest.fixture
def cover_describer():
    return FakeCoverDescriber()


@pytest.fixture
def test_settings():
    return Settings(hugging_face_api_key="hf_test", max_upload_size=1024)


@pytest.fixture
def client(lib, extractor, cover_lookup, cover_describer, test_settings):
    app = create_app(
        library=lib,
        config=test_settings,
        extractor=extractor,
        cover_resolver=CoverResolver(cover_lookup, cover_describer),
    )
    with TestClient(app) as test_client:
        yield test_client
