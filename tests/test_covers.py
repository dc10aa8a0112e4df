import asyncio

from booksnap.book import Book
from booksnap.covers import SOURCE_AI_GENERATED, SOURCE_OPEN_LIBRARY, CoverResolver, CoverResult
from booksnap.services.hugging_face_service import CoverDescription


def _resolve(resolver, book):
    return asyncio.run(resolver.resolve(book))


def test_prefers_open_library_image(cover_lookup, cover_describer):
    cover_lookup.cover_url = "https://covers.openlibrary.org/b/id/7-M.jpg"
    result = _resolve(CoverResolver(cover_lookup, cover_describer), Book(id="1", title="Emma", author="Jane Austen"))

    assert result == CoverResult(source=SOURCE_OPEN_LIBRARY, cover_url="https://covers.openlibrary.org/b/id/7-M.jpg")
    assert cover_describer.calls == []


def test_falls_back_to_generated_description(cover_lookup, cover_describer):
    cover_describer.description = CoverDescription(description="Muted watercolor of a country house.", confidence=0.65)
    result = _resolve(CoverResolver(cover_lookup, cover_describer), Book(id="1", title="Emma"))

    assert result.source == SOURCE_AI_GENERATED
    assert result.cover_url is None
    assert result.description == "Muted watercolor of a country house."
    assert result.confidence == 0.65
    assert cover_lookup.calls == [("Emma", None)]


def test_description_failure_yields_zero_confidence(cover_lookup, cover_describer):
    cover_describer.fail = True
    result = _resolve(CoverResolver(cover_lookup, cover_describer), Book(id="1", title="Emma"))

    assert result.to_dict() == {"source": SOURCE_AI_GENERATED, "confidence": 0.0}


def test_to_dict_omits_missing_fields():
    assert CoverResult(source=SOURCE_OPEN_LIBRARY, cover_url="u").to_dict() == {
        "source": "openlibrary",
        "coverUrl": "u",
    }
    assert CoverResult(source=SOURCE_AI_GENERATED, description="d", confidence=0.5).to_dict() == {
        "source": "ai-generated",
        "description": "d",
        "confidence": 0.5,
    }
