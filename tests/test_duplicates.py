import pytest

from booksnap.duplicates import check_duplicate


@pytest.fixture
def dune(lib):
    return lib.create_book("Dune", author="Frank Herbert")


def test_title_match_ignores_case_and_whitespace(lib, dune):
    result = check_duplicate("dune ", None, lib.list_books())
    assert result.is_duplicate is True
    assert result.matches == [dune]


def test_title_alone_triggers_match(lib, dune):
    result = check_duplicate("Dune", "Someone Else", lib.list_books())
    assert result.is_duplicate is True
    assert result.matches == [dune]


def test_different_title_is_not_duplicate(lib, dune):
    result = check_duplicate("Dune 2", None, lib.list_books())
    assert result.is_duplicate is False
    assert result.matches == []


def test_author_only_match_is_not_duplicate(lib, dune):
    result = check_duplicate("Children of Dune", "Frank Herbert", lib.list_books())
    assert result.is_duplicate is False


def test_matches_keep_newest_first_order(lib):
    older = lib.create_book("Emma", author="Jane Austen")
    lib.create_book("Persuasion")
    newer = lib.create_book("  EMMA", is_read=True)

    result = check_duplicate("emma", "", lib.list_books())
    assert result.matches == [newer, older]


def test_empty_store(lib):
    result = check_duplicate("Anything", "Anyone", lib.list_books())
    assert result.is_duplicate is False
    assert result.matches == []


def test_check_is_pure(lib, dune):
    books = lib.list_books()
    first = check_duplicate("DUNE", "frank herbert", books)
    second = check_duplicate("DUNE", "frank herbert", books)
    assert first == second
    assert lib.list_books() == books


def test_to_dict_uses_wire_names(lib, dune):
    payload = check_duplicate("Dune", None, lib.list_books()).to_dict()
    assert payload["isDuplicate"] is True
    assert payload["matches"][0]["id"] == dune.id
    assert payload["matches"][0]["isRead"] is False
