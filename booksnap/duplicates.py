"""Duplicate detection for candidate books.

A candidate is a ``(title, author)`` pair that is not stored yet, for
example the result of a cover scan. ``check_duplicate`` compares it with
the books already in the library and reports every book the user
already owns under that title.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .book import Book


@dataclass
class DuplicateCheckResult:
    is_duplicate: bool
    matches: List[Book] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "isDuplicate": self.is_duplicate,
            "matches": [b.to_dict() for b in self.matches],
        }


def _norm(s: Optional[str]) -> str:
    return (s or "").strip().lower()


def _is_match(candidate_title: str, candidate_author: Optional[str], book: Book) -> bool:
    title_match = _norm(book.title) == _norm(candidate_title)
    author_match = (
        _norm(book.author) == _norm(candidate_author)
        if candidate_author and book.author is not None
        else False
    )
    # Reduces to title_match; the author term never changes the outcome.
    return title_match or (title_match and author_match)


def check_duplicate(
    title: str,
    author: Optional[str],
    books: Iterable[Book],
) -> DuplicateCheckResult:
    """Return every book in ``books`` that the candidate duplicates.

    ``books`` is expected in the library's default order (newest first);
    matches keep that order. The books are never modified.
    """
    matches = [b for b in books if _is_match(title, author, b)]
    return DuplicateCheckResult(is_duplicate=len(matches) > 0, matches=matches)
