import itertools
import logging
import uuid
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from .book import Book, User
from .duplicates import DuplicateCheckResult, check_duplicate
from .exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("title", "author", "is_read")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Library:
    """Manages the in-memory collection of books and users.

    Every public method takes the same re-entrant lock, so a call either
    applies completely or not at all, even when FastAPI runs handlers on
    its worker threads. Books and users handed out are copies.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or _utcnow
        self._lock = RLock()
        self._books: Dict[str, Book] = {}
        self._users: Dict[str, User] = {}
        # Insertion sequence per book id, used to order equal timestamps.
        self._sequence: Dict[str, int] = {}
        self._counter = itertools.count()
        self._issued_ids: Set[str] = set()

    # ------------------------- Core operations ------------------------- #
    def create_book(self, title: str, author: Optional[str] = None, is_read: bool = False) -> Book:
        """Add a new book and return it with its generated id and timestamp."""
        self._validate_title(title)
        with self._lock:
            book = Book(
                id=self._new_id(),
                title=title,
                author=author,
                is_read=bool(is_read),
                created_at=self._clock(),
            )
            self._books[book.id] = book
            self._sequence[book.id] = next(self._counter)
            logger.debug("Created book %s (%r)", book.id, book.title)
            return book.copy()

    def create_book_if_new(
        self, title: str, author: Optional[str] = None, is_read: bool = False
    ) -> Tuple[Optional[Book], DuplicateCheckResult]:
        """Check for duplicates and create the book in one step.

        Returns ``(None, result)`` when the candidate is already owned,
        otherwise the new book and a negative result.
        """
        self._validate_title(title)
        with self._lock:
            result = check_duplicate(title, author, self.list_books())
            if result.is_duplicate:
                return None, result
            return self.create_book(title, author=author, is_read=is_read), result

    def list_books(self, read: Optional[bool] = None) -> List[Book]:
        """All books, newest first. Pass ``read`` to keep only read or unread books."""
        with self._lock:
            books = sorted(
                self._books.values(),
                key=lambda b: (b.created_at, self._sequence[b.id]),
                reverse=True,
            )
            if read is not None:
                books = [b for b in books if b.is_read == read]
            return [b.copy() for b in books]

    def find_book(self, book_id: str) -> Optional[Book]:
        with self._lock:
            book = self._books.get(book_id)
            return book.copy() if book else None

    def update_book(self, book_id: str, changes: Mapping[str, Any]) -> Book:
        """Merge the supplied fields into a book.

        Only ``title``, ``author`` and ``is_read`` are applied; any other
        key (including ``id`` and ``created_at``) is ignored.
        """
        with self._lock:
            book = self._books.get(book_id)
            if book is None:
                raise NotFoundError("Book not found")

            updates = {k: v for k, v in changes.items() if k in _UPDATABLE_FIELDS}
            if "title" in updates:
                self._validate_title(updates["title"])
            if "is_read" in updates:
                updates["is_read"] = bool(updates["is_read"])

            for key, value in updates.items():
                setattr(book, key, value)
            logger.debug("Updated book %s: %s", book_id, sorted(updates))
            return book.copy()

    def remove_book(self, book_id: str) -> bool:
        """Delete a book. Unknown ids are ignored; returns whether anything was removed."""
        with self._lock:
            removed = self._books.pop(book_id, None)
            self._sequence.pop(book_id, None)
            if removed:
                logger.debug("Removed book %s", book_id)
            return removed is not None

    def search_books(self, query: str) -> List[Book]:
        """Search for books by title or author (case-insensitive substring)."""
        needle = (query or "").lower()
        return [
            b for b in self.list_books()
            if needle in b.title.lower() or (b.author is not None and needle in b.author.lower())
        ]

    def get_statistics(self) -> Dict[str, int]:
        """Get library statistics."""
        books = self.list_books()
        read_books = sum(1 for b in books if b.is_read)
        authors = {b.author.strip().lower() for b in books if b.author and b.author.strip()}
        return {
            "total_books": len(books),
            "read_books": read_books,
            "unread_books": len(books) - read_books,
            "unique_authors": len(authors),
        }

    # ------------------------- Users ------------------------- #
    def create_user(self, username: str, password: str) -> User:
        with self._lock:
            user = User(id=self._new_id(), username=username, password=password)
            self._users[user.id] = user
            return user.copy()

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return user.copy() if user else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return user.copy()
            return None

    # ------------------------- Utilities ------------------------- #
    def _new_id(self) -> str:
        while True:
            new_id = str(uuid.uuid4())
            if new_id not in self._issued_ids:
                self._issued_ids.add(new_id)
                return new_id

    @staticmethod
    def _validate_title(title: Any) -> None:
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Title cannot be empty.")
