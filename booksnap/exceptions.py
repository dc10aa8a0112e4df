class BookSnapError(Exception):
    """Base class for all booksnap errors."""


class ValidationError(BookSnapError):
    """Malformed or missing required input."""


class NotFoundError(BookSnapError):
    """Unknown book or user id."""


class DuplicateBookError(BookSnapError):
    """Raised by the duplicate-checked create when the candidate is already owned."""

    def __init__(self, message: str, matches=None) -> None:
        super().__init__(message)
        self.matches = list(matches or [])


class ExternalServiceError(BookSnapError):
    """An external service (AI vendor, cover lookup) failed or is unavailable."""