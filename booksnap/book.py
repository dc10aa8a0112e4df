from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Book:
    """Represents a single book in the library."""

    id: str
    title: str
    author: Optional[str] = None
    is_read: bool = False
    created_at: Optional[datetime] = None

    def copy(self) -> "Book":
        return dataclasses.replace(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isRead": self.is_read,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class User:
    """A library user. Carries no behavior beyond lookup."""

    id: str
    username: str
    password: str

    def copy(self) -> "User":
        return dataclasses.replace(self)
