"""booksnap - personal book-library tracker

This package contains:
- HTTP API (api.py)
- In-memory book store (library.py)
- Duplicate detection (duplicates.py)
- Cover resolution (covers.py)
- CLI interface (main.py)
- Data models (book.py)
"""

__version__ = "1.0.0"
