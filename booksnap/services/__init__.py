"""booksnap - Services Package

This package contains service modules for external integrations:
- Hugging Face inference (cover text extraction, cover descriptions)
- Open Library cover search
- HTTP client shared by both
"""
