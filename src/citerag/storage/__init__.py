"""Persistent storage for citerag."""

from citerag.storage.store import SQLiteRepository

__all__ = ["SQLiteRepository"]
