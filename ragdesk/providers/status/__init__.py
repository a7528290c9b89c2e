"""Indexing status store implementations."""

from ragdesk.providers.status.sqlite_status_store import SQLiteIndexingStatusStore

__all__ = ["SQLiteIndexingStatusStore"]
