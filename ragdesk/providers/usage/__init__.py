"""Usage recorder implementations."""

from ragdesk.providers.usage.sqlite_usage_recorder import SQLiteUsageRecorder

__all__ = ["SQLiteUsageRecorder"]
