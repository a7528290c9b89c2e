"""Indexing state machine and status broadcasting."""

from ragdesk.pipeline.status_tracker import IndexingStatusTracker

__all__ = ["IndexingStatusTracker"]
