"""Abstract base class for the usage/billing collaborator.

The chat service hands one :class:`~ragdesk.models.chat.UsageRecord` per
generated answer to an implementation of this interface.  Recording runs
in the background; a failure is logged and never reaches the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragdesk.models.chat import UsageRecord


class IUsageRecorder(ABC):
    """Contract for persisting usage metering records."""

    @abstractmethod
    async def record(self, usage: UsageRecord) -> None:
        """Persist *usage*.

        Raises
        ------
        ragdesk.utils.errors.UsageRecordingError
            If the write fails.
        """

    @abstractmethod
    async def total_for_organization(self, organization_id: str) -> tuple[int, float]:
        """Return ``(tokens_used, cost)`` summed over all records of an organization."""
