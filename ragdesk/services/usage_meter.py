"""Fire-and-forget usage metering for generated answers."""

from __future__ import annotations

import asyncio

import structlog

from ragdesk.interfaces.usage_recorder import IUsageRecorder
from ragdesk.models.chat import TokenUsage, UsageRecord
from ragdesk.utils.concurrency import fire_and_forget

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_COST_PER_TOKEN = 0.002 / 1000


class UsageMeter:
    """Prices token usage and hands the record to the usage collaborator.

    :meth:`record` returns immediately; the write runs as a background
    task and a failure is only logged.
    """

    def __init__(self, recorder: IUsageRecorder, cost_per_token: float = DEFAULT_COST_PER_TOKEN) -> None:
        self._recorder = recorder
        self._cost_per_token = cost_per_token

    def build_record(self, user_id: str, organization_id: str, usage: TokenUsage) -> UsageRecord:
        return UsageRecord(
            user_id=user_id,
            organization_id=organization_id,
            tokens_used=usage.total_tokens,
            api_calls=1,
            cost=usage.total_tokens * self._cost_per_token,
        )

    def record(self, user_id: str, organization_id: str, usage: TokenUsage) -> asyncio.Task:
        """Schedule the usage write and return the background task."""
        record = self.build_record(user_id, organization_id, usage)
        return fire_and_forget(
            self._recorder.record(record), name="usage_record", logger=logger
        )
