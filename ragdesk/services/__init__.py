"""Business services: hybrid search, answer synthesis and usage metering."""

from ragdesk.services.chat_service import ChatService
from ragdesk.services.search_service import HybridSearchEngine, SearchWeights
from ragdesk.services.usage_meter import UsageMeter

__all__ = [
    "ChatService",
    "HybridSearchEngine",
    "SearchWeights",
    "UsageMeter",
]
