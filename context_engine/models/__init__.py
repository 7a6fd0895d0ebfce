# context_engine/models/__init__.py
"""Data models"""

from .requests import ContentSearchRequest, FormatRequest
from .responses import (
    SearchResponse,
    ContentSearchResult,
    ServiceStats,
    ConnectionStatus,
    FormattedContext,
    ErrorResponse
)
from .internal import (
    ContentEntry,
    EntryMetadata,
    ExtractedDocument,
    MatchMode,
    MatchOptions,
    ScoreBreakdown,
    ScoredResult,
    FetchResult,
    CacheStats,
    ChatMessage,
    MessageRole
)

__all__ = [
    "ContentSearchRequest",
    "FormatRequest",
    "SearchResponse",
    "ContentSearchResult",
    "ServiceStats",
    "ConnectionStatus",
    "FormattedContext",
    "ErrorResponse",
    "ContentEntry",
    "EntryMetadata",
    "ExtractedDocument",
    "MatchMode",
    "MatchOptions",
    "ScoreBreakdown",
    "ScoredResult",
    "FetchResult",
    "CacheStats",
    "ChatMessage",
    "MessageRole"
]
