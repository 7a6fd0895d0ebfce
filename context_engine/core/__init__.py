# context_engine/core/__init__.py

# Only exceptions are re-exported here; import ContextSearchService from
# context_engine.core.context_search directly to avoid circular imports
from .exceptions import (
    SourceUnavailableException,
    ContentFetchException,
    ScoringException,
    SearchCancelledException
)

__all__ = [
    "SourceUnavailableException",
    "ContentFetchException",
    "ScoringException",
    "SearchCancelledException"
]
