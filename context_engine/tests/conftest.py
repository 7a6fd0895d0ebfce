# tests/conftest.py
import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from context_engine.models.internal import FetchResult, MatchOptions
from context_engine.services.cache_service import CacheService
from context_engine.services.content_matcher import ContentMatcher
from context_engine.core.context_search import ContextSearchService
from context_engine.core.exceptions import SourceUnavailableException


def iso(days_ago: float = 0.0) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days_ago)).isoformat()


class FakeClock:
    """Manually advanced monotonic clock for cache tests"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeContentSource:
    """In-memory content source that records every fetch"""

    def __init__(self, entries: Optional[List[Dict[str, Any]]] = None, ready: bool = True):
        self.entries = entries or []
        self.ready = ready
        self.fetch_calls: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None
        self.delay: float = 0.0
        self.closed = False

    def is_ready(self) -> bool:
        return self.ready

    async def fetch_entries(self, query, content_types, limit, locale) -> FetchResult:
        self.fetch_calls.append({
            "query": query,
            "content_types": list(content_types),
            "limit": limit,
            "locale": locale
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        entries = [
            e for e in self.entries
            if not content_types or e.get("content_type_uid") in content_types
        ]
        return FetchResult(entries=entries[:limit], total_count=len(entries))

    async def list_content_types(self) -> List[str]:
        if self.error:
            raise self.error
        return sorted({e["content_type_uid"] for e in self.entries if e.get("content_type_uid")})

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def faq_entry():
    return {
        "uid": "blt001",
        "content_type_uid": "faq",
        "title": "Product FAQ",
        "tags": ["faq", "product"],
        "body": "How do I return an item?",
        "updated_at": iso(0),
    }


@pytest.fixture
def sample_entries(faq_entry):
    return [
        faq_entry,
        {
            "uid": "blt002",
            "content_type_uid": "article",
            "title": "Return policy explained",
            "description": "Everything about our return policy and refunds.",
            "body": {"html": "<p>Items can be <b>returned</b> within 30 days.</p><p>Refunds take 5 days.</p>"},
            "tags": ["returns", "policy"],
            "updated_at": iso(10),
        },
        {
            "uid": "blt003",
            "content_type_uid": "page",
            "title": "Careers",
            "body": "Join our engineering team and build great software.",
            "updated_at": iso(400),
        },
        {
            "uid": "blt004",
            "content_type_uid": "blog_post",
            "title": "Shipping updates",
            "summary": "International shipping now reaches more countries.",
            "body": {"markdown": "# Shipping\nWe ship **worldwide**. See [our rates](https://example.com/rates)."},
            "updated_at": iso(30),
        },
    ]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
async def cache():
    cache = CacheService(max_items=100, default_ttl=3600, check_period=600, redis_url="")
    yield cache
    await cache.close()


@pytest.fixture
def content_source(sample_entries):
    return FakeContentSource(sample_entries)


@pytest.fixture
async def search_service(content_source, cache):
    service = ContextSearchService(
        content_source=content_source,
        cache=cache,
        matcher=ContentMatcher(),
        match_options=MatchOptions(relevance_threshold=0.3, max_results=10),
        cache_enabled=True,
        cache_ttl=3600,
        fetch_timeout=2,
        default_locale="en-us"
    )
    yield service


@pytest.fixture
def unavailable_error():
    return SourceUnavailableException("Contentstack unreachable")


@pytest.fixture
def source_factory():
    """Build extra fake content sources inside a test"""
    return FakeContentSource
