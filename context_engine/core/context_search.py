# context_engine/core/context_search.py
import asyncio
import logging
import re
import time
from typing import Any, Dict, List, Optional
from uuid import uuid4

from context_engine.config.settings import settings
from context_engine.models.internal import (
    ChatMessage,
    MatchMode,
    MatchOptions,
    MessageRole,
    ScoredResult
)
from context_engine.models.responses import (
    ConnectionStatus,
    ContentSearchResult,
    SearchResponse,
    ServiceStats
)
from context_engine.services.cache_service import CacheService
from context_engine.services.content_matcher import ContentMatcher
from context_engine.services.content_source import ContentSource
from context_engine.services.context_formatter import ContextFormatter
from context_engine.core.exceptions import (
    ScoringException,
    SearchCancelledException,
    SourceUnavailableException
)

logger = logging.getLogger(__name__)

QUERY_KEY_LENGTH = 50
NON_ALNUM_RE = re.compile(r"[^a-z0-9]")

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant with access to a knowledge base. "
    "Use the following context to provide accurate, relevant responses."
)


def build_cache_key(cache: CacheService, query: str, content_types: List[str], max_results: int, locale: str) -> str:
    """Identical searches map to one key regardless of content type order"""
    normalized_query = NON_ALNUM_RE.sub("_", query.lower())[:QUERY_KEY_LENGTH]
    return cache.create_key(
        "mcp",
        "content_search",
        normalized_query,
        ",".join(sorted(content_types)),
        str(max_results),
        locale.lower()
    )


class ContextSearchService:
    """
    Searches the content source for a user query and turns the ranked
    results into a context block for the LLM.

    Construct once at startup and share; the cache is the only mutable state.
    """

    def __init__(
        self,
        content_source: ContentSource,
        cache: CacheService,
        matcher: Optional[ContentMatcher] = None,
        formatter: Optional[ContextFormatter] = None,
        match_options: Optional[MatchOptions] = None,
        cache_enabled: Optional[bool] = None,
        cache_ttl: Optional[int] = None,
        fetch_timeout: Optional[float] = None,
        default_locale: Optional[str] = None
    ):
        self.content_source = content_source
        self.cache = cache
        self.matcher = matcher or ContentMatcher()
        self.formatter = formatter or ContextFormatter()
        self.match_options = match_options or MatchOptions(
            relevance_threshold=settings.CONTENT_RELEVANCE_THRESHOLD,
            max_results=settings.CONTENT_SEARCH_LIMIT,
            mode=MatchMode.SEMANTIC if settings.ENABLE_SEMANTIC_SEARCH else MatchMode.FUZZY
        )
        self.cache_enabled = settings.CACHE_ENABLED if cache_enabled is None else cache_enabled
        self.cache_ttl = cache_ttl or settings.CACHE_TTL_SECONDS
        self.fetch_timeout = fetch_timeout or settings.CONTENT_FETCH_TIMEOUT
        self.default_locale = default_locale or settings.DEFAULT_LOCALE

    async def search(
        self,
        user_query: str,
        content_types: Optional[List[str]] = None,
        max_results: Optional[int] = None,
        use_cache: bool = True,
        locale: Optional[str] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> ContentSearchResult:
        start_time = time.time()
        request_id = str(uuid4())
        content_types = list(content_types or [])
        max_results = max_results or self.match_options.max_results
        locale = locale or self.default_locale
        use_cache = use_cache and self.cache_enabled

        logger.info(f"🔍 [{request_id}] Content search started for query: {user_query[:50]!r}")

        if not self.content_source.is_ready():
            return ContentSearchResult(
                success=False,
                error="Content source not configured. Please set CONTENTSTACK_API_KEY and CONTENTSTACK_DELIVERY_TOKEN.",
                execution_time_ms=self._elapsed_ms(start_time)
            )

        cache_key = build_cache_key(self.cache, user_query, content_types, max_results, locale)

        if use_cache:
            cached = await self._cache_lookup(cache_key, request_id)
            if cached is not None:
                logger.info(f"💾 [{request_id}] Cache hit for query: {user_query[:50]!r}")
                cached.cache_hit = True
                return ContentSearchResult(
                    success=True,
                    data=cached,
                    cached=True,
                    execution_time_ms=self._elapsed_ms(start_time)
                )

        try:
            fetched = await self._run_with_timeout(
                self.content_source.fetch_entries(user_query, content_types, max_results * 2, locale),
                timeout=timeout or self.fetch_timeout,
                stage_name="content_fetch"
            )
        except asyncio.TimeoutError:
            return ContentSearchResult(
                success=False,
                error="Content source timed out",
                execution_time_ms=self._elapsed_ms(start_time)
            )
        except SourceUnavailableException as e:
            logger.warning(f"[{request_id}] Content source unavailable: {e}")
            return ContentSearchResult(success=False, error=str(e), execution_time_ms=self._elapsed_ms(start_time))
        except Exception as e:
            logger.error(f"❌ [{request_id}] Content fetch failed: {e}", exc_info=True)
            return ContentSearchResult(success=False, error=str(e), execution_time_ms=self._elapsed_ms(start_time))

        logger.info(f"📝 [{request_id}] Found {len(fetched.entries)} entries, matching against query...")

        options = self.match_options.model_copy(update={"max_results": max_results})
        scoring_error = None
        try:
            results = await self.matcher.match(
                user_query,
                fetched.entries,
                options,
                cancel_event=cancel_event,
                raise_on_error=True
            )
        except SearchCancelledException as e:
            logger.info(f"[{request_id}] Search cancelled before completion")
            return ContentSearchResult(success=False, error=str(e), execution_time_ms=self._elapsed_ms(start_time))
        except ScoringException as e:
            # Degrade to "no relevant content" but say why
            results = []
            scoring_error = str(e)

        response = SearchResponse(
            results=results,
            total_count=len(results),
            search_query=user_query,
            execution_time_ms=self._elapsed_ms(start_time),
            cache_hit=False,
            error=scoring_error
        )

        if use_cache and results:
            await self._cache_store(cache_key, response, request_id)

        logger.info(
            f"✅ [{request_id}] Content search completed. Found {len(results)} relevant results "
            f"in {response.execution_time_ms:.1f}ms"
        )

        return ContentSearchResult(
            success=True,
            data=response,
            cached=False,
            execution_time_ms=response.execution_time_ms
        )

    def format_for_prompt(self, results: List[ScoredResult], max_length: Optional[int] = None) -> str:
        return self.formatter.format(results, max_length or settings.MAX_CONTEXT_LENGTH)

    async def enhance_chat_with_content(
        self,
        messages: List[ChatMessage],
        user_query: str,
        content_types: Optional[List[str]] = None,
        max_results: Optional[int] = None,
        max_context_length: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Splice a context block into the conversation's system message.

        Returns {"messages": [...], "results": [...]}. Without relevant
        content the messages come back unchanged and results is empty.
        """
        search_result = await self.search(user_query, content_types=content_types, max_results=max_results)

        if not search_result.success or not search_result.data or not search_result.data.results:
            logger.info("🔍 No relevant content found, proceeding without content enhancement")
            return {"messages": list(messages), "results": []}

        results = search_result.data.results
        context = self.format_for_prompt(results, max_context_length)
        enhancement = {"content_enhanced": True, "content_results_count": len(results)}

        enhanced = list(messages)
        system_index = next(
            (i for i, message in enumerate(enhanced) if message.role == MessageRole.SYSTEM),
            None
        )

        if system_index is not None:
            system_message = enhanced[system_index]
            enhanced[system_index] = system_message.model_copy(update={
                "content": f"{system_message.content}\n\n{context}",
                "metadata": {**(system_message.metadata or {}), **enhancement}
            })
        else:
            enhanced.insert(0, ChatMessage(
                role=MessageRole.SYSTEM,
                content=f"{DEFAULT_SYSTEM_PROMPT}\n\n{context}",
                metadata=enhancement
            ))

        logger.info(f"✨ Enhanced chat with {len(results)} content results")
        return {"messages": enhanced, "results": results}

    async def get_available_content_types(self) -> List[str]:
        if not self.content_source.is_ready():
            return []
        try:
            return await self._run_with_timeout(
                self.content_source.list_content_types(),
                timeout=self.fetch_timeout,
                stage_name="list_content_types"
            )
        except Exception as e:
            logger.error(f"❌ Error fetching content types: {e}")
            return []

    async def get_content_by_type(self, content_type: str, limit: int = 10) -> List[Dict[str, Any]]:
        if not self.content_source.is_ready():
            return []
        try:
            fetched = await self._run_with_timeout(
                self.content_source.fetch_entries("", [content_type], limit, self.default_locale),
                timeout=self.fetch_timeout,
                stage_name="content_by_type"
            )
            return fetched.entries[:limit]
        except Exception as e:
            logger.error(f"❌ Error fetching content by type {content_type}: {e}")
            return []

    async def clear_cache(self) -> bool:
        try:
            cleared = await self.cache.clear()
            logger.info("Content cache cleared")
            return cleared
        except Exception as e:
            logger.error(f"❌ Error clearing content cache: {e}")
            return False

    def stats(self) -> ServiceStats:
        return ServiceStats(
            configured=self.content_source.is_ready(),
            cache_stats=self.cache.stats(),
            matching_stats=self.matcher.get_matching_stats()
        )

    async def test_connection(self) -> ConnectionStatus:
        status = ConnectionStatus(matching=True)
        try:
            if self.content_source.is_ready():
                await self._run_with_timeout(
                    self.content_source.list_content_types(),
                    timeout=self.fetch_timeout,
                    stage_name="connection_test"
                )
                status.contentstack = True
            connected = await self.cache.is_connected()
            status.cache = connected["memory"] or connected["redis"]
            if not status.contentstack:
                status.error = "Contentstack connection failed"
        except Exception as e:
            status.error = str(e)
        return status

    async def shutdown(self):
        try:
            logger.info("Shutting down content search components...")
            await asyncio.gather(
                self.content_source.close(),
                self.cache.close(),
                return_exceptions=True
            )
            logger.info("Content search shutdown completed")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    async def _cache_lookup(self, cache_key: str, request_id: str) -> Optional[SearchResponse]:
        try:
            cached = await self.cache.get(cache_key)
            if cached is None:
                return None
            return SearchResponse.model_validate(cached)
        except Exception as e:
            logger.warning(f"[{request_id}] Cache lookup failed: {e}")
            return None

    async def _cache_store(self, cache_key: str, response: SearchResponse, request_id: str) -> None:
        try:
            await self.cache.set(cache_key, response.model_dump(mode="json"), self.cache_ttl)
        except Exception as e:
            logger.warning(f"[{request_id}] Cache store failed: {e}")

    async def _run_with_timeout(self, coro, timeout: float, stage_name: str):
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"Stage '{stage_name}' timed out after {timeout}s")
            raise
        except Exception as e:
            logger.error(f"Stage '{stage_name}' failed: {str(e)}")
            raise

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return (time.time() - start_time) * 1000
