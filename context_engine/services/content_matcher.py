# context_engine/services/content_matcher.py
import asyncio
import difflib
import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from context_engine.models.internal import (
    ContentEntry,
    ExtractedDocument,
    MatchMode,
    MatchOptions,
    ScoredResult
)
from context_engine.services.text_extractor import TextExtractor, entry_content_type
from context_engine.services.relevance_scorer import RelevanceScorer
from context_engine.core.exceptions import ScoringException, SearchCancelledException

logger = logging.getLogger(__name__)

# Yield to the event loop after this many scored entries
YIELD_EVERY = 25


class ContentMatcher:
    def __init__(
        self,
        extractor: Optional[TextExtractor] = None,
        scorer: Optional[RelevanceScorer] = None
    ):
        self.extractor = extractor or TextExtractor()
        self.scorer = scorer or RelevanceScorer()
        self._stats = {
            "batches": 0,
            "total_matches": 0,
            "score_sum": 0.0,
            "processing_time_ms": 0.0
        }

    async def match(
        self,
        query: str,
        entries: List[ContentEntry],
        options: Optional[MatchOptions] = None,
        cancel_event: Optional[asyncio.Event] = None,
        raise_on_error: bool = False
    ) -> List[ScoredResult]:
        """
        Rank entries against the query.

        Returns at most options.max_results results, all scoring at least
        options.relevance_threshold, sorted by score with candidate order
        kept on ties. A scoring failure yields an empty list, or raises
        ScoringException when raise_on_error is set.
        """
        options = options or MatchOptions()

        if not entries:
            return []

        start_time = time.time()
        logger.info(f"🔍 Matching {len(entries)} entries against query: {query[:50]!r}")

        try:
            if options.mode == MatchMode.FUZZY:
                results = await self._fuzzy_match(query, entries, options, cancel_event)
            else:
                results = await self._semantic_match(query, entries, options, cancel_event)
        except (SearchCancelledException, asyncio.CancelledError):
            logger.info(f"Matching abandoned for query: {query[:50]!r}")
            raise
        except Exception as e:
            logger.error(f"❌ Error in content matching: {e}", exc_info=True)
            if raise_on_error:
                raise ScoringException(f"Scoring failed: {e}") from e
            return []

        filtered = [r for r in results if r.relevance_score >= options.relevance_threshold]
        # list.sort is stable, so equal scores keep candidate order
        filtered.sort(key=lambda r: r.relevance_score, reverse=True)
        final_results = filtered[:options.max_results]

        processing_time_ms = (time.time() - start_time) * 1000
        self._record(final_results, processing_time_ms)
        logger.info(
            f"✅ Content matching completed in {processing_time_ms:.1f}ms. "
            f"Found {len(final_results)} relevant results."
        )

        return final_results

    async def _semantic_match(
        self,
        query: str,
        entries: List[ContentEntry],
        options: MatchOptions,
        cancel_event: Optional[asyncio.Event]
    ) -> List[ScoredResult]:
        now = datetime.now(timezone.utc)
        results = []

        for index, entry in enumerate(entries):
            await self._checkpoint(index, cancel_event)

            document = self.extractor.extract(entry)
            relevance_score = self.scorer.score(query, entry, document, options, now=now)

            if relevance_score > 0:
                results.append(self._build_result(entry, document, relevance_score))

        return results

    async def _fuzzy_match(
        self,
        query: str,
        entries: List[ContentEntry],
        options: MatchOptions,
        cancel_event: Optional[asyncio.Event]
    ) -> List[ScoredResult]:
        """Approximate string matching over one composite string per entry"""
        query_norm = " ".join(query.lower().split())
        if len(query_norm) < 2:
            return []

        max_distance = 1.0 - options.relevance_threshold
        results = []

        for index, entry in enumerate(entries):
            await self._checkpoint(index, cancel_event)

            document = self.extractor.extract(entry)
            metadata = document.metadata
            searchable = " ".join([
                metadata.title,
                metadata.description,
                document.searchable_text,
                " ".join(metadata.tags)
            ]).strip()

            similarity = fuzzy_similarity(query_norm, searchable.lower())
            if similarity > 0 and 1.0 - similarity <= max_distance:
                results.append(self._build_result(entry, document, similarity))

        return results

    async def _checkpoint(self, index: int, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise SearchCancelledException("Search cancelled by caller")
        if index and index % YIELD_EVERY == 0:
            await asyncio.sleep(0)

    @staticmethod
    def _build_result(entry: ContentEntry, document: ExtractedDocument, relevance_score: float) -> ScoredResult:
        return ScoredResult(
            entry=entry,
            relevance_score=min(max(relevance_score, 0.0), 1.0),
            content_type=entry_content_type(entry),
            extracted_text=document.searchable_text,
            metadata=document.metadata
        )

    def _record(self, results: List[ScoredResult], processing_time_ms: float) -> None:
        self._stats["batches"] += 1
        self._stats["total_matches"] += len(results)
        self._stats["score_sum"] += sum(r.relevance_score for r in results)
        self._stats["processing_time_ms"] += processing_time_ms

    def get_matching_stats(self) -> Dict[str, float]:
        total = self._stats["total_matches"]
        return {
            "batches": self._stats["batches"],
            "total_matches": total,
            "average_score": self._stats["score_sum"] / total if total else 0.0,
            "processing_time_ms": round(self._stats["processing_time_ms"], 3)
        }


def fuzzy_similarity(query: str, text: str) -> float:
    """
    Best SequenceMatcher ratio between the query and any window of the text
    holding as many words as the query. An exact substring scores 1.0.
    """
    if not query or not text:
        return 0.0
    if query in text:
        return 1.0

    words = text.split()
    window = max(len(query.split()), 1)
    matcher = difflib.SequenceMatcher(autojunk=False)
    matcher.set_seq2(query)

    best = 0.0
    for start in range(max(len(words) - window + 1, 1)):
        candidate = " ".join(words[start:start + window])
        matcher.set_seq1(candidate)
        if matcher.real_quick_ratio() <= best or matcher.quick_ratio() <= best:
            continue
        best = max(best, matcher.ratio())
        if best == 1.0:
            break

    return best
