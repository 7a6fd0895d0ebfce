# tests/services/test_content_matcher.py
import asyncio
import pytest

from context_engine.models.internal import MatchMode, MatchOptions
from context_engine.services.content_matcher import ContentMatcher, fuzzy_similarity
from context_engine.services.relevance_scorer import RelevanceScorer
from context_engine.core.exceptions import ScoringException, SearchCancelledException


class CountingScorer(RelevanceScorer):
    def __init__(self):
        self.calls = 0

    def score(self, *args, **kwargs):
        self.calls += 1
        return super().score(*args, **kwargs)


class ExplodingScorer(RelevanceScorer):
    def score(self, *args, **kwargs):
        raise RuntimeError("scorer blew up")


class FixedScorer(RelevanceScorer):
    """Scores each entry by its 'score' field"""

    def score(self, query, entry, document, options=None, now=None):
        return entry["score"]


class TestSemanticMatching:
    """Test ranking, thresholding and capping"""

    async def test_empty_entries_skip_scoring(self):
        scorer = CountingScorer()
        matcher = ContentMatcher(scorer=scorer)
        assert await matcher.match("anything", []) == []
        assert scorer.calls == 0

    async def test_relevant_entries_ranked(self, sample_entries):
        matcher = ContentMatcher()
        results = await matcher.match("return policy", sample_entries, MatchOptions(relevance_threshold=0.3))

        assert [r.entry["uid"] for r in results] == ["blt002", "blt001"]
        assert results[0].metadata.title == "Return policy explained"
        assert results[0].content_type == "article"
        assert "returned within 30 days" in results[0].extracted_text

    async def test_threshold_cap_and_order(self):
        entries = [{"uid": str(i), "score": s} for i, s in enumerate([0.2, 0.9, 0.5, 0.7, 0.35, 0.95])]
        matcher = ContentMatcher(scorer=FixedScorer())

        results = await matcher.match("q", entries, MatchOptions(relevance_threshold=0.3, max_results=3))

        scores = [r.relevance_score for r in results]
        assert scores == [0.95, 0.9, 0.7]
        assert all(s >= 0.3 for s in scores)

    async def test_ties_keep_candidate_order(self):
        entries = [{"uid": uid, "score": 0.5} for uid in ["c", "a", "d", "b"]]
        entries.insert(2, {"uid": "top", "score": 0.8})
        matcher = ContentMatcher(scorer=FixedScorer())

        results = await matcher.match("q", entries, MatchOptions(relevance_threshold=0.1))

        assert [r.entry["uid"] for r in results] == ["top", "c", "a", "d", "b"]

    async def test_zero_threshold_keeps_positive_scores_only(self):
        entries = [{"uid": "zero", "score": 0.0}, {"uid": "low", "score": 0.01}]
        matcher = ContentMatcher(scorer=FixedScorer())

        results = await matcher.match("q", entries, MatchOptions(relevance_threshold=0.0))

        assert [r.entry["uid"] for r in results] == ["low"]

    async def test_empty_query_matches_nothing(self, sample_entries):
        results = await ContentMatcher().match("", sample_entries, MatchOptions(relevance_threshold=0.3))
        assert results == []

    async def test_scoring_failure_returns_empty(self, sample_entries):
        matcher = ContentMatcher(scorer=ExplodingScorer())
        assert await matcher.match("return", sample_entries) == []

    async def test_scoring_failure_can_raise(self, sample_entries):
        matcher = ContentMatcher(scorer=ExplodingScorer())
        with pytest.raises(ScoringException):
            await matcher.match("return", sample_entries, raise_on_error=True)

    async def test_cancel_event_aborts(self, sample_entries):
        cancel_event = asyncio.Event()
        cancel_event.set()
        with pytest.raises(SearchCancelledException):
            await ContentMatcher().match("return", sample_entries, cancel_event=cancel_event)

    async def test_matching_stats(self, sample_entries):
        matcher = ContentMatcher()
        await matcher.match("return policy", sample_entries)

        stats = matcher.get_matching_stats()
        assert stats["batches"] == 1
        assert stats["total_matches"] == 2
        assert 0.3 <= stats["average_score"] <= 1.0


class TestFuzzyMatching:
    """Test the approximate string matching mode"""

    async def test_typo_finds_entry(self, sample_entries):
        options = MatchOptions(relevance_threshold=0.8, mode=MatchMode.FUZZY)
        results = await ContentMatcher().match("shiping", sample_entries, options)

        assert results
        assert results[0].entry["uid"] == "blt004"
        assert all(r.relevance_score >= 0.8 for r in results)

    async def test_exact_phrase_scores_one(self, sample_entries):
        options = MatchOptions(relevance_threshold=0.5, mode=MatchMode.FUZZY)
        results = await ContentMatcher().match("Return Policy", sample_entries, options)

        assert results[0].entry["uid"] == "blt002"
        assert results[0].relevance_score == 1.0

    async def test_short_query_matches_nothing(self, sample_entries):
        options = MatchOptions(relevance_threshold=0.0, mode=MatchMode.FUZZY)
        assert await ContentMatcher().match("a", sample_entries, options) == []

    def test_fuzzy_similarity(self):
        assert fuzzy_similarity("ship", "we ship worldwide") == 1.0
        assert fuzzy_similarity("", "text") == 0.0
        assert 0.8 < fuzzy_similarity("recieve", "when you receive it") < 1.0
