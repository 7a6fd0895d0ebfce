# tests/services/test_relevance_scorer.py
import math
import pytest
from datetime import datetime, timedelta, timezone

from context_engine.models.internal import EntryMetadata, ExtractedDocument, MatchOptions
from context_engine.services.relevance_scorer import (
    RelevanceScorer,
    extract_keywords,
    parse_timestamp,
    stem,
    tokenize_and_stem
)
from context_engine.services.text_extractor import TextExtractor

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


class TestTokenization:
    """Test tokenizing, stemming and keyword extraction"""

    def test_short_tokens_dropped_and_stemmed(self):
        tokens = tokenize_and_stem("I do run: running dogs!")
        assert "i" not in tokens
        assert "do" not in tokens
        assert tokens.count(stem("running")) == 2
        assert stem("dogs") in tokens

    def test_keywords_drop_stop_words(self):
        keywords = extract_keywords("the return policy")
        assert "the" not in keywords
        assert keywords == [stem("return"), stem("policy")]

    def test_empty_text(self):
        assert tokenize_and_stem("") == []
        assert extract_keywords("   ") == []


class TestSignals:
    """Test each relevance signal in isolation"""

    def setup_method(self):
        self.scorer = RelevanceScorer()

    def test_lexical_jaccard_is_doubled(self):
        query_tokens = tokenize_and_stem("return policy")
        # {return, polici} vs {how, return, item}: 1 shared of 4
        assert self.scorer.lexical_score(query_tokens, "How do I return an item?") == pytest.approx(0.5)

    def test_lexical_clamped(self):
        assert self.scorer.lexical_score(["return"], "return returns") == 1.0

    def test_lexical_empty_sets(self):
        assert self.scorer.lexical_score([], "anything here") == 0.0
        assert self.scorer.lexical_score(["return"], "") == 0.0

    def test_metadata_weights(self):
        keywords = extract_keywords("return policy")
        full = ExtractedDocument(metadata=EntryMetadata(
            title="Return policy explained",
            description="Everything about our return policy.",
            tags=["returns", "policy"]
        ))
        title_only = ExtractedDocument(metadata=EntryMetadata(title="Our return process"))

        assert self.scorer.metadata_score(keywords, full) == pytest.approx(1.0)
        assert self.scorer.metadata_score(keywords, title_only) == pytest.approx(0.25)

    def test_metadata_without_keywords(self):
        document = ExtractedDocument(metadata=EntryMetadata(title="Anything"))
        assert self.scorer.metadata_score([], document) == 0.0

    def test_structural_recent_faq(self):
        entry = {"content_type_uid": "faq", "updated_at": NOW.isoformat()}
        assert self.scorer.structural_score(entry, now=NOW) == pytest.approx(0.3 + 0.9 * 0.7)

    def test_structural_old_unknown_type(self):
        entry = {"content_type_uid": "landing", "updated_at": (NOW - timedelta(days=500)).isoformat()}
        assert self.scorer.structural_score(entry, now=NOW) == pytest.approx(0.35)

    def test_structural_half_year(self):
        entry = {"content_type_uid": "page", "updatedAt": (NOW - timedelta(days=182.5)).isoformat()}
        assert self.scorer.structural_score(entry, now=NOW) == pytest.approx(0.5 * 0.3 + 0.6 * 0.7)

    def test_structural_missing_timestamp(self):
        assert self.scorer.structural_score({"content_type_uid": "article"}, now=NOW) == pytest.approx(0.56)

    def test_structural_future_timestamp_capped(self):
        entry = {"content_type_uid": "faq", "updated_at": (NOW + timedelta(days=30)).isoformat()}
        assert self.scorer.structural_score(entry, now=NOW) == pytest.approx(0.93)

    def test_semantic_single_match(self):
        assert self.scorer.semantic_score("return policy", "please return the item") == pytest.approx(0.5)

    def test_semantic_context_matches(self):
        # return and policy sit next to each other: 2 × (1 + 0.5) / 2, clamped
        assert self.scorer.semantic_score("return policy", "our return policy is simple") == 1.0

    def test_semantic_window(self):
        filler = " ".join(["word"] * 10)
        text = f"return {filler} policy"
        # Too far apart to count as context for each other
        assert self.scorer.semantic_score("return policy", text) == pytest.approx(1.0)
        assert self.scorer.semantic_score("return nothing", text) == pytest.approx(0.5)

    def test_semantic_empty(self):
        assert self.scorer.semantic_score("", "some text") == 0.0
        assert self.scorer.semantic_score("query", "") == 0.0


class TestCompositeScore:
    """Test the combined relevance score"""

    def setup_method(self):
        self.scorer = RelevanceScorer()
        self.extractor = TextExtractor()

    def _score(self, query, entry):
        return self.scorer.breakdown(query, entry, self.extractor.extract(entry), MatchOptions(), now=NOW)

    def test_product_faq_scenario(self):
        entry = {
            "content_type_uid": "faq",
            "title": "Product FAQ",
            "tags": ["faq", "product"],
            "body": "How do I return an item?",
            "updated_at": NOW.isoformat(),
        }
        breakdown = self._score("return policy", entry)

        expected = math.sqrt(
            0.4 * breakdown.lexical + 0.2 * breakdown.metadata
            + 0.2 * breakdown.structural + 0.2 * breakdown.semantic
        )
        assert breakdown.lexical == pytest.approx(1 / 3)
        assert breakdown.metadata == 0.0
        assert breakdown.semantic == pytest.approx(0.5)
        assert breakdown.final == pytest.approx(expected)
        assert breakdown.final > 0.2

    def test_empty_query_scores_zero(self):
        entry = {"content_type_uid": "faq", "title": "Anything", "updated_at": NOW.isoformat()}
        assert self._score("", entry).final == 0.0

    def test_priors_alone_do_not_score(self):
        entry = {"content_type_uid": "faq", "title": "Shipping times", "updated_at": NOW.isoformat()}
        breakdown = self._score("zebra", entry)
        assert breakdown.structural > 0
        assert breakdown.final == 0.0

    def test_deterministic(self):
        entry = {"content_type_uid": "article", "title": "Return policy", "updated_at": NOW.isoformat()}
        document = self.extractor.extract(entry)
        first = self.scorer.score("return policy", entry, document, now=NOW)
        second = self.scorer.score("return policy", entry, document, now=NOW)
        assert first == second
        assert 0.0 < first <= 1.0


class TestParseTimestamp:
    """Test timestamp parsing"""

    def test_iso_with_z(self):
        parsed = parse_timestamp("2026-01-02T03:04:05.000Z")
        assert parsed == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_timestamp("2026-01-02T00:00:00").tzinfo == timezone.utc

    def test_epoch_millis(self):
        assert parse_timestamp(1767225600000) == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_invalid(self):
        assert parse_timestamp("not a date") is None
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None
