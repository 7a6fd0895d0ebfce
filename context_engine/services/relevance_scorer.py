# context_engine/services/relevance_scorer.py
import logging
import math
import re
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Iterable, List, Optional, Set

from nltk.stem import PorterStemmer

from context_engine.models.internal import (
    ContentEntry,
    ExtractedDocument,
    MatchOptions,
    ScoreBreakdown
)
from context_engine.services.text_extractor import entry_content_type, entry_updated_at

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"[a-z0-9_]+")

STOP_WORDS = frozenset({
    "the", "is", "at", "which", "on", "and", "a", "to", "are", "as",
    "was", "were", "been", "be"
})

CONTENT_TYPE_AFFINITY = {
    "faq": 0.9,
    "article": 0.8,
    "blog_post": 0.8,
    "product": 0.7,
    "page": 0.6,
}
DEFAULT_CONTENT_TYPE_AFFINITY = 0.5

SIGNAL_WEIGHTS = {
    "lexical": 0.4,
    "metadata": 0.2,
    "structural": 0.2,
    "semantic": 0.2,
}

PROXIMITY_WINDOW = 5
RECENCY_HORIZON_DAYS = 365.0

_stemmer = PorterStemmer()


@lru_cache(maxsize=50000)
def stem(token: str) -> str:
    return _stemmer.stem(token)


def tokenize_and_stem(text: str) -> List[str]:
    """Lowercase, drop tokens of two characters or less, Porter-stem"""
    stems = []
    for token in TOKEN_RE.findall(text.lower()):
        if len(token) <= 2:
            continue
        stemmed = stem(token)
        if len(stemmed) > 1:
            stems.append(stemmed)
    return stems


def extract_keywords(query: str) -> List[str]:
    return [token for token in tokenize_and_stem(query) if token not in STOP_WORDS]


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)):
            # Epoch milliseconds are what most CMS APIs emit
            seconds = value / 1000.0 if value > 1e11 else float(value)
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        else:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except (ValueError, OverflowError, OSError):
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RelevanceScorer:
    """
    Composite relevance for a (query, entry) pair.

    Four independent signals, each in [0, 1]:
      - lexical: Jaccard similarity of stemmed token sets, doubled
      - metadata: share of query keywords found in title/tags/description
      - structural: recency and content type priors
      - semantic: exact word matches weighted by nearby query words
    The weighted sum is square-rooted for diminishing returns. Priors only
    modulate entries the query actually matches; without any query evidence
    the score is 0.
    """

    def score(
        self,
        query: str,
        entry: ContentEntry,
        document: ExtractedDocument,
        options: Optional[MatchOptions] = None,
        now: Optional[datetime] = None
    ) -> float:
        return self.breakdown(query, entry, document, options, now).final

    def breakdown(
        self,
        query: str,
        entry: ContentEntry,
        document: ExtractedDocument,
        options: Optional[MatchOptions] = None,
        now: Optional[datetime] = None
    ) -> ScoreBreakdown:
        query_tokens = tokenize_and_stem(query)
        query_keywords = [token for token in query_tokens if token not in STOP_WORDS]

        lexical = self.lexical_score(query_tokens, document.searchable_text)
        metadata = self.metadata_score(query_keywords, document)
        structural = self.structural_score(entry, now)
        semantic = self.semantic_score(query, document.searchable_text)

        if lexical == 0 and metadata == 0 and semantic == 0:
            final = 0.0
        else:
            weighted = (
                SIGNAL_WEIGHTS["lexical"] * lexical
                + SIGNAL_WEIGHTS["metadata"] * metadata
                + SIGNAL_WEIGHTS["structural"] * structural
                + SIGNAL_WEIGHTS["semantic"] * semantic
            )
            final = min(math.sqrt(weighted), 1.0)

        return ScoreBreakdown(
            lexical=lexical,
            metadata=metadata,
            structural=structural,
            semantic=semantic,
            final=final
        )

    def lexical_score(self, query_tokens: Iterable[str], text: str) -> float:
        query_set = set(query_tokens)
        document_set = set(tokenize_and_stem(text))

        if not query_set or not document_set:
            return 0.0

        similarity = len(query_set & document_set) / len(query_set | document_set)
        return min(similarity * 2, 1.0)

    def metadata_score(self, query_keywords: Iterable[str], document: ExtractedDocument) -> float:
        keywords = set(query_keywords)
        if not keywords:
            return 0.0

        metadata = document.metadata
        score = 0.0

        if metadata.title:
            score += self._keyword_coverage(keywords, tokenize_and_stem(metadata.title)) * 0.5

        if metadata.tags:
            tag_tokens = [token for tag in metadata.tags for token in tokenize_and_stem(tag)]
            score += self._keyword_coverage(keywords, tag_tokens) * 0.3

        if metadata.description:
            score += self._keyword_coverage(keywords, tokenize_and_stem(metadata.description)) * 0.2

        return min(score, 1.0)

    def structural_score(self, entry: ContentEntry, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)

        recency = 0.0
        updated_at = parse_timestamp(entry_updated_at(entry))
        if updated_at is not None:
            days_since_update = (now - updated_at).total_seconds() / 86400.0
            recency = min(max(0.0, 1.0 - days_since_update / RECENCY_HORIZON_DAYS), 1.0)

        affinity = CONTENT_TYPE_AFFINITY.get(entry_content_type(entry), DEFAULT_CONTENT_TYPE_AFFINITY)

        return min(recency * 0.3 + affinity * 0.7, 1.0)

    def semantic_score(self, query: str, text: str) -> float:
        query_words = query.lower().split()
        content_words = text.lower().split()

        if not query_words or not content_words:
            return 0.0

        query_word_set = set(query_words)
        positions = {}
        for index, word in enumerate(content_words):
            if word in query_word_set:
                positions.setdefault(word, []).append(index)

        proximity = 0.0
        for query_word in query_words:
            for j in positions.get(query_word, ()):
                start = max(0, j - PROXIMITY_WINDOW)
                end = min(len(content_words), j + PROXIMITY_WINDOW + 1)
                context_matches = sum(
                    1 for k in range(start, end)
                    if k != j and content_words[k] in query_word_set
                )
                proximity += (1 + context_matches * 0.5) / len(query_words)
                if proximity >= 1.0:
                    return 1.0

        return min(proximity, 1.0)

    @staticmethod
    def _keyword_coverage(keywords: Set[str], field_tokens: List[str]) -> float:
        field_set = set(field_tokens)
        return sum(1 for keyword in keywords if keyword in field_set) / len(keywords)
