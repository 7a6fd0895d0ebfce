# context_engine/services/context_formatter.py
import logging
import re
from typing import List

from context_engine.models.internal import ScoredResult
from context_engine.services.relevance_scorer import parse_timestamp
from context_engine.services.text_extractor import entry_updated_at

logger = logging.getLogger(__name__)

NO_CONTENT_MESSAGE = "No relevant content found in the knowledge base."
HEADER = "Relevant information from the knowledge base:\n\n"
TRAILER = (
    "\n---\nUse this information to provide accurate, contextual responses. "
    "If the information doesn't fully answer the user's question, acknowledge "
    "what you do and don't know from the provided context."
)
ELLIPSIS = "..."
EXCERPT_LENGTH = 200

SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")


def create_excerpt(text: str, max_length: int = EXCERPT_LENGTH) -> str:
    """
    Shorten text to max_length, breaking at sentence boundaries when at
    least one whole sentence fits and at word boundaries otherwise.
    """
    if not text or len(text) <= max_length:
        return text or ""

    excerpt = ""
    for match in SENTENCE_RE.finditer(text):
        sentence = match.group().strip()
        if not sentence:
            continue
        candidate = f"{excerpt} {sentence}" if excerpt else sentence
        if len(candidate) > max_length:
            break
        excerpt = candidate

    if not excerpt:
        for word in text.split():
            candidate = f"{excerpt} {word}" if excerpt else word
            if len(candidate) > max_length:
                break
            excerpt = candidate

    return excerpt + (ELLIPSIS if len(excerpt) < len(text) else "")


class ContextFormatter:
    """Renders ranked results into a context block for the system prompt"""

    def __init__(self, excerpt_length: int = EXCERPT_LENGTH):
        self.excerpt_length = excerpt_length

    def format(self, results: List[ScoredResult], max_length: int = 2000) -> str:
        if not results:
            return NO_CONTENT_MESSAGE

        logger.info(f"📋 Formatting {len(results)} content results for LLM context")

        sections = [HEADER]
        current_length = len(HEADER)

        for index, result in enumerate(results, start=1):
            section = self.format_result(result, index)
            if current_length + len(section) > max_length:
                logger.info(f"⚠️ Content truncated at {index - 1} results due to length limit")
                break
            sections.append(section)
            current_length += len(section)

        sections.append(TRAILER)
        return "".join(sections)

    def format_result(self, result: ScoredResult, index: int) -> str:
        metadata = result.metadata
        lines = [f"{index}. **{metadata.title or 'Untitled'}**"]

        if metadata.description:
            lines.append(f"   Description: {metadata.description}")
        if metadata.category:
            lines.append(f"   Category: {metadata.category}")
        if metadata.tags:
            lines.append(f"   Tags: {', '.join(metadata.tags)}")

        excerpt = create_excerpt(result.extracted_text, self.excerpt_length)
        if excerpt:
            lines.append(f"   Content: {excerpt}")

        lines.append(f"   Relevance: {round(result.relevance_score * 100)}%")
        lines.append(f"   Last Updated: {self._format_date(result)}")

        return "\n".join(lines) + "\n\n"

    @staticmethod
    def _format_date(result: ScoredResult) -> str:
        updated_at = parse_timestamp(entry_updated_at(result.entry))
        return updated_at.date().isoformat() if updated_at else "unknown"
