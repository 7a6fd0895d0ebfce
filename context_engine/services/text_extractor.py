# context_engine/services/text_extractor.py
import logging
import re
from typing import Any, Dict, List, Optional

from context_engine.models.internal import ContentEntry, EntryMetadata, ExtractedDocument

logger = logging.getLogger(__name__)

# Checked in this order; the rest of the entry is walked afterwards
TEXT_FIELDS = ("title", "description", "body", "content", "summary", "excerpt")

# Bookkeeping fields carried by every entry, never searchable text
SYSTEM_FIELDS = frozenset({
    "uid", "id", "content_type_uid", "contentTypeId", "locale",
    "created_at", "createdAt", "updated_at", "updatedAt", "created_by",
    "updated_by", "_version", "ACL", "publish_details", "_in_progress",
})

MAX_DEPTH = 3
MIN_NESTED_TEXT_LENGTH = 10

HTML_TAG_RE = re.compile(r"<[^>]*>")
MARKDOWN_LINK_RE = re.compile(r"\[([^\]]*)\]\([^)]*\)")
MARKDOWN_SYMBOLS_RE = re.compile(r"[#*_`~]")
WHITESPACE_RE = re.compile(r"\s+")


def strip_html(html: str) -> str:
    return WHITESPACE_RE.sub(" ", HTML_TAG_RE.sub("", html)).strip()


def strip_markdown(markdown: str) -> str:
    # Links first so the brackets are still intact
    text = MARKDOWN_LINK_RE.sub(r"\1", markdown)
    text = MARKDOWN_SYMBOLS_RE.sub("", text)
    return WHITESPACE_RE.sub(" ", text).strip()


def rich_text_to_plain(value: Any) -> Optional[str]:
    """Flatten a string or rich text object; None for anything else"""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        if isinstance(value.get("html"), str) and value["html"]:
            return strip_html(value["html"])
        if isinstance(value.get("markdown"), str) and value["markdown"]:
            return strip_markdown(value["markdown"])
    return None


class TextExtractor:
    """
    Pulls searchable text and metadata out of schemaless CMS entries.

    Known text fields are read first, then every other field is walked by a
    depth-bounded visitor so nested groups, modular blocks and references
    contribute their text too.
    """

    def __init__(self, max_depth: int = MAX_DEPTH):
        self.max_depth = max_depth

    def extract(self, entry: ContentEntry) -> ExtractedDocument:
        text_parts: List[str] = []

        for field in TEXT_FIELDS:
            text = rich_text_to_plain(entry.get(field))
            if text:
                text_parts.append(text)

        remaining = {
            key: value for key, value in entry.items()
            if key not in TEXT_FIELDS and key not in SYSTEM_FIELDS
        }
        self._visit_mapping(remaining, text_parts, depth=0)

        return ExtractedDocument(
            searchable_text=" ".join(text_parts).strip(),
            metadata=self.extract_metadata(entry)
        )

    def extract_metadata(self, entry: ContentEntry) -> EntryMetadata:
        title = self._first_text(entry, "title", "name")
        description = self._first_text(entry, "description", "summary", "excerpt")

        raw_tags = entry.get("tags") or entry.get("keywords") or []
        if isinstance(raw_tags, str):
            tags = [tag.strip() for tag in raw_tags.split(",") if tag.strip()]
        elif isinstance(raw_tags, list):
            tags = [tag for tag in raw_tags if isinstance(tag, str)]
        else:
            tags = []

        category = entry.get("category") or entry_content_type(entry)
        if not isinstance(category, str):
            category = rich_text_to_plain(category) or ""

        return EntryMetadata(
            title=title,
            description=description,
            tags=tags,
            category=category
        )

    def _visit_mapping(self, mapping: Dict[str, Any], text_parts: List[str], depth: int) -> None:
        if depth > self.max_depth:
            return

        for value in mapping.values():
            if isinstance(value, str):
                if len(value) > MIN_NESTED_TEXT_LENGTH:
                    text_parts.append(value)
            elif isinstance(value, list):
                self._visit_list(value, text_parts, depth)
            elif isinstance(value, dict):
                text = rich_text_to_plain(value)
                if text is None:
                    self._visit_mapping(value, text_parts, depth + 1)
                elif len(text) > MIN_NESTED_TEXT_LENGTH:
                    text_parts.append(text)
            # numbers, booleans and None carry no searchable text

    def _visit_list(self, items: List[Any], text_parts: List[str], depth: int) -> None:
        for item in items:
            if isinstance(item, str):
                text_parts.append(item)
            elif isinstance(item, dict):
                text = rich_text_to_plain(item)
                if text is None:
                    self._visit_mapping(item, text_parts, depth + 1)
                elif text:
                    text_parts.append(text)
            elif isinstance(item, list) and depth + 1 <= self.max_depth:
                self._visit_list(item, text_parts, depth + 1)

    @staticmethod
    def _first_text(entry: Dict[str, Any], *fields: str) -> str:
        for field in fields:
            text = rich_text_to_plain(entry.get(field))
            if text:
                return text
        return ""


def entry_content_type(entry: Dict[str, Any]) -> str:
    return entry.get("content_type_uid") or entry.get("contentTypeId") or ""


def entry_updated_at(entry: Dict[str, Any]) -> Optional[str]:
    return entry.get("updated_at") or entry.get("updatedAt")
