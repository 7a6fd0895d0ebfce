# context_engine/models/internal.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Dict, Any, Union
from datetime import datetime
from enum import Enum
from uuid import uuid4

# A CMS entry has no fixed schema. Field values are one of: plain string,
# rich text ({"html": ...} or {"markdown": ...}), number/bool, list, or a
# nested mapping. Entries are passed around as plain dicts of these values.
FieldValue = Union[str, int, float, bool, None, List[Any], Dict[str, Any]]
ContentEntry = Dict[str, FieldValue]

DEFAULT_FIELD_BOOSTS = {
    "title": 2.0,
    "description": 1.5,
    "tags": 1.3,
    "body": 1.0,
}

class MatchMode(str, Enum):
    SEMANTIC = "semantic"
    FUZZY = "fuzzy"

class EntryMetadata(BaseModel):
    title: str = ""
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    category: str = ""

class ExtractedDocument(BaseModel):
    searchable_text: str = ""
    metadata: EntryMetadata = Field(default_factory=EntryMetadata)

class MatchOptions(BaseModel):
    relevance_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    max_results: int = Field(default=10, ge=1)
    include_metadata: bool = True
    field_boosts: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_FIELD_BOOSTS))
    mode: MatchMode = MatchMode.SEMANTIC

    @field_validator("field_boosts")
    @classmethod
    def validate_boosts(cls, v):
        for field_name, boost in v.items():
            if boost <= 0:
                raise ValueError(f"Boost for '{field_name}' must be positive")
        return v

class ScoreBreakdown(BaseModel):
    lexical: float = 0.0
    metadata: float = 0.0
    structural: float = 0.0
    semantic: float = 0.0
    final: float = 0.0

class ScoredResult(BaseModel):
    entry: Dict[str, Any]
    relevance_score: float = Field(ge=0.0, le=1.0)
    content_type: str = ""
    extracted_text: str = ""
    metadata: EntryMetadata = Field(default_factory=EntryMetadata)

class FetchResult(BaseModel):
    entries: List[Dict[str, Any]] = Field(default_factory=list)
    total_count: int = 0

class CacheStats(BaseModel):
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    size: int = 0
    hit_rate: float = 0.0

class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    metadata: Optional[Dict[str, Any]] = None
