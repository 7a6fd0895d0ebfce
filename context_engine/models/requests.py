# context_engine/models/requests.py
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

from .internal import ScoredResult

class ContentSearchRequest(BaseModel):
    query: str = Field(
        ...,
        max_length=500,
        description="Free-text user query to match against content"
    )
    content_types: List[str] = Field(
        default_factory=list,
        description="Restrict the search to these content type ids"
    )
    max_results: Optional[int] = Field(
        default=None,
        ge=1,
        le=50,
        description="Maximum number of ranked results"
    )
    use_cache: bool = Field(
        default=True,
        description="Whether cached results may be returned"
    )
    locale: Optional[str] = Field(
        default=None,
        description="Content locale, e.g. en-us"
    )

    @field_validator("query")
    @classmethod
    def strip_query(cls, v):
        return v.strip()

class FormatRequest(BaseModel):
    results: List[ScoredResult] = Field(default_factory=list)
    max_length: int = Field(default=2000, ge=100, le=20000)
