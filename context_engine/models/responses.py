# context_engine/models/responses.py
from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime

from .internal import ScoredResult, CacheStats

class SearchResponse(BaseModel):
    results: List[ScoredResult] = Field(default_factory=list, description="Ranked results")
    total_count: int = Field(default=0, description="Number of results returned")
    search_query: str = Field(default="", description="Original user query")
    execution_time_ms: float = Field(default=0.0, description="Search time in milliseconds")
    cache_hit: bool = Field(default=False, description="Whether results came from cache")
    error: Optional[str] = Field(None, description="Note about a degraded search")

class ContentSearchResult(BaseModel):
    success: bool
    data: Optional[SearchResponse] = None
    error: Optional[str] = None
    cached: bool = False
    execution_time_ms: float = 0.0

class ServiceStats(BaseModel):
    configured: bool
    cache_stats: CacheStats
    matching_stats: Dict[str, Any] = Field(default_factory=dict)

class ConnectionStatus(BaseModel):
    contentstack: bool = False
    cache: bool = False
    matching: bool = False
    error: Optional[str] = None

class FormattedContext(BaseModel):
    context: str
    length: int

class ErrorResponse(BaseModel):
    error: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    request_id: Optional[str] = Field(None, description="Request ID for tracking")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
