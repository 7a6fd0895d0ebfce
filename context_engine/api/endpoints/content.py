# context_engine/api/endpoints/content.py
from fastapi import APIRouter, Depends, HTTPException
import logging

from context_engine.core.context_search import ContextSearchService
from context_engine.models.requests import ContentSearchRequest, FormatRequest
from context_engine.models.responses import (
    ContentSearchResult,
    ErrorResponse,
    FormattedContext,
    ServiceStats
)
from context_engine.api.dependencies import get_search_service

router = APIRouter()
logger = logging.getLogger(__name__)

@router.post(
    "/search",
    response_model=ContentSearchResult,
    responses={502: {"model": ErrorResponse}},
    summary="Search content for a query",
    description="Rank content source entries against a query and return the relevant ones."
)
async def search_content(
    request: ContentSearchRequest,
    service: ContextSearchService = Depends(get_search_service)
):
    """
    - **query**: free-text user query
    - **content_types**: optional content type filter
    - **max_results**: cap on ranked results
    - **use_cache**: allow cached results
    """
    result = await service.search(
        request.query,
        content_types=request.content_types,
        max_results=request.max_results,
        use_cache=request.use_cache,
        locale=request.locale
    )

    if not result.success:
        logger.warning(f"Content search failed for query '{request.query[:50]}': {result.error}")
        raise HTTPException(status_code=502, detail=result.error or "Content search failed")

    return result

@router.post("/format", response_model=FormattedContext)
async def format_content(
    request: FormatRequest,
    service: ContextSearchService = Depends(get_search_service)
):
    """Render ranked results as an LLM context block"""
    context = service.format_for_prompt(request.results, request.max_length)
    return FormattedContext(context=context, length=len(context))

@router.get("/types")
async def get_content_types(service: ContextSearchService = Depends(get_search_service)):
    content_types = await service.get_available_content_types()
    return {"content_types": content_types, "count": len(content_types)}

@router.get("/status")
async def get_status(service: ContextSearchService = Depends(get_search_service)):
    connection = await service.test_connection()
    stats: ServiceStats = service.stats()
    return {
        "status": "healthy" if connection.contentstack else "degraded",
        "services": {
            "contentstack": "connected" if connection.contentstack else "disconnected",
            "cache": "connected" if connection.cache else "disconnected",
            "matching": "ready" if connection.matching else "unavailable"
        },
        "error": connection.error,
        "stats": stats.model_dump()
    }

@router.delete("/cache")
async def clear_cache(service: ContextSearchService = Depends(get_search_service)):
    cleared = await service.clear_cache()
    if not cleared:
        raise HTTPException(status_code=500, detail="Failed to clear content cache")
    return {"cleared": True}
