# context_engine/api/dependencies.py
import logging
from fastapi import Request

from context_engine.config.settings import settings
from context_engine.core.context_search import ContextSearchService
from context_engine.services.cache_service import CacheService
from context_engine.services.content_source import ContentstackClient
from context_engine.core.exceptions import ServiceUnavailableException

logger = logging.getLogger(__name__)

def build_search_service() -> ContextSearchService:
    """Wire the production service graph from settings"""
    cache = CacheService(
        max_items=settings.MEMORY_CACHE_MAX_ITEMS,
        default_ttl=settings.CACHE_TTL_SECONDS,
        check_period=settings.CACHE_CHECK_PERIOD,
        redis_url=settings.REDIS_URL
    )
    return ContextSearchService(content_source=ContentstackClient(), cache=cache)

def get_search_service(request: Request) -> ContextSearchService:
    """The service instance created at startup"""
    service = getattr(request.app.state, "search_service", None)
    if service is None:
        raise ServiceUnavailableException("Content search service not initialized")
    return service

async def startup_handler(app) -> None:
    try:
        logger.info("Starting up content search service...")
        service = getattr(app.state, "search_service", None) or build_search_service()
        await service.cache.start()
        app.state.search_service = service
        logger.info("Application startup completed")
    except Exception as e:
        logger.error(f"Startup error: {e}")
        raise

async def shutdown_handler(app) -> None:
    try:
        logger.info("Shutting down application...")
        service = getattr(app.state, "search_service", None)
        if service:
            await service.shutdown()
            app.state.search_service = None
        logger.info("Application shutdown completed")
    except Exception as e:
        logger.error(f"Shutdown error: {e}")
