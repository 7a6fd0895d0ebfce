"""
FastAPI entry point for the content context service.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from context_engine import __version__
from context_engine.config.settings import settings
from context_engine.core.context_search import ContextSearchService
from context_engine.api.dependencies import startup_handler, shutdown_handler
from context_engine.api.endpoints import content_router
from context_engine.api.middleware import RequestLoggingMiddleware


def create_app(search_service: Optional[ContextSearchService] = None) -> FastAPI:
    """Build the app; tests pass their own service wired to fakes"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.search_service = search_service
        await startup_handler(app)
        yield
        await shutdown_handler(app)

    app = FastAPI(
        title="Content Context API",
        description="Relevance matching and LLM context assembly for CMS content",
        version=__version__,
        lifespan=lifespan
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(content_router, prefix="/api/content", tags=["content"])

    @app.get("/health")
    async def health():
        service = app.state.search_service
        cache_status = await service.cache.health_check() if service else "unavailable"
        return {"status": "healthy" if cache_status == "healthy" else "degraded", "cache": cache_status}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "context_engine.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
