# context_engine/api/endpoints/__init__.py
"""API endpoints"""

from .content import router as content_router

__all__ = ["content_router"]
