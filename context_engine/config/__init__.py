# context_engine/config/__init__.py
from .settings import settings, Settings

__all__ = ["settings", "Settings"]
