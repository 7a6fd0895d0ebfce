# context_engine/config/settings.py
from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List
import logging

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["*"]

    # Contentstack (external content source)
    CONTENTSTACK_API_KEY: str = ""
    CONTENTSTACK_DELIVERY_TOKEN: str = ""
    CONTENTSTACK_ENVIRONMENT: str = "development"
    CONTENTSTACK_REGION: str = "us"

    # Cache Configuration
    REDIS_URL: str = ""
    CACHE_ENABLED: bool = True
    CACHE_TTL_SECONDS: int = 3600
    MEMORY_CACHE_MAX_ITEMS: int = 1000
    CACHE_CHECK_PERIOD: int = 600

    # Content search
    CONTENT_SEARCH_LIMIT: int = 10
    CONTENT_RELEVANCE_THRESHOLD: float = 0.3
    ENABLE_SEMANTIC_SEARCH: bool = True
    MAX_CONTEXT_LENGTH: int = 2000
    DEFAULT_LOCALE: str = "en-us"

    # Performance
    CONTENT_FETCH_TIMEOUT: int = 10

    # Monitoring
    LOG_LEVEL: str = "INFO"

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("DEBUG", "CACHE_ENABLED", "ENABLE_SEMANTIC_SEARCH", mode="before")
    @classmethod
    def parse_bool(cls, v):
        if isinstance(v, str):
            return v.strip().lower() in ("true", "1", "yes", "on")
        return v

    @field_validator("CONTENT_RELEVANCE_THRESHOLD")
    @classmethod
    def check_threshold(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError("CONTENT_RELEVANCE_THRESHOLD must be between 0 and 1")
        return v

    @property
    def contentstack_configured(self) -> bool:
        return bool(self.CONTENTSTACK_API_KEY and self.CONTENTSTACK_DELIVERY_TOKEN)

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore"
    }

settings = Settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)

if not settings.contentstack_configured:
    logger.warning("⚠️ Contentstack credentials not provided. Content search will be disabled.")
