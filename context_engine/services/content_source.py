# context_engine/services/content_source.py
import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from context_engine.config.settings import settings
from context_engine.models.internal import FetchResult
from context_engine.core.exceptions import ContentFetchException, SourceUnavailableException

logger = logging.getLogger(__name__)

REGION_HOSTS = {
    "us": "https://cdn.contentstack.io",
    "eu": "https://eu-cdn.contentstack.com",
    "azure-na": "https://azure-na-cdn.contentstack.com",
    "azure-eu": "https://azure-eu-cdn.contentstack.com",
    "gcp-na": "https://gcp-na-cdn.contentstack.com",
}

# The Delivery API caps a single page at 100 entries
MAX_PAGE_SIZE = 100


class ContentSource(Protocol):
    """What the search service needs from a content backend"""

    def is_ready(self) -> bool: ...

    async def fetch_entries(
        self,
        query: str,
        content_types: List[str],
        limit: int,
        locale: str
    ) -> FetchResult: ...

    async def list_content_types(self) -> List[str]: ...

    async def close(self) -> None: ...


class ContentstackClient:
    """Contentstack Content Delivery API client"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        delivery_token: Optional[str] = None,
        environment: Optional[str] = None,
        region: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.api_key = settings.CONTENTSTACK_API_KEY if api_key is None else api_key
        self.delivery_token = settings.CONTENTSTACK_DELIVERY_TOKEN if delivery_token is None else delivery_token
        self.environment = environment or settings.CONTENTSTACK_ENVIRONMENT
        self.region = (region or settings.CONTENTSTACK_REGION).lower()
        self.base_url = REGION_HOSTS.get(self.region, REGION_HOSTS["us"])
        self.timeout = timeout or settings.CONTENT_FETCH_TIMEOUT
        self.session: Optional[aiohttp.ClientSession] = None

        if self.is_ready():
            logger.info(f"✅ Contentstack client configured for region '{self.region}'")
        else:
            logger.warning("⚠️ Contentstack credentials not provided. Client not initialized.")

    def is_ready(self) -> bool:
        return bool(self.api_key and self.delivery_token)

    def get_config(self) -> Dict[str, str]:
        # No credentials in here
        return {"environment": self.environment, "region": self.region}

    async def _get_session(self) -> aiohttp.ClientSession:
        """Lazy initialization of HTTP session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                base_url=self.base_url,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={
                    "api_key": self.api_key,
                    "access_token": self.delivery_token,
                    "Accept": "application/json",
                }
            )
        return self.session

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.is_ready():
            raise SourceUnavailableException(
                "Contentstack not configured. Please set CONTENTSTACK_API_KEY and CONTENTSTACK_DELIVERY_TOKEN."
            )

        session = await self._get_session()
        logger.debug(f"🔄 Contentstack API Request: GET {path}")

        try:
            async with session.get(path, params=params) as response:
                if response.status == 200:
                    return await response.json()

                error_text = await response.text()
                logger.warning(f"Contentstack returned status {response.status} for {path}: {error_text[:200]}")
                if response.status in (401, 403) or response.status >= 500:
                    raise SourceUnavailableException(f"Contentstack unavailable (HTTP {response.status})")
                raise ContentFetchException(f"Contentstack request failed (HTTP {response.status})")
        except aiohttp.ClientError as e:
            logger.error(f"Contentstack connection error: {e}")
            raise SourceUnavailableException(f"Contentstack unreachable: {e}") from e

    async def list_content_types(self) -> List[str]:
        data = await self._get_json("/v3/content_types", {"environment": self.environment})
        return [ct["uid"] for ct in data.get("content_types", []) if ct.get("uid")]

    async def get_entries_by_content_type(
        self,
        content_type: str,
        limit: int = 10,
        locale: str = "en-us"
    ) -> FetchResult:
        params = {
            "environment": self.environment,
            "locale": locale,
            "limit": str(min(max(limit, 1), MAX_PAGE_SIZE)),
            "include_count": "true",
            "desc": "updated_at",
        }
        data = await self._get_json(f"/v3/content_types/{content_type}/entries", params)

        entries = data.get("entries", [])
        for entry in entries:
            entry.setdefault("content_type_uid", content_type)

        return FetchResult(entries=entries, total_count=data.get("count", len(entries)))

    async def fetch_entries(
        self,
        query: str,
        content_types: List[str],
        limit: int,
        locale: str
    ) -> FetchResult:
        """
        Fetch candidate entries for a query. Ranking happens locally, so
        this pulls the most recently updated entries of each content type.
        """
        types = list(content_types) or await self.list_content_types()
        if not types:
            return FetchResult()

        results = await asyncio.gather(
            *(self.get_entries_by_content_type(ct, limit, locale) for ct in types),
            return_exceptions=True
        )

        entries: List[Dict[str, Any]] = []
        total_count = 0
        failures = []
        for content_type, result in zip(types, results):
            if isinstance(result, FetchResult):
                entries.extend(result.entries)
                total_count += result.total_count
            elif isinstance(result, BaseException):
                logger.warning(f"Fetching '{content_type}' entries failed: {result}")
                failures.append(result)

        if failures and len(failures) == len(types):
            raise failures[0]

        logger.info(f"📝 Fetched {len(entries)} entries across {len(types)} content types for: {query[:30]!r}")
        return FetchResult(entries=entries, total_count=total_count)

    async def test_connection(self) -> Dict[str, Any]:
        if not self.is_ready():
            return {"success": False, "error": "Contentstack not configured"}
        try:
            await self.list_content_types()
            return {"success": True}
        except Exception as e:
            return {"success": False, "error": str(e)}

    async def close(self):
        """Close HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None
