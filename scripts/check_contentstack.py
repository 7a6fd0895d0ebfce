# scripts/check_contentstack.py
"""Script to validate Contentstack credentials and run a sample search"""

import asyncio
import sys

from context_engine.config.settings import settings
from context_engine.api.dependencies import build_search_service


def check_configuration() -> bool:
    """Check required environment settings"""
    print("🔑 Checking Contentstack configuration...\n")

    missing = [
        name for name in ("CONTENTSTACK_API_KEY", "CONTENTSTACK_DELIVERY_TOKEN")
        if not getattr(settings, name)
    ]
    for name in missing:
        print(f"❌ {name} not set")

    print(f"🌍 Environment: {settings.CONTENTSTACK_ENVIRONMENT}")
    print(f"🗺️  Region: {settings.CONTENTSTACK_REGION}")
    print(f"💾 Redis: {'configured' if settings.REDIS_URL else 'not set (memory cache only)'}\n")

    return not missing


async def main(query: str) -> int:
    if not check_configuration():
        print("\n💡 Set the missing keys in your .env file and try again")
        return 1

    service = build_search_service()
    try:
        status = await service.test_connection()
        print("📊 Connection Check Results:\n")
        print(f"{'✅' if status.contentstack else '❌'} Contentstack")
        print(f"{'✅' if status.cache else '❌'} Cache")
        if status.error:
            print(f"\n⚠️  {status.error}")
            return 1

        content_types = await service.get_available_content_types()
        print(f"\n📚 Content types ({len(content_types)}): {', '.join(content_types)}")

        result = await service.search(query, use_cache=False)
        if not result.success:
            print(f"\n❌ Sample search failed: {result.error}")
            return 1

        print(f"\n🔍 Sample search for {query!r}: {result.data.total_count} results "
              f"in {result.execution_time_ms:.0f}ms")
        for scored in result.data.results:
            print(f"   {scored.relevance_score:.2f}  {scored.metadata.title or 'Untitled'} ({scored.content_type})")
        return 0
    finally:
        await service.shutdown()


if __name__ == "__main__":
    sys.exit(asyncio.run(main(" ".join(sys.argv[1:]) or "help")))
