"""Reporting Service — analytics and client reports derived from the coupon dataset.

Invariants:
    - Reports are derived copies: staleness bounded by the reports cache TTL
    - Loaders read the dataset through RedemptionEngine.get_all_data (never the file directly)
    - Client reports are keyed by slug + filters so clients never share entries
"""

from coupon_server.core.analytics import summarize_analytics
from coupon_server.core.client_report import (
    ReportFilters, filter_client_rows, shape_client_rows,
)
from coupon_server.infrastructure.read_through_cache import CacheResult, ReadThroughCache
from coupon_server.services.redemption_engine import RedemptionEngine

ANALYTICS_KEY = "analytics:summary"


class ReportingService:
    def __init__(self, engine: RedemptionEngine, cache: ReadThroughCache):
        self._engine = engine
        self._cache = cache

    async def analytics(self) -> CacheResult:
        async def load() -> dict:
            return summarize_analytics(await self._engine.get_all_data())

        return await self._cache.get(ANALYTICS_KEY, load)

    async def client_report(
        self, client_slug: str, filters: ReportFilters,
    ) -> CacheResult:
        key = f"client-report:{client_slug}:{filters.cache_key()}"

        async def load() -> dict:
            rows = shape_client_rows(await self._engine.get_all_data())
            rows = filter_client_rows(rows, client_slug, filters)
            return {"count": len(rows), "rows": rows}

        return await self._cache.get(key, load)

    def invalidate(self) -> None:
        self._cache.clear()
