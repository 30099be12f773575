"""Offers Service — offer listings served through the offers read-through cache.

Invariants:
    - Cache key is canonical JSON of the query params (sorted keys)
    - reset_demo() invalidates the whole offers cache after replacing the catalog
"""

import json
import logging

from coupon_server.infrastructure.offer_catalog import OfferCatalog
from coupon_server.infrastructure.read_through_cache import CacheResult, ReadThroughCache

logger = logging.getLogger(__name__)


def make_offers_cache_key(params: dict | None) -> str:
    return "offers:" + json.dumps(params or {}, sort_keys=True, default=str)


class OffersService:
    def __init__(self, catalog: OfferCatalog, cache: ReadThroughCache):
        self._catalog = catalog
        self._cache = cache

    async def get_offers(self, params: dict | None = None) -> CacheResult:
        key = make_offers_cache_key(params)

        async def load() -> list[dict]:
            return await self._catalog.query_offers(params)

        result = await self._cache.get(key, load)
        logger.debug(
            f"Offers served ({result.origin.value})",
            extra={"cache_key": key, "cache_origin": result.origin.value},
        )
        return result

    async def reset_demo(self) -> None:
        await self._catalog.reset_demo()
        self.invalidate()

    def invalidate(self) -> None:
        self._cache.clear()
