"""Offer Catalog — in-memory offer source behind the offers listing.

Invariants:
    - query_offers() returns only active offers, as copies (callers cannot mutate the catalog)
    - reset_offers() replaces the whole catalog

Design Decisions:
    - Async interface so a database-backed catalog can replace it without touching callers
"""

import copy
import logging

logger = logging.getLogger(__name__)

DEMO_OFFERS: tuple[dict, ...] = (
    {"id": 1, "title": "10% off", "active": True},
    {"id": 2, "title": "Free delivery", "active": True},
)


class OfferCatalog:
    def __init__(self, offers: list[dict] | None = None):
        self._offers = copy.deepcopy(list(offers if offers is not None else DEMO_OFFERS))

    async def query_offers(self, params: dict | None = None) -> list[dict]:
        """Active offers, optionally narrowed by a case-insensitive title query 'q'."""
        needle = str((params or {}).get("q") or "").strip().lower()
        offers = [o for o in self._offers if o.get("active")]
        if needle:
            offers = [o for o in offers if needle in str(o.get("title", "")).lower()]
        return copy.deepcopy(offers)

    async def reset_offers(self, offers: list[dict]) -> None:
        self._offers = copy.deepcopy(list(offers))
        logger.info(f"Offer catalog reset with {len(self._offers)} offers")

    async def reset_demo(self) -> None:
        await self.reset_offers(list(DEMO_OFFERS))
