"""Offers Route — cached offer listing for landing pages and dashboards.

Invariants:
    - X-Cache header reports the read-through origin (HIT, STALE, WAIT, MISS)
"""

from fastapi import APIRouter, Depends, Query, Response

from coupon_server.api.dependencies import get_container
from coupon_server.container import ServiceContainer

router = APIRouter(prefix="/api/v1/offers", tags=["offers"])


@router.get("")
async def list_offers(
    response: Response,
    q: str | None = Query(None, max_length=100),
    container: ServiceContainer = Depends(get_container),
):
    """List active offers through the offers cache."""
    params = {"q": q} if q else {}
    result = await container.offers.get_offers(params)
    response.headers["X-Cache"] = result.origin.value
    return {"offers": result.value, "cache": result.origin.value}
