"""Admin Routes — dataset export, analytics and cache maintenance.

Invariants:
    - Every route gated by the per-IP admin rate limit, then the server API key
    - Export is read-only: the dataset is only ever mutated by RedemptionEngine
"""

import logging

from fastapi import APIRouter, Depends, Response

from coupon_server.api.dependencies import (
    enforce_admin_rate_limit, get_container, require_api_key,
)
from coupon_server.container import ServiceContainer

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/v1/admin",
    tags=["admin"],
    dependencies=[Depends(enforce_admin_rate_limit), Depends(require_api_key)],
)


@router.get("/export")
async def export_dataset(container: ServiceContainer = Depends(get_container)):
    """Full token/redemption document for reporting and CSV collaborators."""
    dataset = await container.engine.get_all_data()
    return dataset.to_dict()


@router.get("/analytics")
async def analytics(
    response: Response, container: ServiceContainer = Depends(get_container),
):
    """Issued/redeemed totals, redemption rate, per-day and per-offer counts."""
    result = await container.reports.analytics()
    response.headers["X-Cache"] = result.origin.value
    return {**result.value, "cache": result.origin.value}


@router.get("/cache")
async def cache_stats(container: ServiceContainer = Depends(get_container)):
    return {
        "offers": container.offers_cache.stats(),
        "reports": container.reports_cache.stats(),
    }


@router.post("/cache/clear")
async def clear_caches(container: ServiceContainer = Depends(get_container)):
    container.offers.invalidate()
    container.reports.invalidate()
    logger.info("Caches cleared by admin")
    return {"ok": True}


@router.post("/reset-demo")
async def reset_demo(container: ServiceContainer = Depends(get_container)):
    """Restore the demo offer catalog and drop cached listings."""
    await container.offers.reset_demo()
    return {"ok": True}
