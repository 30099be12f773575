"""Client Routes — per-client coupon reports for restaurant dashboards.

Invariants:
    - Each client sees only coupons attributed to its own slug
    - Access requires the client's own token (header or query)
"""

from fastapi import APIRouter, Depends, Query, Response

from coupon_server.api.dependencies import get_container, require_client
from coupon_server.container import ServiceContainer
from coupon_server.core.client_registry import ClientConfig
from coupon_server.core.client_report import ReportFilters

router = APIRouter(prefix="/api/v1/clients", tags=["clients"])


@router.get("/{slug}/report")
async def client_report(
    response: Response,
    offer: str | None = Query(None, max_length=200),
    status: str | None = Query(None, max_length=100),
    date_from: str | None = Query(None, alias="from"),
    date_to: str | None = Query(None, alias="to"),
    client: ClientConfig = Depends(require_client),
    container: ServiceContainer = Depends(get_container),
):
    """Filtered coupon rows: ?offer=..&status=issued,redeemed&from=..&to=.."""
    filters = ReportFilters.parse(offer, status, date_from, date_to)
    result = await container.reports.client_report(client.slug, filters)
    response.headers["X-Cache"] = result.origin.value
    return {
        "client": {"slug": client.slug, "name": client.name},
        **result.value,
        "cache": result.origin.value,
    }
