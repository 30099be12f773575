"""Coupon Routes — issuance and the holder-facing coupon view.

Invariants:
    - Issuance is open (coupons are handed out by public links); redemption is not
    - Client attribution resolved through the ClientRegistry before issuing
    - The view never returns the raw token back, only token_hash
"""

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, status

from coupon_server.api.dependencies import get_container, request_context
from coupon_server.container import ServiceContainer
from coupon_server.core.coupon_records import RequestContext
from coupon_server.schemas.coupon import CouponResponse, IssueRequest, IssueResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/coupons", tags=["coupons"])


@router.post(
    "", response_model=IssueResponse,
    status_code=status.HTTP_201_CREATED,
)
async def issue_coupon(
    body: IssueRequest,
    context: RequestContext = Depends(request_context),
    container: ServiceContainer = Depends(get_container),
):
    """Issue a new one-time coupon."""
    slug = container.clients.resolve_slug(
        client=body.client, restaurant=body.restaurant, offer=body.offer_id,
    )
    record = await container.engine.issue_record(
        body.offer_id, context, client_slug=slug, restaurant=body.restaurant,
    )
    base = container.settings.base_url
    return IssueResponse(
        token=record.token,
        token_hash=record.token_hash,
        offer_id=record.offer_id,
        client_slug=slug,
        client_name=container.clients.display_name(slug),
        restaurant=record.restaurant,
        issued_at=record.issued_at,
        coupon_url=f"{base}/api/v1/coupons/{quote(record.token, safe='')}",
    )


@router.get("/{token}", response_model=CouponResponse)
async def view_coupon(
    token: str, container: ServiceContainer = Depends(get_container),
):
    """Coupon status as shown to the cashier."""
    view = await container.engine.lookup(token)
    return CouponResponse(
        token_hash=view.record.token_hash,
        offer_id=view.record.offer_id,
        restaurant=view.record.restaurant,
        client_slug=view.record.client_slug,
        status=view.status,
        issued_at=view.record.issued_at,
        redeemed_at=view.redemption.redeemed_at if view.redemption else None,
    )
