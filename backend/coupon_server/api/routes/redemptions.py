"""Redemption Route — the cashier's one-shot redeem call.

Invariants:
    - Gated by the server API key
    - ok and already_redeemed both return 200; the status field tells them apart
    - Unknown token → 404 with status "not_found" plus the standard error envelope
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from coupon_server.api.dependencies import (
    get_container, request_context, require_api_key,
)
from coupon_server.container import ServiceContainer
from coupon_server.core.coupon_records import RequestContext
from coupon_server.core.domain_types import RedemptionStatus
from coupon_server.core.errors import TokenNotFoundError
from coupon_server.schemas.coupon import RedeemRequest, RedeemResponse

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/v1", tags=["redemptions"], dependencies=[Depends(require_api_key)],
)


@router.post("/redeem", response_model=RedeemResponse)
async def redeem_coupon(
    body: RedeemRequest,
    context: RequestContext = Depends(request_context),
    container: ServiceContainer = Depends(get_container),
):
    """Redeem a token exactly once; repeats report the original redemption."""
    try:
        result = await container.engine.redeem(
            body.token, body.store_id, context, staff=body.staff,
        )
    except TokenNotFoundError as exc:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "status": RedemptionStatus.NOT_FOUND.value,
                "token_hash": exc.context.token_hash,
                **exc.to_response(),
            },
        )
    return RedeemResponse(
        status=result.status,
        token_hash=result.token_hash,
        redeemed_at=result.redeemed_at,
        store_id=result.store_id,
    )
