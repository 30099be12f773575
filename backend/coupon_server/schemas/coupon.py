"""Coupon Schemas — issue, view and redeem payloads.

Invariants:
    - Raw tokens appear only in IssueResponse (to the holder) and redeem/view inputs
    - Optional strings are stripped; blank becomes None
"""

from pydantic import BaseModel, Field, field_validator

from coupon_server.core.domain_types import CouponStatus, RedemptionStatus


def _blank_to_none(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip()
    return v or None


class IssueRequest(BaseModel):
    """Coupon issuance — offer id is checked for emptiness by the engine."""
    offer_id: str = Field(max_length=200)
    restaurant: str | None = Field(None, max_length=200)
    client: str | None = Field(None, max_length=100)

    @field_validator("offer_id")
    @classmethod
    def strip_offer(cls, v: str) -> str:
        return v.strip()

    @field_validator("restaurant", "client")
    @classmethod
    def strip_optional(cls, v: str | None) -> str | None:
        return _blank_to_none(v)


class IssueResponse(BaseModel):
    token: str
    token_hash: str
    offer_id: str
    client_slug: str
    client_name: str
    restaurant: str | None = None
    issued_at: str
    coupon_url: str


class CouponResponse(BaseModel):
    """Public coupon view — what the holder's phone shows the cashier."""
    token_hash: str
    offer_id: str
    restaurant: str | None = None
    client_slug: str | None = None
    status: CouponStatus
    issued_at: str
    redeemed_at: str | None = None


class RedeemRequest(BaseModel):
    token: str = Field(max_length=200)
    store_id: str | None = Field(None, max_length=100)
    staff: str | None = Field(None, max_length=100)

    @field_validator("store_id", "staff")
    @classmethod
    def strip_optional(cls, v: str | None) -> str | None:
        return _blank_to_none(v)


class RedeemResponse(BaseModel):
    status: RedemptionStatus
    token_hash: str
    redeemed_at: str
    store_id: str | None = None
