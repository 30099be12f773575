"""Coupon Records — the persisted dataset: issued tokens and their redemptions.

Invariants:
    - Records are frozen — created once, never mutated, never deleted
    - At most one RedemptionRecord per token (enforced by RedemptionEngine)
    - to_dict()/from_dict() round-trip without loss for every field they know
    - from_dict() raises ValueError on any malformed document (store treats as corrupt)

Design Decisions:
    - Frozen dataclasses, not Pydantic: core stays framework-free
    - Dataset keeps list order (issuance/redemption order) as the persisted layout does
"""

from dataclasses import dataclass, field
from typing import Any



@dataclass(frozen=True)
class RequestContext:
    """Caller audit fields. No behavior depends on them."""
    ip: str | None = None
    user_agent: str | None = None

    def to_dict(self) -> dict:
        return {"ip": self.ip, "user_agent": self.user_agent}

    @classmethod
    def from_dict(cls, data: Any) -> "RequestContext":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("context must be an object")
        return cls(
            ip=_optional_str(data, "ip"),
            user_agent=_optional_str(data, "user_agent"),
        )


@dataclass(frozen=True)
class TokenRecord:
    """One issued coupon."""
    token: str
    offer_id: str
    issued_at: str
    token_hash: str
    issuer_context: RequestContext = field(default_factory=RequestContext)
    client_slug: str | None = None
    restaurant: str | None = None

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "token_hash": self.token_hash,
            "offer_id": self.offer_id,
            "client_slug": self.client_slug,
            "restaurant": self.restaurant,
            "issued_at": self.issued_at,
            "issuer_context": self.issuer_context.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "TokenRecord":
        if not isinstance(data, dict):
            raise ValueError("token record must be an object")
        return cls(
            token=_required_str(data, "token"),
            offer_id=_required_str(data, "offer_id"),
            issued_at=_required_str(data, "issued_at"),
            token_hash=_required_str(data, "token_hash"),
            issuer_context=RequestContext.from_dict(data.get("issuer_context")),
            client_slug=_optional_str(data, "client_slug"),
            restaurant=_optional_str(data, "restaurant"),
        )


@dataclass(frozen=True)
class RedemptionRecord:
    """The single redemption of one token."""
    token: str
    redeemed_at: str
    store_id: str | None = None
    staff: str | None = None
    redeemer_context: RequestContext = field(default_factory=RequestContext)

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "redeemed_at": self.redeemed_at,
            "store_id": self.store_id,
            "staff": self.staff,
            "redeemer_context": self.redeemer_context.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "RedemptionRecord":
        if not isinstance(data, dict):
            raise ValueError("redemption record must be an object")
        return cls(
            token=_required_str(data, "token"),
            redeemed_at=_required_str(data, "redeemed_at"),
            store_id=_optional_str(data, "store_id"),
            staff=_optional_str(data, "staff"),
            redeemer_context=RequestContext.from_dict(data.get("redeemer_context")),
        )


@dataclass
class Dataset:
    """Whole persisted state. Callers read it, mutate in memory, save it back."""
    tokens: list[TokenRecord] = field(default_factory=list)
    redemptions: list[RedemptionRecord] = field(default_factory=list)

    def find_token(self, token: str) -> TokenRecord | None:
        for record in self.tokens:
            if record.token == token:
                return record
        return None

    def find_redemption(self, token: str) -> RedemptionRecord | None:
        for record in self.redemptions:
            if record.token == token:
                return record
        return None

    def redemptions_by_token(self) -> dict[str, RedemptionRecord]:
        return {r.token: r for r in self.redemptions}

    def to_dict(self) -> dict:
        return {
            "tokens": [t.to_dict() for t in self.tokens],
            "redemptions": [r.to_dict() for r in self.redemptions],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Dataset":
        if not isinstance(data, dict):
            raise ValueError("dataset must be an object")
        tokens = data.get("tokens")
        redemptions = data.get("redemptions")
        if not isinstance(tokens, list) or not isinstance(redemptions, list):
            raise ValueError("dataset requires 'tokens' and 'redemptions' lists")
        return cls(
            tokens=[TokenRecord.from_dict(t) for t in tokens],
            redemptions=[RedemptionRecord.from_dict(r) for r in redemptions],
        )


def _required_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"'{key}' must be a non-empty string")
    return value


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string or null")
    return value
