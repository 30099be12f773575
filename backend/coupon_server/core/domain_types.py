"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - Token wraps the raw coupon secret — never logged, only its TokenHash
    - TokenHash is the first 12 hex chars of SHA-256(token)
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

Token = NewType("Token", str)
TokenHash = NewType("TokenHash", str)
ClientSlug = NewType("ClientSlug", str)


# ─── Constants ───────────────────────────────────────────────────

TOKEN_BYTES = 16            # 128 bits of entropy
TOKEN_HASH_LENGTH = 12
GENERAL_CLIENT_SLUG = ClientSlug("general")


# ─── Enums ───────────────────────────────────────────────────────

class RedemptionStatus(str, Enum):
    """Outcome of a redeem call as reported to the cashier."""
    OK = "ok"
    ALREADY_REDEEMED = "already_redeemed"
    NOT_FOUND = "not_found"


class CouponStatus(str, Enum):
    """Derived coupon state — a token is redeemed iff a redemption record exists."""
    ISSUED = "issued"
    REDEEMED = "redeemed"


class CacheOrigin(str, Enum):
    """Where a read-through value came from."""
    HIT = "HIT"
    STALE = "STALE"
    WAIT = "WAIT"
    MISS = "MISS"
