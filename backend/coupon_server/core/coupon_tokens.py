"""Coupon Tokens — token generation, display hashes and timestamp formatting.

Invariants:
    - generate_token() yields TOKEN_BYTES (16) random bytes as 32 hex chars
    - hash_token() is deterministic and never reversible to the token
    - Timestamps are UTC ISO-8601 with millisecond precision and a 'Z' suffix
"""

import hashlib
import secrets
from datetime import datetime, timezone

from coupon_server.core.domain_types import (
    Token, TokenHash, TOKEN_BYTES, TOKEN_HASH_LENGTH,
)


def generate_token() -> Token:
    return Token(secrets.token_hex(TOKEN_BYTES))


def hash_token(token: str) -> TokenHash:
    """Short display hash, safe for logs, receipts and reports."""
    digest = hashlib.sha256(token.encode("utf-8")).hexdigest()
    return TokenHash(digest[:TOKEN_HASH_LENGTH])


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 string (date or datetime). None when unparsable."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
