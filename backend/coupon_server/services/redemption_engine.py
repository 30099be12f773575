"""Redemption Engine — issues coupons and accepts each token's redemption exactly once.

Invariants:
    - Every load→check→append→save sequence runs under one asyncio.Lock per engine
    - N concurrent redeem(T) calls yield exactly one OK; the rest ALREADY_REDEEMED
    - ALREADY_REDEEMED carries the original redeemed_at/store_id and has no side effects
    - Unknown token → TokenNotFoundError; empty input → ValidationError before any IO
    - A failed save raises StorageError and leaves nothing half-applied (dataset is reloaded per call)

Design Decisions:
    - One lock over the whole dataset: issue() and redeem() both rewrite the file
    - Clock and token factory injected for deterministic tests
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from coupon_server.core.coupon_records import (
    Dataset, RedemptionRecord, RequestContext, TokenRecord,
)
from coupon_server.core.coupon_tokens import (
    format_timestamp, generate_token, hash_token, utc_now,
)
from coupon_server.core.domain_types import CouponStatus, RedemptionStatus, Token
from coupon_server.core.errors import (
    ErrorContext, TokenNotFoundError, ValidationError,
)
from coupon_server.infrastructure.token_store import TokenStore

logger = logging.getLogger(__name__)

MAX_TOKEN_ATTEMPTS = 5


@dataclass(frozen=True)
class RedemptionResult:
    status: RedemptionStatus
    token_hash: str
    redeemed_at: str
    store_id: str | None = None
    staff: str | None = None


@dataclass(frozen=True)
class CouponView:
    """A token record together with its redemption, if any."""
    record: TokenRecord
    redemption: RedemptionRecord | None

    @property
    def status(self) -> CouponStatus:
        return CouponStatus.REDEEMED if self.redemption else CouponStatus.ISSUED


class RedemptionEngine:
    """Single writer of the coupon dataset."""

    def __init__(
        self,
        store: TokenStore,
        clock: Callable[[], datetime] = utc_now,
        token_factory: Callable[[], str] = generate_token,
    ):
        self._store = store
        self._clock = clock
        self._token_factory = token_factory
        self._lock = asyncio.Lock()

    async def issue(
        self,
        offer_id: str,
        context: RequestContext | None = None,
        *,
        client_slug: str | None = None,
        restaurant: str | None = None,
    ) -> Token:
        """Create and persist a new one-time token for offer_id."""
        record = await self.issue_record(
            offer_id, context, client_slug=client_slug, restaurant=restaurant,
        )
        return Token(record.token)

    async def issue_record(
        self,
        offer_id: str,
        context: RequestContext | None = None,
        *,
        client_slug: str | None = None,
        restaurant: str | None = None,
    ) -> TokenRecord:
        """Same as issue(), returning the full persisted record."""
        offer_id = (offer_id or "").strip()
        if not offer_id:
            raise ValidationError("offer_id must not be empty", "offer_id")

        async with self._lock:
            dataset = await self._store.load()
            token = self._new_token(dataset)
            record = TokenRecord(
                token=token,
                offer_id=offer_id,
                issued_at=format_timestamp(self._clock()),
                token_hash=hash_token(token),
                issuer_context=context or RequestContext(),
                client_slug=client_slug,
                restaurant=(restaurant or "").strip() or None,
            )
            dataset.tokens.append(record)
            await self._store.save(dataset)

        logger.info(
            "Coupon issued",
            extra={
                "token_hash": record.token_hash,
                "offer_id": offer_id,
                "client_slug": client_slug,
            },
        )
        return record

    async def redeem(
        self,
        token: str,
        store_id: str | None = None,
        context: RequestContext | None = None,
        *,
        staff: str | None = None,
    ) -> RedemptionResult:
        """Accept the first redemption of token; report later ones idempotently."""
        token = (token or "").strip()
        if not token:
            raise ValidationError("token must not be empty", "token")
        token_hash = hash_token(token)
        store_id = (store_id or "").strip() or None

        async with self._lock:
            dataset = await self._store.load()
            if dataset.find_token(token) is None:
                logger.warning(
                    "Redemption of unknown token", extra={"token_hash": token_hash},
                )
                raise TokenNotFoundError(token_hash, ErrorContext())

            existing = dataset.find_redemption(token)
            if existing is not None:
                logger.info(
                    "Repeat redemption attempt",
                    extra={"token_hash": token_hash, "store_id": store_id},
                )
                return RedemptionResult(
                    status=RedemptionStatus.ALREADY_REDEEMED,
                    token_hash=token_hash,
                    redeemed_at=existing.redeemed_at,
                    store_id=existing.store_id,
                    staff=existing.staff,
                )

            redemption = RedemptionRecord(
                token=token,
                redeemed_at=format_timestamp(self._clock()),
                store_id=store_id,
                staff=(staff or "").strip() or None,
                redeemer_context=context or RequestContext(),
            )
            dataset.redemptions.append(redemption)
            await self._store.save(dataset)

        logger.info(
            "Coupon redeemed", extra={"token_hash": token_hash, "store_id": store_id},
        )
        return RedemptionResult(
            status=RedemptionStatus.OK,
            token_hash=token_hash,
            redeemed_at=redemption.redeemed_at,
            store_id=redemption.store_id,
            staff=redemption.staff,
        )

    async def lookup(self, token: str) -> CouponView:
        """Return a token with its redemption state, or raise TokenNotFoundError."""
        token = (token or "").strip()
        if not token:
            raise ValidationError("token must not be empty", "token")
        async with self._lock:
            dataset = await self._store.load()
        record = dataset.find_token(token)
        if record is None:
            raise TokenNotFoundError(hash_token(token))
        return CouponView(record=record, redemption=dataset.find_redemption(token))

    async def get_all_data(self) -> Dataset:
        """Read-only export for reporting collaborators."""
        async with self._lock:
            return await self._store.load()

    def _new_token(self, dataset: Dataset) -> str:
        known = {t.token for t in dataset.tokens}
        for _ in range(MAX_TOKEN_ATTEMPTS):
            token = self._token_factory()
            if token not in known:
                return token
        raise RuntimeError("token generator keeps returning issued tokens")
