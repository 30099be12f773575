"""Client Report — per-client coupon rows with offer/status/date filters.

Invariants:
    - Rows never expose the raw token, only token_hash
    - status is derived from the presence of a redemption record
    - Date filters are inclusive and apply to issued_at; rows with unparsable
      issued_at are excluded whenever a date filter is set
    - An unparsable from/to bound is a ValidationError, never a dropped filter
"""

from dataclasses import dataclass
from datetime import datetime

from coupon_server.core.coupon_records import Dataset
from coupon_server.core.coupon_tokens import parse_timestamp
from coupon_server.core.domain_types import CouponStatus
from coupon_server.core.errors import ValidationError


@dataclass(frozen=True)
class ReportFilters:
    offer: str | None = None
    statuses: frozenset[str] = frozenset()
    date_from: datetime | None = None
    date_to: datetime | None = None

    @classmethod
    def parse(
        cls,
        offer: str | None = None,
        status: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> "ReportFilters":
        """Build filters from raw query-string values."""
        statuses = frozenset(
            s.strip().lower() for s in (status or "").split(",") if s.strip()
        )
        return cls(
            offer=(offer or "").strip() or None,
            statuses=statuses,
            date_from=_parse_bound(date_from, "from"),
            date_to=_parse_bound(date_to, "to"),
        )

    def cache_key(self) -> str:
        return "|".join((
            self.offer or "",
            ",".join(sorted(self.statuses)),
            self.date_from.isoformat() if self.date_from else "",
            self.date_to.isoformat() if self.date_to else "",
        ))


def _parse_bound(value: str | None, field: str) -> datetime | None:
    if value is None or not value.strip():
        return None
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValidationError(f"invalid date '{value}'", field)
    return parsed


def shape_client_rows(dataset: Dataset) -> list[dict]:
    """Join tokens with their redemption into flat report rows."""
    redeemed = dataset.redemptions_by_token()
    rows = []
    for record in dataset.tokens:
        redemption = redeemed.get(record.token)
        rows.append({
            "id": record.token_hash,
            "offer_id": record.offer_id,
            "restaurant": record.restaurant or "",
            "client_slug": record.client_slug or "",
            "status": (
                CouponStatus.REDEEMED if redemption else CouponStatus.ISSUED
            ).value,
            "issued_at": record.issued_at,
            "redeemed_at": redemption.redeemed_at if redemption else "",
            "redeemed_by_store": (redemption.store_id or "") if redemption else "",
            "redeemed_by_staff": (redemption.staff or "") if redemption else "",
            "token_hash": record.token_hash,
        })
    return rows


def filter_client_rows(
    rows: list[dict], client_slug: str, filters: ReportFilters,
) -> list[dict]:
    result = [r for r in rows if r["client_slug"] == client_slug]
    if filters.offer:
        needle = filters.offer.lower()
        result = [r for r in result if needle in r["offer_id"].lower()]
    if filters.statuses:
        result = [r for r in result if r["status"] in filters.statuses]
    if filters.date_from or filters.date_to:
        result = [r for r in result if _issued_within(r["issued_at"], filters)]
    return result


def _issued_within(issued_at: str, filters: ReportFilters) -> bool:
    issued = parse_timestamp(issued_at)
    if issued is None:
        return False
    if filters.date_from and issued < filters.date_from:
        return False
    if filters.date_to and issued > filters.date_to:
        return False
    return True
