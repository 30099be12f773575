"""Analytics Summary — issuance/redemption totals for the admin dashboard.

Invariants:
    - Pure function of the dataset — safe to cache and recompute at any time
    - redemption_rate is a percentage rounded to one decimal (0.0 when nothing issued)
    - by_day keys are YYYY-MM-DD, counted on issued_at / redeemed_at respectively
"""

from coupon_server.core.coupon_records import Dataset


def summarize_analytics(dataset: Dataset) -> dict:
    by_day: dict[str, dict[str, int]] = {}
    by_offer: dict[str, dict[str, int]] = {}
    redeemed = dataset.redemptions_by_token()

    for record in dataset.tokens:
        day = _bucket(by_day, record.issued_at[:10])
        day["issued"] += 1
        offer = _bucket(by_offer, record.offer_id or "unknown")
        offer["issued"] += 1
        if record.token in redeemed:
            offer["redeemed"] += 1

    for redemption in dataset.redemptions:
        _bucket(by_day, redemption.redeemed_at[:10])["redeemed"] += 1

    total_issued = len(dataset.tokens)
    total_redeemed = len(dataset.redemptions)
    rate = round(total_redeemed / total_issued * 100, 1) if total_issued else 0.0

    return {
        "total_issued": total_issued,
        "total_redeemed": total_redeemed,
        "redemption_rate": rate,
        "by_day": dict(sorted(by_day.items())),
        "by_offer": by_offer,
    }


def _bucket(table: dict[str, dict[str, int]], key: str) -> dict[str, int]:
    return table.setdefault(key, {"issued": 0, "redeemed": 0})
