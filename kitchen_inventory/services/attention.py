from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

DEFAULT_LOW_STOCK_THRESHOLD = Decimal("5")
DEFAULT_EXPIRING_SOON_DAYS = 7


@dataclass(frozen=True)
class AttentionThresholds:
    low_stock_threshold: Decimal = DEFAULT_LOW_STOCK_THRESHOLD
    expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS


def attention_reasons(
    item,
    thresholds: AttentionThresholds | None = None,
    today: date | None = None,
) -> list[str]:
    thresholds = thresholds or AttentionThresholds()
    today = today or date.today()

    reasons = []
    if Decimal(item.quantity or 0) < thresholds.low_stock_threshold:
        reasons.append("Low stock")
    expiry = item.expiry_date
    if expiry is not None:
        if expiry < today:
            reasons.append("Expired")
        elif expiry <= today + timedelta(days=thresholds.expiring_soon_days):
            reasons.append("Expiring soon")
    return reasons
