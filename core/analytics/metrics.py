"""
Derived metrics computed in application code on top of raw aggregates.

Every function here is total: zero denominators yield the documented
default instead of raising.
"""
import math
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from core.models.common import ensure_aware, utc_now
from core.thresholds import DEFAULT_THRESHOLDS, Thresholds


Number = Union[int, float]

SECONDS_PER_DAY = 86400


def round_half_up(value: float, digits: int = 1) -> float:
    """Round like a person would: 2.25 -> 2.3, not banker's rounding."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def safe_divide(numerator: Number, denominator: Number, default: float = 0.0) -> float:
    if not denominator:
        return default
    return numerator / denominator


def lead_score(inquiries: int, views: int) -> float:
    """Inquiry-to-view ratio as a percentage with one decimal; 0 without views."""
    if views <= 0:
        return 0.0
    return round_half_up(inquiries / views * 100, 1)


def days_listed(listed_at: datetime, now: Optional[datetime] = None) -> int:
    """Whole days since listing, floored."""
    now = now or utc_now()
    elapsed = (now - ensure_aware(listed_at)).total_seconds()
    return max(0, math.floor(elapsed / SECONDS_PER_DAY))


def urgency(days: int, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> str:
    """
    Classify listing age.

    high:   days > 30
    medium: 14 <= days <= 30
    low:    days < 14
    """
    if days > thresholds.urgency_high_after_days:
        return "high"
    if days >= thresholds.urgency_medium_from_days:
        return "medium"
    return "low"


def trend(current: Number, previous: Number) -> float:
    """Percent change from previous to current; 0 when previous is 0."""
    if not previous:
        return 0.0
    return (current - previous) / previous * 100


def conversion_rate(sold: int, total_inquiries: int) -> str:
    """Sold per inquiry as a percentage string, "0" when nobody inquired."""
    if total_inquiries <= 0:
        return "0"
    return f"{sold / total_inquiries * 100:.1f}"


def average_price(total_value: Number, count: int) -> float:
    return safe_divide(total_value, count)


def price_change_percent(old_price: Number, new_price: Number) -> float:
    """Signed percent change; negative for a reduction."""
    return safe_divide(new_price - old_price, old_price) * 100


def profit(sale_price: Number, original_price: Number) -> float:
    return sale_price - original_price


def profit_margin(sale_price: Number, original_price: Number) -> float:
    return safe_divide(profit(sale_price, original_price), original_price) * 100


def crossed(previous: Number, current: Number, threshold: Number) -> bool:
    """True only on the transition that reaches the threshold."""
    return previous < threshold <= current
