"""
Business thresholds for fan-out, analytics and advisories.

All limits live here so every code path reads the same value.
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Thresholds:
    """Named limits used by the fan-out engine, analytics engine and ruleset."""

    # --- FAN-OUT ---
    price_drop_alert_percent: float = -5.0  # percentDiff <= this fires a price alert
    inquiry_milestone: int = 5
    view_milestone: int = 100
    quick_sale_days: int = 7

    # --- PRICING ---
    overpriced_diff: float = 5000.0  # price - market mean above this is overpriced
    underpriced_diff: float = -3000.0  # price - market mean below this is underpriced
    pricing_high_priority_diff: float = 10000.0
    competitive_price_ratio: float = 1.15  # alert when price > comparables mean * ratio
    comparable_year_window: int = 2
    market_comparison_limit: int = 5

    # --- INVENTORY HEALTH ---
    stale_days: int = 45
    stale_max_views: int = 30
    low_inventory_count: int = 5
    high_interest_inquiries: int = 5
    high_interest_views: int = 100
    price_review_days: int = 30
    price_review_max_views: int = 20
    underperforming_days: int = 14
    underperforming_max_views: int = 20
    low_performing_days: int = 30
    low_performing_max_views: int = 10
    stale_scan_days: int = 30  # weekly per-vendor scan
    stale_scan_max_views: int = 20

    # --- LEADS ---
    urgency_high_after_days: int = 30  # days > 30 is high
    urgency_medium_from_days: int = 14  # 14 <= days <= 30 is medium

    # --- MARKET ---
    opportunity_window_days: int = 30
    opportunity_min_count: int = 5
    opportunity_min_avg_views: float = 50.0
    opportunity_limit: int = 5
    top_category_window_days: int = 90
    top_category_min_sales: int = 2
    top_category_max_days_to_sell: float = 30.0
    trending_window_hours: int = 24

    # --- REPORTING ---
    default_report_period_days: int = 30
    default_days_to_sell: float = 30.0
    age_bucket_boundaries: Tuple[float, ...] = (0, 7, 14, 30, 60, 90, float("inf"))


DEFAULT_THRESHOLDS = Thresholds()
