"""
Alert/Recommendation Ruleset.

Each rule is a stateless function of a VendorHealth snapshot that returns
an Advisory or None. Rules never see each other's output and keep no
suppression state, so the same data always yields the same advisories.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from core.models.analytics import Advisory
from core.models.common import PRIORITY_ORDER
from core.thresholds import DEFAULT_THRESHOLDS, Thresholds


@dataclass
class VendorHealth:
    """Aggregation output the rules are evaluated against."""
    active_count: int = 0
    stale_count: int = 0
    overpriced_count: int = 0
    high_interest_count: int = 0
    price_review_count: int = 0
    top_categories: List[Dict] = field(default_factory=list)


Rule = Callable[[VendorHealth, Thresholds], Optional[Advisory]]


def stale_inventory(health: VendorHealth, thresholds: Thresholds) -> Optional[Advisory]:
    if health.stale_count <= 0:
        return None
    return Advisory(
        type="inventory",
        priority="high",
        title="Stale Inventory Alert",
        message=(
            f"You have {health.stale_count} cars listed for over "
            f"{thresholds.stale_days} days with low views"
        ),
        action="Consider price reduction or better photos/descriptions",
        data={"count": health.stale_count, "days": thresholds.stale_days},
    )


def low_inventory(health: VendorHealth, thresholds: Thresholds) -> Optional[Advisory]:
    if health.active_count >= thresholds.low_inventory_count:
        return None
    return Advisory(
        type="warning",
        priority="medium",
        title="Low Inventory",
        message=f"Only {health.active_count} active listings remaining",
        action="Add more vehicles to keep buyers engaged",
        data={"count": health.active_count},
    )


def overpricing(health: VendorHealth, thresholds: Thresholds) -> Optional[Advisory]:
    if health.overpriced_count <= 0:
        return None
    percent = round((thresholds.competitive_price_ratio - 1) * 100)
    return Advisory(
        type="pricing",
        priority="medium",
        title="Pricing Optimization",
        message=(
            f"{health.overpriced_count} cars are priced more than {percent}% "
            f"above comparable listings"
        ),
        action="Review and adjust pricing to be more competitive",
        data={"count": health.overpriced_count},
    )


def high_performance_categories(health: VendorHealth, thresholds: Thresholds) -> Optional[Advisory]:
    if not health.top_categories:
        return None
    names = ", ".join(f"{c['make']} {c['body_type']}" for c in health.top_categories)
    return Advisory(
        type="opportunity",
        priority="medium",
        title="High-Performance Categories",
        message=f"Focus on {names}",
        action="Consider stocking more vehicles in these categories",
        data={"categories": health.top_categories},
    )


def high_interest(health: VendorHealth, thresholds: Thresholds) -> Optional[Advisory]:
    if health.high_interest_count <= 0:
        return None
    return Advisory(
        type="success",
        priority="low",
        title="High Interest Cars",
        message=f"{health.high_interest_count} cars have high buyer interest",
        action="Follow up with interested buyers quickly",
        data={"count": health.high_interest_count},
    )


def price_review(health: VendorHealth, thresholds: Thresholds) -> Optional[Advisory]:
    if health.price_review_count <= 0:
        return None
    return Advisory(
        type="info",
        priority="medium",
        title="Price Review Needed",
        message=f"{health.price_review_count} cars may need price adjustment",
        action="Review pricing on listings older than "
               f"{thresholds.price_review_days} days with few views",
        data={"count": health.price_review_count},
    )


DEFAULT_RULES: Sequence[Rule] = (
    stale_inventory,
    low_inventory,
    overpricing,
    high_performance_categories,
    high_interest,
    price_review,
)

# Long-horizon advice attached to vendor reports
REPORT_RULES: Sequence[Rule] = (stale_inventory, overpricing, high_performance_categories)

# Operational alerts on the real-time dashboard
ALERT_RULES: Sequence[Rule] = (low_inventory, high_interest, price_review)


def evaluate_rules(
    health: VendorHealth,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    rules: Sequence[Rule] = DEFAULT_RULES,
) -> List[Advisory]:
    """
    Run every rule against the snapshot.

    Returns:
        Advisories ordered high -> low priority, rule order within a level
    """
    advisories = []
    for rule in rules:
        advisory = rule(health, thresholds)
        if advisory is not None:
            advisories.append(advisory)
    return sorted(advisories, key=lambda advisory: PRIORITY_ORDER[advisory.priority])
