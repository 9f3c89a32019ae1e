"""
Analytics Module

Read-only aggregation over the listings collection.

Architecture:
    - metrics: derived figures (lead score, urgency, trends, margins)
    - pipelines: aggregation pipeline builders
    - AnalyticsEngine: dashboards, leads, pricing, reports
    - rules: threshold-driven advisories over engine output

Usage:
    from core.analytics import AnalyticsEngine

    engine = AnalyticsEngine(store)
    report = await engine.report(vendor_id, period=30)
"""

from core.analytics.engine import AnalyticsEngine
from core.analytics.rules import (
    VendorHealth,
    evaluate_rules,
    DEFAULT_RULES,
    REPORT_RULES,
    ALERT_RULES,
)

__all__ = [
    "AnalyticsEngine",
    "VendorHealth",
    "evaluate_rules",
    "DEFAULT_RULES",
    "REPORT_RULES",
    "ALERT_RULES",
]
