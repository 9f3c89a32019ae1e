"""
Periodic notification jobs.

Each job reads a fresh snapshot from the analytics engine and hands the
result to the fan-out engine. Jobs are registered on a Scheduler with
their interval; store failures inside a job are logged by the scheduler
and the timer keeps running.
"""
from typing import Dict

from core.analytics.engine import AnalyticsEngine
from core.config import config
from core.logging import get_logger
from core.models.listing import Listing
from core.realtime.fanout import EventFanOut
from core.scheduler import Scheduler

logger = get_logger("jobs")


class NotificationJobs:
    """The marketplace's recurring notifications."""

    def __init__(self, engine: AnalyticsEngine, fanout: EventFanOut):
        self.engine = engine
        self.fanout = fanout

    async def send_daily_digest(self) -> int:
        digest = await self.engine.daily_digest()
        delivered = await self.fanout.daily_digest(digest)
        logger.info("Daily digest sent", extra={"new_listings": digest["new_listings"], "delivered": delivered})
        return delivered

    async def send_market_trends(self) -> int:
        trending = await self.engine.market_trends()
        if not trending:
            logger.debug("No trending makes in window")
            return 0
        return await self.fanout.market_trends(trending)

    async def scan_stale_inventory(self) -> Dict[str, int]:
        """Alert each vendor holding old, rarely viewed listings."""
        stale = await self.engine.stale_by_vendor()
        days = self.engine.thresholds.stale_scan_days
        for vendor_id, count in stale.items():
            await self.fanout.inventory_alert(vendor_id, "stale_listings", {"count": count, "days": days})
        logger.info("Stale inventory scan complete", extra={"vendors": len(stale)})
        return stale

    async def send_vendor_summaries(self) -> int:
        """
        Daily per-vendor notifications.

        For every seller with active listings: the daily summary, a
        competitor pricing alert per overpriced listing, a low inventory
        alert and an insight about underpriced cars. Market opportunities
        are broadcast to all of them in one batch.
        """
        thresholds = self.engine.thresholds
        vendor_ids = await self.engine.active_vendors()
        for vendor_id in vendor_ids:
            summary = await self.engine.daily_summary(vendor_id)
            await self.fanout.daily_summary(vendor_id, summary)

            for document, market in await self.engine.overpriced_listings(vendor_id):
                await self.fanout.competitor_pricing(
                    vendor_id, Listing.from_db(document), market["avg_price"], market["count"]
                )

            health = await self.engine.vendor_health(vendor_id)
            if health.active_count < thresholds.low_inventory_count:
                await self.fanout.inventory_alert(vendor_id, "low_inventory", {"count": health.active_count})
            if health.price_review_count:
                await self.fanout.inventory_alert(vendor_id, "price_review", {"count": health.price_review_count})

            underpriced = [
                rec for rec in await self.engine.pricing_recommendations(vendor_id)
                if rec.verdict == "underpriced"
            ]
            if underpriced:
                await self.fanout.market_insight(
                    vendor_id,
                    {
                        "type": "underpriced",
                        "count": len(underpriced),
                        "listing_ids": [rec.listing_id for rec in underpriced],
                        "message": f"{len(underpriced)} of your cars are priced well below comparable listings",
                    },
                )

        opportunities = await self.engine.market_opportunities()
        if opportunities and vendor_ids:
            top = opportunities[0]
            await self.fanout.batch(
                vendor_ids,
                {
                    "message": f"High demand detected for {top.make} {top.body_type}",
                    "priority": "low",
                    "opportunities": [opportunity.model_dump() for opportunity in opportunities],
                },
            )

        logger.info("Vendor summaries sent", extra={"vendors": len(vendor_ids)})
        return len(vendor_ids)

    def register(self, scheduler: Scheduler) -> Scheduler:
        scheduler.every("daily-digest", config.DAILY_DIGEST_INTERVAL, self.send_daily_digest)
        scheduler.every("market-trends", config.MARKET_TRENDS_INTERVAL, self.send_market_trends)
        scheduler.every("stale-inventory-scan", config.STALE_SCAN_INTERVAL, self.scan_stale_inventory)
        scheduler.every("vendor-summaries", config.VENDOR_SUMMARY_INTERVAL, self.send_vendor_summaries)
        return scheduler
