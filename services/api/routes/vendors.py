"""
Vendor endpoints. Every route requires the vendor role and reports on the
caller's own listings.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from core.analytics.engine import AnalyticsEngine
from core.listings import ListingService
from core.logging import get_logger
from core.models.listing import BulkUpdateRequest
from core.models.user import Identity
from services.api.dependencies import get_analytics, get_listings, vendor_identity

logger = get_logger("api")

router = APIRouter(prefix="/api/vendors", tags=["vendors"])


@router.get("/dashboard")
async def dashboard(
    vendor: Identity = Depends(vendor_identity),
    engine: AnalyticsEngine = Depends(get_analytics),
):
    return await engine.dashboard(vendor.user_id)


@router.get("/analytics")
async def analytics(
    vendor: Identity = Depends(vendor_identity),
    engine: AnalyticsEngine = Depends(get_analytics),
):
    return await engine.analytics(vendor.user_id)


@router.get("/inventory")
async def inventory(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    sort_by: str = "listed_at",
    sort_order: str = "desc",
    search: Optional[str] = None,
    vendor: Identity = Depends(vendor_identity),
    listings: ListingService = Depends(get_listings),
):
    return await listings.inventory(vendor.user_id, page, limit, status, sort_by, sort_order, search)


@router.post("/bulk-update")
async def bulk_update(
    payload: BulkUpdateRequest,
    vendor: Identity = Depends(vendor_identity),
    listings: ListingService = Depends(get_listings),
):
    try:
        updated = await listings.bulk_update(vendor, payload)
    except ValueError as e:
        logger.warning("Rejected bulk update", extra={"vendor_id": vendor.user_id, "reason": str(e)})
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": f"Updated {updated} cars successfully", "updated_count": updated}


@router.get("/leads")
async def leads(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    vendor: Identity = Depends(vendor_identity),
    engine: AnalyticsEngine = Depends(get_analytics),
):
    return await engine.leads(vendor.user_id, page, limit)


@router.get("/recommendations")
async def recommendations(
    vendor: Identity = Depends(vendor_identity),
    engine: AnalyticsEngine = Depends(get_analytics),
):
    return (await engine.recommendations(vendor.user_id)).model_dump(mode="json")


@router.get("/report")
async def report(
    period: Optional[int] = Query(None, ge=1, le=365),
    vendor: Identity = Depends(vendor_identity),
    engine: AnalyticsEngine = Depends(get_analytics),
):
    return await engine.report(vendor.user_id, period)


@router.get("/realtime")
async def realtime(
    vendor: Identity = Depends(vendor_identity),
    engine: AnalyticsEngine = Depends(get_analytics),
):
    return await engine.realtime_dashboard(vendor.user_id)


@router.get("/alerts")
async def alerts(
    vendor: Identity = Depends(vendor_identity),
    engine: AnalyticsEngine = Depends(get_analytics),
):
    advisories = await engine.advisories(vendor.user_id)
    return {"alerts": [advisory.model_dump(mode="json") for advisory in advisories]}


@router.get("/profile")
async def profile(
    vendor: Identity = Depends(vendor_identity),
    engine: AnalyticsEngine = Depends(get_analytics),
):
    return await engine.profile(vendor.user_id)
