"""
Listing endpoints.

GET    /api/cars                    filtered feed with pagination
GET    /api/cars/search             faceted search
GET    /api/cars/suggestions        make/model autocomplete
GET    /api/cars/popular            popular makes and models
GET    /api/cars/market-analysis    price and year distribution
GET    /api/cars/stats/overview     marketplace totals
GET    /api/cars/vendor             the caller's own listings
GET    /api/cars/{id}               one listing (counts a view)
POST   /api/cars                    create
PUT    /api/cars/{id}               update (owner)
PATCH  /api/cars/{id}/status        status change (owner)
DELETE /api/cars/{id}               delete (owner)
POST   /api/cars/{id}/favorite      favorite
POST   /api/cars/{id}/inquiry       inquiry (authenticated)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from core.listings import ListingService
from core.models.listing import ListingCreate, ListingStatus, ListingUpdate
from core.models.user import Identity
from core.search import SearchParams, SearchService
from services.api.dependencies import (
    current_identity,
    get_listings,
    get_search,
    optional_identity,
)

router = APIRouter(prefix="/api/cars", tags=["cars"])


class StatusChange(BaseModel):
    status: ListingStatus


class InquiryRequest(BaseModel):
    message: Optional[str] = Field(None, max_length=2000)


def search_params(
    search: Optional[str] = None,
    make: Optional[str] = None,
    model: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
    max_mileage: Optional[int] = None,
    condition: Optional[str] = None,
    fuel_type: Optional[str] = None,
    transmission: Optional[str] = None,
    body_type: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    featured: Optional[bool] = None,
    urgent: Optional[bool] = None,
) -> SearchParams:
    return SearchParams(
        search=search,
        make=make,
        model=model,
        min_price=min_price,
        max_price=max_price,
        min_year=min_year,
        max_year=max_year,
        max_mileage=max_mileage,
        condition=condition,
        fuel_type=fuel_type,
        transmission=transmission,
        body_type=body_type,
        city=city,
        state=state,
        featured=featured,
        urgent=urgent,
    )


# ── Browse and search ──────────────────────────────────────────


@router.get("")
async def list_cars(
    params: SearchParams = Depends(search_params),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = "listed_at",
    sort_order: str = "desc",
    search: SearchService = Depends(get_search),
):
    return await search.browse(params, page, limit, sort_by, sort_order)


@router.get("/search")
async def advanced_search(
    params: SearchParams = Depends(search_params),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = "listed_at",
    sort_order: str = "desc",
    search: SearchService = Depends(get_search),
):
    return await search.advanced_search(params, page, limit, sort_by, sort_order)


@router.get("/suggestions")
async def suggestions(q: str = "", search: SearchService = Depends(get_search)):
    return await search.suggestions(q)


@router.get("/popular")
async def popular(search: SearchService = Depends(get_search)):
    return await search.popular()


@router.get("/market-analysis")
async def market_analysis(
    make: Optional[str] = None,
    model: Optional[str] = None,
    search: SearchService = Depends(get_search),
):
    return await search.market_analysis(make, model)


@router.get("/stats/overview")
async def overview(search: SearchService = Depends(get_search)):
    return await search.overview_stats()


@router.get("/vendor")
async def my_listings(
    identity: Identity = Depends(current_identity),
    listings: ListingService = Depends(get_listings),
):
    return {"cars": await listings.seller_listings(identity.user_id)}


@router.get("/{car_id}")
async def get_car(
    car_id: str,
    viewer: Optional[Identity] = Depends(optional_identity),
    listings: ListingService = Depends(get_listings),
):
    result = await listings.view(car_id, viewer)
    return {
        "car": result["car"].model_dump(mode="json"),
        "similar_cars": [car.model_dump(mode="json") for car in result["similar_cars"]],
    }


# ── Mutations ──────────────────────────────────────────────────


@router.post("", status_code=201)
async def create_car(
    payload: ListingCreate,
    identity: Identity = Depends(current_identity),
    listings: ListingService = Depends(get_listings),
):
    listing = await listings.create(identity, payload)
    return {"message": "Car listing created successfully", "car": listing.model_dump(mode="json")}


@router.put("/{car_id}")
async def update_car(
    car_id: str,
    payload: ListingUpdate,
    identity: Identity = Depends(current_identity),
    listings: ListingService = Depends(get_listings),
):
    listing = await listings.update(identity, car_id, payload)
    return {"message": "Car listing updated successfully", "car": listing.model_dump(mode="json")}


@router.patch("/{car_id}/status")
async def change_status(
    car_id: str,
    payload: StatusChange,
    identity: Identity = Depends(current_identity),
    listings: ListingService = Depends(get_listings),
):
    listing = await listings.change_status(identity, car_id, payload.status)
    return {"message": "Car status updated successfully", "car": listing.model_dump(mode="json")}


@router.delete("/{car_id}")
async def delete_car(
    car_id: str,
    identity: Identity = Depends(current_identity),
    listings: ListingService = Depends(get_listings),
):
    await listings.delete(identity, car_id)
    return {"message": "Car listing deleted successfully"}


@router.post("/{car_id}/favorite")
async def favorite_car(car_id: str, listings: ListingService = Depends(get_listings)):
    favorites = await listings.favorite(car_id)
    return {"message": "Car added to favorites", "favorites": favorites}


@router.post("/{car_id}/inquiry")
async def inquire(
    car_id: str,
    payload: Optional[InquiryRequest] = None,
    identity: Identity = Depends(current_identity),
    listings: ListingService = Depends(get_listings),
):
    message = payload.message if payload else None
    listing = await listings.record_inquiry(identity, car_id, message)
    return {"message": "Inquiry sent successfully", "inquiries": listing.inquiries}
