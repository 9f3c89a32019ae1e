"""
Listing Schema - Vehicle listings offered on the marketplace.

Architecture:
- Categorical attributes (make, model, body type, ...) drive topic fan-out
- Engagement counters (views, inquiries, favorites) are only ever mutated
  with atomic $inc updates by the listing service
- Price history is append-only and ordered by date

Collections:
- listings: one document per vehicle listing
"""
from datetime import datetime, date as date_type
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from core.models.common import ensure_aware, new_id, utc_now


# ============================================================================
# ENUMS AND CONSTANTS
# ============================================================================

ListingStatus = Literal["active", "pending", "sold", "inactive"]
Condition = Literal["new", "used", "certified"]
FuelType = Literal["gasoline", "diesel", "hybrid", "electric", "plugin-hybrid"]
Transmission = Literal["manual", "automatic", "cvt"]
BodyType = Literal["sedan", "suv", "hatchback", "coupe", "convertible", "wagon", "truck", "van"]
SellerType = Literal["private", "dealer"]

LISTING_STATUSES = ("active", "pending", "sold", "inactive")

# Fields a vendor may change across many listings at once
BULK_UPDATABLE_FIELDS = ("status", "featured", "urgent", "price")

LISTINGS_COLLECTION = "listings"


# ============================================================================
# NESTED MODELS
# ============================================================================

class Coordinates(BaseModel):
    lat: float
    lng: float


class Location(BaseModel):
    """Where the vehicle can be seen."""
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class PriceHistoryEntry(BaseModel):
    price: float = Field(..., gt=0)
    date: datetime = Field(default_factory=utc_now)

    @field_validator("date")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class ListingImage(BaseModel):
    url: str
    caption: Optional[str] = None
    is_primary: bool = False


# ============================================================================
# LISTING MODEL
# ============================================================================

class Listing(BaseModel):
    """
    A vehicle listing stored in the 'listings' collection.

    Invariants:
        - status == "sold" implies sold_at is set and sold_at >= listed_at
        - price_history is ordered by date; an entry is appended whenever
          price changes

    Example:
        listing = Listing(
            seller="a1b2c3",
            make="Toyota",
            model="Camry",
            year=2021,
            price=24500,
            mileage=31000,
            condition="used",
            fuel_type="gasoline",
            transmission="automatic",
            body_type="sedan",
            exterior_color="silver",
            location=Location(city="Austin", state="TX"),
        )
    """

    model_config = ConfigDict(populate_by_name=True)

    # --- IDENTITY ---
    id: str = Field(default_factory=new_id, alias="_id")
    seller: str = Field(..., description="User id of the owning seller")
    seller_type: SellerType = "private"

    # --- CATEGORICAL ---
    make: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    year: int = Field(..., ge=1900)
    condition: Condition
    fuel_type: FuelType
    transmission: Transmission
    body_type: BodyType
    exterior_color: str = "not specified"
    interior_color: Optional[str] = None

    # --- NUMERIC ---
    price: float = Field(..., gt=0)
    original_price: Optional[float] = None
    price_history: List[PriceHistoryEntry] = Field(default_factory=list)
    mileage: int = Field(..., ge=0)

    # --- PRESENTATION ---
    location: Location
    description: str = ""
    features: List[str] = Field(default_factory=list)
    images: List[ListingImage] = Field(default_factory=list)
    featured: bool = False
    urgent: bool = False

    # --- LIFECYCLE & ENGAGEMENT ---
    status: ListingStatus = "active"
    views: int = Field(default=0, ge=0)
    inquiries: int = Field(default=0, ge=0)
    favorites: int = Field(default=0, ge=0)

    listed_at: datetime = Field(default_factory=utc_now)
    last_updated: datetime = Field(default_factory=utc_now)
    sold_at: Optional[datetime] = None

    @field_validator("listed_at", "last_updated", "sold_at")
    @classmethod
    def _aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(value)

    @model_validator(mode="after")
    def _check_invariants(self) -> "Listing":
        if self.status == "sold":
            if self.sold_at is None:
                raise ValueError("a sold listing must carry sold_at")
            if self.sold_at < self.listed_at:
                raise ValueError("sold_at cannot precede listed_at")
        dates = [entry.date for entry in self.price_history]
        if dates != sorted(dates):
            raise ValueError("price_history must be ordered by date")
        return self

    @property
    def title(self) -> str:
        return f"{self.year} {self.make} {self.model}"

    def summary(self) -> Dict[str, Any]:
        """Compact description used inside event payloads."""
        return {
            "id": self.id,
            "make": self.make,
            "model": self.model,
            "year": self.year,
            "price": self.price,
        }

    def change_price(self, new_price: float, at: Optional[datetime] = None) -> Optional[float]:
        """
        Set a new price, appending to the price history.

        Args:
            new_price: The new asking price
            at: When the change happened (defaults to now)

        Returns:
            The previous price, or None if the price did not change
        """
        if new_price == self.price:
            return None
        at = ensure_aware(at) or utc_now()
        if self.price_history and at < self.price_history[-1].date:
            at = self.price_history[-1].date
        old_price = self.price
        self.price = new_price
        self.price_history.append(PriceHistoryEntry(price=new_price, date=at))
        self.last_updated = at
        return old_price

    def change_status(self, status: ListingStatus, at: Optional[datetime] = None) -> ListingStatus:
        """
        Move the listing to a new lifecycle status.

        Returns:
            The previous status
        """
        at = ensure_aware(at) or utc_now()
        previous = self.status
        if status == "sold" and previous != "sold":
            self.sold_at = max(at, self.listed_at)
        elif status != "sold":
            self.sold_at = None
        self.status = status
        self.last_updated = at
        return previous

    def days_to_sell(self) -> Optional[float]:
        if self.sold_at is None:
            return None
        return (self.sold_at - self.listed_at).total_seconds() / 86400

    def to_dict_for_db(self) -> dict:
        """
        Convert to dictionary for MongoDB insertion.

        Datetimes stay as datetime objects so date queries work.
        """
        return self.model_dump(by_alias=True)

    @classmethod
    def from_db(cls, document: Dict[str, Any]) -> "Listing":
        return cls.model_validate(document)


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class ListingCreate(BaseModel):
    """Validated payload for creating a listing."""
    make: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    year: int
    price: float = Field(..., gt=0)
    mileage: int = Field(..., ge=0)
    condition: Condition
    fuel_type: FuelType
    transmission: Transmission
    body_type: BodyType
    exterior_color: str = Field(..., min_length=1)
    interior_color: Optional[str] = None
    location: Location
    description: str = Field(..., min_length=10)
    images: List[ListingImage] = Field(..., min_length=1)
    features: List[str] = Field(default_factory=list)

    @field_validator("year")
    @classmethod
    def _year_in_range(cls, value: int) -> int:
        latest = date_type.today().year + 1
        if not 1900 <= value <= latest:
            raise ValueError(f"year must be between 1900 and {latest}")
        return value


class ListingUpdate(BaseModel):
    """Partial update; status changes go through the status endpoint."""
    make: Optional[str] = Field(None, min_length=1)
    model: Optional[str] = Field(None, min_length=1)
    year: Optional[int] = Field(None, ge=1900)
    price: Optional[float] = Field(None, gt=0)
    mileage: Optional[int] = Field(None, ge=0)
    condition: Optional[Condition] = None
    fuel_type: Optional[FuelType] = None
    transmission: Optional[Transmission] = None
    body_type: Optional[BodyType] = None
    exterior_color: Optional[str] = None
    interior_color: Optional[str] = None
    location: Optional[Location] = None
    description: Optional[str] = Field(None, min_length=10)
    images: Optional[List[ListingImage]] = None
    features: Optional[List[str]] = None
    featured: Optional[bool] = None
    urgent: Optional[bool] = None


class BulkUpdateFields(BaseModel):
    """Values a bulk update may set. Unknown keys are dropped, explicit nulls rejected."""
    model_config = ConfigDict(extra="ignore")

    status: ListingStatus = None
    price: float = Field(None, gt=0, allow_inf_nan=False)
    featured: bool = None
    urgent: bool = None


class BulkUpdateRequest(BaseModel):
    """A vendor's request to patch many of their listings."""
    listing_ids: List[str] = Field(..., min_length=1)
    updates: Dict[str, Any]

    def allowed_updates(self) -> Dict[str, Any]:
        """
        Keep only the bulk-updatable fields, validating their values.

        Raises:
            ValueError: If a status, price or flag value is invalid
        """
        try:
            fields = BulkUpdateFields.model_validate(self.updates)
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"])
            raise ValueError(f"Invalid value for {field}: {error['msg']}") from e
        return fields.model_dump(exclude_unset=True)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def create_listing(
    seller_id: str,
    payload: ListingCreate,
    seller_role: str = "buyer",
    listed_at: Optional[datetime] = None,
) -> Listing:
    """
    Factory function for a new listing owned by `seller_id`.

    The original price is recorded and the price history is seeded with
    the opening price.

    Args:
        seller_id: Owning user id
        payload: Validated create request
        seller_role: Role of the owner; vendors list as dealers
        listed_at: Listing time (defaults to now)

    Returns:
        Listing instance
    """
    listed_at = ensure_aware(listed_at) or utc_now()
    return Listing(
        seller=seller_id,
        seller_type="dealer" if seller_role == "vendor" else "private",
        original_price=payload.price,
        price_history=[PriceHistoryEntry(price=payload.price, date=listed_at)],
        listed_at=listed_at,
        last_updated=listed_at,
        **payload.model_dump(),
    )


def listing_view(document: Dict[str, Any]) -> Dict[str, Any]:
    """Outward form of a stored listing document: `_id` becomes `id`."""
    view = dict(document)
    if "_id" in view:
        view["id"] = view.pop("_id")
    return view
