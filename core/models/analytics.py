"""
Analytics read models.

Aggregation snapshots are computed on request and never persisted, so
these models exist only to give the engine and API a stable shape.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from core.models.common import Priority


Urgency = Literal["low", "medium", "high"]
PricingVerdict = Literal["overpriced", "underpriced"]


class Lead(BaseModel):
    """A listing ranked by buyer interest."""
    listing_id: str
    make: str
    model: str
    year: int
    price: float
    views: int
    inquiries: int
    favorites: int
    lead_score: float
    days_listed: int
    urgency: Urgency


class PricingRecommendation(BaseModel):
    """A listing whose price is far from the comparable-market mean."""
    listing_id: str
    make: str
    model: str
    year: int
    price: float
    market_price: float
    price_diff: float  # price - market_price
    suggested_adjustment: float  # market_price - price
    verdict: PricingVerdict
    priority: Priority
    suggestion: str
    comparable_count: int = 0


class MarketOpportunity(BaseModel):
    """A (make, body type) combination with high demand."""
    make: str
    body_type: str
    count: int
    avg_price: float
    avg_views: float
    opportunity: str = "high_demand"
    suggestion: str = ""
    priority: Priority = "medium"


class Advisory(BaseModel):
    """A prioritized, human readable recommendation."""
    type: str
    priority: Priority
    title: str
    message: str
    action: str
    data: Optional[Dict[str, Any]] = None


class Recommendations(BaseModel):
    underperforming: List[Dict[str, Any]] = Field(default_factory=list)
    pricing: List[PricingRecommendation] = Field(default_factory=list)
    opportunities: List[MarketOpportunity] = Field(default_factory=list)
