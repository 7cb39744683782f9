"""Pydantic v2 schemas for market snapshots and pricing recommendations."""

from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

Seasonality = Literal["low", "medium", "high", "peak"]


class MarketSnapshot(BaseModel):
    """Aggregated pricing and demand signals for one comparable cohort.

    Recomputed on demand and cached; not a system of record.
    """

    city: str
    state: str
    property_type: str
    bedrooms: int
    average_price: Decimal = Decimal("0")  # rounded to cents
    mean_price: Decimal = Decimal("0")  # exact cohort mean, used for the competition factor
    occupancy_rate: float = Field(0.0, ge=0, le=100)  # percentage, 0 to 100
    demand_score: int = Field(50, ge=0, le=100)
    competitor_count: int = 0
    seasonality: Seasonality = "medium"


class PricingFactors(BaseModel):
    """Contributing factors, as rounded whole percentages."""

    demand: int
    competition: int
    seasonality: int
    property: int


class PricingRecommendation(BaseModel):
    """Recommended nightly price for one date."""

    day: date
    original_price: Decimal
    recommended_price: Decimal
    adjustment_percentage: float
    reasoning: str
    confidence: int = Field(..., ge=0, le=100)
    factors: PricingFactors
    advisory_adjustment: float | None = None


class PricingSummary(BaseModel):
    current_revenue: Decimal
    recommended_revenue: Decimal
    potential_increase: Decimal
    average_adjustment: float
    high_confidence_count: int
    average_confidence: int


class PricingInsights(BaseModel):
    best_days: list[PricingRecommendation]
    worst_days: list[PricingRecommendation]


class PricingRecommendationsResponse(BaseModel):
    property_id: str
    start_date: date
    end_date: date
    total_days: int
    summary: PricingSummary
    recommendations: list[PricingRecommendation]
    insights: PricingInsights


class PriceAdjustment(BaseModel):
    day: date
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    confidence: int | None = Field(None, ge=0, le=100)


class ApplyPricingRequest(BaseModel):
    adjustments: list[PriceAdjustment] = Field(..., min_length=1, max_length=366)
    apply_only_high_confidence: bool = True


class ApplyPricingResponse(BaseModel):
    applied: int
    skipped: int
