"""Pricing API router: recommendations and market snapshots."""

import uuid
from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hospede.api.deps import get_db, get_services
from hospede.exceptions import InvalidRangeError
from hospede.schemas.pricing import (
    ApplyPricingRequest,
    ApplyPricingResponse,
    MarketSnapshot,
    PricingRecommendationsResponse,
)
from hospede.services.calendar_store import get_property
from hospede.services.container import EngineServices
from hospede.services.pricing import PricingContext, summarize_recommendations
from hospede.services.recurrence import date_range
from hospede.services.repricing import apply_price_adjustments

router = APIRouter(prefix="/api/v1", tags=["pricing"])

MAX_RECOMMENDATION_DAYS = 366


@router.get(
    "/properties/{property_id}/pricing/recommendations",
    response_model=PricingRecommendationsResponse,
    summary="Per-date price recommendations",
)
async def get_pricing_recommendations(
    property_id: uuid.UUID,
    start_date: date | None = Query(None, description="Defaults to today"),
    end_date: date | None = Query(None, description="Defaults to start_date + days - 1"),
    days: int = Query(30, ge=1, le=MAX_RECOMMENDATION_DAYS),
    db: AsyncSession = Depends(get_db),
    services: EngineServices = Depends(get_services),
) -> PricingRecommendationsResponse:
    """Recommendations for every date in the window, with revenue summary and insights."""
    start = start_date or date.today()
    end = end_date or start + timedelta(days=days - 1)
    if end < start:
        raise InvalidRangeError("end_date must be on or after start_date")
    if (end - start).days + 1 > MAX_RECOMMENDATION_DAYS:
        raise InvalidRangeError(f"Recommendation window cannot exceed {MAX_RECOMMENDATION_DAYS} days")

    prop = await get_property(db, property_id)
    recommendations = await services.pricing.recommend(db, PricingContext.from_property(prop), date_range(start, end))
    summary, insights = summarize_recommendations(recommendations)
    return PricingRecommendationsResponse(
        property_id=str(property_id),
        start_date=start,
        end_date=end,
        total_days=len(recommendations),
        summary=summary,
        recommendations=recommendations,
        insights=insights,
    )


@router.post(
    "/properties/{property_id}/pricing/apply",
    response_model=ApplyPricingResponse,
    summary="Write selected recommended prices to the calendar",
)
async def apply_pricing(
    property_id: uuid.UUID,
    body: ApplyPricingRequest,
    db: AsyncSession = Depends(get_db),
    services: EngineServices = Depends(get_services),
) -> ApplyPricingResponse:
    """Write the approved prices; serialized with bookings on the same property."""
    async with services.locks.hold(property_id):
        applied, skipped = await apply_price_adjustments(
            db,
            property_id,
            body.adjustments,
            only_high_confidence=body.apply_only_high_confidence,
        )
        await db.commit()
    return ApplyPricingResponse(applied=applied, skipped=skipped)


@router.get(
    "/pricing/market",
    response_model=MarketSnapshot,
    summary="Market snapshot for a comparable cohort",
)
async def get_market_snapshot(
    city: str = Query(..., min_length=1),
    state: str = Query(..., min_length=2, max_length=2),
    property_type: str = Query(...),
    bedrooms: int = Query(..., ge=0),
    db: AsyncSession = Depends(get_db),
    services: EngineServices = Depends(get_services),
) -> MarketSnapshot:
    return await services.market.get_market_snapshot(db, city, state, property_type, bedrooms)
