"""Dynamic pricing: per-date price recommendations for a listing.

Each date gets four independent factors (seasonality, demand, competition,
property quality). Their mean is the adjustment, optionally averaged with
the advisor's suggestion. Prices are never written here; see
``hospede.services.repricing`` for that.
"""

import asyncio
import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hospede.config import settings
from hospede.database import utcnow
from hospede.models import Property, Reservation, ReservationStatus
from hospede.schemas.pricing import (
    MarketSnapshot,
    PricingFactors,
    PricingInsights,
    PricingRecommendation,
    PricingSummary,
)
from hospede.services.advisor import ADJUSTMENT_MAX, ADJUSTMENT_MIN, AdvisoryRequest, PricingAdvisor
from hospede.services.market import BEACH, MOUNTAIN, TRAILING_WINDOW_DAYS, MarketAnalyzer

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE = 70
MAX_CONFIDENCE = 95
DEMAND_CAP = 0.30
PROPERTY_CAP = 0.20

SUMMER_MONTHS = (12, 1, 2, 3)
WINTER_MONTHS = (6, 7, 8, 9)
WEEKEND_DAYS = (4, 5, 6)  # Friday, Saturday, Sunday

# Reservations counted as booking activity for a listing.
DEMAND_STATUSES = [
    ReservationStatus.PENDING.value,
    ReservationStatus.CONFIRMED.value,
    ReservationStatus.IN_PROGRESS.value,
    ReservationStatus.COMPLETED.value,
]


@dataclass(frozen=True)
class PricingContext:
    """Read-only view of the listing being priced."""

    property_id: uuid.UUID
    city: str
    state: str
    neighborhood: str | None
    property_type: str
    bedrooms: int
    max_guests: int
    base_price: Decimal
    average_rating: float
    review_count: int
    amenities: tuple[str, ...]

    @classmethod
    def from_property(cls, prop: Property) -> "PricingContext":
        return cls(
            property_id=prop.id,
            city=prop.city,
            state=prop.state,
            neighborhood=prop.neighborhood,
            property_type=prop.property_type,
            bedrooms=prop.bedrooms,
            max_guests=prop.max_guests,
            base_price=Decimal(prop.base_price),
            average_rating=prop.average_rating or 0.0,
            review_count=prop.review_count or 0,
            amenities=tuple(prop.amenities or ()),
        )


# ---------------------------------------------------------------------------
# Factors
# ---------------------------------------------------------------------------


def seasonality_factor(day: date, city_tag: str | None) -> float:
    if day.month in SUMMER_MONTHS:
        return 0.30 if city_tag == BEACH else 0.10
    if day.month in WINTER_MONTHS:
        if city_tag == MOUNTAIN:
            return 0.25
        if city_tag == BEACH:
            return -0.10
        return 0.0
    return 0.05


def demand_factor(day: date, bookings_per_day: float) -> float:
    factor = 0.0
    if day.weekday() in WEEKEND_DAYS:
        factor += 0.15
    if bookings_per_day > 2:
        factor += 0.10
    return min(factor, DEMAND_CAP)


def competition_factor(base_price: Decimal, market_average: Decimal) -> float:
    """Nudge down when well above the cohort, up when well below it."""
    if market_average <= 0:
        return 0.0
    difference = float((Decimal(base_price) - market_average) / market_average)
    if difference > 0.10:
        return -0.10
    if difference < -0.20:
        return 0.15
    return 0.0


def property_quality_factor(
    average_rating: float,
    review_count: int,
    amenities: Iterable[str],
    premium_amenities: Iterable[str],
) -> float:
    factor = 0.0
    if average_rating >= 4.5 and review_count >= 10:
        factor += 0.10
    elif average_rating >= 4.0 and review_count >= 5:
        factor += 0.05

    premium = {a.casefold() for a in premium_amenities}
    if any(a.casefold() in premium for a in amenities):
        factor += 0.05
    return min(factor, PROPERTY_CAP)


def blend_adjustment(factors: Sequence[float], advisory: float | None = None) -> float:
    """Mean of the internal factors, averaged with the advisory value when given."""
    internal = sum(factors) / len(factors)
    if advisory is None:
        return internal
    return (internal + advisory) / 2


def confidence_score(competitor_count: int, review_count: int, occupancy_rate: float) -> int:
    confidence = 50
    if competitor_count >= 10:
        confidence += 20
    elif competitor_count >= 5:
        confidence += 10

    if review_count >= 20:
        confidence += 15
    elif review_count >= 10:
        confidence += 10
    elif review_count >= 5:
        confidence += 5

    if occupancy_rate > 0:
        confidence += 15
    return min(confidence, MAX_CONFIDENCE)


def recommended_price(base_price: Decimal, adjustment: float) -> Decimal:
    """Base price scaled by the adjustment, rounded half-up to whole reais (at least 1)."""
    price = (Decimal(base_price) * (1 + Decimal(str(adjustment)))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(price, Decimal("1"))


def pricing_reasoning(seasonality: float, demand: float, competition: float, quality: float) -> str:
    reasons = []
    if seasonality > 0.1:
        reasons.append("high season")
    elif seasonality < -0.05:
        reasons.append("low season")
    if demand > 0.1:
        reasons.append("high demand")
    if competition > 0.05:
        reasons.append("priced below market")
    elif competition < -0.05:
        reasons.append("priced above market")
    if quality > 0.05:
        reasons.append("well-rated property")

    if not reasons:
        return "Maintain current price based on market conditions"
    return "Adjustment recommended due to: " + ", ".join(reasons)


def _as_percent(fraction: float) -> int:
    return round(fraction * 100)


async def bookings_per_day(db: AsyncSession, property_id: uuid.UUID) -> float:
    """Average reservations created per day over the trailing window."""
    since = utcnow() - timedelta(days=TRAILING_WINDOW_DAYS)
    count = await db.scalar(
        select(func.count(Reservation.id)).where(
            Reservation.property_id == property_id,
            Reservation.status.in_(DEMAND_STATUSES),
            Reservation.created_at >= since,
        )
    )
    return (count or 0) / TRAILING_WINDOW_DAYS


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class PricingEngine:
    """Long-lived recommendation service shared by requests and the repricing job."""

    def __init__(
        self,
        market: MarketAnalyzer,
        advisor: PricingAdvisor | None = None,
        advisor_timeout_seconds: float = settings.pricing_advisor_timeout_seconds,
        advisor_concurrency: int = 5,
        premium_amenities: Iterable[str] = settings.premium_amenities,
    ) -> None:
        self.market = market
        self.advisor = advisor
        self.advisor_timeout_seconds = advisor_timeout_seconds
        self.advisor_concurrency = advisor_concurrency
        self.premium_amenities = list(premium_amenities)

    async def recommend(
        self,
        db: AsyncSession,
        context: PricingContext,
        dates: Sequence[date],
    ) -> list[PricingRecommendation]:
        """One recommendation per date, in the order given."""
        if not dates:
            return []

        snapshot = await self.market.get_market_snapshot(
            db, context.city, context.state, context.property_type, context.bedrooms
        )
        activity = await bookings_per_day(db, context.property_id)
        city_tag = self.market.city_tag(context.city)

        competition = competition_factor(context.base_price, snapshot.mean_price)
        quality = property_quality_factor(
            context.average_rating, context.review_count, context.amenities, self.premium_amenities
        )
        confidence = confidence_score(snapshot.competitor_count, context.review_count, snapshot.occupancy_rate)

        per_date = [(day, seasonality_factor(day, city_tag), demand_factor(day, activity)) for day in dates]

        if self.advisor is not None:
            advisories = await self._advise_all(
                [
                    self._advisory_request(context, snapshot, day, season, demand, competition, quality)
                    for day, season, demand in per_date
                ]
            )
        else:
            advisories = [None] * len(per_date)

        recommendations = []
        for (day, season, demand), advisory in zip(per_date, advisories):
            adjustment = blend_adjustment([season, demand, competition, quality], advisory)
            recommendations.append(
                PricingRecommendation(
                    day=day,
                    original_price=context.base_price,
                    recommended_price=recommended_price(context.base_price, adjustment),
                    adjustment_percentage=round(adjustment * 100, 2),
                    reasoning=pricing_reasoning(season, demand, competition, quality),
                    confidence=confidence,
                    factors=PricingFactors(
                        demand=_as_percent(demand),
                        competition=_as_percent(competition),
                        seasonality=_as_percent(season),
                        property=_as_percent(quality),
                    ),
                    advisory_adjustment=advisory,
                )
            )

        logger.info(
            "Priced %d dates for property %s (confidence=%d, advisor=%s)",
            len(recommendations),
            context.property_id,
            confidence,
            "on" if self.advisor is not None else "off",
        )
        return recommendations

    @staticmethod
    def _advisory_request(
        context: PricingContext,
        snapshot: MarketSnapshot,
        day: date,
        season: float,
        demand: float,
        competition: float,
        quality: float,
    ) -> AdvisoryRequest:
        return AdvisoryRequest(
            day=day,
            city=context.city,
            state=context.state,
            neighborhood=context.neighborhood,
            property_type=context.property_type,
            bedrooms=context.bedrooms,
            max_guests=context.max_guests,
            base_price=context.base_price,
            average_rating=context.average_rating,
            review_count=context.review_count,
            amenities=context.amenities,
            market=snapshot,
            seasonality_factor=season,
            demand_factor=demand,
            competition_factor=competition,
            property_factor=quality,
        )

    async def _advise_all(self, requests: list[AdvisoryRequest]) -> list[float | None]:
        """Advisor suggestions in request order, all bounded by one deadline.

        Dates still waiting when the deadline passes get None and their calls
        are cancelled.
        """
        slots = asyncio.Semaphore(self.advisor_concurrency)
        tasks = [asyncio.create_task(self._advise(request, slots)) for request in requests]
        try:
            done, pending = await asyncio.wait(tasks, timeout=self.advisor_timeout_seconds)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
        if pending:
            logger.warning(
                "Pricing advisor timed out for %d of %d dates after %.1fs",
                len(pending),
                len(tasks),
                self.advisor_timeout_seconds,
            )
            await asyncio.gather(*pending, return_exceptions=True)
        return [task.result() if task in done else None for task in tasks]

    async def _advise(self, request: AdvisoryRequest, slots: asyncio.Semaphore) -> float | None:
        """Advisor suggestion for one date, or None when it fails or falls out of range."""
        async with slots:
            try:
                value = await self.advisor.advise(request)
            except Exception:
                logger.warning("Pricing advisor failed for %s", request.day, exc_info=True)
                return None

        if value is None:
            return None
        if not ADJUSTMENT_MIN <= value <= ADJUSTMENT_MAX:
            logger.warning("Ignoring out-of-range advisory adjustment %r for %s", value, request.day)
            return None
        return float(value)


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


def summarize_recommendations(
    recommendations: Sequence[PricingRecommendation],
) -> tuple[PricingSummary, PricingInsights]:
    """Revenue totals and notable days for a set of recommendations."""
    if not recommendations:
        summary = PricingSummary(
            current_revenue=Decimal("0"),
            recommended_revenue=Decimal("0"),
            potential_increase=Decimal("0"),
            average_adjustment=0.0,
            high_confidence_count=0,
            average_confidence=0,
        )
        return summary, PricingInsights(best_days=[], worst_days=[])

    current = sum((r.original_price for r in recommendations), Decimal("0"))
    recommended = sum((r.recommended_price for r in recommendations), Decimal("0"))
    count = len(recommendations)
    summary = PricingSummary(
        current_revenue=current,
        recommended_revenue=recommended,
        potential_increase=recommended - current,
        average_adjustment=round(sum(r.adjustment_percentage for r in recommendations) / count, 2),
        high_confidence_count=sum(1 for r in recommendations if r.confidence >= HIGH_CONFIDENCE),
        average_confidence=round(sum(r.confidence for r in recommendations) / count),
    )

    best = sorted(
        (r for r in recommendations if r.adjustment_percentage > 10),
        key=lambda r: r.adjustment_percentage,
        reverse=True,
    )[:5]
    worst = sorted(
        (r for r in recommendations if r.adjustment_percentage < -5),
        key=lambda r: r.adjustment_percentage,
    )[:3]
    return summary, PricingInsights(best_days=best, worst_days=worst)
