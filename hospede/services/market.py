"""Market snapshots for a comparable cohort of listings.

A cohort is every ACTIVE property in the same city and state with the same
type and bedroom count. Snapshots are derived data: they are cached for a
few hours and recomputed on a miss.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hospede.config import settings
from hospede.database import utcnow
from hospede.models import Property, Reservation, ReservationStatus
from hospede.schemas.pricing import MarketSnapshot, Seasonality
from hospede.services.cache import CachePort

logger = logging.getLogger(__name__)

BEACH = "beach"
MOUNTAIN = "mountain"

TRAILING_WINDOW_DAYS = 30

# Reservations that count as realized demand for a cohort.
OCCUPYING_STATUSES = [
    ReservationStatus.CONFIRMED.value,
    ReservationStatus.IN_PROGRESS.value,
    ReservationStatus.COMPLETED.value,
]

_MONTH_BUCKETS: dict[int, Seasonality] = {
    1: "peak",
    2: "peak",
    3: "high",
    4: "low",
    5: "low",
    6: "medium",
    7: "high",
    8: "low",
    9: "low",
    10: "low",
    11: "medium",
    12: "peak",
}


def _normalize(name: str) -> str:
    return name.strip().casefold()


def classify_city(city: str, beach_cities: Iterable[str], mountain_cities: Iterable[str]) -> str | None:
    """Tag a city as beach or mountain, or None when it is neither."""
    key = _normalize(city)
    if key in {_normalize(c) for c in beach_cities}:
        return BEACH
    if key in {_normalize(c) for c in mountain_cities}:
        return MOUNTAIN
    return None


def seasonality_bucket(month: int, city_tag: str | None) -> Seasonality:
    """Coarse season label for a month, shifted by the city's profile."""
    if city_tag == BEACH:
        if month in (12, 1, 2, 3):
            return "peak"
        if month in (6, 7, 8, 9):
            return "low"
    if city_tag == MOUNTAIN and month in (6, 7, 8, 9):
        return "peak"
    return _MONTH_BUCKETS[month]


def summarize_cohort(
    base_prices: list[Decimal],
    recent_booking_count: int,
    window_days: int = TRAILING_WINDOW_DAYS,
) -> tuple[Decimal, float, int]:
    """Cohort averages as (mean price, occupancy percentage, demand score).

    The mean price is exact; round it with ``display_price`` for output.
    """
    size = len(base_prices)
    mean_price = sum(base_prices, Decimal("0")) / size
    bookings_per_property = recent_booking_count / size
    occupancy_rate = min(bookings_per_property * 100 / window_days, 100.0)
    demand_score = min(round(bookings_per_property * 10 + occupancy_rate * 0.5), 100)
    return mean_price, round(occupancy_rate, 2), demand_score


def display_price(amount: Decimal) -> Decimal:
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def snapshot_cache_key(city: str, state: str, property_type: str, bedrooms: int) -> str:
    return f"market_snapshot:{_normalize(city)}:{state.upper()}:{property_type.upper()}:{bedrooms}"


class MarketAnalyzer:
    """Builds and caches MarketSnapshot values for cohorts."""

    def __init__(
        self,
        cache: CachePort,
        ttl_seconds: int = settings.market_cache_ttl_seconds,
        beach_cities: Iterable[str] = settings.beach_cities,
        mountain_cities: Iterable[str] = settings.mountain_cities,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.beach_cities = list(beach_cities)
        self.mountain_cities = list(mountain_cities)
        self.clock = clock

    def city_tag(self, city: str) -> str | None:
        return classify_city(city, self.beach_cities, self.mountain_cities)

    async def get_market_snapshot(
        self,
        db: AsyncSession,
        city: str,
        state: str,
        property_type: str,
        bedrooms: int,
    ) -> MarketSnapshot:
        """Snapshot for the cohort, served from cache when fresh.

        An empty cohort yields a neutral snapshot (no competitors, zero
        average and occupancy, demand 50, medium season) instead of an error.
        The season bucket follows the month the snapshot is computed in.
        """
        key = snapshot_cache_key(city, state, property_type, bedrooms)
        cached = await self.cache.get(key)
        if cached is not None:
            try:
                return MarketSnapshot.model_validate_json(cached)
            except ValidationError:
                logger.warning("Discarding unreadable cached market snapshot %s", key)

        snapshot = await self.compute_snapshot(db, city, state, property_type, bedrooms)
        await self.cache.set(key, snapshot.model_dump_json(), self.ttl_seconds)
        return snapshot

    async def invalidate(self, city: str, state: str, property_type: str, bedrooms: int) -> None:
        await self.cache.delete(snapshot_cache_key(city, state, property_type, bedrooms))

    async def compute_snapshot(
        self,
        db: AsyncSession,
        city: str,
        state: str,
        property_type: str,
        bedrooms: int,
    ) -> MarketSnapshot:
        cohort_filter = (
            Property.city == city,
            Property.state == state,
            Property.property_type == property_type,
            Property.bedrooms == bedrooms,
            Property.status == "ACTIVE",
        )
        result = await db.execute(select(Property.base_price).where(*cohort_filter))
        base_prices = [Decimal(price) for price in result.scalars().all()]
        if not base_prices:
            logger.info("Empty cohort for %s/%s %s %d-bedroom", city, state, property_type, bedrooms)
            return MarketSnapshot(city=city, state=state, property_type=property_type, bedrooms=bedrooms)

        since = utcnow() - timedelta(days=TRAILING_WINDOW_DAYS)
        recent_count = await db.scalar(
            select(func.count(Reservation.id))
            .join(Property, Reservation.property_id == Property.id)
            .where(
                *cohort_filter,
                Reservation.status.in_(OCCUPYING_STATUSES),
                Reservation.created_at >= since,
            )
        )

        mean_price, occupancy_rate, demand_score = summarize_cohort(base_prices, recent_count or 0)
        snapshot = MarketSnapshot(
            city=city,
            state=state,
            property_type=property_type,
            bedrooms=bedrooms,
            average_price=display_price(mean_price),
            mean_price=mean_price,
            occupancy_rate=occupancy_rate,
            demand_score=demand_score,
            competitor_count=len(base_prices),
            seasonality=seasonality_bucket(self.clock().month, self.city_tag(city)),
        )
        logger.debug("Computed market snapshot %s", snapshot)
        return snapshot
