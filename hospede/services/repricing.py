"""Writing recommended prices back to the calendar, on demand or on a schedule."""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hospede.models import Property
from hospede.schemas.calendar import AvailabilityDayUpdate
from hospede.schemas.pricing import PriceAdjustment
from hospede.services.calendar_store import bulk_upsert, get_property
from hospede.services.container import EngineServices
from hospede.services.pricing import HIGH_CONFIDENCE, PricingContext, PricingEngine
from hospede.services.reservations import PropertyLocks, expire_stale_pending

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepricingResult:
    property_id: uuid.UUID
    evaluated: int
    applied: int


async def apply_price_adjustments(
    db: AsyncSession,
    property_id: uuid.UUID,
    adjustments: list[PriceAdjustment],
    only_high_confidence: bool = True,
    min_confidence: int = HIGH_CONFIDENCE,
) -> tuple[int, int]:
    """Write price overrides for the given dates. Returns (applied, skipped).

    With ``only_high_confidence`` an adjustment whose confidence is known and
    below ``min_confidence`` is skipped.
    """
    selected = [
        adj
        for adj in adjustments
        if not (only_high_confidence and adj.confidence is not None and adj.confidence < min_confidence)
    ]
    if selected:
        await bulk_upsert(db, property_id, [AvailabilityDayUpdate(day=adj.day, price=adj.price) for adj in selected])
    skipped = len(adjustments) - len(selected)
    logger.info("Applied %d price adjustments to property %s (%d skipped)", len(selected), property_id, skipped)
    return len(selected), skipped


async def reprice_property(
    db: AsyncSession,
    prop: Property,
    engine: PricingEngine,
    locks: PropertyLocks,
    horizon_days: int,
    min_confidence: int,
    today: date | None = None,
) -> RepricingResult:
    """Recommend prices for the next ``horizon_days`` and write the confident ones.

    Recommendations are computed outside the property lock; only the write
    and its commit are serialized with bookings.
    """
    start = today or date.today()
    dates = [start + timedelta(days=offset) for offset in range(horizon_days)]
    recommendations = await engine.recommend(db, PricingContext.from_property(prop), dates)

    updates = [
        AvailabilityDayUpdate(day=rec.day, price=rec.recommended_price)
        for rec in recommendations
        if rec.confidence >= min_confidence
    ]
    if updates:
        async with locks.hold(prop.id):
            await bulk_upsert(db, prop.id, updates)
            await db.commit()

    return RepricingResult(property_id=prop.id, evaluated=len(recommendations), applied=len(updates))


async def reprice_all_active_properties(
    session_factory: async_sessionmaker[AsyncSession],
    services: EngineServices,
    horizon_days: int,
    min_confidence: int,
    today: date | None = None,
) -> list[RepricingResult]:
    """Reprice every ACTIVE property. One property failing does not stop the rest."""
    async with session_factory() as db:
        await expire_stale_pending(db)
        await db.commit()
        result = await db.execute(select(Property.id).where(Property.status == "ACTIVE"))
        property_ids = list(result.scalars().all())

    logger.info("Automatic repricing started for %d properties", len(property_ids))
    results = []
    for property_id in property_ids:
        try:
            async with session_factory() as db:
                prop = await get_property(db, property_id)
                results.append(
                    await reprice_property(
                        db,
                        prop,
                        services.pricing,
                        services.locks,
                        horizon_days=horizon_days,
                        min_confidence=min_confidence,
                        today=today,
                    )
                )
        except Exception:
            logger.exception("Automatic repricing failed for property %s", property_id)

    applied = sum(r.applied for r in results)
    logger.info("Automatic repricing finished: %d properties, %d prices written", len(results), applied)
    return results


async def run_repricing_loop(
    session_factory: async_sessionmaker[AsyncSession],
    services: EngineServices,
    interval_seconds: float,
    horizon_days: int,
    min_confidence: int,
) -> None:
    """Run the repricing pass forever, sleeping ``interval_seconds`` between passes."""
    while True:
        try:
            await reprice_all_active_properties(session_factory, services, horizon_days, min_confidence)
        except Exception:
            logger.exception("Automatic repricing pass failed")
        await asyncio.sleep(interval_seconds)
