"""Per-property, per-date calendar state: reads and rule-driven upserts."""

import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hospede.config import settings
from hospede.exceptions import CalendarUpdateError, InvalidRangeError, NotFoundError
from hospede.models import BLOCKING_STATUSES, AvailabilityDay, Property, Reservation
from hospede.schemas.calendar import AvailabilityDayUpdate, CalendarDay, CalendarRule
from hospede.services.recurrence import build_day_updates, date_range, expand_rule_dates

logger = logging.getLogger(__name__)

MAX_CALENDAR_WINDOW_DAYS = 731


async def get_property(db: AsyncSession, property_id: uuid.UUID, *, for_update: bool = False) -> Property:
    """Load a property or raise NotFoundError. ``for_update`` locks the row."""
    query = select(Property).where(Property.id == property_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    prop = result.scalar_one_or_none()
    if prop is None:
        raise NotFoundError(f"Property {property_id} not found")
    return prop


async def load_days(
    db: AsyncSession, property_id: uuid.UUID, start: date, end: date
) -> dict[date, AvailabilityDay]:
    """Stored calendar rows for start..end inclusive, keyed by date."""
    result = await db.execute(
        select(AvailabilityDay).where(
            AvailabilityDay.property_id == property_id,
            AvailabilityDay.day >= start,
            AvailabilityDay.day <= end,
        )
    )
    return {row.day: row for row in result.scalars().all()}


def effective_price(prop: Property, row: AvailabilityDay | None) -> Decimal:
    """Nightly price for a date: the override if present, else the base price."""
    if row is not None and row.price is not None:
        return row.price
    return prop.base_price


async def get_availability(
    db: AsyncSession, property_id: uuid.UUID, start: date, end: date
) -> list[CalendarDay]:
    """Effective calendar for start..end inclusive, one entry per date.

    Dates without a stored row report the property's base price and minimum
    stay. A date is booked when a blocking reservation occupies that night.
    """
    if end < start:
        raise InvalidRangeError("end must be on or after start")
    if (end - start).days + 1 > MAX_CALENDAR_WINDOW_DAYS:
        raise InvalidRangeError(f"Calendar window cannot exceed {MAX_CALENDAR_WINDOW_DAYS} days")

    prop = await get_property(db, property_id)
    rows = await load_days(db, property_id, start, end)

    result = await db.execute(
        select(Reservation.check_in, Reservation.check_out).where(
            Reservation.property_id == property_id,
            Reservation.status.in_([s.value for s in BLOCKING_STATUSES]),
            Reservation.check_in <= end,
            Reservation.check_out > start,
        )
    )
    booked: set[date] = set()
    for check_in, check_out in result.all():
        booked.update(date_range(max(check_in, start), min(check_out - timedelta(days=1), end)))

    calendar = []
    for day in date_range(start, end):
        row = rows.get(day)
        is_blocked = bool(row and row.is_blocked)
        is_booked = day in booked
        calendar.append(
            CalendarDay(
                day=day,
                available=not (is_blocked or is_booked),
                is_blocked=is_blocked,
                is_booked=is_booked,
                price=effective_price(prop, row),
                has_price_override=row is not None and row.price is not None,
                min_stay=row.min_stay if row is not None and row.min_stay is not None else prop.min_stay,
                advance_notice_hours=row.advance_notice_hours if row is not None else None,
                notes=row.notes if row is not None else None,
            )
        )
    return calendar


def _apply_update(row: AvailabilityDay, update: AvailabilityDayUpdate) -> None:
    for field, value in update.model_dump(exclude_unset=True, exclude={"day"}).items():
        setattr(row, field, value)


async def bulk_upsert(
    db: AsyncSession, property_id: uuid.UUID, updates: list[AvailabilityDayUpdate]
) -> list[AvailabilityDay]:
    """Apply day updates all-or-nothing inside a savepoint.

    Only fields explicitly set on each update are written; a date without a
    row gets one created. On any store failure nothing is changed and
    CalendarUpdateError is raised.
    """
    if not updates:
        return []

    days = [update.day for update in updates]
    if len(set(days)) != len(days):
        raise InvalidRangeError("Each date may appear only once per batch")

    await get_property(db, property_id)

    try:
        async with db.begin_nested():
            existing = await load_days(db, property_id, min(days), max(days))
            rows = []
            for update in updates:
                row = existing.get(update.day)
                if row is None:
                    row = AvailabilityDay(property_id=property_id, day=update.day, is_blocked=False)
                    db.add(row)
                _apply_update(row, update)
                rows.append(row)
            await db.flush()
    except SQLAlchemyError as e:
        logger.exception("Calendar update for property %s rolled back", property_id)
        raise CalendarUpdateError(f"Calendar update failed, no dates were changed: {e}") from e

    logger.info("Upserted %d calendar days for property %s", len(rows), property_id)
    return rows


async def upsert_day(
    db: AsyncSession, property_id: uuid.UUID, update: AvailabilityDayUpdate
) -> AvailabilityDay:
    """Create or update the calendar row for a single date."""
    rows = await bulk_upsert(db, property_id, [update])
    return rows[0]


async def apply_rule(
    db: AsyncSession,
    property_id: uuid.UUID,
    rule: CalendarRule,
    max_span_days: int | None = None,
) -> list[date]:
    """Expand a calendar rule and write it atomically. Returns the affected dates."""
    dates = expand_rule_dates(rule, max_span_days or settings.max_rule_span_days)
    if not dates:
        await get_property(db, property_id)
        logger.info("%s rule for property %s matched no dates", rule.type, property_id)
        return []

    await bulk_upsert(db, property_id, build_day_updates(rule, dates))
    logger.info(
        "Applied %s rule to property %s: %d dates between %s and %s",
        rule.type,
        property_id,
        len(dates),
        dates[0],
        dates[-1],
    )
    return dates
