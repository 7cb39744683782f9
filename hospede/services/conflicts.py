"""Conflict detection between a requested stay and existing calendar state.

Stays are half-open ranges ``[check_in, check_out)``: a guest checking out on
the same day another checks in does not conflict.
"""

import logging
import uuid
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hospede.exceptions import ReservationConflictError
from hospede.models import BLOCKING_STATUSES, AvailabilityDay, Reservation

logger = logging.getLogger(__name__)

_BLOCKING_VALUES = sorted(status.value for status in BLOCKING_STATUSES)


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """True when the half-open ranges [a_start, a_end) and [b_start, b_end) intersect."""
    return a_start < b_end and b_start < a_end


async def find_conflicting_reservations(
    db: AsyncSession,
    property_id: uuid.UUID,
    check_in: date,
    check_out: date,
    exclude_reservation_id: uuid.UUID | None = None,
) -> list[Reservation]:
    """Reservations in a blocking status whose stay overlaps the requested range."""
    query = select(Reservation).where(
        Reservation.property_id == property_id,
        Reservation.status.in_(_BLOCKING_VALUES),
        Reservation.check_in < check_out,
        Reservation.check_out > check_in,
    )
    if exclude_reservation_id is not None:
        query = query.where(Reservation.id != exclude_reservation_id)
    result = await db.execute(query.order_by(Reservation.check_in))
    return list(result.scalars().all())


async def find_blocked_dates(
    db: AsyncSession,
    property_id: uuid.UUID,
    check_in: date,
    check_out: date,
) -> list[date]:
    """Explicitly blocked nights inside [check_in, check_out)."""
    result = await db.execute(
        select(AvailabilityDay.day)
        .where(
            AvailabilityDay.property_id == property_id,
            AvailabilityDay.is_blocked.is_(True),
            AvailabilityDay.day >= check_in,
            AvailabilityDay.day < check_out,
        )
        .order_by(AvailabilityDay.day)
    )
    return list(result.scalars().all())


async def has_conflict(
    db: AsyncSession,
    property_id: uuid.UUID,
    check_in: date,
    check_out: date,
    exclude_reservation_id: uuid.UUID | None = None,
) -> bool:
    """Whether the range overlaps a blocking reservation or a blocked night."""
    reservations = await find_conflicting_reservations(
        db, property_id, check_in, check_out, exclude_reservation_id
    )
    if reservations:
        return True
    return bool(await find_blocked_dates(db, property_id, check_in, check_out))


async def ensure_available(
    db: AsyncSession,
    property_id: uuid.UUID,
    check_in: date,
    check_out: date,
    exclude_reservation_id: uuid.UUID | None = None,
) -> None:
    """Raise ReservationConflictError, with the offending details, if the range is taken."""
    reservations = await find_conflicting_reservations(
        db, property_id, check_in, check_out, exclude_reservation_id
    )
    blocked = await find_blocked_dates(db, property_id, check_in, check_out)
    if reservations or blocked:
        logger.info(
            "Dates %s..%s unavailable for property %s (%d reservations, %d blocked nights)",
            check_in,
            check_out,
            property_id,
            len(reservations),
            len(blocked),
        )
        raise ReservationConflictError(
            conflicting_reservation_ids=[r.id for r in reservations],
            blocked_dates=blocked,
        )
