"""Reservation lifecycle: availability checks, booking and cancellation.

Booking is check-then-act, so every write that can create or move a stay runs
under a per-property lock and commits before the lock is released. On
PostgreSQL an exclusion constraint on (property_id, daterange) backs this up
across processes; a violation surfaces as ReservationConflictError.
"""

import asyncio
import logging
import uuid
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hospede.config import settings
from hospede.database import utcnow
from hospede.exceptions import (
    InvalidRangeError,
    NotFoundError,
    ReservationConflictError,
    ReservationStateError,
    ServiceBusyError,
    StayPolicyError,
)
from hospede.models import BLOCKING_STATUSES, Property, Reservation, ReservationStatus
from hospede.schemas.reservation import ReservationCreate
from hospede.services.calendar_store import effective_price, get_property, load_days
from hospede.services.cancellation import RefundQuote, compute_refund
from hospede.services.conflicts import ensure_available, has_conflict

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")

# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class PropertyLocks:
    """One asyncio lock per property, created on demand and dropped when unused."""

    def __init__(self, timeout_seconds: float = settings.reservation_lock_timeout_seconds) -> None:
        self.timeout_seconds = timeout_seconds
        self._locks: weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, property_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(property_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[property_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, property_id: uuid.UUID):
        """Hold the property's lock, or raise ServiceBusyError after the timeout."""
        lock = self._lock_for(property_id)
        try:
            async with asyncio.timeout(self.timeout_seconds):
                await lock.acquire()
        except TimeoutError as e:
            logger.warning("Timed out waiting for booking lock on property %s", property_id)
            raise ServiceBusyError("Property is busy, please retry") from e
        try:
            yield
        finally:
            lock.release()


# ---------------------------------------------------------------------------
# Validation and quoting
# ---------------------------------------------------------------------------


def validate_stay_range(
    check_in: date,
    check_out: date,
    min_nights: int = settings.min_booking_nights,
    max_nights: int = settings.max_booking_nights,
) -> int:
    """Number of nights in [check_in, check_out), or InvalidRangeError."""
    if check_out <= check_in:
        raise InvalidRangeError("check_out must be after check_in")
    nights = (check_out - check_in).days
    if nights < min_nights:
        raise InvalidRangeError(f"Stays must be at least {min_nights} night(s)")
    if nights > max_nights:
        raise InvalidRangeError(f"Stays cannot exceed {max_nights} nights")
    return nights


def _enforce_property_rules(
    prop: Property,
    nights: int,
    num_guests: int,
    pets: int,
    check_in_min_stay: int | None,
) -> None:
    if prop.status != "ACTIVE":
        raise ReservationConflictError("Property is not accepting reservations")
    min_stay = check_in_min_stay or prop.min_stay or 1
    if nights < min_stay:
        raise StayPolicyError(f"Minimum stay for these dates is {min_stay} night(s)")
    if prop.max_stay is not None and nights > prop.max_stay:
        raise StayPolicyError(f"Maximum stay for this property is {prop.max_stay} nights")
    if num_guests > prop.max_guests:
        raise StayPolicyError(f"Property accommodates at most {prop.max_guests} guests")
    if pets and not prop.pets_allowed:
        raise StayPolicyError("Pets are not allowed at this property")


@dataclass(frozen=True)
class StayQuote:
    nightly_subtotal: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    taxes: Decimal
    total_price: Decimal


async def quote_stay(db: AsyncSession, prop: Property, check_in: date, check_out: date) -> StayQuote:
    """Price a stay from its effective nightly prices plus fees and taxes."""
    last_night = check_out - timedelta(days=1)
    rows = await load_days(db, prop.id, check_in, last_night)
    subtotal = sum(
        (effective_price(prop, rows.get(check_in + timedelta(days=n))) for n in range((check_out - check_in).days)),
        Decimal("0"),
    )
    service_fee = (subtotal * Decimal(str(settings.platform_fee_percent))).quantize(_CENTS, rounding=ROUND_HALF_UP)
    taxes = (subtotal * Decimal(str(settings.tax_percent))).quantize(_CENTS, rounding=ROUND_HALF_UP)
    cleaning_fee = Decimal(prop.cleaning_fee or 0)
    return StayQuote(
        nightly_subtotal=subtotal,
        cleaning_fee=cleaning_fee,
        service_fee=service_fee,
        taxes=taxes,
        total_price=subtotal + cleaning_fee + service_fee + taxes,
    )


async def _check_in_min_stay(db: AsyncSession, property_id: uuid.UUID, check_in: date) -> int | None:
    rows = await load_days(db, property_id, check_in, check_in)
    row = rows.get(check_in)
    return row.min_stay if row is not None else None


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def get_reservation(db: AsyncSession, reservation_id: uuid.UUID) -> Reservation:
    result = await db.execute(select(Reservation).where(Reservation.id == reservation_id))
    reservation = result.scalar_one_or_none()
    if reservation is None:
        raise NotFoundError(f"Reservation {reservation_id} not found")
    return reservation


async def check_availability(
    db: AsyncSession, property_id: uuid.UUID, check_in: date, check_out: date
) -> bool:
    """Whether the property could be booked for [check_in, check_out)."""
    validate_stay_range(check_in, check_out)
    await get_property(db, property_id)
    return not await has_conflict(db, property_id, check_in, check_out)


async def expire_stale_pending(
    db: AsyncSession,
    now: datetime | None = None,
    property_id: uuid.UUID | None = None,
) -> int:
    """Cancel PENDING reservations older than the payment window. Returns how many."""
    now = now or utcnow()
    cutoff = now - timedelta(minutes=settings.pending_reservation_ttl_minutes)
    stmt = update(Reservation).where(
        Reservation.status == ReservationStatus.PENDING.value,
        Reservation.created_at < cutoff,
    )
    if property_id is not None:
        stmt = stmt.where(Reservation.property_id == property_id)
    result = await db.execute(
        stmt.values(
            status=ReservationStatus.CANCELLED.value,
            cancellation_reason="expired",
            cancelled_at=now,
        )
    )
    if result.rowcount:
        logger.info("Expired %d stale pending reservation(s)", result.rowcount)
    return result.rowcount or 0


async def _commit_or_conflict(db: AsyncSession) -> None:
    try:
        await db.flush()
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ReservationConflictError("Dates unavailable") from e


async def create_reservation_if_available(
    db: AsyncSession,
    data: ReservationCreate,
    locks: PropertyLocks,
) -> Reservation:
    """Create a reservation unless the dates are taken.

    The conflict check and the insert happen under the property's lock and
    the transaction is committed before the lock is released, so two
    concurrent requests for overlapping dates cannot both succeed.
    """
    nights = validate_stay_range(data.check_in, data.check_out)

    async with locks.hold(data.property_id):
        prop = await get_property(db, data.property_id, for_update=True)
        _enforce_property_rules(
            prop, nights, data.num_guests, data.pets, await _check_in_min_stay(db, prop.id, data.check_in)
        )
        await expire_stale_pending(db, property_id=prop.id)
        await ensure_available(db, prop.id, data.check_in, data.check_out)

        quote = await quote_stay(db, prop, data.check_in, data.check_out)
        reservation = Reservation(
            property_id=prop.id,
            guest_id=data.guest_id,
            check_in=data.check_in,
            check_out=data.check_out,
            num_guests=data.num_guests,
            pets=data.pets,
            status=data.status,
            nightly_subtotal=quote.nightly_subtotal,
            cleaning_fee=quote.cleaning_fee,
            service_fee=quote.service_fee,
            taxes=quote.taxes,
            total_price=quote.total_price,
            message=data.message,
        )
        db.add(reservation)
        await _commit_or_conflict(db)

    logger.info(
        "Created %s reservation %s for property %s (%s..%s, total=%s)",
        reservation.status,
        reservation.id,
        reservation.property_id,
        reservation.check_in,
        reservation.check_out,
        reservation.total_price,
    )
    return reservation


async def reschedule_reservation(
    db: AsyncSession,
    reservation_id: uuid.UUID,
    check_in: date,
    check_out: date,
    locks: PropertyLocks,
) -> Reservation:
    """Move a reservation to new dates, re-checking conflicts against every other stay."""
    nights = validate_stay_range(check_in, check_out)
    reservation = await get_reservation(db, reservation_id)

    async with locks.hold(reservation.property_id):
        prop = await get_property(db, reservation.property_id, for_update=True)
        await expire_stale_pending(db, property_id=prop.id)
        await db.refresh(reservation)
        if ReservationStatus(reservation.status) not in BLOCKING_STATUSES:
            raise ReservationStateError(f"Cannot reschedule a {reservation.status.lower()} reservation")

        _enforce_property_rules(
            prop, nights, reservation.num_guests, reservation.pets, await _check_in_min_stay(db, prop.id, check_in)
        )
        await ensure_available(db, prop.id, check_in, check_out, exclude_reservation_id=reservation.id)

        quote = await quote_stay(db, prop, check_in, check_out)
        reservation.check_in = check_in
        reservation.check_out = check_out
        reservation.nightly_subtotal = quote.nightly_subtotal
        reservation.cleaning_fee = quote.cleaning_fee
        reservation.service_fee = quote.service_fee
        reservation.taxes = quote.taxes
        reservation.total_price = quote.total_price
        await _commit_or_conflict(db)

    logger.info("Rescheduled reservation %s to %s..%s", reservation.id, check_in, check_out)
    return reservation


def check_in_instant(reservation: Reservation, prop: Property) -> datetime:
    """Check-in date at the property's check-in time, in the marketplace timezone."""
    return datetime.combine(reservation.check_in, prop.check_in_time, tzinfo=ZoneInfo(settings.timezone))


async def cancel_reservation(
    db: AsyncSession,
    reservation_id: uuid.UUID,
    cancelled_at: datetime | None = None,
    reason: str = "guest",
) -> RefundQuote:
    """Cancel a reservation and record the refund it is owed."""
    reservation = await get_reservation(db, reservation_id)
    if reservation.status == ReservationStatus.CANCELLED.value:
        raise ReservationStateError("Reservation is already cancelled")
    if reservation.status in (ReservationStatus.COMPLETED.value, ReservationStatus.NO_SHOW.value):
        raise ReservationStateError(f"Cannot cancel a {reservation.status.lower()} reservation")

    cancelled_at = cancelled_at or datetime.now(timezone.utc)
    if cancelled_at.tzinfo is None:
        cancelled_at = cancelled_at.replace(tzinfo=timezone.utc)

    prop = await get_property(db, reservation.property_id)
    quote = compute_refund(
        reservation.total_price,
        check_in_instant(reservation, prop),
        cancelled_at,
        settings.cancellation_window_hours,
    )

    reservation.status = ReservationStatus.CANCELLED.value
    reservation.cancelled_at = cancelled_at.astimezone(timezone.utc).replace(tzinfo=None)
    reservation.cancellation_reason = reason
    reservation.refund_percentage = quote.percentage
    reservation.refund_amount = quote.amount
    await db.flush()

    logger.info(
        "Cancelled reservation %s (%s): refund %d%% = %s",
        reservation.id,
        reason,
        quote.percentage,
        quote.amount,
    )
    return quote
