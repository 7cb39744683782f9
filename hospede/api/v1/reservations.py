"""Reservation API router."""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from hospede.api.deps import get_db, get_services
from hospede.models import Reservation
from hospede.schemas.reservation import (
    RefundResponse,
    ReservationCancel,
    ReservationCreate,
    ReservationReschedule,
    ReservationResponse,
)
from hospede.services.container import EngineServices
from hospede.services.reservations import (
    cancel_reservation,
    create_reservation_if_available,
    get_reservation,
    reschedule_reservation,
)

router = APIRouter(prefix="/api/v1/reservations", tags=["reservations"])


@router.post(
    "",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book a stay",
)
async def create_reservation(
    body: ReservationCreate,
    db: AsyncSession = Depends(get_db),
    services: EngineServices = Depends(get_services),
) -> Reservation:
    """Create a reservation if the dates are free.

    Responds 409 with the conflicting reservation ids and blocked dates when
    they are not, and 422 when the stay itself is invalid.
    """
    return await create_reservation_if_available(db, body, services.locks)


@router.get(
    "/{reservation_id}",
    response_model=ReservationResponse,
    summary="Get a reservation",
)
async def read_reservation(
    reservation_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Reservation:
    return await get_reservation(db, reservation_id)


@router.patch(
    "/{reservation_id}/dates",
    response_model=ReservationResponse,
    summary="Move a reservation to new dates",
)
async def update_reservation_dates(
    reservation_id: uuid.UUID,
    body: ReservationReschedule,
    db: AsyncSession = Depends(get_db),
    services: EngineServices = Depends(get_services),
) -> Reservation:
    return await reschedule_reservation(db, reservation_id, body.check_in, body.check_out, services.locks)


@router.post(
    "/{reservation_id}/cancel",
    response_model=RefundResponse,
    summary="Cancel a reservation and compute its refund",
)
async def cancel(
    reservation_id: uuid.UUID,
    body: ReservationCancel | None = None,
    db: AsyncSession = Depends(get_db),
) -> RefundResponse:
    """Cancel with an optional reason and instant; omitted fields default to a guest cancelling now."""
    body = body or ReservationCancel()
    quote = await cancel_reservation(db, reservation_id, cancelled_at=body.cancelled_at, reason=body.reason)
    return RefundResponse(
        reservation_id=reservation_id,
        refund_percentage=quote.percentage,
        refund_amount=quote.amount,
    )
