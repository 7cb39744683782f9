"""Pydantic v2 request/response schemas for reservation endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ReservationCreate(BaseModel):
    """Schema for requesting a new reservation."""

    property_id: uuid.UUID
    guest_id: uuid.UUID
    check_in: date
    check_out: date
    num_guests: int = Field(1, ge=1)
    pets: int = Field(0, ge=0)
    status: str = Field("PENDING", pattern="^(PENDING|CONFIRMED)$")
    message: str | None = Field(None, max_length=2000)


class ReservationReschedule(BaseModel):
    """Schema for moving a reservation to new dates."""

    check_in: date
    check_out: date

    @model_validator(mode="after")
    def check_dates(self) -> "ReservationReschedule":
        """Validate that check_out is strictly after check_in."""
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self


class ReservationCancel(BaseModel):
    """Schema for cancelling a reservation."""

    reason: str = Field("guest", pattern="^(guest|host)$")
    cancelled_at: datetime | None = Field(
        None,
        description="Cancellation instant (timezone-aware). Defaults to now.",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ReservationResponse(BaseModel):
    """Standard reservation response."""

    id: uuid.UUID
    property_id: uuid.UUID
    guest_id: uuid.UUID
    check_in: date
    check_out: date
    num_guests: int
    pets: int
    status: str
    nightly_subtotal: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    taxes: Decimal
    total_price: Decimal
    message: str | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    refund_percentage: int | None = None
    refund_amount: Decimal | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RefundResponse(BaseModel):
    """Refund owed after a cancellation."""

    reservation_id: uuid.UUID
    refund_percentage: int
    refund_amount: Decimal
