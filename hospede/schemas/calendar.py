"""Pydantic v2 schemas for calendar state and calendar rules."""

import enum
from datetime import date
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Calendar rules
# ---------------------------------------------------------------------------


class Frequency(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class Recurrence(BaseModel):
    """How a rule repeats inside its date range.

    ``days_of_week`` uses ``date.weekday()`` numbering (Monday=0 ... Sunday=6)
    and narrows the dates produced by ``frequency``; for WEEKLY rules it
    selects the days inside every active week.
    """

    frequency: Frequency
    interval: int = Field(1, ge=1)
    days_of_week: list[int] | None = Field(None, min_length=1)
    end_date: date | None = None

    @model_validator(mode="after")
    def check_days_of_week(self) -> "Recurrence":
        if self.days_of_week is not None and any(d < 0 or d > 6 for d in self.days_of_week):
            raise ValueError("days_of_week values must be between 0 (Monday) and 6 (Sunday)")
        return self


class _RuleBase(BaseModel):
    start_date: date
    end_date: date
    recurrence: Recurrence | None = None

    @model_validator(mode="after")
    def check_dates(self) -> "_RuleBase":
        """Validate that end_date is not before start_date."""
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class BlockRule(_RuleBase):
    type: Literal["BLOCK"] = "BLOCK"
    notes: str | None = Field(None, max_length=500)


class UnblockRule(_RuleBase):
    type: Literal["UNBLOCK"] = "UNBLOCK"


class PriceRule(_RuleBase):
    type: Literal["PRICE"] = "PRICE"
    value: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)


class MinStayRule(_RuleBase):
    type: Literal["MIN_STAY"] = "MIN_STAY"
    value: int = Field(..., ge=1)


class AdvanceNoticeRule(_RuleBase):
    type: Literal["ADVANCE_NOTICE"] = "ADVANCE_NOTICE"
    value: int = Field(..., ge=0, description="Hours of notice required before check-in")


CalendarRule = Annotated[
    Union[BlockRule, UnblockRule, PriceRule, MinStayRule, AdvanceNoticeRule],
    Field(discriminator="type"),
]


class ApplyRuleRequest(BaseModel):
    """Body of a rule application request."""

    rule: CalendarRule


class RuleApplicationResponse(BaseModel):
    """Outcome of applying a calendar rule."""

    rule_type: str
    affected_dates: int
    first_date: date | None = None
    last_date: date | None = None


# ---------------------------------------------------------------------------
# Day updates
# ---------------------------------------------------------------------------


class AvailabilityDayUpdate(BaseModel):
    """One per-day mutation. Only the fields explicitly set are written."""

    day: date
    is_blocked: bool | None = None
    price: Decimal | None = Field(None, gt=0, max_digits=10, decimal_places=2)
    min_stay: int | None = Field(None, ge=1)
    advance_notice_hours: int | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=500)


class BulkAvailabilityUpdate(BaseModel):
    """Batch of day updates applied all-or-nothing."""

    updates: list[AvailabilityDayUpdate] = Field(..., min_length=1, max_length=1000)


class BulkAvailabilityResponse(BaseModel):
    updated_dates: int


# ---------------------------------------------------------------------------
# Calendar read model
# ---------------------------------------------------------------------------


class CalendarDay(BaseModel):
    """Effective state of a single date, with base-price defaults filled in."""

    day: date
    available: bool
    is_blocked: bool
    is_booked: bool
    price: Decimal
    has_price_override: bool
    min_stay: int
    advance_notice_hours: int | None = None
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AvailabilityCheckResponse(BaseModel):
    property_id: str
    check_in: date
    check_out: date
    available: bool
