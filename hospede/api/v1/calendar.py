"""Availability and calendar API router."""

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hospede.api.deps import get_db
from hospede.schemas.calendar import (
    ApplyRuleRequest,
    AvailabilityCheckResponse,
    BulkAvailabilityResponse,
    BulkAvailabilityUpdate,
    CalendarDay,
    RuleApplicationResponse,
)
from hospede.services import calendar_store
from hospede.services.reservations import check_availability

router = APIRouter(prefix="/api/v1/properties", tags=["calendar"])


@router.get(
    "/{property_id}/availability",
    response_model=AvailabilityCheckResponse,
    summary="Check whether a stay can be booked",
)
async def get_stay_availability(
    property_id: uuid.UUID,
    check_in: date = Query(...),
    check_out: date = Query(...),
    db: AsyncSession = Depends(get_db),
) -> AvailabilityCheckResponse:
    """Whether [check_in, check_out) is free of reservations and blocked nights."""
    available = await check_availability(db, property_id, check_in, check_out)
    return AvailabilityCheckResponse(
        property_id=str(property_id),
        check_in=check_in,
        check_out=check_out,
        available=available,
    )


@router.get(
    "/{property_id}/calendar",
    response_model=list[CalendarDay],
    summary="Effective calendar for a date window",
)
async def get_calendar(
    property_id: uuid.UUID,
    start: date = Query(..., description="First date (inclusive)"),
    end: date = Query(..., description="Last date (inclusive)"),
    db: AsyncSession = Depends(get_db),
) -> list[CalendarDay]:
    return await calendar_store.get_availability(db, property_id, start, end)


@router.put(
    "/{property_id}/calendar",
    response_model=BulkAvailabilityResponse,
    summary="Upsert calendar days (all or nothing)",
)
async def update_calendar(
    property_id: uuid.UUID,
    body: BulkAvailabilityUpdate,
    db: AsyncSession = Depends(get_db),
) -> BulkAvailabilityResponse:
    """Apply explicit per-day changes. Only fields present in each update are written."""
    rows = await calendar_store.bulk_upsert(db, property_id, body.updates)
    return BulkAvailabilityResponse(updated_dates=len(rows))


@router.post(
    "/{property_id}/calendar/rules",
    response_model=RuleApplicationResponse,
    summary="Apply a block, price, min-stay, or notice rule",
)
async def apply_calendar_rule(
    property_id: uuid.UUID,
    body: ApplyRuleRequest,
    db: AsyncSession = Depends(get_db),
) -> RuleApplicationResponse:
    """Expand the rule (including any recurrence) and write every matching date."""
    dates = await calendar_store.apply_rule(db, property_id, body.rule)
    return RuleApplicationResponse(
        rule_type=body.rule.type,
        affected_dates=len(dates),
        first_date=dates[0] if dates else None,
        last_date=dates[-1] if dates else None,
    )
