"""Tests for calendar reads, bulk updates and rules."""

import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from hospede.exceptions import CalendarRuleError, CalendarUpdateError, InvalidRangeError, NotFoundError
from hospede.schemas.calendar import (
    AvailabilityDayUpdate,
    BlockRule,
    MinStayRule,
    PriceRule,
    Recurrence,
    UnblockRule,
)
from hospede.services import calendar_store
from hospede.services.calendar_store import apply_rule, bulk_upsert, get_availability, load_days, upsert_day

from factories import create_reservation

pytestmark = pytest.mark.asyncio


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestGetAvailability:
    async def test_defaults_to_base_settings(self, db_session, test_property):
        calendar = await get_availability(db_session, test_property.id, date(2026, 6, 1), date(2026, 6, 3))

        assert [d.day for d in calendar] == [date(2026, 6, 1), date(2026, 6, 2), date(2026, 6, 3)]
        for day in calendar:
            assert day.available
            assert day.price == Decimal("200.00")
            assert not day.has_price_override
            assert day.min_stay == 1

    async def test_overrides_and_blocks(self, db_session, test_property):
        await bulk_upsert(
            db_session,
            test_property.id,
            [
                AvailabilityDayUpdate(day=date(2026, 6, 1), price=Decimal("310.00"), min_stay=3),
                AvailabilityDayUpdate(day=date(2026, 6, 2), is_blocked=True, notes="Pintura"),
            ],
        )

        first, second, third = await get_availability(
            db_session, test_property.id, date(2026, 6, 1), date(2026, 6, 3)
        )

        assert first.price == Decimal("310.00")
        assert first.has_price_override
        assert first.min_stay == 3
        assert first.available
        assert second.is_blocked
        assert not second.available
        assert second.notes == "Pintura"
        assert third.available

    async def test_booked_nights_exclude_checkout_day(self, db_session, test_property):
        await create_reservation(db_session, test_property, date(2026, 6, 2), date(2026, 6, 4))

        calendar = await get_availability(db_session, test_property.id, date(2026, 6, 1), date(2026, 6, 4))

        assert [d.is_booked for d in calendar] == [False, True, True, False]
        assert [d.available for d in calendar] == [True, False, False, True]

    async def test_cancelled_stay_leaves_dates_open(self, db_session, test_property):
        await create_reservation(db_session, test_property, date(2026, 6, 2), date(2026, 6, 4), status="CANCELLED")

        calendar = await get_availability(db_session, test_property.id, date(2026, 6, 1), date(2026, 6, 4))

        assert all(d.available for d in calendar)

    async def test_reversed_range(self, db_session, test_property):
        with pytest.raises(InvalidRangeError):
            await get_availability(db_session, test_property.id, date(2026, 6, 3), date(2026, 6, 1))

    async def test_window_limit(self, db_session, test_property):
        with pytest.raises(InvalidRangeError):
            await get_availability(db_session, test_property.id, date(2026, 1, 1), date(2028, 1, 2))

    async def test_unknown_property(self, db_session):
        with pytest.raises(NotFoundError):
            await get_availability(db_session, uuid.uuid4(), date(2026, 6, 1), date(2026, 6, 3))


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class TestBulkUpsert:
    async def test_only_set_fields_are_written(self, db_session, test_property):
        await upsert_day(
            db_session, test_property.id, AvailabilityDayUpdate(day=date(2026, 7, 1), price=Decimal("280.00"))
        )
        row = await upsert_day(db_session, test_property.id, AvailabilityDayUpdate(day=date(2026, 7, 1), min_stay=2))

        assert row.price == Decimal("280.00")
        assert row.min_stay == 2
        assert row.is_blocked is False

    async def test_explicit_null_clears_override(self, db_session, test_property):
        await upsert_day(
            db_session, test_property.id, AvailabilityDayUpdate(day=date(2026, 7, 1), price=Decimal("280.00"))
        )
        await upsert_day(db_session, test_property.id, AvailabilityDayUpdate(day=date(2026, 7, 1), price=None))

        [day] = await get_availability(db_session, test_property.id, date(2026, 7, 1), date(2026, 7, 1))
        assert day.price == Decimal("200.00")
        assert not day.has_price_override

    async def test_failure_rolls_back_whole_batch(self, db_session, test_property):
        updates = [
            AvailabilityDayUpdate(day=date(2026, 7, 1), is_blocked=True),
            AvailabilityDayUpdate(day=date(2026, 7, 2), is_blocked=True),
            AvailabilityDayUpdate(day=date(2026, 7, 3), is_blocked=True),
        ]
        real_apply = calendar_store._apply_update
        calls = []

        def failing_apply(row, update):
            calls.append(update.day)
            if len(calls) == 2:
                raise SQLAlchemyError("disk full")
            real_apply(row, update)

        with patch.object(calendar_store, "_apply_update", side_effect=failing_apply):
            with pytest.raises(CalendarUpdateError):
                await bulk_upsert(db_session, test_property.id, updates)

        assert await load_days(db_session, test_property.id, date(2026, 7, 1), date(2026, 7, 3)) == {}

    async def test_duplicate_dates_rejected(self, db_session, test_property):
        updates = [
            AvailabilityDayUpdate(day=date(2026, 7, 1), is_blocked=True),
            AvailabilityDayUpdate(day=date(2026, 7, 1), price=Decimal("250.00")),
        ]
        with pytest.raises(InvalidRangeError):
            await bulk_upsert(db_session, test_property.id, updates)

    async def test_unknown_property(self, db_session):
        with pytest.raises(NotFoundError):
            await bulk_upsert(db_session, uuid.uuid4(), [AvailabilityDayUpdate(day=date(2026, 7, 1), is_blocked=True)])

    async def test_empty_batch(self, db_session, test_property):
        assert await bulk_upsert(db_session, test_property.id, []) == []


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


class TestApplyRule:
    async def test_weekend_price_rule(self, db_session, test_property):
        rule = PriceRule(
            start_date=date(2026, 1, 5),
            end_date=date(2026, 1, 18),
            value=Decimal("260.00"),
            recurrence=Recurrence(frequency="WEEKLY", days_of_week=[4, 5]),
        )

        dates = await apply_rule(db_session, test_property.id, rule)

        assert dates == [date(2026, 1, 9), date(2026, 1, 10), date(2026, 1, 16), date(2026, 1, 17)]
        calendar = await get_availability(db_session, test_property.id, date(2026, 1, 5), date(2026, 1, 18))
        overridden = [d.day for d in calendar if d.has_price_override]
        assert overridden == dates
        assert {d.price for d in calendar if d.has_price_override} == {Decimal("260.00")}

    async def test_block_then_unblock_clears_notes(self, db_session, test_property):
        await apply_rule(
            db_session,
            test_property.id,
            BlockRule(start_date=date(2026, 8, 1), end_date=date(2026, 8, 3), notes="Reforma"),
        )
        blocked = await get_availability(db_session, test_property.id, date(2026, 8, 1), date(2026, 8, 3))
        assert all(d.is_blocked and d.notes == "Reforma" for d in blocked)

        await apply_rule(
            db_session,
            test_property.id,
            UnblockRule(start_date=date(2026, 8, 1), end_date=date(2026, 8, 3)),
        )
        reopened = await get_availability(db_session, test_property.id, date(2026, 8, 1), date(2026, 8, 3))
        assert all(d.available and d.notes is None for d in reopened)

    async def test_rule_keeps_other_fields(self, db_session, test_property):
        await upsert_day(
            db_session, test_property.id, AvailabilityDayUpdate(day=date(2026, 8, 1), price=Decimal("330.00"))
        )
        await apply_rule(
            db_session,
            test_property.id,
            MinStayRule(start_date=date(2026, 8, 1), end_date=date(2026, 8, 1), value=4),
        )

        [day] = await get_availability(db_session, test_property.id, date(2026, 8, 1), date(2026, 8, 1))
        assert day.price == Decimal("330.00")
        assert day.min_stay == 4

    async def test_recurrence_ending_before_start(self, db_session, test_property):
        rule = BlockRule(
            start_date=date(2026, 8, 10),
            end_date=date(2026, 8, 20),
            recurrence=Recurrence(frequency="DAILY", end_date=date(2026, 8, 1)),
        )
        with pytest.raises(CalendarRuleError):
            await apply_rule(db_session, test_property.id, rule)

    async def test_no_matching_dates(self, db_session, test_property):
        rule = BlockRule(
            start_date=date(2026, 1, 5),
            end_date=date(2026, 1, 7),
            recurrence=Recurrence(frequency="WEEKLY", days_of_week=[6]),
        )
        assert await apply_rule(db_session, test_property.id, rule) == []

    async def test_unknown_property(self, db_session):
        rule = BlockRule(start_date=date(2026, 8, 1), end_date=date(2026, 8, 2))
        with pytest.raises(NotFoundError):
            await apply_rule(db_session, uuid.uuid4(), rule)
