"""Expand calendar rules into the concrete dates they touch."""

import calendar
import logging
from collections.abc import Iterator
from datetime import date, timedelta

from hospede.exceptions import CalendarRuleError
from hospede.schemas.calendar import (
    AdvanceNoticeRule,
    AvailabilityDayUpdate,
    BlockRule,
    CalendarRule,
    Frequency,
    MinStayRule,
    PriceRule,
    Recurrence,
    UnblockRule,
)

logger = logging.getLogger(__name__)


def date_range(start: date, end: date) -> list[date]:
    """Every date from start to end, both inclusive."""
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def _shift_months(anchor: date, months: int) -> date:
    """Move anchor by a number of months, clamping the day to the month's length."""
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    day = min(anchor.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _daily(start: date, end: date, interval: int) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=interval)


def _weekly(start: date, end: date, interval: int, weekdays: set[int]) -> Iterator[date]:
    # Weeks are counted from the Monday of the start date's week.
    week_anchor = start - timedelta(days=start.weekday())
    for day in date_range(start, end):
        week_index = (day - week_anchor).days // 7
        if week_index % interval == 0 and day.weekday() in weekdays:
            yield day


def _by_month_step(start: date, end: date, months_per_step: int) -> Iterator[date]:
    step = 0
    current = start
    while current <= end:
        yield current
        step += 1
        current = _shift_months(start, step * months_per_step)


def _recurring_dates(start: date, end: date, recurrence: Recurrence) -> list[date]:
    interval = recurrence.interval
    weekdays = set(recurrence.days_of_week or [])

    if recurrence.frequency == Frequency.WEEKLY:
        return list(_weekly(start, end, interval, weekdays or {start.weekday()}))

    if recurrence.frequency == Frequency.DAILY:
        candidates = _daily(start, end, interval)
    elif recurrence.frequency == Frequency.MONTHLY:
        candidates = _by_month_step(start, end, interval)
    elif recurrence.frequency == Frequency.YEARLY:
        candidates = _by_month_step(start, end, 12 * interval)
    else:
        raise CalendarRuleError(f"Unsupported recurrence frequency: {recurrence.frequency}")

    if weekdays:
        return [day for day in candidates if day.weekday() in weekdays]
    return list(candidates)


def expand_rule_dates(rule: CalendarRule, max_span_days: int | None = None) -> list[date]:
    """Return the ordered dates a calendar rule applies to.

    A rule without recurrence covers every date in its range. A recurring rule
    is bounded by the earlier of the rule's end date and the recurrence end
    date; a recurrence that ends before the rule starts is rejected rather
    than expanding to nothing.

    Raises:
        CalendarRuleError: If the dates are inconsistent or the rule spans
            more than ``max_span_days``.
    """
    recurrence = rule.recurrence
    end = rule.end_date
    if recurrence is not None and recurrence.end_date is not None:
        if recurrence.end_date < rule.start_date:
            raise CalendarRuleError(
                f"Recurrence ends on {recurrence.end_date.isoformat()}, "
                f"before the rule starts on {rule.start_date.isoformat()}"
            )
        end = min(end, recurrence.end_date)

    span_days = (end - rule.start_date).days + 1
    if max_span_days is not None and span_days > max_span_days:
        raise CalendarRuleError(f"Calendar rules cannot span more than {max_span_days} days (got {span_days})")

    if recurrence is None:
        return date_range(rule.start_date, end)

    dates = _recurring_dates(rule.start_date, end, recurrence)
    logger.debug("Expanded %s rule %s..%s into %d dates", rule.type, rule.start_date, end, len(dates))
    return dates


def rule_day_fields(rule: CalendarRule) -> dict:
    """The per-day fields a rule writes. Every rule variant must be listed here."""
    if isinstance(rule, BlockRule):
        fields: dict = {"is_blocked": True}
        if rule.notes is not None:
            fields["notes"] = rule.notes
        return fields
    if isinstance(rule, UnblockRule):
        return {"is_blocked": False, "notes": None}
    if isinstance(rule, PriceRule):
        return {"price": rule.value}
    if isinstance(rule, MinStayRule):
        return {"min_stay": rule.value}
    if isinstance(rule, AdvanceNoticeRule):
        return {"advance_notice_hours": rule.value}
    raise CalendarRuleError(f"Unsupported calendar rule: {type(rule).__name__}")


def build_day_updates(rule: CalendarRule, dates: list[date]) -> list[AvailabilityDayUpdate]:
    """Turn a rule and its expanded dates into per-day updates."""
    fields = rule_day_fields(rule)
    return [AvailabilityDayUpdate(day=day, **fields) for day in dates]
