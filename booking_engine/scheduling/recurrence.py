"""
Recurring visit date generation.

Turns a recurrence rule into the ordered list of concrete visit datetimes
for a series. Pure and deterministic: no I/O, no clock reads.

The shape of the day pattern is decided once, when the rule is built:

    PerDaySchedule    weekly rule with at least one enabled day that has visit times
    PreferredDayList  weekdays (weekly) or days-of-month (monthly) to cycle through
    Unconstrained     step from the start date by the frequency

Usage:
    rule = build_recurrence_rule(
        frequency="weekly",
        start_date=datetime(2025, 3, 5, tzinfo=timezone.utc),
        preferred_time="09:00",
        number_of_visits=4,
        day_schedules=[DaySchedule(day_of_week=1, number_of_visits=2,
                                   visit_times=["09:00", "15:00"])],
    )
    visits = generate_visit_datetimes(rule)
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Sequence, Union

from dateutil.relativedelta import relativedelta

from booking_engine.config import settings
from booking_engine.errors import InvalidRule
from booking_engine.schemas.series_schema import DaySchedule, Frequency
from booking_engine.utils import parse_wall_clock, sunday_based_weekday

logger = logging.getLogger(__name__)

MAX_DAY_OF_MONTH = 31
MAX_DAY_OF_WEEK = 6


@dataclass(frozen=True)
class ScheduledDay:
    """One enabled weekday of a per-day schedule with parsed visit times."""

    day_of_week: int
    visit_times: tuple[tuple[int, int], ...]


@dataclass(frozen=True)
class PerDaySchedule:
    """Weekly template built from the enabled days of a per-day schedule."""

    days: tuple[ScheduledDay, ...]

    @property
    def visits_per_week(self) -> int:
        return sum(len(day.visit_times) for day in self.days)


@dataclass(frozen=True)
class PreferredDayList:
    """Weekdays (weekly) or days-of-month (monthly) to cycle through."""

    days: tuple[int, ...]


@dataclass(frozen=True)
class Unconstrained:
    """Step from the start date by the rule's frequency."""


DayPattern = Union[PerDaySchedule, PreferredDayList, Unconstrained]


@dataclass(frozen=True)
class RecurrenceRule:
    """A validated recurrence rule ready for generation."""

    frequency: Frequency
    start_date: datetime
    base_time: tuple[int, int]
    number_of_visits: int
    pattern: DayPattern
    visits_per_day: int = 1
    time_interval_minutes: int = 60


def get_recurring_discount(frequency: Union[Frequency, str]) -> float:
    """Discount fraction applied to a series total for the given frequency."""
    if Frequency(frequency) == Frequency.MONTHLY:
        return settings.scheduling.monthly_discount
    return 0.0


def calculate_series_total(
    base_price: float, number_of_visits: int, frequency: Union[Frequency, str]
) -> float:
    """Series total: base price × visits × (1 − discount)."""
    subtotal = base_price * number_of_visits
    return round(subtotal * (1 - get_recurring_discount(frequency)), 2)


# ---------------------------------------------------------------------- #
# Rule construction and validation
# ---------------------------------------------------------------------- #


def build_recurrence_rule(
    frequency: Union[Frequency, str],
    start_date: datetime,
    preferred_time: str,
    number_of_visits: int,
    preferred_days: Optional[Sequence[int]] = None,
    day_schedules: Optional[Sequence[Union[DaySchedule, dict[str, Any]]]] = None,
    visits_per_day: int = 1,
    time_interval_minutes: Optional[int] = None,
) -> RecurrenceRule:
    """
    Validate raw recurrence inputs and decide the day pattern.

    Raises:
        InvalidRule: If the inputs cannot describe a usable schedule.
    """
    try:
        frequency = Frequency(frequency)
    except ValueError:
        raise InvalidRule(f"Unknown frequency: {frequency!r}") from None

    if number_of_visits <= 0:
        raise InvalidRule(
            f"number_of_visits must be positive, got {number_of_visits}",
            requested=number_of_visits,
        )
    if visits_per_day < 1:
        raise InvalidRule(f"visits_per_day must be >= 1, got {visits_per_day}")

    interval = (
        settings.scheduling.time_interval_minutes
        if time_interval_minutes is None
        else time_interval_minutes
    )
    if visits_per_day > 1 and interval < 1:
        raise InvalidRule(
            f"time_interval_minutes must be >= 1 with several visits per day, got {interval}"
        )

    base_time = _parse_visit_time(preferred_time)
    pattern = _resolve_pattern(frequency, preferred_days, day_schedules)

    return RecurrenceRule(
        frequency=frequency,
        start_date=start_date,
        base_time=base_time,
        number_of_visits=number_of_visits,
        pattern=pattern,
        visits_per_day=visits_per_day,
        time_interval_minutes=interval,
    )


def _parse_visit_time(value: str) -> tuple[int, int]:
    try:
        return parse_wall_clock(value)
    except ValueError as exc:
        raise InvalidRule(str(exc)) from None


def _resolve_pattern(
    frequency: Frequency,
    preferred_days: Optional[Sequence[int]],
    day_schedules: Optional[Sequence[Union[DaySchedule, dict[str, Any]]]],
) -> DayPattern:
    if frequency == Frequency.WEEKLY and day_schedules:
        scheduled = _usable_scheduled_days(day_schedules)
        if scheduled:
            return PerDaySchedule(days=scheduled)
        logger.warning(
            "No enabled day with visit times in day_schedules; using preferred days instead"
        )

    days = tuple(preferred_days or ())
    if not days or frequency == Frequency.DAILY:
        return Unconstrained()

    _validate_preferred_days(frequency, days)
    return PreferredDayList(days=days)


def _usable_scheduled_days(
    day_schedules: Sequence[Union[DaySchedule, dict[str, Any]]]
) -> tuple[ScheduledDay, ...]:
    """Enabled days with at least one visit time, in configured order."""
    usable: list[ScheduledDay] = []
    seen: set[int] = set()

    for raw in day_schedules:
        schedule = raw if isinstance(raw, DaySchedule) else DaySchedule.model_validate(raw)
        if not schedule.enabled or not schedule.visit_times:
            continue
        if len(schedule.visit_times) != schedule.number_of_visits:
            raise InvalidRule(
                f"Day {schedule.day_of_week} lists {len(schedule.visit_times)} visit times "
                f"but is configured for {schedule.number_of_visits} visits"
            )
        if schedule.day_of_week in seen:
            raise InvalidRule(f"Day {schedule.day_of_week} is configured more than once")
        seen.add(schedule.day_of_week)

        times = tuple(_parse_visit_time(t) for t in schedule.visit_times)
        if any(later <= earlier for earlier, later in zip(times, times[1:])):
            raise InvalidRule(
                f"Visit times for day {schedule.day_of_week} must be in ascending order: "
                f"{schedule.visit_times}"
            )
        usable.append(ScheduledDay(day_of_week=schedule.day_of_week, visit_times=times))

    return tuple(usable)


def _validate_preferred_days(frequency: Frequency, days: tuple[int, ...]) -> None:
    if frequency == Frequency.WEEKLY:
        low, high, label = 0, MAX_DAY_OF_WEEK, "weekday"
    else:
        low, high, label = 1, MAX_DAY_OF_MONTH, "day of month"

    for day in days:
        if not low <= day <= high:
            raise InvalidRule(f"Preferred {label} {day} is outside {low}..{high}")
    if len(set(days)) != len(days):
        raise InvalidRule(f"Preferred days contain duplicates: {list(days)}")


# ---------------------------------------------------------------------- #
# Generation
# ---------------------------------------------------------------------- #


def generate_visit_datetimes(rule: RecurrenceRule) -> list[datetime]:
    """
    Materialize the visit datetimes for a rule.

    Returns:
        Visit datetimes sorted ascending, exactly ``rule.number_of_visits`` long.

    Raises:
        InvalidRule: If the rule yields fewer visits than requested or two
            visits at the same instant.
    """
    if isinstance(rule.pattern, PerDaySchedule):
        visits = _generate_from_day_schedule(rule, rule.pattern)
    else:
        visits = _generate_by_day_index(rule)

    visits.sort()
    _check_generated(rule, visits)
    logger.debug(
        "Generated %d %s visits from %s", len(visits), rule.frequency.value,
        rule.start_date.isoformat(),
    )
    return visits


def _visit_at(rule: RecurrenceRule, day: date, minutes_after_midnight: int) -> datetime:
    midnight = datetime.combine(day, time(0, 0), tzinfo=rule.start_date.tzinfo)
    return midnight + timedelta(minutes=minutes_after_midnight)


def _generate_from_day_schedule(rule: RecurrenceRule, pattern: PerDaySchedule) -> list[datetime]:
    count = rule.number_of_visits
    start_day = rule.start_date.date()
    start_weekday = sunday_based_weekday(start_day)
    max_weeks = math.ceil(count / pattern.visits_per_week) + 1

    visits: list[datetime] = []
    week_offset = 0
    while len(visits) < count and week_offset < max_weeks:
        week_start = start_day + timedelta(weeks=week_offset)
        # Each week spans seven whole days from week_start, so sorting within
        # a week keeps the overall sequence chronological when truncating.
        week_visits = sorted(
            _visit_at(
                rule,
                week_start + timedelta(days=(day.day_of_week - start_weekday) % 7),
                hour * 60 + minute,
            )
            for day in pattern.days
            for hour, minute in day.visit_times
        )
        visits.extend(week_visits[: count - len(visits)])
        week_offset += 1

    return visits


def _generate_by_day_index(rule: RecurrenceRule) -> list[datetime]:
    count = rule.number_of_visits
    unique_days_needed = math.ceil(count / rule.visits_per_day)
    base_minutes = rule.base_time[0] * 60 + rule.base_time[1]

    visits: list[datetime] = []
    for day_index in range(unique_days_needed):
        target = _target_date_for_index(rule, day_index)
        for visit_in_day in range(rule.visits_per_day):
            if len(visits) >= count:
                break
            offset = base_minutes + visit_in_day * rule.time_interval_minutes
            visits.append(_visit_at(rule, target, offset))

    return visits


def _target_date_for_index(rule: RecurrenceRule, day_index: int) -> date:
    start = rule.start_date.date()
    pattern = rule.pattern

    if rule.frequency == Frequency.DAILY:
        return start + timedelta(days=day_index)

    if rule.frequency == Frequency.WEEKLY:
        if isinstance(pattern, PreferredDayList):
            week_offset, slot = divmod(day_index, len(pattern.days))
            week_start = start + timedelta(weeks=week_offset)
            shift = (pattern.days[slot] - sunday_based_weekday(week_start)) % 7
            return week_start + timedelta(days=shift)
        return start + timedelta(weeks=day_index)

    # Monthly: relativedelta clamps the day-of-month to the target month's length.
    if isinstance(pattern, PreferredDayList):
        month_offset, slot = divmod(day_index, len(pattern.days))
        return start + relativedelta(months=month_offset, day=pattern.days[slot])
    return start + relativedelta(months=day_index)


def _check_generated(rule: RecurrenceRule, visits: list[datetime]) -> None:
    requested = rule.number_of_visits
    if len(visits) != requested:
        raise InvalidRule(
            f"Rule produced {len(visits)} of {requested} requested visits",
            requested=requested,
            generated=len(visits),
        )
    for earlier, later in zip(visits, visits[1:]):
        if later <= earlier:
            raise InvalidRule(
                f"Rule places two visits at {later.isoformat()}",
                requested=requested,
                generated=len(visits),
            )
