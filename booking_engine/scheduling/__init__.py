from booking_engine.scheduling.recurrence import (
    PerDaySchedule,
    PreferredDayList,
    RecurrenceRule,
    Unconstrained,
    build_recurrence_rule,
    calculate_series_total,
    generate_visit_datetimes,
    get_recurring_discount,
)

__all__ = [
    "RecurrenceRule",
    "PerDaySchedule",
    "PreferredDayList",
    "Unconstrained",
    "build_recurrence_rule",
    "generate_visit_datetimes",
    "get_recurring_discount",
    "calculate_series_total",
]
