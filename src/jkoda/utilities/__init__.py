"""Holiday calendars and accrual schedule generation."""

from jkoda.utilities.calendars import (
    CustomCalendar,
    HolidayCalendar,
    NoHolidayCalendar,
    WeekendCalendar,
    get_calendar,
)
from jkoda.utilities.schedules import (
    AccrualSchedule,
    EvaluationPosition,
    PeriodEndAdjustment,
    build_accrual_schedule,
    finalize_terms,
    generate_business_days,
    locate_evaluation_date,
)

__all__ = [
    # Calendars
    "HolidayCalendar",
    "NoHolidayCalendar",
    "WeekendCalendar",
    "CustomCalendar",
    "get_calendar",
    # Schedules
    "AccrualSchedule",
    "EvaluationPosition",
    "PeriodEndAdjustment",
    "build_accrual_schedule",
    "finalize_terms",
    "generate_business_days",
    "locate_evaluation_date",
]
