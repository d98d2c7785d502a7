"""Business day calendar implementations.

This module provides holiday calendar functionality for determining business
days, rolling dates by business day conventions and advancing dates by a
number of business days (settlement lags).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date, timedelta

from jkoda.core.time import parse_date
from jkoda.core.types import BusinessDayConvention, DateLike

_ONE_DAY = timedelta(days=1)


class HolidayCalendar(ABC):
    """Abstract base class for holiday calendars.

    A holiday calendar determines which dates are business days and provides
    navigation functions for working with business days.
    """

    name: str = "calendar"

    @abstractmethod
    def is_business_day(self, day: date) -> bool:
        """Check if a date is a business day.

        Args:
            day: Date to check

        Returns:
            True if the date is a business day

        Example:
            >>> cal = WeekendCalendar()
            >>> cal.is_business_day(date(2024, 1, 15))  # Monday
            True
        """

    def is_holiday(self, day: date) -> bool:
        """Check if a date is a holiday (not a business day)."""
        return not self.is_business_day(day)

    def next_business_day(self, day: date) -> date:
        """Get the business day on or after the given date.

        Example:
            >>> WeekendCalendar().next_business_day(date(2024, 1, 6))  # Saturday
            datetime.date(2024, 1, 8)
        """
        current = day
        while not self.is_business_day(current):
            current += _ONE_DAY
        return current

    def previous_business_day(self, day: date) -> date:
        """Get the business day on or before the given date."""
        current = day
        while not self.is_business_day(current):
            current -= _ONE_DAY
        return current

    def adjust(
        self, day: date, convention: BusinessDayConvention = BusinessDayConvention.FOLLOWING
    ) -> date:
        """Roll a date onto a business day.

        Args:
            day: Date to adjust
            convention: Business day convention (default FOLLOWING)

        Returns:
            Adjusted date (unchanged if already a business day)
        """
        if convention == BusinessDayConvention.UNADJUSTED or self.is_business_day(day):
            return day

        if convention == BusinessDayConvention.FOLLOWING:
            return self.next_business_day(day)
        if convention == BusinessDayConvention.PRECEDING:
            return self.previous_business_day(day)
        if convention == BusinessDayConvention.MODIFIED_FOLLOWING:
            rolled = self.next_business_day(day)
            return rolled if rolled.month == day.month else self.previous_business_day(day)
        if convention == BusinessDayConvention.MODIFIED_PRECEDING:
            rolled = self.previous_business_day(day)
            return rolled if rolled.month == day.month else self.next_business_day(day)
        raise ValueError(f"Unknown business day convention: {convention}")

    def advance(
        self,
        day: date,
        days: int,
        convention: BusinessDayConvention = BusinessDayConvention.FOLLOWING,
    ) -> date:
        """Move a date by a number of business days.

        With ``days == 0`` the date is only rolled by ``convention``. Otherwise
        the date is stepped business day by business day, forwards or
        backwards, and the result is always a business day.

        Args:
            day: Starting date
            days: Number of business days to move (can be negative)
            convention: Convention used when ``days == 0``

        Returns:
            Advanced date

        Example:
            >>> cal = WeekendCalendar()
            >>> cal.advance(date(2024, 1, 5), 1)  # Friday + 1
            datetime.date(2024, 1, 8)
        """
        if days == 0:
            return self.adjust(day, convention)

        current = day
        step = _ONE_DAY if days > 0 else -_ONE_DAY
        remaining = abs(days)
        while remaining > 0:
            current += step
            if self.is_business_day(current):
                remaining -= 1
        return current

    def business_days_between(self, start: date, end: date, include_end: bool = False) -> int:
        """Count business days in [start, end) (or [start, end] with include_end).

        Example:
            >>> WeekendCalendar().business_days_between(date(2024, 1, 1), date(2024, 1, 5))
            4
        """
        if start > end:
            return -self.business_days_between(end, start, include_end)

        count = 0
        current = start
        while current < end:
            if self.is_business_day(current):
                count += 1
            current += _ONE_DAY

        if include_end and self.is_business_day(end):
            count += 1
        return count


class NoHolidayCalendar(HolidayCalendar):
    """Calendar with no holidays - every day is a business day."""

    name = "NO_CALENDAR"

    def is_business_day(self, day: date) -> bool:  # noqa: ARG002
        return True


class WeekendCalendar(HolidayCalendar):
    """Calendar with Monday-Friday as business days and no public holidays."""

    name = "WEEKENDS_ONLY"

    def is_business_day(self, day: date) -> bool:
        # Monday=0, Friday=4, Saturday=5, Sunday=6
        return day.weekday() < 5


class CustomCalendar(HolidayCalendar):
    """Calendar with an explicit list of exchange holidays.

    Example:
        >>> cal = CustomCalendar(["2024-02-12", "2024-02-13"], name="XHKG")
        >>> cal.is_business_day(date(2024, 2, 12))
        False
    """

    def __init__(
        self,
        holidays: Iterable[DateLike] | None = None,
        include_weekends: bool = True,
        name: str = "CUSTOM",
    ):
        """Initialize custom calendar.

        Args:
            holidays: Holiday dates or ISO strings (defaults to none)
            include_weekends: Whether Saturdays and Sundays are also holidays
            name: Calendar identifier
        """
        self.name = name
        self.include_weekends = include_weekends
        self.holidays: set[date] = {parse_date(h) for h in holidays or ()}

    def add_holiday(self, day: DateLike) -> None:
        self.holidays.add(parse_date(day))

    def remove_holiday(self, day: DateLike) -> None:
        self.holidays.discard(parse_date(day))

    def is_business_day(self, day: date) -> bool:
        if day in self.holidays:
            return False
        return not (self.include_weekends and day.weekday() >= 5)


def get_calendar(calendar_name: str) -> HolidayCalendar:
    """Factory function to get a built-in calendar by name.

    Args:
        calendar_name: "NO_CALENDAR" / "NONE" or "WEEKENDS_ONLY" / "MONDAY_TO_FRIDAY"

    Returns:
        HolidayCalendar instance

    Raises:
        ValueError: If the calendar name is unknown
    """
    calendar_name_upper = calendar_name.upper()

    if calendar_name_upper in ("NO_CALENDAR", "NONE"):
        return NoHolidayCalendar()
    if calendar_name_upper in ("WEEKENDS_ONLY", "MONDAY_TO_FRIDAY", "MTF"):
        return WeekendCalendar()
    raise ValueError(f"Unknown calendar: {calendar_name}. Supported: NO_CALENDAR, WEEKENDS_ONLY")
