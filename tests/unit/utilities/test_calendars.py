"""Unit tests for holiday calendars."""

from datetime import date

import pytest

from jkoda.core.types import BusinessDayConvention
from jkoda.utilities.calendars import (
    CustomCalendar,
    NoHolidayCalendar,
    WeekendCalendar,
    get_calendar,
)

FRIDAY = date(2024, 1, 5)
SATURDAY = date(2024, 1, 6)
SUNDAY = date(2024, 1, 7)
MONDAY = date(2024, 1, 8)


class TestWeekendCalendar:
    def test_business_days(self):
        cal = WeekendCalendar()
        assert cal.is_business_day(FRIDAY)
        assert cal.is_holiday(SATURDAY)
        assert cal.is_holiday(SUNDAY)
        assert cal.is_business_day(MONDAY)

    def test_next_and_previous(self):
        cal = WeekendCalendar()
        assert cal.next_business_day(SATURDAY) == MONDAY
        assert cal.previous_business_day(SUNDAY) == FRIDAY
        assert cal.next_business_day(FRIDAY) == FRIDAY

    @pytest.mark.parametrize(
        ("convention", "day", "expected"),
        [
            (BusinessDayConvention.UNADJUSTED, SATURDAY, SATURDAY),
            (BusinessDayConvention.FOLLOWING, SATURDAY, MONDAY),
            (BusinessDayConvention.PRECEDING, SUNDAY, FRIDAY),
            # Sat 30-Mar-2024 rolls forward into April, so modified following goes back
            (BusinessDayConvention.MODIFIED_FOLLOWING, date(2024, 3, 30), date(2024, 3, 29)),
            (BusinessDayConvention.MODIFIED_PRECEDING, date(2024, 6, 1), date(2024, 6, 3)),
        ],
    )
    def test_adjust(self, convention, day, expected):
        assert WeekendCalendar().adjust(day, convention) == expected

    def test_advance(self):
        cal = WeekendCalendar()
        assert cal.advance(FRIDAY, 1) == MONDAY
        assert cal.advance(MONDAY, -1) == FRIDAY
        assert cal.advance(FRIDAY, 2) == date(2024, 1, 9)

    def test_advance_zero_rolls(self):
        cal = WeekendCalendar()
        assert cal.advance(SATURDAY, 0) == MONDAY
        assert cal.advance(SATURDAY, 0, BusinessDayConvention.PRECEDING) == FRIDAY
        assert cal.advance(FRIDAY, 0) == FRIDAY

    def test_business_days_between(self):
        cal = WeekendCalendar()
        assert cal.business_days_between(date(2024, 1, 1), date(2024, 1, 8)) == 5
        assert cal.business_days_between(date(2024, 1, 1), date(2024, 1, 8), include_end=True) == 6
        assert cal.business_days_between(date(2024, 1, 8), date(2024, 1, 1)) == -5


class TestOtherCalendars:
    def test_no_holiday_calendar(self):
        cal = NoHolidayCalendar()
        assert cal.is_business_day(SATURDAY)
        assert cal.advance(FRIDAY, 1) == SATURDAY

    def test_custom_calendar(self):
        cal = CustomCalendar(["2024-01-08"], name="XHKG")
        assert cal.name == "XHKG"
        assert cal.is_holiday(MONDAY)
        assert cal.next_business_day(SATURDAY) == date(2024, 1, 9)
        cal.remove_holiday(MONDAY)
        assert cal.is_business_day(MONDAY)
        cal.add_holiday("2024-01-09")
        assert cal.is_holiday(date(2024, 1, 9))

    def test_custom_calendar_without_weekends(self):
        cal = CustomCalendar(include_weekends=False)
        assert cal.is_business_day(SATURDAY)


class TestGetCalendar:
    @pytest.mark.parametrize("name", ["WEEKENDS_ONLY", "monday_to_friday", "MTF"])
    def test_weekend_aliases(self, name):
        assert isinstance(get_calendar(name), WeekendCalendar)

    @pytest.mark.parametrize("name", ["NO_CALENDAR", "none"])
    def test_no_calendar_aliases(self, name):
        assert isinstance(get_calendar(name), NoHolidayCalendar)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown calendar"):
            get_calendar("XLON")
