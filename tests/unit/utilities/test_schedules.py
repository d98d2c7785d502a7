"""Unit tests for accrual schedule generation and evaluation-date location."""

from datetime import date

import pytest

from jkoda.core.terms import AccumulatorTerms
from jkoda.core.types import EvaluationPhase
from jkoda.exceptions import ScheduleError
from jkoda.utilities.calendars import CustomCalendar, WeekendCalendar
from jkoda.utilities.schedules import (
    EvaluationPosition,
    PeriodEndAdjustment,
    build_accrual_schedule,
    finalize_terms,
    generate_business_days,
    locate_evaluation_date,
)


class TestGenerateBusinessDays:
    def test_skips_weekends(self):
        days = generate_business_days(date(2024, 1, 5), date(2024, 1, 9), WeekendCalendar())
        assert days == [date(2024, 1, 5), date(2024, 1, 8), date(2024, 1, 9)]

    def test_single_holiday_is_empty(self):
        assert generate_business_days(date(2024, 1, 6), date(2024, 1, 6), WeekendCalendar()) == []

    def test_reversed_range_rejected(self):
        with pytest.raises(ScheduleError, match="on or before"):
            generate_business_days(date(2024, 1, 9), date(2024, 1, 8), WeekendCalendar())


class TestBuildAccrualSchedule:
    def test_standard_schedule(self, swap_terms, weekend_calendar):
        schedule = build_accrual_schedule(swap_terms, weekend_calendar)

        assert schedule.num_accrual_days == 10
        assert schedule.num_periods == 2
        assert schedule.accrual_dates[0] == date(2024, 1, 8)
        assert schedule.accrual_dates[-1] == date(2024, 1, 19)
        assert schedule.period_index_of_date == (0,) * 5 + (1,) * 5
        assert schedule.index_of_period_end == (4, 9)
        assert schedule.period_end_dates == (date(2024, 1, 12), date(2024, 1, 19))
        assert schedule.settlement_dates == (date(2024, 1, 16), date(2024, 1, 23))
        assert schedule.adjustments == ()

    def test_helpers(self, swap_terms, weekend_calendar):
        schedule = build_accrual_schedule(swap_terms, weekend_calendar)
        assert schedule.index_of_period_start(0) == 0
        assert schedule.index_of_period_start(1) == 5
        assert schedule.period_of(7) == 1
        assert schedule.index_of(date(2024, 1, 15)) == 5
        with pytest.raises(ValueError, match="not an accrual day"):
            schedule.index_of(date(2024, 1, 13))

    def test_zero_settlement_lag(self, terms_kwargs, weekend_calendar):
        terms = AccumulatorTerms(**{**terms_kwargs, "settlement_lag": 0})
        schedule = build_accrual_schedule(terms, weekend_calendar)
        assert schedule.settlement_dates == schedule.period_end_dates

    def test_weekend_period_end_moved_forward(self, terms_kwargs, weekend_calendar):
        terms = AccumulatorTerms(
            **{**terms_kwargs, "period_end_dates": (date(2024, 1, 14), date(2024, 1, 19))}
        )
        schedule = build_accrual_schedule(terms, weekend_calendar)

        assert schedule.index_of_period_end == (5, 9)
        assert schedule.period_end_dates[0] == date(2024, 1, 15)
        assert schedule.adjustments == (
            PeriodEndAdjustment(0, date(2024, 1, 14), date(2024, 1, 15)),
        )
        # terms are not modified by the builder
        assert terms.period_end_dates[0] == date(2024, 1, 14)

        finalized = finalize_terms(terms, schedule)
        assert finalized.period_end_dates == (date(2024, 1, 15), date(2024, 1, 19))
        assert terms.period_end_dates[0] == date(2024, 1, 14)

    def test_finalize_terms_unchanged_returns_same_terms(self, swap_terms, weekend_calendar):
        schedule = build_accrual_schedule(swap_terms, weekend_calendar)
        assert finalize_terms(swap_terms, schedule) is swap_terms

    def test_exchange_holiday_on_period_end(self, swap_terms):
        calendar = CustomCalendar(["2024-01-12"])
        schedule = build_accrual_schedule(swap_terms, calendar)
        assert schedule.num_accrual_days == 9
        assert schedule.period_end_dates[0] == date(2024, 1, 15)
        assert schedule.index_of_period_end == (4, 8)

    def test_period_end_before_first_accrual_rejected(self, terms_kwargs, weekend_calendar):
        terms = AccumulatorTerms(**{**terms_kwargs, "period_end_dates": (date(2024, 1, 5),)})
        with pytest.raises(ScheduleError, match="precedes the first accumulation date"):
            build_accrual_schedule(terms, weekend_calendar)

    def test_periods_collapsing_onto_one_day_rejected(self, terms_kwargs, weekend_calendar):
        # Saturday and Sunday both roll to Monday 15-Jan
        terms = AccumulatorTerms(
            **{**terms_kwargs, "period_end_dates": (date(2024, 1, 13), date(2024, 1, 14))}
        )
        with pytest.raises(ScheduleError, match="no accrual days"):
            build_accrual_schedule(terms, weekend_calendar)

    def test_single_period(self, terms_kwargs, weekend_calendar):
        terms = AccumulatorTerms(**{**terms_kwargs, "period_end_dates": (date(2024, 1, 8),)})
        schedule = build_accrual_schedule(terms, weekend_calendar)
        assert schedule.accrual_dates == (date(2024, 1, 8),)
        assert schedule.index_of_period_end == (0,)


class TestLocateEvaluationDate:
    @pytest.fixture
    def accrual_dates(self, swap_terms, weekend_calendar):
        return build_accrual_schedule(swap_terms, weekend_calendar).accrual_dates

    @pytest.mark.parametrize(
        ("evaluation_date", "index", "phase"),
        [
            (date(2024, 1, 5), None, EvaluationPhase.BEFORE_ALL),
            (date(2024, 1, 8), 0, EvaluationPhase.BETWEEN),
            (date(2024, 1, 10), 2, EvaluationPhase.BETWEEN),
            (date(2024, 1, 13), 4, EvaluationPhase.BETWEEN),
            (date(2024, 1, 19), 9, EvaluationPhase.AFTER_ALL),
            (date(2024, 1, 30), 9, EvaluationPhase.AFTER_ALL),
        ],
    )
    def test_positions(self, accrual_dates, evaluation_date, index, phase):
        position = locate_evaluation_date(evaluation_date, accrual_dates)
        assert position == EvaluationPosition(index=index, phase=phase)

    def test_signed_index(self):
        assert EvaluationPosition(None, EvaluationPhase.BEFORE_ALL).signed_index == -1
        assert EvaluationPosition(None, EvaluationPhase.BEFORE_ALL).is_before_all
        assert EvaluationPosition(3, EvaluationPhase.BETWEEN).signed_index == 3
