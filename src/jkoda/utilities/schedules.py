"""Accrual schedule generation and evaluation-date location.

The accrual schedule is the list of business days on which an accumulator
delivers shares, together with the period each day belongs to, the index of
each period's last day and each period's settlement date.

Building the schedule never modifies the contract terms. When a configured
period end falls on a non-business day the schedule records the adjusted
date; ``finalize_terms`` then produces the finalized terms view.
"""

from __future__ import annotations

import bisect
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import NamedTuple

from jkoda.core.terms import AccumulatorTerms
from jkoda.core.time import format_date, iterate_days
from jkoda.core.types import BusinessDayConvention, EvaluationPhase
from jkoda.exceptions import ScheduleError
from jkoda.logging_config import get_logger
from jkoda.utilities.calendars import HolidayCalendar

logger = get_logger(__name__)


class PeriodEndAdjustment(NamedTuple):
    """A configured period end that was moved onto a business day."""

    period: int
    configured: date
    adjusted: date


@dataclass(frozen=True)
class AccrualSchedule:
    """Business-day accrual schedule of one accumulator.

    Attributes:
        accrual_dates: Business days from the first accumulation date to the
            final period end, ascending
        period_index_of_date: Period of each accrual day; non-decreasing,
            looks like (0, ..., 0, 1, ..., 1, ..., n-1)
        index_of_period_end: Index into ``accrual_dates`` of each period's last day
        period_end_dates: Period end dates after business day adjustment
        settlement_dates: Period end advanced by the settlement lag
        adjustments: Period ends that were moved, in the order they were found
    """

    accrual_dates: tuple[date, ...]
    period_index_of_date: tuple[int, ...]
    index_of_period_end: tuple[int, ...]
    period_end_dates: tuple[date, ...]
    settlement_dates: tuple[date, ...]
    adjustments: tuple[PeriodEndAdjustment, ...] = ()

    @property
    def num_accrual_days(self) -> int:
        return len(self.accrual_dates)

    @property
    def num_periods(self) -> int:
        return len(self.index_of_period_end)

    def index_of_period_start(self, period: int) -> int:
        """Index of the first accrual day of ``period``."""
        return 0 if period == 0 else self.index_of_period_end[period - 1] + 1

    def period_of(self, index: int) -> int:
        """Period that the accrual day at ``index`` belongs to."""
        return self.period_index_of_date[index]

    def index_of(self, day: date) -> int:
        """Index of an accrual day.

        Raises:
            ValueError: If ``day`` is not an accrual day
        """
        position = bisect.bisect_left(self.accrual_dates, day)
        if position == len(self.accrual_dates) or self.accrual_dates[position] != day:
            raise ValueError(f"{day.isoformat()} is not an accrual day")
        return position


@dataclass(frozen=True)
class EvaluationPosition:
    """Position of the evaluation date in the accrual schedule.

    ``index`` is the last accrual day on or before the evaluation date, or
    ``None`` when the evaluation date precedes the first accrual day.

    Example:
        >>> position = EvaluationPosition(index=None, phase=EvaluationPhase.BEFORE_ALL)
        >>> position.signed_index
        -1
    """

    index: int | None
    phase: EvaluationPhase

    @property
    def is_before_all(self) -> bool:
        return self.index is None

    @property
    def signed_index(self) -> int:
        """The index, with -1 standing for "before the first accrual day"."""
        return -1 if self.index is None else self.index


def generate_business_days(start: date, end: date, calendar: HolidayCalendar) -> list[date]:
    """List the business days in [start, end].

    The list is empty when start == end and that date is a holiday.

    Raises:
        ScheduleError: If start is after end
    """
    if start > end:
        raise ScheduleError(
            "Start date must be on or before end date",
            context={"start": start.isoformat(), "end": end.isoformat()},
        )

    business_days = [day for day in iterate_days(start, end) if calendar.is_business_day(day)]
    logger.debug(
        f"Generated a business day schedule with {len(business_days)} days. "
        f"First: {format_date(start)}, last: {format_date(end)}"
    )
    return business_days


def _snap_period_ends(
    period_end_dates: Sequence[date], calendar: HolidayCalendar
) -> tuple[list[date], list[PeriodEndAdjustment]]:
    adjusted_ends: list[date] = []
    adjustments: list[PeriodEndAdjustment] = []
    for period, end in enumerate(period_end_dates):
        adjusted = calendar.adjust(end, BusinessDayConvention.FOLLOWING)
        if adjusted != end:
            logger.warning(
                f"For period {period + 1} found the end date to be {format_date(end)}, "
                f"which is a non-business day. Moved the period end to {format_date(adjusted)}"
            )
            adjustments.append(PeriodEndAdjustment(period, end, adjusted))
        adjusted_ends.append(adjusted)
    return adjusted_ends, adjustments


def build_accrual_schedule(terms: AccumulatorTerms, calendar: HolidayCalendar) -> AccrualSchedule:
    """Build the accrual schedule of an accumulator on its underlying's calendar.

    Every calendar day from the first accumulation date to the final period
    end is enumerated and holidays dropped. Walking the business days, the
    first day on or after a period's end date closes that period; if it is
    strictly after, the period end is moved to it. The period counter is
    capped at the last period. Each period settles ``settlement_lag``
    business days after its end.

    Args:
        terms: Contract terms
        calendar: Holiday calendar of the underlying

    Returns:
        AccrualSchedule

    Raises:
        ScheduleError: If the last period end precedes the first accumulation
            date, or a period ends up without accrual days
    """
    first = terms.first_accumulation_date
    if terms.final_period_end < first:
        raise ScheduleError(
            "Last period end date precedes the first accumulation date",
            context={
                "contract_id": terms.contract_id,
                "first_accumulation_date": first.isoformat(),
                "last_period_end": terms.final_period_end.isoformat(),
            },
        )

    period_ends, adjustments = _snap_period_ends(terms.period_end_dates, calendar)
    accrual_dates = generate_business_days(first, period_ends[-1], calendar)
    if not accrual_dates:
        raise ScheduleError(
            "No business days in the accrual window",
            context={"contract_id": terms.contract_id, "calendar": calendar.name},
        )

    num_periods = terms.num_periods
    period_index_of_date: list[int] = []
    index_of_period_end: list[int] = []
    period = 0
    for index, day in enumerate(accrual_dates):
        period = min(period, num_periods - 1)
        period_index_of_date.append(period)
        if len(index_of_period_end) < num_periods and day >= period_ends[period]:
            if day > period_ends[period]:
                logger.warning(
                    f"For period {period + 1} found the end date to be "
                    f"{format_date(period_ends[period])}, which is not an accrual day. "
                    f"Moved the period end to {format_date(day)}"
                )
                adjustments.append(PeriodEndAdjustment(period, period_ends[period], day))
                period_ends[period] = day
            index_of_period_end.append(index)
            period += 1

    if len(index_of_period_end) != num_periods:
        raise ScheduleError(
            "Some periods have no accrual days",
            context={
                "contract_id": terms.contract_id,
                "num_periods": num_periods,
                "periods_with_days": len(index_of_period_end),
            },
        )

    settlement_dates = tuple(
        calendar.advance(end, terms.settlement_lag, BusinessDayConvention.FOLLOWING)
        for end in period_ends
    )

    logger.debug(
        f"Generated {len(accrual_dates)} accrual dates for {terms.contract_id}. "
        f"First is {accrual_dates[0].isoformat()}, last is {accrual_dates[-1].isoformat()}"
    )

    return AccrualSchedule(
        accrual_dates=tuple(accrual_dates),
        period_index_of_date=tuple(period_index_of_date),
        index_of_period_end=tuple(index_of_period_end),
        period_end_dates=tuple(period_ends),
        settlement_dates=settlement_dates,
        adjustments=tuple(adjustments),
    )


def finalize_terms(terms: AccumulatorTerms, schedule: AccrualSchedule) -> AccumulatorTerms:
    """Return the terms with period ends as adjusted by the schedule."""
    if tuple(schedule.period_end_dates) == tuple(terms.period_end_dates):
        return terms
    return terms.with_period_end_dates(schedule.period_end_dates)


def locate_evaluation_date(
    evaluation_date: date, accrual_dates: Sequence[date]
) -> EvaluationPosition:
    """Find the last accrual day on or before the evaluation date.

    Args:
        evaluation_date: Valuation date of the run
        accrual_dates: Ascending accrual days

    Returns:
        EvaluationPosition; ``index`` is None when the evaluation date
        precedes every accrual day

    Example:
        >>> days = [date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 5)]
        >>> locate_evaluation_date(date(2024, 1, 4), days).index
        1
    """
    position = bisect.bisect_left(accrual_dates, evaluation_date)
    if position == len(accrual_dates) or accrual_dates[position] > evaluation_date:
        position -= 1

    if position < 0:
        return EvaluationPosition(index=None, phase=EvaluationPhase.BEFORE_ALL)
    if position == len(accrual_dates) - 1:
        return EvaluationPosition(index=position, phase=EvaluationPhase.AFTER_ALL)
    return EvaluationPosition(index=position, phase=EvaluationPhase.BETWEEN)
