"""Accumulation and knock-out engine for knock-out accumulators.

The engine turns a sequence of daily spot observations into per-period share
and cash deliveries, stops at the first knock-out and discounts the result
into a present value. It is built once per contract:

1. the accrual schedule is generated on the underlying's calendar,
2. the evaluation date is located in the schedule, fixing the current period,
3. discount factors are taken at each live period's settlement date,
4. historical fixings from the start of the current period up to the
   evaluation date are replayed into a frozen historical state.

After that, ``engine(path)`` prices one simulated path. Path pricing only
reads engine attributes and mutates a private copy of the historical state,
so one engine may be shared by any number of worker threads.

Example:
    >>> engine = AccumulatorEngine.from_market(terms, market)
    >>> steps = engine.num_time_steps()
    >>> pv = engine(paths[0])           # paths[0] has steps + 1 observations
    >>> per_unit = pv / engine.remaining_notional()
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

import numpy as np

from jkoda.core.state import AccumulationState
from jkoda.core.terms import AccumulatorTerms
from jkoda.core.types import SubCategory
from jkoda.exceptions import (
    AlreadyKnockedOutError,
    MarketDataError,
    NegativeIndexError,
    NonPositiveNotionalError,
    PathLengthError,
    StaleSettlementError,
)
from jkoda.logging_config import get_logger
from jkoda.observers.market import RISK_FREE_CURVE, DiscountCurve, MarketContext, PriceSource
from jkoda.utilities.calendars import HolidayCalendar
from jkoda.utilities.schedules import (
    AccrualSchedule,
    EvaluationPosition,
    build_accrual_schedule,
    finalize_terms,
    locate_evaluation_date,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class PathOutcome:
    """Result of pricing one path.

    Attributes:
        present_value: Discounted value of the path's deliveries
        knocked_out: Whether the path knocked out
        knock_out_index: Schedule index of the knock-out day, None if never
        state: Deliveries per period at the end of the path
    """

    present_value: float
    knocked_out: bool
    knock_out_index: int | None
    state: AccumulationState


class AccumulatorEngine:
    """Per-path pricer for one accumulator contract.

    Attributes:
        terms: Finalized terms (period ends moved onto business days)
        original_terms: Terms as supplied
        schedule: Accrual schedule
        position: Evaluation date position in the schedule
        current_period: Period containing the evaluation date (0 before the start)
        discount_factors: ``(num_periods,)`` discount factor per period; 1.0
            for periods already settled
        historical_state: Frozen deliveries replayed from fixings
        knocked_out_on_evaluation_date: True when today's fixing hit the barrier
    """

    def __init__(
        self,
        terms: AccumulatorTerms,
        calendar: HolidayCalendar,
        price_history: PriceSource,
        discount_curve: DiscountCurve,
        evaluation_date: date,
        currency: str,
    ):
        """Build the schedule, locate the evaluation date and replay history.

        Args:
            terms: Contract terms
            calendar: Holiday calendar of the underlying
            price_history: Historical fixings of the underlying
            discount_curve: Curve used to discount period settlements
            evaluation_date: Valuation date of the run
            currency: Currency of the underlying, used to pick the curve

        Raises:
            ScheduleError: Inconsistent period configuration
            StaleSettlementError: A live period settles before the evaluation date
            AlreadyKnockedOutError: A fixing before the evaluation date hit the barrier
            MarketDataError: A required fixing or discount factor is unavailable
        """
        self.original_terms = terms
        self.calendar = calendar
        self.price_history = price_history
        self.discount_curve = discount_curve
        self.evaluation_date = evaluation_date
        self.currency = currency

        self.schedule: AccrualSchedule = build_accrual_schedule(terms, calendar)
        self.terms: AccumulatorTerms = finalize_terms(terms, self.schedule)

        self.position: EvaluationPosition = locate_evaluation_date(
            evaluation_date, self.schedule.accrual_dates
        )
        self.current_period = (
            0 if self.position.index is None else self.schedule.period_of(self.position.index)
        )

        # Hot-loop constants
        self._period_of = self.schedule.period_index_of_date
        self._num_days = self.schedule.num_accrual_days
        self._eval_index = self.position.signed_index
        self._is_note = self.terms.sub_category == SubCategory.NOTE
        self._ko_price = self.terms.ko_price
        self._gearing_strike = self.terms.gearing_strike
        self._gearing_multiplier = self.terms.gearing_multiplier
        self._max_gearing_multiplier = self.terms.max_gearing_multiplier
        self._shares_per_day = self.terms.shares_per_day
        self._shares_per_day_times_strike = self.terms.shares_per_day_times_strike

        self.discount_factors: np.ndarray = self._compute_discount_factors()

        self._period_end_fixings: dict[int, float] = {}
        self.knocked_out_on_evaluation_date = False
        self.historical_state: AccumulationState = self._replay_history().freeze()

        logger.debug(
            f"Initialized accumulator engine for {self.terms.contract_id}: "
            f"{self._num_days} accrual days, evaluation index {self._eval_index} "
            f"({self.position.phase.value}), current period {self.current_period}",
            extra={"contract_id": self.terms.contract_id},
        )

    @classmethod
    def from_market(
        cls,
        terms: AccumulatorTerms,
        market: MarketContext,
        curve_id: str = RISK_FREE_CURVE,
    ) -> AccumulatorEngine:
        """Build an engine with collaborators looked up in a market context.

        Raises:
            MarketDataError: If the stock, its prices, calendar or the curve is missing
        """
        stock = market.get_stock_data(terms.underlying_id, terms.underlying_id_type)
        return cls(
            terms,
            calendar=market.get_calendar(stock.holiday_calendar_id),
            price_history=market.get_prices(terms.underlying_id, terms.underlying_id_type),
            discount_curve=market.get_discount_curve(curve_id),
            evaluation_date=market.evaluation_date,
            currency=stock.currency,
        )

    # ========================================================================
    # Setup
    # ========================================================================

    def _compute_discount_factors(self) -> np.ndarray:
        discount_factors = np.ones(self.terms.num_periods, dtype=np.float64)
        for period in range(self.current_period, self.terms.num_periods):
            settlement = self.schedule.settlement_dates[period]
            if settlement < self.evaluation_date:
                raise StaleSettlementError(
                    "Period settles before the evaluation date",
                    context={
                        "contract_id": self.terms.contract_id,
                        "period": period,
                        "settlement_date": settlement.isoformat(),
                        "evaluation_date": self.evaluation_date.isoformat(),
                        "current_period": self.current_period,
                    },
                )
            discount_factor = self.discount_curve.discount_factor(self.currency, settlement)
            if discount_factor <= 0.0:
                raise MarketDataError(
                    "Discount factor must be positive",
                    context={"currency": self.currency, "date": settlement.isoformat()},
                )
            discount_factors[period] = discount_factor
        return discount_factors

    def _replay_history(self) -> AccumulationState:
        """Replay fixings from the start of the current period to the evaluation date.

        Earlier periods have settled and are left at zero.
        """
        state = AccumulationState.zeros(self.terms.num_periods)
        if self.position.index is None:
            return state

        period = self.current_period
        period_end_index = self.schedule.index_of_period_end[period]
        start = self.schedule.index_of_period_start(period)
        for index in range(start, self.position.index + 1):
            day = self.schedule.accrual_dates[index]
            spot = self.price_history.price_on(day)
            if index == period_end_index:
                self._period_end_fixings[period] = spot
            if self.one_day_accumulation(spot, state, period):
                if day != self.evaluation_date:
                    raise AlreadyKnockedOutError(
                        "Found trade already knocked out",
                        context={
                            "contract_id": self.terms.contract_id,
                            "date": day.isoformat(),
                            "spot": spot,
                            "ko_price": self._ko_price,
                            "underlying": self.terms.underlying_id,
                        },
                    )
                self.knocked_out_on_evaluation_date = True
                logger.info(
                    f"{self.terms.contract_id} knocked out on the evaluation date at spot {spot}",
                    extra={"contract_id": self.terms.contract_id},
                )
        return state

    # ========================================================================
    # Queries exposed to the simulation driver
    # ========================================================================

    def num_time_steps(self) -> int:
        """Number of future accrual days, i.e. path length minus one."""
        return self._num_days - self._eval_index - 1

    def remaining_notional(self) -> float:
        """Undelivered notional from the start of the current period.

        Used to quote prices per unit of notional.

        Raises:
            NonPositiveNotionalError: If the result is zero or negative
        """
        remaining_days = self._num_days - self.schedule.index_of_period_start(self.current_period)
        remaining_notional = (
            remaining_days * self.terms.max_gearing_times_strike * self.terms.shares_per_day
        )
        if remaining_notional <= 0.0:
            raise NonPositiveNotionalError(
                "Remaining notional must be greater than zero",
                context={
                    "remaining_notional": remaining_notional,
                    "remaining_days": remaining_days,
                    "max_gearing_times_strike": self.terms.max_gearing_times_strike,
                },
            )
        return remaining_notional

    # ========================================================================
    # Index translation
    # ========================================================================

    def path_index_from_schedule_index(self, schedule_index: int) -> int:
        """Translate a schedule index into a path index.

        Raises:
            NegativeIndexError: If the schedule index lies before the evaluation position
        """
        if schedule_index < self._eval_index:
            raise NegativeIndexError(
                "Schedule index precedes the evaluation position",
                context={"schedule_index": schedule_index, "evaluation_index": self._eval_index},
            )
        return schedule_index - self._eval_index

    def schedule_index_from_path_index(self, path_index: int) -> int:
        """Translate a path index into a schedule index.

        Raises:
            NegativeIndexError: If the path index maps before the first accrual day
        """
        schedule_index = self._eval_index + path_index
        if path_index < 0 or schedule_index < 0:
            raise NegativeIndexError(
                "Path index does not map to an accrual day",
                context={"path_index": path_index, "evaluation_index": self._eval_index},
            )
        return schedule_index

    # ========================================================================
    # Accumulation
    # ========================================================================

    def gearing_multiplier(self, spot: float) -> float:
        return self._gearing_multiplier if spot < self._gearing_strike else 1.0

    def one_day_accumulation(self, spot: float, state: AccumulationState, period: int) -> bool:
        """Add one accrual day's deliveries to ``period`` of ``state``.

        Assumes no knock-out has happened before this day.

        Args:
            spot: Spot fixing of the day
            state: Working state, amended in place
            period: Period the day belongs to

        Returns:
            True if the day knocks the trade out (spot >= KO price)
        """
        gearing = self._gearing_multiplier if spot < self._gearing_strike else 1.0
        state.shares_delivered[period] += self._shares_per_day * gearing
        if self._is_note:
            # rebate from issuer to holder when gearing is below its maximum
            state.cash_delivered[period] += (
                self._max_gearing_multiplier - gearing
            ) * self._shares_per_day_times_strike
        else:
            # swap: holder pays the strike for every delivered share
            state.cash_delivered[period] -= gearing * self._shares_per_day_times_strike
        return spot >= self._ko_price

    # ========================================================================
    # Path pricing
    # ========================================================================

    def period_end_spot(self, period: int, path: Sequence[float]) -> float:
        """Spot on the last accrual day of ``period``.

        Taken from the historical fixings when the period ended on or before
        the evaluation date, otherwise from the path.
        """
        end_index = self.schedule.index_of_period_end[period]
        if end_index <= self._eval_index:
            return self._period_end_fixings[period]
        return path[self.path_index_from_schedule_index(end_index)]

    def evaluate_path(self, path: Sequence[float]) -> PathOutcome:
        """Price one path and report how it ended.

        Args:
            path: ``num_time_steps() + 1`` spot observations; ``path[0]`` is the
                evaluation date and is covered by the historical replay

        Returns:
            PathOutcome

        Raises:
            PathLengthError: If the path length does not match the schedule
        """
        values = np.asarray(path, dtype=np.float64)
        expected = self.num_time_steps() + 1
        if values.shape != (expected,):
            raise PathLengthError(
                "Path does not match the remaining accrual days",
                context={"expected_length": expected, "path_shape": values.shape},
            )

        state = self.historical_state.copy()
        knocked_out = self.knocked_out_on_evaluation_date
        knock_out_index = self._eval_index if knocked_out else self._num_days

        period_of = self._period_of
        eval_index = self._eval_index
        path_index = 1
        while path_index < expected and not knocked_out:
            schedule_index = eval_index + path_index
            if self.one_day_accumulation(values[path_index], state, period_of[schedule_index]):
                knocked_out = True
                knock_out_index = schedule_index
            path_index += 1

        present_value = self._sum_period_end_contributions(knocked_out, knock_out_index, values, state)
        return PathOutcome(
            present_value=present_value,
            knocked_out=knocked_out,
            knock_out_index=knock_out_index if knocked_out else None,
            state=state,
        )

    def _sum_period_end_contributions(
        self,
        knocked_out: bool,
        knock_out_index: int,
        path: np.ndarray,
        state: AccumulationState,
    ) -> float:
        # Knock-out settlement is assumed to happen at the triggering period's
        # end whatever ko_settlement_at_period_end says.
        present_value = 0.0
        for period in range(self.current_period, self.terms.num_periods):
            present_value += self.discount_factors[period] * (
                state.shares_delivered[period] * self.period_end_spot(period, path)
                + state.cash_delivered[period]
            )

        if knocked_out and self.terms.sub_category == SubCategory.SWAP:
            present_value += (
                (self._num_days - 1 - knock_out_index)
                * self.terms.max_gearing_times_strike
                * self.discount_factors[self._period_of[knock_out_index]]
            )
        return float(present_value)

    def __call__(self, path: Sequence[float]) -> float:
        """Present value of one path."""
        return self.evaluate_path(path).present_value
