"""End-to-end pricing runs: term sheet to result table."""

from datetime import date

import numpy as np
import pandas as pd
import pytest

from jkoda.config import EngineConfig
from jkoda.core.terms import AccumulatorTerms
from jkoda.engine.accumulator import AccumulatorEngine
from jkoda.engine.results import ResultCategory
from jkoda.engine.simulator import AccumulatorCalculator, evaluate_portfolio
from jkoda.exceptions import AlreadyKnockedOutError
from jkoda.observers.market import (
    MarketContext,
    PillarDiscountCurve,
    PriceHistory,
    StockData,
)
from jkoda.utilities.calendars import CustomCalendar

EVALUATION_DATE = date(2024, 2, 7)

pytestmark = pytest.mark.integration


class GeometricBrownianPaths:
    """Lognormal paths with antithetic mirroring."""

    def __init__(self, volatility: float):
        self.volatility = volatility

    def __call__(self, spot, times, num_paths, *, seed, antithetic):
        rng = np.random.default_rng(seed)
        dt = np.diff(times)
        half = num_paths // 2 if antithetic else num_paths
        z = rng.standard_normal((half, len(dt)))
        if antithetic:
            z = np.concatenate([z, -z])
        increments = self.volatility * np.sqrt(dt) * z - 0.5 * self.volatility**2 * dt
        log_paths = np.concatenate([np.zeros((num_paths, 1)), np.cumsum(increments, axis=1)], axis=1)
        return spot * np.exp(log_paths)


def term_sheet(contract_id: str, **overrides) -> dict:
    sheet = {
        "contract_id": contract_id,
        "underlying_id": "0005.HK",
        "first_accumulation_date": "2024-02-01",
        "strike_price": 60.0,
        "ko_price": 70.0,
        "shares_per_day": 1000,
        "note_or_swap": "swap",
        "accum_or_decum": "accum",
        "gearing_price": 60.0,
        "gearing_multiplier": 2.0,
        "settlement_lag": 2,
        # 10-Feb-2024 is a Saturday
        "period_end_dates": ["2024-02-29", "2024-03-28", "2024-02-10"],
    }
    sheet.update(overrides)
    return sheet


@pytest.fixture
def market() -> MarketContext:
    market = MarketContext(EVALUATION_DATE)
    market.add_stock(
        StockData(stock_id="0005.HK", currency="HKD", holiday_calendar_id="XHKG", flat_vol=0.25)
    )
    # Lunar new year
    market.add_calendar("XHKG", CustomCalendar(["2024-02-12", "2024-02-13"], name="XHKG"))
    fixings = {
        "2024-02-01": 63.2,
        "2024-02-02": 64.0,
        "2024-02-05": 63.1,
        "2024-02-06": 62.4,
    }
    market.add_prices("0005.HK", PriceHistory(EVALUATION_DATE, fixings, current_price=62.9))
    market.add_discount_curve(
        PillarDiscountCurve(EVALUATION_DATE, {"HKD": {"2024-03-07": 0.9965, "2024-06-07": 0.9880}})
    )
    return market


class TestSingleContract:
    def test_engine_setup_from_market(self, market):
        terms = AccumulatorTerms.from_config(term_sheet("KODA-100"))
        engine = AccumulatorEngine.from_market(terms, market)

        # Saturday 10-Feb rolls forward past the 12-13 Feb holidays to 14-Feb in one step
        assert engine.terms.period_end_dates[0] == date(2024, 2, 14)
        assert engine.current_period == 0
        # 1, 2, 5, 6, 7 February replayed
        assert engine.historical_state.shares_delivered[0] == pytest.approx(5 * 1000.0)
        assert engine.num_time_steps() == engine.schedule.num_accrual_days - 5

    def test_python_and_array_kernels_agree(self, market):
        terms = AccumulatorTerms.from_config(term_sheet("KODA-101"))
        generator = GeometricBrownianPaths(0.25)

        python_results = AccumulatorCalculator(
            terms, market, generator, EngineConfig(num_samples=500, seed=3)
        ).calculate()
        array_results = AccumulatorCalculator(
            terms, market, generator, EngineConfig(num_samples=500, seed=3, use_array_kernel=True)
        ).calculate()

        per_unit = python_results.get_value(ResultCategory.PRICE_PER_UNIT_NOTIONAL)
        assert array_results.get_value(ResultCategory.PRICE_PER_UNIT_NOTIONAL) == pytest.approx(
            per_unit, abs=1e-4
        )
        assert -1.0 < per_unit < 1.0
        assert python_results.get_value(ResultCategory.ERROR_ESTIMATE) > 0.0

    def test_more_samples_shrink_the_error(self, market):
        terms = AccumulatorTerms.from_config(term_sheet("KODA-102"))
        generator = GeometricBrownianPaths(0.25)

        small = AccumulatorCalculator(terms, market, generator, EngineConfig(num_samples=200)).calculate()
        large = AccumulatorCalculator(terms, market, generator, EngineConfig(num_samples=3200)).calculate()

        assert large.get_value(ResultCategory.ERROR_ESTIMATE) < small.get_value(
            ResultCategory.ERROR_ESTIMATE
        )


class TestPortfolio:
    def test_book_with_a_knocked_out_trade(self, market):
        book = [
            AccumulatorTerms.from_config(term_sheet("KODA-200")),
            AccumulatorTerms.from_config(term_sheet("KODA-201", note_or_swap="note")),
            # the 2-Feb fixing of 64.0 is through this barrier
            AccumulatorTerms.from_config(term_sheet("KODA-202", ko_price=63.5)),
        ]

        portfolio = evaluate_portfolio(
            book, market, GeometricBrownianPaths(0.25), EngineConfig(num_samples=200)
        )

        assert set(portfolio.failures) == {"KODA-202"}
        assert isinstance(portfolio.failures["KODA-202"], AlreadyKnockedOutError)

        df = portfolio.results.to_dataframe()
        assert isinstance(df, pd.DataFrame)
        assert set(df["contract_id"]) == {"KODA-200", "KODA-201"}
        assert len(df) == 8
        cash = df[df["category"] == ResultCategory.CASH_PRICE.value]
        assert set(cash["currency"]) == {"HKD"}
