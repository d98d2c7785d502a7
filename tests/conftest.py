"""Pytest configuration and shared fixtures for jkoda tests.

Most engine tests use a small two-period contract on a weekend-only calendar:

- accrual days Mon 8-Jan-2024 .. Fri 19-Jan-2024 (10 business days)
- period 0 ends Fri 12-Jan (index 4), period 1 ends Fri 19-Jan (index 9)
- settlement two business days after each period end
"""

from collections.abc import Callable, Mapping
from datetime import date
from typing import Any

import jax
import pytest

from jkoda.core.terms import AccumulatorTerms
from jkoda.core.types import SubCategory
from jkoda.engine.accumulator import AccumulatorEngine
from jkoda.logging_config import disable_logging
from jkoda.observers.market import FlatDiscountCurve, MarketContext, PriceHistory, StockData
from jkoda.utilities.calendars import WeekendCalendar

FIRST_ACCRUAL_DAY = date(2024, 1, 8)
PERIOD_ENDS = (date(2024, 1, 12), date(2024, 1, 19))
UNDERLYING = "0005.HK"
CURRENCY = "HKD"


@pytest.fixture(autouse=True, scope="session")
def quiet_logging() -> None:
    """Keep test output free of engine warnings."""
    disable_logging()


@pytest.fixture(autouse=True)
def reset_jax_caches() -> None:
    """Clear JAX compilation caches after each test."""
    yield
    jax.clear_caches()


@pytest.fixture
def weekend_calendar() -> WeekendCalendar:
    return WeekendCalendar()


@pytest.fixture
def tolerance() -> dict[str, float]:
    """Numerical tolerances for float comparisons.

    Returns:
        Tolerances for float64 engine results and float32 kernel results
    """
    return {
        "rtol": 1e-10,
        "atol": 1e-8,
        "f32_rtol": 1e-4,
        "f32_atol": 1e-2,
    }


@pytest.fixture
def terms_kwargs() -> dict[str, Any]:
    """Keyword arguments of the standard swap contract."""
    return {
        "contract_id": "KODA-001",
        "underlying_id": UNDERLYING,
        "first_accumulation_date": FIRST_ACCRUAL_DAY,
        "strike_price": 100.0,
        "ko_price": 150.0,
        "shares_per_day": 10.0,
        "sub_category": SubCategory.SWAP,
        "period_end_dates": PERIOD_ENDS,
        "settlement_lag": 2,
    }


@pytest.fixture
def swap_terms(terms_kwargs: dict[str, Any]) -> AccumulatorTerms:
    """Two-period swap: strike 100, barrier 150, 10 shares a day, no gearing."""
    return AccumulatorTerms(**terms_kwargs)


@pytest.fixture
def note_terms(terms_kwargs: dict[str, Any]) -> AccumulatorTerms:
    """Two-period note geared 2x below 90."""
    return AccumulatorTerms(
        **{
            **terms_kwargs,
            "contract_id": "KODA-002",
            "sub_category": SubCategory.NOTE,
            "gearing_strike": 90.0,
            "gearing_multiplier": 2.0,
        }
    )


@pytest.fixture
def engine_factory(
    weekend_calendar: WeekendCalendar,
) -> Callable[..., AccumulatorEngine]:
    """Build engines for a given evaluation date and fixing history."""

    def factory(
        terms: AccumulatorTerms,
        evaluation_date: date,
        prices: Mapping[date, float] | None = None,
        rate: float = 0.0,
    ) -> AccumulatorEngine:
        return AccumulatorEngine(
            terms,
            calendar=weekend_calendar,
            price_history=PriceHistory(evaluation_date, prices, identifier=terms.underlying_id),
            discount_curve=FlatDiscountCurve(evaluation_date, {CURRENCY: rate}),
            evaluation_date=evaluation_date,
            currency=CURRENCY,
        )

    return factory


@pytest.fixture
def market_factory() -> Callable[..., MarketContext]:
    """Build a market context holding the standard underlying."""

    def factory(
        evaluation_date: date,
        prices: Mapping[date, float] | None = None,
        current_price: float = 120.0,
        rate: float = 0.02,
    ) -> MarketContext:
        market = MarketContext(evaluation_date)
        market.add_stock(StockData(stock_id=UNDERLYING, currency=CURRENCY, flat_vol=0.3))
        market.add_prices(
            UNDERLYING,
            PriceHistory(evaluation_date, prices, current_price=current_price, identifier=UNDERLYING),
        )
        market.add_discount_curve(FlatDiscountCurve(evaluation_date, {CURRENCY: rate}))
        return market

    return factory


# Configure pytest markers
def pytest_configure(config: Any) -> None:
    """Configure custom pytest markers.

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")
