#!/usr/bin/env python3
"""
Accumulator Pricing Example: Knock-Out Accumulators on a Hong Kong Stock
========================================================================

This example prices a small book of knock-out accumulators on 0005.HK
mid-way through their first accumulation period.

Steps:
------
1. **Market context**: exchange calendar, fixing history, spot and a
   pillar discount curve, all keyed by identifier.

2. **Term sheets**: contracts are read from flat term-sheet mappings as
   they would come out of a booking system.

3. **Path generation**: jkoda does not ship a stochastic model. The
   geometric Brownian motion below is supplied by the caller and honours
   the generator contract: ``times[0] == 0`` and, with antithetic sampling,
   row ``n + i`` mirrors row ``i``.

4. **Pricing**: the Python engine walks every path day by day; the JAX
   kernel prices the same paths with ``jax.vmap`` over ``lax.scan``.

Example: three accumulators valued as of 2024-02-07
"""

import time

import numpy as np

import jkoda
from jkoda.config import EngineConfig
from jkoda.core.terms import AccumulatorTerms
from jkoda.engine import AccumulatorCalculator, ResultCategory, evaluate_portfolio
from jkoda.logging_config import configure_logging, get_logger
from jkoda.observers.market import MarketContext, PillarDiscountCurve, PriceHistory, StockData
from jkoda.utilities.calendars import CustomCalendar

configure_logging(level="INFO")
logger = get_logger(__name__)

EVALUATION_DATE = "2024-02-07"


# ---------------------------------------------------------------------------
# 1. Path generator
# ---------------------------------------------------------------------------


class GeometricBrownianMotion:
    """Driftless lognormal spot paths with a flat volatility."""

    def __init__(self, volatility: float, rate: float = 0.0, dividend_yield: float = 0.0):
        self.volatility = volatility
        self.drift = rate - dividend_yield

    def __call__(self, spot, times, num_paths, *, seed, antithetic):
        rng = np.random.default_rng(seed)
        dt = np.diff(times)
        num_draws = num_paths // 2 if antithetic else num_paths
        z = rng.standard_normal((num_draws, dt.shape[0]))
        if antithetic:
            z = np.concatenate([z, -z], axis=0)
        sigma = self.volatility
        increments = (self.drift - 0.5 * sigma * sigma) * dt + sigma * np.sqrt(dt) * z
        log_paths = np.cumsum(increments, axis=1)
        log_paths = np.concatenate([np.zeros((num_paths, 1)), log_paths], axis=1)
        return spot * np.exp(log_paths)


# ---------------------------------------------------------------------------
# 2. Market data
# ---------------------------------------------------------------------------


def build_market() -> MarketContext:
    market = MarketContext(EVALUATION_DATE)
    market.add_stock(
        StockData(
            stock_id="0005.HK",
            name="HSBC Holdings",
            currency="HKD",
            holiday_calendar_id="XHKG",
            flat_vol=0.22,
        )
    )
    market.add_calendar(
        "XHKG",
        CustomCalendar(["2024-02-12", "2024-02-13", "2024-03-29", "2024-04-01"], name="XHKG"),
    )
    market.add_prices(
        "0005.HK",
        PriceHistory(
            EVALUATION_DATE,
            {"2024-02-01": 61.85, "2024-02-02": 62.10, "2024-02-05": 61.40, "2024-02-06": 61.95},
            current_price=62.30,
            identifier="0005.HK",
        ),
    )
    market.add_discount_curve(
        PillarDiscountCurve(
            EVALUATION_DATE,
            {"HKD": {"2024-03-07": 0.99650, "2024-05-07": 0.98920, "2024-08-07": 0.97830}},
        )
    )
    return market


TERM_SHEETS = [
    {
        "contract_id": "KODA-0005-01",
        "underlying_id": "0005.HK",
        "first_accumulation_date": "2024-02-01",
        "strike_price": 57.0,
        "ko_price": 66.0,
        "shares_per_day": 2000,
        "note_or_swap": "swap",
        "gearing_multiplier": 2.0,
        "settlement_lag": 2,
        "period_end_dates": ["2024-02-29", "2024-03-28", "2024-04-30"],
        "position_size": 1.0,
    },
    {
        "contract_id": "KODA-0005-02",
        "underlying_id": "0005.HK",
        "first_accumulation_date": "2024-02-01",
        "strike_price": 58.5,
        "ko_price": 64.0,
        "shares_per_day": 1000,
        "note_or_swap": "note",
        "settlement_lag": 2,
        "period_end_dates": ["2024-02-29", "2024-03-28"],
        "position_size": -2.0,
    },
    {
        # Already knocked out on 2-Feb; reported as a failure
        "contract_id": "KODA-0005-03",
        "underlying_id": "0005.HK",
        "first_accumulation_date": "2024-02-01",
        "strike_price": 56.0,
        "ko_price": 62.0,
        "shares_per_day": 1500,
        "note_or_swap": "swap",
        "settlement_lag": 2,
        "period_end_dates": ["2024-02-29", "2024-03-28"],
    },
]


# ---------------------------------------------------------------------------
# 3. Pricing
# ---------------------------------------------------------------------------


def price_single_contract(market: MarketContext, generator: GeometricBrownianMotion) -> None:
    print("=" * 80)
    print("Single contract: Python engine vs JAX kernel")
    print("=" * 80)

    terms = AccumulatorTerms.from_config(TERM_SHEETS[0])
    for use_array_kernel in (False, True):
        config = EngineConfig(num_samples=5000, seed=7, use_array_kernel=use_array_kernel)
        start = time.perf_counter()
        results = AccumulatorCalculator(terms, market, generator, config).calculate()
        elapsed = time.perf_counter() - start

        label = "JAX kernel" if use_array_kernel else "Python engine"
        price = results.get_value(ResultCategory.PRICE_PER_UNIT_NOTIONAL)
        error = results.get_value(ResultCategory.ERROR_ESTIMATE)
        cash = results.get_value(ResultCategory.CASH_PRICE)
        print(
            f"{label:<15} price/notional {price:>10.6f}  +/- {error:.6f}  "
            f"cash HKD {cash:>14,.2f}  ({elapsed:.2f}s)"
        )


def price_book(market: MarketContext, generator: GeometricBrownianMotion) -> None:
    print("\n" + "=" * 80)
    print("Book valuation")
    print("=" * 80)

    book = [AccumulatorTerms.from_config(sheet) for sheet in TERM_SHEETS]
    portfolio = evaluate_portfolio(
        book, market, generator, EngineConfig(num_samples=5000, use_array_kernel=True)
    )

    df = portfolio.results.to_dataframe()
    table = df.pivot(index="contract_id", columns="category", values="value")
    print(table.to_string(float_format=lambda v: f"{v:,.4f}"))
    print(f"\nTotal position worth: HKD {portfolio.total_position_worth():,.2f}")
    for contract_id, error in portfolio.failures.items():
        print(f"Not priced: {contract_id}: {error}")


def main() -> None:
    logger.info(f"jkoda version: {jkoda.__version__}")
    market = build_market()
    generator = GeometricBrownianMotion(
        volatility=market.get_stock_data("0005.HK").flat_vol, rate=0.025
    )
    price_single_contract(market, generator)
    price_book(market, generator)


if __name__ == "__main__":
    main()
