"""Market data observers for accumulator pricing.

The engine consumes market data through three narrow interfaces:

- a holiday calendar (see ``jkoda.utilities.calendars``),
- a spot price history: ``price_on(date)`` and ``current_price()``,
- a discount curve: ``discount_factor(currency, date)``.

This module defines the protocols for the last two, simple in-memory
implementations, and MarketContext, which bundles the evaluation date with
registries of stocks, fixings, calendars and curves for a pricing run.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date
from typing import Protocol, runtime_checkable

import numpy as np
from pydantic import BaseModel, Field, field_validator

from jkoda.core.time import parse_date, year_fraction
from jkoda.core.types import DateLike
from jkoda.exceptions import MarketDataError
from jkoda.utilities.calendars import HolidayCalendar, get_calendar

RISK_FREE_CURVE = "risk_free_rate"


@runtime_checkable
class PriceSource(Protocol):
    """Protocol for spot price histories."""

    def price_on(self, day: date) -> float:
        """Historical fixing on ``day``; fails for future or missing dates."""
        ...

    def current_price(self) -> float:
        """Spot price on the evaluation date."""
        ...


@runtime_checkable
class DiscountCurve(Protocol):
    """Protocol for discount curves keyed by currency."""

    def discount_factor(self, currency: str, day: date) -> float:
        """Discount factor in (0, 1] from the evaluation date to ``day``."""
        ...


class PriceHistory:
    """Historical and current prices of one underlying.

    Example:
        >>> history = PriceHistory(date(2024, 1, 5), {"2024-01-04": 101.5}, current_price=102.0)
        >>> history.price_on(date(2024, 1, 4))
        101.5
        >>> history.price_on(date(2024, 1, 5))  # falls back to the current price
        102.0
    """

    def __init__(
        self,
        evaluation_date: DateLike,
        prices: Mapping[DateLike, float] | None = None,
        current_price: float | None = None,
        identifier: str = "",
    ):
        """Initialize the price history.

        Args:
            evaluation_date: Valuation date; later fixings are rejected
            prices: Historical fixings keyed by date or ISO string
            current_price: Spot on the evaluation date
            identifier: Underlying identifier used in error messages
        """
        self.evaluation_date = parse_date(evaluation_date)
        self.identifier = identifier
        self._prices: dict[date, float] = {}
        self._current_price = current_price
        for day, price in (prices or {}).items():
            self.add_price(day, price)

    def add_price(self, day: DateLike, price: float) -> None:
        """Add or replace a fixing.

        Raises:
            MarketDataError: If the price is not positive
        """
        if price <= 0.0:
            raise MarketDataError(
                "Prices must be positive",
                context={"underlying": self.identifier, "date": str(day), "price": price},
            )
        self._prices[parse_date(day)] = float(price)

    def set_current_price(self, price: float) -> None:
        self._current_price = float(price)

    def find_price(self, day: date) -> float | None:
        """Return the fixing for ``day`` or None when absent."""
        price = self._prices.get(day)
        if price is None and day == self.evaluation_date:
            return self._current_price
        return price

    def price_on(self, day: date) -> float:
        """Historical fixing on ``day``.

        Raises:
            MarketDataError: If ``day`` is after the evaluation date or no
                fixing is recorded for it
        """
        if day > self.evaluation_date:
            raise MarketDataError(
                "Requested a fixing after the evaluation date",
                context={
                    "underlying": self.identifier,
                    "date": day.isoformat(),
                    "evaluation_date": self.evaluation_date.isoformat(),
                },
            )
        price = self.find_price(day)
        if price is None:
            raise MarketDataError(
                "Unable to find price for date",
                context={"underlying": self.identifier, "date": day.isoformat()},
            )
        return price

    def current_price(self) -> float:
        """Spot on the evaluation date.

        Raises:
            MarketDataError: If neither a current price nor an evaluation-date
                fixing has been supplied
        """
        if self._current_price is not None:
            return self._current_price
        if self.evaluation_date in self._prices:
            return self._prices[self.evaluation_date]
        raise MarketDataError("Current price has not been set", context={"underlying": self.identifier})

    def __len__(self) -> int:
        return len(self._prices)


class FlatDiscountCurve:
    """Continuously compounded flat-rate curves, one rate per currency (ACT/365F).

    Example:
        >>> curve = FlatDiscountCurve(date(2024, 1, 1), {"USD": 0.05})
        >>> round(curve.discount_factor("USD", date(2025, 1, 1)), 6)
        0.951099
    """

    def __init__(self, reference_date: DateLike, rates: Mapping[str, float]):
        self.reference_date = parse_date(reference_date)
        self.rates = {currency.upper(): float(rate) for currency, rate in rates.items()}

    def discount_factor(self, currency: str, day: date) -> float:
        rate = self.rates.get(currency.upper())
        if rate is None:
            raise MarketDataError(
                "No rate for currency",
                context={"currency": currency, "available": sorted(self.rates)},
            )
        if day < self.reference_date:
            raise MarketDataError(
                "Cannot discount a date before the curve reference date",
                context={"date": day.isoformat(), "reference_date": self.reference_date.isoformat()},
            )
        return math.exp(-rate * year_fraction(self.reference_date, day))


class PillarDiscountCurve:
    """Discount curves built from (date, discount factor) pillars per currency.

    Log discount factors are interpolated linearly in time; beyond the last
    pillar the last zero rate is held flat. The reference date has a
    discount factor of 1.

    Example:
        >>> curve = PillarDiscountCurve(
        ...     date(2024, 1, 1), {"HKD": {"2024-07-01": 0.98, "2025-01-01": 0.96}}
        ... )
        >>> curve.discount_factor("HKD", date(2024, 7, 1))
        0.98
    """

    def __init__(
        self, reference_date: DateLike, pillars: Mapping[str, Mapping[DateLike, float]]
    ):
        self.reference_date = parse_date(reference_date)
        self._curves: dict[str, tuple[np.ndarray, np.ndarray]] = {}
        for currency, points in pillars.items():
            self._curves[currency.upper()] = self._build(currency, points)

    def _build(self, currency: str, points: Mapping[DateLike, float]) -> tuple[np.ndarray, np.ndarray]:
        parsed = sorted((parse_date(d), float(df)) for d, df in points.items())
        if not parsed:
            raise MarketDataError("Discount curve has no pillars", context={"currency": currency})
        for day, df in parsed:
            if not 0.0 < df <= 1.0:
                raise MarketDataError(
                    "Discount factors must lie in (0, 1]",
                    context={"currency": currency, "date": day.isoformat(), "discount_factor": df},
                )
            if day <= self.reference_date:
                raise MarketDataError(
                    "Pillars must be after the reference date",
                    context={"currency": currency, "date": day.isoformat()},
                )
        times = np.array([0.0] + [year_fraction(self.reference_date, d) for d, _ in parsed])
        log_dfs = np.array([0.0] + [math.log(df) for _, df in parsed])
        return times, log_dfs

    def discount_factor(self, currency: str, day: date) -> float:
        curve = self._curves.get(currency.upper())
        if curve is None:
            raise MarketDataError(
                "No discount curve for currency",
                context={"currency": currency, "available": sorted(self._curves)},
            )
        if day < self.reference_date:
            raise MarketDataError(
                "Cannot discount a date before the curve reference date",
                context={"date": day.isoformat(), "reference_date": self.reference_date.isoformat()},
            )
        times, log_dfs = curve
        t = year_fraction(self.reference_date, day)
        if t <= times[-1]:
            return float(np.exp(np.interp(t, times, log_dfs)))
        # flat zero rate beyond the last pillar
        return float(np.exp(log_dfs[-1] * t / times[-1]))


class StockData(BaseModel):
    """Static data of an underlying stock.

    Example:
        >>> StockData(stock_id="0005.HK", currency="HKD", holiday_calendar_id="XHKG")
        StockData(stock_id='0005.HK', ...)
    """

    stock_id: str = Field(..., description="Stock identifier")
    id_type: str = Field(default="", description="Identifier scheme")
    name: str = Field(default="", description="Display name")
    currency: str = Field(..., description="Trading currency ISO code")
    holiday_calendar_id: str = Field(default="WEEKENDS_ONLY", description="Exchange calendar")
    flat_vol: float | None = Field(None, description="Flat volatility for path generation")
    dividend_yield: float = Field(default=0.0, description="Continuous dividend yield")
    repo_rate: float = Field(default=0.0, description="Repo rate")

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Validate currency code is 3 uppercase letters."""
        if len(v) != 3 or not v.isupper():
            raise ValueError(f"Currency code must be 3 uppercase characters, got '{v}'")
        return v


class MarketContext:
    """Evaluation date plus the market data registries used in one pricing run.

    Stocks and price histories are keyed by ``(stock_id, id_type)``,
    calendars by identifier and discount curves by curve name.

    Example:
        >>> market = MarketContext("2024-01-02")
        >>> market.add_stock(StockData(stock_id="0005.HK", currency="HKD"))
        >>> market.add_discount_curve(FlatDiscountCurve("2024-01-02", {"HKD": 0.03}))
    """

    def __init__(self, evaluation_date: DateLike):
        self.evaluation_date = parse_date(evaluation_date)
        self._stocks: dict[tuple[str, str], StockData] = {}
        self._prices: dict[tuple[str, str], PriceSource] = {}
        self._calendars: dict[str, HolidayCalendar] = {}
        self._curves: dict[str, DiscountCurve] = {}

    def add_stock(self, stock: StockData) -> None:
        self._stocks[(stock.stock_id, stock.id_type)] = stock

    def add_prices(self, stock_id: str, prices: PriceSource, id_type: str = "") -> None:
        self._prices[(stock_id, id_type)] = prices

    def add_calendar(self, calendar_id: str, calendar: HolidayCalendar) -> None:
        self._calendars[calendar_id] = calendar

    def add_discount_curve(self, curve: DiscountCurve, curve_id: str = RISK_FREE_CURVE) -> None:
        self._curves[curve_id] = curve

    def get_stock_data(self, stock_id: str, id_type: str = "") -> StockData:
        try:
            return self._stocks[(stock_id, id_type)]
        except KeyError:
            raise MarketDataError(
                "Stock data not found", context={"stock_id": stock_id, "id_type": id_type}
            ) from None

    def get_prices(self, stock_id: str, id_type: str = "") -> PriceSource:
        try:
            return self._prices[(stock_id, id_type)]
        except KeyError:
            raise MarketDataError(
                "Price history not found", context={"stock_id": stock_id, "id_type": id_type}
            ) from None

    def get_calendar(self, calendar_id: str) -> HolidayCalendar:
        """Registered calendar, falling back to the built-in calendars by name."""
        calendar = self._calendars.get(calendar_id)
        if calendar is not None:
            return calendar
        try:
            return get_calendar(calendar_id)
        except ValueError:
            raise MarketDataError(
                "Holiday calendar not found", context={"calendar_id": calendar_id}
            ) from None

    def get_discount_curve(self, curve_id: str = RISK_FREE_CURVE) -> DiscountCurve:
        try:
            return self._curves[curve_id]
        except KeyError:
            raise MarketDataError("Discount curve not found", context={"curve_id": curve_id}) from None
