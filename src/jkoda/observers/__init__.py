"""Market data observers: price histories, discount curves, market context."""

from jkoda.observers.market import (
    RISK_FREE_CURVE,
    DiscountCurve,
    FlatDiscountCurve,
    MarketContext,
    PillarDiscountCurve,
    PriceHistory,
    PriceSource,
    StockData,
)

__all__ = [
    "RISK_FREE_CURVE",
    "DiscountCurve",
    "PriceSource",
    "PriceHistory",
    "FlatDiscountCurve",
    "PillarDiscountCurve",
    "StockData",
    "MarketContext",
]
