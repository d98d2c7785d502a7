"""Core types, dates, contract terms and accumulation state."""

from jkoda.core.state import AccumulationState
from jkoda.core.terms import AccumulatorTerms
from jkoda.core.time import format_date, iterate_days, parse_date, year_fraction
from jkoda.core.types import (
    Amount,
    BusinessDayConvention,
    ContractCategory,
    DateLike,
    EvaluationPhase,
    Price,
    Shares,
    SubCategory,
)

__all__ = [
    # Type aliases
    "Amount",
    "Price",
    "Shares",
    "DateLike",
    # Enumerations
    "SubCategory",
    "BusinessDayConvention",
    "ContractCategory",
    "EvaluationPhase",
    # Dates
    "parse_date",
    "iterate_days",
    "year_fraction",
    "format_date",
    # Contract terms and state
    "AccumulatorTerms",
    "AccumulationState",
]
