"""Contract terms for knock-out accumulators.

This module provides AccumulatorTerms, the immutable description of one
accumulator instrument, using Pydantic for validation.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, timedelta
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator

from jkoda.core.time import parse_date
from jkoda.core.types import ContractCategory, DateLike, SubCategory
from jkoda.exceptions import UnsupportedSubCategoryError

# Term-sheet key -> field name, for keys whose names differ.
_CONFIG_KEY_MAP = {
    "gearing_price": "gearing_strike",
    "last_guaranteed_accum_date": "last_guaranteed_accumulation_date",
    "has_guaranteed_accumulation": "has_guaranteed_accumulation",
    "ko_settlement_at_period_end": "ko_settlement_at_period_end",
}


class AccumulatorTerms(BaseModel):
    """Terms and conditions of one knock-out accumulator.

    Period end dates are sorted and de-duplicated on construction. The
    derived constants ``max_gearing_times_strike`` and
    ``shares_per_day_times_strike`` are computed once here so the per-day
    accumulation loop does not repeat the multiplications.

    Example:
        >>> terms = AccumulatorTerms(
        ...     contract_id="KODA-001",
        ...     underlying_id="0005.HK",
        ...     first_accumulation_date="2024-01-02",
        ...     strike_price=100.0,
        ...     ko_price=150.0,
        ...     shares_per_day=10.0,
        ...     sub_category=SubCategory.SWAP,
        ...     period_end_dates=["2024-01-31", "2024-02-29"],
        ... )
        >>> terms.max_gearing_times_strike
        100.0
    """

    contract_id: str = Field(..., description="Unique contract identifier")
    underlying_id: str = Field(..., description="Identifier of the underlying stock")
    underlying_id_type: str = Field(default="", description="Identifier scheme, e.g. RIC")

    first_accumulation_date: date = Field(..., description="First accrual day")
    strike_price: float = Field(..., description="Price paid per delivered share")
    ko_price: float = Field(..., description="Knock-out barrier; KO when spot >= barrier")
    shares_per_day: float = Field(..., description="Shares delivered per accrual day")
    ref_spot: float | None = Field(None, description="Reference spot at trade inception")
    position_size: float = Field(default=1.0, description="Signed number of contracts held")

    sub_category: SubCategory = Field(default=SubCategory.SWAP, description="Note or swap form")
    period_end_dates: tuple[date, ...] = Field(..., description="Period end dates, ascending")
    settlement_lag: int = Field(default=0, description="Business days from period end to settlement")

    gearing_strike: float | None = Field(None, description="Spot below which gearing applies")
    gearing_multiplier: float = Field(default=1.0, description="Gearing multiplier, 1 = none")

    ko_settlement_at_period_end: bool = Field(
        default=True, description="Whether knock-out settles at the period end"
    )
    issue_date: date | None = Field(None, description="Trade issue date")
    first_ko_date: date | None = Field(None, description="First day the barrier is live")
    has_guaranteed_accumulation: bool = Field(default=False)
    last_guaranteed_accumulation_date: date | None = Field(None)

    model_config = {"frozen": True}

    _max_gearing_multiplier: float = PrivateAttr(default=1.0)
    _max_gearing_times_strike: float = PrivateAttr(default=0.0)
    _shares_per_day_times_strike: float = PrivateAttr(default=0.0)

    @model_validator(mode="before")
    @classmethod
    def fill_defaults(cls, data: Any) -> Any:
        """Fill the optional dates and the gearing strike from the mandatory terms."""
        if not isinstance(data, Mapping):
            return data
        data = dict(data)

        if data.get("gearing_strike") is None and data.get("strike_price") is not None:
            data["gearing_strike"] = data["strike_price"]

        first = data.get("first_accumulation_date")
        if first is not None:
            first = parse_date(first)
            issue = parse_date(data["issue_date"]) if data.get("issue_date") else first
            data["issue_date"] = issue
            if data.get("last_guaranteed_accumulation_date") is None:
                data["last_guaranteed_accumulation_date"] = first - timedelta(days=1)
            if data.get("first_ko_date") is None:
                data["first_ko_date"] = min(issue + timedelta(days=1), first)
        return data

    @field_validator("strike_price", "ko_price", "shares_per_day")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Strike, barrier and daily share count must be strictly positive."""
        if v <= 0.0:
            raise ValueError(f"Value must be positive, got {v}")
        return v

    @field_validator("gearing_multiplier")
    @classmethod
    def validate_gearing_multiplier(cls, v: float) -> float:
        """Gearing multiplier must be at least 1."""
        if v < 1.0:
            raise ValueError(f"Gearing multiplier must be >= 1, got {v}")
        return v

    @field_validator("settlement_lag")
    @classmethod
    def validate_settlement_lag(cls, v: int) -> int:
        """Settlement lag cannot be negative."""
        if v < 0:
            raise ValueError(f"Settlement lag must be >= 0, got {v}")
        return v

    @field_validator("period_end_dates", mode="after")
    @classmethod
    def sort_period_end_dates(cls, v: tuple[date, ...]) -> tuple[date, ...]:
        """Sort period end dates ascending and drop duplicates."""
        if not v:
            raise ValueError("At least one period end date is required")
        return tuple(sorted(set(v)))

    @model_validator(mode="after")
    def reject_decumulators(self) -> AccumulatorTerms:
        """Decumulators are not supported."""
        if self.sub_category == SubCategory.DECUMULATOR_SWAP:
            raise UnsupportedSubCategoryError(
                "Decumulator contracts are not supported",
                context={"contract_id": self.contract_id, "sub_category": self.sub_category.value},
            )
        return self

    def model_post_init(self, __context: Any) -> None:
        """Compute the constants used by the per-day accumulation rule."""
        self._max_gearing_multiplier = max(1.0, self.gearing_multiplier)
        self._max_gearing_times_strike = self._max_gearing_multiplier * self.strike_price
        self._shares_per_day_times_strike = self.shares_per_day * self.strike_price

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def category(self) -> ContractCategory:
        return ContractCategory.ACCUMULATOR

    @property
    def num_periods(self) -> int:
        return len(self.period_end_dates)

    @property
    def final_period_end(self) -> date:
        return self.period_end_dates[-1]

    @property
    def has_gearing(self) -> bool:
        return (self.gearing_strike or 0.0) > 0.0 and self.gearing_multiplier != 1.0

    @property
    def max_gearing_multiplier(self) -> float:
        return self._max_gearing_multiplier

    @property
    def max_gearing_times_strike(self) -> float:
        return self._max_gearing_times_strike

    @property
    def shares_per_day_times_strike(self) -> float:
        return self._shares_per_day_times_strike

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def with_period_end_dates(self, period_end_dates: Sequence[DateLike]) -> AccumulatorTerms:
        """Return a copy of these terms with new period end dates.

        Used to produce the finalized contract view once the accrual schedule
        has moved period ends off non-business days. The original terms are
        left untouched.
        """
        data = self.model_dump()
        data["period_end_dates"] = tuple(parse_date(d) for d in period_end_dates)
        return type(self).model_validate(data)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> AccumulatorTerms:
        """Build terms from a flat term-sheet mapping.

        Accepts the term-sheet key names (``note_or_swap``, ``accum_or_decum``,
        ``gearing_price``, ``last_guaranteed_accum_date``); dates may be ISO
        strings.

        Example:
            >>> terms = AccumulatorTerms.from_config({
            ...     "contract_id": "KODA-002",
            ...     "underlying_id": "0700.HK",
            ...     "first_accumulation_date": "2024-01-02",
            ...     "strike_price": 300.0,
            ...     "ko_price": 360.0,
            ...     "shares_per_day": 100,
            ...     "note_or_swap": "note",
            ...     "period_end_dates": ["2024-01-31", "2024-02-29"],
            ... })
            >>> terms.sub_category
            <SubCategory.NOTE: 'note'>
        """
        data: dict[str, Any] = {}
        note_or_swap = "swap"
        accum_or_decum = "accum"
        for key, value in config.items():
            if key == "note_or_swap":
                note_or_swap = str(value)
            elif key == "accum_or_decum":
                accum_or_decum = str(value)
            else:
                data[_CONFIG_KEY_MAP.get(key, key)] = value

        data["sub_category"] = SubCategory.from_flags(note_or_swap, accum_or_decum)
        if "period_end_dates" in data:
            data["period_end_dates"] = tuple(parse_date(d) for d in data["period_end_dates"])
        return cls.model_validate(data)
