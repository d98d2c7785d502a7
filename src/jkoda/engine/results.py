"""Calculator results.

A calculator returns a ResultSet: a list of Results, each a categorized value
(cash price, price per unit notional, ...) tagged with string attributes such
as the contract id or currency.

Example:
    >>> results = ResultSet()
    >>> results.add(Result(ResultCategory.CASH_PRICE, 1250.0, {ResultAttribute.CURRENCY: "HKD"}))
    >>> results.get_value(ResultCategory.CASH_PRICE)
    1250.0
    >>> df = results.to_dataframe()
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import pandas as pd


class ResultCategory(str, Enum):
    """What a result value measures."""

    PRICE_PER_UNIT_NOTIONAL = "price_per_unit_notional"
    CASH_PRICE = "cash_price"  # price per unit notional * notional
    POSITION_WORTH = "position_worth"  # cash price * position size, negative when short
    ERROR_ESTIMATE = "error_estimate"  # Monte Carlo standard error per unit notional

    @classmethod
    def from_string(cls, value: str) -> ResultCategory:
        """Parse a category name.

        Raises:
            ValueError: If the name is not a known category
        """
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Unrecognized result category: {value}") from None


class ResultAttribute(str, Enum):
    """Attributes that can tag a result."""

    CONTRACT_CATEGORY = "contract_category"
    CONTRACT_ID = "contract_id"
    CURRENCY = "currency"
    EVAL_DATE = "eval_date"
    UNDERLYING = "underlying"


@dataclass
class Result:
    """One categorized value with its attributes."""

    category: ResultCategory
    value: float
    attributes: dict[ResultAttribute, str] = field(default_factory=dict)

    def set_attribute(
        self, attribute: ResultAttribute, value: str, raise_if_present: bool = False
    ) -> None:
        """Set an attribute, optionally refusing to overwrite.

        Raises:
            ValueError: If ``raise_if_present`` and the attribute is already set
        """
        if raise_if_present and attribute in self.attributes:
            raise ValueError(
                f"Attribute {attribute.value} already set to {self.attributes[attribute]!r}, "
                f"refusing to overwrite with {value!r}"
            )
        self.attributes[attribute] = value

    def find_attribute(self, attribute: ResultAttribute) -> str | None:
        return self.attributes.get(attribute)

    def to_dict(self) -> dict[str, Any]:
        record: dict[str, Any] = {"category": self.category.value, "value": float(self.value)}
        for attribute, value in self.attributes.items():
            record[attribute.value] = value
        return record


class ResultSet:
    """Ordered collection of results produced by calculators."""

    def __init__(self, results: list[Result] | None = None):
        self._results: list[Result] = list(results or [])

    def add(self, result: Result) -> None:
        self._results.append(result)

    def extend(self, other: ResultSet) -> None:
        self._results.extend(other)

    def clear(self) -> None:
        self._results.clear()

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[Result]:
        return iter(self._results)

    def __getitem__(self, index: int) -> Result:
        return self._results[index]

    def get_value(self, category: ResultCategory, allow_summation: bool = False) -> float:
        """Value of the result(s) with the given category.

        Args:
            category: Category to look up
            allow_summation: Sum values when several results share the category

        Returns:
            The value, or the sum of values when summation is allowed

        Raises:
            KeyError: If no result has the category
            ValueError: If several results have it and summation is not allowed
        """
        values = [result.value for result in self._results if result.category == category]
        if not values:
            raise KeyError(f"No results with category {category.value}")
        if len(values) > 1 and not allow_summation:
            raise ValueError(
                f"Found {len(values)} results with category {category.value} "
                "but summation is not allowed"
            )
        return float(sum(values))

    def to_dataframe(self) -> pd.DataFrame:
        """Convert the results to a pandas DataFrame, one row per result.

        Returns:
            DataFrame with columns category, value and one column per attribute
            present on any result

        Example:
            >>> df = results.to_dataframe()
            >>> df.groupby("currency")["value"].sum()
        """
        if not self._results:
            return pd.DataFrame(columns=["category", "value"])
        return pd.DataFrame([result.to_dict() for result in self._results])

    def to_dict(self) -> dict[str, Any]:
        return {"num_results": len(self._results), "results": [r.to_dict() for r in self._results]}
