"""Per-period accumulation state.

AccumulationState holds, for every contract period, the shares and cash
delivered so far. The engine builds one historical snapshot per contract and
freezes it; each path evaluation then works on its own ``copy()``. Period
counts are small, so the snapshot is a pair of fixed-size numpy arrays rather
than a persistent structure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np


@dataclass
class AccumulationState:
    """Shares and cash delivered per period.

    Attributes:
        shares_delivered: ``(num_periods,)`` float64 shares delivered per period
        cash_delivered: ``(num_periods,)`` float64 cash delivered per period;
            positive amounts flow from issuer to holder

    Example:
        >>> state = AccumulationState.zeros(3)
        >>> working = state.freeze().copy()
        >>> working.shares_delivered[0] += 10.0
    """

    shares_delivered: np.ndarray
    cash_delivered: np.ndarray

    def __post_init__(self) -> None:
        """Validate that both arrays describe the same periods."""
        if self.shares_delivered.shape != self.cash_delivered.shape:
            raise ValueError(
                f"Shares and cash arrays differ in shape: "
                f"{self.shares_delivered.shape} vs {self.cash_delivered.shape}"
            )

    @classmethod
    def zeros(cls, num_periods: int) -> AccumulationState:
        """Create an empty state for ``num_periods`` periods."""
        return cls(
            shares_delivered=np.zeros(num_periods, dtype=np.float64),
            cash_delivered=np.zeros(num_periods, dtype=np.float64),
        )

    @property
    def num_periods(self) -> int:
        return int(self.shares_delivered.shape[0])

    @property
    def is_frozen(self) -> bool:
        return not (self.shares_delivered.flags.writeable or self.cash_delivered.flags.writeable)

    def copy(self) -> AccumulationState:
        """Return a private, writeable copy."""
        return AccumulationState(
            shares_delivered=self.shares_delivered.copy(),
            cash_delivered=self.cash_delivered.copy(),
        )

    def freeze(self) -> AccumulationState:
        """Mark both arrays read-only so the state can be shared across workers."""
        self.shares_delivered.flags.writeable = False
        self.cash_delivered.flags.writeable = False
        return self

    def total_shares(self) -> float:
        return float(self.shares_delivered.sum())

    def total_cash(self) -> float:
        return float(self.cash_delivered.sum())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "shares_delivered": self.shares_delivered.tolist(),
            "cash_delivered": self.cash_delivered.tolist(),
        }
