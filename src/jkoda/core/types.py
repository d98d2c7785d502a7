"""Type definitions and enumerations for accumulator contracts.

All enumerations inherit from str for JSON serializability and easy comparison.
"""

from datetime import date
from enum import Enum
from typing import TypeAlias

# Type aliases for clarity
Amount: TypeAlias = float  # Monetary amount
Price: TypeAlias = float  # Spot, strike or barrier level
Shares: TypeAlias = float  # Share count, may be fractional
DateLike: TypeAlias = date | str  # date or ISO 8601 string (YYYY-MM-DD)


class SubCategory(str, Enum):
    """Accumulator sub-categories.

    The note form pays the holder a cash rebate when gearing is not at its
    maximum; the swap form charges the holder the strike for every share
    delivered.
    """

    NOTE = "note"
    SWAP = "swap"
    DECUMULATOR_SWAP = "decumulator_swap"

    @classmethod
    def from_flags(cls, note_or_swap: str, accum_or_decum: str = "accum") -> "SubCategory":
        """Map the ``note_or_swap`` / ``accum_or_decum`` term-sheet flags to a sub-category.

        Raises:
            ValueError: If either flag has an unrecognised value
        """
        note_or_swap = note_or_swap.strip().lower()
        accum_or_decum = accum_or_decum.strip().lower()
        if note_or_swap not in ("note", "swap"):
            raise ValueError(f"'note_or_swap' must be 'note' or 'swap', got '{note_or_swap}'")
        if accum_or_decum not in ("accum", "decum"):
            raise ValueError(f"'accum_or_decum' must be 'accum' or 'decum', got '{accum_or_decum}'")
        if accum_or_decum == "decum":
            return cls.DECUMULATOR_SWAP
        return cls.NOTE if note_or_swap == "note" else cls.SWAP


class BusinessDayConvention(str, Enum):
    """Business day conventions used when rolling dates on a holiday calendar."""

    UNADJUSTED = "UNADJUSTED"  # Leave the date where it is
    FOLLOWING = "FOLLOWING"  # Next business day
    MODIFIED_FOLLOWING = "MODIFIED_FOLLOWING"  # Next business day unless the month changes
    PRECEDING = "PRECEDING"  # Previous business day
    MODIFIED_PRECEDING = "MODIFIED_PRECEDING"  # Previous business day unless the month changes


class EvaluationPhase(str, Enum):
    """Where the evaluation date sits relative to the accrual schedule."""

    BEFORE_ALL = "BEFORE_ALL"  # Before the first accrual day
    BETWEEN = "BETWEEN"  # On or after the first, before the last accrual day
    AFTER_ALL = "AFTER_ALL"  # On or after the last accrual day


class ContractCategory(str, Enum):
    """Contract categories reported alongside results."""

    ACCUMULATOR = "accumulator"
