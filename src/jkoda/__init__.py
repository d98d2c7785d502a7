"""jkoda: Monte Carlo pricing of knock-out accumulators with JAX.

The package turns simulated daily spot paths into share and cash deliveries
of a knock-out accumulator, stops each path at its knock-out and discounts
the deliveries into a present value.

Basic usage:
    >>> import jkoda
    >>> print(jkoda.__version__)
    0.1.0
"""

__version__ = "0.1.0"

# Import core exceptions for convenient access
from jkoda.exceptions import (
    AlreadyKnockedOutError,
    ConfigurationError,
    ContractValidationError,
    EngineError,
    EvaluationError,
    KodaException,
    MarketDataError,
    NegativeIndexError,
    NonPositiveNotionalError,
    PathLengthError,
    ScheduleError,
    StaleSettlementError,
    UnsupportedSubCategoryError,
)
from jkoda.logging_config import configure_logging, get_logger

# Public API
__all__ = [
    # Version info
    "__version__",
    # Exceptions
    "KodaException",
    "ContractValidationError",
    "UnsupportedSubCategoryError",
    "ScheduleError",
    "EvaluationError",
    "AlreadyKnockedOutError",
    "NegativeIndexError",
    "StaleSettlementError",
    "NonPositiveNotionalError",
    "MarketDataError",
    "ConfigurationError",
    "EngineError",
    "PathLengthError",
    # Logging
    "configure_logging",
    "get_logger",
]
