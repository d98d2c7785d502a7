"""Custom exception classes for accumulator pricing errors.

This module defines the hierarchy of exceptions used throughout the jkoda
package. All exceptions inherit from KodaException, which stores context
information alongside the message.

Every error is fatal to the valuation of the contract that raised it. None of
them are retried; a portfolio-level caller is expected to skip the contract
and carry on with the rest of the book.
"""

from typing import Any


class KodaException(Exception):
    """Base exception for all jkoda errors.

    Attributes:
        message: Human-readable error description
        context: Additional context information about the error
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description
            context: Optional dictionary with additional error context
                    (e.g., contract_id, date, spot)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return string representation of the exception."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (Context: {context_str})"
        return self.message


class ContractValidationError(KodaException):
    """Exception raised for contract terms that cannot be priced.

    Field-level validation (negative strikes, empty period lists) is reported
    by pydantic; this exception covers whole-contract rejections.
    """


class UnsupportedSubCategoryError(ContractValidationError):
    """Exception raised when a contract's sub-category is not supported.

    Decumulators are rejected when the terms are constructed.

    Example:
        >>> raise UnsupportedSubCategoryError(
        ...     "Decumulators are not supported",
        ...     context={"contract_id": "KODA-001", "sub_category": "decumulator_swap"}
        ... )
    """


class ScheduleError(KodaException):
    """Exception raised for inconsistent period or date configuration.

    This exception should be raised when:
    - The last period end date precedes the first accumulation date
    - The calendar leaves no business day in the accrual window
    """


class EvaluationError(KodaException):
    """Base class for errors in the engine's evaluation-date bookkeeping."""


class AlreadyKnockedOutError(EvaluationError):
    """Exception raised when historical replay finds a knock-out before the evaluation date.

    This signals stale or corrupted input: a contract that knocked out on an
    earlier day should no longer be live.

    Example:
        >>> raise AlreadyKnockedOutError(
        ...     "Trade already knocked out",
        ...     context={"date": "2024-03-04", "spot": 151.0, "ko_price": 150.0}
        ... )
    """


class NegativeIndexError(EvaluationError):
    """Exception raised when a schedule index lies before the evaluation position."""


class StaleSettlementError(EvaluationError):
    """Exception raised when a live period settles before the evaluation date."""


class NonPositiveNotionalError(EvaluationError):
    """Exception raised when the remaining notional is zero or negative."""


class MarketDataError(KodaException):
    """Exception raised when a market data collaborator cannot supply a value.

    This exception should be raised when:
    - A historical fixing is missing or lies after the evaluation date
    - A stock, calendar or discount curve is not registered
    - A discount factor falls outside (0, 1]

    Example:
        >>> raise MarketDataError(
        ...     "No fixing for requested date",
        ...     context={"underlying": "0005.HK", "date": "2024-01-15"}
        ... )
    """


class ConfigurationError(KodaException):
    """Exception raised for configuration and initialization errors.

    Example:
        >>> raise ConfigurationError(
        ...     "Invalid number of samples",
        ...     context={"JKODA_NUM_SAMPLES": "many"}
        ... )
    """


class EngineError(KodaException):
    """Exception raised for simulation and portfolio engine errors."""


class PathLengthError(EngineError):
    """Exception raised when a simulated path is too short for the remaining schedule."""
