"""Monte Carlo driver for accumulator pricing.

The driver sits between an external path generator and the accumulator
engine:

- PathGenerator: protocol for the stochastic process and random numbers,
  which live outside this package
- SampleStatistics: running mean and standard error of path values
- AccumulatorCalculator: prices one contract and returns a ResultSet
- evaluate_portfolio: prices a book of contracts, skipping failed ones

Paths are independent, so path values may be computed by parallel workers
sharing one engine and folded with ``SampleStatistics.merge``. Merging is
associative and commutative up to floating-point rounding: a different
summation order can change the last digits of the mean.

Example:
    >>> calculator = AccumulatorCalculator(terms, market, generator, EngineConfig(num_samples=5000))
    >>> results = calculator.calculate()
    >>> results.get_value(ResultCategory.PRICE_PER_UNIT_NOTIONAL)
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import numpy as np

from jkoda.config import EngineConfig
from jkoda.core.terms import AccumulatorTerms
from jkoda.core.time import year_fraction
from jkoda.engine.accumulator import AccumulatorEngine
from jkoda.engine.array import simulate_accumulator_array
from jkoda.engine.results import Result, ResultAttribute, ResultCategory, ResultSet
from jkoda.exceptions import EngineError, KodaException, PathLengthError
from jkoda.logging_config import get_logger, get_performance_logger, log_duration
from jkoda.observers.market import MarketContext

logger = get_logger(__name__)
perf_logger = get_performance_logger(__name__)


@runtime_checkable
class PathGenerator(Protocol):
    """Protocol for spot path generators.

    A generator returns a ``(num_paths, len(times))`` array of spot paths
    starting at ``spot`` at time 0. When ``antithetic`` is set, row
    ``num_paths // 2 + i`` must be the antithetic counterpart of row ``i``.
    """

    def __call__(
        self,
        spot: float,
        times: np.ndarray,
        num_paths: int,
        *,
        seed: int,
        antithetic: bool,
    ) -> np.ndarray:
        """Generate paths.

        Args:
            spot: Spot on the evaluation date
            times: Year fractions from the evaluation date of each path point,
                ``times[0] == 0``
            num_paths: Number of rows to return
            seed: Random seed
            antithetic: Whether the second half mirrors the first half

        Returns:
            ``(num_paths, len(times))`` spot matrix
        """
        ...


class SampleStatistics:
    """Running count, mean and variance of samples (Welford).

    Example:
        >>> stats = SampleStatistics()
        >>> stats.add_all([1.0, 2.0, 3.0])
        >>> stats.mean, stats.variance
        (2.0, 1.0)
    """

    def __init__(self) -> None:
        self.count = 0
        self._mean = 0.0
        self._m2 = 0.0

    def add(self, value: float) -> None:
        self.count += 1
        delta = value - self._mean
        self._mean += delta / self.count
        self._m2 += delta * (value - self._mean)

    def add_all(self, values: Iterable[float]) -> None:
        """Add a batch of samples, folding the batch moments in at once."""
        batch = np.fromiter(values, dtype=np.float64)
        if batch.size == 0:
            return
        other = SampleStatistics()
        other.count = int(batch.size)
        other._mean = float(batch.mean())
        other._m2 = float(((batch - other._mean) ** 2).sum())
        merged = self.merge(other)
        self.count, self._mean, self._m2 = merged.count, merged._mean, merged._m2

    def merge(self, other: SampleStatistics) -> SampleStatistics:
        """Combine two sets of statistics into a new one."""
        merged = SampleStatistics()
        merged.count = self.count + other.count
        if merged.count == 0:
            return merged
        delta = other._mean - self._mean
        merged._mean = self._mean + delta * other.count / merged.count
        merged._m2 = self._m2 + other._m2 + delta * delta * self.count * other.count / merged.count
        return merged

    def _require_samples(self, minimum: int) -> None:
        if self.count < minimum:
            raise EngineError(
                "Not enough samples", context={"count": self.count, "required": minimum}
            )

    @property
    def mean(self) -> float:
        self._require_samples(1)
        return self._mean

    @property
    def variance(self) -> float:
        """Unbiased sample variance."""
        self._require_samples(2)
        return self._m2 / (self.count - 1)

    @property
    def standard_deviation(self) -> float:
        return math.sqrt(self.variance)

    @property
    def error_estimate(self) -> float:
        """Standard error of the mean."""
        return math.sqrt(self.variance / self.count)


class AccumulatorCalculator:
    """Monte Carlo price of one accumulator.

    Attributes:
        terms: Contract terms
        market: Market context of the run
        generator: Path generator
        config: Run configuration
    """

    def __init__(
        self,
        terms: AccumulatorTerms,
        market: MarketContext,
        generator: PathGenerator,
        config: EngineConfig | None = None,
    ):
        self.terms = terms
        self.market = market
        self.generator = generator
        self.config = config or EngineConfig()

    def build_engine(self) -> AccumulatorEngine:
        return AccumulatorEngine.from_market(self.terms, self.market, self.config.discount_curve_id)

    @staticmethod
    def path_times(engine: AccumulatorEngine) -> np.ndarray:
        """Year fractions of every path point from the evaluation date."""
        eval_index = engine.position.signed_index
        accrual_dates = engine.schedule.accrual_dates
        times = [0.0]
        for path_index in range(1, engine.num_time_steps() + 1):
            day = accrual_dates[eval_index + path_index]
            times.append(year_fraction(engine.evaluation_date, day))
        return np.asarray(times, dtype=np.float64)

    def simulate(self, engine: AccumulatorEngine) -> np.ndarray:
        """Generate paths and return one value per Monte Carlo sample.

        With antithetic sampling each sample is the average of a path and
        its mirror.

        Raises:
            PathLengthError: If the generator returns a matrix of the wrong shape
        """
        num_samples = self.config.num_samples
        num_paths = 2 * num_samples if self.config.antithetic else num_samples
        times = self.path_times(engine)
        paths = np.asarray(
            self.generator(
                engine.price_history.current_price(),
                times,
                num_paths,
                seed=self.config.seed,
                antithetic=self.config.antithetic,
            )
        )
        if paths.shape != (num_paths, times.shape[0]):
            raise PathLengthError(
                "Path generator returned a matrix of the wrong shape",
                context={"expected": (num_paths, times.shape[0]), "actual": paths.shape},
            )

        if self.config.use_array_kernel:
            values = simulate_accumulator_array(engine, paths).astype(np.float64)
        else:
            values = np.fromiter((engine(path) for path in paths), dtype=np.float64, count=num_paths)

        if self.config.antithetic:
            values = 0.5 * (values[:num_samples] + values[num_samples:])
        return values

    def calculate(self) -> ResultSet:
        """Price the contract.

        Returns:
            ResultSet with the price per unit notional, the cash price, the
            position worth and the error estimate per unit notional

        Raises:
            KodaException: Any error that makes the contract unpriceable
        """
        contract_id = self.terms.contract_id
        engine = self.build_engine()
        notional = engine.remaining_notional()

        with log_duration(
            perf_logger, "accumulator simulation", contract_id=contract_id,
            num_samples=self.config.num_samples,
        ):
            values = self.simulate(engine)

        stats = SampleStatistics()
        stats.add_all(values)
        cash_price = stats.mean
        price_per_unit = cash_price / notional
        error_estimate = stats.error_estimate / notional if stats.count > 1 else 0.0
        logger.info(
            f"Error estimate for {contract_id} is {error_estimate}",
            extra={"contract_id": contract_id},
        )

        attributes = {
            ResultAttribute.CONTRACT_CATEGORY: self.terms.category.value,
            ResultAttribute.CONTRACT_ID: contract_id,
            ResultAttribute.UNDERLYING: self.terms.underlying_id,
            ResultAttribute.EVAL_DATE: engine.evaluation_date.isoformat(),
        }
        with_currency = {**attributes, ResultAttribute.CURRENCY: engine.currency}

        results = ResultSet()
        results.add(Result(ResultCategory.PRICE_PER_UNIT_NOTIONAL, price_per_unit, dict(attributes)))
        results.add(Result(ResultCategory.CASH_PRICE, cash_price, dict(with_currency)))
        results.add(
            Result(
                ResultCategory.POSITION_WORTH,
                cash_price * self.terms.position_size,
                dict(with_currency),
            )
        )
        results.add(Result(ResultCategory.ERROR_ESTIMATE, error_estimate, dict(attributes)))
        return results


@dataclass
class PortfolioResult:
    """Results of a portfolio run.

    Attributes:
        results: Results of every contract that priced
        failures: Error of every contract that did not, keyed by contract id
    """

    results: ResultSet = field(default_factory=ResultSet)
    failures: dict[str, KodaException] = field(default_factory=dict)

    @property
    def num_failures(self) -> int:
        return len(self.failures)

    def total_position_worth(self) -> float:
        """Sum of position worth over priced contracts (single currency assumed)."""
        if not any(r.category == ResultCategory.POSITION_WORTH for r in self.results):
            return 0.0
        return self.results.get_value(ResultCategory.POSITION_WORTH, allow_summation=True)


def evaluate_portfolio(
    contracts: Sequence[AccumulatorTerms],
    market: MarketContext,
    generator: PathGenerator,
    config: EngineConfig | None = None,
) -> PortfolioResult:
    """Price every contract, skipping the ones that fail.

    A KodaException aborts only the contract that raised it; it is logged
    and recorded in ``failures`` and the loop moves on.

    Args:
        contracts: Contract terms to price
        market: Market context shared by all contracts
        generator: Path generator
        config: Run configuration

    Returns:
        PortfolioResult
    """
    config = config or EngineConfig()
    portfolio = PortfolioResult()
    for terms in contracts:
        try:
            portfolio.results.extend(AccumulatorCalculator(terms, market, generator, config).calculate())
        except KodaException as e:
            logger.error(
                f"Failed to price {terms.contract_id}: {e}",
                extra={"contract_id": terms.contract_id, "error_type": type(e).__name__},
            )
            portfolio.failures[terms.contract_id] = e

    logger.info(
        f"Priced {len(contracts) - portfolio.num_failures} of {len(contracts)} contracts",
    )
    return portfolio
