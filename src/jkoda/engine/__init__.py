"""Accumulation engine, JAX kernel, Monte Carlo driver and results."""

from jkoda.engine.accumulator import AccumulatorEngine, PathOutcome
from jkoda.engine.array import (
    AccumulatorArrayParams,
    AccumulatorArrayState,
    precompute_accumulator_arrays,
    price_path_array,
    price_path_array_jit,
    price_paths,
    simulate_accumulator_array,
)
from jkoda.engine.results import Result, ResultAttribute, ResultCategory, ResultSet
from jkoda.engine.simulator import (
    AccumulatorCalculator,
    PathGenerator,
    PortfolioResult,
    SampleStatistics,
    evaluate_portfolio,
)

__all__ = [
    # Per-path engine
    "AccumulatorEngine",
    "PathOutcome",
    # Array mode
    "AccumulatorArrayParams",
    "AccumulatorArrayState",
    "precompute_accumulator_arrays",
    "price_path_array",
    "price_path_array_jit",
    "price_paths",
    "simulate_accumulator_array",
    # Results
    "Result",
    "ResultAttribute",
    "ResultCategory",
    "ResultSet",
    # Simulation
    "AccumulatorCalculator",
    "PathGenerator",
    "PortfolioResult",
    "SampleStatistics",
    "evaluate_portfolio",
]
