"""Array-mode accumulator pricing, JIT-compiled and vmap-able pure JAX.

The Python engine walks one path at a time. This module converts its setup
(schedule, discount factors, historical state) into JAX arrays once and
prices paths with a pure kernel: ``jax.lax.scan`` runs the daily accumulation
rule over the path, carrying ``(shares, cash, knocked_out, ko_index)``; a
knocked-out carry simply stops adding deliveries.

Architecture:
    Pre-computation (Python, once per contract) → Pure JAX kernel (jit + vmap)

Values are float32, so results agree with the Python engine to float32
tolerance only.

Example::

    from jkoda.engine.array import precompute_accumulator_arrays, price_paths

    params = precompute_accumulator_arrays(engine)
    pvs = price_paths(paths, params)      # paths: (num_paths, num_steps + 1)
"""

from __future__ import annotations

from typing import NamedTuple

import jax
import jax.numpy as jnp
import numpy as np

from jkoda.core.types import SubCategory
from jkoda.engine.accumulator import AccumulatorEngine
from jkoda.exceptions import PathLengthError

_F32 = jnp.float32
_I32 = jnp.int32

# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


class AccumulatorArrayState(NamedTuple):
    """Scan-loop carry."""

    shares: jnp.ndarray  # (num_periods,) shares delivered per period
    cash: jnp.ndarray  # (num_periods,) cash delivered per period
    knocked_out: jnp.ndarray  # scalar bool
    ko_index: jnp.ndarray  # scalar int32 schedule index, num_days if not knocked out


class AccumulatorArrayParams(NamedTuple):
    """Static contract data extracted from an ``AccumulatorEngine``.

    Sub-category branches are encoded as float flags for ``jnp.where``.
    """

    step_period: jnp.ndarray  # (num_steps,) period of path positions 1..num_steps
    step_schedule_index: jnp.ndarray  # (num_steps,) schedule index of the same positions
    period_of_date: jnp.ndarray  # (num_days,) period of every accrual day
    period_end_path_index: jnp.ndarray  # (num_periods,) -1 when the end is historical
    historical_period_end_spot: jnp.ndarray  # (num_periods,) 0.0 when not historical
    live_period: jnp.ndarray  # (num_periods,) 1.0 from the current period on
    discount_factors: jnp.ndarray  # (num_periods,)
    initial_shares: jnp.ndarray  # (num_periods,)
    initial_cash: jnp.ndarray  # (num_periods,)
    initially_knocked_out: jnp.ndarray  # bool
    initial_ko_index: jnp.ndarray  # int32
    num_days: jnp.ndarray  # int32
    ko_price: jnp.ndarray
    gearing_strike: jnp.ndarray
    gearing_multiplier: jnp.ndarray
    max_gearing_multiplier: jnp.ndarray
    max_gearing_times_strike: jnp.ndarray
    shares_per_day: jnp.ndarray
    shares_per_day_times_strike: jnp.ndarray
    is_note: jnp.ndarray  # 1.0 for notes, 0.0 for swaps
    is_swap: jnp.ndarray  # 1.0 for swaps, 0.0 for notes


# ============================================================================
# Pre-computation
# ============================================================================


def precompute_accumulator_arrays(engine: AccumulatorEngine) -> AccumulatorArrayParams:
    """Convert an initialized engine into kernel parameters.

    Args:
        engine: Engine after setup (schedule, discount factors, history)

    Returns:
        AccumulatorArrayParams
    """
    schedule = engine.schedule
    terms = engine.terms
    eval_index = engine.position.signed_index
    num_steps = engine.num_time_steps()
    num_days = schedule.num_accrual_days

    step_schedule_index = np.arange(eval_index + 1, eval_index + 1 + num_steps, dtype=np.int32)
    period_of_date = np.asarray(schedule.period_index_of_date, dtype=np.int32)

    period_end_path_index = np.full(terms.num_periods, -1, dtype=np.int32)
    historical_period_end_spot = np.zeros(terms.num_periods, dtype=np.float32)
    live_period = np.zeros(terms.num_periods, dtype=np.float32)
    for period in range(engine.current_period, terms.num_periods):
        live_period[period] = 1.0
        end_index = schedule.index_of_period_end[period]
        if end_index <= eval_index:
            historical_period_end_spot[period] = engine.period_end_spot(period, ())
        else:
            period_end_path_index[period] = engine.path_index_from_schedule_index(end_index)

    knocked_out = engine.knocked_out_on_evaluation_date
    is_note = terms.sub_category == SubCategory.NOTE

    return AccumulatorArrayParams(
        step_period=jnp.asarray(period_of_date[step_schedule_index], dtype=_I32),
        step_schedule_index=jnp.asarray(step_schedule_index, dtype=_I32),
        period_of_date=jnp.asarray(period_of_date, dtype=_I32),
        period_end_path_index=jnp.asarray(period_end_path_index, dtype=_I32),
        historical_period_end_spot=jnp.asarray(historical_period_end_spot, dtype=_F32),
        live_period=jnp.asarray(live_period, dtype=_F32),
        discount_factors=jnp.asarray(engine.discount_factors, dtype=_F32),
        initial_shares=jnp.asarray(engine.historical_state.shares_delivered, dtype=_F32),
        initial_cash=jnp.asarray(engine.historical_state.cash_delivered, dtype=_F32),
        initially_knocked_out=jnp.asarray(knocked_out),
        initial_ko_index=jnp.asarray(eval_index if knocked_out else num_days, dtype=_I32),
        num_days=jnp.asarray(num_days, dtype=_I32),
        ko_price=jnp.asarray(terms.ko_price, dtype=_F32),
        gearing_strike=jnp.asarray(terms.gearing_strike, dtype=_F32),
        gearing_multiplier=jnp.asarray(terms.gearing_multiplier, dtype=_F32),
        max_gearing_multiplier=jnp.asarray(terms.max_gearing_multiplier, dtype=_F32),
        max_gearing_times_strike=jnp.asarray(terms.max_gearing_times_strike, dtype=_F32),
        shares_per_day=jnp.asarray(terms.shares_per_day, dtype=_F32),
        shares_per_day_times_strike=jnp.asarray(terms.shares_per_day_times_strike, dtype=_F32),
        is_note=jnp.asarray(1.0 if is_note else 0.0, dtype=_F32),
        is_swap=jnp.asarray(0.0 if is_note else 1.0, dtype=_F32),
    )


# ============================================================================
# JIT-compiled pricing kernel
# ============================================================================


def price_path_array(path: jnp.ndarray, params: AccumulatorArrayParams) -> jnp.ndarray:
    """Present value of one path as a pure JAX function.

    Args:
        path: ``(num_steps + 1,)`` spot observations, ``path[0]`` on the
            evaluation date
        params: Output of ``precompute_accumulator_arrays``

    Returns:
        Scalar float32 present value
    """
    path = jnp.asarray(path, dtype=_F32)

    def step(
        carry: AccumulatorArrayState, inputs: tuple[jnp.ndarray, jnp.ndarray, jnp.ndarray]
    ) -> tuple[AccumulatorArrayState, None]:
        spot, period, schedule_index = inputs
        active = jnp.logical_not(carry.knocked_out)
        gearing = jnp.where(spot < params.gearing_strike, params.gearing_multiplier, 1.0)
        shares_delta = params.shares_per_day * gearing
        note_cash = (params.max_gearing_multiplier - gearing) * params.shares_per_day_times_strike
        swap_cash = -gearing * params.shares_per_day_times_strike
        cash_delta = jnp.where(params.is_note > 0.5, note_cash, swap_cash)

        shares = carry.shares.at[period].add(jnp.where(active, shares_delta, 0.0))
        cash = carry.cash.at[period].add(jnp.where(active, cash_delta, 0.0))
        hit = jnp.logical_and(active, spot >= params.ko_price)
        ko_index = jnp.where(hit, schedule_index, carry.ko_index)
        knocked_out = jnp.logical_or(carry.knocked_out, hit)
        return AccumulatorArrayState(shares, cash, knocked_out, ko_index), None

    initial = AccumulatorArrayState(
        shares=params.initial_shares,
        cash=params.initial_cash,
        knocked_out=params.initially_knocked_out,
        ko_index=params.initial_ko_index,
    )
    final, _ = jax.lax.scan(
        step, initial, (path[1:], params.step_period, params.step_schedule_index)
    )

    path_spots = path[jnp.clip(params.period_end_path_index, 0, path.shape[0] - 1)]
    end_spots = jnp.where(
        params.period_end_path_index >= 0, path_spots, params.historical_period_end_spot
    )
    pv = jnp.sum(
        params.live_period * params.discount_factors * (final.shares * end_spots + final.cash)
    )

    ko_period = params.period_of_date[jnp.clip(final.ko_index, 0, params.num_days - 1)]
    ko_term = (
        (params.num_days - 1 - final.ko_index).astype(_F32)
        * params.max_gearing_times_strike
        * params.discount_factors[ko_period]
    )
    pv = pv + jnp.where(final.knocked_out, params.is_swap * ko_term, 0.0)
    return pv


# JIT-compiled version for single-path use
price_path_array_jit = jax.jit(price_path_array)

# Batched over the leading axis of ``paths``
price_paths = jax.jit(jax.vmap(price_path_array, in_axes=(0, None)))


def simulate_accumulator_array(engine: AccumulatorEngine, paths: np.ndarray) -> np.ndarray:
    """Price a batch of paths with the JAX kernel.

    Args:
        engine: Initialized engine
        paths: ``(num_paths, num_steps + 1)`` spot matrix

    Returns:
        ``(num_paths,)`` numpy array of present values

    Raises:
        PathLengthError: If the path matrix has the wrong shape
    """
    paths = np.asarray(paths)
    expected = engine.num_time_steps() + 1
    if paths.ndim != 2 or paths.shape[1] != expected:
        raise PathLengthError(
            "Path matrix does not match the remaining accrual days",
            context={"expected_length": expected, "paths_shape": paths.shape},
        )
    params = precompute_accumulator_arrays(engine)
    return np.asarray(price_paths(jnp.asarray(paths, dtype=_F32), params))
