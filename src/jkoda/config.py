"""Run configuration for the Monte Carlo calculator.

Values can be given explicitly or read from environment variables:

- ``JKODA_NUM_SAMPLES``: number of simulated paths (default 10000)
- ``JKODA_SEED``: seed handed to the path generator (default 0)
- ``JKODA_ANTITHETIC``: request antithetic paths from the generator (default true)
- ``JKODA_USE_ARRAY_KERNEL``: price paths with the JAX kernel (default false)
- ``JKODA_DISCOUNT_CURVE``: discount curve identifier (default risk_free_rate)

Example:
    >>> config = EngineConfig(num_samples=2000, seed=7)
    >>> config = EngineConfig.from_env()
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from jkoda.exceptions import ConfigurationError
from jkoda.observers.market import RISK_FREE_CURVE

ENV_NUM_SAMPLES = "JKODA_NUM_SAMPLES"
ENV_SEED = "JKODA_SEED"
ENV_ANTITHETIC = "JKODA_ANTITHETIC"
ENV_USE_ARRAY_KERNEL = "JKODA_USE_ARRAY_KERNEL"
ENV_DISCOUNT_CURVE = "JKODA_DISCOUNT_CURVE"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class EngineConfig(BaseModel):
    """Settings of one pricing run."""

    model_config = ConfigDict(frozen=True)

    num_samples: int = Field(default=10_000, gt=0, description="Number of simulated paths")
    seed: int = Field(default=0, description="Seed for the path generator")
    antithetic: bool = Field(default=True, description="Use antithetic paths")
    use_array_kernel: bool = Field(default=False, description="Price paths with the JAX kernel")
    discount_curve_id: str = Field(default=RISK_FREE_CURVE, description="Discount curve identifier")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineConfig:
        """Build a configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``

        Raises:
            ConfigurationError: If a variable cannot be parsed or is out of range
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        if ENV_NUM_SAMPLES in env:
            values["num_samples"] = _parse_int(ENV_NUM_SAMPLES, env[ENV_NUM_SAMPLES])
        if ENV_SEED in env:
            values["seed"] = _parse_int(ENV_SEED, env[ENV_SEED])
        if ENV_ANTITHETIC in env:
            values["antithetic"] = _parse_bool(ENV_ANTITHETIC, env[ENV_ANTITHETIC])
        if ENV_USE_ARRAY_KERNEL in env:
            values["use_array_kernel"] = _parse_bool(
                ENV_USE_ARRAY_KERNEL, env[ENV_USE_ARRAY_KERNEL]
            )
        if ENV_DISCOUNT_CURVE in env:
            values["discount_curve_id"] = env[ENV_DISCOUNT_CURVE]

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid engine configuration", context={"errors": e.errors()[0]["msg"]}
            ) from e


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationError(
            "Expected an integer", context={"variable": name, "value": raw}
        ) from None


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError("Expected a boolean", context={"variable": name, "value": raw})
