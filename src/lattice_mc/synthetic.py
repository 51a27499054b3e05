"""Synthetic lattice process for demonstrations and tests.

Site values of a small lattice follow independent AR(1) processes relaxing
towards the ``field`` condition, with fluctuations set by ``temperature``:

    x <- field + rho * (x - field) + sqrt(1 - rho**2) * sigma * noise,
    sigma = sqrt(temperature) / 10

The correlation ``rho`` mimics the serial correlation of Monte Carlo passes,
which is what the convergence estimators have to cope with.

Example:
    >>> import numpy as np
    >>> from lattice_mc.synthetic import LatticeConfiguration, make_synthetic_registry, make_ar1_step
    >>>
    >>> registry = make_synthetic_registry()
    >>> step = make_ar1_step(np.random.default_rng(0), correlation=0.8)
    >>> config = LatticeConfiguration.uniform(n_sites=64, value=0.0)

Note: this is a stand-in for an external Monte Carlo kernel, not a physical model.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from .observables import ObservableFunction, ObservableRegistry
from .runner import StepFunction
from .state import State


@dataclass
class LatticeConfiguration:
    """Site values of a lattice plus the simulated time reached so far."""

    values: np.ndarray
    time: float = 0.0

    @classmethod
    def uniform(cls, n_sites: int, value: float = 0.0) -> "LatticeConfiguration":
        if n_sites <= 0:
            raise ValueError(f"n_sites must be positive, got {n_sites}")
        return cls(values=np.full(n_sites, float(value)))

    @property
    def n_sites(self) -> int:
        return self.values.size

    def snapshot(self) -> "LatticeConfiguration":
        return LatticeConfiguration(values=self.values.copy(), time=self.time)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LatticeConfiguration):
            return NotImplemented
        return self.time == other.time and np.array_equal(self.values, other.values)


def _mean_value(state: State[LatticeConfiguration]) -> np.ndarray:
    return np.array([state.configuration.values.mean()])


def _moments(state: State[LatticeConfiguration]) -> np.ndarray:
    values = state.configuration.values
    return np.array([values.mean(), np.mean(np.square(values))])


def _fraction_positive(state: State[LatticeConfiguration]) -> np.ndarray:
    return np.array([np.mean(state.configuration.values > 0.0)])


def make_synthetic_functions() -> list[ObservableFunction]:
    return [
        ObservableFunction("mean_value", "Mean site value", _mean_value),
        ObservableFunction(
            "moments",
            "First and second moment of the site values",
            _moments,
            component_names=("m1", "m2"),
        ),
        ObservableFunction("fraction_positive", "Fraction of sites with a positive value", _fraction_positive),
    ]


def make_synthetic_registry() -> ObservableRegistry:
    return ObservableRegistry.from_functions(make_synthetic_functions())


def make_ar1_step(
    rng: np.random.Generator,
    correlation: float = 0.9,
    mean_time_step: float | None = None,
) -> StepFunction:
    """Build a step function advancing a LatticeConfiguration by one pass.

    Args:
        rng: Random generator owned by the caller.
        correlation: Pass-to-pass correlation of every site, in [0, 1).
        mean_time_step: If given, each pass also advances simulated time by an
            exponentially distributed increment and the step returns the new time.
    """
    if not (0.0 <= correlation < 1.0):
        raise ValueError(f"correlation must lie in [0, 1), got {correlation}")
    innovation = math.sqrt(1.0 - correlation**2)

    def step(state: State[LatticeConfiguration]) -> float | None:
        config = state.configuration
        field = float(state.conditions.get("field", 0.0))
        sigma = math.sqrt(max(float(state.conditions.get("temperature", 100.0)), 0.0)) / 10.0
        noise = rng.standard_normal(config.n_sites)
        config.values[:] = field + correlation * (config.values - field) + innovation * sigma * noise
        if mean_time_step is None:
            return None
        config.time += float(rng.exponential(mean_time_step))
        return config.time

    return step
