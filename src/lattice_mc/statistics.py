"""Mean and confidence-interval estimators for serially correlated Monte Carlo series.

Successive Monte Carlo samples are correlated, so the naive ``std/sqrt(N)``
underestimates the uncertainty of the mean. Two estimators are provided:

**Batch means** (default): the series is cut into ``n_batches =
max(2, floor(sqrt(N)))`` contiguous batches of ``N // n_batches`` samples,
keeping the most recent samples when ``N`` does not divide evenly; the
reported mean is taken over the same samples as the interval. Batch
averages are close to independent once batches are longer than the
correlation time, and the half-width is

    t_{(1+conf)/2, n_batches-1} * std(batch means) / sqrt(n_batches)

**AR(1)**: the lag-1 autocorrelation ``rho`` (clipped to [0, 0.99]) inflates
the variance of the mean to ``var/N * (1 + rho)/(1 - rho)``, and the
half-width uses the normal quantile ``z_{(1+conf)/2}``.

The equilibration check follows the partition scheme of van de Walle & Asta,
Modelling Simul. Mater. Sci. Eng. 10 (2002) 521: the head of the series is
discarded until the means of the two halves of the remainder agree within the
requested precision.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import stats

MAX_CORRELATION = 0.99


@dataclass(frozen=True)
class BasicStatistics:
    """Mean and confidence-interval half-width of one observable component.

    Attributes:
        mean: Sample mean.
        half_width: Half-width of the confidence interval of the mean.
        n_samples: Number of observations used.
        confidence: Confidence level of the interval.
        estimator: Name of the estimator used.
        correlation: Lag-1 autocorrelation (AR(1) estimator only).
        n_batches: Number of batches (batch-means estimator only).
    """

    mean: float
    half_width: float
    n_samples: int
    confidence: float
    estimator: str
    correlation: Optional[float] = None
    n_batches: Optional[int] = None

    def is_within(self, precision: float) -> bool:
        return self.half_width <= precision


@dataclass(frozen=True)
class EquilibrationResult:
    is_equilibrated: bool
    start_index: int


def _as_observations(observations) -> np.ndarray:
    x = np.asarray(observations, dtype=float)
    if x.ndim != 1:
        raise ValueError(f"Observations must be 1-D, got shape {x.shape}")
    if x.size < 2:
        raise ValueError(f"At least 2 observations are required, got {x.size}")
    return x


def lag1_autocorrelation(observations) -> float:
    """Lag-1 autocorrelation coefficient; 0.0 for a constant series."""
    x = _as_observations(observations)
    centered = x - x.mean()
    denom = float(np.dot(centered, centered))
    if denom == 0.0:
        return 0.0
    return float(np.dot(centered[:-1], centered[1:]) / denom)


def batch_means_statistics(observations, confidence: float = 0.95) -> BasicStatistics:
    x = _as_observations(observations)
    n = x.size
    n_batches = max(2, math.isqrt(n))
    batch_size = n // n_batches
    used = x[n - n_batches * batch_size :]
    batch_means = used.reshape(n_batches, batch_size).mean(axis=1)
    spread = float(np.std(batch_means, ddof=1))
    quantile = float(stats.t.ppf(0.5 * (1.0 + confidence), df=n_batches - 1))
    return BasicStatistics(
        mean=float(used.mean()),
        half_width=quantile * spread / math.sqrt(n_batches),
        n_samples=n,
        confidence=confidence,
        estimator="batch_means",
        n_batches=n_batches,
    )


def ar1_statistics(observations, confidence: float = 0.95) -> BasicStatistics:
    x = _as_observations(observations)
    n = x.size
    rho = min(max(lag1_autocorrelation(x), 0.0), MAX_CORRELATION)
    variance_of_mean = float(np.var(x, ddof=1)) / n * (1.0 + rho) / (1.0 - rho)
    quantile = float(stats.norm.ppf(0.5 * (1.0 + confidence)))
    return BasicStatistics(
        mean=float(x.mean()),
        half_width=quantile * math.sqrt(variance_of_mean),
        n_samples=n,
        confidence=confidence,
        estimator="ar1",
        correlation=rho,
    )


_ESTIMATORS = {
    "batch_means": batch_means_statistics,
    "ar1": ar1_statistics,
}


def calc_statistics(observations, confidence: float = 0.95, estimator: str = "batch_means") -> BasicStatistics:
    try:
        fn = _ESTIMATORS[estimator]
    except KeyError:
        raise ValueError(f"Unknown estimator {estimator!r}. Use one of {sorted(_ESTIMATORS)}") from None
    return fn(observations, confidence)


def check_equilibration(observations, precision: float) -> EquilibrationResult:
    """Find the first index after which the series looks stationary.

    For each candidate start ``s`` (up to half the series) the remainder
    ``x[s:]`` is split in two halves; the series is equilibrated at the first
    ``s`` where the two half means differ by at most ``precision``.
    """
    x = np.asarray(observations, dtype=float)
    n = x.size
    if n < 2:
        return EquilibrationResult(is_equilibrated=False, start_index=0)
    cumsum = np.concatenate(([0.0], np.cumsum(x)))
    starts = np.arange(0, n // 2 + 1)
    starts = starts[n - starts >= 2]
    mids = starts + (n - starts) // 2
    first_mean = (cumsum[mids] - cumsum[starts]) / (mids - starts)
    second_mean = (cumsum[n] - cumsum[mids]) / (n - mids)
    ok = np.abs(first_mean - second_mean) <= precision
    if not np.any(ok):
        return EquilibrationResult(is_equilibrated=False, start_index=n)
    return EquilibrationResult(is_equilibrated=True, start_index=int(starts[np.argmax(ok)]))
