"""Sampling schedules: which progress values get recorded.

A schedule is a non-decreasing sequence of targets indexed by the sample
index ``k``:

    LINEAR: target(k) = a + b*k
    LOG:    target(k) = a + b**(k - c)

When progress is counted in passes (``SampleMode.BY_PASS``) every target is
rounded half-up to an integer pass, ``floor(x + 0.5)``. Log schedules can then
map consecutive ``k`` onto the same pass; such duplicates are merged and the
pass is sampled once, reported under the smallest ``k`` that reaches it.

When progress is simulated time (``SampleMode.BY_TIME``) a target fires as
soon as progress reaches or passes it. A single jump in time can pass several
targets; each of them fires once, in order, tagged with its target time.

The scheduler only ever moves ``k`` forward, so resuming from a saved
``(next_index, last_sampled)`` pair never repeats or skips a sample.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .config import SampleMethod, SamplingParams


@dataclass(frozen=True)
class SampleTick:
    """A scheduled sample: its index and the progress value it is recorded at."""

    sample_index: int
    progress: float


def _check_progress(progress) -> float:
    value = float(progress)
    if not math.isfinite(value):
        raise ValueError(f"Progress must be finite, got {progress!r}")
    return value


def _raw_target(params: SamplingParams, k: int) -> float:
    a, b = params.schedule_params[0], params.schedule_params[1]
    if params.sample_method is SampleMethod.LINEAR:
        return a + b * k
    c = params.schedule_params[2]
    return a + b ** (k - c)


def sample_target(params: SamplingParams, k: int) -> float:
    """Progress value at which sample ``k`` is due."""
    if k < 0:
        raise ValueError(f"Sample index must be >= 0, got {k}")
    value = _raw_target(params, k)
    if params.by_pass:
        return float(math.floor(value + 0.5))
    return value


def _estimate_index(params: SamplingParams, progress: float) -> int:
    a, b = params.schedule_params[0], params.schedule_params[1]
    # a rounded target reaches `progress` once the raw target reaches progress - 0.5
    threshold = progress - 0.5 if params.by_pass else progress
    if params.sample_method is SampleMethod.LINEAR:
        if threshold <= a:
            return 0
        return max(0, math.ceil((threshold - a) / b))
    if threshold <= a:
        return 0
    c = params.schedule_params[2]
    return max(0, math.ceil(c + math.log(threshold - a) / math.log(b)))


def first_index_reaching(params: SamplingParams, progress: float) -> int:
    """Smallest ``k >= 0`` whose target is ``>= progress``."""
    progress = _check_progress(progress)
    k = _estimate_index(params, progress)
    # correct floating-point error in the closed-form estimate
    while sample_target(params, k) < progress:
        k += 1
    while k > 0 and sample_target(params, k - 1) >= progress:
        k -= 1
    return k


def schedule_index(params: SamplingParams, progress: float) -> Optional[int]:
    """Return the sample index due exactly at ``progress``, or ``None``.

    For merged pass targets the smallest index is returned.
    """
    k = first_index_reaching(params, progress)
    if sample_target(params, k) == float(progress):
        return k
    return None


class SampleScheduler:
    """Forward-only cursor over a sampling schedule.

    Args:
        params: Sampling parameters defining the schedule.
        next_index: First sample index not yet consumed (for resuming).
        last_sampled: Progress value of the last fired sample, if any.
    """

    def __init__(
        self,
        params: SamplingParams,
        next_index: int = 0,
        last_sampled: Optional[float] = None,
    ) -> None:
        if next_index < 0:
            raise ValueError(f"next_index must be >= 0, got {next_index}")
        self.params = params
        self._next_index = int(next_index)
        self._last_sampled = None if last_sampled is None else _check_progress(last_sampled)

    @property
    def next_index(self) -> int:
        return self._next_index

    @property
    def last_sampled(self) -> Optional[float]:
        return self._last_sampled

    @property
    def next_target(self) -> float:
        return sample_target(self.params, self._next_index)

    def poll(self, progress) -> list[SampleTick]:
        """Consume and return every sample due at ``progress``.

        In pass mode at most one tick is returned. Passes already sampled, or
        skipped over by the caller, are never sampled again.
        """
        progress = _check_progress(progress)
        if self.params.by_pass:
            return self._poll_pass(progress)
        return self._poll_time(progress)

    def _poll_pass(self, progress: float) -> list[SampleTick]:
        if self._last_sampled is not None and progress <= self._last_sampled:
            return []
        k = max(self._next_index, first_index_reaching(self.params, progress))
        if sample_target(self.params, k) != progress:
            self._next_index = k
            return []
        self._last_sampled = progress
        # skip every k merged onto this pass
        self._next_index = first_index_reaching(self.params, progress + 1.0)
        return [SampleTick(sample_index=k, progress=progress)]

    def _poll_time(self, progress: float) -> list[SampleTick]:
        ticks: list[SampleTick] = []
        k = self._next_index
        target = sample_target(self.params, k)
        while target <= progress:
            if self._last_sampled is None or target > self._last_sampled:
                ticks.append(SampleTick(sample_index=k, progress=target))
                self._last_sampled = target
            k += 1
            target = sample_target(self.params, k)
        self._next_index = k
        return ticks
