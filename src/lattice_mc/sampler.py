"""Time-series storage of sampled observables and configuration snapshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Generic, Iterator, Mapping, Optional

import numpy as np
import pandas as pd

from .config import SamplingParams
from .errors import EvaluationError
from .observables import ObservableFunction, ObservableRegistry
from .schedule import SampleScheduler, SampleTick
from .state import ConfigT, State, snapshot_configuration

logger = logging.getLogger(__name__)

_INITIAL_CAPACITY = 64


class SampleSeries:
    """Append-only record of one observable: ``(sample_index, progress, values)``.

    Values live in a growable 2-D buffer (samples x components). Accessors
    return read-only views, so committed samples cannot be altered.
    """

    def __init__(self, name: str, component_names: Optional[tuple[str, ...]] = None) -> None:
        self.name = name
        self.component_names = component_names
        self._size = 0
        self._n_components: Optional[int] = None
        self._values = np.empty((0, 0), dtype=float)
        self._indices = np.empty(0, dtype=np.int64)
        self._progress = np.empty(0, dtype=float)

    def __len__(self) -> int:
        return self._size

    @property
    def n_components(self) -> Optional[int]:
        return self._n_components

    def check_compatible(self, values: np.ndarray) -> None:
        """Raise EvaluationError if ``values`` cannot be appended to this series."""
        if values.ndim != 1:
            raise EvaluationError(
                f"Observable {self.name!r} must evaluate to a 1-D vector, got shape {values.shape}",
                observable_name=self.name,
            )
        expected = self._n_components
        if expected is None and self.component_names is not None:
            expected = len(self.component_names)
        if expected is not None and values.size != expected:
            raise EvaluationError(
                f"Observable {self.name!r} returned {values.size} components, expected {expected}",
                observable_name=self.name,
            )

    def _reserve(self, n_components: int) -> None:
        if self._n_components is None:
            self._n_components = n_components
            self._values = np.empty((_INITIAL_CAPACITY, n_components), dtype=float)
            self._indices = np.empty(_INITIAL_CAPACITY, dtype=np.int64)
            self._progress = np.empty(_INITIAL_CAPACITY, dtype=float)
        elif self._size == self._values.shape[0]:
            capacity = 2 * self._values.shape[0]
            values = np.empty((capacity, n_components), dtype=float)
            values[: self._size] = self._values[: self._size]
            indices = np.empty(capacity, dtype=np.int64)
            indices[: self._size] = self._indices[: self._size]
            progress = np.empty(capacity, dtype=float)
            progress[: self._size] = self._progress[: self._size]
            self._values, self._indices, self._progress = values, indices, progress

    def append(self, tick: SampleTick, values: np.ndarray) -> None:
        self.check_compatible(values)
        self._reserve(values.size)
        self._values[self._size] = values
        self._indices[self._size] = tick.sample_index
        self._progress[self._size] = tick.progress
        self._size += 1

    @staticmethod
    def _view(arr: np.ndarray) -> np.ndarray:
        view = arr.view()
        view.flags.writeable = False
        return view

    @property
    def values(self) -> np.ndarray:
        """Sampled values, shape ``(n_samples, n_components)``."""
        if self._n_components is None:
            return np.empty((0, 0), dtype=float)
        return self._view(self._values[: self._size])

    @property
    def sample_indices(self) -> np.ndarray:
        return self._view(self._indices[: self._size])

    @property
    def progress(self) -> np.ndarray:
        return self._view(self._progress[: self._size])

    def component(self, index: int) -> np.ndarray:
        """1-D view of a single component across all samples."""
        if self._n_components is None:
            return np.empty(0, dtype=float)
        if not 0 <= index < self._n_components:
            raise IndexError(
                f"Component {index} out of range for {self.name!r} with {self._n_components} components"
            )
        return self._view(self._values[: self._size, index])


@dataclass(frozen=True)
class TrajectoryFrame(Generic[ConfigT]):
    sample_index: int
    progress: float
    configuration: ConfigT


class Trajectory(Generic[ConfigT]):
    """Append-only sequence of independently owned configuration snapshots."""

    def __init__(self) -> None:
        self._frames: list[TrajectoryFrame[ConfigT]] = []

    def append(self, frame: TrajectoryFrame[ConfigT]) -> None:
        self._frames.append(frame)

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[TrajectoryFrame[ConfigT]]:
        return iter(tuple(self._frames))

    def __getitem__(self, index: int) -> TrajectoryFrame[ConfigT]:
        return self._frames[index]


@dataclass(frozen=True)
class SamplerResults(Generic[ConfigT]):
    """Sampled data handed to an external results writer at the end of a run."""

    series: Mapping[str, SampleSeries]
    trajectory: tuple[TrajectoryFrame[ConfigT], ...]
    n_samples: int

    def to_frame(self) -> pd.DataFrame:
        """Long-form table with one row per (sample, observable, component)."""
        frames = []
        for name, series in self.series.items():
            if len(series) == 0:
                continue
            n_comp = series.n_components or 0
            labels = (
                list(series.component_names)
                if series.component_names is not None
                else [str(i) for i in range(n_comp)]
            )
            frames.append(
                pd.DataFrame(
                    {
                        "sample_index": np.repeat(series.sample_indices, n_comp),
                        "progress": np.repeat(series.progress, n_comp),
                        "observable": name,
                        "component": np.tile(labels, len(series)),
                        "value": series.values.reshape(-1),
                    }
                )
            )
        if not frames:
            return pd.DataFrame(columns=["sample_index", "progress", "observable", "component", "value"])
        return pd.concat(frames, ignore_index=True)


class Sampler(Generic[ConfigT]):
    """Evaluates the requested observables at scheduled ticks and stores the results.

    A sample event is all-or-nothing: every observable is evaluated (and the
    trajectory snapshot taken) before anything is appended, so all series
    always hold the same number of samples.

    Args:
        registry: Shared, read-only observable registry.
        params: Sampling parameters; every name in ``sampler_names`` must be
            registered, otherwise ConfigurationError is raised here.
    """

    def __init__(self, registry: ObservableRegistry, params: SamplingParams) -> None:
        registry.validate_names(params.sampler_names)
        self.registry = registry
        self.params = params
        self._functions: tuple[ObservableFunction, ...] = tuple(
            registry.lookup(name) for name in params.sampler_names
        )
        self._series: dict[str, SampleSeries] = {
            f.name: SampleSeries(f.name, f.component_names) for f in self._functions
        }
        self._trajectory: Trajectory[Any] = Trajectory()
        self._n_samples = 0
        self._closed = False

    @property
    def n_samples(self) -> int:
        return self._n_samples

    @property
    def names(self) -> tuple[str, ...]:
        return self.params.sampler_names

    @property
    def trajectory(self) -> Trajectory[Any]:
        return self._trajectory

    def series(self, name: str) -> SampleSeries:
        try:
            return self._series[name]
        except KeyError:
            raise KeyError(f"{name!r} is not sampled; sampled observables: {list(self._series)}") from None

    def has_series(self, name: str) -> bool:
        return name in self._series

    def sample(self, state: State[ConfigT], tick: SampleTick) -> None:
        """Record one sample event for ``state`` at ``tick``.

        Raises:
            EvaluationError: An evaluator failed or returned a value of the
                wrong shape. Nothing from this event is recorded.
        """
        if self._closed:
            raise RuntimeError("Sampler results were already finalized; no further samples allowed")

        pending: list[tuple[SampleSeries, np.ndarray]] = []
        for function in self._functions:
            try:
                values = function(state)
            except Exception as exc:
                logger.warning(
                    "Aborting sample %d: observable %r failed", tick.sample_index, function.name
                )
                raise EvaluationError(
                    f"Evaluating observable {function.name!r} failed at sample {tick.sample_index} "
                    f"(progress={tick.progress}): {exc}",
                    observable_name=function.name,
                ) from exc
            series = self._series[function.name]
            series.check_compatible(values)
            pending.append((series, values.copy()))

        frame = None
        if self.params.sample_trajectory:
            try:
                snapshot = snapshot_configuration(state.configuration)
            except Exception as exc:
                raise EvaluationError(
                    f"Snapshot of the configuration failed at sample {tick.sample_index}: {exc}"
                ) from exc
            frame = TrajectoryFrame(tick.sample_index, tick.progress, snapshot)

        for series, values in pending:
            series.append(tick, values)
        if frame is not None:
            self._trajectory.append(frame)
        self._n_samples += 1

    def sample_due(self, state: State[ConfigT], progress, scheduler: SampleScheduler) -> list[SampleTick]:
        """Poll ``scheduler`` at ``progress`` and record every tick that is due."""
        ticks = scheduler.poll(progress)
        for tick in ticks:
            self.sample(state, tick)
        return ticks

    def finalize(self) -> SamplerResults[ConfigT]:
        """Close the sampler and hand over its data."""
        self._closed = True
        return SamplerResults(
            series=MappingProxyType(dict(self._series)),
            trajectory=tuple(self._trajectory),
            n_samples=self._n_samples,
        )
