"""Step-driven run loop assembling scheduler, sampler and completion checker."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Generic, Mapping, Optional

from tqdm import tqdm

from .campaign import IncrementalConditionsStateGenerator
from .completion import CompletionChecker, CompletionCheckResult
from .config import CompletionCheckParams, SamplingParams
from .errors import EvaluationError
from .observables import ObservableRegistry
from .sampler import Sampler, SamplerResults
from .schedule import SampleScheduler
from .state import ConditionValue, ConfigT, State

logger = logging.getLogger(__name__)

# Advances state.configuration in place by one pass / event. Returns the new
# simulated time in time-sampling mode; the return value is ignored otherwise.
StepFunction = Callable[[State[Any]], Optional[float]]
Clock = Callable[[], float]


def _get_verbosity() -> int:
    """Get verbosity level from environment: 0=quiet, 1=normal, 2=verbose."""
    return int(os.environ.get("LATTICE_MC_VERBOSITY", "1"))


@dataclass(frozen=True)
class RunResults(Generic[ConfigT]):
    initial_conditions: Mapping[str, ConditionValue]
    final_state: State[ConfigT]
    samples: SamplerResults[ConfigT]
    completion: CompletionCheckResult
    count: int
    time: Optional[float]
    n_failed_samples: int = 0


class MonteCarloRun(Generic[ConfigT]):
    """One run over one initial state.

    Each run owns its scheduler, sampler and completion checker; only the
    observable registry is shared, read-only, between runs.

    Criterion component selectors are checked at construction; observables
    without component names are evaluated once on the initial state for this.

    Args:
        initial_state: State the run starts from. Its configuration is
            advanced in place by the step function.
        registry: Observable registry (frozen during setup).
        sampling_params: What to sample and when.
        completion_params: When the run is complete.
        scheduler: Optional pre-positioned scheduler, e.g. when resuming.
        skip_failed_samples: Log and continue on EvaluationError instead of
            propagating it.
    """

    def __init__(
        self,
        initial_state: State[ConfigT],
        registry: ObservableRegistry,
        sampling_params: SamplingParams,
        completion_params: CompletionCheckParams,
        scheduler: Optional[SampleScheduler] = None,
        skip_failed_samples: bool = False,
    ) -> None:
        registry.freeze()
        self.state = initial_state
        self.sampling_params = sampling_params
        self.sampler: Sampler[ConfigT] = Sampler(registry, sampling_params)
        self.scheduler = scheduler or SampleScheduler(sampling_params)
        self.checker = CompletionChecker(completion_params)
        self.checker.validate_sampler(self.sampler)
        self.checker.validate_components(self.sampler, initial_state)
        self.skip_failed_samples = skip_failed_samples
        self.count = 0
        self.time: Optional[float] = None if sampling_params.by_pass else 0.0
        self.n_failed_samples = 0

    def advance(
        self,
        count: int,
        time: Optional[float] = None,
        clocktime: Optional[float] = None,
    ) -> CompletionCheckResult:
        """Sample whatever is due at this tick, then check for completion."""
        if self.sampling_params.by_pass:
            progress: float = count
        else:
            if time is None:
                raise ValueError("Time-sampling runs need the simulated time at every tick")
            progress = time
        try:
            self.sampler.sample_due(self.state, progress, self.scheduler)
        except EvaluationError:
            if not self.skip_failed_samples:
                raise
            self.n_failed_samples += 1
            logger.warning("Skipping failed sample event at count=%d", count, exc_info=True)
        return self.checker.check(self.sampler, count, time=time, clocktime=clocktime)

    def run(self, step: StepFunction, clock: Optional[Clock] = None) -> RunResults[ConfigT]:
        """Call ``step`` until the completion checker reports completion.

        Args:
            step: External kernel advancing the configuration by one pass/event.
            clock: Optional wall-clock source, enabling clocktime cutoffs.
        """
        start = clock() if clock is not None else None

        def elapsed() -> Optional[float]:
            return None if clock is None else clock() - start

        logger.info("Starting run at conditions %s", dict(self.state.conditions))
        result = self.advance(self.count, self.time, elapsed())
        while not result.is_complete:
            new_time = step(self.state)
            self.count += 1
            if not self.sampling_params.by_pass:
                if new_time is None:
                    raise ValueError("Step function must return the simulated time in time-sampling mode")
                self.time = float(new_time)
            result = self.advance(self.count, self.time, elapsed())

        logger.info(
            "Run finished: %s at count=%d after %d samples",
            result.reason.value,
            self.count,
            self.sampler.n_samples,
        )
        return RunResults(
            initial_conditions=self.state.conditions,
            final_state=self.state,
            samples=self.sampler.finalize(),
            completion=result,
            count=self.count,
            time=self.time,
            n_failed_samples=self.n_failed_samples,
        )


def run_campaign(
    generator: IncrementalConditionsStateGenerator[ConfigT],
    registry: ObservableRegistry,
    sampling_params: SamplingParams,
    completion_params: CompletionCheckParams,
    step: StepFunction,
    clock: Optional[Clock] = None,
    skip_failed_samples: bool = False,
) -> list[RunResults[ConfigT]]:
    """Run every state of ``generator`` in order, feeding final states forward."""
    registry.freeze()
    verbosity = _get_verbosity()
    results: list[RunResults[ConfigT]] = []
    previous: Optional[State[ConfigT]] = None

    state_iter = tqdm(
        range(generator.n_generated, generator.n_states),
        desc="Running states",
        disable=verbosity == 0,
        leave=False,
    )
    for _ in state_iter:
        state = generator.next_state(previous)
        run = MonteCarloRun(
            state,
            registry,
            sampling_params,
            completion_params,
            skip_failed_samples=skip_failed_samples,
        )
        run_results = run.run(step, clock=clock)
        results.append(run_results)
        previous = run_results.final_state
        if verbosity >= 2:
            state_iter.set_postfix({"last": run_results.completion.reason.value})

    return results
