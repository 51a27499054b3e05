"""Run control for lattice Monte Carlo simulations.

Drives long stochastic runs of lattice configurations through a sequence of
conditions: decides which passes to record, stores the sampled observables,
and decides when the run has gathered enough data to trust the result.

Main Components:
    - ObservableRegistry: name -> pure evaluator ``State -> vector``
    - SamplingParams / SampleScheduler: which progress values get sampled
    - Sampler: append-only time series of the sampled observables
    - CompletionChecker: cutoffs and automatic convergence
    - IncrementalConditionsStateGenerator: series of initial states for a sweep
    - MonteCarloRun / run_campaign: the step-driven loop tying these together

Quick Start:
    >>> import numpy as np
    >>> from lattice_mc import (
    ...     CompletionCheckParams, ConvergenceCriterion, CutoffParams,
    ...     MonteCarloRun, SamplingParams, State)
    >>> from lattice_mc.synthetic import LatticeConfiguration, make_ar1_step, make_synthetic_registry
    >>>
    >>> run = MonteCarloRun(
    ...     State(LatticeConfiguration.uniform(64), {"temperature": 100.0, "field": 0.0}),
    ...     make_synthetic_registry(),
    ...     SamplingParams(sampler_names=("mean_value",)),
    ...     CompletionCheckParams(
    ...         criteria=(ConvergenceCriterion("mean_value", precision=0.01),),
    ...         check_begin=10, check_frequency=10,
    ...         cutoff=CutoffParams(min_count=100, max_count=100000)),
    ... )
    >>> results = run.run(make_ar1_step(np.random.default_rng(0)))
    >>> print(results.completion.reason)
"""

from .campaign import IncrementalConditionsStateGenerator
from .completion import (
    CompletionChecker,
    CompletionCheckResult,
    CompletionStatus,
    CriterionCheckResult,
)
from .config import (
    CompletionCheckParams,
    ConvergenceCriterion,
    CutoffParams,
    SampleMethod,
    SampleMode,
    SamplingParams,
)
from .errors import ConfigurationError, EvaluationError, MonteError, RangeError
from .observables import ObservableFunction, ObservableRegistry
from .runner import MonteCarloRun, RunResults, run_campaign
from .sampler import Sampler, SamplerResults, SampleSeries
from .schedule import SampleScheduler, SampleTick, sample_target, schedule_index
from .state import State, make_canonical_conditions

__all__ = [
    "IncrementalConditionsStateGenerator",
    "CompletionChecker",
    "CompletionCheckResult",
    "CompletionStatus",
    "CriterionCheckResult",
    "CompletionCheckParams",
    "ConvergenceCriterion",
    "CutoffParams",
    "SampleMethod",
    "SampleMode",
    "SamplingParams",
    "ConfigurationError",
    "EvaluationError",
    "MonteError",
    "RangeError",
    "ObservableFunction",
    "ObservableRegistry",
    "MonteCarloRun",
    "RunResults",
    "run_campaign",
    "Sampler",
    "SamplerResults",
    "SampleSeries",
    "SampleScheduler",
    "SampleTick",
    "sample_target",
    "schedule_index",
    "State",
    "make_canonical_conditions",
]
