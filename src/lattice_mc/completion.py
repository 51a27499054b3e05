"""Completion checking: cutoffs plus automatic convergence of sampled observables."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import CompletionCheckParams, ConvergenceCriterion, CutoffParams
from .errors import ConfigurationError, EvaluationError
from .sampler import Sampler, SampleSeries
from .state import State
from .statistics import BasicStatistics, calc_statistics, check_equilibration

logger = logging.getLogger(__name__)


class CompletionStatus(Enum):
    """Verdict of a completion check.

    ``CUTOFF_REACHED`` means the run was stopped by a maximum limit before
    convergence was established; its results may be statistically unreliable.
    """

    NOT_COMPLETE = "not_complete"
    CONVERGED = "converged"
    CUTOFF_REACHED = "cutoff_reached"


@dataclass(frozen=True)
class CriterionCheckResult:
    """Outcome of one criterion for one observable component.

    ``resolved`` is False when there is not yet enough data to decide (fewer
    than two usable samples); an unresolved criterion is never converged.
    """

    criterion: ConvergenceCriterion
    label: str
    component_index: Optional[int]
    resolved: bool
    is_equilibrated: bool
    is_converged: bool
    statistics: Optional[BasicStatistics] = None

    @property
    def mean(self) -> Optional[float]:
        return None if self.statistics is None else self.statistics.mean

    @property
    def half_width(self) -> Optional[float]:
        return None if self.statistics is None else self.statistics.half_width


@dataclass(frozen=True)
class CutoffCheck:
    """Names of the cutoff limits not yet reached (minimums) or exceeded (maximums)."""

    below_minimum: tuple[str, ...] = ()
    reached_maximum: tuple[str, ...] = ()


@dataclass(frozen=True)
class CompletionCheckResult:
    is_complete: bool
    reason: CompletionStatus
    count: int
    n_samples: int
    convergence_checked: bool
    per_criterion_detail: tuple[CriterionCheckResult, ...] = ()
    equilibration_index: Optional[int] = None
    cutoff: CutoffCheck = CutoffCheck()

    @property
    def all_converged(self) -> bool:
        return bool(self.per_criterion_detail) and all(d.is_converged for d in self.per_criterion_detail)


def check_cutoffs(
    cutoff: CutoffParams,
    count: int,
    n_samples: int,
    time: Optional[float] = None,
    clocktime: Optional[float] = None,
) -> CutoffCheck:
    """Compare the run's progress against every configured limit.

    Time limits are only applied when the corresponding value is supplied.
    """
    values = {"count": count, "sample": n_samples, "time": time, "clocktime": clocktime}
    below: list[str] = []
    reached: list[str] = []
    for key, value in values.items():
        if value is None:
            continue
        lo = getattr(cutoff, f"min_{key}")
        hi = getattr(cutoff, f"max_{key}")
        if lo is not None and value < lo:
            below.append(f"min_{key}")
        if hi is not None and value >= hi:
            reached.append(f"max_{key}")
    return CutoffCheck(below_minimum=tuple(below), reached_maximum=tuple(reached))


class CompletionChecker:
    """Decides, tick by tick, whether a run is complete.

    Cutoffs are evaluated on every call. Convergence is evaluated only when
    ``count >= check_begin`` and ``(count - check_begin) % check_frequency ==
    0``. Once a run is complete the checker is terminal: later calls return
    the same result.

    With no criteria configured a run never converges and only a maximum
    cutoff ends it.
    """

    def __init__(self, params: CompletionCheckParams) -> None:
        self.params = params
        self._final: Optional[CompletionCheckResult] = None
        self._last_detail: tuple[CriterionCheckResult, ...] = ()
        self._last_equilibration: Optional[int] = None
        self.n_checks = 0

    @property
    def is_complete(self) -> bool:
        return self._final is not None

    @property
    def result(self) -> Optional[CompletionCheckResult]:
        return self._final

    def validate_sampler(self, sampler: Sampler) -> None:
        """Raise ConfigurationError unless every criterion refers to a sampled component."""
        unsampled = [c.observable_name for c in self.params.criteria if not sampler.has_series(c.observable_name)]
        if unsampled:
            raise ConfigurationError(
                f"Convergence criteria refer to observables that are not sampled: {unsampled}\n"
                f"Sampled observables: {list(sampler.names)}"
            )
        for criterion in self.params.criteria:
            if criterion.component is None:
                continue
            function = sampler.registry.lookup(criterion.observable_name)
            function.component_index(criterion.component)

    def validate_components(self, sampler: Sampler, state: Optional[State] = None) -> None:
        """Raise ConfigurationError for a component index beyond its observable's width.

        The width of an observable without component names is taken from its
        series once sampled. Before that it is measured by evaluating the
        observable on ``state`` (nothing is recorded); without a state such
        criteria are skipped.
        """
        for criterion in self.params.criteria:
            if criterion.component is None:
                continue
            function = sampler.registry.lookup(criterion.observable_name)
            index = function.component_index(criterion.component)
            width = sampler.series(criterion.observable_name).n_components
            if width is None and function.component_names is None and state is not None:
                try:
                    width = function(state).size
                except Exception as exc:
                    raise EvaluationError(
                        f"Evaluating observable {function.name!r} on the initial state failed: {exc}",
                        observable_name=function.name,
                    ) from exc
            if width is not None and index >= width:
                raise ConfigurationError(
                    f"Component {criterion.component!r} out of range for {criterion.observable_name!r} "
                    f"with {width} components"
                )

    def is_check_due(self, count: int) -> bool:
        begin = self.params.check_begin
        return count >= begin and (count - begin) % self.params.check_frequency == 0

    def check(
        self,
        sampler: Sampler,
        count: int,
        time: Optional[float] = None,
        clocktime: Optional[float] = None,
    ) -> CompletionCheckResult:
        """Return the completion verdict at progress ``count``.

        Args:
            sampler: Sampler holding this run's series.
            count: Progress counter (passes or steps) of the run.
            time: Simulated time, for time cutoffs.
            clocktime: Elapsed wall-clock seconds measured by the caller.
        """
        if self._final is not None:
            return self._final

        n_samples = sampler.n_samples
        cutoff = check_cutoffs(self.params.cutoff, count, n_samples, time, clocktime)

        if cutoff.reached_maximum:
            result = CompletionCheckResult(
                is_complete=True,
                reason=CompletionStatus.CUTOFF_REACHED,
                count=count,
                n_samples=n_samples,
                convergence_checked=False,
                per_criterion_detail=self._last_detail,
                equilibration_index=self._last_equilibration,
                cutoff=cutoff,
            )
            logger.warning(
                "Run stopped by cutoff %s at count=%d with %d samples before convergence",
                ", ".join(cutoff.reached_maximum),
                count,
                n_samples,
            )
            self._final = result
            return result

        if not self.is_check_due(count):
            return CompletionCheckResult(
                is_complete=False,
                reason=CompletionStatus.NOT_COMPLETE,
                count=count,
                n_samples=n_samples,
                convergence_checked=False,
                per_criterion_detail=self._last_detail,
                equilibration_index=self._last_equilibration,
                cutoff=cutoff,
            )

        detail, equilibration_index = self._check_convergence(sampler)
        self.n_checks += 1
        self._last_detail = detail
        self._last_equilibration = equilibration_index
        converged = bool(detail) and all(d.is_converged for d in detail)
        complete = converged and not cutoff.below_minimum

        logger.debug(
            "Convergence check %d at count=%d: %d/%d criteria converged",
            self.n_checks,
            count,
            sum(d.is_converged for d in detail),
            len(detail),
        )

        result = CompletionCheckResult(
            is_complete=complete,
            reason=CompletionStatus.CONVERGED if complete else CompletionStatus.NOT_COMPLETE,
            count=count,
            n_samples=n_samples,
            convergence_checked=True,
            per_criterion_detail=detail,
            equilibration_index=equilibration_index,
            cutoff=cutoff,
        )
        if complete:
            logger.info("Run converged at count=%d with %d samples", count, n_samples)
            self._final = result
        return result

    def _component_keys(self, criterion: ConvergenceCriterion, series: SampleSeries, sampler: Sampler) -> list[int]:
        if criterion.component is not None:
            function = sampler.registry.lookup(criterion.observable_name)
            index = function.component_index(criterion.component)
            if series.n_components is not None and index >= series.n_components:
                raise ConfigurationError(
                    f"Component {criterion.component!r} out of range for {criterion.observable_name!r} "
                    f"with {series.n_components} components"
                )
            return [index]
        if series.n_components is None:
            return []
        return list(range(series.n_components))

    @staticmethod
    def _label(criterion: ConvergenceCriterion, series: SampleSeries, index: Optional[int]) -> str:
        if index is None:
            return criterion.label
        if series.component_names is not None:
            return f"{criterion.observable_name}[{series.component_names[index]}]"
        if criterion.component is None and series.n_components == 1:
            return criterion.observable_name
        return f"{criterion.observable_name}[{index}]"

    def _check_convergence(self, sampler: Sampler) -> tuple[tuple[CriterionCheckResult, ...], Optional[int]]:
        entries: list[tuple[ConvergenceCriterion, SampleSeries, Optional[int]]] = []
        for criterion in self.params.criteria:
            series = sampler.series(criterion.observable_name)
            indices = self._component_keys(criterion, series, sampler)
            if not indices:
                entries.append((criterion, series, None))
            for index in indices:
                entries.append((criterion, series, index))

        equilibrated: dict[int, bool] = {}
        start = 0
        if self.params.check_equilibration:
            for pos, (criterion, series, index) in enumerate(entries):
                if index is None or len(series) < 2:
                    continue
                eq = check_equilibration(series.component(index), criterion.precision)
                equilibrated[pos] = eq.is_equilibrated
                if eq.is_equilibrated:
                    start = max(start, eq.start_index)

        detail: list[CriterionCheckResult] = []
        for pos, (criterion, series, index) in enumerate(entries):
            label = self._label(criterion, series, index)
            data = series.component(index)[start:] if index is not None else None
            if data is None or data.size < 2:
                detail.append(
                    CriterionCheckResult(
                        criterion=criterion,
                        label=label,
                        component_index=index,
                        resolved=False,
                        is_equilibrated=False,
                        is_converged=False,
                    )
                )
                continue
            is_equilibrated = equilibrated.get(pos, True)
            statistics = calc_statistics(data, criterion.confidence, self.params.estimator)
            detail.append(
                CriterionCheckResult(
                    criterion=criterion,
                    label=label,
                    component_index=index,
                    resolved=True,
                    is_equilibrated=is_equilibrated,
                    is_converged=is_equilibrated and statistics.is_within(criterion.precision),
                    statistics=statistics,
                )
            )
        equilibration_index = start if self.params.check_equilibration else None
        return tuple(detail), equilibration_index
