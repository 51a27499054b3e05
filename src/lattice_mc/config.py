"""Configuration records for sampling and completion checking."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from .errors import ConfigurationError


class SampleMode(Enum):
    """What the progress counter measures."""

    BY_PASS = "by_pass"
    BY_TIME = "by_time"


class SampleMethod(Enum):
    """How sample targets are spaced along the progress counter."""

    LINEAR = "linear"
    LOG = "log"


ESTIMATORS = ("batch_means", "ar1")


def _parse_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip().upper()
        if key in enum_cls.__members__:
            return enum_cls[key]
        for member in enum_cls:
            if member.value == value.strip().lower():
                return member
    raise ConfigurationError(
        f"Invalid {enum_cls.__name__}: {value!r}. Use one of {[m.name for m in enum_cls]}"
    )


def _finite(name: str, value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(result):
        raise ConfigurationError(f"{name} must be finite, got {value!r}")
    return result


def _field_names(cls) -> set[str]:
    return {f.name for f in fields(cls)}


def _reject_unknown(kind: str, data: Mapping[str, Any], known: set[str]) -> None:
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown {kind} parameter(s): {unknown}")


@dataclass(frozen=True)
class SamplingParams:
    """What to sample and when.

    Linear sampling fires when ``progress == a + b*k``; the default
    ``(0, 1)`` samples after every pass and ``(10, 2)`` samples every second
    pass starting with the tenth. Log sampling fires when
    ``progress == a + b**(k - c)``: ``(0, 10, 0)`` samples at passes 1, 10,
    100, ... and in time mode ``(0.0, 10.0, 1.0)`` samples at 0.1, 1.0, 10.0,
    ... Log sampling is mostly useful with time sampling in kinetic runs.

    Attributes:
        sample_mode: Progress counted in passes (integer) or simulated time.
        sample_method: Linear or logarithmic spacing of sample targets.
        schedule_params: ``(a, b)`` for linear; ``(a, b)`` or ``(a, b, c)`` for log.
        sampler_names: Observables to evaluate at each sample, in order.
        sample_trajectory: Also keep a deep copy of the configuration at each sample.
    """

    sample_mode: SampleMode = SampleMode.BY_PASS
    sample_method: SampleMethod = SampleMethod.LINEAR
    schedule_params: tuple[float, ...] = (0, 1)
    sampler_names: tuple[str, ...] = ()
    sample_trajectory: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "sample_mode", _parse_enum(SampleMode, self.sample_mode))
        object.__setattr__(self, "sample_method", _parse_enum(SampleMethod, self.sample_method))

        if isinstance(self.sampler_names, str):
            raise ConfigurationError(
                f"sampler_names must be a sequence of names, got the string {self.sampler_names!r}"
            )
        names = tuple(str(name) for name in self.sampler_names)
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate sampler names: {duplicates}")
        object.__setattr__(self, "sampler_names", names)

        params = tuple(_finite(f"schedule_params[{i}]", p) for i, p in enumerate(self.schedule_params))
        if self.sample_method is SampleMethod.LINEAR:
            if len(params) != 2:
                raise ConfigurationError(
                    f"Linear sampling takes schedule_params (a, b), got {len(params)} values"
                )
            if params[1] <= 0:
                raise ConfigurationError(f"Linear sampling requires b > 0, got b={params[1]}")
        else:
            if len(params) not in (2, 3):
                raise ConfigurationError(
                    f"Log sampling takes schedule_params (a, b) or (a, b, c), got {len(params)} values"
                )
            if params[1] <= 1:
                raise ConfigurationError(f"Log sampling requires b > 1, got b={params[1]}")
            if len(params) == 2:
                params = params + (0.0,)
        object.__setattr__(self, "schedule_params", params)
        object.__setattr__(self, "sample_trajectory", bool(self.sample_trajectory))

    @property
    def by_pass(self) -> bool:
        return self.sample_mode is SampleMode.BY_PASS

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SamplingParams":
        """Build from a plain configuration record (e.g. parsed JSON)."""
        _reject_unknown("sampling", data, _field_names(cls))
        kwargs = dict(data)
        for key in ("schedule_params", "sampler_names"):
            if key in kwargs:
                kwargs[key] = tuple(kwargs[key])
        return cls(**kwargs)


@dataclass(frozen=True)
class ConvergenceCriterion:
    """Requested precision for the mean of one observable (or one component of it).

    Attributes:
        observable_name: Name of a sampled observable.
        component: Component index or component name; ``None`` requires every
            component of the observable to converge.
        precision: Largest acceptable confidence-interval half-width of the mean.
        confidence: Confidence level of the interval, in (0, 1).
    """

    observable_name: str
    precision: float
    component: Optional[int | str] = None
    confidence: float = 0.95

    def __post_init__(self) -> None:
        if not self.observable_name:
            raise ConfigurationError("ConvergenceCriterion needs an observable name")
        precision = _finite("precision", self.precision)
        if precision <= 0:
            raise ConfigurationError(
                f"precision must be positive for {self.observable_name!r}, got {precision}"
            )
        confidence = _finite("confidence", self.confidence)
        if not (0.0 < confidence < 1.0):
            raise ConfigurationError(
                f"confidence must lie in (0, 1) for {self.observable_name!r}, got {confidence}"
            )
        if isinstance(self.component, bool):
            raise ConfigurationError("component must be an index or a name, not a bool")
        if isinstance(self.component, int) and self.component < 0:
            raise ConfigurationError(f"component index must be >= 0, got {self.component}")
        object.__setattr__(self, "precision", precision)
        object.__setattr__(self, "confidence", confidence)

    @property
    def label(self) -> str:
        if self.component is None:
            return self.observable_name
        return f"{self.observable_name}[{self.component}]"


def _optional_int(name: str, value) -> Optional[int]:
    if value is None:
        return None
    try:
        as_int = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc
    if isinstance(value, bool) or as_int != value:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    return as_int


def _optional_float(name: str, value) -> Optional[float]:
    return None if value is None else _finite(name, value)


@dataclass(frozen=True)
class CutoffParams:
    """Hard floor/ceiling on run length, independent of convergence.

    ``count`` is the progress counter handed to the checker (passes or steps),
    ``sample`` the number of recorded samples, ``time`` simulated time and
    ``clocktime`` an elapsed wall-clock value supplied by the caller. Any
    limit left as ``None`` is not applied.
    """

    min_count: Optional[int] = None
    max_count: Optional[int] = None
    min_sample: Optional[int] = None
    max_sample: Optional[int] = None
    min_time: Optional[float] = None
    max_time: Optional[float] = None
    min_clocktime: Optional[float] = None
    max_clocktime: Optional[float] = None

    def __post_init__(self) -> None:
        for key in ("count", "sample"):
            for bound in ("min", "max"):
                attr = f"{bound}_{key}"
                value = _optional_int(attr, getattr(self, attr))
                if value is not None and value < 0:
                    raise ConfigurationError(f"{attr} must be >= 0, got {value}")
                object.__setattr__(self, attr, value)
        for key in ("time", "clocktime"):
            for bound in ("min", "max"):
                attr = f"{bound}_{key}"
                object.__setattr__(self, attr, _optional_float(attr, getattr(self, attr)))
        for key in ("count", "sample", "time", "clocktime"):
            lo = getattr(self, f"min_{key}")
            hi = getattr(self, f"max_{key}")
            if lo is not None and hi is not None and lo > hi:
                raise ConfigurationError(
                    f"Invalid cutoff: min_{key}={lo} is greater than max_{key}={hi}"
                )


@dataclass(frozen=True)
class CompletionCheckParams:
    """When and how to decide that a run is complete.

    Convergence is evaluated when ``count >= check_begin`` and
    ``(count - check_begin) % check_frequency == 0``; cutoffs are evaluated on
    every call.

    Attributes:
        criteria: Convergence criteria that must all be satisfied.
        check_begin: First count at which convergence is evaluated.
        check_frequency: Count interval between convergence evaluations.
        cutoff: Minimum / maximum run-length limits.
        estimator: ``"batch_means"`` or ``"ar1"``, the correlated-series
            estimator used for confidence intervals.
        check_equilibration: Discard the non-equilibrated head of each series
            before computing statistics.
    """

    criteria: tuple[ConvergenceCriterion, ...] = ()
    check_begin: int = 0
    check_frequency: int = 1
    cutoff: CutoffParams = field(default_factory=CutoffParams)
    estimator: str = "batch_means"
    check_equilibration: bool = True

    def __post_init__(self) -> None:
        criteria = tuple(self.criteria)
        for criterion in criteria:
            if not isinstance(criterion, ConvergenceCriterion):
                raise ConfigurationError(f"Expected ConvergenceCriterion, got {type(criterion)}")
        keys = [(c.observable_name, c.component) for c in criteria]
        duplicates = sorted({str(k) for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate convergence criteria: {duplicates}")
        object.__setattr__(self, "criteria", criteria)

        check_begin = _optional_int("check_begin", self.check_begin)
        if check_begin is None or check_begin < 0:
            raise ConfigurationError(f"check_begin must be an integer >= 0, got {self.check_begin!r}")
        check_frequency = _optional_int("check_frequency", self.check_frequency)
        if check_frequency is None or check_frequency <= 0:
            raise ConfigurationError(
                f"check_frequency must be an integer > 0, got {self.check_frequency!r}"
            )
        object.__setattr__(self, "check_begin", check_begin)
        object.__setattr__(self, "check_frequency", check_frequency)

        if not isinstance(self.cutoff, CutoffParams):
            raise ConfigurationError(f"cutoff must be CutoffParams, got {type(self.cutoff)}")
        if self.estimator not in ESTIMATORS:
            raise ConfigurationError(f"Unknown estimator {self.estimator!r}. Use one of {ESTIMATORS}")

    def observable_names(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for criterion in self.criteria:
            seen.setdefault(criterion.observable_name, None)
        return tuple(seen)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CompletionCheckParams":
        """Build from a plain configuration record.

        Criteria are given as dicts with keys ``name`` (or ``observable_name``),
        ``precision`` and optionally ``component`` and ``confidence``. Unknown
        keys at any level raise ConfigurationError.
        """
        kwargs = dict(data)
        _reject_unknown("completion check", kwargs, _field_names(cls))
        criteria: Iterable[Mapping[str, Any]] = kwargs.pop("criteria", ())
        parsed = []
        for entry in criteria:
            entry = dict(entry)
            _reject_unknown("convergence criterion", entry, _field_names(ConvergenceCriterion) | {"name"})
            name = entry.pop("name", None)
            alias = entry.pop("observable_name", None)
            name = name or alias
            parsed.append(ConvergenceCriterion(observable_name=name, **entry))
        cutoff = kwargs.pop("cutoff", None) or {}
        if not isinstance(cutoff, CutoffParams):
            _reject_unknown("cutoff", cutoff, _field_names(CutoffParams))
            cutoff = CutoffParams(**cutoff)
        return cls(criteria=tuple(parsed), cutoff=cutoff, **kwargs)
