"""Simulation state: configuration payload plus named conditions."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Generic, Iterable, Mapping, TypeVar

import numpy as np

from .errors import ConfigurationError

ConfigT = TypeVar("ConfigT")

ConditionValue = float | np.ndarray


def snapshot_configuration(configuration: ConfigT) -> ConfigT:
    """Return an independent deep copy of a configuration payload.

    Payloads that know how to copy themselves expose ``snapshot()``; anything
    else goes through ``copy.deepcopy``.
    """
    snapshot = getattr(configuration, "snapshot", None)
    if callable(snapshot):
        return snapshot()
    return copy.deepcopy(configuration)


def _freeze_value(name: str, value) -> ConditionValue:
    if np.ndim(value) == 0:
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Condition {name!r} must be numeric, got {value!r}") from exc
    arr = np.array(value, dtype=float)
    if arr.ndim != 1:
        raise ConfigurationError(
            f"Condition {name!r} must be a scalar or 1-D vector, got shape {arr.shape}"
        )
    arr.setflags(write=False)
    return arr


def freeze_conditions(conditions: Mapping[str, object]) -> Mapping[str, ConditionValue]:
    """Copy ``conditions`` into an ordered read-only mapping of floats / 1-D arrays."""
    frozen = {str(name): _freeze_value(str(name), value) for name, value in conditions.items()}
    return MappingProxyType(frozen)


def increment_conditions(
    initial: Mapping[str, ConditionValue],
    increment: Mapping[str, ConditionValue],
    steps: int,
) -> Mapping[str, ConditionValue]:
    """Return ``initial + steps * increment`` componentwise.

    Both mappings must carry exactly the same names; the order of ``initial``
    is preserved.
    """
    missing = [name for name in initial if name not in increment]
    extra = [name for name in increment if name not in initial]
    if missing or extra:
        raise ConfigurationError(
            "Conditions increment must have the same names as the initial conditions.\n"
            f"Missing from increment: {missing}\n"
            f"Not in initial conditions: {extra}"
        )
    result: dict[str, ConditionValue] = {}
    for name, start in initial.items():
        delta = increment[name]
        if np.shape(start) != np.shape(delta):
            raise ConfigurationError(
                f"Condition {name!r} has shape {np.shape(start)} but its increment has "
                f"shape {np.shape(delta)}"
            )
        result[name] = np.asarray(start) + steps * np.asarray(delta)
    return freeze_conditions(result)


def make_canonical_conditions(
    temperature: float,
    components: Iterable[str],
    composition: Mapping[str, float],
) -> Mapping[str, ConditionValue]:
    """Build canonical-ensemble conditions: temperature, then one entry per component.

    Components are emitted in the order given by ``components``; every
    component needs a value in ``composition``.

    Example:
        >>> make_canonical_conditions(300.0, ["Zr", "Va", "O"], {"Zr": 2.0, "O": 0.01, "Va": 1.99})
        mappingproxy({'temperature': 300.0, 'Zr': 2.0, 'Va': 1.99, 'O': 0.01})
    """
    components = list(components)
    unknown = sorted(set(composition) - set(components))
    if unknown:
        raise ConfigurationError(f"Composition given for unknown components: {unknown}")
    missing = [name for name in components if name not in composition]
    if missing:
        raise ConfigurationError(f"No composition value for components: {missing}")
    if "temperature" in components:
        raise ConfigurationError("'temperature' cannot be used as a component name")
    conditions: dict[str, float] = {"temperature": float(temperature)}
    for name in components:
        conditions[name] = float(composition[name])
    return freeze_conditions(conditions)


def conditions_equal(lhs: Mapping[str, ConditionValue], rhs: Mapping[str, ConditionValue]) -> bool:
    if list(lhs) != list(rhs):
        return False
    return all(np.array_equal(lhs[name], rhs[name]) for name in lhs)


@dataclass(frozen=True)
class State(Generic[ConfigT]):
    """A configuration paired with the conditions it is simulated at.

    Attributes:
        configuration: Opaque payload owned by the caller. Evaluators read it,
            the run-control core never mutates it.
        conditions: Ordered name -> value mapping (temperature, composition
            components, ...). Stored read-only.
    """

    configuration: ConfigT
    conditions: Mapping[str, ConditionValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "conditions", freeze_conditions(self.conditions))

    def with_configuration(self, configuration: ConfigT) -> "State[ConfigT]":
        return State(configuration=configuration, conditions=self.conditions)
