"""Observable functions and the registry samplers look them up in."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Iterator, Mapping, Optional, Sequence

import numpy as np

from .errors import ConfigurationError
from .state import State

Evaluator = Callable[[State], "np.ndarray | Sequence[float] | float"]


@dataclass(frozen=True)
class ObservableFunction:
    """A named, pure evaluator turning a state into a vector of values.

    Attributes:
        name: Unique key used by ``SamplingParams.sampler_names`` and
            convergence criteria.
        description: Human-readable description of what is sampled.
        evaluator: ``State -> vector`` callable. Must be deterministic, must
            not mutate the state and must not keep references into it.
        component_names: Optional labels for the vector components, so that
            criteria may select e.g. ``"O"`` instead of index 2.
    """

    name: str
    description: str
    evaluator: Evaluator
    component_names: Optional[tuple[str, ...]] = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ConfigurationError(f"Observable name must be a non-empty string, got {self.name!r}")
        if not callable(self.evaluator):
            raise ConfigurationError(f"Evaluator for observable {self.name!r} is not callable")
        if self.component_names is not None:
            names = tuple(str(c) for c in self.component_names)
            if len(set(names)) != len(names):
                raise ConfigurationError(
                    f"Observable {self.name!r} has duplicate component names: {names}"
                )
            object.__setattr__(self, "component_names", names)

    def __call__(self, state: State) -> np.ndarray:
        return np.atleast_1d(np.asarray(self.evaluator(state), dtype=float))

    def component_index(self, component: int | str) -> int:
        """Resolve a component selector (index or name) to an index."""
        if isinstance(component, str):
            if self.component_names is None or component not in self.component_names:
                raise ConfigurationError(
                    f"Observable {self.name!r} has no component named {component!r}; "
                    f"known components: {self.component_names}"
                )
            return self.component_names.index(component)
        index = int(component)
        if index < 0:
            raise ConfigurationError(f"Component index must be >= 0, got {index}")
        if self.component_names is not None and index >= len(self.component_names):
            raise ConfigurationError(
                f"Component index {index} out of range for observable {self.name!r} "
                f"with {len(self.component_names)} components"
            )
        return index


class ObservableRegistry:
    """Name -> ObservableFunction map, built once per campaign.

    Registration happens during setup. After ``freeze()`` the registry is
    read-only and can be shared between concurrently running samplers.
    """

    def __init__(self, functions: Iterable[ObservableFunction] = ()) -> None:
        self._functions: dict[str, ObservableFunction] = {}
        self._frozen = False
        for function in functions:
            self.add(function)

    @classmethod
    def from_functions(cls, functions: Iterable[ObservableFunction]) -> "ObservableRegistry":
        """Build a frozen registry from externally supplied bindings."""
        registry = cls(functions)
        registry.freeze()
        return registry

    def add(self, function: ObservableFunction) -> ObservableFunction:
        if self._frozen:
            raise ConfigurationError(
                f"Cannot register {function.name!r}: registry is frozen after setup"
            )
        if function.name in self._functions:
            raise ConfigurationError(f"Observable {function.name!r} is already registered")
        self._functions[function.name] = function
        return function

    def register(
        self,
        name: str,
        description: str,
        evaluator: Evaluator,
        component_names: Optional[Sequence[str]] = None,
    ) -> ObservableFunction:
        names = tuple(component_names) if component_names is not None else None
        return self.add(ObservableFunction(name, description, evaluator, names))

    def freeze(self) -> None:
        if not self._frozen:
            self._functions = MappingProxyType(dict(self._functions))  # type: ignore[assignment]
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, name: str) -> ObservableFunction:
        try:
            return self._functions[name]
        except KeyError:
            raise ConfigurationError(
                f"No observable named {name!r}; registered: {sorted(self._functions)}"
            ) from None

    def validate_names(self, names: Iterable[str]) -> None:
        unknown = [name for name in names if name not in self._functions]
        if unknown:
            raise ConfigurationError(
                f"Unknown observable name(s): {unknown}\n"
                f"Registered observables: {sorted(self._functions)}"
            )

    def names(self) -> tuple[str, ...]:
        return tuple(self._functions)

    def as_mapping(self) -> Mapping[str, ObservableFunction]:
        return MappingProxyType(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)
