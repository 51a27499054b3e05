"""Generation of a series of initial states by incrementing conditions."""

from __future__ import annotations

import logging
from typing import Generic, Mapping, Optional

from .errors import ConfigurationError, RangeError
from .state import (
    ConditionValue,
    ConfigT,
    State,
    freeze_conditions,
    increment_conditions,
    snapshot_configuration,
)

logger = logging.getLogger(__name__)


class IncrementalConditionsStateGenerator(Generic[ConfigT]):
    """Produces ``n_states`` initial states with conditions ``initial + i * increment``.

    The conditions of every state are fixed at construction. The
    configuration of state ``i > 0`` is the final configuration of run
    ``i - 1`` when ``dependent_runs`` is set, otherwise a fresh copy of the
    original initial configuration. States must be requested in order, each
    call passing the final state of the run over the previous one.

    ``next_state(previous_final_state)`` is the generator's ``next``
    operation; ``has_next()`` reports whether another state remains.

    Example:
        >>> generator = IncrementalConditionsStateGenerator(
        ...     initial_state, {"T": 10.0}, n_states=3, dependent_runs=False)
        >>> while generator.has_next():
        ...     state = generator.next_state()
    """

    def __init__(
        self,
        initial_state: State[ConfigT],
        conditions_increment: Mapping[str, ConditionValue],
        n_states: int,
        dependent_runs: bool = True,
    ) -> None:
        if isinstance(n_states, bool) or int(n_states) != n_states or n_states <= 0:
            raise ConfigurationError(f"n_states must be a positive integer, got {n_states!r}")
        self.initial_state = initial_state
        self.conditions_increment = freeze_conditions(conditions_increment)
        self.n_states = int(n_states)
        self.dependent_runs = bool(dependent_runs)
        self._conditions = tuple(
            increment_conditions(initial_state.conditions, self.conditions_increment, i)
            for i in range(self.n_states)
        )
        self._index = 0

    @property
    def n_generated(self) -> int:
        return self._index

    def conditions_sequence(self) -> tuple[Mapping[str, ConditionValue], ...]:
        """Conditions of every state the generator will produce, in order."""
        return self._conditions

    def has_next(self) -> bool:
        return self._index < self.n_states

    def next_state(self, previous_final_state: Optional[State[ConfigT]] = None) -> State[ConfigT]:
        """Return the next initial state and advance the cursor.

        Args:
            previous_final_state: Final state of the run over the previously
                generated state. Required for dependent runs after the first
                state; ignored otherwise.

        Raises:
            RangeError: All ``n_states`` states were already generated.
        """
        if not self.has_next():
            raise RangeError(f"All {self.n_states} states have already been generated")
        i = self._index
        if self.dependent_runs and i > 0:
            if previous_final_state is None:
                raise ValueError(
                    f"State {i} of a dependent campaign needs the final state of run {i - 1}"
                )
            configuration = snapshot_configuration(previous_final_state.configuration)
        else:
            configuration = snapshot_configuration(self.initial_state.configuration)
        state = State(configuration=configuration, conditions=self._conditions[i])
        self._index += 1
        logger.debug("Generated state %d/%d: %s", i + 1, self.n_states, dict(state.conditions))
        return state
