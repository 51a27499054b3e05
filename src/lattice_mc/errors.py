"""Exception types raised by the lattice_mc run-control core."""

from __future__ import annotations


class MonteError(Exception):
    """Base class for all lattice_mc errors."""


class ConfigurationError(MonteError, ValueError):
    """Invalid setup: unknown or duplicate observables, bad schedule or cutoff values.

    Raised eagerly while constructing parameters, registries, samplers and
    generators, before any simulation progress is made.
    """


class EvaluationError(MonteError, RuntimeError):
    """An observable evaluator failed during a sample event.

    The whole sample event is discarded; previously committed samples are
    left untouched.
    """

    def __init__(self, message: str, observable_name: str | None = None) -> None:
        super().__init__(message)
        self.observable_name = observable_name


class RangeError(MonteError, IndexError):
    """A state generator was asked for a state past its end."""
