"""Unit tests for observables.py module."""

import numpy as np
import pytest

from lattice_mc.config import SamplingParams
from lattice_mc.errors import ConfigurationError
from lattice_mc.observables import ObservableFunction, ObservableRegistry
from lattice_mc.sampler import Sampler
from lattice_mc.state import State


def scalar(state):
    return state.configuration


class TestObservableRegistry:
    """Test registration and lookup."""

    def test_register_and_lookup(self):
        """Test a registered observable can be looked up and evaluated."""
        registry = ObservableRegistry()
        registry.register("energy", "Energy per site", lambda s: [s.configuration * 2.0])
        function = registry.lookup("energy")
        assert function.description == "Energy per site"
        np.testing.assert_array_equal(function(State(1.5)), np.array([3.0]))

    def test_duplicate_name_rejected(self):
        """Test registering two observables under one name fails."""
        registry = ObservableRegistry()
        registry.register("energy", "first", scalar)
        with pytest.raises(ConfigurationError, match="already registered"):
            registry.register("energy", "second", scalar)

    def test_unknown_lookup_rejected(self):
        """Test looking up an absent name fails with ConfigurationError."""
        registry = ObservableRegistry()
        with pytest.raises(ConfigurationError, match="No observable named 'comp'"):
            registry.lookup("comp")

    def test_frozen_registry_rejects_registration(self):
        """Test no mutation is possible after setup."""
        registry = ObservableRegistry.from_functions([ObservableFunction("a", "a", scalar)])
        assert registry.frozen
        with pytest.raises(ConfigurationError, match="frozen"):
            registry.register("b", "b", scalar)
        assert registry.names() == ("a",)

    def test_validate_names_lists_unknown(self):
        registry = ObservableRegistry([ObservableFunction("a", "a", scalar)])
        with pytest.raises(ConfigurationError, match=r"\['b', 'c'\]"):
            registry.validate_names(["a", "b", "c"])

    def test_mapping_protocol(self):
        registry = ObservableRegistry(
            [ObservableFunction("a", "a", scalar), ObservableFunction("b", "b", scalar)]
        )
        assert "a" in registry
        assert "z" not in registry
        assert len(registry) == 2
        assert list(registry) == ["a", "b"]


class TestObservableFunction:
    """Test ObservableFunction validation and component selection."""

    def test_scalar_result_becomes_vector(self):
        function = ObservableFunction("x", "x", lambda s: 4.0)
        result = function(State(None))
        assert result.shape == (1,)
        assert result.dtype == float

    def test_empty_name_rejected(self):
        with pytest.raises(ConfigurationError, match="non-empty"):
            ObservableFunction("", "x", scalar)

    def test_non_callable_rejected(self):
        with pytest.raises(ConfigurationError, match="not callable"):
            ObservableFunction("x", "x", 3.0)

    def test_component_by_name(self):
        function = ObservableFunction("comp_n", "composition", scalar, component_names=("Zr", "Va", "O"))
        assert function.component_index("O") == 2
        assert function.component_index(1) == 1

    def test_unknown_component_name(self):
        function = ObservableFunction("comp_n", "composition", scalar, component_names=("Zr", "Va", "O"))
        with pytest.raises(ConfigurationError, match="no component named 'Hf'"):
            function.component_index("Hf")

    def test_component_index_out_of_range(self):
        function = ObservableFunction("comp_n", "composition", scalar, component_names=("Zr", "Va"))
        with pytest.raises(ConfigurationError, match="out of range"):
            function.component_index(2)

    def test_duplicate_component_names(self):
        with pytest.raises(ConfigurationError, match="duplicate component names"):
            ObservableFunction("c", "c", scalar, component_names=("a", "a"))


class TestSamplerSetup:
    """Test sampler names are checked against the registry at setup."""

    def test_unknown_sampler_name_fails_at_setup(self):
        registry = ObservableRegistry.from_functions([ObservableFunction("energy", "e", scalar)])
        params = SamplingParams(sampler_names=("energy", "corr"))
        with pytest.raises(ConfigurationError, match="corr"):
            Sampler(registry, params)
