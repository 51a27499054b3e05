"""Unit tests for config.py module."""

import pytest

from lattice_mc.config import (
    CompletionCheckParams,
    ConvergenceCriterion,
    CutoffParams,
    SampleMethod,
    SampleMode,
    SamplingParams,
)
from lattice_mc.errors import ConfigurationError


class TestSamplingParams:
    """Test SamplingParams parsing and validation."""

    def test_defaults(self):
        params = SamplingParams()
        assert params.sample_mode is SampleMode.BY_PASS
        assert params.sample_method is SampleMethod.LINEAR
        assert params.schedule_params == (0.0, 1.0)
        assert params.by_pass

    @pytest.mark.parametrize("mode", ["by_time", "BY_TIME", SampleMode.BY_TIME])
    def test_mode_from_string(self, mode):
        assert SamplingParams(sample_mode=mode).sample_mode is SampleMode.BY_TIME

    def test_invalid_mode(self):
        with pytest.raises(ConfigurationError, match="Invalid SampleMode"):
            SamplingParams(sample_mode="by_step")

    def test_duplicate_sampler_names(self):
        with pytest.raises(ConfigurationError, match="Duplicate sampler names"):
            SamplingParams(sampler_names=("energy", "energy"))

    def test_string_sampler_names_rejected(self):
        with pytest.raises(ConfigurationError, match="sequence of names"):
            SamplingParams(sampler_names="energy")

    def test_non_finite_schedule_param(self):
        with pytest.raises(ConfigurationError, match="finite"):
            SamplingParams(schedule_params=(0, float("inf")))

    def test_from_dict(self):
        params = SamplingParams.from_dict(
            {"sample_method": "log", "schedule_params": [0, 10], "sampler_names": ["comp_n"]}
        )
        assert params.schedule_params == (0.0, 10.0, 0.0)
        assert params.sampler_names == ("comp_n",)

    def test_from_dict_unknown_key(self):
        with pytest.raises(ConfigurationError, match="sample_period"):
            SamplingParams.from_dict({"sample_period": 10})


class TestConvergenceCriterion:
    """Test ConvergenceCriterion validation."""

    @pytest.mark.parametrize("precision", [0.0, -0.1, float("nan")])
    def test_precision_must_be_positive(self, precision):
        with pytest.raises(ConfigurationError):
            ConvergenceCriterion("energy", precision=precision)

    @pytest.mark.parametrize("confidence", [0.0, 1.0, 1.5])
    def test_confidence_range(self, confidence):
        with pytest.raises(ConfigurationError, match="confidence"):
            ConvergenceCriterion("energy", precision=0.1, confidence=confidence)

    def test_negative_component_index(self):
        with pytest.raises(ConfigurationError, match="component index"):
            ConvergenceCriterion("comp_n", precision=0.1, component=-1)

    def test_label(self):
        assert ConvergenceCriterion("energy", precision=0.1).label == "energy"
        assert ConvergenceCriterion("comp_n", precision=0.1, component="O").label == "comp_n[O]"


class TestCutoffParams:
    """Test CutoffParams validation."""

    def test_min_greater_than_max(self):
        with pytest.raises(ConfigurationError, match="min_count=100 is greater than max_count=10"):
            CutoffParams(min_count=100, max_count=10)

    def test_non_integer_count(self):
        with pytest.raises(ConfigurationError, match="must be an integer"):
            CutoffParams(max_count=10.5)

    def test_non_numeric_count(self):
        with pytest.raises(ConfigurationError, match="must be an integer"):
            CutoffParams(max_count="lots")

    def test_negative_sample_limit(self):
        with pytest.raises(ConfigurationError, match=">= 0"):
            CutoffParams(min_sample=-1)

    def test_float_clocktime(self):
        assert CutoffParams(max_clocktime=3600).max_clocktime == 3600.0


class TestCompletionCheckParams:
    """Test CompletionCheckParams validation."""

    def test_check_frequency_positive(self):
        with pytest.raises(ConfigurationError, match="check_frequency"):
            CompletionCheckParams(check_frequency=0)

    def test_check_begin_non_negative(self):
        with pytest.raises(ConfigurationError, match="check_begin"):
            CompletionCheckParams(check_begin=-5)

    def test_unknown_estimator(self):
        with pytest.raises(ConfigurationError, match="Unknown estimator"):
            CompletionCheckParams(estimator="bootstrap")

    def test_duplicate_criteria(self):
        criterion = ConvergenceCriterion("energy", precision=0.1)
        with pytest.raises(ConfigurationError, match="Duplicate convergence criteria"):
            CompletionCheckParams(criteria=(criterion, criterion))

    def test_observable_names_unique_in_order(self):
        params = CompletionCheckParams(
            criteria=(
                ConvergenceCriterion("comp_n", precision=0.1, component="O"),
                ConvergenceCriterion("energy", precision=0.1),
                ConvergenceCriterion("comp_n", precision=0.1, component="Va"),
            )
        )
        assert params.observable_names() == ("comp_n", "energy")

    def test_from_dict(self):
        """Test building completion params from a nested plain record."""
        params = CompletionCheckParams.from_dict(
            {
                "criteria": [
                    {"name": "energy", "precision": 0.001},
                    {"observable_name": "comp_n", "component": "O", "precision": 0.01, "confidence": 0.9},
                ],
                "check_begin": 10,
                "check_frequency": 10,
                "cutoff": {"min_count": 100, "max_count": 1000000},
            }
        )
        assert [c.label for c in params.criteria] == ["energy", "comp_n[O]"]
        assert params.criteria[1].confidence == pytest.approx(0.9)
        assert params.cutoff.max_count == 1000000
        assert params.check_begin == 10

    @pytest.mark.parametrize(
        "record,kind,key",
        [
            ({"check_frequncy": 10}, "completion check", "check_frequncy"),
            ({"cutoff": {"max_cnt": 5}}, "cutoff", "max_cnt"),
            ({"criteria": [{"name": "energy", "precison": 0.1}]}, "convergence criterion", "precison"),
        ],
    )
    def test_from_dict_unknown_key(self, record, kind, key):
        """Test mistyped keys at every level are configuration errors, not TypeErrors."""
        with pytest.raises(ConfigurationError, match=f"Unknown {kind} parameter\\(s\\): \\['{key}'\\]"):
            CompletionCheckParams.from_dict(record)
