"""Unit tests for schedule.py module."""

import math

import numpy as np
import pytest

from lattice_mc.config import SampleMethod, SampleMode, SamplingParams
from lattice_mc.errors import ConfigurationError
from lattice_mc.schedule import (
    SampleScheduler,
    first_index_reaching,
    sample_target,
    schedule_index,
)


def fired_passes(params, passes):
    """Poll a fresh scheduler at every pass and collect the ticks."""
    scheduler = SampleScheduler(params)
    ticks = []
    for p in passes:
        ticks.extend(scheduler.poll(p))
    return ticks


class TestLinearSchedule:
    """Test linear sampling by pass."""

    @pytest.mark.parametrize("a,b", [(0, 1), (10, 2), (3, 4), (1, 7)])
    def test_fires_exactly_at_linear_targets(self, a, b):
        """Test triggers occur at a, a+b, a+2b, ... and nowhere else."""
        params = SamplingParams(schedule_params=(a, b))
        ticks = fired_passes(params, range(0, 60))
        expected = [p for p in range(0, 60) if p >= a and (p - a) % b == 0]
        assert [t.progress for t in ticks] == expected
        assert [t.sample_index for t in ticks] == list(range(len(expected)))

    def test_pure_schedule_index(self):
        """Test the pure schedule function agrees with the linear rule."""
        params = SamplingParams(schedule_params=(10, 2))
        assert schedule_index(params, 10) == 0
        assert schedule_index(params, 14) == 2
        assert schedule_index(params, 13) is None
        assert schedule_index(params, 8) is None

    def test_default_samples_every_pass(self):
        """Test default parameters sample after every pass starting at 0."""
        ticks = fired_passes(SamplingParams(), range(5))
        assert [t.progress for t in ticks] == [0, 1, 2, 3, 4]

    def test_skipped_passes_not_sampled_retroactively(self):
        """Test jumping past a target skips it instead of sampling late."""
        scheduler = SampleScheduler(SamplingParams(schedule_params=(0, 5)))
        assert [t.sample_index for t in scheduler.poll(0)] == [0]
        assert scheduler.poll(3) == []
        assert scheduler.poll(7) == []
        ticks = scheduler.poll(10)
        assert [(t.sample_index, t.progress) for t in ticks] == [(2, 10.0)]

    def test_pass_consumed_once(self):
        """Test polling the same pass twice fires only once."""
        scheduler = SampleScheduler(SamplingParams(schedule_params=(0, 1)))
        assert len(scheduler.poll(5)) == 1
        assert scheduler.poll(5) == []
        assert scheduler.poll(4) == []

    def test_resume_from_checkpoint(self):
        """Test a scheduler resumed from a saved index continues without repeats."""
        params = SamplingParams(schedule_params=(0, 1))
        scheduler = SampleScheduler(params, next_index=3, last_sampled=2)
        assert scheduler.poll(2) == []
        ticks = scheduler.poll(3)
        assert [t.sample_index for t in ticks] == [3]
        assert scheduler.next_index == 4
        assert scheduler.next_target == 4.0


class TestLogSchedule:
    """Test logarithmic sampling."""

    def test_powers_of_ten(self):
        """Test (0, 10, 0) samples at passes 1, 10, 100, 1000."""
        params = SamplingParams(sample_method=SampleMethod.LOG, schedule_params=(0, 10, 0))
        ticks = fired_passes(params, range(0, 1500))
        assert [t.progress for t in ticks] == [1, 10, 100, 1000]
        assert [t.sample_index for t in ticks] == [0, 1, 2, 3]

    def test_duplicate_passes_merged(self):
        """Test consecutive indices rounding to the same pass sample it once."""
        params = SamplingParams(sample_method=SampleMethod.LOG, schedule_params=(0, 1.5, 0))
        # k=1 -> 1.5 and k=2 -> 2.25 both round to pass 2
        assert sample_target(params, 1) == sample_target(params, 2) == 2.0
        ticks = fired_passes(params, range(0, 21))
        assert [t.progress for t in ticks] == [1, 2, 3, 5, 8, 11, 17]
        assert [t.sample_index for t in ticks] == [0, 1, 3, 4, 5, 6, 7]
        assert schedule_index(params, 2) == 1

    @pytest.mark.parametrize("params", [(0, 1.1, 0), (5, 2, 3), (0, 1.5, 2), (2, 10, 1)])
    def test_targets_non_decreasing_and_passes_unique(self, params):
        """Test log targets never decrease and no pass is sampled twice."""
        sp = SamplingParams(sample_method="log", schedule_params=params)
        targets = [sample_target(sp, k) for k in range(40)]
        assert all(b >= a for a, b in zip(targets, targets[1:]))
        ticks = fired_passes(sp, range(0, 500))
        passes = [t.progress for t in ticks]
        assert len(passes) == len(set(passes))
        indices = [t.sample_index for t in ticks]
        assert indices == sorted(indices)

    def test_two_parameters_default_c(self):
        """Test (a, b) log parameters get c = 0."""
        params = SamplingParams(sample_method=SampleMethod.LOG, schedule_params=(0, 10))
        assert params.schedule_params == (0.0, 10.0, 0.0)

    def test_time_mode_offsets(self):
        """Test (0, 10, 1) in time mode samples at 0.1, 1, 10, 100."""
        params = SamplingParams(
            sample_mode=SampleMode.BY_TIME,
            sample_method=SampleMethod.LOG,
            schedule_params=(0.0, 10.0, 1.0),
        )
        expected = [0.1, 1.0, 10.0, 100.0]
        for k, value in enumerate(expected):
            assert sample_target(params, k) == pytest.approx(value)


class TestTimeMode:
    """Test sampling by simulated time."""

    def test_all_passed_targets_fire_once(self):
        """Test a jump in time fires each passed target, tagged with its target time."""
        params = SamplingParams(sample_mode="by_time", schedule_params=(0.0, 0.5))
        scheduler = SampleScheduler(params)
        ticks = scheduler.poll(1.2)
        assert [(t.sample_index, t.progress) for t in ticks] == [(0, 0.0), (1, 0.5), (2, 1.0)]
        assert scheduler.poll(1.4) == []
        ticks = scheduler.poll(1.5)
        assert [(t.sample_index, t.progress) for t in ticks] == [(3, 1.5)]

    def test_log_time_targets(self):
        """Test log sampling in time mode."""
        params = SamplingParams(sample_mode="by_time", sample_method="log", schedule_params=(0.0, 10.0, 1.0))
        scheduler = SampleScheduler(params)
        assert scheduler.poll(0.05) == []
        assert [t.sample_index for t in scheduler.poll(0.5)] == [0]
        assert [t.sample_index for t in scheduler.poll(50.0)] == [1, 2]
        assert scheduler.poll(50.0) == []

    def test_non_finite_progress_rejected(self):
        """Test NaN progress raises ValueError."""
        scheduler = SampleScheduler(SamplingParams(sample_mode="by_time"))
        with pytest.raises(ValueError, match="finite"):
            scheduler.poll(math.nan)


class TestFirstIndexReaching:
    """Test the forward search helper."""

    def test_linear(self):
        params = SamplingParams(schedule_params=(10, 2))
        assert first_index_reaching(params, 0) == 0
        assert first_index_reaching(params, 10) == 0
        assert first_index_reaching(params, 11) == 1
        assert first_index_reaching(params, 12) == 1

    def test_matches_brute_force(self):
        """Test the closed-form search against a linear scan."""
        params = SamplingParams(sample_method="log", schedule_params=(0, 1.3, 2))
        for p in np.arange(0, 300, 7):
            k = first_index_reaching(params, p)
            assert sample_target(params, k) >= p
            if k > 0:
                assert sample_target(params, k - 1) < p


class TestScheduleValidation:
    """Test schedule parameter validation."""

    @pytest.mark.parametrize("b", [0, -1])
    def test_linear_requires_positive_b(self, b):
        with pytest.raises(ConfigurationError, match="b > 0"):
            SamplingParams(schedule_params=(0, b))

    @pytest.mark.parametrize("b", [1, 0.5])
    def test_log_requires_b_greater_than_one(self, b):
        with pytest.raises(ConfigurationError, match="b > 1"):
            SamplingParams(sample_method=SampleMethod.LOG, schedule_params=(0, b, 0))

    def test_linear_wrong_arity(self):
        with pytest.raises(ConfigurationError, match="takes schedule_params"):
            SamplingParams(schedule_params=(0, 1, 2))

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            sample_target(SamplingParams(), -1)
