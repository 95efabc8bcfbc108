import numpy as np
import pytest

from Calcigraph.core.analysis import stat_tests
from Calcigraph.shared.error_handling import AnalysisError


class TestUniformCdfTable:
    def test_integer_step_table(self):
        """Table over [-2, 2] with unit step has five points and a linear CDF."""
        table = stat_tests.uniform_cdf_table(-2.0, 2.0, 1.0)
        assert table.shape == (5, 2)
        np.testing.assert_allclose(table[:, 0], [-2, -1, 0, 1, 2])
        np.testing.assert_allclose(table[:, 1], [0, 0.25, 0.5, 0.75, 1.0])

    def test_upper_bound_always_included(self):
        table = stat_tests.uniform_cdf_table(0.0, 2.5, 1.0)
        assert table[-1, 0] == 2.5
        assert table[-1, 1] == pytest.approx(1.0)

    def test_grid_is_strictly_increasing(self):
        """Rounding in the grid must not repeat the upper bound."""
        table = stat_tests.uniform_cdf_table(-2.1, 2.1, 0.3)
        assert np.all(np.diff(table[:, 0]) > 0)
        assert np.sum(np.isclose(table[:, 0], 2.1)) == 1
        assert table[-1, 0] == 2.1

    def test_empty_support_rejected(self):
        with pytest.raises(AnalysisError):
            stat_tests.uniform_cdf_table(1.0, 1.0)


class TestUniformityTest:
    def test_uniform_samples_not_rejected(self):
        """Evenly spread samples are consistent with the uniform reference."""
        table = stat_tests.uniform_cdf_table(-2.0, 2.0)
        samples = np.linspace(-1.95, 1.95, 40)
        assert stat_tests.uniformity_test(samples, table) > 0.5

    def test_concentrated_samples_rejected(self):
        table = stat_tests.uniform_cdf_table(-2.0, 2.0)
        samples = np.full(10, -0.3)
        assert stat_tests.uniformity_test(samples, table) < 0.05

    def test_empty_samples_raise(self):
        table = stat_tests.uniform_cdf_table(-2.0, 2.0)
        with pytest.raises(AnalysisError):
            stat_tests.uniformity_test([], table)

    def test_malformed_table_raises(self):
        with pytest.raises(AnalysisError):
            stat_tests.uniformity_test([0.1, 0.2], np.array([1.0, 2.0]))


class TestMeanOffsetTest:
    def test_centred_samples(self):
        samples = np.array([-1.0, -0.5, 0.0, 0.5, 1.0])
        assert stat_tests.mean_offset_test(samples, 0.0) == pytest.approx(1.0)

    def test_shifted_samples(self):
        rng = np.random.default_rng(0)
        samples = rng.normal(3.0, 0.1, 50)
        assert stat_tests.mean_offset_test(samples, 0.0) < 1e-6

    def test_constant_samples(self):
        """Samples without spread: p is 0 away from the reference, 1 on it."""
        assert stat_tests.mean_offset_test(np.full(8, -0.3), 0.0) == 0.0
        assert stat_tests.mean_offset_test(np.full(8, 1.0), 1.0) == 1.0

    def test_nan_rejected(self):
        with pytest.raises(AnalysisError):
            stat_tests.mean_offset_test([1.0, np.nan])


class TestSkewness:
    def test_symmetric_is_zero(self):
        assert stat_tests.skewness([1.0, 2.0, 3.0, 4.0, 5.0]) == pytest.approx(0.0)

    def test_right_tail_positive(self):
        samples = np.concatenate([np.full(20, 0.1), [5.0]])
        assert stat_tests.skewness(samples) > 2.0

    def test_constant_is_zero(self):
        assert stat_tests.skewness(np.ones(5)) == 0.0
