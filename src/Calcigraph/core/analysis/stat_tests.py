# src/Calcigraph/core/analysis/stat_tests.py
# -*- coding: utf-8 -*-
"""
Statistical primitives used by the connectivity inference.

All functions are stateless and reject empty input with an AnalysisError.
"""
import logging
from typing import Sequence

import numpy as np
from scipy import stats

from Calcigraph.shared.error_handling import AnalysisError

log = logging.getLogger('Calcigraph.core.analysis.stat_tests')


def _as_samples(samples: Sequence[float], name: str) -> np.ndarray:
    values = np.ravel(np.asarray(samples, dtype=float))
    if values.size == 0:
        raise AnalysisError(f"{name}: empty sample set")
    if not np.all(np.isfinite(values)):
        raise AnalysisError(f"{name}: samples contain NaN or Inf")
    return values


def uniform_cdf_table(low: float, high: float, step: float = 1.0) -> np.ndarray:
    """
    Tabulates the CDF of a uniform distribution on [low, high].

    Args:
        low: Lower end of the support.
        high: Upper end of the support (must exceed `low`).
        step: Spacing of the table points. `high` is always included.

    Returns:
        (K x 2) array of (x, F(x)) rows, x increasing.
    """
    if not high > low:
        raise AnalysisError(f"uniform_cdf_table: empty support [{low}, {high}]")
    if step <= 0:
        raise AnalysisError("uniform_cdf_table: step must be positive")
    x = np.arange(low, high, step)
    x = np.append(x[x < high - 1e-9 * step], high)
    cdf = stats.uniform.cdf(x, loc=low, scale=high - low)
    return np.column_stack((x, cdf))


def uniformity_test(samples: Sequence[float], cdf_table: np.ndarray) -> float:
    """
    Two-sided Kolmogorov-Smirnov test of `samples` against a tabulated CDF.

    The reference CDF is the piecewise-linear interpolation of `cdf_table`,
    0 below its first point and 1 above its last.

    Returns:
        The p-value. Small values mean the samples are not drawn from the reference.
    """
    values = _as_samples(samples, 'uniformity_test')
    table = np.asarray(cdf_table, dtype=float)
    if table.ndim != 2 or table.shape[1] != 2 or table.shape[0] < 2:
        raise AnalysisError("uniformity_test: cdf_table must be a (K x 2) array with K >= 2")

    x_ref, f_ref = table[:, 0], table[:, 1]

    def reference_cdf(x):
        return np.interp(x, x_ref, f_ref, left=0.0, right=1.0)

    result = stats.kstest(values, reference_cdf)
    return float(result.pvalue)


def mean_offset_test(samples: Sequence[float], reference_mean: float = 0.0) -> float:
    """
    One-sample t-test of whether the mean of `samples` differs from `reference_mean`.

    A sample set without spread has an unbounded t statistic: its p-value is 0
    when its value differs from the reference and 1 when it equals it.

    Returns:
        The two-sided p-value.
    """
    values = _as_samples(samples, 'mean_offset_test')
    if np.ptp(values) == 0:
        return 0.0 if values[0] != reference_mean else 1.0
    result = stats.ttest_1samp(values, popmean=reference_mean)
    return float(result.pvalue)


def skewness(samples: Sequence[float]) -> float:
    """Sample skewness (biased third standardized moment). Zero for constant samples."""
    values = _as_samples(samples, 'skewness')
    if np.ptp(values) == 0:
        return 0.0
    return float(stats.skew(values, bias=True))
