"""
Tests for bootstrap confidence intervals.

Verifies the normal, percentile and bias-corrected intervals against
direct computations, plus argument validation.
"""

import numpy as np
import pytest
from scipy import stats

from bootstatespace.bootstrap._ci import bootstrap_se, ci_labels, compute_ci


@pytest.fixture
def draws(rng):
    return rng.normal(loc=[1.0, -2.0], scale=[0.5, 2.0], size=(500, 2))


class TestPercentile:

    def test_matches_quantiles(self, draws):
        ci = compute_ci(np.array([1.0, -2.0]), draws, 0.05, "percentile")
        expected = np.quantile(draws, [0.025, 0.975], axis=0).T
        np.testing.assert_allclose(ci, expected)

    def test_narrows_as_alpha_grows(self, draws):
        est = np.array([1.0, -2.0])
        widths = [
            np.diff(compute_ci(est, draws, a, "percentile"), axis=1).ravel()
            for a in (0.01, 0.05, 0.1, 0.2)
        ]
        for wider, narrower in zip(widths, widths[1:]):
            assert np.all(wider >= narrower)

    def test_contains_median(self, draws):
        ci = compute_ci(np.zeros(2), draws, 0.05, "percentile")
        median = np.median(draws, axis=0)
        assert np.all(ci[:, 0] <= median)
        assert np.all(median <= ci[:, 1])


class TestNormal:

    def test_symmetric_about_estimate(self, draws):
        est = np.array([0.7, -1.0])
        ci = compute_ci(est, draws, 0.05, "normal")
        np.testing.assert_allclose(ci.mean(axis=1), est)

    def test_half_width(self, draws):
        est = np.array([1.0, -2.0])
        ci = compute_ci(est, draws, 0.1, "normal")
        z = stats.norm.ppf(0.95)
        se = np.std(draws, axis=0, ddof=1)
        np.testing.assert_allclose(ci[:, 1] - est, z * se)


class TestBiasCorrected:

    def test_unbiased_reduces_to_percentile(self):
        draws = np.arange(1.0, 101.0)[:, None]
        est = np.array([50.5])
        bc = compute_ci(est, draws, 0.05, "bc")
        pct = compute_ci(est, draws, 0.05, "percentile")
        np.testing.assert_allclose(bc, pct)

    def test_shifts_toward_estimate(self):
        draws = np.arange(1.0, 101.0)[:, None]
        bc = compute_ci(np.array([70.0]), draws, 0.05, "bc")
        pct = compute_ci(np.array([70.0]), draws, 0.05, "percentile")
        assert bc[0, 0] > pct[0, 0]
        assert bc[0, 1] > pct[0, 1]

    def test_estimate_outside_distribution_is_finite(self):
        draws = np.arange(1.0, 21.0)[:, None]
        ci = compute_ci(np.array([-100.0]), draws, 0.05, "bc")
        assert np.all(np.isfinite(ci))
        assert ci[0, 0] <= ci[0, 1]


class TestValidation:

    def test_unknown_type(self, draws):
        with pytest.raises(ValueError, match="type"):
            compute_ci(np.zeros(2), draws, 0.05, "bca")

    @pytest.mark.parametrize("alpha", [0.0, 1.0, -0.05])
    def test_alpha_out_of_range(self, draws, alpha):
        with pytest.raises(ValueError, match="alpha"):
            compute_ci(np.zeros(2), draws, alpha, "percentile")

    def test_unknown_type_checked_before_empty(self):
        with pytest.raises(ValueError):
            compute_ci(np.zeros(2), np.empty((0, 2)), 0.05, "studentized")

    def test_empty_distribution_is_nan(self):
        ci = compute_ci(np.zeros(2), np.empty((0, 2)), 0.05, "percentile")
        assert ci.shape == (2, 2)
        assert np.all(np.isnan(ci))


class TestHelpers:

    def test_se_single_row_is_nan(self):
        assert np.all(np.isnan(bootstrap_se(np.ones((1, 3)))))

    def test_se(self, draws):
        np.testing.assert_allclose(bootstrap_se(draws), draws.std(axis=0, ddof=1))

    @pytest.mark.parametrize("alpha, labels", [
        (0.05, ("2.5%", "97.5%")),
        (0.01, ("0.5%", "99.5%")),
        (0.1, ("5%", "95%")),
        (0.0001, ("0.005%", "99.995%")),
    ])
    def test_labels(self, alpha, labels):
        assert ci_labels(alpha) == labels

    def test_close_levels_distinct(self):
        assert ci_labels(0.0001) != ci_labels(0.00012)
