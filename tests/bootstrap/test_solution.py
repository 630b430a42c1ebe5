"""
Tests for the BootstrapSolution accessors: coef, vcov, confint, summary.
"""

import numpy as np
import pytest

from bootstatespace.bootstrap import parametric_bootstrap
from bootstatespace.ssm import FitResult


class MeanEstimator:
    """Estimates the mean of each observed variable."""

    def prepare(self, parameters, optimizer):
        names = tuple(f"mean_{i + 1}" for i in range(parameters.k))
        return names, np.full(parameters.k, 0.1)

    def fit(self, data, parameters, optimizer, *, seed=None):
        names, _ = self.prepare(parameters, optimizer)
        return FitResult(names, data.y.mean(axis=(0, 1)), True)


@pytest.fixture
def solution(ssm_parameters, tmp_path):
    return parametric_bootstrap(
        ssm_parameters, 50, tmp_path, "pb", 5, 10,
        seed=11, alpha_level=[0.05, 0.01], estimator=MeanEstimator(),
    )


class TestAccessors:

    def test_coef_is_reference_estimate(self, solution):
        np.testing.assert_array_equal(solution.coef(), [0.1, 0.1])

    def test_coef_returns_copy(self, solution):
        coef = solution.coef()
        coef[0] = 99.0
        assert solution.coef()[0] == 0.1

    def test_vcov_returns_copy(self, solution):
        vcov = solution.vcov()
        vcov[:] = 0.0
        assert np.all(np.diag(solution.vcov()) > 0)

    def test_thetahatstar_returns_copy(self, solution):
        draws = solution.thetahatstar
        draws[:] = 0.0
        assert not np.all(solution.thetahatstar == 0.0)

    def test_repeatable(self, solution):
        np.testing.assert_array_equal(solution.confint(), solution.confint())
        assert solution.summary() == solution.summary()

    def test_mean_and_se(self, solution):
        draws = solution.thetahatstar
        np.testing.assert_allclose(solution.mean, draws.mean(axis=0))
        np.testing.assert_allclose(solution.se, draws.std(axis=0, ddof=1))
        np.testing.assert_allclose(solution.se ** 2, np.diag(solution.vcov()))

    def test_alpha_level(self, solution):
        assert solution.alpha_level == (0.05, 0.01)

    def test_no_fit_details_without_diagnostics(self, solution):
        assert solution.fit_details == {}


class TestConfint:

    def test_default_alpha_is_first_level(self, solution):
        np.testing.assert_array_equal(solution.confint(), solution.confint(0.05))

    def test_percentile_monotone_in_alpha(self, solution):
        wide = solution.confint(0.01)
        narrow = solution.confint(0.2)
        assert np.all(wide[:, 0] <= narrow[:, 0])
        assert np.all(wide[:, 1] >= narrow[:, 1])

    def test_normal_symmetric_about_coef(self, solution):
        ci = solution.confint(0.05, type="normal")
        np.testing.assert_allclose(ci.mean(axis=1), solution.coef())

    def test_bc(self, solution):
        ci = solution.confint(0.05, type="bc")
        assert ci.shape == (2, 2)
        assert np.all(ci[:, 0] <= ci[:, 1])

    def test_unknown_type(self, solution):
        with pytest.raises(ValueError, match="type"):
            solution.confint(0.05, type="bca")


class TestSummary:

    def test_table_columns(self, solution):
        table = solution.summary_table()
        assert list(table) == ['est', 'mean', 'se', 'R', '2.5%', '97.5%', '0.5%', '99.5%']
        np.testing.assert_array_equal(table['R'], [50.0, 50.0])
        np.testing.assert_array_equal(table['2.5%'], solution.confint(0.05)[:, 0])

    def test_table_single_alpha(self, solution):
        table = solution.summary_table(alpha=0.1, type="normal")
        assert list(table)[4:] == ['5%', '95%']

    def test_table_close_alphas(self, solution):
        table = solution.summary_table(alpha=[0.0001, 0.00012])
        assert list(table)[4:] == ['0.005%', '99.995%', '0.006%', '99.994%']

    def test_table_repeated_alpha(self, solution):
        with pytest.raises(ValueError, match="repeats the interval labels"):
            solution.summary_table(alpha=[0.05, 0.05])

    def test_text(self, solution):
        text = solution.summary()
        assert "PARAMETRIC BOOTSTRAP (PBSSMFixed)" in text
        assert "Replications: 50 converged of 50 requested" in text
        assert "Confidence intervals: percentile" in text
        assert "0.5%" in text and "99.5%" in text
        assert "mean_1" in text and "mean_2" in text
        assert "Excluded" not in text

    def test_text_bc(self, solution):
        assert "bias-corrected percentile" in solution.summary(type="bc")

    def test_digits(self, solution):
        est_cell = f"{0.1:.2f}"
        row = [line for line in solution.summary(digits=2).splitlines()
               if line.startswith("mean_1")][0]
        assert est_cell in row

    def test_str_is_summary(self, solution):
        assert str(solution) == solution.summary()

    def test_repr(self, solution):
        assert repr(solution) == (
            "BootstrapSolution(fun='PBSSMFixed', R=50, R_effective=50, k=2, "
            "backend='serial')"
        )
