"""
Tests for ParameterSet, OptimizerConfig and the OU discretization.
"""

import dataclasses

import numpy as np
import pytest

from bootstatespace.core.exceptions import DimensionError, ValidationError
from bootstatespace.ssm import OptimizerConfig, ParameterSet
from bootstatespace.ssm._transition import (
    covariance_from_log_cholesky,
    log_cholesky_from_covariance,
    ou_discretize,
    tril_pairs,
)


# ═══════════════════════════════════════════════════════════════════════
# Construction
# ═══════════════════════════════════════════════════════════════════════


class TestConstructors:

    def test_ssm_dimensions(self, ssm_parameters):
        assert ssm_parameters.model == "ssm"
        assert ssm_parameters.p == 2
        assert ssm_parameters.k == 2
        assert ssm_parameters.j == 0
        assert ssm_parameters.mu is None

    def test_ou_fields(self, ou_parameters):
        assert ou_parameters.model == "ou"
        assert ou_parameters.alpha is None
        np.testing.assert_allclose(
            ou_parameters.sigma, [[2.79, 0.06], [0.06, 3.27]],
        )
        np.testing.assert_allclose(ou_parameters.theta, 0.5 * np.eye(2))

    def test_var_measurement_is_identity(self, var_parameters):
        assert var_parameters.model == "var"
        np.testing.assert_array_equal(var_parameters.lambda_, [[1.0]])
        np.testing.assert_array_equal(var_parameters.nu, [0.0])
        np.testing.assert_array_equal(var_parameters.theta_l, [[0.0]])
        assert var_parameters.kappa is None

    def test_scalars_promoted(self):
        params = ParameterSet.for_var(0.0, 1.0, 0.5, 0.4, 1.0)
        assert params.p == 1
        assert params.beta.shape == (1, 1)
        assert params.sigma0_l.shape == (1, 1)

    def test_arrays_are_read_only_copies(self):
        beta = np.array([[0.4]])
        params = ParameterSet.for_var([0.0], [[1.0]], [0.5], beta, [[1.0]])
        beta[0, 0] = 9.0
        assert params.beta[0, 0] == 0.4
        with pytest.raises(ValueError):
            params.beta[0, 0] = 1.0

    def test_frozen(self, var_parameters):
        with pytest.raises(dataclasses.FrozenInstanceError):
            var_parameters.model = "ssm"

    def test_fixed_flags(self):
        params = ParameterSet.for_var(
            [0.0], [[1.0]], [0.5], [[0.4]], [[1.0]],
            mu0_fixed=True, sigma0_fixed=True,
        )
        assert params.mu0_fixed and params.sigma0_fixed

    def test_covariates(self):
        params = ParameterSet.for_ssm(
            [0.0, 0.0], np.eye(2), [0.0, 0.0], 0.5 * np.eye(2), np.eye(2),
            [0.0, 0.0, 0.0], np.ones((3, 2)), np.eye(3),
            gamma=[[0.3], [0.1]], kappa=[[0.2], [0.0], [0.1]],
        )
        assert params.k == 3
        assert params.j == 1


class TestConstructorErrors:

    def test_beta_shape_mismatch(self):
        with pytest.raises(DimensionError, match="beta"):
            ParameterSet.for_var([0.0, 0.0], np.eye(2), [0.0, 0.0], np.eye(3), np.eye(2))

    def test_lambda_columns_must_match_state(self):
        with pytest.raises(DimensionError, match="lambda_"):
            ParameterSet.for_ssm(
                [0.0, 0.0], np.eye(2), [0.0, 0.0], np.eye(2), np.eye(2),
                [0.0, 0.0], np.eye(3), np.eye(2),
            )

    def test_upper_triangular_factor_rejected(self):
        with pytest.raises(ValidationError, match="psi_l"):
            ParameterSet.for_var(
                [0.0, 0.0], np.eye(2), [0.0, 0.0], np.eye(2),
                [[1.0, 0.5], [0.0, 1.0]],
            )

    def test_non_finite_rejected(self):
        with pytest.raises(ValidationError, match="alpha"):
            ParameterSet.for_var([0.0], [[1.0]], [np.nan], [[0.4]], [[1.0]])

    def test_gamma_rows(self):
        with pytest.raises(DimensionError, match="gamma"):
            ParameterSet.for_var(
                [0.0], [[1.0]], [0.5], [[0.4]], [[1.0]], gamma=[[1.0], [2.0]],
            )

    def test_gamma_kappa_columns_agree(self):
        with pytest.raises(DimensionError, match="same number of columns"):
            ParameterSet.for_ssm(
                [0.0], [[1.0]], [0.0], [[0.5]], [[1.0]],
                [0.0], [[1.0]], [[0.3]],
                gamma=[[1.0, 2.0]], kappa=[[1.0]],
            )

    def test_unknown_model(self, var_parameters):
        with pytest.raises(ValidationError, match="model"):
            dataclasses.replace(var_parameters, model="arima")


# ═══════════════════════════════════════════════════════════════════════
# Discretization
# ═══════════════════════════════════════════════════════════════════════


class TestOUDiscretize:

    def test_scalar_closed_form(self):
        theta, mu, s2, dt = 0.7, 2.0, 1.3, 0.25
        a, B, Q = ou_discretize(
            np.array([mu]), np.array([[-theta]]), np.array([[s2]]), dt,
        )
        decay = np.exp(-theta * dt)
        assert B[0, 0] == pytest.approx(decay, rel=1e-10)
        assert a[0] == pytest.approx((1.0 - decay) * mu, rel=1e-10)
        assert Q[0, 0] == pytest.approx(
            s2 * (1.0 - decay ** 2) / (2.0 * theta), rel=1e-8,
        )

    def test_zero_drift_is_brownian(self):
        sigma = np.array([[1.0, 0.2], [0.2, 2.0]])
        a, B, Q = ou_discretize(np.zeros(2), np.zeros((2, 2)), sigma, 0.5)
        np.testing.assert_allclose(B, np.eye(2), atol=1e-12)
        np.testing.assert_allclose(Q, 0.5 * sigma, atol=1e-12)
        np.testing.assert_allclose(a, 0.0, atol=1e-12)

    def test_covariance_symmetric_positive(self, ou_parameters):
        _, _, Q = ou_parameters.discretize(0.1)
        np.testing.assert_array_equal(Q, Q.T)
        assert np.all(np.linalg.eigvalsh(Q) > 0)

    def test_discrete_models_ignore_delta_t(self, ssm_parameters):
        a1, B1, Q1 = ssm_parameters.discretize(0.1)
        a2, B2, Q2 = ssm_parameters.discretize(5.0)
        np.testing.assert_array_equal(B1, B2)
        np.testing.assert_array_equal(Q1, Q2)
        np.testing.assert_array_equal(a1, a2)


class TestLogCholesky:

    def test_tril_pairs_order(self):
        assert tril_pairs(3) == [(0, 0), (1, 0), (1, 1), (2, 0), (2, 1), (2, 2)]

    def test_inverse(self):
        cov = np.array([[2.0, 0.3, 0.1], [0.3, 1.0, -0.2], [0.1, -0.2, 0.5]])
        values = log_cholesky_from_covariance(cov)
        L, rebuilt = covariance_from_log_cholesky(values, 3)
        np.testing.assert_allclose(rebuilt, cov, atol=1e-12)
        assert np.all(np.diag(L) > 0)

    def test_not_positive_definite(self):
        with pytest.raises(np.linalg.LinAlgError):
            log_cholesky_from_covariance(np.zeros((2, 2)))


# ═══════════════════════════════════════════════════════════════════════
# OptimizerConfig
# ═══════════════════════════════════════════════════════════════════════


class TestOptimizerConfig:

    def test_defaults(self):
        config = OptimizerConfig()
        assert config.xtol_rel == 1e-7
        assert config.stopval == -9999.0
        assert config.ftol_rel == -1.0
        assert config.maxeval == -1
        assert config.optimization_flag is True
        assert config.hessian_flag is False

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            OptimizerConfig().maxeval = 10

    def test_non_finite_rejected(self):
        with pytest.raises(ValidationError, match="xtol_rel"):
            OptimizerConfig(xtol_rel=float("nan"))

    def test_fractional_maxeval_rejected(self):
        with pytest.raises(ValidationError, match="maxeval"):
            OptimizerConfig(maxeval=2.5)
