"""
pytest configuration and shared fixtures.
"""

import numpy as np
import pytest

from bootstatespace.ssm import OptimizerConfig, ParameterSet


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def ou_parameters():
    """Two-dimensional OU model observed with measurement error."""
    return ParameterSet.for_ou(
        mu0=[-3.0, 1.5],
        sigma0_l=np.eye(2),
        mu=[5.76, 5.18],
        phi=[[-0.10, 0.05], [0.05, -0.10]],
        sigma_l=np.linalg.cholesky(np.array([[2.79, 0.06], [0.06, 3.27]])),
        nu=[0.0, 0.0],
        lambda_=np.eye(2),
        theta_l=np.sqrt(0.5) * np.eye(2),
    )


@pytest.fixture
def ssm_parameters():
    """Two-dimensional discrete-time SSM."""
    return ParameterSet.for_ssm(
        mu0=[0.0, 0.0],
        sigma0_l=np.eye(2),
        alpha=[0.0, 0.0],
        beta=[[0.7, 0.0], [0.5, 0.6]],
        psi_l=np.eye(2),
        nu=[0.0, 0.0],
        lambda_=np.eye(2),
        theta_l=0.2 * np.eye(2),
    )


@pytest.fixture
def var_parameters():
    """Univariate VAR(1), cheap to fit."""
    return ParameterSet.for_var(
        mu0=[0.0],
        sigma0_l=[[1.0]],
        alpha=[0.5],
        beta=[[0.4]],
        psi_l=[[1.0]],
    )


@pytest.fixture
def optimizer():
    """Default stopping criteria."""
    return OptimizerConfig()
