"""
Fixed-coefficient state-space models.

Parameter containers plus the default simulator and estimator the
bootstrap drives.

Usage:
    from bootstatespace.ssm import ParameterSet, simulate_panel

    params = ParameterSet.for_var(mu0, sigma0_l, alpha, beta, psi_l)
    data = simulate_panel(n=5, time=50, delta_t=1.0, parameters=params, seed=1)
"""

from bootstatespace.ssm._common import FitResult, PanelData
from bootstatespace.ssm.design import OptimizerConfig, ParameterSet
from bootstatespace.ssm.estimate import KalmanMLEstimator
from bootstatespace.ssm.simulate import StateSpaceSimulator, simulate_panel

__all__ = [
    "ParameterSet",
    "OptimizerConfig",
    "PanelData",
    "FitResult",
    "StateSpaceSimulator",
    "KalmanMLEstimator",
    "simulate_panel",
]
