"""
Simulation of panel data from a fixed-coefficient state-space model.

StateSpaceSimulator is the default Simulator used by the bootstrap. It
draws all n units at once; the draw order is fixed so that a given seed
always yields the same panel.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from bootstatespace.core.exceptions import DimensionError
from bootstatespace.core.validation import check_positive_int
from bootstatespace.ssm._common import PanelData
from bootstatespace.ssm.design import ParameterSet


def _covariate_array(x, n: int, time: int, j: int) -> NDArray | None:
    if x is None:
        if j > 0:
            raise DimensionError(
                f"x: covariate effects with {j} columns are set but x is None"
            )
        return None
    x_arr = np.asarray(x, dtype=np.float64)
    if x_arr.shape != (n, time, j):
        raise DimensionError(
            f"x: expected shape ({n}, {time}, {j}), got {x_arr.shape}"
        )
    return x_arr


def _psd_factor(cov: NDArray) -> NDArray:
    """Factor F with F F' = cov; tolerates singular cov."""
    try:
        return np.linalg.cholesky(cov)
    except np.linalg.LinAlgError:
        w, V = np.linalg.eigh(cov)
        return V * np.sqrt(np.clip(w, 0.0, None))


def simulate_panel(
    n: int,
    time: int,
    delta_t: float,
    parameters: ParameterSet,
    x=None,
    seed: int | None = None,
) -> PanelData:
    """
    Simulate a balanced panel.

    The state is drawn from N(mu0, Sigma0) at the first occasion and
    propagated through the discrete transition (a, B, Q) of the model;
    covariates enter the state through gamma and the measurement
    through kappa at the same occasion.

    Args:
        n: Number of units, >= 1
        time: Number of occasions, >= 1
        delta_t: Spacing between occasions, > 0
        parameters: Generating parameters
        x: Covariates, shape (n, time, j), required when gamma or kappa
            is set
        seed: Seed for np.random.default_rng

    Returns:
        PanelData with y of shape (n, time, k)
    """
    n = check_positive_int(n, "n")
    time = check_positive_int(time, "time")
    x_arr = _covariate_array(x, n, time, parameters.j)

    rng = np.random.default_rng(seed)
    p, k = parameters.p, parameters.k
    a, B, Q = parameters.discretize(delta_t)
    if parameters.model == "ou":
        q_l = _psd_factor(Q)
    else:
        q_l = parameters.psi_l

    eta = np.empty((n, time, p), dtype=np.float64)
    eta[:, 0] = parameters.mu0 + rng.standard_normal((n, p)) @ parameters.sigma0_l.T
    if x_arr is not None and parameters.gamma is not None:
        eta[:, 0] += x_arr[:, 0] @ parameters.gamma.T
    for t in range(1, time):
        eta[:, t] = a + eta[:, t - 1] @ B.T + rng.standard_normal((n, p)) @ q_l.T
        if x_arr is not None and parameters.gamma is not None:
            eta[:, t] += x_arr[:, t] @ parameters.gamma.T

    eps = rng.standard_normal((n, time, k)) @ parameters.theta_l.T
    y = parameters.nu + eta @ parameters.lambda_.T + eps
    if x_arr is not None and parameters.kappa is not None:
        y += x_arr @ parameters.kappa.T

    return PanelData(
        y=y,
        x=x_arr,
        time=np.arange(time, dtype=np.float64) * delta_t,
        delta_t=float(delta_t),
        seed=seed,
    )


class StateSpaceSimulator:
    """
    Default Simulator: thin, picklable wrapper around simulate_panel.
    """

    @property
    def name(self) -> str:
        return 'numpy_ssm'

    def simulate(
        self,
        n: int,
        time: int,
        delta_t: float,
        parameters: ParameterSet,
        x,
        seed: int,
    ) -> PanelData:
        return simulate_panel(n, time, delta_t, parameters, x=x, seed=seed)

    def __repr__(self) -> str:
        return "StateSpaceSimulator()"
