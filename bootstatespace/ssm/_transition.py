"""
Discrete-time transition matrices for the supported model classes.

The discrete SSM and the VAR are already in discrete time. The OU process

    d eta = Phi (eta - mu) dt + Sigma^{1/2} dW

is discretized exactly over a step of length delta_t:

    eta_{t+1} = a + B eta_t + w_t,   w_t ~ N(0, Q)
    B = expm(Phi dt)
    a = (I - B) mu
    Q = int_0^dt expm(Phi s) Sigma expm(Phi s)' ds
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import expm


def ou_discretize(
    mu: NDArray,
    phi: NDArray,
    sigma: NDArray,
    delta_t: float,
) -> tuple[NDArray, NDArray, NDArray]:
    """
    Exact discretization of an OU process.

    Q is computed with Van Loan's block-exponential method, which does
    not require Phi (+) Phi to be invertible:

        C = [[-Phi, Sigma], [0, Phi']] * dt
        expm(C) = [[F11, F12], [0, F22]]
        B = F22',  Q = F22' F12

    Args:
        mu: Long-run mean, shape (p,)
        phi: Drift matrix, shape (p, p)
        sigma: Diffusion covariance, shape (p, p)
        delta_t: Step length, > 0

    Returns:
        (a, B, Q) with shapes (p,), (p, p), (p, p)
    """
    p = mu.shape[0]
    block = np.zeros((2 * p, 2 * p), dtype=np.float64)
    block[:p, :p] = -phi
    block[:p, p:] = sigma
    block[p:, p:] = phi.T
    expm_block = expm(block * delta_t)

    f12 = expm_block[:p, p:]
    f22 = expm_block[p:, p:]
    B = f22.T
    Q = f22.T @ f12
    Q = 0.5 * (Q + Q.T)
    a = (np.eye(p) - B) @ mu
    return a, B, Q


def tril_pairs(p: int) -> list[tuple[int, int]]:
    """Row-major (i, j) pairs of the lower triangle, i >= j."""
    return [(i, j) for i in range(p) for j in range(i + 1)]


def covariance_from_log_cholesky(values: NDArray, p: int) -> tuple[NDArray, NDArray]:
    """
    Build (L, L L') from an unconstrained log-Cholesky vector.

    The vector holds the lower triangle of L row by row, with the
    diagonal entries on the log scale.
    """
    L = np.zeros((p, p), dtype=np.float64)
    for value, (i, j) in zip(values, tril_pairs(p)):
        L[i, j] = np.exp(value) if i == j else value
    return L, L @ L.T


def log_cholesky_from_covariance(cov: NDArray) -> NDArray:
    """Inverse of covariance_from_log_cholesky."""
    L = np.linalg.cholesky(cov)
    p = cov.shape[0]
    out = np.empty(p * (p + 1) // 2, dtype=np.float64)
    for k, (i, j) in enumerate(tril_pairs(p)):
        out[k] = np.log(L[i, j]) if i == j else L[i, j]
    return out
