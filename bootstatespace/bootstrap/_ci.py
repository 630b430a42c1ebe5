"""
Bootstrap confidence interval computation.

Three methods over the sampling distribution thetahatstar (R x k) and
the reference estimate est (k,):
- normal: est +/- z_{1-alpha/2} * se, se the bootstrap standard error
- percentile: empirical alpha/2 and 1-alpha/2 quantiles
- bc: bias-corrected percentile (no acceleration term, so not BCa)
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy import stats as sp_stats

CI_TYPES = ("normal", "percentile", "bc")


def bootstrap_se(thetahatstar: NDArray) -> NDArray:
    """Column standard deviations (ddof=1); NaN with fewer than 2 rows."""
    if thetahatstar.shape[0] < 2:
        return np.full(thetahatstar.shape[1], np.nan)
    return np.std(thetahatstar, axis=0, ddof=1)


def compute_ci(
    est: NDArray,
    thetahatstar: NDArray,
    alpha: float,
    type: str = "percentile",
) -> NDArray:
    """
    Compute one confidence interval per coefficient.

    Args:
        est: Reference point estimate, shape (k,).
        thetahatstar: Bootstrap estimates, shape (R, k).
        alpha: Significance level; the interval has coverage 1 - alpha.
        type: "normal", "percentile" or "bc".

    Returns:
        NDArray of shape (k, 2): lower and upper bounds.

    Raises:
        ValueError: If type is unknown or alpha is outside (0, 1).
    """
    if type not in CI_TYPES:
        raise ValueError(
            f"type must be one of {CI_TYPES}, got {type!r}"
        )
    if not 0.0 < alpha < 1.0:
        raise ValueError(f"alpha must be in (0, 1), got {alpha}")
    if thetahatstar.shape[0] == 0:
        return np.full((len(est), 2), np.nan)

    if type == "normal":
        return _ci_normal(est, thetahatstar, alpha)
    if type == "percentile":
        return _ci_percentile(thetahatstar, alpha)
    return _ci_bc(est, thetahatstar, alpha)


def _ci_normal(est: NDArray, thetahatstar: NDArray, alpha: float) -> NDArray:
    """
    Normal approximation CI centred at the point estimate.

    CI = [est - z_{1-alpha/2} * se, est + z_{1-alpha/2} * se]
    """
    z = sp_stats.norm.ppf(1.0 - alpha / 2.0)
    se = bootstrap_se(thetahatstar)
    return np.column_stack([est - z * se, est + z * se])


def _ci_percentile(thetahatstar: NDArray, alpha: float) -> NDArray:
    """
    Percentile bootstrap CI.

    CI = [Q(alpha/2), Q(1-alpha/2)], Q with linear interpolation
    between order statistics.
    """
    k = thetahatstar.shape[1]
    ci = np.empty((k, 2), dtype=np.float64)

    for j in range(k):
        ci[j, 0] = np.quantile(thetahatstar[:, j], alpha / 2.0)
        ci[j, 1] = np.quantile(thetahatstar[:, j], 1.0 - alpha / 2.0)

    return ci


def _ci_bc(est: NDArray, thetahatstar: NDArray, alpha: float) -> NDArray:
    """
    Bias-corrected percentile CI.

    Steps:
    1. z0 = Phi^{-1}(proportion of thetahatstar < est)
    2. alpha1 = Phi(2 z0 + z_{alpha/2}), alpha2 = Phi(2 z0 + z_{1-alpha/2})
    3. CI = [Q(alpha1), Q(alpha2)]
    """
    R, k = thetahatstar.shape
    ci = np.empty((k, 2), dtype=np.float64)

    z_lo = sp_stats.norm.ppf(alpha / 2.0)
    z_hi = sp_stats.norm.ppf(1.0 - alpha / 2.0)

    for j in range(k):
        t_j = thetahatstar[:, j]

        prop_below = np.sum(t_j < est[j]) / R
        # Clamp to avoid infinite z0
        prop_below = np.clip(prop_below, 1.0 / (2.0 * R), 1.0 - 1.0 / (2.0 * R))
        z0 = sp_stats.norm.ppf(prop_below)

        alpha1 = sp_stats.norm.cdf(2.0 * z0 + z_lo)
        alpha2 = sp_stats.norm.cdf(2.0 * z0 + z_hi)

        ci[j, 0] = np.quantile(t_j, alpha1)
        ci[j, 1] = np.quantile(t_j, alpha2)

    return ci


def ci_labels(alpha: float) -> tuple[str, str]:
    """Column labels of an interval, e.g. ('2.5%', '97.5%') for 0.05."""
    lo = 100.0 * alpha / 2.0
    hi = 100.0 * (1.0 - alpha / 2.0)
    return f"{lo:.10g}%", f"{hi:.10g}%"
