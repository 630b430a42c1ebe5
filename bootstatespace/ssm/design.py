"""
Design classes for fixed-coefficient state-space models.

ParameterSet holds every coefficient needed to simulate from and fit
one of the supported model classes; OptimizerConfig holds the stopping
criteria and flags of the fitting routine. Both are immutable and
validated at construction.

Model (per unit i, occasion t):

    measurement:  y_it = nu + Lambda eta_it + kappa x_it + eps_it,
                  eps_it ~ N(0, Theta)
    transition:   eta_it = alpha + Beta eta_i,t-1 + gamma x_it + zeta_it,
                  zeta_it ~ N(0, Psi)
    initial:      eta_i0 ~ N(mu0, Sigma0)

For the OU model alpha, Beta and Psi come from the exact discretization
of the drift (mu, Phi) and diffusion Sigma over delta_t. The VAR model
observes the state directly (Lambda = I, nu = 0, Theta = 0).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from bootstatespace.core.exceptions import DimensionError, ValidationError
from bootstatespace.core.validation import (
    check_array,
    check_finite,
    check_length,
    check_lower_triangular,
    check_square,
    check_2d,
)
from bootstatespace.ssm._transition import ou_discretize

MODELS = ("ssm", "ou", "var")


def _vector(value, name: str, length: int | None = None) -> NDArray:
    arr = check_array(value, name)
    arr = np.atleast_1d(arr)
    check_finite(arr, name)
    if length is not None:
        check_length(arr, length, name)
    arr.setflags(write=False)
    return arr


def _matrix(value, name: str, shape: tuple[int, int] | None = None) -> NDArray:
    arr = check_array(value, name)
    if arr.ndim == 0:
        arr = arr.reshape(1, 1)
    check_2d(arr, name)
    check_finite(arr, name)
    if shape is not None and arr.shape != shape:
        raise DimensionError(f"{name}: expected shape {shape}, got {arr.shape}")
    arr.setflags(write=False)
    return arr


def _cholesky_factor(value, name: str, size: int) -> NDArray:
    arr = check_array(value, name)
    if arr.ndim == 0:
        arr = arr.reshape(1, 1)
    check_square(arr, size, name)
    check_finite(arr, name)
    check_lower_triangular(arr, name)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class ParameterSet:
    """
    Frozen coefficients of one fixed-parameter state-space model.

    Attributes:
        model: "ssm" (discrete SSM), "ou" (Ornstein-Uhlenbeck) or "var".
        mu0: Initial state mean, shape (p,).
        sigma0_l: Lower Cholesky factor of the initial covariance, (p, p).
        alpha: Transition intercept (ssm, var), shape (p,).
        beta: Transition matrix (ssm, var), shape (p, p).
        psi_l: Lower Cholesky factor of the innovation covariance (ssm, var).
        mu: Long-run mean (ou), shape (p,).
        phi: Drift matrix (ou), shape (p, p).
        sigma_l: Lower Cholesky factor of the diffusion covariance (ou).
        nu: Measurement intercept, shape (k,).
        lambda_: Factor loadings, shape (k, p).
        theta_l: Lower Cholesky factor of the measurement error covariance.
        gamma: Covariate effects on the state, shape (p, j), or None.
        kappa: Covariate effects on the measurement, shape (k, j), or None.
        mu0_fixed: Hold mu0 at its value instead of estimating it.
        sigma0_fixed: Hold Sigma0 at its value instead of estimating it.

    Arrays are read-only copies of the user's input.
    """
    model: str
    mu0: NDArray[np.floating[Any]]
    sigma0_l: NDArray[np.floating[Any]]
    nu: NDArray[np.floating[Any]]
    lambda_: NDArray[np.floating[Any]]
    theta_l: NDArray[np.floating[Any]]
    alpha: NDArray[np.floating[Any]] | None = None
    beta: NDArray[np.floating[Any]] | None = None
    psi_l: NDArray[np.floating[Any]] | None = None
    mu: NDArray[np.floating[Any]] | None = None
    phi: NDArray[np.floating[Any]] | None = None
    sigma_l: NDArray[np.floating[Any]] | None = None
    gamma: NDArray[np.floating[Any]] | None = None
    kappa: NDArray[np.floating[Any]] | None = None
    mu0_fixed: bool = False
    sigma0_fixed: bool = False

    # --- Constructors ---

    @classmethod
    def for_ssm(
        cls,
        mu0,
        sigma0_l,
        alpha,
        beta,
        psi_l,
        nu,
        lambda_,
        theta_l,
        *,
        gamma=None,
        kappa=None,
        mu0_fixed: bool = False,
        sigma0_fixed: bool = False,
    ) -> ParameterSet:
        """
        Discrete-time linear state-space model.

        Raises:
            ValidationError / DimensionError: If inputs are inconsistent.
        """
        mu0_arr = _vector(mu0, "mu0")
        p = mu0_arr.shape[0]
        lambda_arr = _matrix(lambda_, "lambda_")
        if lambda_arr.shape[1] != p:
            raise DimensionError(
                f"lambda_: expected {p} columns to match mu0, "
                f"got shape {lambda_arr.shape}"
            )
        k = lambda_arr.shape[0]
        return cls._build(
            model="ssm",
            mu0=mu0_arr,
            sigma0_l=_cholesky_factor(sigma0_l, "sigma0_l", p),
            nu=_vector(nu, "nu", k),
            lambda_=lambda_arr,
            theta_l=_cholesky_factor(theta_l, "theta_l", k),
            alpha=_vector(alpha, "alpha", p),
            beta=_matrix(beta, "beta", (p, p)),
            psi_l=_cholesky_factor(psi_l, "psi_l", p),
            gamma=gamma,
            kappa=kappa,
            mu0_fixed=mu0_fixed,
            sigma0_fixed=sigma0_fixed,
        )

    @classmethod
    def for_ou(
        cls,
        mu0,
        sigma0_l,
        mu,
        phi,
        sigma_l,
        nu,
        lambda_,
        theta_l,
        *,
        gamma=None,
        kappa=None,
        mu0_fixed: bool = False,
        sigma0_fixed: bool = False,
    ) -> ParameterSet:
        """
        Ornstein-Uhlenbeck model in state-space form.

        Raises:
            ValidationError / DimensionError: If inputs are inconsistent.
        """
        mu0_arr = _vector(mu0, "mu0")
        p = mu0_arr.shape[0]
        lambda_arr = _matrix(lambda_, "lambda_")
        if lambda_arr.shape[1] != p:
            raise DimensionError(
                f"lambda_: expected {p} columns to match mu0, "
                f"got shape {lambda_arr.shape}"
            )
        k = lambda_arr.shape[0]
        return cls._build(
            model="ou",
            mu0=mu0_arr,
            sigma0_l=_cholesky_factor(sigma0_l, "sigma0_l", p),
            nu=_vector(nu, "nu", k),
            lambda_=lambda_arr,
            theta_l=_cholesky_factor(theta_l, "theta_l", k),
            mu=_vector(mu, "mu", p),
            phi=_matrix(phi, "phi", (p, p)),
            sigma_l=_cholesky_factor(sigma_l, "sigma_l", p),
            gamma=gamma,
            kappa=kappa,
            mu0_fixed=mu0_fixed,
            sigma0_fixed=sigma0_fixed,
        )

    @classmethod
    def for_var(
        cls,
        mu0,
        sigma0_l,
        alpha,
        beta,
        psi_l,
        *,
        gamma=None,
        mu0_fixed: bool = False,
        sigma0_fixed: bool = False,
    ) -> ParameterSet:
        """
        Vector autoregressive model (state observed without error).

        Raises:
            ValidationError / DimensionError: If inputs are inconsistent.
        """
        mu0_arr = _vector(mu0, "mu0")
        p = mu0_arr.shape[0]
        identity = np.eye(p)
        identity.setflags(write=False)
        zeros_vec = np.zeros(p)
        zeros_vec.setflags(write=False)
        zeros_mat = np.zeros((p, p))
        zeros_mat.setflags(write=False)
        return cls._build(
            model="var",
            mu0=mu0_arr,
            sigma0_l=_cholesky_factor(sigma0_l, "sigma0_l", p),
            nu=zeros_vec,
            lambda_=identity,
            theta_l=zeros_mat,
            alpha=_vector(alpha, "alpha", p),
            beta=_matrix(beta, "beta", (p, p)),
            psi_l=_cholesky_factor(psi_l, "psi_l", p),
            gamma=gamma,
            kappa=None,
            mu0_fixed=mu0_fixed,
            sigma0_fixed=sigma0_fixed,
        )

    @classmethod
    def _build(cls, *, gamma, kappa, mu0_fixed, sigma0_fixed, **fields) -> ParameterSet:
        p = fields["mu0"].shape[0]
        k = fields["lambda_"].shape[0]

        gamma_arr = None if gamma is None else _matrix(gamma, "gamma")
        kappa_arr = None if kappa is None else _matrix(kappa, "kappa")
        if gamma_arr is not None and gamma_arr.shape[0] != p:
            raise DimensionError(
                f"gamma: expected {p} rows, got shape {gamma_arr.shape}"
            )
        if kappa_arr is not None and kappa_arr.shape[0] != k:
            raise DimensionError(
                f"kappa: expected {k} rows, got shape {kappa_arr.shape}"
            )
        if (
            gamma_arr is not None
            and kappa_arr is not None
            and gamma_arr.shape[1] != kappa_arr.shape[1]
        ):
            raise DimensionError(
                f"gamma and kappa must have the same number of columns, "
                f"got {gamma_arr.shape[1]} and {kappa_arr.shape[1]}"
            )

        return cls(
            gamma=gamma_arr,
            kappa=kappa_arr,
            mu0_fixed=bool(mu0_fixed),
            sigma0_fixed=bool(sigma0_fixed),
            **fields,
        )

    def __post_init__(self):
        if self.model not in MODELS:
            raise ValidationError(
                f"model must be one of {MODELS}, got {self.model!r}"
            )

    # --- Dimensions ---

    @property
    def p(self) -> int:
        """Number of latent state variables."""
        return self.mu0.shape[0]

    @property
    def k(self) -> int:
        """Number of observed variables."""
        return self.lambda_.shape[0]

    @property
    def j(self) -> int:
        """Number of covariates (0 when no covariate effects are set)."""
        if self.gamma is not None:
            return self.gamma.shape[1]
        if self.kappa is not None:
            return self.kappa.shape[1]
        return 0

    # --- Derived covariance matrices ---

    @property
    def sigma0(self) -> NDArray:
        return self.sigma0_l @ self.sigma0_l.T

    @property
    def theta(self) -> NDArray:
        return self.theta_l @ self.theta_l.T

    @property
    def psi(self) -> NDArray | None:
        if self.psi_l is None:
            return None
        return self.psi_l @ self.psi_l.T

    @property
    def sigma(self) -> NDArray | None:
        if self.sigma_l is None:
            return None
        return self.sigma_l @ self.sigma_l.T

    def discretize(self, delta_t: float) -> tuple[NDArray, NDArray, NDArray]:
        """
        Discrete-time transition (a, B, Q) over one step of delta_t.

        delta_t only matters for the OU model.
        """
        if self.model == "ou":
            return ou_discretize(self.mu, self.phi, self.sigma, delta_t)
        return (
            np.array(self.alpha, dtype=np.float64),
            np.array(self.beta, dtype=np.float64),
            self.psi,
        )

    def __repr__(self) -> str:
        return (
            f"ParameterSet(model={self.model!r}, p={self.p}, k={self.k}, "
            f"j={self.j}, mu0_fixed={self.mu0_fixed}, "
            f"sigma0_fixed={self.sigma0_fixed})"
        )


@dataclass(frozen=True)
class OptimizerConfig:
    """
    Stopping criteria and flags for the fitting routine.

    The objective is -2 log-likelihood. A non-positive xtol_rel,
    ftol_rel, ftol_abs, maxeval or maxtime disables that criterion;
    stopval is always active.

    Attributes:
        xtol_rel: Stop when the relative change in parameters is below this.
        stopval: Stop when the objective is at or below this.
        ftol_rel: Stop when the relative change in objective is below this.
        ftol_abs: Stop when the absolute change in objective is below this.
        maxeval: Maximum number of objective evaluations.
        maxtime: Maximum optimization time in seconds.
        optimization_flag: If False, evaluate at the starting values only.
        hessian_flag: Compute the numerical Hessian at the optimum.
        verbose: Print the objective at every iteration.
        weight_flag: Scale the objective by the number of observations.
        debug_flag: Keep the objective trace in the fit diagnostics.
        perturb_flag: Jitter the starting values before optimizing.
    """
    xtol_rel: float = 1e-7
    stopval: float = -9999.0
    ftol_rel: float = -1.0
    ftol_abs: float = -1.0
    maxeval: int = -1
    maxtime: float = -1.0
    optimization_flag: bool = True
    hessian_flag: bool = False
    verbose: bool = False
    weight_flag: bool = False
    debug_flag: bool = False
    perturb_flag: bool = False

    def __post_init__(self):
        for name in ("xtol_rel", "stopval", "ftol_rel", "ftol_abs", "maxtime"):
            value = getattr(self, name)
            if not np.isfinite(value):
                raise ValidationError(f"{name}: must be finite, got {value}")
        if int(self.maxeval) != self.maxeval:
            raise ValidationError(
                f"maxeval: expected an integer, got {self.maxeval!r}"
            )
