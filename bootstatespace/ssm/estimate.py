"""
Kalman-filter maximum likelihood estimator for fixed-coefficient models.

KalmanMLEstimator is the default Estimator used by the bootstrap. The
likelihood of each unit is the prediction-error decomposition of the
linear Gaussian state-space model

    eta_i0 ~ N(mu0 + gamma x_i0, Sigma0)
    eta_it = a + B eta_i,t-1 + gamma x_it + zeta_it,   zeta_it ~ N(0, Q)
    y_it   = nu + Lambda eta_it + kappa x_it + eps_it, eps_it ~ N(0, Theta)

evaluated with the Kalman filter. All units share the coefficients, so
the state covariance recursion is run once and the filtered means of
every unit are updated together. The objective is -2 log L, maximized
over the free coefficients with L-BFGS-B. Covariance blocks are
optimized on the log-Cholesky scale and reported as covariance entries.

Free coefficients and their names (1-based, matrices row-major,
covariances lower triangle):

    mu0_i          unless mu0_fixed
    sigma0_i_j     unless sigma0_fixed
    alpha_i, beta_i_j, psi_i_j      (ssm, var)
    mu_i, phi_i_j, sigma_i_j        (ou)
    gamma_i_j      when covariate effects on the state are set
    theta_i_j      (ssm, ou) unless Theta is singular

nu, Lambda and kappa are held at their values; they pin the location
and scale of the latent state.
"""

from __future__ import annotations

import time as _time

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import cho_solve, solve_triangular
from scipy.optimize import approx_fprime, minimize

from bootstatespace.core.exceptions import ValidationError
from bootstatespace.ssm._common import FitResult, PanelData
from bootstatespace.ssm._transition import (
    covariance_from_log_cholesky,
    log_cholesky_from_covariance,
    ou_discretize,
    tril_pairs,
)
from bootstatespace.ssm.design import OptimizerConfig, ParameterSet

# Objective value returned where the likelihood is undefined
_PENALTY = 1e10

_LOG_2PI = np.log(2.0 * np.pi)

# L-BFGS-B statuses accepted as an optimum: converged, and a line search
# that cannot improve further (roundoff-limited)
_CONVERGED_STATUS = (0, 2)


def estimates_theta(parameters: ParameterSet) -> bool:
    """Whether the measurement error covariance is a free block."""
    return (
        parameters.model != "var"
        and bool(np.all(np.diag(parameters.theta_l) != 0.0))
    )


class _Layout:
    """Maps between the unconstrained parameter vector and model blocks."""

    def __init__(self, parameters: ParameterSet):
        p = parameters.p
        blocks: list[tuple[str, str, tuple[int, ...]]] = []
        if not parameters.mu0_fixed:
            blocks.append(("mu0", "vector", (p,)))
        if not parameters.sigma0_fixed:
            blocks.append(("sigma0", "cov", (p,)))
        if parameters.model == "ou":
            blocks += [
                ("mu", "vector", (p,)),
                ("phi", "matrix", (p, p)),
                ("sigma", "cov", (p,)),
            ]
        else:
            blocks += [
                ("alpha", "vector", (p,)),
                ("beta", "matrix", (p, p)),
                ("psi", "cov", (p,)),
            ]
        if parameters.gamma is not None:
            blocks.append(("gamma", "matrix", parameters.gamma.shape))
        if estimates_theta(parameters):
            blocks.append(("theta", "cov", (parameters.k,)))

        self.blocks = tuple(blocks)
        self.sizes = tuple(
            shape[0] * (shape[0] + 1) // 2 if kind == "cov" else int(np.prod(shape))
            for _, kind, shape in blocks
        )
        self.names = tuple(self._names())

    def _names(self):
        for key, kind, shape in self.blocks:
            if kind == "vector":
                for i in range(shape[0]):
                    yield f"{key}_{i + 1}"
            elif kind == "matrix":
                for i in range(shape[0]):
                    for j in range(shape[1]):
                        yield f"{key}_{i + 1}_{j + 1}"
            else:
                for i, j in tril_pairs(shape[0]):
                    yield f"{key}_{i + 1}_{j + 1}"

    def _split(self, theta: NDArray):
        start = 0
        for (key, kind, shape), size in zip(self.blocks, self.sizes):
            yield key, kind, shape, theta[start:start + size]
            start += size

    def pack(self, parameters: ParameterSet) -> NDArray:
        """Unconstrained vector holding the values in `parameters`."""
        source = {
            "mu0": parameters.mu0,
            "sigma0": parameters.sigma0,
            "alpha": parameters.alpha,
            "beta": parameters.beta,
            "psi": parameters.psi,
            "mu": parameters.mu,
            "phi": parameters.phi,
            "sigma": parameters.sigma,
            "gamma": parameters.gamma,
            "theta": parameters.theta,
        }
        pieces = []
        for key, kind, _ in self.blocks:
            value = source[key]
            if kind == "cov":
                try:
                    pieces.append(log_cholesky_from_covariance(value))
                except np.linalg.LinAlgError as e:
                    raise ValidationError(
                        f"{key}: covariance must be positive definite to be "
                        f"estimated (fix it or use a full-rank factor)"
                    ) from e
            else:
                pieces.append(np.asarray(value, dtype=np.float64).ravel())
        return np.concatenate(pieces)

    def unpack(self, theta: NDArray) -> dict[str, NDArray]:
        """Model blocks; covariance blocks give both '<key>_l' and '<key>'."""
        out: dict[str, NDArray] = {}
        for key, kind, shape, values in self._split(theta):
            if kind == "cov":
                L, cov = covariance_from_log_cholesky(values, shape[0])
                out[f"{key}_l"] = L
                out[key] = cov
            else:
                out[key] = values.reshape(shape)
        return out

    def report(self, theta: NDArray) -> NDArray:
        """Values in the order of self.names (covariance entries)."""
        pieces = []
        for key, kind, shape, values in self._split(theta):
            if kind == "cov":
                _, cov = covariance_from_log_cholesky(values, shape[0])
                pieces.append(
                    np.array([cov[i, j] for i, j in tril_pairs(shape[0])])
                )
            else:
                pieces.append(values)
        return np.concatenate(pieces)


def _gaussian_m2ll(resid: NDArray, chol: NDArray) -> float:
    """-2 log-likelihood of rows of `resid` under N(0, chol chol')."""
    m, p = resid.shape
    diag = np.abs(np.diag(chol))
    if np.any(diag == 0.0):
        return np.inf
    scaled = solve_triangular(chol, resid.T, lower=True, check_finite=False)
    return float(
        np.sum(scaled ** 2) + 2.0 * m * np.sum(np.log(diag)) + m * p * _LOG_2PI
    )


class _Objective:
    """Kalman-filter -2 log L of the panel as a function of the free vector."""

    def __init__(
        self,
        layout: _Layout,
        data: PanelData,
        parameters: ParameterSet,
        weight_flag: bool,
    ):
        self.layout = layout
        self.parameters = parameters
        self.delta_t = data.delta_t
        if (parameters.gamma is not None or parameters.kappa is not None) and data.x is None:
            raise ValidationError(
                "x: covariate effects are set but the panel has no covariates"
            )
        y = data.y - parameters.nu
        if parameters.kappa is not None:
            y = y - data.x @ parameters.kappa.T
        self.y = y
        self.x = data.x if parameters.gamma is not None else None
        n, t, _ = y.shape
        self.scale = 1.0 / (n * t) if weight_flag else 1.0

    def _system(self, theta: NDArray):
        blocks = self.layout.unpack(theta)
        parameters = self.parameters
        if parameters.model == "ou":
            a, B, Q = ou_discretize(
                blocks["mu"], blocks["phi"], blocks["sigma"], self.delta_t,
            )
        else:
            a, B, Q = blocks["alpha"], blocks["beta"], blocks["psi"]
        return (
            a, B, Q,
            blocks.get("mu0", parameters.mu0),
            blocks.get("sigma0", parameters.sigma0),
            blocks.get("gamma"),
            blocks.get("theta", parameters.theta),
        )

    def evaluate(self, theta: NDArray) -> float:
        a, B, Q, mu0, P, gamma, meas_cov = self._system(theta)
        lam = self.parameters.lambda_
        y = self.y
        n, n_time, _ = y.shape

        m = np.tile(mu0, (n, 1))
        total = 0.0
        for t in range(n_time):
            if t > 0:
                m = a + m @ B.T
                P = B @ P @ B.T + Q
            if gamma is not None:
                m = m + self.x[:, t] @ gamma.T

            innovation = y[:, t] - m @ lam.T
            PLt = P @ lam.T
            F = lam @ PLt + meas_cov
            F_l = np.linalg.cholesky(0.5 * (F + F.T))
            total += _gaussian_m2ll(innovation, F_l)

            gain = cho_solve((F_l, True), PLt.T, check_finite=False).T
            m = m + innovation @ gain.T
            P = P - gain @ PLt.T
            P = 0.5 * (P + P.T)

        return total * self.scale

    def __call__(self, theta: NDArray) -> float:
        try:
            with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
                value = self.evaluate(theta)
        except (np.linalg.LinAlgError, ValueError, FloatingPointError):
            return _PENALTY
        if not np.isfinite(value):
            return _PENALTY
        return value


class _StoppingRule:
    """
    L-BFGS-B callback enforcing the stopping criteria scipy lacks.

    Raising StopIteration ends the optimization at the current iterate;
    `reason` records which criterion fired.
    """

    def __init__(self, optimizer: OptimizerConfig, theta0: NDArray):
        self.optimizer = optimizer
        self.reason: str | None = None
        self.trace: list[float] = []
        self.nit = 0
        self._prev_x = np.array(theta0, dtype=np.float64)
        self._prev_f: float | None = None
        self._start = _time.perf_counter()

    def __call__(self, intermediate_result):
        opt = self.optimizer
        x = intermediate_result.x
        f = float(intermediate_result.fun)
        self.nit += 1
        if opt.debug_flag:
            self.trace.append(f)
        if opt.verbose:
            print(f"iteration {self.nit}: -2LL = {f:.6f}")

        if f <= opt.stopval:
            self.reason = "stopval"
        elif (
            opt.ftol_abs > 0
            and self._prev_f is not None
            and abs(self._prev_f - f) <= opt.ftol_abs
        ):
            self.reason = "ftol_abs"
        elif (
            opt.xtol_rel > 0
            and np.linalg.norm(x - self._prev_x) <= opt.xtol_rel * np.linalg.norm(x)
        ):
            self.reason = "xtol_rel"
        elif opt.maxtime > 0 and _time.perf_counter() - self._start > opt.maxtime:
            self.reason = "maxtime"

        self._prev_x = np.array(x, dtype=np.float64)
        self._prev_f = f
        if self.reason is not None:
            raise StopIteration


def _numerical_hessian(objective, theta: NDArray, step: float = 1e-4) -> NDArray:
    """Central differences of the forward-difference gradient."""
    m = theta.shape[0]
    hessian = np.empty((m, m), dtype=np.float64)
    for i in range(m):
        shift = np.zeros(m)
        shift[i] = step
        g_hi = approx_fprime(theta + shift, objective, step)
        g_lo = approx_fprime(theta - shift, objective, step)
        hessian[:, i] = (g_hi - g_lo) / (2.0 * step)
    return 0.5 * (hessian + hessian.T)


class KalmanMLEstimator:
    """
    Default Estimator: Kalman-filter Gaussian ML with L-BFGS-B.

    Starting values are the coefficients of the ParameterSet passed to
    fit(), so in a parametric bootstrap every fit starts at the
    generating values. Lambda may be any k x p matrix.
    """

    @property
    def name(self) -> str:
        return 'lbfgsb_kalman_ml'

    def prepare(
        self,
        parameters: ParameterSet,
        optimizer: OptimizerConfig,
    ) -> tuple[tuple[str, ...], NDArray]:
        """
        Names and reference values of the free coefficients.

        Raises:
            ValidationError: If a covariance to be estimated is not
                positive definite, or a singular measurement error
                covariance leaves the observations degenerate.
        """
        if not estimates_theta(parameters):
            lam = parameters.lambda_
            k = parameters.k
            if np.linalg.matrix_rank(np.hstack([lam, parameters.theta_l])) < k:
                raise ValidationError(
                    f"lambda_: with a singular measurement error covariance "
                    f"the loadings must have full row rank {k}, got shape "
                    f"{lam.shape} of rank {np.linalg.matrix_rank(lam)}"
                )
            if parameters.sigma0_fixed:
                first = lam @ parameters.sigma0 @ lam.T + parameters.theta
                if np.linalg.matrix_rank(first) < k:
                    raise ValidationError(
                        "sigma0_l: a fixed initial covariance must leave the "
                        "first occasion nondegenerate when there is no "
                        "measurement error"
                    )
        layout = _Layout(parameters)
        return layout.names, layout.report(layout.pack(parameters))

    def fit(
        self,
        data: PanelData,
        parameters: ParameterSet,
        optimizer: OptimizerConfig,
        *,
        seed: int | None = None,
    ) -> FitResult:
        """
        Maximize the Kalman-filter likelihood of `data`.

        Returns:
            FitResult. converged is True when L-BFGS-B reports success or a
            roundoff-limited line search,
            or when xtol_rel, ftol_abs or stopval fired; it is False when
            maxeval or maxtime was exhausted or no finite optimum was found.
        """
        layout = _Layout(parameters)
        objective = _Objective(layout, data, parameters, optimizer.weight_flag)
        theta0 = layout.pack(parameters)

        if optimizer.perturb_flag:
            rng = np.random.default_rng(seed)
            theta0 = theta0 + rng.normal(scale=0.01 * (np.abs(theta0) + 0.1))

        if not optimizer.optimization_flag:
            value = objective(theta0)
            return FitResult(
                names=layout.names,
                estimate=layout.report(theta0),
                converged=bool(value < _PENALTY),
                diagnostics={
                    'message': 'optimization skipped',
                    'objective': value,
                    'nfev': 1,
                    'nit': 0,
                    'stop_reason': None,
                },
            )

        options: dict = {}
        if optimizer.ftol_rel > 0:
            options['ftol'] = optimizer.ftol_rel
        if optimizer.maxeval > 0:
            options['maxfun'] = int(optimizer.maxeval)

        stopper = _StoppingRule(optimizer, theta0)
        opt_result = minimize(
            objective,
            theta0,
            method='L-BFGS-B',
            callback=stopper,
            options=options,
        )

        if stopper.reason in ("stopval", "ftol_abs", "xtol_rel"):
            converged = True
        elif stopper.reason == "maxtime":
            converged = False
        else:
            converged = opt_result.status in _CONVERGED_STATUS

        theta_hat = np.asarray(opt_result.x, dtype=np.float64)
        if not np.all(np.isfinite(theta_hat)) or opt_result.fun >= _PENALTY:
            converged = False

        diagnostics = {
            'message': str(opt_result.message),
            'objective': float(opt_result.fun),
            'nfev': int(getattr(opt_result, 'nfev', 0)),
            'nit': int(getattr(opt_result, 'nit', stopper.nit)),
            'stop_reason': stopper.reason,
        }
        if optimizer.debug_flag:
            diagnostics['trace'] = tuple(stopper.trace)
        if optimizer.hessian_flag:
            diagnostics['hessian'] = _numerical_hessian(objective, theta_hat)

        return FitResult(
            names=layout.names,
            estimate=layout.report(theta_hat),
            converged=converged,
            diagnostics=diagnostics,
        )

    def __repr__(self) -> str:
        return "KalmanMLEstimator()"
