"""
Public API for parametric bootstrap of state-space models.

    pb_ssm(R, path, prefix, n, time, ...)      → BootstrapSolution
    pb_ssm_ou(R, path, prefix, n, time, ...)   → BootstrapSolution
    pb_ssm_var(R, path, prefix, n, time, ...)  → BootstrapSolution
    parametric_bootstrap(parameters, R, ...)   → BootstrapSolution

The model entry points build a ParameterSet and an OptimizerConfig and
delegate to parametric_bootstrap, which validates, derives one seed per
replication, dispatches to an execution backend, and wraps the Result
in a BootstrapSolution.
"""

from __future__ import annotations

import warnings
from typing import Any, Sequence

import numpy as np
from numpy.typing import NDArray

from bootstatespace.core.exceptions import (
    ConvergenceError,
    DimensionError,
    NonConvergenceWarning,
    WorkerError,
)
from bootstatespace.core.result import Result
from bootstatespace.core.timing import Timer
from bootstatespace.bootstrap._common import BootParams, ReplicationRequest
from bootstatespace.bootstrap._replication import (
    ReplicationRunner,
    replication_seeds,
    request_fingerprint,
)
from bootstatespace.bootstrap._storage import ReplicationStore
from bootstatespace.bootstrap.backends import select_backend
from bootstatespace.bootstrap.design import BootstrapDesign, check_run
from bootstatespace.bootstrap.solution import BootstrapSolution
from bootstatespace.ssm.design import OptimizerConfig, ParameterSet
from bootstatespace.ssm.estimate import KalmanMLEstimator
from bootstatespace.ssm.simulate import StateSpaceSimulator

_OPTIMIZER_ARGS = (
    "optimization_flag", "hessian_flag", "verbose", "weight_flag",
    "debug_flag", "perturb_flag", "xtol_rel", "stopval", "ftol_rel",
    "ftol_abs", "maxeval", "maxtime",
)


def _format_call(name: str, args: dict[str, Any]) -> str:
    """Readable invocation record; arrays are shown by shape."""
    parts = []
    for key, value in args.items():
        if value is None:
            continue
        if isinstance(value, np.ndarray) or isinstance(value, (list, tuple)):
            shape = np.shape(value)
            parts.append(f"{key}=<array {shape}>")
        elif isinstance(value, (bool, int, float, str)):
            parts.append(f"{key}={value!r}")
        else:
            parts.append(f"{key}=<{value.__class__.__name__}>")
    return f"{name}({', '.join(parts)})"


def _sample_vcov(thetahatstar: NDArray) -> NDArray:
    m, k = thetahatstar.shape
    if m < 2:
        return np.full((k, k), np.nan)
    vcov = np.atleast_2d(np.cov(thetahatstar, rowvar=False, ddof=1))
    return 0.5 * (vcov + vcov.T)


def parametric_bootstrap(
    parameters: ParameterSet,
    R: int,
    path,
    prefix: str,
    n: int,
    time: int,
    *,
    delta_t: float = 1.0,
    x=None,
    type: int = 0,
    alpha_level: float | Sequence[float] = 0.05,
    optimizer: OptimizerConfig | None = None,
    ncores: int | None = None,
    seed: int | None = None,
    clean: bool = True,
    simulator=None,
    estimator=None,
    backend=None,
    fun: str | None = None,
    call: str | None = None,
    args: dict[str, Any] | None = None,
) -> BootstrapSolution:
    """
    Parametric bootstrap for a fixed-coefficient state-space model.

    Simulates R panels from `parameters`, fits the model to each, and
    collects the converged estimates into a sampling distribution.

    Parameters
    ----------
    parameters : ParameterSet
        Generating (hypothesized) parameters.
    R : int
        Number of bootstrap replications, > 0.
    path : str or path-like
        Directory for the per-replication artifacts.
    prefix : str
        Artifact filename prefix: {path}/{prefix}{index}.npz.
    n, time : int
        Units and occasions per simulated panel.
    delta_t : float
        Spacing between occasions (drives the OU discretization).
    x : array-like or None
        Covariates, shape (n, time, j).
    type : int
        Model-type discriminator; only 0 (fixed parameters) is supported.
    alpha_level : float or sequence of float
        Significance level(s) used by summary().
    optimizer : OptimizerConfig or None
        Stopping criteria and flags of every fit.
    ncores : int or None
        Worker count. None or 1 runs serially; otherwise fork on Linux
        and macOS, a local socket cluster elsewhere.
    seed : int or None
        Master seed. None draws fresh entropy, recorded in info['seed'].
    clean : bool
        Delete {path}/{prefix}* after a successful run.
    simulator, estimator : optional
        Simulator / Estimator implementations; default to
        StateSpaceSimulator and KalmanMLEstimator.
    backend : optional
        Execution backend overriding the automatic selection.

    Returns
    -------
    BootstrapSolution

    Raises
    ------
    ConfigurationError
        If R is not positive or type is unsupported (nothing is written).
    ConvergenceError
        If no replication converged.
    WorkerError
        If a parallel worker crashed or disconnected.
    PersistenceError
        If the artifacts cannot be written.
    """
    check_run(R, type)
    design = BootstrapDesign.for_bootstrap(
        parameters, R, path, prefix, n, time,
        delta_t=delta_t,
        x=x,
        type=type,
        alpha_level=alpha_level,
        optimizer=optimizer,
        ncores=ncores,
        seed=seed,
        clean=clean,
        fun=fun,
    )
    if simulator is None:
        simulator = StateSpaceSimulator()
    if estimator is None:
        estimator = KalmanMLEstimator()

    timer = Timer()
    timer.start()
    warnings_list: list[str] = []

    with timer.section('prepare'):
        names, est = estimator.prepare(design.parameters, design.optimizer)
        names = tuple(names)
        est = np.asarray(est, dtype=np.float64)
        if est.shape != (len(names),):
            raise DimensionError(
                f"estimator.prepare returned {len(names)} names but "
                f"values of shape {est.shape}"
            )

        master_seed = design.seed
        if master_seed is None:
            master_seed = int(np.random.SeedSequence().entropy)
        components = (
            simulator.__class__.__qualname__,
            estimator.__class__.__qualname__,
        )
        requests = [
            ReplicationRequest(
                index=i + 1,
                seed=s,
                parameters=design.parameters,
                simulation=design.simulation,
                optimizer=design.optimizer,
                fingerprint=request_fingerprint(
                    s, design.parameters, design.simulation,
                    design.optimizer, components,
                ),
            )
            for i, s in enumerate(replication_seeds(master_seed, design.R))
        ]
        store = ReplicationStore(design.path, design.prefix)
        runner = ReplicationRunner(names, simulator, estimator, store)
        if backend is None:
            backend = select_backend(design.ncores)

    with timer.section('replications'):
        results = sorted(backend.run(requests, runner), key=lambda r: r.index)

    returned = tuple(result.index for result in results)
    if returned != tuple(range(1, design.R + 1)):
        missing = tuple(sorted(set(range(1, design.R + 1)) - set(returned)))
        raise WorkerError(
            f"backend {backend.name!r} returned {len(results)} of {design.R} "
            f"replications (missing {missing})",
            backend=backend.name,
            indices=missing,
        )

    with timer.section('aggregate'):
        converged = [result for result in results if result.converged]
        failed = tuple(result.index for result in results if not result.converged)
        diagnostics = {
            result.index: result.diagnostic or "did not converge"
            for result in results if not result.converged
        }
        if not converged:
            raise ConvergenceError(
                f"none of the {design.R} bootstrap replications converged; "
                f"first failure: {diagnostics[failed[0]]}",
                iterations=design.R,
                reason="all_failed",
            )
        thetahatstar = np.vstack([result.estimate for result in converged])
        vcov = _sample_vcov(thetahatstar)

    if failed:
        msg = (
            f"{len(failed)} of {design.R} replications did not converge and "
            f"were excluded (indices {list(failed)})"
        )
        warnings.warn(msg, NonConvergenceWarning, stacklevel=2)
        warnings_list.append(msg)
    if len(converged) < 2:
        msg = (
            f"only {len(converged)} replication converged; the sampling "
            f"covariance is undefined"
        )
        warnings.warn(msg, NonConvergenceWarning, stacklevel=2)
        warnings_list.append(msg)

    removed = 0
    if design.clean:
        with timer.section('cleanup'):
            removed = store.purge()

    timer.stop()

    params = BootParams(
        names=names,
        est=est,
        thetahatstar=thetahatstar,
        vcov=vcov,
        R=design.R,
        R_effective=len(converged),
        indices=tuple(result.index for result in converged),
        failed=failed,
        diagnostics=diagnostics,
        fit_details={
            result.index: result.fit_details
            for result in results if result.fit_details
        },
    )

    result = Result(
        params=params,
        info={
            'seed': master_seed,
            'model': design.parameters.model,
            'ncores': design.ncores,
            'path': str(design.path),
            'prefix': design.prefix,
            'failed': failed,
            'files_removed': removed,
            'simulator': components[0],
            'estimator': components[1],
        },
        timing=timer.result(),
        backend_name=backend.name,
        warnings=tuple(warnings_list),
    )

    if args is None:
        args = {
            'parameters': design.parameters, 'R': R, 'path': str(path),
            'prefix': prefix, 'n': n, 'time': time, 'delta_t': delta_t,
            'type': type, 'alpha_level': alpha_level, 'ncores': ncores,
            'seed': seed, 'clean': clean,
        }
    if call is None:
        call = _format_call("parametric_bootstrap", args)

    return BootstrapSolution(
        _result=result, _design=design, _call=call, _args=args,
    )


def _optimizer_from(args: dict[str, Any]) -> OptimizerConfig:
    return OptimizerConfig(**{key: args[key] for key in _OPTIMIZER_ARGS})


def pb_ssm(
    R: int,
    path,
    prefix: str,
    n: int,
    time: int,
    mu0,
    sigma0_l,
    alpha,
    beta,
    psi_l,
    nu,
    lambda_,
    theta_l,
    *,
    delta_t: float = 1.0,
    type: int = 0,
    x=None,
    gamma=None,
    kappa=None,
    mu0_fixed: bool = False,
    sigma0_fixed: bool = False,
    alpha_level: float | Sequence[float] = 0.05,
    optimization_flag: bool = True,
    hessian_flag: bool = False,
    verbose: bool = False,
    weight_flag: bool = False,
    debug_flag: bool = False,
    perturb_flag: bool = False,
    xtol_rel: float = 1e-7,
    stopval: float = -9999.0,
    ftol_rel: float = -1.0,
    ftol_abs: float = -1.0,
    maxeval: int = -1,
    maxtime: float = -1.0,
    ncores: int | None = None,
    seed: int | None = None,
    clean: bool = True,
    simulator=None,
    estimator=None,
) -> BootstrapSolution:
    """Parametric bootstrap for the state-space model (fixed parameters).

    Results are labelled "PBSSMFixed".

    Parameters
    ----------
    R : int
        Number of bootstrap samples.
    path, prefix : str
        Directory and filename prefix of the bootstrap artifacts.
    n, time : int
        Number of individuals and of time points.
    mu0, sigma0_l : array-like
        Initial mean and lower Cholesky factor of the initial covariance.
    alpha, beta, psi_l : array-like
        Transition intercept, transition matrix, lower Cholesky factor
        of the process noise covariance.
    nu, lambda_, theta_l : array-like
        Measurement intercept, factor loadings, lower Cholesky factor of
        the measurement error covariance.
    delta_t : float
        Time interval between occasions.
    type : int
        Only 0 is supported.
    x, gamma, kappa : array-like or None
        Covariates (n, time, j) and their effects on state and
        measurement.
    mu0_fixed, sigma0_fixed : bool
        Hold the initial mean / covariance at their values.
    alpha_level : float or sequence
        Significance level(s).
    optimization_flag ... maxtime
        Fitting options, see OptimizerConfig.
    ncores : int or None
        Number of workers.
    seed : int or None
        Master random seed.
    clean : bool
        Delete the intermediate files after the run.

    Returns
    -------
    BootstrapSolution
    """
    args = dict(locals())
    check_run(R, type)
    parameters = ParameterSet.for_ssm(
        mu0, sigma0_l, alpha, beta, psi_l, nu, lambda_, theta_l,
        gamma=gamma, kappa=kappa,
        mu0_fixed=mu0_fixed, sigma0_fixed=sigma0_fixed,
    )
    return parametric_bootstrap(
        parameters, R, path, prefix, n, time,
        delta_t=delta_t, x=x, type=type, alpha_level=alpha_level,
        optimizer=_optimizer_from(args), ncores=ncores, seed=seed,
        clean=clean, simulator=simulator, estimator=estimator,
        fun="PBSSMFixed", call=_format_call("pb_ssm", args), args=args,
    )


def pb_ssm_ou(
    R: int,
    path,
    prefix: str,
    n: int,
    time: int,
    mu0,
    sigma0_l,
    mu,
    phi,
    sigma_l,
    nu,
    lambda_,
    theta_l,
    *,
    delta_t: float = 0.1,
    type: int = 0,
    x=None,
    gamma=None,
    kappa=None,
    mu0_fixed: bool = False,
    sigma0_fixed: bool = False,
    alpha_level: float | Sequence[float] = 0.05,
    optimization_flag: bool = True,
    hessian_flag: bool = False,
    verbose: bool = False,
    weight_flag: bool = False,
    debug_flag: bool = False,
    perturb_flag: bool = False,
    xtol_rel: float = 1e-7,
    stopval: float = -9999.0,
    ftol_rel: float = -1.0,
    ftol_abs: float = -1.0,
    maxeval: int = -1,
    maxtime: float = -1.0,
    ncores: int | None = None,
    seed: int | None = None,
    clean: bool = True,
    simulator=None,
    estimator=None,
) -> BootstrapSolution:
    """Parametric bootstrap for the Ornstein-Uhlenbeck model (fixed parameters).

    Results are labelled "PBSSMOUFixed". The OU process
    d eta = Phi (eta - mu) dt + Sigma^{1/2} dW is observed through the
    measurement model nu, lambda_, theta_l every delta_t.

    Parameters
    ----------
    mu, phi, sigma_l : array-like
        Long-run mean, drift matrix, lower Cholesky factor of the
        diffusion covariance.

    All other parameters are as in pb_ssm.

    Returns
    -------
    BootstrapSolution
    """
    args = dict(locals())
    check_run(R, type)
    parameters = ParameterSet.for_ou(
        mu0, sigma0_l, mu, phi, sigma_l, nu, lambda_, theta_l,
        gamma=gamma, kappa=kappa,
        mu0_fixed=mu0_fixed, sigma0_fixed=sigma0_fixed,
    )
    return parametric_bootstrap(
        parameters, R, path, prefix, n, time,
        delta_t=delta_t, x=x, type=type, alpha_level=alpha_level,
        optimizer=_optimizer_from(args), ncores=ncores, seed=seed,
        clean=clean, simulator=simulator, estimator=estimator,
        fun="PBSSMOUFixed", call=_format_call("pb_ssm_ou", args), args=args,
    )


def pb_ssm_var(
    R: int,
    path,
    prefix: str,
    n: int,
    time: int,
    mu0,
    sigma0_l,
    alpha,
    beta,
    psi_l,
    *,
    type: int = 0,
    x=None,
    gamma=None,
    mu0_fixed: bool = False,
    sigma0_fixed: bool = False,
    alpha_level: float | Sequence[float] = 0.05,
    optimization_flag: bool = True,
    hessian_flag: bool = False,
    verbose: bool = False,
    weight_flag: bool = False,
    debug_flag: bool = False,
    perturb_flag: bool = False,
    xtol_rel: float = 1e-7,
    stopval: float = -9999.0,
    ftol_rel: float = -1.0,
    ftol_abs: float = -1.0,
    maxeval: int = -1,
    maxtime: float = -1.0,
    ncores: int | None = None,
    seed: int | None = None,
    clean: bool = True,
    simulator=None,
    estimator=None,
) -> BootstrapSolution:
    """Parametric bootstrap for the vector autoregressive model (fixed parameters).

    Results are labelled "PBSSMVARFixed". The state is observed without
    measurement error, so there is no measurement model and no delta_t.

    Parameters are as in pb_ssm.

    Returns
    -------
    BootstrapSolution
    """
    args = dict(locals())
    check_run(R, type)
    parameters = ParameterSet.for_var(
        mu0, sigma0_l, alpha, beta, psi_l,
        gamma=gamma, mu0_fixed=mu0_fixed, sigma0_fixed=sigma0_fixed,
    )
    return parametric_bootstrap(
        parameters, R, path, prefix, n, time,
        delta_t=1.0, x=x, type=type, alpha_level=alpha_level,
        optimizer=_optimizer_from(args), ncores=ncores, seed=seed,
        clean=clean, simulator=simulator, estimator=estimator,
        fun="PBSSMVARFixed", call=_format_call("pb_ssm_var", args), args=args,
    )
