"""
The replication unit: simulate one panel, fit it, persist both.

Everything here runs unchanged in the parent process (serial backend)
and in worker processes (fork and socket backends), which is what makes
the results independent of the execution strategy.
"""

from __future__ import annotations

import hashlib
from dataclasses import astuple, fields
from typing import Any

import numpy as np

from bootstatespace.core.exceptions import (
    DimensionError,
    NumericalError,
    PersistenceError,
)
from bootstatespace.bootstrap._common import (
    ReplicationRequest,
    ReplicationResult,
    SimulationConfig,
)
from bootstatespace.bootstrap._storage import ReplicationStore
from bootstatespace.ssm.design import OptimizerConfig, ParameterSet

# Fit failures recorded as non-converged instead of aborting the run
FIT_ERRORS = (NumericalError, ArithmeticError, ValueError, np.linalg.LinAlgError)


def fit_details(diagnostics: dict) -> dict[str, Any]:
    """Numeric fit diagnostics in the form stored with each artifact."""
    details: dict[str, Any] = {}
    for key, cast in (('objective', float), ('nfev', int), ('nit', int)):
        if diagnostics.get(key) is not None:
            details[key] = cast(diagnostics[key])
    for key in ('hessian', 'trace'):
        if diagnostics.get(key) is not None:
            details[key] = np.asarray(diagnostics[key], dtype=np.float64)
    return details


def replication_seeds(master_seed: int, R: int) -> list[int]:
    """
    One seed per replication, derived from the master seed.

    Seed i depends only on (master_seed, i), never on the number of
    workers or on which worker runs replication i.
    """
    children = np.random.SeedSequence(master_seed).spawn(R)
    return [int(child.generate_state(1, dtype=np.uint64)[0]) for child in children]


def _hash_value(digest, value) -> None:
    if value is None:
        digest.update(b"<none>")
    elif isinstance(value, np.ndarray):
        digest.update(repr(value.shape).encode())
        digest.update(np.ascontiguousarray(value, dtype=np.float64).tobytes())
    else:
        digest.update(repr(value).encode())


def request_fingerprint(
    seed: int,
    parameters: ParameterSet,
    simulation: SimulationConfig,
    optimizer: OptimizerConfig,
    components: tuple[str, ...] = (),
) -> str:
    """SHA-256 over every input that determines a replication's artifact."""
    digest = hashlib.sha256()
    digest.update(repr(int(seed)).encode())
    for f in fields(parameters):
        digest.update(f.name.encode())
        _hash_value(digest, getattr(parameters, f.name))
    for f in fields(simulation):
        digest.update(f.name.encode())
        _hash_value(digest, getattr(simulation, f.name))
    digest.update(repr(astuple(optimizer)).encode())
    digest.update(repr(components).encode())
    return digest.hexdigest()


def run_replication(
    request: ReplicationRequest,
    names: tuple[str, ...],
    simulator,
    estimator,
    store: ReplicationStore | None = None,
) -> ReplicationResult:
    """
    Simulate, fit and persist one replication.

    If `store` already holds an artifact for this index with a matching
    fingerprint, it is returned without recomputation.

    Args:
        request: The task
        names: Coefficient names fixed by Estimator.prepare
        simulator: Simulator implementation
        estimator: Estimator implementation
        store: Artifact store, or None to skip persistence

    Returns:
        ReplicationResult. Estimator failures give converged=False with
        the exception text as diagnostic.

    Raises:
        DimensionError: If the estimator returns different coefficients
            than it announced in prepare().
        PersistenceError: If the artifact cannot be written.
    """
    if store is not None and store.exists(request.index):
        try:
            _, cached, fingerprint = store.load(request.index)
        except PersistenceError:
            fingerprint = None
        if fingerprint == request.fingerprint:
            return cached

    sim = request.simulation
    data = simulator.simulate(
        sim.n, sim.time, sim.delta_t, request.parameters, sim.x, request.seed,
    )

    try:
        fit = estimator.fit(
            data, request.parameters, request.optimizer, seed=request.seed,
        )
    except FIT_ERRORS as e:
        result = ReplicationResult(
            index=request.index,
            names=names,
            estimate=np.full(len(names), np.nan),
            converged=False,
            diagnostic=f"{type(e).__name__}: {e}",
        )
    else:
        if tuple(fit.names) != tuple(names):
            raise DimensionError(
                f"replication {request.index}: estimator returned coefficients "
                f"{tuple(fit.names)}, expected {tuple(names)}"
            )
        estimate = np.asarray(fit.estimate, dtype=np.float64)
        finite = bool(np.all(np.isfinite(estimate)))
        converged = bool(fit.converged) and finite
        diagnostic = None
        if not finite:
            diagnostic = "non-finite estimate"
        elif not converged:
            diagnostic = str(fit.diagnostics.get('message') or "did not converge")
        result = ReplicationResult(
            index=request.index,
            names=names,
            estimate=estimate,
            converged=converged,
            diagnostic=diagnostic,
            fit_details=fit_details(fit.diagnostics or {}),
        )

    if store is not None:
        store.store(data, result, request.fingerprint)
    return result


class ReplicationRunner:
    """
    Picklable bundle of the collaborators a worker needs.

    Calling it with a ReplicationRequest runs one replication.
    """

    def __init__(
        self,
        names: tuple[str, ...],
        simulator,
        estimator,
        store: ReplicationStore | None,
    ):
        self.names = tuple(names)
        self.simulator = simulator
        self.estimator = estimator
        self.store = store

    def __call__(self, request: ReplicationRequest) -> ReplicationResult:
        return run_replication(
            request, self.names, self.simulator, self.estimator, self.store,
        )

    def run_chunk(self, requests: list[ReplicationRequest]) -> list[int]:
        """Run requests in order; return the indices completed."""
        return [self(request).index for request in requests]
