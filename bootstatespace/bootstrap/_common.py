"""
Common data structures for the parametric bootstrap.

ReplicationRequest / ReplicationResult travel between the orchestrator,
the execution backends and the worker processes; BootParams is the
sampling-distribution payload wrapped by Result[P] and exposed through
BootstrapSolution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray

from bootstatespace.ssm.design import OptimizerConfig, ParameterSet


@dataclass(frozen=True, eq=False)
class SimulationConfig:
    """
    Panel dimensions and covariates for every simulated data set.

    - n: units per panel
    - time: occasions per unit
    - delta_t: spacing between occasions
    - x: covariates, shape (n, time, j), or None
    """
    n: int
    time: int
    delta_t: float
    x: NDArray[np.floating[Any]] | None = None


@dataclass(frozen=True, eq=False)
class ReplicationRequest:
    """
    One simulate-then-fit task.

    `index` is 1-based. `fingerprint` identifies the inputs that
    determine the artifact, so a stored artifact is only reused for an
    identical request.
    """
    index: int
    seed: int
    parameters: ParameterSet
    simulation: SimulationConfig
    optimizer: OptimizerConfig
    fingerprint: str


@dataclass(frozen=True, eq=False)
class ReplicationResult:
    """
    Outcome of one replication.

    estimate is NaN-filled when the fit raised; converged=False rows are
    excluded from the sampling distribution. fit_details holds the
    numeric fit diagnostics (objective, nfev, nit, and hessian or trace
    when requested).
    """
    index: int
    names: tuple[str, ...]
    estimate: NDArray[np.floating[Any]]
    converged: bool
    diagnostic: str | None = None
    fit_details: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, float]:
        """Named estimate vector."""
        return dict(zip(self.names, self.estimate.tolist()))


@dataclass(frozen=True)
class BootParams:
    """
    Parameter payload for parametric bootstrap results.

    Fields:
    - est: reference point estimate, shape (k,)
    - thetahatstar: converged bootstrap estimates, shape (R_effective, k),
      rows in replication index order
    - vcov: sample covariance of thetahatstar (ddof=1), shape (k, k)
    """
    names: tuple[str, ...]
    est: NDArray[np.floating[Any]]              # shape (k,)
    thetahatstar: NDArray[np.floating[Any]]     # shape (R_effective, k)
    vcov: NDArray[np.floating[Any]]             # shape (k, k)
    R: int                                      # requested replications
    R_effective: int                            # converged replications
    indices: tuple[int, ...]                    # index of each thetahatstar row
    failed: tuple[int, ...] = ()                # non-converged indices
    diagnostics: dict[int, str] = field(default_factory=dict)
    fit_details: dict[int, dict[str, Any]] = field(default_factory=dict)
