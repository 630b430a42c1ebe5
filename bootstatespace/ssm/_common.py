"""
Common data structures for state-space simulation and fitting.

PanelData is what a Simulator produces and an Estimator consumes;
FitResult is what an Estimator returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True, eq=False)
class PanelData:
    """
    Balanced multi-unit panel.

    - y: observations, shape (n, time, k)
    - x: covariates, shape (n, time, j), or None
    - time: measurement occasions, shape (time,)
    - delta_t: spacing between occasions
    - seed: seed the panel was drawn with, or None for user data
    """
    y: NDArray[np.floating[Any]]
    x: NDArray[np.floating[Any]] | None
    time: NDArray[np.floating[Any]]
    delta_t: float
    seed: int | None = None

    @property
    def n(self) -> int:
        """Number of units."""
        return self.y.shape[0]

    @property
    def n_time(self) -> int:
        """Number of occasions per unit."""
        return self.y.shape[1]

    @property
    def k(self) -> int:
        """Number of observed variables."""
        return self.y.shape[2]

    def long_format(self) -> NDArray[np.floating[Any]]:
        """
        Stack the panel as rows of (id, time, y..., x...).

        ids are 1-based, matching the per-unit layout of the simulator.
        """
        n, t, k = self.y.shape
        ids = np.repeat(np.arange(1, n + 1, dtype=np.float64), t)
        times = np.tile(self.time, n)
        columns = [ids[:, None], times[:, None], self.y.reshape(n * t, k)]
        if self.x is not None:
            columns.append(self.x.reshape(n * t, self.x.shape[2]))
        return np.hstack(columns)

    def __repr__(self) -> str:
        j = 0 if self.x is None else self.x.shape[2]
        return (
            f"PanelData(n={self.n}, time={self.n_time}, k={self.k}, "
            f"j={j}, delta_t={self.delta_t})"
        )


@dataclass(frozen=True, eq=False)
class FitResult:
    """
    Outcome of one model fit.

    - names: coefficient names, in the order fixed by Estimator.prepare
    - estimate: coefficient values, shape (len(names),)
    - converged: whether the optimizer met a convergence criterion
    - diagnostics: message, nfev, nit, objective, and optionally
      'hessian' and 'trace'
    """
    names: tuple[str, ...]
    estimate: NDArray[np.floating[Any]]
    converged: bool
    diagnostics: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, float]:
        """Named estimate vector."""
        return dict(zip(self.names, self.estimate.tolist()))
