"""
Core protocols for bootstatespace.

These define the structural interfaces of the collaborators the bootstrap
engine drives. We use Protocol (structural typing) rather than ABC
(nominal typing) so that any simulator or fitter with the right methods
can be plugged in, e.g. a Kalman-filter maximum likelihood fitter.

Design Principles:
    - Minimal contracts: prescribe only what the engine calls
    - Deterministic given a seed
    - Picklable: parallel backends ship collaborators to worker processes
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from bootstatespace.ssm._common import FitResult, PanelData
    from bootstatespace.ssm.design import OptimizerConfig, ParameterSet
    from bootstatespace.bootstrap._common import (
        ReplicationRequest, ReplicationResult,
    )


@runtime_checkable
class Simulator(Protocol):
    """
    Draws a synthetic panel data set from a ParameterSet.

    Must be deterministic given `seed`: identical arguments produce an
    identical PanelData.
    """

    def simulate(
        self,
        n: int,
        time: int,
        delta_t: float,
        parameters: 'ParameterSet',
        x: NDArray[np.floating] | None,
        seed: int,
    ) -> 'PanelData':
        """
        Simulate `n` units observed at `time` occasions.

        Args:
            n: Number of units (individuals)
            time: Number of measurement occasions per unit
            delta_t: Spacing between occasions
            parameters: Generating parameters
            x: Optional covariates, shape (n, time, j)
            seed: Integer seed for the random generator
        """
        ...


@runtime_checkable
class Estimator(Protocol):
    """
    Fits the model class of a ParameterSet to a panel data set.

    prepare() fixes the names and order of the estimated coefficients
    and returns their values under the given parameters; fit() must
    return estimates in that same order.
    """

    def prepare(
        self,
        parameters: 'ParameterSet',
        optimizer: 'OptimizerConfig',
    ) -> tuple[tuple[str, ...], NDArray[np.floating]]:
        """Return (names, values) of the free coefficients."""
        ...

    def fit(
        self,
        data: 'PanelData',
        parameters: 'ParameterSet',
        optimizer: 'OptimizerConfig',
        *,
        seed: int | None = None,
    ) -> 'FitResult':
        """
        Estimate the free coefficients from `data`.

        `parameters` supplies starting values and the values of any
        coefficients held fixed.

        Raises:
            NumericalError / ConvergenceError / ValueError on failure.
            The replication unit records these as non-converged.
        """
        ...


@runtime_checkable
class ExecutionBackend(Protocol):
    """
    Strategy for running a batch of replications.

    Backends are stateless apart from their worker count. run() blocks
    until every request has produced a result and returns the results
    sorted by replication index.
    """

    @property
    def name(self) -> str:
        """Backend identifier: 'serial', 'fork' or 'socket'."""
        ...

    def run(
        self,
        requests: Sequence['ReplicationRequest'],
        runner,
    ) -> list['ReplicationResult']:
        """
        Execute all requests.

        Raises:
            WorkerError: If a worker process dies or disconnects
        """
        ...
