"""
Fork backend: copy-on-write worker processes.

Available where the "fork" start method exists (Linux, macOS). The
runner and the requests are placed in module state before the pool
forks, so workers inherit them by copy-on-write and only the chunk
positions cross the pipe. Workers persist every replication; the parent
reads the results back from the store after all workers finish.
"""

from __future__ import annotations

import multiprocessing
from concurrent.futures import ProcessPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from typing import Sequence

import numpy as np

from bootstatespace.core.exceptions import WorkerError
from bootstatespace.bootstrap._common import ReplicationRequest, ReplicationResult

# Inherited by forked workers; set only for the duration of run()
_FORK_STATE: dict = {}


def fork_available() -> bool:
    """Whether this platform can start processes by forking."""
    return "fork" in multiprocessing.get_all_start_methods()


def _run_fork_chunk(positions: list[int]) -> list[int]:
    runner = _FORK_STATE['runner']
    requests = _FORK_STATE['requests']
    return runner.run_chunk([requests[i] for i in positions])


class ForkBackend:
    """
    Splits the replications into one contiguous chunk per worker.

    Requires runner.store: the store is the only channel between the
    workers and the parent.
    """

    def __init__(self, ncores: int):
        if ncores < 1:
            raise ValueError(f"ncores must be >= 1, got {ncores}")
        self.ncores = int(ncores)

    @property
    def name(self) -> str:
        return 'fork'

    def run(
        self,
        requests: Sequence[ReplicationRequest],
        runner,
    ) -> list[ReplicationResult]:
        if not fork_available():
            raise RuntimeError("the fork start method is not available on this platform")
        if runner.store is None:
            raise ValueError("ForkBackend requires a runner with a ReplicationStore")

        ordered = sorted(requests, key=lambda request: request.index)
        if not ordered:
            return []
        n_workers = min(self.ncores, len(ordered))
        chunks = [
            chunk.tolist()
            for chunk in np.array_split(np.arange(len(ordered)), n_workers)
        ]

        _FORK_STATE['runner'] = runner
        _FORK_STATE['requests'] = ordered
        completed: set[int] = set()
        try:
            context = multiprocessing.get_context("fork")
            with ProcessPoolExecutor(max_workers=n_workers, mp_context=context) as executor:
                futures = [executor.submit(_run_fork_chunk, chunk) for chunk in chunks]
                for chunk, future in zip(chunks, futures):
                    try:
                        completed.update(future.result())
                    except BrokenProcessPool:
                        raise
                    except Exception as e:
                        lost = tuple(ordered[i].index for i in chunk)
                        raise WorkerError(
                            f"forked worker failed on replications {lost}: "
                            f"{type(e).__name__}: {e}",
                            backend=self.name,
                            indices=lost,
                        ) from e
        except BrokenProcessPool as e:
            missing = tuple(
                request.index for request in ordered
                if request.index not in completed
            )
            raise WorkerError(
                f"a forked worker terminated abruptly; "
                f"{len(missing)} replication(s) were not returned",
                backend=self.name,
                indices=missing,
            ) from e
        finally:
            _FORK_STATE.clear()

        missing = tuple(
            request.index for request in ordered if request.index not in completed
        )
        if missing:
            raise WorkerError(
                f"forked workers did not return replications {missing}",
                backend=self.name,
                indices=missing,
            )

        return [runner.store.load(request.index)[1] for request in ordered]

    def __repr__(self) -> str:
        return f"ForkBackend(ncores={self.ncores})"
