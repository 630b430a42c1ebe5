"""
Serial backend: every replication in the calling process.

The reference strategy the parallel backends must reproduce.
"""

from __future__ import annotations

from typing import Sequence

from bootstatespace.bootstrap._common import ReplicationRequest, ReplicationResult


class SerialBackend:
    """Runs replications one after another, in index order."""

    def __init__(self, ncores: int | None = None):
        self.ncores = 1

    @property
    def name(self) -> str:
        return 'serial'

    def run(
        self,
        requests: Sequence[ReplicationRequest],
        runner,
    ) -> list[ReplicationResult]:
        ordered = sorted(requests, key=lambda request: request.index)
        return [runner(request) for request in ordered]

    def __repr__(self) -> str:
        return "SerialBackend()"
