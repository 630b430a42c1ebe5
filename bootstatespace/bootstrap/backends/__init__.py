"""
Execution backends for the parametric bootstrap.

    serial:  SerialBackend, single process
    fork:    ForkBackend, copy-on-write worker processes (Linux, macOS)
    socket:  SocketClusterBackend, spawned workers over local sockets

select_backend() picks one from the requested worker count and the
platform.
"""

from __future__ import annotations

import platform

from bootstatespace.bootstrap.backends.cluster import SocketClusterBackend
from bootstatespace.bootstrap.backends.fork import ForkBackend, fork_available
from bootstatespace.bootstrap.backends.serial import SerialBackend

# Platform families with copy-on-write fork
FORK_SYSTEMS = frozenset({"Linux", "Darwin"})


def select_backend(ncores: int | None, system: str | None = None):
    """
    Choose an execution backend.

    Args:
        ncores: Requested worker count. None or <= 1 selects serial.
        system: Platform name as reported by platform.system(); detected
            when None.

    Returns:
        SerialBackend, ForkBackend or SocketClusterBackend
    """
    if ncores is None or int(ncores) <= 1:
        return SerialBackend()
    if system is None:
        system = platform.system()
    if system in FORK_SYSTEMS and fork_available():
        return ForkBackend(int(ncores))
    return SocketClusterBackend(int(ncores))


__all__ = [
    "SerialBackend",
    "ForkBackend",
    "SocketClusterBackend",
    "select_backend",
    "fork_available",
    "FORK_SYSTEMS",
]
