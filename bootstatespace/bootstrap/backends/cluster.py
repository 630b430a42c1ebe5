"""
Socket-cluster backend: independent worker processes over local sockets.

The portable fallback for platforms without fork. The parent listens on
127.0.0.1 with a random authkey and starts `ncores` workers with the
"spawn" method; each worker connects back, receives the pickled runner,
then loops: receive a request, run it, send the result. Requests are
handed out on demand, so a worker runs several replications when they
outnumber the workers. Results arrive in completion order and are
re-sorted by index.
"""

from __future__ import annotations

import multiprocessing
import os
import threading
import traceback
from collections import deque
from multiprocessing.connection import Client, Listener, wait
from typing import Sequence

from bootstatespace.core.exceptions import WorkerError
from bootstatespace.bootstrap._common import ReplicationRequest, ReplicationResult

# Seconds allowed for all workers to start and connect
CONNECT_TIMEOUT = 120.0


def _socket_worker(address, authkey: bytes) -> None:
    """Worker main loop; a None request ends it."""
    with Client(address, authkey=authkey) as conn:
        runner = conn.recv()
        while True:
            request = conn.recv()
            if request is None:
                break
            try:
                result = runner(request)
            except Exception:
                conn.send(("error", request.index, traceback.format_exc()))
                break
            conn.send(("ok", result))


def _accept_workers(listener: Listener, processes, timeout: float) -> list:
    """
    Accept one connection per worker.

    Runs accept() in a helper thread so that a worker dying before it
    connects is detected instead of blocking forever.
    """
    connections: list = []
    errors: list[BaseException] = []

    def accept_all():
        try:
            for _ in processes:
                connections.append(listener.accept())
        except (OSError, EOFError, multiprocessing.AuthenticationError) as e:
            errors.append(e)

    thread = threading.Thread(target=accept_all, daemon=True)
    thread.start()
    waited = 0.0
    while thread.is_alive():
        thread.join(0.1)
        waited += 0.1
        dead = [p for p in processes if p.exitcode is not None]
        if thread.is_alive() and dead:
            raise WorkerError(
                f"{len(dead)} socket worker(s) exited before connecting "
                f"(exit codes {[p.exitcode for p in dead]})",
                backend='socket',
            )
        if thread.is_alive() and waited > timeout:
            raise WorkerError(
                f"socket workers did not connect within {timeout} seconds",
                backend='socket',
            )
    if errors:
        raise WorkerError(
            f"failed to accept socket worker: {errors[0]}",
            backend='socket',
        ) from errors[0]
    return connections


class SocketClusterBackend:
    """
    Message-passing worker cluster on local sockets.

    Requests and results are pickled values; no memory is shared.
    """

    def __init__(self, ncores: int, connect_timeout: float = CONNECT_TIMEOUT):
        if ncores < 1:
            raise ValueError(f"ncores must be >= 1, got {ncores}")
        self.ncores = int(ncores)
        self.connect_timeout = connect_timeout

    @property
    def name(self) -> str:
        return 'socket'

    def run(
        self,
        requests: Sequence[ReplicationRequest],
        runner,
    ) -> list[ReplicationResult]:
        ordered = sorted(requests, key=lambda request: request.index)
        if not ordered:
            return []
        n_workers = min(self.ncores, len(ordered))
        context = multiprocessing.get_context("spawn")
        authkey = os.urandom(32)

        with Listener(("127.0.0.1", 0), authkey=authkey) as listener:
            processes = [
                context.Process(
                    target=_socket_worker,
                    args=(listener.address, authkey),
                    daemon=True,
                )
                for _ in range(n_workers)
            ]
            for process in processes:
                process.start()

            connections: list = []
            try:
                connections = _accept_workers(
                    listener, processes, self.connect_timeout,
                )
                results = self._dispatch(ordered, runner, connections)
            finally:
                self._shutdown(connections, processes)

        return sorted(results, key=lambda result: result.index)

    def _dispatch(self, ordered, runner, connections) -> list[ReplicationResult]:
        pending = deque(ordered)
        busy: dict = {}
        results: list[ReplicationResult] = []

        for conn in connections:
            conn.send(runner)
            if pending:
                request = pending.popleft()
                conn.send(request)
                busy[conn] = request.index

        while busy:
            for conn in wait(list(busy)):
                index = busy.pop(conn)
                try:
                    message = conn.recv()
                except (EOFError, OSError) as e:
                    lost = (index,) + tuple(busy.values()) + tuple(
                        request.index for request in pending
                    )
                    raise WorkerError(
                        f"socket worker disconnected while running "
                        f"replication {index}",
                        backend=self.name,
                        indices=lost,
                    ) from e
                if message[0] == "error":
                    raise WorkerError(
                        f"socket worker failed on replication {message[1]}:\n"
                        f"{message[2]}",
                        backend=self.name,
                        indices=(message[1],),
                    )
                results.append(message[1])
                if pending:
                    request = pending.popleft()
                    conn.send(request)
                    busy[conn] = request.index

        return results

    @staticmethod
    def _shutdown(connections, processes) -> None:
        for conn in connections:
            try:
                conn.send(None)
            except (OSError, EOFError):
                pass
            conn.close()
        for process in processes:
            process.join(timeout=5)
            if process.is_alive():
                process.terminate()
                process.join()

    def __repr__(self) -> str:
        return f"SocketClusterBackend(ncores={self.ncores})"
