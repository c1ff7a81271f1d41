"""Fixed-size worker pool for accepted client sockets."""

from __future__ import annotations

import logging
import queue
import socket
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

ClientAddress = tuple[str, int]
ClientHandler = Callable[[socket.socket, ClientAddress], None]

_STOP = None


class ThreadPool:
    """Runs ``handler`` for each submitted connection on one of N workers.

    Submissions beyond ``queue_size`` waiting connections are refused so the
    accept loop can answer them immediately.
    """

    def __init__(self, worker_count: int, queue_size: int, handler: ClientHandler) -> None:
        if worker_count <= 0:
            raise ValueError("worker_count must be positive")
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")

        self._handler = handler
        self._worker_count = worker_count
        self._queue: queue.Queue[tuple[socket.socket, ClientAddress] | None] = queue.Queue(
            maxsize=queue_size
        )
        self._threads: list[threading.Thread] = []
        self._stopped = threading.Event()

    def start(self) -> None:
        for index in range(self._worker_count):
            worker = threading.Thread(
                target=self._worker_loop,
                name=f"sersve-worker-{index}",
                daemon=True,
            )
            self._threads.append(worker)
            worker.start()

    def submit(self, client_socket: socket.socket, address: ClientAddress) -> bool:
        if self._stopped.is_set():
            return False
        try:
            self._queue.put_nowait((client_socket, address))
        except queue.Full:
            return False
        return True

    def shutdown(self, timeout: float = 1.0) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        for _ in self._threads:
            # Blocking put: a full queue still drains while workers run.
            self._queue.put(_STOP)
        for thread in self._threads:
            thread.join(timeout=timeout)

    def _worker_loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                client_socket, address = item
                try:
                    self._handler(client_socket, address)
                except Exception:
                    logger.exception("Unhandled error while serving %s", address[0])
            finally:
                self._queue.task_done()
