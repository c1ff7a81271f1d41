"""HTTP transport: listening socket, worker pool and process entry point."""

from __future__ import annotations

import json
import logging
import os
import socket
import sys
import time
from collections.abc import Sequence

from config import (
    ACCEPT_TIMEOUT_SECS,
    KEEPALIVE_TIMEOUT_SECS,
    LISTEN_BACKLOG,
    MAX_KEEPALIVE_REQUESTS,
    REQUEST_QUEUE_SIZE,
    SOCKET_TIMEOUT_SECS,
)
from context import Outcome, ServeContext, Served, build_context
from dispatch import dispatch
from request import HTTPRequest, HTTPRequestParseError
from response import REASON_PHRASES, HTTPResponse
from settings import ConfigError, resolve_config
from socket_handler import (
    HeaderTooLargeError,
    HTTPReadError,
    MalformedRequestError,
    RequestReader,
    SocketTimeoutError,
    write_http_response_message,
)
from thread_pool import ThreadPool

logger = logging.getLogger(__name__)

READ_ERROR_STATUS: dict[type[HTTPReadError], int] = {
    HeaderTooLargeError: 431,
    SocketTimeoutError: 408,
    MalformedRequestError: 400,
}


class BindError(OSError):
    """Raised when the listening socket cannot be bound."""


class HTTPServer:
    def __init__(
        self,
        context: ServeContext,
        host: str | None = None,
        port: int | None = None,
        worker_count: int | None = None,
        request_queue_size: int = REQUEST_QUEUE_SIZE,
        *,
        keepalive_timeout_secs: int = KEEPALIVE_TIMEOUT_SECS,
        log_format: str | None = None,
    ) -> None:
        config = context.config
        self.context = context
        self.host = config.bind_host if host is None else host
        self.port = config.bind_port if port is None else port
        self.worker_count = config.thread_count if worker_count is None else worker_count
        self.request_queue_size = request_queue_size
        self.keepalive_timeout_secs = keepalive_timeout_secs
        self.log_format = log_format or config.log_format

        self._server_socket: socket.socket | None = None
        self._pool: ThreadPool | None = None
        self._running = False

    def bind(self) -> None:
        """Create the listening socket; ``self.port`` holds the bound port after."""
        server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(LISTEN_BACKLOG)
        except OSError as exc:
            server_socket.close()
            raise BindError(exc.errno, f"Cannot bind {self.host}:{self.port}: {exc.strerror}") from exc
        server_socket.settimeout(ACCEPT_TIMEOUT_SECS)
        self._server_socket = server_socket
        self.port = server_socket.getsockname()[1]

    def start(self) -> None:
        """Bind if needed, then accept connections until ``stop`` is called."""
        if self._server_socket is None:
            self.bind()
        self.serve_forever()

    def serve_forever(self) -> None:
        server_socket = self._server_socket
        if server_socket is None:
            raise RuntimeError("bind() must be called before serve_forever()")

        self._pool = ThreadPool(
            worker_count=self.worker_count,
            queue_size=self.request_queue_size,
            handler=self._handle_client,
        )
        self._pool.start()
        self._running = True
        logger.info(
            "Serving %s on %s:%s with %d workers",
            self.context.config.root_dir,
            self.host,
            self.port,
            self.worker_count,
        )

        with server_socket:
            try:
                while self._running:
                    try:
                        client_socket, address = server_socket.accept()
                    except socket.timeout:
                        continue
                    except OSError:
                        break

                    if self._pool is None or not self._pool.submit(client_socket, address):
                        self._send_queue_full_response(client_socket)
            finally:
                if self._pool is not None:
                    self._pool.shutdown()
                    self._pool = None

    def stop(self) -> None:
        self._running = False
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None

    def _send_queue_full_response(self, client_socket: socket.socket) -> None:
        with client_socket:
            response = HTTPResponse(
                status_code=503,
                headers={"Connection": "close"},
                body="Service Unavailable",
            )
            try:
                write_http_response_message(client_socket, response)
            except OSError:
                return
        logger.warning("Worker queue full, refused a connection")

    def _reject(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        status_code: int,
        *,
        bytes_in: int,
        started_at: float,
    ) -> None:
        response = HTTPResponse(
            status_code=status_code,
            headers={"Connection": "close"},
            body=REASON_PHRASES.get(status_code, "Bad Request"),
        )
        try:
            bytes_sent = write_http_response_message(client_socket, response)
        except OSError:
            return
        self._record_and_log(
            address=address,
            method="-",
            path="-",
            status_code=status_code,
            outcome="rejected",
            bytes_in=bytes_in,
            bytes_out=bytes_sent,
            started_at=started_at,
        )

    def _handle_client(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        with client_socket:
            client_socket.settimeout(min(SOCKET_TIMEOUT_SECS, self.keepalive_timeout_secs))
            reader = RequestReader(client_socket)
            request_count = 0
            while request_count < MAX_KEEPALIVE_REQUESTS:
                started_at = time.perf_counter()
                try:
                    head = reader.read_head()
                    if head is None:
                        return
                    request = HTTPRequest.from_head(head)
                    reader.discard(request.content_length)
                except HTTPReadError as exc:
                    self._reject(
                        client_socket,
                        address,
                        READ_ERROR_STATUS.get(type(exc), 400),
                        bytes_in=0,
                        started_at=started_at,
                    )
                    return
                except HTTPRequestParseError as exc:
                    self._reject(
                        client_socket,
                        address,
                        exc.status_code,
                        bytes_in=len(head),
                        started_at=started_at,
                    )
                    return
                except OSError:
                    return

                bytes_in = len(head) + request.content_length
                request_count += 1
                served = self._serve(request)
                response = served.response
                should_close = not request.keep_alive or request_count >= MAX_KEEPALIVE_REQUESTS
                if should_close:
                    response.headers.setdefault("Connection", "close")
                else:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive",
                        f"timeout={self.keepalive_timeout_secs}, "
                        f"max={MAX_KEEPALIVE_REQUESTS - request_count}",
                    )

                try:
                    bytes_sent = write_http_response_message(client_socket, response)
                except OSError as exc:
                    # Client went away mid-response.
                    logger.debug("Write to %s failed: %s", address[0], exc)
                    return

                self._record_and_log(
                    address=address,
                    method=request.method,
                    path=request.path,
                    status_code=response.status_code,
                    outcome=served.outcome.value,
                    bytes_in=bytes_in,
                    bytes_out=bytes_sent,
                    started_at=started_at,
                )
                if should_close:
                    return

    def _serve(self, request: HTTPRequest) -> Served:
        try:
            served = dispatch(self.context, request)
            if request.method == "HEAD":
                served.response = served.response.without_body()
            return served
        except Exception:
            logger.exception("Unhandled error while serving %s", request.path)
            return Served(
                outcome=Outcome.IO_ERROR,
                response=HTTPResponse(status_code=500, body="Internal Server Error"),
            )

    def _record_and_log(
        self,
        *,
        address: tuple[str, int],
        method: str,
        path: str,
        status_code: int,
        outcome: str,
        bytes_in: int,
        bytes_out: int,
        started_at: float,
    ) -> None:
        duration_ms = (time.perf_counter() - started_at) * 1000
        event = {
            "client": address[0],
            "method": method,
            "path": path,
            "status": status_code,
            "outcome": outcome,
            "bytes_in": bytes_in,
            "bytes_out": bytes_out,
            "latency_ms": round(duration_ms, 3),
        }
        if self.log_format == "json":
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            "client=%s method=%s path=%s status=%s outcome=%s bytes_in=%s bytes_out=%s duration_ms=%.2f",
            event["client"],
            event["method"],
            event["path"],
            event["status"],
            event["outcome"],
            event["bytes_in"],
            event["bytes_out"],
            duration_ms,
        )


def daemonize() -> None:
    """Detach from the controlling terminal; only the child returns."""
    if os.fork() > 0:
        os._exit(0)
    os.setsid()
    devnull = os.open(os.devnull, os.O_RDWR)
    for stream in (sys.stdin, sys.stdout, sys.stderr):
        os.dup2(devnull, stream.fileno())
    os.close(devnull)


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO)
    try:
        config = resolve_config(argv)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return 2

    server = HTTPServer(build_context(config))
    try:
        server.bind()
    except BindError as exc:
        logger.error("%s", exc)
        return 1

    if config.fork_flag:
        daemonize()

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
