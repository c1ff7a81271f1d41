"""Connection-level reading of request heads and writing of responses."""

from __future__ import annotations

import socket

from config import MAX_HEADER_BYTES, READ_CHUNK_SIZE
from response import HTTPResponse, serialize_head


class HTTPReadError(Exception):
    """Raised when a client request cannot be safely read from the socket."""


class MalformedRequestError(HTTPReadError):
    """Raised when the connection ends inside a request."""


class HeaderTooLargeError(HTTPReadError):
    """Raised when a request head exceeds MAX_HEADER_BYTES."""


class SocketTimeoutError(HTTPReadError):
    """Raised when a client times out while sending request bytes."""


class RequestReader:
    """Reads successive request heads from one connection.

    Request bodies carry nothing this server uses; ``discard`` skips them so
    the next head on a kept-alive connection starts at the right byte.
    """

    def __init__(self, client_socket: socket.socket) -> None:
        self._socket = client_socket
        self._buffer = bytearray()

    def read_head(self) -> bytes | None:
        """Return the next head without its blank line, or None on a clean EOF."""
        while True:
            head_end = self._buffer.find(b"\r\n\r\n")
            if head_end != -1:
                if head_end + 4 > MAX_HEADER_BYTES:
                    raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")
                head = bytes(self._buffer[:head_end])
                del self._buffer[: head_end + 4]
                return head
            if len(self._buffer) > MAX_HEADER_BYTES:
                raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")

            chunk = self._recv(READ_CHUNK_SIZE)
            if not chunk:
                if not self._buffer:
                    return None
                raise MalformedRequestError("Connection closed inside a request head")
            self._buffer.extend(chunk)

    def discard(self, length: int) -> None:
        buffered = min(length, len(self._buffer))
        del self._buffer[:buffered]
        remaining = length - buffered
        while remaining > 0:
            chunk = self._recv(min(READ_CHUNK_SIZE, remaining))
            if not chunk:
                raise MalformedRequestError("Connection closed inside a request body")
            remaining -= len(chunk)

    def _recv(self, size: int) -> bytes:
        try:
            return self._socket.recv(size)
        except socket.timeout as exc:
            raise SocketTimeoutError("Timed out waiting for request bytes") from exc


def write_http_response_message(client_socket: socket.socket, response: HTTPResponse) -> int:
    """Write ``response`` and close its file; returns the bytes sent."""
    try:
        head = serialize_head(response)
        client_socket.sendall(head)
        bytes_sent = len(head)

        if response.file is None:
            if response.body:
                client_socket.sendall(response.body)
                bytes_sent += len(response.body)
            return bytes_sent

        if response.file_size:
            # os.sendfile where available, bounded send() calls otherwise.
            sent = client_socket.sendfile(response.file, 0, response.file_size)
            bytes_sent += sent
            if sent < response.file_size:
                raise ConnectionError("File shrank while it was being sent")
        return bytes_sent
    finally:
        response.close()
