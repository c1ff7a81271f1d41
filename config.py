"""Configuration constants for the directory HTTP server."""

import os

VERSION: str = "0.4.0"
SERVER_NAME: str = f"sersve/{VERSION}"

HOST: str = "0.0.0.0"
PORT: int = 8080
DEFAULT_THREADS: int = os.cpu_count() or 1

READ_CHUNK_SIZE: int = 8192
SOCKET_TIMEOUT_SECS: int = 5
ACCEPT_TIMEOUT_SECS: float = 0.2
LISTEN_BACKLOG: int = 128

MAX_HEADER_BYTES: int = 16_384
MAX_TARGET_LENGTH: int = 8192

REQUEST_QUEUE_SIZE: int = 256
MAX_KEEPALIVE_REQUESTS: int = 100
KEEPALIVE_TIMEOUT_SECS: int = 5

LOG_FORMAT: str = "plain"
