"""HTTP response model and head serializer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from email.utils import formatdate
from typing import BinaryIO

from config import SERVER_NAME

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    400: "Bad Request",
    408: "Request Timeout",
    414: "URI Too Long",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
    503: "Service Unavailable",
    505: "HTTP Version Not Supported",
}


@dataclass(slots=True)
class HTTPResponse:
    """A response with either an in-memory body or an already opened file.

    The file's size is taken once, from the open descriptor, and used both for
    ``Content-Length`` and for the number of bytes streamed.
    """

    status_code: int
    reason_phrase: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str = b""
    file: BinaryIO | None = None
    file_size: int = 0
    content_length_override: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        if self.file is not None:
            if self.body:
                raise ValueError("Response cannot set both body and file")
            try:
                self.file_size = os.fstat(self.file.fileno()).st_size
            except OSError:
                self.file.close()
                raise

    @property
    def content_length(self) -> int:
        if self.content_length_override is not None:
            return self.content_length_override
        if self.file is not None:
            return self.file_size
        return len(self.body)

    def close(self) -> None:
        if self.file is not None:
            self.file.close()

    def without_body(self) -> HTTPResponse:
        """Return the HEAD form of this response, keeping its Content-Length."""
        head = HTTPResponse(
            status_code=self.status_code,
            reason_phrase=self.reason_phrase,
            headers=dict(self.headers),
            content_length_override=self.content_length,
        )
        self.close()
        return head


def serialize_head(response: HTTPResponse) -> bytes:
    reason = response.reason_phrase or REASON_PHRASES.get(response.status_code, "Unknown")
    headers = dict(response.headers)
    headers.setdefault("Date", formatdate(timeval=None, localtime=False, usegmt=True))
    headers.setdefault("Server", SERVER_NAME)
    headers.setdefault("Content-Type", "text/plain; charset=utf-8")
    headers["Content-Length"] = str(response.content_length)

    lines = [f"HTTP/1.1 {response.status_code} {reason}"]
    lines.extend(f"{key}: {value}" for key, value in headers.items())
    return "\r\n".join(lines).encode("iso-8859-1") + b"\r\n\r\n"
