"""Unit tests for HTTP response serialization."""

from pathlib import Path

import pytest

from response import HTTPResponse, serialize_head


def test_head_sets_length_and_default_content_type() -> None:
    response = HTTPResponse(status_code=200, body="hello")

    raw = serialize_head(response)

    assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"Content-Type: text/plain; charset=utf-8\r\n" in raw
    assert b"Content-Length: 5\r\n" in raw
    assert b"Server: sersve/" in raw
    assert raw.endswith(b"\r\n\r\n")
    assert response.body == b"hello"


def test_file_response_takes_length_from_open_file(tmp_path: Path) -> None:
    target = tmp_path / "page.html"
    target.write_bytes(b"<p>x</p>")
    response = HTTPResponse(
        status_code=200,
        headers={"Content-Type": "text/html"},
        file=target.open("rb"),
    )
    target.write_bytes(b"<p>rewritten later</p>")

    try:
        raw = serialize_head(response)
        assert b"Content-Type: text/html\r\n" in raw
        assert response.file_size == 8
        assert b"Content-Length: 8\r\n" in raw
    finally:
        response.close()


def test_without_body_keeps_content_length_and_closes_file(tmp_path: Path) -> None:
    target = tmp_path / "data.bin"
    target.write_bytes(b"\x00" * 32)
    response = HTTPResponse(status_code=200, file=target.open("rb"))
    opened = response.file

    head = response.without_body()

    assert opened is not None and opened.closed
    assert head.file is None
    assert head.body == b""
    assert b"Content-Length: 32\r\n" in serialize_head(head)


def test_body_and_file_are_exclusive(tmp_path: Path) -> None:
    target = tmp_path / "f"
    target.write_bytes(b"y")

    with target.open("rb") as handle:
        with pytest.raises(ValueError):
            HTTPResponse(status_code=200, body=b"x", file=handle)
