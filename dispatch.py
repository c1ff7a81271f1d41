"""Per-request orchestration: resolve, then serve a file or render a listing."""

from __future__ import annotations

import logging

from context import Outcome, ServeContext, Served
from directory_renderer import render_directory
from file_server import FORBIDDEN_PAGE, informational, serve_file
from path_resolver import PathKind, resolve_path, split_request_path
from request import HTTPRequest
from templates import render_message

logger = logging.getLogger(__name__)

NOT_FOUND_PAGE = render_message("Not Found", "The requested path does not exist.")
IO_ERROR_PAGE = render_message("Read error", "The requested path could not be read.")


def dispatch(context: ServeContext, request: HTTPRequest) -> Served:
    """Produce exactly one response for ``request``.

    The request method is not consulted; every request is a read.
    """
    segments = split_request_path(request.path)
    resolved = resolve_path(context.config.root_dir, segments)

    if resolved.kind is PathKind.NOT_FOUND:
        return informational(Outcome.NOT_FOUND, NOT_FOUND_PAGE)
    if resolved.kind is PathKind.FORBIDDEN:
        logger.warning("Refused path outside root or not a regular file: %s", request.path)
        return informational(Outcome.FORBIDDEN, FORBIDDEN_PAGE)

    try:
        if resolved.kind is PathKind.DIRECTORY:
            return render_directory(context, resolved)
        return serve_file(context, resolved)
    except OSError as exc:
        logger.warning("Cannot read %s: %s", resolved.absolute_path, exc)
        return informational(Outcome.IO_ERROR, IO_ERROR_PAGE)
