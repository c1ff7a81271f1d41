"""Serve a single resolved file."""

from __future__ import annotations

import logging
import os

from context import Outcome, ServeContext, Served
from path_resolver import ResolvedPath
from response import HTTPResponse
from templates import render_message

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPE = "text/html; charset=utf-8"

TOO_LARGE_PAGE = render_message(
    "File too large",
    "The requested file exceeds the maximum size this server delivers.",
)
FORBIDDEN_PAGE = render_message(
    "Forbidden",
    "The requested file is not available from this server.",
)


def informational(outcome: Outcome, body: bytes) -> Served:
    # Every informational page is sent with status 200; clients of this
    # server read the explanation from the body.
    return Served(
        outcome=outcome,
        response=HTTPResponse(
            status_code=200,
            headers={"Content-Type": HTML_CONTENT_TYPE},
            body=body,
        ),
    )


def serve_file(context: ServeContext, resolved: ResolvedPath) -> Served:
    """Open ``resolved`` unless the size guard or the name filter refuse it.

    The filter sees the name the client asked for, so a symlink is judged by
    its own name rather than its target's. The size is read once from the
    opened descriptor and is the one later sent as ``Content-Length``.
    """
    config = context.config
    name = resolved.requested_name or os.path.basename(resolved.absolute_path)
    response = HTTPResponse(
        status_code=200,
        headers={"Content-Type": context.mime_registry.content_type_for(name)},
        file=open(resolved.absolute_path, "rb"),
    )

    if config.max_file_size is not None and response.file_size > config.max_file_size:
        response.close()
        logger.debug(
            "Refusing %s: %d bytes > %d",
            resolved.absolute_path,
            response.file_size,
            config.max_file_size,
        )
        return informational(Outcome.TOO_LARGE, TOO_LARGE_PAGE)

    if config.name_filter is not None and config.name_filter.search(name) is None:
        response.close()
        logger.debug("Refusing %s: name %r does not match filter", resolved.absolute_path, name)
        return informational(Outcome.FORBIDDEN, FORBIDDEN_PAGE)

    return Served(outcome=Outcome.FILE, response=response)
