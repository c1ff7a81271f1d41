"""Startup context shared read-only by every request handler."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from mime_registry import MimeRegistry
from response import HTTPResponse
from settings import Config
from templates import Template


class Outcome(enum.Enum):
    """Terminal state of one request."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    TOO_LARGE = "too_large"
    IO_ERROR = "io_error"
    FILE = "file"
    LISTING = "listing"


@dataclass(frozen=True, slots=True)
class ServeContext:
    config: Config
    mime_registry: MimeRegistry
    template: Template


@dataclass(slots=True)
class Served:
    outcome: Outcome
    response: HTTPResponse


def build_context(config: Config) -> ServeContext:
    """Load the MIME table and compile the listing template once."""
    return ServeContext(
        config=config,
        mime_registry=MimeRegistry.load(),
        template=Template(config.template_source),
    )
