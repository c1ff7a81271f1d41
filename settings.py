"""Command line and JSON config file resolution.

Settings come from three layers: command line flags, an optional JSON config
file and built-in defaults. Each layer is read into a ``PartialSettings`` and
the layers are merged without mutation, the first layer that sets a field
winning. The merged result is validated once into an immutable ``Config``.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
from collections.abc import Sequence
from dataclasses import dataclass, fields
from typing import Any

from config import DEFAULT_THREADS, HOST, LOG_FORMAT, PORT, VERSION
from templates import DEFAULT_TEMPLATE, Template, TemplateError

logger = logging.getLogger(__name__)

LOG_FORMATS = ("plain", "json")


class ConfigError(ValueError):
    """Raised when startup configuration is malformed."""


@dataclass(frozen=True, slots=True)
class Config:
    bind_host: str
    bind_port: int
    root_dir: str
    name_filter: re.Pattern[str] | None
    max_file_size: int | None
    template_source: str
    thread_count: int
    fork_flag: bool
    log_format: str = LOG_FORMAT


@dataclass(frozen=True, slots=True)
class PartialSettings:
    """One configuration layer; ``None`` means the layer does not set it."""

    address: str | None = None
    port: int | None = None
    root: str | None = None
    filter: str | None = None
    size: int | None = None
    template: str | None = None
    threads: int | None = None
    fork: bool | None = None
    log_format: str | None = None


DEFAULTS = PartialSettings(
    address=HOST,
    port=PORT,
    template=DEFAULT_TEMPLATE,
    threads=DEFAULT_THREADS,
    fork=False,
    log_format=LOG_FORMAT,
)


def merge_settings(*layers: PartialSettings) -> PartialSettings:
    """Merge layers ordered from highest to lowest precedence."""
    merged: dict[str, Any] = {}
    for settings_field in fields(PartialSettings):
        name = settings_field.name
        merged[name] = next(
            (getattr(layer, name) for layer in layers if getattr(layer, name) is not None),
            None,
        )
    return PartialSettings(**merged)


def _unsigned_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid unsigned integer: {value!r}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError(f"invalid unsigned integer: {value!r}")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sersve",
        description="Serve a directory tree over HTTP, read-only",
    )
    parser.add_argument("-c", "--config", metavar="FILE", help="JSON config file")
    parser.add_argument("-a", "--address", metavar="HOST", help=f"bind address (default {HOST})")
    parser.add_argument(
        "-p", "--port", metavar="PORT", type=_unsigned_int, help=f"bind port (default {PORT})"
    )
    parser.add_argument("-r", "--root", metavar="ROOT", help="directory to serve (default cwd)")
    parser.add_argument(
        "-f", "--filter", metavar="REGEX", help="only list and serve names matching REGEX"
    )
    parser.add_argument(
        "-s", "--size", metavar="BYTES", type=_unsigned_int, help="largest file size served"
    )
    parser.add_argument("-t", "--template", metavar="FILE", help="directory listing template")
    parser.add_argument(
        "--threads", metavar="N", type=_unsigned_int, help="worker threads (default CPU count)"
    )
    parser.add_argument(
        "--fork",
        action="store_const",
        const=True,
        default=None,
        help="detach and run in the background",
    )
    parser.add_argument("--log-format", choices=LOG_FORMATS, default=None)
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def _read_template_file(path: str) -> str:
    try:
        with open(path, encoding="utf-8") as template_file:
            return template_file.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read template {path!r}: {exc}") from exc


def settings_from_args(args: argparse.Namespace) -> PartialSettings:
    template = _read_template_file(args.template) if args.template is not None else None
    return PartialSettings(
        address=args.address,
        port=args.port,
        root=args.root,
        filter=args.filter,
        size=args.size,
        template=template,
        threads=args.threads,
        fork=args.fork,
        log_format=args.log_format,
    )


_FILE_KEYS: dict[str, type] = {
    "address": str,
    "port": int,
    "root": str,
    "filter": str,
    "size": int,
    "template": str,
    "threads": int,
    "fork": bool,
}


def _check_value(key: str, value: object) -> None:
    expected = _FILE_KEYS[key]
    if expected is int:
        # bool is an int subclass.
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ConfigError(f"Config key {key!r} must be an unsigned integer")
    elif not isinstance(value, expected):
        raise ConfigError(f"Config key {key!r} must be of type {expected.__name__}")


def parse_config_document(document: object) -> PartialSettings:
    """Validate a decoded JSON document into a settings layer."""
    if not isinstance(document, dict):
        raise ConfigError("Config file must contain a JSON object")

    values: dict[str, Any] = {}
    for key, value in document.items():
        if key not in _FILE_KEYS:
            logger.warning("Ignoring unknown config key %r", key)
            continue
        if value is None:
            continue
        _check_value(key, value)
        values[key] = value

    template = values.get("template")
    if template is not None and os.path.isfile(template):
        values["template"] = _read_template_file(template)
    return PartialSettings(**values)


def load_config_file(path: str) -> PartialSettings:
    try:
        with open(path, encoding="utf-8") as config_file:
            document = json.load(config_file)
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path!r}: {exc}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Malformed config file {path!r}: {exc}") from exc
    return parse_config_document(document)


def build_config(settings: PartialSettings) -> Config:
    """Validate fully merged settings into the immutable runtime config."""
    root = settings.root if settings.root is not None else os.getcwd()
    root_dir = os.path.realpath(os.path.abspath(root))
    if not os.path.isdir(root_dir):
        raise ConfigError(f"Root {root!r} is not a directory")

    port = settings.port if settings.port is not None else PORT
    if not 0 <= port <= 65_535:
        raise ConfigError(f"Port {port} is out of range")

    threads = settings.threads if settings.threads is not None else DEFAULT_THREADS
    if threads < 1:
        raise ConfigError("Thread count must be at least 1")

    name_filter = None
    if settings.filter is not None:
        try:
            name_filter = re.compile(settings.filter)
        except re.error as exc:
            raise ConfigError(f"Invalid filter {settings.filter!r}: {exc}") from exc

    template_source = settings.template if settings.template is not None else DEFAULT_TEMPLATE
    try:
        Template(template_source)
    except TemplateError as exc:
        raise ConfigError(f"Invalid template: {exc}") from exc

    log_format = settings.log_format or LOG_FORMAT
    if log_format not in LOG_FORMATS:
        raise ConfigError(f"Unsupported log format {log_format!r}")

    return Config(
        bind_host=settings.address or HOST,
        bind_port=port,
        root_dir=root_dir,
        name_filter=name_filter,
        max_file_size=settings.size,
        template_source=template_source,
        thread_count=threads,
        fork_flag=bool(settings.fork),
        log_format=log_format,
    )


def resolve_config(argv: Sequence[str] | None = None) -> Config:
    """Parse ``argv`` and the optional config file into a ``Config``."""
    args = build_parser().parse_args(argv)
    cli_settings = settings_from_args(args)
    file_settings = load_config_file(args.config) if args.config else PartialSettings()
    return build_config(merge_settings(cli_settings, file_settings, DEFAULTS))
