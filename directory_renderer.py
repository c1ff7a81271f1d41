"""Directory listing generation."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from urllib.parse import quote

from context import Outcome, ServeContext, Served
from path_resolver import ResolvedPath, is_within
from response import HTTPResponse

logger = logging.getLogger(__name__)

SIZE_UNITS = ("B", "kB", "MB", "GB", "TB")
PARENT_NAME = ".."


@dataclass(frozen=True, slots=True)
class DirectoryEntry:
    name: str
    relative_url: str
    size_bytes: int
    is_parent_marker: bool = False


def size_with_unit(size: int) -> str:
    """Format a byte count with truncating division by 1000.

    The remainder of the last division is printed as is, so ``1500`` becomes
    ``"1.500 kB"`` and ``1050`` becomes ``"1.50 kB"``.
    """
    quotient = size
    remainder = 0
    unit = 0
    while quotient > 1000 and unit < len(SIZE_UNITS) - 1:
        remainder = quotient % 1000
        quotient //= 1000
        unit += 1
    return f"{quotient}.{remainder} {SIZE_UNITS[unit]}"


def encode_url(relative_path: str) -> str:
    """Percent-encode the filesystem bytes of ``relative_path``."""
    return quote(os.fsencode(relative_path), safe="/")


def display_name(name: str) -> str:
    # Undecodable bytes show as U+FFFD; links keep the exact bytes.
    return os.fsencode(name).decode("utf-8", "replace")


def _join_relative(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


def _entry_size(entry: os.DirEntry[str]) -> int:
    try:
        if entry.is_dir():
            return 0
        return entry.stat().st_size
    except OSError:
        logger.debug("Cannot stat %s, listing it with size 0", entry.path)
        return 0


def parent_entry(root: str, directory: str, relative: str) -> DirectoryEntry | None:
    """Return the ``..`` entry when the parent stays inside ``root``."""
    if not relative:
        return None
    parent = os.path.realpath(os.path.dirname(directory))
    if not is_within(root, parent):
        return None
    parent_relative = os.path.relpath(parent, root)
    if parent_relative == os.curdir:
        parent_relative = ""
    return DirectoryEntry(
        name=PARENT_NAME,
        relative_url=encode_url(parent_relative.replace(os.sep, "/")),
        size_bytes=0,
        is_parent_marker=True,
    )


def list_directory(
    root: str,
    directory: str,
    relative: str,
    name_filter: re.Pattern[str] | None = None,
) -> list[DirectoryEntry]:
    """Build the ordered, filtered entries of ``directory``.

    ``root`` and ``directory`` are canonical absolute paths; ``relative`` is
    the POSIX path of ``directory`` below ``root`` (empty for the root).
    """
    with os.scandir(directory) as iterator:
        raw_entries = sorted(iterator, key=lambda entry: os.fsencode(entry.name))

    entries: list[DirectoryEntry] = []
    parent = parent_entry(root, directory, relative)
    if parent is not None:
        entries.append(parent)

    for entry in raw_entries:
        if name_filter is not None and name_filter.search(entry.name) is None:
            continue
        entries.append(
            DirectoryEntry(
                name=entry.name,
                relative_url=encode_url(_join_relative(relative, entry.name)),
                size_bytes=_entry_size(entry),
            )
        )
    return entries


def render_directory(context: ServeContext, resolved: ResolvedPath) -> Served:
    config = context.config
    entries = list_directory(
        config.root_dir,
        resolved.absolute_path,
        resolved.relative_to_root,
        config.name_filter,
    )
    page = context.template.render(
        {
            "title": display_name(f"/{resolved.relative_to_root}"),
            "content": [
                {
                    "url": entry.relative_url,
                    "size": size_with_unit(entry.size_bytes),
                    "name": display_name(entry.name),
                }
                for entry in entries
            ],
        }
    )
    return Served(
        outcome=Outcome.LISTING,
        response=HTTPResponse(
            status_code=200,
            headers={"Content-Type": "text/html; charset=utf-8"},
            body=page,
        ),
    )
