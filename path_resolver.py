"""Map request path segments onto the served root."""

from __future__ import annotations

import enum
import os
import stat
from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import unquote


class PathKind(enum.Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True, slots=True)
class ResolvedPath:
    kind: PathKind
    absolute_path: str
    relative_to_root: str = ""
    is_directory: bool = False
    size: int = 0
    requested_name: str = ""

    @property
    def exists(self) -> bool:
        return self.kind is not PathKind.NOT_FOUND


def split_request_path(path: str) -> list[str]:
    """Split a raw request path into percent-decoded segments.

    Bytes that are not UTF-8 decode to surrogate escapes, the same form
    ``os.fsdecode`` gives such names, so they still reach the file.
    """
    return [unquote(segment, errors="surrogateescape") for segment in path.split("/") if segment]


def is_within(root: str, candidate: str) -> bool:
    """Return True when ``candidate`` is ``root`` or one of its descendants.

    Both arguments must already be canonical (``os.path.realpath``).
    """
    try:
        return os.path.commonpath([root, candidate]) == root
    except ValueError:
        return False


def resolve_path(root: str, segments: Iterable[str]) -> ResolvedPath:
    """Join ``segments`` onto ``root`` and classify the result.

    Existence is checked first; a missing path is reported without touching
    the filesystem again. Existing paths are canonicalized, resolving ``..``
    and symlinks, and must stay inside the canonical root.
    """
    candidate = root
    requested_name = ""
    for segment in segments:
        if segment in ("", "."):
            continue
        candidate = os.path.join(candidate, segment)
        requested_name = segment

    try:
        candidate_stat = os.stat(candidate)
    except (OSError, ValueError):
        return ResolvedPath(kind=PathKind.NOT_FOUND, absolute_path=candidate)

    canonical_root = os.path.realpath(root)
    canonical = os.path.realpath(candidate)
    if not is_within(canonical_root, canonical):
        return ResolvedPath(kind=PathKind.FORBIDDEN, absolute_path=canonical)

    relative = os.path.relpath(canonical, canonical_root)
    if relative == os.curdir:
        relative = ""
    relative = relative.replace(os.sep, "/")

    if stat.S_ISDIR(candidate_stat.st_mode):
        return ResolvedPath(
            kind=PathKind.DIRECTORY,
            absolute_path=canonical,
            relative_to_root=relative,
            is_directory=True,
        )
    if not stat.S_ISREG(candidate_stat.st_mode):
        # Sockets, FIFOs and device nodes are never streamed.
        return ResolvedPath(kind=PathKind.FORBIDDEN, absolute_path=canonical)
    return ResolvedPath(
        kind=PathKind.FILE,
        absolute_path=canonical,
        relative_to_root=relative,
        size=candidate_stat.st_size,
        requested_name=requested_name,
    )
