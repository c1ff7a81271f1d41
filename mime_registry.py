"""Extension to MIME type lookup table."""

from __future__ import annotations

import mimetypes
from collections.abc import Mapping
from pathlib import PurePath
from types import MappingProxyType

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Entries missing from the interpreter's built-in table on some versions.
EXTRA_TYPES: dict[str, str] = {
    ".md": "text/markdown",
    ".mjs": "text/javascript",
    ".wasm": "application/wasm",
    ".webp": "image/webp",
    ".flac": "audio/flac",
    ".mkv": "video/x-matroska",
    ".toml": "application/toml",
    ".yaml": "application/yaml",
    ".yml": "application/yaml",
}


class MimeRegistry:
    """Read-only mapping from lowercase extension (``.html``) to MIME type."""

    def __init__(self, types: Mapping[str, str]) -> None:
        self._types = MappingProxyType({ext.lower(): mime for ext, mime in types.items()})

    @classmethod
    def load(cls) -> "MimeRegistry":
        # A fresh MimeTypes only knows the built-in table, so lookups do not
        # depend on the host's /etc/mime.types.
        table = dict(EXTRA_TYPES)
        table.update(mimetypes.MimeTypes().types_map[True])
        return cls(table)

    def lookup(self, extension: str) -> str | None:
        return self._types.get(extension.lower())

    def content_type_for(self, path: PurePath | str) -> str:
        suffix = PurePath(path).suffix
        if not suffix:
            return DEFAULT_CONTENT_TYPE
        return self.lookup(suffix) or DEFAULT_CONTENT_TYPE
