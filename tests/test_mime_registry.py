"""Unit tests for extension based content types."""

from pathlib import Path

from mime_registry import DEFAULT_CONTENT_TYPE, MimeRegistry


def test_loaded_registry_knows_common_types() -> None:
    registry = MimeRegistry.load()

    assert registry.content_type_for("index.html") == "text/html"
    assert registry.content_type_for(Path("style.css")) == "text/css"
    assert registry.content_type_for("notes.md") == "text/markdown"


def test_lookup_ignores_extension_case() -> None:
    registry = MimeRegistry({".PNG": "image/png"})

    assert registry.lookup(".png") == "image/png"
    assert registry.content_type_for("IMAGE.Png") == "image/png"


def test_unknown_or_missing_extension_falls_back() -> None:
    registry = MimeRegistry({".txt": "text/plain"})

    assert registry.content_type_for("archive.unknownext") == DEFAULT_CONTENT_TYPE
    assert registry.content_type_for("Makefile") == DEFAULT_CONTENT_TYPE
    assert registry.lookup(".zip") is None
