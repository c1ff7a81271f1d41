"""Tests for command line and config file resolution."""

import json
import logging
import os
from pathlib import Path

import pytest

from config import DEFAULT_THREADS, VERSION
from settings import (
    ConfigError,
    PartialSettings,
    build_config,
    merge_settings,
    parse_config_document,
    resolve_config,
)
from templates import DEFAULT_TEMPLATE


def _write_config(tmp_path: Path, document: object) -> str:
    config_path = tmp_path / "sersve.json"
    config_path.write_text(json.dumps(document))
    return str(config_path)


def test_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    config = resolve_config([])

    assert config.bind_host == "0.0.0.0"
    assert config.bind_port == 8080
    assert config.root_dir == os.path.realpath(tmp_path)
    assert config.name_filter is None
    assert config.max_file_size is None
    assert config.template_source == DEFAULT_TEMPLATE
    assert config.thread_count == DEFAULT_THREADS
    assert config.fork_flag is False
    assert config.log_format == "plain"


def test_cli_flags(tmp_path: Path) -> None:
    config = resolve_config(
        [
            "-a", "127.0.0.1",
            "-p", "9000",
            "-r", str(tmp_path),
            "-f", r"\.mp3$",
            "-s", "1024",
            "--threads", "3",
            "--fork",
        ]
    )

    assert config.bind_host == "127.0.0.1"
    assert config.bind_port == 9000
    assert config.root_dir == os.path.realpath(tmp_path)
    assert config.name_filter is not None
    assert config.name_filter.search("song.mp3")
    assert config.max_file_size == 1024
    assert config.thread_count == 3
    assert config.fork_flag is True


def test_cli_overrides_file_which_overrides_defaults(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        {"address": "10.0.0.1", "port": 7000, "root": str(tmp_path), "size": 10, "fork": True},
    )

    config = resolve_config(["-c", config_path, "-p", "7001"])

    assert config.bind_port == 7001
    assert config.bind_host == "10.0.0.1"
    assert config.max_file_size == 10
    assert config.fork_flag is True


def test_merge_settings_is_pure() -> None:
    cli = PartialSettings(port=1)
    file_layer = PartialSettings(port=2, address="h")

    merged = merge_settings(cli, file_layer)

    assert merged.port == 1
    assert merged.address == "h"
    assert cli == PartialSettings(port=1)
    assert file_layer == PartialSettings(port=2, address="h")


def test_template_from_cli_file(tmp_path: Path) -> None:
    template = tmp_path / "listing.html"
    template.write_text("{{title}}")

    config = resolve_config(["-r", str(tmp_path), "-t", str(template)])

    assert config.template_source == "{{title}}"


def test_template_in_config_file_may_be_path_or_inline(tmp_path: Path) -> None:
    template = tmp_path / "listing.html"
    template.write_text("from file {{title}}")

    from_path = parse_config_document({"template": str(template)})
    inline = parse_config_document({"template": "inline {{title}}"})

    assert from_path.template == "from file {{title}}"
    assert inline.template == "inline {{title}}"


def test_missing_template_file_on_cli_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Cannot read template"):
        resolve_config(["-r", str(tmp_path), "-t", str(tmp_path / "missing.html")])


def test_malformed_json_is_fatal(tmp_path: Path) -> None:
    config_path = tmp_path / "broken.json"
    config_path.write_text("{not json")

    with pytest.raises(ConfigError, match="Malformed config file"):
        resolve_config(["-c", str(config_path)])


def test_missing_config_file_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Cannot read config file"):
        resolve_config(["-c", str(tmp_path / "absent.json")])


@pytest.mark.parametrize(
    "document",
    [
        [],
        {"port": "8080"},
        {"port": -1},
        {"port": True},
        {"size": 1.5},
        {"fork": "yes"},
        {"address": 1},
    ],
)
def test_invalid_documents_are_rejected(document: object) -> None:
    with pytest.raises(ConfigError):
        parse_config_document(document)


def test_unknown_keys_are_ignored_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="settings"):
        settings = parse_config_document({"colour": "blue", "port": 81})

    assert settings == PartialSettings(port=81)
    assert "colour" in caplog.text


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        (PartialSettings(filter="("), "Invalid filter"),
        (PartialSettings(port=70_000), "out of range"),
        (PartialSettings(threads=0), "at least 1"),
        (PartialSettings(template="{{#content}}"), "Invalid template"),
    ],
)
def test_build_config_validation(tmp_path: Path, settings: PartialSettings, message: str) -> None:
    with pytest.raises(ConfigError, match=message):
        build_config(merge_settings(settings, PartialSettings(root=str(tmp_path))))


def test_root_must_be_a_directory(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not a directory"):
        resolve_config(["-r", str(tmp_path / "nowhere")])


def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        resolve_config(["--version"])

    assert exc_info.value.code == 0
    assert VERSION in capsys.readouterr().out


def test_negative_port_flag_is_rejected() -> None:
    with pytest.raises(SystemExit):
        resolve_config(["-p", "-5"])
