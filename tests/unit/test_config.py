"""Unit tests for config schema and loader."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from agent_station.config.loader import load_config, save_config
from agent_station.config.schema import Config, TerminalConfig
from agent_station.utils.helpers import get_data_path


def test_defaults_match_terminal_conventions():
    config = Config()

    assert config.terminal.term == "xterm-256color"
    assert config.terminal.colorterm == "truecolor"
    assert (config.terminal.default_cols, config.terminal.default_rows) == (80, 24)
    assert config.gui.zoom == 1.0


@pytest.mark.skipif(os.name == "nt", reason="POSIX shell resolution")
def test_shell_resolution_prefers_config_then_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SHELL", "/bin/zsh")

    assert TerminalConfig(shell="/usr/bin/fish").resolve_shell() == "/usr/bin/fish"
    assert TerminalConfig().resolve_shell() == "/bin/zsh"

    monkeypatch.setenv("SHELL", "")
    assert TerminalConfig().resolve_shell() == "/bin/bash"


@pytest.mark.skipif(os.name == "nt", reason="login flag is POSIX only")
def test_login_flag():
    assert TerminalConfig().shell_args() == ["-l"]
    assert TerminalConfig(login_shell=False).shell_args() == []


def test_save_then_load(tmp_path: Path):
    path = tmp_path / "config.json"
    config = Config()
    config.terminal.shell = "/bin/sh"
    config.gui.font_size = 15

    assert save_config(config, path) == path
    loaded = load_config(path)

    assert loaded.terminal.shell == "/bin/sh"
    assert loaded.gui.font_size == 15


def test_missing_file_gives_defaults(tmp_path: Path):
    assert load_config(tmp_path / "absent.json") == Config()


@pytest.mark.parametrize(
    "content",
    ["{broken", json.dumps({"terminal": {"default_cols": 0}}), json.dumps([1, 2])],
)
def test_invalid_file_falls_back_to_defaults(tmp_path: Path, content: str):
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")

    assert load_config(path).terminal.default_cols == 80


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("AGENT_STATION_DATA_DIR", "/tmp/station")
    monkeypatch.setenv("AGENT_STATION_TERMINAL__SHELL", "/bin/dash")

    config = Config()

    assert config.data_dir == "/tmp/station"
    assert config.terminal.shell == "/bin/dash"


def test_data_path_is_created_on_first_use(tmp_path: Path):
    target = tmp_path / "nested" / "agent-station"

    assert get_data_path(str(target)) == target
    assert target.is_dir()
    assert get_data_path(str(target)) == target
