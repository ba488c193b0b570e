"""Unit tests for the doctor command, run against fake PTYs."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from agent_station.cli.commands import app
from agent_station.config.schema import Config, LoggingConfig, TerminalConfig
from agent_station.terminal.events import OnChunk, OnExit, Subscription
from agent_station.terminal.registry import SessionRegistry
from tests.fakes import FakeBackendFactory

runner = CliRunner()


class _EchoingRegistry(SessionRegistry):
    """Registry whose shell answers the doctor's echo."""

    def __init__(self, config: TerminalConfig) -> None:
        self.factory = FakeBackendFactory()
        super().__init__(config, backend_factory=self.factory)

    async def write(self, session_id: str, data: bytes | str) -> None:
        await super().write(session_id, data)
        text = data.decode() if isinstance(data, bytes) else data
        self.factory.last.emit(text.encode() + text.split(" ", 1)[1].encode())


class _SilentExitRegistry(_EchoingRegistry):
    """Never reports the exit to the attached consumer."""

    def attach(self, session_id: str, on_chunk: OnChunk | None, on_exit: OnExit | None = None) -> Subscription:
        return super().attach(session_id, on_chunk, None)


@pytest.fixture
def doctor_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Config:
    config = Config(
        terminal=TerminalConfig(shell="/bin/fake-shell", login_shell=False, read_timeout_s=0.05),
        logging=LoggingConfig(to_file=False),
        data_dir=str(tmp_path / "data"),
    )
    monkeypatch.setattr("agent_station.config.loader.load_config", lambda path=None: config)
    monkeypatch.setattr("agent_station.config.loader.get_config_path", lambda: tmp_path / "config.json")
    return config


def test_doctor_reports_round_trip(doctor_config, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr("agent_station.terminal.registry.SessionRegistry", _EchoingRegistry)

    result = runner.invoke(app, ["doctor", "--cwd", str(tmp_path), "--timeout", "2"])

    assert result.exit_code == 0, result.output
    assert "Round trip complete" in result.output


def test_doctor_survives_missing_exit_event(doctor_config, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr("agent_station.terminal.registry.SessionRegistry", _SilentExitRegistry)

    result = runner.invoke(app, ["doctor", "--cwd", str(tmp_path), "--timeout", "0.3"])

    assert result.exit_code == 0, result.output
    assert "did not report exit" in result.output
    assert "Round trip complete" in result.output
