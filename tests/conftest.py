"""Shared pytest fixtures for agent-station tests."""

from __future__ import annotations

from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from agent_station.config.schema import TerminalConfig
from agent_station.terminal.registry import SessionRegistry
from tests.fakes import FakeBackendFactory


@pytest.fixture
def terminal_config() -> TerminalConfig:
    return TerminalConfig(shell="/bin/fake-shell", login_shell=False, read_timeout_s=0.05)


@pytest.fixture
def fake_factory() -> FakeBackendFactory:
    return FakeBackendFactory()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    folder = tmp_path / "p1"
    folder.mkdir()
    return folder


@pytest_asyncio.fixture
async def registry(
    terminal_config: TerminalConfig,
    fake_factory: FakeBackendFactory,
) -> AsyncGenerator[SessionRegistry, None]:
    """Registry backed by fake PTYs; every session is closed afterwards."""
    reg = SessionRegistry(terminal_config, backend_factory=fake_factory)
    yield reg
    await reg.shutdown()
