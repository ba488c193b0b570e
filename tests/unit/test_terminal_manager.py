"""Unit tests for project-switch reconciliation in TerminalWorkspace."""

from __future__ import annotations

from pathlib import Path

import pytest

from agent_station.gui.terminal_manager import TerminalWorkspace
from agent_station.session.name_store import TerminalNameStore
from agent_station.session.project_store import Project
from agent_station.terminal.registry import SessionRegistry
from tests.fakes import FakeBackendFactory, wait_for


class UIRecorder:
    """Stands in for the GUI side of the workspace callbacks."""

    def __init__(self) -> None:
        self.output: dict[str, bytes] = {}
        self.exits: list[str] = []
        self.tab_changes: list[str] = []
        self.notices: list[tuple[str, str]] = []

    def on_output(self, session_id: str, data: bytes) -> None:
        self.output[session_id] = self.output.get(session_id, b"") + data

    def on_exit(self, session_id: str) -> None:
        self.exits.append(session_id)

    def on_tabs_changed(self, project_id: str) -> None:
        self.tab_changes.append(project_id)

    def on_notice(self, project_id: str, message: str) -> None:
        self.notices.append((project_id, message))


@pytest.fixture
def ui() -> UIRecorder:
    return UIRecorder()


@pytest.fixture
def names(tmp_path: Path) -> TerminalNameStore:
    return TerminalNameStore(tmp_path / "data")


@pytest.fixture
def workspace(registry: SessionRegistry, names: TerminalNameStore, ui: UIRecorder) -> TerminalWorkspace:
    return TerminalWorkspace(
        registry,
        name_store=names,
        on_output=ui.on_output,
        on_exit=ui.on_exit,
        on_tabs_changed=ui.on_tabs_changed,
        on_notice=ui.on_notice,
    )


@pytest.fixture
def projects(tmp_path: Path) -> tuple[Project, Project]:
    first = tmp_path / "alpha"
    second = tmp_path / "beta"
    first.mkdir()
    second.mkdir()
    return Project("p1", "alpha", str(first)), Project("p2", "beta", str(second))


# ---------------------------------------------------------------------------
# Auto-spawn and reconciliation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_first_visit_spawns_one_terminal(workspace, projects, fake_factory, ui):
    alpha, _ = projects

    tabs = await workspace.activate_project(alpha)

    assert len(fake_factory.backends) == 1
    assert [t.name for t in tabs] == ["Agent 1"]
    assert fake_factory.last.cwd == alpha.path
    assert workspace.is_attached(tabs[0].session_id)
    assert ui.tab_changes[-1] == "p1"


@pytest.mark.asyncio
async def test_switching_back_reattaches_without_spawning(workspace, projects, registry, fake_factory):
    alpha, beta = projects
    first_tabs = await workspace.activate_project(alpha)
    alpha_id = first_tabs[0].session_id

    await workspace.activate_project(beta)
    assert not workspace.is_attached(alpha_id)
    assert registry.get(alpha_id).subscriber_count == 0
    assert registry.is_running(alpha_id)

    again = await workspace.activate_project(alpha)

    assert [t.session_id for t in again] == [alpha_id]
    assert workspace.is_attached(alpha_id)
    assert len(fake_factory.backends) == 2


@pytest.mark.asyncio
async def test_output_reaches_ui_only_while_attached(workspace, projects, registry, fake_factory, ui):
    alpha, _ = projects
    tabs = await workspace.activate_project(alpha)
    session_id = tabs[0].session_id

    fake_factory.last.emit(b"$ ")
    await wait_for(lambda: ui.output.get(session_id) == b"$ ")

    workspace.deactivate()
    assert registry.get(session_id).subscriber_count == 0


@pytest.mark.asyncio
async def test_exited_terminal_is_not_respawned(workspace, projects, registry, fake_factory, ui):
    alpha, beta = projects
    tabs = await workspace.activate_project(alpha)
    session_id = tabs[0].session_id

    fake_factory.last.exit(0)
    await wait_for(lambda: not workspace.project_has_terminals("p1"))
    assert ui.exits == [session_id]

    await workspace.activate_project(beta)
    again = await workspace.activate_project(alpha)

    assert again == []
    assert len(fake_factory.backends) == 2
    assert workspace.has_spawned("p1")


@pytest.mark.asyncio
async def test_sessions_created_elsewhere_are_adopted(workspace, projects, registry, fake_factory):
    alpha, _ = projects
    external = await registry.create("p1", alpha.path)

    tabs = await workspace.activate_project(alpha)

    assert [t.session_id for t in tabs] == [external]
    assert len(fake_factory.backends) == 1


@pytest.mark.asyncio
async def test_spawn_failure_is_reported_inline(workspace, projects, fake_factory, ui):
    alpha, _ = projects
    fake_factory.fail_next_spawn("shell missing")

    tabs = await workspace.activate_project(alpha)

    assert tabs == []
    assert ui.notices == [("p1", "Failed to spawn terminal: shell missing")]


# ---------------------------------------------------------------------------
# Tabs
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_spawn_additional_focuses_new_tab(workspace, projects):
    alpha, _ = projects
    await workspace.activate_project(alpha)

    new_id = await workspace.spawn_additional()

    assert [t.name for t in workspace.tabs()] == ["Agent 1", "Agent 2"]
    assert workspace.active_session_id == new_id
    assert workspace.is_attached(new_id)


@pytest.mark.asyncio
async def test_last_tab_cannot_be_closed(workspace, projects, registry):
    alpha, _ = projects
    tabs = await workspace.activate_project(alpha)

    assert await workspace.close_terminal(tabs[0].session_id) is False
    assert registry.is_running(tabs[0].session_id)


@pytest.mark.asyncio
async def test_close_terminal_closes_session_and_frees_slot(workspace, projects, registry):
    alpha, _ = projects
    first = (await workspace.activate_project(alpha))[0].session_id
    second = await workspace.spawn_additional()

    assert await workspace.close_terminal(first) is True

    assert first not in registry
    assert [t.session_id for t in workspace.tabs()] == [second]
    assert workspace.active_index() == 0

    third = await workspace.spawn_additional()
    assert [t.name for t in workspace.tabs()] == ["Agent 2", "Agent 1"]
    assert workspace.active_session_id == third


@pytest.mark.asyncio
async def test_select_terminal_ignores_out_of_range(workspace, projects):
    alpha, _ = projects
    await workspace.activate_project(alpha)
    await workspace.spawn_additional()

    assert workspace.select_terminal(0).name == "Agent 1"
    assert workspace.select_terminal(5) is None
    assert workspace.active_index() == 0


@pytest.mark.asyncio
async def test_rename_persists_per_slot(workspace, projects, registry, names, tmp_path):
    alpha, _ = projects
    session_id = (await workspace.activate_project(alpha))[0].session_id

    assert workspace.rename_terminal(session_id, "  Reviewer ") == "Reviewer"
    assert names.get("p1", 1) == "Reviewer"

    # A fresh workspace (app restart) picks the name back up for slot 1.
    fresh = TerminalWorkspace(registry, name_store=TerminalNameStore(tmp_path / "data"))
    tabs = await fresh.activate_project(alpha)
    assert [t.name for t in tabs] == ["Reviewer"]

    assert workspace.rename_terminal(session_id, "") == "Agent 1"


# ---------------------------------------------------------------------------
# Input / resize / removal
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_send_input_goes_to_active_terminal(workspace, projects, fake_factory):
    alpha, _ = projects
    await workspace.activate_project(alpha)

    assert await workspace.send_input("ls\n") is True
    assert fake_factory.last.writes == [b"ls\n"]


@pytest.mark.asyncio
async def test_input_and_resize_to_dead_terminal_are_swallowed(workspace, projects, registry):
    alpha, _ = projects
    session_id = (await workspace.activate_project(alpha))[0].session_id
    await registry.close(session_id)

    assert await workspace.send_input(b"x", session_id=session_id) is False
    workspace.resize(session_id, 100, 30)


@pytest.mark.asyncio
async def test_forget_project_closes_its_terminals(workspace, projects, registry, names):
    alpha, _ = projects
    session_id = (await workspace.activate_project(alpha))[0].session_id
    workspace.rename_terminal(session_id, "Builder")

    await workspace.forget_project("p1")

    assert session_id not in registry
    assert workspace.active_project is None
    assert not workspace.project_has_terminals("p1")
    assert not workspace.has_spawned("p1")
    assert names.get("p1", 1) == "Agent 1"


@pytest.mark.asyncio
async def test_shutdown_detaches_and_stops_watching_exits(workspace, projects, registry, fake_factory, ui):
    alpha, _ = projects
    session_id = (await workspace.activate_project(alpha))[0].session_id

    await workspace.shutdown()
    fake_factory.last.exit(0)
    await wait_for(lambda: not registry.is_running(session_id))

    assert workspace.active_project is None
    assert workspace.project_has_terminals("p1")
    assert ui.exits == []
