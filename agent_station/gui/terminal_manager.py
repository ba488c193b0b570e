"""Terminal tabs per project, kept free of tkinter.

The workspace is the UI's view of which terminals belong to which project.
It keeps that cache separate from the registry's truth and reconciles the two
whenever a project becomes active, so switching projects never spawns
duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from loguru import logger

from agent_station.session.name_store import TerminalNameStore, default_name
from agent_station.session.project_store import Project
from agent_station.terminal.errors import SpawnError, TerminalIOError, UnknownSession
from agent_station.terminal.events import OutputChunk, SessionExit, Subscription
from agent_station.terminal.registry import SessionRegistry

OnOutput = Callable[[str, bytes], None]          # session_id, data
OnTerminalExit = Callable[[str], None]           # session_id
OnTabsChanged = Callable[[str], None]            # project_id
OnNotice = Callable[[str, str], None]            # project_id, message


@dataclass
class TerminalTab:
    """One terminal as the UI knows it."""

    session_id: str
    project_id: str
    slot: int
    name: str


class TerminalWorkspace:
    """Reconciles project focus with registry sessions and owns pane subscriptions.

    Runs on the event loop thread, next to the registry.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        name_store: TerminalNameStore | None = None,
        on_output: OnOutput | None = None,
        on_exit: OnTerminalExit | None = None,
        on_tabs_changed: OnTabsChanged | None = None,
        on_notice: OnNotice | None = None,
    ) -> None:
        self._registry = registry
        self._names = name_store
        self._on_output = on_output
        self._on_exit = on_exit
        self._on_tabs_changed = on_tabs_changed
        self._on_notice = on_notice

        self._tabs: dict[str, list[TerminalTab]] = {}
        self._active_index: dict[str, int] = {}
        self._spawned_projects: set[str] = set()
        self._subscriptions: dict[str, Subscription] = {}
        self._active_project: Project | None = None
        self._exit_watch = registry.subscribe_exits(self._on_session_exit)

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    @property
    def active_project(self) -> Project | None:
        return self._active_project

    @property
    def active_project_id(self) -> str | None:
        return self._active_project.project_id if self._active_project else None

    def tabs(self, project_id: str | None = None) -> list[TerminalTab]:
        pid = project_id or self.active_project_id
        return list(self._tabs.get(pid, [])) if pid else []

    def active_index(self, project_id: str | None = None) -> int:
        pid = project_id or self.active_project_id
        return self._active_index.get(pid, 0) if pid else 0

    @property
    def active_tab(self) -> TerminalTab | None:
        tabs = self.tabs()
        if not tabs:
            return None
        return tabs[min(self.active_index(), len(tabs) - 1)]

    @property
    def active_session_id(self) -> str | None:
        tab = self.active_tab
        return tab.session_id if tab else None

    def is_attached(self, session_id: str) -> bool:
        sub = self._subscriptions.get(session_id)
        return sub is not None and sub.active

    def project_has_terminals(self, project_id: str) -> bool:
        return bool(self._tabs.get(project_id))

    def has_spawned(self, project_id: str) -> bool:
        return project_id in self._spawned_projects

    # ------------------------------------------------------------------ #
    # Project focus                                                        #
    # ------------------------------------------------------------------ #

    async def activate_project(self, project: Project) -> list[TerminalTab]:
        """Attach to the project's running terminals, spawning one only on first visit."""
        previous = self._active_project
        if previous is not None and previous.project_id != project.project_id:
            self._detach_project(previous.project_id)
        self._active_project = project
        pid = project.project_id

        running = [d.session_id for d in self._registry.list_sessions(pid) if d.is_running]
        tabs = self._reconcile(pid, running)
        if running:
            self._spawned_projects.add(pid)
            for tab in tabs:
                self._attach(tab.session_id)
            logger.debug(f"[workspace] Reattached {len(tabs)} terminal(s) for {project.name}")
        elif pid not in self._spawned_projects:
            self._spawned_projects.add(pid)
            await self._spawn(project)
        self._tabs_changed(pid)
        return self.tabs(pid)

    def deactivate(self) -> None:
        """Drop pane subscriptions without touching any session."""
        if self._active_project is not None:
            self._detach_project(self._active_project.project_id)
        self._active_project = None

    async def forget_project(self, project_id: str) -> None:
        """Close every terminal of a removed project."""
        if self.active_project_id == project_id:
            self.deactivate()
        for tab in self._tabs.pop(project_id, []):
            self._detach(tab.session_id)
            await self._registry.close(tab.session_id)
        self._active_index.pop(project_id, None)
        self._spawned_projects.discard(project_id)
        if self._names is not None:
            self._names.forget_project(project_id)

    # ------------------------------------------------------------------ #
    # Tabs                                                                 #
    # ------------------------------------------------------------------ #

    async def spawn_additional(self) -> str | None:
        """Open another terminal for the active project and focus it."""
        project = self._active_project
        if project is None:
            return None
        session_id = await self._spawn(project)
        if session_id is not None:
            tabs = self._tabs.get(project.project_id, [])
            self._active_index[project.project_id] = len(tabs) - 1
            self._tabs_changed(project.project_id)
        return session_id

    def select_terminal(self, index: int) -> TerminalTab | None:
        pid = self.active_project_id
        tabs = self.tabs()
        if pid is None or not 0 <= index < len(tabs):
            return None
        self._active_index[pid] = index
        self._tabs_changed(pid)
        return tabs[index]

    async def close_terminal(self, session_id: str) -> bool:
        """Close one terminal tab. The last tab of a project cannot be closed here."""
        tab = self._find_tab(session_id)
        if tab is None:
            return False
        if len(self._tabs.get(tab.project_id, [])) <= 1:
            return False
        self._detach(session_id)
        self._drop_tab(tab)
        await self._registry.close(session_id)
        self._tabs_changed(tab.project_id)
        return True

    def rename_terminal(self, session_id: str, name: str) -> str | None:
        tab = self._find_tab(session_id)
        if tab is None:
            return None
        if self._names is not None:
            tab.name = self._names.set(tab.project_id, tab.slot, name)
        else:
            tab.name = name.strip() or default_name(tab.slot)
        self._tabs_changed(tab.project_id)
        return tab.name

    # ------------------------------------------------------------------ #
    # Input / geometry                                                     #
    # ------------------------------------------------------------------ #

    async def send_input(self, data: bytes | str, session_id: str | None = None) -> bool:
        """Write to a terminal. Failures against dead sessions are dropped."""
        target = session_id or self.active_session_id
        if target is None:
            return False
        try:
            await self._registry.write(target, data)
        except (UnknownSession, TerminalIOError) as exc:
            logger.debug(f"[workspace] input dropped for {target[:8]}: {exc}")
            return False
        return True

    def resize(self, session_id: str, cols: int, rows: int) -> None:
        try:
            self._registry.resize(session_id, cols, rows)
        except UnknownSession:
            logger.debug(f"[workspace] resize dropped for retired terminal {session_id[:8]}")

    async def shutdown(self) -> None:
        self.deactivate()
        self._exit_watch.cancel()

    # ------------------------------------------------------------------ #
    # Private helpers                                                      #
    # ------------------------------------------------------------------ #

    async def _spawn(self, project: Project) -> str | None:
        pid = project.project_id
        try:
            session_id = await self._registry.create(pid, project.path)
        except SpawnError as exc:
            if self._on_notice is not None:
                self._on_notice(pid, f"Failed to spawn terminal: {exc}")
            return None
        tabs = self._tabs.setdefault(pid, [])
        slot = self._next_slot(tabs)
        tabs.append(TerminalTab(session_id, pid, slot, self._name_for(pid, slot)))
        if self.active_project_id == pid:
            self._attach(session_id)
        return session_id

    def _reconcile(self, project_id: str, running: list[str]) -> list[TerminalTab]:
        live = set(running)
        tabs = [t for t in self._tabs.get(project_id, []) if t.session_id in live]
        known = {t.session_id for t in tabs}
        for session_id in running:
            if session_id not in known:
                slot = self._next_slot(tabs)
                tabs.append(TerminalTab(session_id, project_id, slot, self._name_for(project_id, slot)))
        self._tabs[project_id] = tabs
        self._clamp_index(project_id)
        return tabs

    def _attach(self, session_id: str) -> None:
        if self.is_attached(session_id):
            return
        try:
            self._subscriptions[session_id] = self._registry.attach(
                session_id,
                self._deliver_output,
                self._deliver_exit,
            )
        except UnknownSession:
            logger.debug(f"[workspace] attach skipped for finished terminal {session_id[:8]}")

    def _detach(self, session_id: str) -> None:
        sub = self._subscriptions.pop(session_id, None)
        if sub is not None:
            self._registry.detach(sub)

    def _detach_project(self, project_id: str) -> None:
        for tab in self._tabs.get(project_id, []):
            self._detach(tab.session_id)

    def _deliver_output(self, chunk: OutputChunk) -> None:
        if self._on_output is not None:
            self._on_output(chunk.session_id, chunk.data)

    def _deliver_exit(self, event: SessionExit) -> None:
        self._subscriptions.pop(event.session_id, None)
        if self._on_exit is not None:
            self._on_exit(event.session_id)

    def _on_session_exit(self, event: SessionExit) -> None:
        tab = self._find_tab(event.session_id)
        if tab is None:
            return
        self._subscriptions.pop(event.session_id, None)
        self._drop_tab(tab)
        self._tabs_changed(tab.project_id)

    def _find_tab(self, session_id: str) -> TerminalTab | None:
        for tabs in self._tabs.values():
            for tab in tabs:
                if tab.session_id == session_id:
                    return tab
        return None

    def _drop_tab(self, tab: TerminalTab) -> None:
        tabs = self._tabs.get(tab.project_id, [])
        if tab not in tabs:
            return
        index = tabs.index(tab)
        tabs.remove(tab)
        active = self._active_index.get(tab.project_id, 0)
        if index <= active and active > 0:
            self._active_index[tab.project_id] = active - 1
        self._clamp_index(tab.project_id)

    def _clamp_index(self, project_id: str) -> None:
        count = len(self._tabs.get(project_id, []))
        index = self._active_index.get(project_id, 0)
        self._active_index[project_id] = max(0, min(index, count - 1))

    def _name_for(self, project_id: str, slot: int) -> str:
        if self._names is not None:
            return self._names.get(project_id, slot)
        return default_name(slot)

    @staticmethod
    def _next_slot(tabs: list[TerminalTab]) -> int:
        used = {t.slot for t in tabs}
        slot = 1
        while slot in used:
            slot += 1
        return slot

    def _tabs_changed(self, project_id: str) -> None:
        if self._on_tabs_changed is not None:
            self._on_tabs_changed(project_id)
