"""Main desktop application: project sidebar and terminal panel."""

from __future__ import annotations

import threading
from tkinter import filedialog
from typing import Callable

import customtkinter as ctk
from loguru import logger

from agent_station.gui import theme
from agent_station.gui.sidebar import ProjectListItem, Sidebar
from agent_station.gui.terminal_manager import TerminalTab
from agent_station.gui.terminal_panel import TerminalPanel
from agent_station.gui.widgets.status_bar import StatusBar
from agent_station.session.project_store import Project, ProjectError, ProjectStore

OnProject = Callable[[Project], None]
OnProjectId = Callable[[str], None]
OnInput = Callable[[str, bytes], None]
OnResize = Callable[[str, int, int], None]
OnSelectTerminal = Callable[[int], None]
OnCloseTerminal = Callable[[str], None]
OnRenameTerminal = Callable[[str, str], None]
OnNewTerminal = Callable[[], None]
OnClose = Callable[[], None]


class StationApp:
    """Desktop GUI: projects on the left, tabbed terminals on the right.

    All public methods are safe to call from any thread; widget work is
    marshalled onto the Tk thread.
    """

    def __init__(
        self,
        project_store: ProjectStore,
        on_activate_project: OnProject | None = None,
        on_remove_project: OnProjectId | None = None,
        on_input: OnInput | None = None,
        on_resize: OnResize | None = None,
        on_select_terminal: OnSelectTerminal | None = None,
        on_close_terminal: OnCloseTerminal | None = None,
        on_rename_terminal: OnRenameTerminal | None = None,
        on_new_terminal: OnNewTerminal | None = None,
        on_close: OnClose | None = None,
        window_width: int = theme.WINDOW_WIDTH,
        window_height: int = theme.WINDOW_HEIGHT,
        font_family: str = theme.MONO_FAMILY,
        font_size: int = theme.FONT_SIZE,
        line_height: float = 1.2,
        zoom: float = 1.0,
    ) -> None:
        self._store = project_store
        self._on_activate_project = on_activate_project
        self._on_remove_project = on_remove_project
        self._on_input = on_input
        self._on_resize = on_resize
        self._on_select_terminal = on_select_terminal
        self._on_close_terminal = on_close_terminal
        self._on_rename_terminal = on_rename_terminal
        self._on_new_terminal = on_new_terminal
        self._on_close = on_close
        self._window_width = window_width
        self._window_height = window_height
        self._font_family = font_family
        self._font_size = font_size
        self._line_height = line_height
        self._zoom = zoom

        self._root: ctk.CTk | None = None
        self._sidebar: Sidebar | None = None
        self._terminal_panel: TerminalPanel | None = None
        self._status_bar: StatusBar | None = None
        self._active_project_id: str | None = None
        self._known_sessions: dict[str, list[str]] = {}

        self._ui_thread_id: int | None = None
        self._pending_calls: list[Callable[[], None]] = []

    def run(self) -> None:
        """Build and run tkinter mainloop."""
        theme.setup_theme()
        root = ctk.CTk()
        self._root = root
        self._ui_thread_id = threading.get_ident()

        root.title("Agent Station")
        root.minsize(900, 560)
        root.geometry(f"{self._window_width}x{self._window_height}")
        root.configure(fg_color=theme.COLOR_BG_APP)
        root.protocol("WM_DELETE_WINDOW", self._handle_close)

        root.grid_columnconfigure(0, weight=0, minsize=240)
        root.grid_columnconfigure(1, weight=1)
        root.grid_rowconfigure(0, weight=1)

        self._sidebar = Sidebar(
            root,
            on_select_project=self._select_project,
            on_add_project=self._add_project,
            on_remove_project=self._remove_project,
        )
        self._sidebar.grid(row=0, column=0, sticky="nsew", padx=(10, 6), pady=10)

        main = ctk.CTkFrame(root, fg_color="transparent")
        main.grid(row=0, column=1, sticky="nsew", padx=(6, 10), pady=10)
        main.grid_columnconfigure(0, weight=1)
        main.grid_rowconfigure(0, weight=1)

        self._terminal_panel = TerminalPanel(
            main,
            on_input=self._forward_input,
            on_resize=self._forward_resize,
            on_select=self._forward_select,
            on_close=self._forward_close_terminal,
            on_rename=self._forward_rename,
            on_new=self._forward_new_terminal,
            on_geometry=self._show_geometry,
            font_family=self._font_family,
            font_size=self._font_size,
            line_height=self._line_height,
            zoom=self._zoom,
        )
        self._terminal_panel.grid(row=0, column=0, sticky="nsew")

        self._status_bar = StatusBar(main)
        self._status_bar.grid(row=1, column=0, sticky="ew", pady=(6, 0))

        self._refresh_sidebar()
        self._apply_pending_calls()
        projects = self._store.list_projects()
        if projects and self._active_project_id is None:
            self._select_project(projects[0].project_id)
        else:
            self.set_status("Add a project folder to open a terminal")

        root.mainloop()

    def stop(self) -> None:
        """Close GUI safely from any thread."""
        self._run_on_ui(self._handle_close)

    # ------------------------------------------------------------------ #
    # Inbound from the terminal workspace (any thread)                     #
    # ------------------------------------------------------------------ #

    def set_status(self, text: str, error: bool = False) -> None:
        self._run_on_ui(lambda: self._set_status_ui(text, error))

    def receive_output(self, session_id: str, data: bytes) -> None:
        self._run_on_ui(lambda: self._receive_output_ui(session_id, data))

    def receive_exit(self, session_id: str) -> None:
        self._run_on_ui(lambda: self._receive_exit_ui(session_id))

    def render_tabs(self, project_id: str, tabs: list[TerminalTab], active_index: int) -> None:
        self._run_on_ui(lambda: self._render_tabs_ui(project_id, tabs, active_index))

    def show_notice(self, project_id: str, message: str) -> None:
        self._run_on_ui(lambda: self._show_notice_ui(project_id, message))

    # ------------------------------------------------------------------ #
    # UI-thread handlers                                                   #
    # ------------------------------------------------------------------ #

    def _receive_output_ui(self, session_id: str, data: bytes) -> None:
        if self._terminal_panel:
            self._terminal_panel.feed(session_id, data)

    def _receive_exit_ui(self, session_id: str) -> None:
        if self._terminal_panel:
            self._terminal_panel.mark_exited(session_id)

    def _render_tabs_ui(self, project_id: str, tabs: list[TerminalTab], active_index: int) -> None:
        current = [t.session_id for t in tabs]
        previous = self._known_sessions.get(project_id, [])
        self._known_sessions[project_id] = current
        if self._sidebar:
            self._sidebar.set_terminal_count(project_id, len(tabs))
        panel = self._terminal_panel
        if panel is None:
            return
        for session_id in previous:
            # The last screen stays so its exit banner remains readable.
            if session_id not in current and session_id != panel.active_session:
                panel.forget(session_id)
        if project_id != self._active_project_id:
            return
        panel.set_tabs(tabs, active_index)
        if self._status_bar:
            self._status_bar.set_terminal_count(len(tabs))
        if tabs:
            self.set_status(f"{tabs[min(active_index, len(tabs) - 1)].name} | {self._project_name(project_id)}")
        else:
            self.set_status("No running terminals. Press + to open one.")

    def _show_notice_ui(self, project_id: str, message: str) -> None:
        self.set_status(message, error=True)
        if project_id == self._active_project_id and self._terminal_panel:
            self._terminal_panel.show_notice(message)

    def _select_project(self, project_id: str) -> None:
        project = self._store.get_project(project_id)
        if project is None:
            return
        self._active_project_id = project_id
        if self._sidebar:
            self._sidebar.set_active_project(project_id)
        self.set_status(f"Opening {project.name}")
        if self._on_activate_project:
            self._on_activate_project(project)

    def _add_project(self) -> None:
        path = filedialog.askdirectory(title="Select project folder", mustexist=True)
        if not path:
            return
        try:
            project = self._store.add_project(path)
        except ProjectError as exc:
            self.set_status(str(exc), error=True)
            return
        self._refresh_sidebar()
        self._select_project(project.project_id)

    def _remove_project(self, project_id: str) -> None:
        if not self._store.remove_project(project_id):
            return
        if self._on_remove_project:
            self._on_remove_project(project_id)
        for session_id in self._known_sessions.pop(project_id, []):
            if self._terminal_panel:
                self._terminal_panel.forget(session_id)
        if project_id == self._active_project_id:
            self._active_project_id = None
            if self._terminal_panel:
                self._terminal_panel.set_tabs([], 0)
                self._terminal_panel.show_notice("")
        self._refresh_sidebar()
        self.set_status("Project removed")

    def _refresh_sidebar(self) -> None:
        if self._sidebar is None:
            return
        items = [
            ProjectListItem(
                project_id=p.project_id,
                name=p.name,
                path=p.path,
                terminal_count=len(self._known_sessions.get(p.project_id, [])),
            )
            for p in self._store.list_projects()
        ]
        self._sidebar.set_projects(items, self._active_project_id)

    def _project_name(self, project_id: str) -> str:
        project = self._store.get_project(project_id)
        return project.name if project else project_id

    def _show_geometry(self, cols: int, rows: int, zoom: float) -> None:
        if self._status_bar:
            self._status_bar.set_geometry(cols, rows, zoom)

    # ------------------------------------------------------------------ #
    # Outbound to the terminal workspace                                   #
    # ------------------------------------------------------------------ #

    def _forward_input(self, session_id: str, data: bytes) -> None:
        if self._on_input:
            self._on_input(session_id, data)

    def _forward_resize(self, session_id: str, cols: int, rows: int) -> None:
        if self._on_resize:
            self._on_resize(session_id, cols, rows)

    def _forward_select(self, index: int) -> None:
        if self._on_select_terminal:
            self._on_select_terminal(index)

    def _forward_close_terminal(self, session_id: str) -> None:
        if self._on_close_terminal:
            self._on_close_terminal(session_id)

    def _forward_rename(self, session_id: str, name: str) -> None:
        if self._on_rename_terminal:
            self._on_rename_terminal(session_id, name)

    def _forward_new_terminal(self) -> None:
        if self._active_project_id is None:
            self.set_status("Select a project first")
            return
        if self._on_new_terminal:
            self._on_new_terminal()

    # ------------------------------------------------------------------ #
    # Thread marshalling                                                   #
    # ------------------------------------------------------------------ #

    def _run_on_ui(self, fn: Callable[[], None]) -> None:
        if self._root is None:
            self._pending_calls.append(fn)
            return
        if threading.get_ident() == self._ui_thread_id:
            fn()
            return
        self._root.after(0, fn)

    def _apply_pending_calls(self) -> None:
        queued = list(self._pending_calls)
        self._pending_calls.clear()
        for fn in queued:
            fn()

    def _set_status_ui(self, text: str, error: bool = False) -> None:
        if self._status_bar:
            self._status_bar.set_status(text, error=error)

    def _handle_close(self) -> None:
        root = self._root
        if self._on_close:
            self._on_close()
        if root:
            try:
                root.quit()
                root.destroy()
            except Exception as exc:
                logger.warning(f"Error during GUI shutdown: {exc}")
            self._root = None
