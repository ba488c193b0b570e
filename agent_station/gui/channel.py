"""Bridge between the Tk thread and the terminal workspace on the event loop."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import replace
from typing import Any, Callable, Coroutine

from loguru import logger

from agent_station.config.schema import Config
from agent_station.gui.app import StationApp
from agent_station.gui.terminal_manager import TerminalWorkspace
from agent_station.session.name_store import TerminalNameStore
from agent_station.session.project_store import Project, ProjectStore
from agent_station.terminal.registry import SessionRegistry


class GUIChannel:
    """Runs the GUI in its own thread and owns the workspace on the loop."""

    name = "gui"

    def __init__(
        self,
        config: Config,
        registry: SessionRegistry,
        project_store: ProjectStore | None = None,
        name_store: TerminalNameStore | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.project_store = project_store or ProjectStore(config.data_path)
        self.name_store = name_store or TerminalNameStore(config.data_path)

        self._app: StationApp | None = None
        self._workspace: TerminalWorkspace | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._stopped = threading.Event()

    async def start(self) -> None:
        """Start GUI in separate thread and keep coroutine alive while GUI runs."""
        if self._thread and self._thread.is_alive():
            return

        self._loop = asyncio.get_running_loop()
        self._stopped.clear()
        self._workspace = TerminalWorkspace(
            self.registry,
            name_store=self.name_store,
            on_output=self._emit_output,
            on_exit=self._emit_exit,
            on_tabs_changed=self._emit_tabs,
            on_notice=self._emit_notice,
        )

        self._thread = threading.Thread(target=self._run_gui, daemon=True, name="agent-station-gui")
        self._thread.start()

        try:
            while not self._stopped.is_set():
                await asyncio.sleep(0.2)
        finally:
            await self._shutdown()

    async def stop(self) -> None:
        """Stop GUI runtime."""
        app = self._app
        if app:
            app.stop()
        self._stopped.set()
        thread = self._thread
        if thread and thread.is_alive():
            thread.join(timeout=1.0)

    async def _shutdown(self) -> None:
        workspace = self._workspace
        if workspace is not None:
            await workspace.shutdown()
        await self.registry.shutdown()
        logger.info("[gui] Terminal sessions closed")

    # ------------------------------------------------------------------ #
    # Workspace -> GUI (loop thread)                                       #
    # ------------------------------------------------------------------ #

    def _emit_output(self, session_id: str, data: bytes) -> None:
        if self._app is not None:
            self._app.receive_output(session_id, data)

    def _emit_exit(self, session_id: str) -> None:
        if self._app is not None:
            self._app.receive_exit(session_id)

    def _emit_tabs(self, project_id: str) -> None:
        app = self._app
        workspace = self._workspace
        if app is None or workspace is None:
            return
        # Copies: the GUI thread must not see later in-place renames.
        tabs = [replace(tab) for tab in workspace.tabs(project_id)]
        app.render_tabs(project_id, tabs, workspace.active_index(project_id))

    def _emit_notice(self, project_id: str, message: str) -> None:
        if self._app is not None:
            self._app.show_notice(project_id, message)

    # ------------------------------------------------------------------ #
    # GUI -> workspace (Tk thread)                                         #
    # ------------------------------------------------------------------ #

    def _submit(self, coro: Coroutine[Any, Any, Any]) -> None:
        loop = self._loop
        if loop is None:
            coro.close()
            return
        future = asyncio.run_coroutine_threadsafe(coro, loop)

        def _done_callback(fut: "asyncio.Future[Any]") -> None:
            try:
                fut.result()
            except Exception as exc:
                logger.error(f"[gui] Terminal request failed: {exc}")

        future.add_done_callback(_done_callback)

    def _call(self, fn: Callable[..., Any], *args: Any) -> None:
        loop = self._loop
        if loop is not None:
            loop.call_soon_threadsafe(fn, *args)

    def _run_gui(self) -> None:
        workspace = self._workspace
        assert workspace is not None

        def _activate_callback(project: Project) -> None:
            self._submit(workspace.activate_project(project))

        def _remove_callback(project_id: str) -> None:
            self._submit(workspace.forget_project(project_id))

        def _input_callback(session_id: str, data: bytes) -> None:
            self._submit(workspace.send_input(data, session_id=session_id))

        def _resize_callback(session_id: str, cols: int, rows: int) -> None:
            self._call(workspace.resize, session_id, cols, rows)

        def _select_callback(index: int) -> None:
            self._call(workspace.select_terminal, index)

        def _close_terminal_callback(session_id: str) -> None:
            async def _do_close() -> None:
                if not await workspace.close_terminal(session_id):
                    self._app_status("The last terminal of a project stays open")

            self._submit(_do_close())

        def _rename_callback(session_id: str, name: str) -> None:
            self._call(workspace.rename_terminal, session_id, name)

        def _new_terminal_callback() -> None:
            self._submit(workspace.spawn_additional())

        def _close_callback() -> None:
            self._stopped.set()

        gui = self.config.gui
        self._app = StationApp(
            project_store=self.project_store,
            on_activate_project=_activate_callback,
            on_remove_project=_remove_callback,
            on_input=_input_callback,
            on_resize=_resize_callback,
            on_select_terminal=_select_callback,
            on_close_terminal=_close_terminal_callback,
            on_rename_terminal=_rename_callback,
            on_new_terminal=_new_terminal_callback,
            on_close=_close_callback,
            window_width=gui.width,
            window_height=gui.height,
            font_family=gui.font_family,
            font_size=gui.font_size,
            line_height=gui.line_height,
            zoom=gui.zoom,
        )
        try:
            self._app.run()
        finally:
            self._stopped.set()

    def _app_status(self, text: str) -> None:
        if self._app is not None:
            self._app.set_status(text)
