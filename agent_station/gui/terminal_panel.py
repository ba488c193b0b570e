"""Interactive terminal panel: tab strip plus one pyte screen per session."""

from __future__ import annotations

import tkinter as tk
import tkinter.font as tkfont
from typing import Callable

import customtkinter as ctk

from agent_station.gui import theme
from agent_station.gui.screen import TerminalScreen, key_to_bytes
from agent_station.gui.terminal_manager import TerminalTab
from agent_station.terminal.geometry import ZOOM_STEP, CellMetrics, SurfaceGeometry

OnInput = Callable[[str, bytes], None]
OnResize = Callable[[str, int, int], None]
OnGeometry = Callable[[int, int, float], None]

_CTRL_MASK = 0x4
_ALT_MASK = 0x8
_RENDER_DELAY_MS = 16
_PADDING_PX = 8


class _TabButton(ctk.CTkFrame):
    """One terminal tab: name (double-click to rename) and an optional close button."""

    def __init__(
        self,
        master: ctk.CTkBaseClass,
        tab: TerminalTab,
        active: bool,
        closable: bool,
        on_select: Callable[[], None],
        on_close: Callable[[], None],
        on_rename: Callable[[], None],
    ) -> None:
        super().__init__(
            master,
            fg_color=theme.COLOR_ITEM_ACTIVE_BG if active else theme.COLOR_ITEM_NORMAL_BG,
            corner_radius=6,
        )
        label = ctk.CTkLabel(
            self,
            text=tab.name,
            text_color=theme.COLOR_TEXT if active else theme.COLOR_TEXT_MUTED,
            font=(theme.FONT_FAMILY, 11, "bold" if active else "normal"),
        )
        label.pack(side="left", padx=(10, 4 if closable else 10), pady=3)
        for w in (self, label):
            w.bind("<Button-1>", lambda _e: on_select(), add=True)
            w.bind("<Double-Button-1>", lambda _e: on_rename(), add=True)

        if closable:
            close = ctk.CTkLabel(
                self,
                text="×",
                width=14,
                text_color=theme.COLOR_TEXT_MUTED,
                font=(theme.FONT_FAMILY, 12),
                cursor="hand2",
            )
            close.pack(side="left", padx=(0, 6), pady=3)
            close.bind("<Button-1>", lambda _e: on_close(), add=True)


class TerminalPanel(ctk.CTkFrame):
    """Interactive PTY panel with per-session terminal emulation."""

    def __init__(
        self,
        master: ctk.CTkBaseClass,
        on_input: OnInput,
        on_resize: OnResize,
        on_select: Callable[[int], None],
        on_close: Callable[[str], None],
        on_rename: Callable[[str, str], None],
        on_new: Callable[[], None],
        on_geometry: OnGeometry | None = None,
        font_family: str = theme.MONO_FAMILY,
        font_size: int = theme.FONT_SIZE,
        line_height: float = 1.2,
        zoom: float = 1.0,
    ) -> None:
        super().__init__(
            master,
            fg_color=theme.COLOR_BG_PANEL,
            border_width=1,
            border_color=theme.COLOR_BORDER,
            corner_radius=10,
        )
        self._on_input = on_input
        self._on_resize = on_resize
        self._on_select = on_select
        self._on_close = on_close
        self._on_rename = on_rename
        self._on_new = on_new
        self._on_geometry = on_geometry
        self._font_family = font_family
        self._font_size = font_size

        self._screens: dict[str, TerminalScreen] = {}
        self._tabs: list[TerminalTab] = []
        self._tab_buttons: list[_TabButton] = []
        self._active_session: str = ""
        self._visible: set[str] = set()
        self._render_pending = False
        self._notice: str = ""

        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(1, weight=1)

        # --- Tab strip ---
        strip = ctk.CTkFrame(self, fg_color="transparent")
        strip.grid(row=0, column=0, sticky="ew", padx=8, pady=(8, 4))
        strip.grid_columnconfigure(0, weight=1)
        self._tab_strip = ctk.CTkFrame(strip, fg_color="transparent")
        self._tab_strip.grid(row=0, column=0, sticky="w")
        ctk.CTkButton(
            strip,
            text="+",
            width=28,
            height=24,
            fg_color=theme.COLOR_ACCENT,
            font=(theme.FONT_FAMILY, 12, "bold"),
            command=self._on_new,
        ).grid(row=0, column=1, sticky="e")

        # --- Terminal surface ---
        self._font = tkfont.Font(family=font_family, size=self._zoomed_size(zoom))
        self._text = ctk.CTkTextbox(
            self,
            font=(font_family, self._zoomed_size(zoom)),
            fg_color=theme.COLOR_BG_TERMINAL,
            border_width=0,
            text_color=theme.COLOR_TEXT,
            wrap="none",
        )
        self._text.grid(row=1, column=0, sticky="nsew", padx=6, pady=(0, 6))
        self._geometry = SurfaceGeometry(
            resize=self._apply_resize,
            metrics=self._measure_metrics(line_height, zoom),
            padding_px=_PADDING_PX,
        )

        tw = getattr(self._text, "_textbox", self._text)
        self._surface = tw
        tw.bind("<Configure>", self._on_configure, add=True)
        tw.bind("<Button-1>", lambda e: e.widget.focus_set(), add=True)
        tw.bind("<Control-equal>", lambda _e: self._zoom_by(ZOOM_STEP))
        tw.bind("<Control-plus>", lambda _e: self._zoom_by(ZOOM_STEP))
        tw.bind("<Control-minus>", lambda _e: self._zoom_by(-ZOOM_STEP))
        tw.bind("<Control-0>", lambda _e: self._set_zoom(1.0))
        tw.bind("<Control-C>", self._copy_selection)
        tw.bind("<Control-V>", self._paste_clipboard)
        tw.bind("<Key>", self._on_key)

    # ------------------------------------------------------------------ #
    # Public API (UI thread)                                               #
    # ------------------------------------------------------------------ #

    @property
    def active_session(self) -> str:
        return self._active_session

    @property
    def zoom(self) -> float:
        return self._geometry.zoom

    def set_tabs(self, tabs: list[TerminalTab], active_index: int) -> None:
        """Rebuild the tab strip and show the active tab's screen."""
        self._tabs = list(tabs)
        for button in self._tab_buttons:
            button.destroy()
        self._tab_buttons.clear()

        closable = len(tabs) > 1
        for i, tab in enumerate(tabs):
            button = _TabButton(
                self._tab_strip,
                tab,
                active=i == active_index,
                closable=closable,
                on_select=lambda i=i: self._on_select(i),
                on_close=lambda sid=tab.session_id: self._on_close(sid),
                on_rename=lambda t=tab: self._prompt_rename(t),
            )
            button.pack(side="left", padx=(0, 4))
            self._tab_buttons.append(button)

        if tabs:
            self._notice = ""
            self.set_active_session(tabs[min(active_index, len(tabs) - 1)].session_id)

    def set_active_session(self, session_id: str) -> None:
        if session_id == self._active_session:
            return
        self._active_session = session_id
        self._screens.setdefault(session_id, TerminalScreen())
        if session_id not in self._visible:
            self._visible.add(session_id)
            width, height = self._surface_size()
            if width > 1 and height > 1:
                self._geometry.on_first_visible(session_id, width, height)
        else:
            width, height = self._surface_size()
            if width > 1 and height > 1:
                self._geometry.on_surface_resized(session_id, width, height)
        self._render()
        self._surface.focus_set()

    def feed(self, session_id: str, data: bytes) -> None:
        """Append raw PTY output for a session."""
        screen = self._screens.setdefault(session_id, TerminalScreen())
        screen.feed(data)
        if session_id == self._active_session:
            self._schedule_render()

    def mark_exited(self, session_id: str) -> None:
        screen = self._screens.get(session_id)
        if screen is None:
            return
        screen.write_exit_banner()
        if session_id == self._active_session:
            self._schedule_render()

    def forget(self, session_id: str) -> None:
        """Drop a closed session's screen."""
        self._screens.pop(session_id, None)
        self._visible.discard(session_id)
        self._geometry.forget(session_id)

    def show_notice(self, message: str) -> None:
        """Show a message in place of a terminal, e.g. when spawning failed."""
        self._notice = message
        self._active_session = ""
        self._render()

    # ------------------------------------------------------------------ #
    # Rendering                                                            #
    # ------------------------------------------------------------------ #

    def _schedule_render(self) -> None:
        if self._render_pending:
            return
        self._render_pending = True
        self.after(_RENDER_DELAY_MS, self._render)

    def _render(self) -> None:
        self._render_pending = False
        self._text.delete("1.0", "end")
        if self._notice:
            self._text.insert("1.0", self._notice)
            return
        screen = self._screens.get(self._active_session)
        if screen is None:
            return
        rendered = screen.snapshot()
        if rendered:
            self._text.insert("1.0", rendered)
        self._text.see("end")

    # ------------------------------------------------------------------ #
    # Geometry                                                             #
    # ------------------------------------------------------------------ #

    def _zoomed_size(self, zoom: float) -> int:
        return max(1, round(self._font_size * zoom))

    def _measure_metrics(self, line_height: float, zoom: float) -> CellMetrics:
        size = self._zoomed_size(zoom)
        char_aspect = self._font.measure("0") / size
        return CellMetrics(
            font_size=self._font_size,
            line_height=line_height,
            char_aspect=char_aspect,
            zoom=zoom,
        )

    def _surface_size(self) -> tuple[int, int]:
        return int(self._surface.winfo_width()), int(self._surface.winfo_height())

    def _on_configure(self, event: tk.Event) -> None:
        sid = self._active_session
        if not sid or event.width <= 1 or event.height <= 1:
            return
        if sid in self._visible:
            self._geometry.on_surface_resized(sid, event.width, event.height)
        else:
            self._visible.add(sid)
            self._geometry.on_first_visible(sid, event.width, event.height)

    def _apply_resize(self, session_id: str, cols: int, rows: int) -> None:
        screen = self._screens.get(session_id)
        if screen is not None:
            screen.resize(cols, rows)
        self._on_resize(session_id, cols, rows)
        if session_id == self._active_session:
            if self._on_geometry is not None:
                self._on_geometry(cols, rows, self._geometry.zoom)
            self._schedule_render()

    def _zoom_by(self, delta: float) -> str:
        self._set_zoom(self._geometry.zoom + delta)
        return "break"

    def _set_zoom(self, zoom: float) -> str:
        metrics = self._geometry.metrics.with_zoom(zoom)
        if metrics.zoom == self._geometry.zoom:
            return "break"
        size = self._zoomed_size(metrics.zoom)
        self._font.configure(size=size)
        self._text.configure(font=(self._font_family, size))
        self._geometry.on_zoom_changed(metrics.zoom)
        return "break"

    # ------------------------------------------------------------------ #
    # Input                                                                #
    # ------------------------------------------------------------------ #

    def _on_key(self, event: tk.Event) -> str:
        sid = self._active_session
        if not sid:
            return "break"
        state = int(getattr(event, "state", 0) or 0)
        data = key_to_bytes(
            getattr(event, "keysym", ""),
            getattr(event, "char", ""),
            ctrl=bool(state & _CTRL_MASK),
            alt=bool(state & _ALT_MASK),
        )
        if data:
            self._on_input(sid, data)
        return "break"

    def _copy_selection(self, _event: tk.Event) -> str:
        try:
            self._surface.event_generate("<<Copy>>")
        except tk.TclError:
            pass
        return "break"

    def _paste_clipboard(self, _event: tk.Event) -> str:
        sid = self._active_session
        if not sid:
            return "break"
        try:
            text = self.clipboard_get()
        except tk.TclError:
            return "break"
        if text:
            self._on_input(sid, text.encode("utf-8"))
        return "break"

    def _prompt_rename(self, tab: TerminalTab) -> None:
        dialog = ctk.CTkInputDialog(text=f"Rename \"{tab.name}\"", title="Rename terminal")
        name = dialog.get_input()
        if name is not None:
            self._on_rename(tab.session_id, name)
