"""Project sidebar widget."""

from __future__ import annotations

import tkinter as tk
from dataclasses import dataclass
from typing import Callable

import customtkinter as ctk

from agent_station.gui import theme


def _unbind_configure_recursive(widget: object) -> None:
    """Remove <Configure> bindings from *widget* and all descendants.

    customtkinter widgets with corner_radius repaint on <Configure>; a final
    Configure fired while the canvas is being destroyed raises TclError.
    """
    try:
        widget.unbind("<Configure>")  # type: ignore[union-attr]
    except tk.TclError:
        pass
    try:
        for child in widget.winfo_children():  # type: ignore[union-attr]
            _unbind_configure_recursive(child)
    except tk.TclError:
        pass


@dataclass(frozen=True)
class ProjectListItem:
    """Project row metadata."""

    project_id: str
    name: str
    path: str
    terminal_count: int = 0


class _ProjectRow(ctk.CTkFrame):
    """One project: running dot, name, terminal count badge."""

    def __init__(
        self,
        master: ctk.CTkBaseClass,
        item: ProjectListItem,
        on_click: Callable[[str], None],
        on_remove: Callable[[str], None],
        active: bool = False,
    ) -> None:
        super().__init__(
            master,
            fg_color=theme.COLOR_ITEM_ACTIVE_BG if active else "transparent",
            corner_radius=6,
        )
        self._item = item
        self._on_click = on_click
        self._on_remove = on_remove
        self._active = active

        self.grid_columnconfigure(1, weight=1)

        self._dot = ctk.CTkLabel(
            self,
            text="●",
            width=14,
            text_color=theme.running_dot_color(item.terminal_count > 0),
            font=(theme.FONT_FAMILY, 10),
        )
        self._dot.grid(row=0, column=0, sticky="w", padx=(8, 2), pady=6)

        self._name_label = ctk.CTkLabel(
            self,
            text=item.name,
            anchor="w",
            text_color=theme.COLOR_TEXT,
            font=(theme.FONT_FAMILY, 12, "bold" if active else "normal"),
        )
        self._name_label.grid(row=0, column=1, sticky="ew", pady=6)

        widgets: list[ctk.CTkBaseClass] = [self, self._dot, self._name_label]
        if item.terminal_count > 0:
            badge = ctk.CTkLabel(
                self,
                text=str(item.terminal_count),
                width=20,
                height=18,
                corner_radius=9,
                fg_color=theme.project_badge_color(item.project_id),
                text_color="#FFFFFF",
                font=(theme.FONT_FAMILY, 10, "bold"),
            )
            badge.grid(row=0, column=2, sticky="e", padx=(0, 8), pady=6)
            widgets.append(badge)

        self._menu = tk.Menu(self, tearoff=0)
        self._menu.add_command(label=item.path, state="disabled")
        self._menu.add_separator()
        self._menu.add_command(label="Remove project", command=self._request_remove)

        for w in widgets:
            w.bind("<Enter>", self._on_enter, add=True)
            w.bind("<Leave>", self._on_leave, add=True)
            w.bind("<Button-1>", self._on_click_event, add=True)
            w.bind("<Button-3>", self._on_right_click, add=True)
            w.bind("<Button-2>", self._on_right_click, add=True)

    def _on_enter(self, _event: object) -> None:
        if not self._active:
            self.configure(fg_color=theme.COLOR_ITEM_HOVER_BG)

    def _on_leave(self, event: object) -> None:
        try:
            mx = int(getattr(event, "x_root", 0))
            my = int(getattr(event, "y_root", 0))
            cx = self.winfo_rootx()
            cy = self.winfo_rooty()
            if cx <= mx < cx + self.winfo_width() and cy <= my < cy + self.winfo_height():
                return
        except tk.TclError:
            pass
        if not self._active:
            self.configure(fg_color="transparent")

    def _on_click_event(self, _event: object) -> None:
        self._on_click(self._item.project_id)

    def _on_right_click(self, event: object) -> None:
        try:
            self._menu.tk_popup(int(getattr(event, "x_root", 0)), int(getattr(event, "y_root", 0)))
        finally:
            self._menu.grab_release()

    def _request_remove(self) -> None:
        self._on_remove(self._item.project_id)

    def destroy(self) -> None:
        _unbind_configure_recursive(self)
        try:
            self._menu.destroy()
        except tk.TclError:
            pass
        super().destroy()


class Sidebar(ctk.CTkFrame):
    """Left panel listing projects."""

    def __init__(
        self,
        master: ctk.CTkBaseClass,
        on_select_project: Callable[[str], None],
        on_add_project: Callable[[], None],
        on_remove_project: Callable[[str], None],
    ) -> None:
        super().__init__(
            master,
            fg_color=theme.COLOR_BG_SIDEBAR,
            border_width=1,
            border_color=theme.COLOR_BORDER,
            corner_radius=10,
        )
        self._on_select_project = on_select_project
        self._on_remove_project = on_remove_project
        self._rows: list[_ProjectRow] = []
        self._items: list[ProjectListItem] = []
        self._active_project_id: str | None = None

        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(2, weight=1)

        ctk.CTkLabel(
            self,
            text="Projects",
            anchor="w",
            text_color=theme.COLOR_TEXT_MUTED,
            font=(theme.FONT_FAMILY, 12, "bold"),
        ).grid(row=0, column=0, sticky="ew", padx=14, pady=(10, 6))

        ctk.CTkButton(
            self,
            text="+ Project",
            height=28,
            fg_color=theme.COLOR_ACCENT,
            font=(theme.FONT_FAMILY, 11),
            command=on_add_project,
        ).grid(row=1, column=0, sticky="ew", padx=14, pady=(0, 8))

        self._list = ctk.CTkScrollableFrame(self, fg_color="transparent")
        self._list.grid(row=2, column=0, sticky="nsew", padx=6, pady=(0, 8))
        self._list.grid_columnconfigure(0, weight=1)

        self._empty_label = ctk.CTkLabel(
            self._list,
            text="Add a folder to start a terminal.",
            anchor="w",
            text_color=theme.COLOR_TEXT_MUTED,
            font=(theme.FONT_FAMILY, 11),
        )

    def set_projects(self, items: list[ProjectListItem], active_project_id: str | None) -> None:
        self._items = list(items)
        self._active_project_id = active_project_id
        self._render()

    def set_active_project(self, project_id: str | None) -> None:
        if project_id == self._active_project_id:
            return
        self._active_project_id = project_id
        self._render()

    def set_terminal_count(self, project_id: str, count: int) -> None:
        changed = False
        for i, item in enumerate(self._items):
            if item.project_id == project_id and item.terminal_count != count:
                self._items[i] = ProjectListItem(item.project_id, item.name, item.path, count)
                changed = True
        if changed:
            self._render()

    def _render(self) -> None:
        for row in self._rows:
            row.destroy()
        self._rows.clear()

        if not self._items:
            self._empty_label.grid(row=0, column=0, sticky="ew", padx=8, pady=6)
            return
        self._empty_label.grid_remove()

        for i, item in enumerate(self._items):
            row = _ProjectRow(
                self._list,
                item,
                on_click=self._on_select_project,
                on_remove=self._on_remove_project,
                active=item.project_id == self._active_project_id,
            )
            row.grid(row=i, column=0, sticky="ew", pady=1)
            self._rows.append(row)
