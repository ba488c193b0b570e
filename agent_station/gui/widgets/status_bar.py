"""Status bar widget."""

from __future__ import annotations

import customtkinter as ctk

from agent_station.gui import theme

_SEGMENTS = (
    # name, anchor, sticky, weight
    ("message", "w", "ew", 1),
    ("terminals", "e", "e", 0),
    ("geometry", "e", "e", 0),
)


class StatusBar(ctk.CTkFrame):
    """Bottom line: last message, terminal count of the project, pane size and zoom."""

    def __init__(self, master: ctk.CTkBaseClass) -> None:
        super().__init__(master, fg_color=theme.COLOR_STATUS_BG, corner_radius=0)
        self._segments: dict[str, ctk.CTkLabel] = {}
        for column, (name, anchor, sticky, weight) in enumerate(_SEGMENTS):
            self.grid_columnconfigure(column, weight=weight)
            label = ctk.CTkLabel(
                self,
                text="",
                anchor=anchor,
                text_color=theme.COLOR_TEXT_MUTED,
                font=(theme.MONO_FAMILY if name == "geometry" else theme.FONT_FAMILY, 12),
            )
            label.grid(row=0, column=column, sticky=sticky, padx=10, pady=4)
            self._segments[name] = label
        self.set_status("Starting")

    def set_status(self, text: str, error: bool = False) -> None:
        color = theme.COLOR_DANGER if error else theme.COLOR_TEXT_MUTED
        self._segments["message"].configure(text=text, text_color=color)

    def set_terminal_count(self, count: int) -> None:
        text = "" if count <= 0 else f"{count} terminal{'s' if count != 1 else ''}"
        self._segments["terminals"].configure(text=text)

    def set_geometry(self, cols: int, rows: int, zoom: float) -> None:
        self._segments["geometry"].configure(text=f"{cols}×{rows} @ {round(zoom * 100)}%")
