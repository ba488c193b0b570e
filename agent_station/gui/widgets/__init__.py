"""Reusable GUI widgets."""

from agent_station.gui.widgets.status_bar import StatusBar

__all__ = ["StatusBar"]
