"""Shared GUI theme defaults."""

from __future__ import annotations

import zlib

import customtkinter as ctk

WINDOW_WIDTH = 1280
WINDOW_HEIGHT = 800
FONT_SIZE = 13
FONT_FAMILY = "Segoe UI"
MONO_FAMILY = "Menlo"

COLOR_BG_APP = "#0E1116"
COLOR_BG_PANEL = "#131A22"
COLOR_BG_TERMINAL = "#0A0D12"
COLOR_BG_SIDEBAR = "#10161F"
COLOR_BORDER = "#223247"
COLOR_TEXT = "#D9E2EF"
COLOR_TEXT_MUTED = "#8796AA"
COLOR_ACCENT = "#2E9BFF"
COLOR_STATUS_BG = "#0B1119"
COLOR_SUCCESS = "#39C172"
COLOR_DANGER = "#EA5F5F"

# Tab and project row backgrounds
COLOR_ITEM_ACTIVE_BG = "#1A2C40"
COLOR_ITEM_NORMAL_BG = "#111927"
COLOR_ITEM_HOVER_BG = "#16202E"

# Terminal-count badge colours, picked per project
PROJECT_BADGE_COLORS = (
    "#2E9BFF",  # blue
    "#7C6FCD",  # purple
    "#10A37F",  # green
    "#D9822B",  # orange
    "#C2487A",  # rose
    "#3FA7A3",  # teal
)


def running_dot_color(running: bool) -> str:
    """Colour of the indicator next to a project with live terminals."""
    return COLOR_SUCCESS if running else COLOR_TEXT_MUTED


def project_badge_color(project_id: str) -> str:
    """Return a stable badge colour for a project id."""
    if not project_id:
        return COLOR_ACCENT
    index = zlib.crc32(project_id.encode("utf-8")) % len(PROJECT_BADGE_COLORS)
    return PROJECT_BADGE_COLORS[index]


def setup_theme() -> None:
    """Apply global appearance settings."""
    ctk.set_appearance_mode("dark")
    ctk.set_default_color_theme("blue")
