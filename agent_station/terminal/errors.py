"""Error taxonomy for terminal sessions."""

from __future__ import annotations


class TerminalError(Exception):
    """Base class for session manager failures."""


class SpawnError(TerminalError):
    """The shell could not be started (missing binary, permissions, bad cwd)."""


class UnknownSession(TerminalError, KeyError):
    """Operation referenced a retired or never-created session id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Terminal not found: {self.session_id}"


class TerminalIOError(TerminalError, OSError):
    """A write hit a closed pseudo-terminal pipe."""


class ResizeIgnored(TerminalError):
    """Resize against a session with nothing left to resize. Never surfaced."""
