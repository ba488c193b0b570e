"""Session event contracts and subscription handles."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable


class SessionState(str, Enum):
    """Lifecycle of one terminal session."""

    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"
    CLOSED = "closed"

    @property
    def is_final(self) -> bool:
        return self in (SessionState.EXITED, SessionState.CLOSED)


@dataclass(frozen=True)
class OutputChunk:
    """Raw bytes read from a session's pseudo-terminal."""

    session_id: str
    data: bytes


@dataclass(frozen=True)
class SessionExit:
    """Terminal event, delivered once per session."""

    session_id: str
    state: SessionState
    exit_status: int | None = None


@dataclass(frozen=True)
class SessionDescriptor:
    """Registry listing entry."""

    session_id: str
    project_id: str
    is_running: bool

    def to_dict(self) -> dict[str, object]:
        return {"id": self.session_id, "projectId": self.project_id, "isRunning": self.is_running}


OnChunk = Callable[[OutputChunk], None]
OnExit = Callable[[SessionExit], None]


class Subscription:
    """Handle for one consumer's delivery path.

    Cancelling stops delivery to this consumer only; the producer keeps
    running. Cancelling twice is a no-op.
    """

    def __init__(
        self,
        session_id: str | None,
        on_chunk: OnChunk | None,
        on_exit: OnExit | None,
        canceller: Callable[["Subscription"], None],
    ) -> None:
        self.session_id = session_id
        self._on_chunk = on_chunk
        self._on_exit = on_exit
        self._canceller: Callable[[Subscription], None] | None = canceller

    @property
    def active(self) -> bool:
        return self._canceller is not None

    def cancel(self) -> None:
        canceller = self._canceller
        if canceller is None:
            return
        self._canceller = None
        canceller(self)

    def deliver_chunk(self, chunk: OutputChunk) -> None:
        if self._canceller is not None and self._on_chunk is not None:
            self._on_chunk(chunk)

    def deliver_exit(self, event: SessionExit, final: bool = True) -> None:
        """Deliver an exit event; a final delivery also invalidates the handle."""
        if self._canceller is None:
            return
        if final:
            self._canceller = None
        if self._on_exit is not None:
            self._on_exit(event)

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"<Subscription session={self.session_id} {state}>"
