"""Session registry: the single owner of every terminal session."""

from __future__ import annotations

import asyncio
import os
import uuid
from pathlib import Path

from loguru import logger

from agent_station.config.schema import TerminalConfig
from agent_station.terminal.backend import build_backend
from agent_station.terminal.errors import SpawnError, UnknownSession
from agent_station.terminal.events import (
    OnChunk,
    OnExit,
    SessionDescriptor,
    SessionExit,
    SessionState,
    Subscription,
)
from agent_station.terminal.geometry import GeometrySynchronizer
from agent_station.terminal.session import BackendFactory, TerminalSession


class SessionRegistry:
    """Create, enumerate and destroy terminal sessions across all projects.

    All methods must be called from the event loop thread. The session table
    is only mutated there, so a listing never sees a half-created or
    half-destroyed session.

    Exited sessions stay listed with ``is_running=False`` until one listing
    has reported them; after that their id is retired. Closed sessions are
    retired immediately. At most ``max_unreported_exits`` exited sessions wait
    for a listing; beyond that the oldest is retired unreported.
    """

    def __init__(
        self,
        config: TerminalConfig | None = None,
        backend_factory: BackendFactory = build_backend,
    ) -> None:
        self.config = config or TerminalConfig()
        self._backend_factory = backend_factory
        self._sessions: dict[str, TerminalSession] = {}
        self._exit_watchers: list[Subscription] = []
        self._unreported_exits: dict[str, None] = {}
        self._geometry = GeometrySynchronizer()

    # ------------------------------------------------------------------ #
    # Create / list / get                                                  #
    # ------------------------------------------------------------------ #

    async def create(
        self,
        project_id: str,
        working_directory: str,
        cols: int | None = None,
        rows: int | None = None,
    ) -> str:
        """Spawn a shell for a project and return the new session id."""
        cwd = Path(working_directory).expanduser()
        if not cwd.is_dir():
            raise SpawnError(f"Working directory is not accessible: {working_directory}")
        if not os.access(cwd, os.X_OK):
            raise SpawnError(f"Permission denied for working directory: {working_directory}")

        session_id = str(uuid.uuid4())
        session = TerminalSession(
            session_id=session_id,
            project_id=project_id,
            cwd=str(cwd),
            loop=asyncio.get_running_loop(),
            on_finished=self._on_session_finished,
        )
        command = self.config.resolve_shell()
        try:
            await session.start(
                self._backend_factory,
                command,
                args=self.config.shell_args(),
                env=self._build_env(project_id),
                cols=cols or self.config.default_cols,
                rows=rows or self.config.default_rows,
                chunk_size=self.config.read_chunk_size,
                read_timeout_s=self.config.read_timeout_s,
            )
        except SpawnError as exc:
            logger.warning(f"[registry] spawn failed for project {project_id}: {exc}")
            raise

        self._sessions[session_id] = session
        logger.info(f"[registry] Terminal {session_id[:8]} started for project {project_id} in {cwd}")
        return session_id

    def _build_env(self, project_id: str) -> dict[str, str]:
        env = dict(os.environ)
        env["TERM"] = self.config.term
        env["COLORTERM"] = self.config.colorterm
        if self.config.task_list_env:
            env[self.config.task_list_env] = project_id
        env.update(self.config.env)
        return env

    def list_sessions(self, project_id: str | None = None) -> list[SessionDescriptor]:
        """Return descriptors, optionally filtered by project."""
        snapshot = [
            session.descriptor()
            for session in self._sessions.values()
            if project_id is None or session.project_id == project_id
        ]
        for descriptor in snapshot:
            if not descriptor.is_running:
                self._retire(descriptor.session_id)
        return snapshot

    def get(self, session_id: str) -> TerminalSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise UnknownSession(session_id)
        return session

    def is_running(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        return session is not None and session.is_running

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    # ------------------------------------------------------------------ #
    # I/O                                                                  #
    # ------------------------------------------------------------------ #

    async def write(self, session_id: str, data: bytes | str) -> None:
        """Forward raw input bytes; raises UnknownSession or TerminalIOError."""
        payload = data.encode("utf-8") if isinstance(data, str) else data
        await self.get(session_id).write(payload)

    def resize(self, session_id: str, cols: int, rows: int) -> None:
        """Request a new size; only the latest request per loop turn is applied."""
        self._geometry.request(self.get(session_id), cols, rows)

    async def close(self, session_id: str) -> None:
        """Terminate a session and release its pty. Idempotent."""
        session = self._sessions.pop(session_id, None)
        self._unreported_exits.pop(session_id, None)
        if session is None:
            logger.debug(f"[registry] close ignored for unknown terminal {session_id[:8]}")
            return
        await session.close()

    async def shutdown(self) -> None:
        """Close every session, e.g. on application exit."""
        session_ids = list(self._sessions)
        if session_ids:
            logger.info(f"[registry] Closing {len(session_ids)} terminal(s)")
        await asyncio.gather(*(self.close(session_id) for session_id in session_ids))

    # ------------------------------------------------------------------ #
    # Attachment                                                           #
    # ------------------------------------------------------------------ #

    def attach(self, session_id: str, on_chunk: OnChunk | None, on_exit: OnExit | None = None) -> Subscription:
        """Subscribe a consumer to a running session's output."""
        return self.get(session_id).attach(on_chunk, on_exit)

    def detach(self, subscription: Subscription) -> None:
        subscription.cancel()

    def subscribe_exits(self, on_exit: OnExit) -> Subscription:
        """Get notified about every session exit, attached or not."""
        sub = Subscription(None, None, on_exit, self._exit_watchers.remove)
        self._exit_watchers.append(sub)
        return sub

    # ------------------------------------------------------------------ #
    # Private helpers                                                      #
    # ------------------------------------------------------------------ #

    def _on_session_finished(self, session: TerminalSession, event: SessionExit) -> None:
        if event.state is SessionState.CLOSED:
            self._retire(session.session_id)
        elif session.session_id in self._sessions:
            self._hold_exited(session.session_id)
        for watcher in list(self._exit_watchers):
            try:
                watcher.deliver_exit(event, final=False)
            except Exception:
                logger.exception("[registry] exit watcher failed")

    def _hold_exited(self, session_id: str) -> None:
        self._unreported_exits[session_id] = None
        while len(self._unreported_exits) > self.config.max_unreported_exits:
            oldest = next(iter(self._unreported_exits))
            logger.debug(f"[registry] Terminal {oldest[:8]} retired before any listing reported it")
            self._retire(oldest)

    def _retire(self, session_id: str) -> None:
        self._unreported_exits.pop(session_id, None)
        if self._sessions.pop(session_id, None) is not None:
            logger.debug(f"[registry] Terminal {session_id[:8]} retired")
