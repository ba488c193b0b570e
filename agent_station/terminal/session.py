"""One shell process on a pseudo-terminal, with its output broadcast."""

from __future__ import annotations

import asyncio
import functools
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

from loguru import logger

from agent_station.terminal.backend import PTYBackend
from agent_station.terminal.errors import ResizeIgnored, SpawnError, TerminalIOError, UnknownSession
from agent_station.terminal.events import (
    OnChunk,
    OnExit,
    OutputChunk,
    SessionDescriptor,
    SessionExit,
    SessionState,
    Subscription,
)
from agent_station.terminal.geometry import Geometry

BackendFactory = Callable[..., PTYBackend]
OnFinished = Callable[["TerminalSession", SessionExit], None]


class TerminalSession:
    """Manage one PTY-backed shell session.

    Threads: a reader thread owns blocking reads and the final release of the
    terminal; a single-worker executor serialises writes. Everything else,
    including delivery to subscribers, happens on the event loop thread.
    """

    def __init__(
        self,
        session_id: str,
        project_id: str,
        cwd: str,
        loop: asyncio.AbstractEventLoop,
        on_finished: OnFinished | None = None,
    ) -> None:
        self.session_id = session_id
        self.project_id = project_id
        self.cwd = cwd
        self.state = SessionState.STARTING
        self.geometry: Geometry | None = None
        self.exit_status: int | None = None

        self._loop = loop
        self._on_finished = on_finished
        self._backend: PTYBackend | None = None
        self._subscribers: list[Subscription] = []
        self._stop = threading.Event()
        self._reader_thread: threading.Thread | None = None
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"pty-writer-{session_id[:8]}")
        self._released: asyncio.Future[None] = loop.create_future()

    @property
    def is_running(self) -> bool:
        """Return True while the shell process is alive and not closed."""
        return self.state is SessionState.RUNNING

    @property
    def pid(self) -> int | None:
        return self._backend.pid if self._backend is not None else None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def descriptor(self) -> SessionDescriptor:
        return SessionDescriptor(self.session_id, self.project_id, self.is_running)

    # ------------------------------------------------------------------ #
    # Lifecycle                                                            #
    # ------------------------------------------------------------------ #

    async def start(
        self,
        factory: BackendFactory,
        command: str,
        args: Sequence[str] = (),
        env: dict[str, str] | None = None,
        cols: int = 80,
        rows: int = 24,
        chunk_size: int = 4096,
        read_timeout_s: float = 0.1,
    ) -> None:
        """Spawn the shell and start the reader thread."""
        if self.state is not SessionState.STARTING:
            raise RuntimeError(f"Terminal {self.session_id} already started")

        spawn = functools.partial(
            factory,
            command,
            args=args,
            cols=cols,
            rows=rows,
            cwd=self.cwd,
            env=env,
            chunk_size=chunk_size,
            read_timeout_s=read_timeout_s,
        )
        future = self._loop.run_in_executor(None, spawn)
        try:
            backend = await asyncio.shield(future)
        except SpawnError:
            self._writer.shutdown(wait=False)
            raise
        except OSError as exc:
            self._writer.shutdown(wait=False)
            raise SpawnError(f"Failed to spawn command: {exc}") from exc
        except BaseException:
            # The spawn keeps running in the executor; whatever it produces has no owner.
            self.state = SessionState.CLOSED
            self._writer.shutdown(wait=False)
            future.add_done_callback(self._release_abandoned)
            raise

        self._backend = backend
        self.geometry = Geometry(cols, rows)
        self.state = SessionState.RUNNING
        self._reader_thread = threading.Thread(
            target=self._read_loop,
            daemon=True,
            name=f"pty-reader-{self.session_id[:8]}",
        )
        self._reader_thread.start()

    def _release_abandoned(self, future: asyncio.Future[PTYBackend]) -> None:
        if future.cancelled() or future.exception() is not None:
            return
        backend = future.result()
        logger.info(f"[pty] Releasing terminal {self.session_id[:8]} spawned after cancellation (pid={backend.pid})")
        self._loop.run_in_executor(None, self._close_backend, backend)

    def _close_backend(self, backend: PTYBackend) -> None:
        try:
            backend.close()
        except Exception as exc:
            logger.warning(f"[pty] Failed to release terminal {self.session_id[:8]}: {exc}")

    async def close(self) -> None:
        """Terminate the shell and wait until the terminal is released."""
        self._finish(SessionState.CLOSED)
        if self._reader_thread is not None:
            await asyncio.shield(self._released)

    def _finish(self, state: SessionState, exit_status: int | None = None) -> bool:
        if self.state.is_final:
            return False
        previous = self.state
        self.state = state
        self._stop.set()
        self._writer.shutdown(wait=False)
        if state is SessionState.CLOSED and previous is SessionState.RUNNING and self._backend is not None:
            self._backend.terminate()

        logger.info(f"[pty] Terminal {self.session_id[:8]} {state.value} (status={exit_status})")
        event = SessionExit(self.session_id, state, exit_status)
        subscribers, self._subscribers = self._subscribers, []
        for sub in subscribers:
            try:
                sub.deliver_exit(event)
            except Exception:
                logger.exception(f"[pty] exit consumer failed for {self.session_id[:8]}")
        if self._on_finished is not None:
            self._on_finished(self, event)
        return True

    # ------------------------------------------------------------------ #
    # Reader thread                                                        #
    # ------------------------------------------------------------------ #

    def _read_loop(self) -> None:
        backend = self._backend
        if backend is None:
            return
        try:
            while not self._stop.is_set():
                try:
                    data = backend.read()
                except EOFError:
                    break
                if data:
                    self._call_on_loop(self._dispatch_chunk, data)
        except Exception:
            logger.exception(f"[pty] reader failed for {self.session_id[:8]}")
        finally:
            self._close_backend(backend)
            self._call_on_loop(self._reader_finished, backend.exit_status())

    def _call_on_loop(self, fn: Callable[..., None], *args: object) -> None:
        try:
            self._loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            logger.debug(f"[pty] event loop closed, dropping callback for {self.session_id[:8]}")

    def _dispatch_chunk(self, data: bytes) -> None:
        if self.state is not SessionState.RUNNING:
            return
        chunk = OutputChunk(self.session_id, data)
        for sub in list(self._subscribers):
            try:
                sub.deliver_chunk(chunk)
            except Exception:
                logger.exception(f"[pty] output consumer failed for {self.session_id[:8]}")

    def _reader_finished(self, exit_status: int | None) -> None:
        self.exit_status = exit_status
        self._finish(SessionState.EXITED, exit_status)
        if not self._released.done():
            self._released.set_result(None)

    # ------------------------------------------------------------------ #
    # Input / geometry / subscriptions                                     #
    # ------------------------------------------------------------------ #

    async def write(self, data: bytes) -> None:
        """Forward raw bytes to the terminal input, in call order."""
        self._check_writable()
        try:
            await self._loop.run_in_executor(self._writer, self._write_blocking, data)
        except TerminalIOError:
            self._finish(SessionState.EXITED)
            raise

    def _check_writable(self) -> None:
        if self.state is SessionState.CLOSED:
            raise UnknownSession(self.session_id)
        if self.state is not SessionState.RUNNING:
            raise TerminalIOError(f"Terminal {self.session_id} is not running")

    def _write_blocking(self, data: bytes) -> None:
        self._check_writable()
        backend = self._backend
        if backend is None:
            raise TerminalIOError(f"Terminal {self.session_id} has no pty")
        try:
            backend.write(data)
        except OSError as exc:
            raise TerminalIOError(f"Failed to write to terminal: {exc}") from exc

    def apply_geometry(self, geometry: Geometry) -> bool:
        """Resize the pty. Returns False when the size is already current."""
        if self.state is not SessionState.RUNNING or self._backend is None:
            raise ResizeIgnored(f"terminal {self.state.value}")
        if geometry == self.geometry:
            return False
        try:
            self._backend.resize(geometry.cols, geometry.rows)
        except OSError as exc:
            raise ResizeIgnored(str(exc)) from exc
        self.geometry = geometry
        logger.debug(f"[pty] Terminal {self.session_id[:8]} resized to {geometry.cols}x{geometry.rows}")
        return True

    def attach(self, on_chunk: OnChunk | None, on_exit: OnExit | None = None) -> Subscription:
        """Deliver output produced from now on to a new consumer."""
        if self.state is not SessionState.RUNNING:
            raise UnknownSession(self.session_id)
        sub = Subscription(self.session_id, on_chunk, on_exit, self._remove_subscriber)
        self._subscribers.append(sub)
        return sub

    def _remove_subscriber(self, sub: Subscription) -> None:
        try:
            self._subscribers.remove(sub)
        except ValueError:
            pass
