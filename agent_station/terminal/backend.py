"""PTY backends for running interactive shells."""

from __future__ import annotations

import os
import signal
import subprocess
from typing import Optional, Protocol, Sequence

from loguru import logger

from agent_station.terminal.errors import SpawnError


class PTYBackend(Protocol):
    """Minimal PTY backend contract.

    ``read`` is only ever called from the session's reader thread, which is
    also the thread that calls ``close``. ``write`` runs on the writer thread
    and ``resize``/``terminate`` on the event loop thread.
    """

    pid: int | None

    def read(self) -> bytes:
        """Read one output chunk, ``b""`` when nothing arrived before the poll timeout.

        Raises EOFError once the child side of the terminal is gone.
        """

    def write(self, data: bytes) -> None:
        """Write raw input bytes."""

    def resize(self, cols: int, rows: int) -> None:
        """Apply terminal size."""

    def terminate(self) -> None:
        """Ask the child to exit without releasing the terminal."""

    def close(self) -> None:
        """Kill the child if needed and release the terminal."""

    def exit_status(self) -> int | None:
        """Exit code, negative signal number, or None if unknown."""


class UnixPexpectBackend:
    """PTY backend for Unix-like systems via pexpect."""

    def __init__(
        self,
        command: str,
        args: Sequence[str] = (),
        cols: int = 80,
        rows: int = 24,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        chunk_size: int = 4096,
        read_timeout_s: float = 0.1,
    ) -> None:
        import pexpect

        self._pexpect = pexpect
        self._chunk_size = chunk_size
        self._read_timeout_s = read_timeout_s
        try:
            self._proc = pexpect.spawn(
                command,
                args=list(args),
                cwd=cwd,
                env=env,
                dimensions=(rows, cols),
            )
            self._proc.delaybeforesend = None
        except (OSError, pexpect.ExceptionPexpect) as exc:
            raise SpawnError(f"Failed to spawn command: {exc}") from exc
        self.pid: int | None = self._proc.pid

    def read(self) -> bytes:
        try:
            return self._proc.read_nonblocking(size=self._chunk_size, timeout=self._read_timeout_s)
        except self._pexpect.TIMEOUT:
            return b""
        except self._pexpect.EOF as exc:
            raise EOFError("pty closed") from exc
        except (OSError, ValueError) as exc:
            raise EOFError(f"pty read failed: {exc}") from exc

    def write(self, data: bytes) -> None:
        self._proc.send(data)

    def resize(self, cols: int, rows: int) -> None:
        try:
            self._proc.setwinsize(rows, cols)
        except ValueError as exc:
            raise OSError(str(exc)) from exc

    def terminate(self) -> None:
        if self.pid is None or self._proc.closed:
            return
        try:
            os.kill(self.pid, signal.SIGHUP)
        except ProcessLookupError:
            pass

    def close(self) -> None:
        if not self._proc.closed:
            self._proc.close(force=True)

    def exit_status(self) -> int | None:
        if self._proc.exitstatus is not None:
            return self._proc.exitstatus
        if self._proc.signalstatus is not None:
            return -self._proc.signalstatus
        return None


class WinptyBackend:
    """PTY backend for Windows via pywinpty."""

    def __init__(
        self,
        command: str,
        args: Sequence[str] = (),
        cols: int = 80,
        rows: int = 24,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        chunk_size: int = 4096,
        read_timeout_s: float = 0.1,
    ) -> None:
        from winpty import Backend, PtyProcess

        del read_timeout_s
        self._chunk_size = chunk_size
        launch_attempts = (
            {"backend": Backend.ConPTY},
            {"backend": Backend.WinPTY},
            {},
        )

        self._proc = None
        last_error: Optional[Exception] = None
        for extra in launch_attempts:
            try:
                self._proc = PtyProcess.spawn(
                    [command, *args],
                    dimensions=(rows, cols),
                    env=env,
                    cwd=cwd,
                    **extra,
                )
                break
            except Exception as exc:  # pragma: no cover - platform specific
                last_error = exc

        if self._proc is None:
            raise SpawnError(f"Failed to start PTY backend: {last_error}") from last_error
        self.pid: int | None = getattr(self._proc, "pid", None)

    def read(self) -> bytes:
        try:
            text = self._proc.read(self._chunk_size)
        except EOFError:
            raise
        except OSError as exc:
            raise EOFError(f"pty read failed: {exc}") from exc
        return text.encode("utf-8", errors="replace")

    def write(self, data: bytes) -> None:
        self._proc.write(data.decode("utf-8", errors="replace"))

    def resize(self, cols: int, rows: int) -> None:
        self._proc.setwinsize(rows, cols)

    def terminate(self) -> None:
        try:
            self._proc.terminate(force=True)
        except OSError as exc:
            logger.debug(f"[pty] terminate failed for pid={self.pid}: {exc}")

    def close(self) -> None:
        try:
            self._proc.close(force=True)
        except OSError as exc:
            logger.debug(f"[pty] close failed for pid={self.pid}: {exc}")
        # Kill the entire process tree so child processes don't linger.
        if self.pid is not None:
            try:
                subprocess.run(
                    ["taskkill", "/F", "/T", "/PID", str(self.pid)],
                    capture_output=True,
                    timeout=3,
                )
            except (OSError, subprocess.SubprocessError) as exc:
                logger.debug(f"[pty] taskkill failed for pid={self.pid}: {exc}")

    def exit_status(self) -> int | None:
        return getattr(self._proc, "exitstatus", None)


def build_backend(
    command: str,
    args: Sequence[str] = (),
    cols: int = 80,
    rows: int = 24,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    chunk_size: int = 4096,
    read_timeout_s: float = 0.1,
) -> PTYBackend:
    """Build the PTY backend for the current platform."""
    kwargs = dict(
        args=args,
        cols=cols,
        rows=rows,
        cwd=cwd,
        env=env,
        chunk_size=chunk_size,
        read_timeout_s=read_timeout_s,
    )
    if os.name == "nt":
        backend: PTYBackend = WinptyBackend(command, **kwargs)
        logger.info(f"[pty] Using WinptyBackend for: {command[:60]}")
        return backend
    backend = UnixPexpectBackend(command, **kwargs)
    logger.info(f"[pty] Using UnixPexpectBackend for: {command[:60]} (pid={backend.pid})")
    return backend
