"""Per-session terminal emulation and key encoding, without tkinter."""

from __future__ import annotations

import pyte

SCROLLBACK_LINES = 10_000
EXIT_BANNER = "\r\n\x1b[90m[Process exited]\x1b[0m\r\n"

_KEYSYM_SEQUENCES = {
    "Return": b"\r",
    "KP_Enter": b"\r",
    "BackSpace": b"\x7f",
    "Tab": b"\t",
    "ISO_Left_Tab": b"\x1b[Z",
    "Escape": b"\x1b",
    "Up": b"\x1b[A",
    "Down": b"\x1b[B",
    "Right": b"\x1b[C",
    "Left": b"\x1b[D",
    "Home": b"\x1b[H",
    "End": b"\x1b[F",
    "Insert": b"\x1b[2~",
    "Delete": b"\x1b[3~",
    "Prior": b"\x1b[5~",
    "Next": b"\x1b[6~",
    "F1": b"\x1bOP",
    "F2": b"\x1bOQ",
    "F3": b"\x1bOR",
    "F4": b"\x1bOS",
}


def key_to_bytes(keysym: str, char: str = "", ctrl: bool = False, alt: bool = False) -> bytes:
    """Translate one key press into the bytes a terminal would send."""
    sequence = _KEYSYM_SEQUENCES.get(keysym)
    if sequence is not None:
        return b"\x1b" + sequence if alt else sequence
    if ctrl and len(keysym) == 1 and keysym.isalpha():
        return bytes([ord(keysym.lower()) & 0x1F])
    if ctrl and keysym in ("space", "at"):
        return b"\x00"
    if not char:
        return b""
    data = char.encode("utf-8")
    return b"\x1b" + data if alt else data


class TerminalScreen:
    """pyte-backed screen with scrollback for one session."""

    def __init__(self, cols: int = 80, rows: int = 24, history: int = SCROLLBACK_LINES) -> None:
        self._screen = pyte.HistoryScreen(cols, rows, history=history)
        self._screen.set_mode(pyte.modes.LNM)
        self._stream = pyte.ByteStream(self._screen)

    @property
    def size(self) -> tuple[int, int]:
        return self._screen.columns, self._screen.lines

    def feed(self, data: bytes) -> None:
        self._stream.feed(data)

    def write_exit_banner(self) -> None:
        self.feed(EXIT_BANNER.encode("utf-8"))

    def resize(self, cols: int, rows: int) -> None:
        if (cols, rows) != self.size:
            self._screen.resize(lines=rows, columns=cols)

    def snapshot(self) -> str:
        """Return scrollback plus display as plain text, trailing blanks trimmed."""
        screen = self._screen
        history_lines: list[str] = []
        for line in screen.history.top:
            if isinstance(line, dict):
                cols = screen.columns
                history_lines.append(
                    "".join(line[x].data if x in line else " " for x in range(cols)).rstrip()
                )
            else:
                history_lines.append(str(line).rstrip())
        display_lines = [line.rstrip() for line in screen.display]
        lines = history_lines + display_lines
        while lines and not lines[-1]:
            lines.pop()
        return "\n".join(lines)

    def cursor(self) -> tuple[int, int]:
        """Cursor position as (row, col) relative to the visible display."""
        return self._screen.cursor.y, self._screen.cursor.x
