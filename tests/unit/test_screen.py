"""Unit tests for the pyte screen wrapper and key encoding."""

from __future__ import annotations

import pytest

from agent_station.gui.screen import TerminalScreen, key_to_bytes


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        (dict(keysym="a", char="a"), b"a"),
        (dict(keysym="Return", char="\r"), b"\r"),
        (dict(keysym="BackSpace", char="\x08"), b"\x7f"),
        (dict(keysym="Up"), b"\x1b[A"),
        (dict(keysym="c", char="\x03", ctrl=True), b"\x03"),
        (dict(keysym="D", char="\x04", ctrl=True), b"\x04"),
        (dict(keysym="space", char=" ", ctrl=True), b"\x00"),
        (dict(keysym="b", char="b", alt=True), b"\x1bb"),
        (dict(keysym="eacute", char="é"), "é".encode("utf-8")),
        (dict(keysym="Shift_L"), b""),
    ],
)
def test_key_to_bytes(kwargs, expected):
    assert key_to_bytes(**kwargs) == expected


def test_feed_renders_text_and_cursor():
    screen = TerminalScreen(cols=20, rows=4)

    screen.feed(b"$ echo hi\r\nhi\r\n$ ")

    assert screen.snapshot() == "$ echo hi\nhi\n$"
    assert screen.cursor() == (2, 2)


def test_escape_sequences_are_interpreted():
    screen = TerminalScreen(cols=20, rows=3)

    screen.feed(b"\x1b[31mred\x1b[0m\r\nxx\x1b[2K\rok")

    assert screen.snapshot() == "red\nok"


def test_scrolled_lines_are_kept_in_history():
    screen = TerminalScreen(cols=10, rows=2)

    screen.feed(b"one\r\ntwo\r\nthree\r\nfour")

    assert screen.snapshot().splitlines() == ["one", "two", "three", "four"]


def test_exit_banner_and_resize():
    screen = TerminalScreen(cols=40, rows=5)
    screen.write_exit_banner()
    screen.resize(60, 10)

    assert "[Process exited]" in screen.snapshot()
    assert screen.size == (60, 10)
