"""Curses front end for crmterm."""
from __future__ import annotations

import curses
import logging
from contextlib import contextmanager
from typing import NamedTuple

from . import theme

logger = logging.getLogger(__name__)

SUBMIT = "submit"
ESCAPE = "escape"
QUIT = "quit"
RESIZE = "resize"

ENTER_KEYS = (curses.KEY_ENTER, 10, 13)
BACKSPACE_KEYS = (curses.KEY_BACKSPACE, 127, 8)
ESC = 27
CTRL_C = 3
CTRL_U = 21


class LineResult(NamedTuple):
    action: str
    text: str


@contextmanager
def temp_cursor(state: int):
    """Temporarily set cursor visibility and restore on exit."""

    prev = None
    try:
        prev = curses.curs_set(state)
    except curses.error:  # pragma: no cover - some terminals
        prev = None
    try:
        yield
    finally:
        if prev is not None:
            try:
                curses.curs_set(prev)
            except curses.error:  # pragma: no cover - cleanup best effort
                pass


@contextmanager
def keypad_mode(win):
    """Enable keypad mode and ensure it is disabled afterwards."""

    try:
        win.keypad(True)
    except curses.error:  # pragma: no cover - fake windows
        pass
    try:
        yield
    finally:
        try:
            win.keypad(False)
        except curses.error:  # pragma: no cover - fake windows
            pass


def init_colors() -> bool:
    """Register one colour pair per theme role; False when colour is unavailable."""
    try:
        if not curses.has_colors():
            return False
        curses.use_default_colors()
        for role in theme.role_names():
            curses.init_pair(
                theme.pair_number(role), theme.color_for(role, curses.COLORS), -1
            )
    except curses.error:  # pragma: no cover - terminals without color
        logger.info("colour support unavailable, drawing monochrome")
        return False
    return True


def attr_for(role: str, colored: bool) -> int:
    attr = theme.text_attrs(role or theme.DEFAULT_ROLE)
    if colored:
        attr |= curses.color_pair(theme.pair_number(role or theme.DEFAULT_ROLE))
    return attr


def draw(win, lines, colored: bool = False) -> None:
    """Paint rendered ``(role, text)`` lines, leaving the bottom rows free."""
    win.erase()
    h, w = win.getmaxyx()
    visible = lines[: max(0, h - 2)]
    for row, (role, text) in enumerate(visible):
        if not text:
            continue
        try:
            win.addnstr(row, 1, text, max(0, w - 2), attr_for(role, colored))
        except curses.error:
            pass
    try:
        win.noutrefresh()
    except curses.error:  # pragma: no cover - fake windows
        pass


def _keycode(ch) -> int:
    if isinstance(ch, str):
        return ord(ch) if len(ch) == 1 else -1
    return ch


def _draw_input(win, y, x, width, text, placeholder, colored) -> None:
    try:
        win.move(y, x)
        win.clrtoeol()
        shown = text[-width:] if width > 0 else ""
        if shown:
            win.addnstr(y, x, shown, width, attr_for("primary", colored))
        elif placeholder:
            win.addnstr(y, x, placeholder, width, attr_for("faint", colored))
        win.move(y, x + len(shown))
        win.refresh()
    except curses.error:
        pass


def read_line(
    win,
    y: int,
    x: int,
    width: int,
    initial: str = "",
    limit: int = 64,
    placeholder: str = "",
    colored: bool = False,
) -> LineResult:
    """Edit a single line of text in place.

    Enter submits the buffer, Esc abandons it and Ctrl+C asks to quit. The
    buffer starts as ``initial`` and never grows past ``limit`` characters.
    """
    buf = list(initial[:limit])
    while True:
        _draw_input(win, y, x, width, "".join(buf), placeholder, colored)
        ch = win.get_wch()
        code = _keycode(ch)
        if code in ENTER_KEYS:
            return LineResult(SUBMIT, "".join(buf))
        if code == ESC:
            return LineResult(ESCAPE, "".join(buf))
        if code == CTRL_C:
            return LineResult(QUIT, "".join(buf))
        if code == curses.KEY_RESIZE:
            return LineResult(RESIZE, "".join(buf))
        if code in BACKSPACE_KEYS:
            if buf:
                buf.pop()
        elif code == CTRL_U:
            buf.clear()
        elif isinstance(ch, str) and ch.isprintable() and len(buf) < limit:
            buf.append(ch)


def main(stdscr, session) -> None:
    """Draw the active screen and feed keyboard input to ``session``."""
    colored = init_colors()
    carry = None
    with temp_cursor(1), keypad_mode(stdscr):
        while session.running:
            prompt = session.prompt()
            draw(stdscr, session.render(), colored)
            h, w = stdscr.getmaxyx()
            label = prompt.label or "> "
            try:
                stdscr.addnstr(h - 1, 0, label, max(0, w - 1), attr_for("accent", colored))
            except curses.error:
                pass
            x = min(len(label), max(0, w - 1))
            initial = prompt.value if carry is None else carry
            carry = None
            try:
                result = read_line(
                    stdscr,
                    h - 1,
                    x,
                    max(1, w - x - 1),
                    initial,
                    prompt.limit,
                    prompt.placeholder,
                    colored,
                )
            except KeyboardInterrupt:
                session.quit()
                break
            if result.action == QUIT:
                session.quit()
            elif result.action == ESCAPE:
                session.escape()
            elif result.action == RESIZE:
                carry = result.text
            else:
                session.submit(result.text)
