"""Keyboard controls for the focus timer display."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from .timer import FocusTimer

KeyAction = Literal["pause", "resume", "skip", "next", "quit"]

KEY_ACTIONS: dict[str, KeyAction] = {
    "p": "pause",
    "r": "resume",
    "s": "skip",
    "n": "next",
    "q": "quit",
}


def apply_key(timer: FocusTimer, key: str | None) -> KeyAction | None:
    """
    Run the timer transition bound to ``key``.

    ``quit`` is returned without touching the timer; the caller decides how
    to leave the screen.

    Returns:
        The action whose transition took effect, or None
    """
    if key is None:
        return None
    action = KEY_ACTIONS.get(key.lower())
    if action == "pause" and timer.pause():
        return action
    if action == "resume" and timer.resume():
        return action
    if action == "skip" and timer.skip():
        return action
    if action == "next":
        if timer.state == "completed":
            timer.advance()
        if timer.start():
            return action
    if action == "quit":
        return action
    return None


class KeyboardHandler:
    """Non-blocking keyboard input on POSIX terminals."""

    def __init__(self):
        self.fd: int | None = None
        self.old_settings = None
        self._setup()

    def _setup(self) -> None:
        """Put the terminal in cbreak mode when stdin is a tty."""
        import termios
        import tty

        try:
            self.fd = sys.stdin.fileno()
            self.old_settings = termios.tcgetattr(self.fd)
            tty.setcbreak(self.fd)
        except (termios.error, OSError, ValueError):
            # Not a terminal (piped input, test runner)
            self.fd = None
            self.old_settings = None

    def get_key(self) -> str | None:
        """
        Get a single keypress without blocking.

        Returns the key character or None if no key pressed.
        """
        if self.fd is None:
            return None

        import select

        if select.select([sys.stdin], [], [], 0)[0]:
            return sys.stdin.read(1).lower()
        return None

    def stop(self) -> None:
        """Restore terminal settings."""
        if self.old_settings is not None and self.fd is not None:
            import termios

            termios.tcsetattr(self.fd, termios.TCSADRAIN, self.old_settings)
            self.old_settings = None


class WindowsKeyboardHandler:
    """Keyboard handler for Windows using msvcrt."""

    def __init__(self):
        import msvcrt

        self.msvcrt = msvcrt

    def get_key(self) -> str | None:
        if self.msvcrt.kbhit():
            key = self.msvcrt.getch()
            if isinstance(key, bytes):
                key = key.decode("utf-8", errors="ignore")
            return key.lower()
        return None

    def stop(self) -> None:
        """No cleanup needed on Windows."""


def get_keyboard_handler() -> KeyboardHandler | WindowsKeyboardHandler:
    if sys.platform == "win32":
        return WindowsKeyboardHandler()
    return KeyboardHandler()
