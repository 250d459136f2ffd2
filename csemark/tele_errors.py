"""Errors reported back to Telegram users."""

from __future__ import annotations


class ArgCountMismatchError(Exception):
    """A command received the wrong number of arguments."""

    def __init__(self, needed: int, actual: int) -> None:
        self.needed = needed
        self.actual = actual
        super().__init__(f"Arg count mismatch: needed {needed}, got {actual}")


class ArgValueMismatchError(Exception):
    """A command argument has an invalid value."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Arg value mismatch: {message}")


class UnauthorizedError(Exception):
    """The user may not perform the requested action."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Unauthorized action: {message}")