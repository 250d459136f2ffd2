"""Chat context, argument parsing and reply helpers for the Telegram bot."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .tele_errors import ArgCountMismatchError

_log = logging.getLogger(__name__)

MODE_HTML = "html"
NO_PREVIEW = "no_preview"
REMOVE_KEYBOARD = "remove_keyboard"

_FALSE_WORDS = frozenset({"0", "false", "f", "off", "no", "n"})


@dataclass(frozen=True)
class Chat:
    """The chat an update came from."""

    id: int
    username: str = ""


@dataclass
class Context:
    """One incoming message and the replies sent to it.

    ``payload`` is the text following the command word, if any. Replies are
    recorded in ``sent`` as ``(message, options)`` pairs; transports override
    :meth:`send` to deliver them.
    """

    chat: Chat
    text: str = ""
    payload: str = ""
    callback: bool = False
    sent: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    responded: bool = False

    @property
    def args(self) -> list[str]:
        return self.payload.strip(" ").split()

    def send(self, message: str, *args: Any) -> Any:
        self.sent.append((message, args))
        return None

    def _respond(self) -> None:
        self.responded = True


Handler = Callable[[Context], Any]


def args_to_str(ctx: Context) -> str:
    """Return the single argument of the command."""
    args = ctx.args
    if len(args) != 1:
        raise ArgCountMismatchError(1, len(args))
    return args[0]


def args_to_str_str(ctx: Context) -> tuple[str, str]:
    """Return the two arguments of the command."""
    args = ctx.args
    if len(args) != 2:
        raise ArgCountMismatchError(2, len(args))
    return args[0], args[1]


def args_to_str_dbool(ctx: Context, default: bool) -> tuple[str, bool]:
    """Return a name and an optional flag, which is false only for words like ``no``."""
    args = ctx.args
    if len(args) == 1:
        return args[0], default
    if len(args) == 2:
        return args[0], args[1] not in _FALSE_WORDS
    raise ArgCountMismatchError(2, len(args))


def send(ctx: Context, message: str, *args: Any) -> Any:
    """Send an HTML message without link previews."""
    if not args or args[0] is None:
        return ctx.send(message, MODE_HTML, NO_PREVIEW)
    return ctx.send(message, *args, MODE_HTML, NO_PREVIEW)


def sendf(ctx: Context, template: str, *args: Any) -> Any:
    return send(ctx, template % args)


def send_pre(ctx: Context, message: str, *args: Any) -> Any:
    return send(ctx, "<pre>" + message + "</pre>", *args)


def send_error_msg(ctx: Context, message: str) -> Any:
    return send(ctx, message)


def send_error(ctx: Context, error: BaseException) -> Any:
    return send_error_msg(ctx, str(error))


def send_error_argument_value_mismatch(ctx: Context, message: str) -> Any:
    return send_error_msg(ctx, f"Argument number mismatch: {message}")


def send_error_argument_count_mismatch(ctx: Context, needed: int, actual: int) -> Any:
    return send_error_msg(
        ctx, f"Argument number mismatch: needed {needed}, actual {actual}"
    )


def send_error_middleware(handler: Handler) -> Handler:
    """Reply with the error text when the handler raises."""

    @functools.wraps(handler)
    def wrapper(ctx: Context) -> Any:
        try:
            handler(ctx)
        except Exception as err:
            _log.debug("Chat middleware error reply: %s", err)
            return ctx.send(f"Error: {err}", REMOVE_KEYBOARD)
        return None

    return wrapper