"""Telegram bot: Bot API client, update routing and the bot command."""

from __future__ import annotations

import argparse
import logging
import re
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import requests
from pymongo.errors import PyMongoError

from .config import init_dotenv, init_logging, load_config
from .domain import CourseRules
from .downloader import SimpleDownloader
from .mongo_store import CourseRepo, MarkRepo, MongoClient, UserRepo
from .tele_handlers import AdminHandler, GuestHandler, TeacherHandler, TeacherOnly
from .tele_helpers import (
    MODE_HTML,
    NO_PREVIEW,
    Chat,
    Context,
    Handler,
    send_error_middleware,
)
from .tele_views import TeacherRenderer
from .usecases import AuthzService, MarkImportService

_log = logging.getLogger(__name__)

_API_ROOT = "https://api.telegram.org"
_COMMAND = re.compile(r"^(/\w+)(@(\w+))?(\s|$)(.+)?")

POLL_TIMEOUT_SECONDS = 10

COMMANDS: tuple[tuple[str, str], ...] = (
    ("mark", "/mark <course> <student_id> - Get mark of course"),
    ("load", "/load <course> <link> - For teacher, load course marks from link"),
    ("clear", "/clear - Clear query history. For teacher, clear course link"),
    ("my", "/my - Your profile"),
)


class BotApi:
    """A minimal client of the Telegram Bot HTTP API."""

    def __init__(self, token: str, session: Any = None, root: str = _API_ROOT) -> None:
        self._base = f"{root}/bot{token}"
        self._session = session if session is not None else requests.Session()

    def _call(self, method: str, payload: dict[str, Any], timeout: float = 30.0) -> Any:
        response = self._session.post(
            f"{self._base}/{method}", json=payload, timeout=timeout
        )
        body = response.json()
        if not body.get("ok"):
            raise RuntimeError(
                f"telegram: {body.get('description', 'request failed')} "
                f"({body.get('error_code', 0)})"
            )
        return body.get("result")

    def get_me(self) -> dict[str, Any]:
        return self._call("getMe", {})

    def get_updates(self, offset: int, timeout: int) -> list[dict[str, Any]]:
        """Long-poll for updates with ids not below ``offset``."""
        payload = {"offset": offset, "timeout": timeout}
        return list(self._call("getUpdates", payload, timeout=timeout + 10) or [])

    def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: str | None = None,
        disable_preview: bool = False,
    ) -> Any:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if disable_preview:
            payload["disable_web_page_preview"] = True
        return self._call("sendMessage", payload)

    def set_my_commands(self, commands: Iterable[tuple[str, str]]) -> Any:
        payload = {
            "commands": [
                {"command": command, "description": description}
                for command, description in commands
            ]
        }
        return self._call("setMyCommands", payload)


@dataclass
class UpdateContext(Context):
    """A context whose replies are delivered through the Bot API."""

    bot: Any = None
    sender_id: int = 0

    def send(self, message: str, *args: Any) -> Any:
        super().send(message, *args)
        if self.bot is None:
            return None
        parse_mode = "HTML" if MODE_HTML in args else None
        return self.bot.send_message(
            self.chat.id, message, parse_mode, NO_PREVIEW in args
        )


def parse_command(text: str) -> tuple[str, str, str] | None:
    """Split ``/cmd@bot payload`` into command, bot name and payload."""
    match = _COMMAND.match(text)
    if match is None:
        return None
    return match.group(1), match.group(3) or "", match.group(5) or ""


def whitelist(chat_ids: Iterable[int]) -> Callable[[Handler], Handler]:
    """Run the handler only for the listed chats; ignore everyone else."""
    allowed = frozenset(chat_ids)

    def decorate(handler: Handler) -> Handler:
        def wrapper(ctx: Context) -> Any:
            sender = getattr(ctx, "sender_id", ctx.chat.id)
            if ctx.chat.id in allowed or sender in allowed:
                return handler(ctx)
            return None

        return wrapper

    return decorate


class TeleService:
    """Routes Telegram updates to the guest, teacher and admin handlers."""

    def __init__(
        self,
        api: Any,
        guest_handler: Any,
        teacher_handler: Any,
        admin_handler: Any,
        teacher_only: Any,
        admin_chat_ids: Iterable[int] = (),
        username: str = "",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._api = api
        self.username = username
        self._sleep = sleep
        api.set_my_commands(COMMANDS)

        def guest(handler: Handler) -> Handler:
            return send_error_middleware(handler)

        def teacher(handler: Handler) -> Handler:
            return send_error_middleware(teacher_only.handle(handler))

        admin_only = whitelist(admin_chat_ids)

        def admin(handler: Handler) -> Handler:
            return send_error_middleware(admin_only(handler))

        self._routes: dict[str, Handler] = {
            "/start": guest(guest_handler.start),
            "/mark": guest(guest_handler.get_mark),
            "/my": teacher(teacher_handler.get_my_profile),
            "/load": teacher(teacher_handler.load_course_link),
            "/clear": teacher(teacher_handler.clear_course_link),
            "/teacher": admin(admin_handler.set_teacher),
        }
        self._on_text = guest(guest_handler.get_mark)

    def _dispatch(self, handler: Handler, ctx: UpdateContext) -> bool:
        try:
            handler(ctx)
        except Exception:
            _log.error("Handling update failed", exc_info=True)
        return True

    def handle_update(self, update: dict[str, Any]) -> bool:
        """Run the handler an update calls for; return whether one ran."""
        message = update.get("message")
        if not message or not message.get("text"):
            return False

        text = message["text"]
        chat_data = message.get("chat", {})
        chat = Chat(id=int(chat_data.get("id", 0)), username=chat_data.get("username", ""))
        sender_id = int(message.get("from", {}).get("id", chat.id))
        ctx = UpdateContext(chat=chat, text=text, bot=self._api, sender_id=sender_id)

        parsed = parse_command(text)
        if parsed is not None:
            command, bot_name, payload = parsed
            if bot_name and bot_name.lower() != self.username.lower():
                return False
            ctx.payload = payload
            handler = self._routes.get(command)
            if handler is not None:
                return self._dispatch(handler, ctx)

        handler = self._routes.get(text)
        if handler is not None:
            return self._dispatch(handler, ctx)
        return self._dispatch(self._on_text, ctx)

    def run(self) -> None:
        """Long-poll for updates and handle them, forever."""
        _log.info("Starting telegram bot")
        offset = 0
        while True:
            try:
                updates = self._api.get_updates(offset, POLL_TIMEOUT_SECONDS)
            except (requests.RequestException, RuntimeError, ValueError):
                _log.error("Polling updates failed", exc_info=True)
                self._sleep(1)
                continue
            for update in updates:
                offset = max(offset, int(update["update_id"]) + 1)
                self.handle_update(update)


def main(argv: Sequence[str] | None = None) -> int:
    argparse.ArgumentParser(description="Run the marks Telegram bot.").parse_args(argv)
    init_logging()
    try:
        init_dotenv()
    except FileNotFoundError:
        pass
    _log.info("Initialization completed successfully")

    config = load_config()
    try:
        client = MongoClient(config)
    except PyMongoError:
        _log.critical("Failed to initialize application", exc_info=True)
        return 1

    try:
        course_repo = CourseRepo(client, config)
        mark_repo = MarkRepo(client, config)
        user_repo = UserRepo(client, config)
        downloader = SimpleDownloader.from_config(config)
        rules = CourseRules.from_config(config)
        mark_import = MarkImportService(downloader, course_repo, mark_repo)
        authz = AuthzService(course_repo, user_repo)

        api = BotApi(config.tele_token)
        try:
            username = api.get_me().get("username", "")
            service = TeleService(
                api,
                GuestHandler(rules, mark_repo),
                TeacherHandler(
                    course_repo,
                    rules,
                    TeacherRenderer(rules),
                    authz,
                    mark_repo,
                    mark_import,
                ),
                AdminHandler(user_repo),
                TeacherOnly(authz),
                config.tele_admin_chat_ids,
                username=username,
            )
        except (requests.RequestException, RuntimeError, ValueError):
            _log.critical("Failed to create telegram bot", exc_info=True)
            return 1

        service.run()
    finally:
        client.disconnect()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())