"""Runtime configuration, environment loading and logging setup."""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

_log = logging.getLogger(__name__)

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass(frozen=True)
class Config:
    """Settings shared by the API, the fetcher and the Telegram bot."""

    mongo_host: str
    mongo_port: str
    db_transaction_timeout: timedelta
    db_mark: str
    db_settings: str
    db_settings_users: str
    db_settings_courses: str
    course_active_age: timedelta
    downloader_timeout: timedelta
    tele_token: str
    tele_admin_chat_ids: tuple[int, ...]
    api_token: str
    api_port: str


def _env(environ: Mapping[str, str], key: str, default: str) -> str:
    return environ.get(key) or default


def _env_int_list(
    environ: Mapping[str, str], key: str, default: tuple[int, ...]
) -> tuple[int, ...]:
    """Read a JSON array of 64-bit integers; fall back to the default when it is not one."""
    try:
        value = json.loads(environ.get(key, ""))
    except ValueError:
        return default
    if value is None:
        return ()
    if not isinstance(value, list):
        return default
    if not all(
        isinstance(item, int)
        and not isinstance(item, bool)
        and _INT64_MIN <= item <= _INT64_MAX
        for item in value
    ):
        return default
    return tuple(value)


def load_config(environ: Mapping[str, str] | None = None) -> Config:
    """Build the configuration from the environment (``os.environ`` by default)."""
    env = os.environ if environ is None else environ
    return Config(
        mongo_host=_env(env, "MONGO_HOST", "localhost"),
        mongo_port=_env(env, "MONGO_PORT", "27017"),
        db_transaction_timeout=timedelta(seconds=30),
        db_mark=_env(env, "DB_MARK", "mark-cse"),
        db_settings=_env(env, "DB_SETTINGS", "mark-settings"),
        db_settings_users=_env(env, "DB_SETTINGS_USERS", "users"),
        db_settings_courses=_env(env, "DB_SETTINGS_COURSES", "courses"),
        course_active_age=timedelta(hours=9 * 30 * 24),  # nine months
        downloader_timeout=timedelta(seconds=30),
        tele_token=_env(env, "TOKEN", ""),
        tele_admin_chat_ids=_env_int_list(env, "ADMINS", ()),
        api_token=_env(env, "API_TOKEN", ""),
        api_port=_env(env, "API_PORT", "8080"),
    )


def init_dotenv(path: str | os.PathLike[str] = ".env") -> None:
    """Load variables from a dotenv file without overriding existing ones.

    Raises FileNotFoundError when the file does not exist.
    """
    env_file = Path(path)
    if not env_file.is_file():
        _log.warning(".env file not found, using system environment variables")
        raise FileNotFoundError(f"{env_file}: no such file")
    load_dotenv(env_file, override=False)


def init_logging() -> None:
    """Send log records to standard error with Unix timestamps."""
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG,
        format="%(created)d %(levelname)s %(name)s: %(message)s",
        force=True,
    )