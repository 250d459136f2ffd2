"""Course mark publishing from CSV sheets over a Telegram bot and an HTTP API, backed by MongoDB."""

__version__ = "0.1.0"