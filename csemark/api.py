"""HTTP API serving student marks."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from typing import Any

from flask import Flask, Response, jsonify, request
from pymongo.errors import PyMongoError

from .config import init_dotenv, init_logging, load_config
from .domain import MarkRepository
from .mongo_store import MarkRepo, MongoClient

_log = logging.getLogger(__name__)


def _error(status: int, message: str) -> tuple[Response, int]:
    return jsonify({"error": message}), status


def create_app(mark_repo: MarkRepository, token: str) -> Flask:
    """Build the application with its single ``GET /mark`` route."""
    app = Flask(__name__)

    @app.get("/mark")
    def get_mark() -> Any:
        if request.args.get("token", "") != token:
            return _error(401, "unauthorized")

        course_id = request.args.get("course", "")
        student_id = request.args.get("student", "")
        if not course_id or not student_id:
            return _error(400, "bad request")

        try:
            marks = mark_repo.get_mark(course_id, student_id)
        except Exception:
            return _error(400, "bad request")

        return Response(marks, status=200, mimetype="text/plain")

    return app


class ApiService:
    """Serves the HTTP application on every network interface."""

    def __init__(self, app: Any, port: str) -> None:
        self.app = app
        self.port = str(port)

    def start(self) -> None:
        _log.info("HTTP service started on port %s", self.port)
        try:
            self.app.run(host="0.0.0.0", port=int(self.port))
        except (OSError, ValueError):
            _log.critical("Failed to start HTTP service", exc_info=True)
            raise


def main(argv: Sequence[str] | None = None) -> int:
    argparse.ArgumentParser(description="Serve student marks over HTTP.").parse_args(
        argv
    )
    init_logging()
    try:
        init_dotenv()
    except FileNotFoundError:
        pass

    config = load_config()
    try:
        client = MongoClient(config)
    except PyMongoError:
        _log.critical("Failed to initialize application", exc_info=True)
        return 1

    try:
        app = create_app(MarkRepo(client, config), config.api_token)
        ApiService(app, config.api_port).start()
    finally:
        client.disconnect()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())