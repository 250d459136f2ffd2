"""Background process that keeps the marks of active courses up to date."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence

from pymongo.errors import PyMongoError

from .config import Config, init_dotenv, init_logging, load_config
from .domain import CourseRules, Downloader
from .downloader import SimpleDownloader
from .mongo_store import CourseRepo, MarkRepo, MongoClient
from .usecases import ActiveCourseService, MarkImportService, MarkSyncService

_log = logging.getLogger(__name__)


def build_sync_service(
    config: Config, client: MongoClient, downloader: Downloader | None = None
) -> MarkSyncService:
    """Wire the repositories and services behind the mark sync loop."""
    if downloader is None:
        downloader = SimpleDownloader.from_config(config)
    course_repo = CourseRepo(client, config)
    mark_repo = MarkRepo(client, config)
    rules = CourseRules.from_config(config)
    return MarkSyncService(
        ActiveCourseService(course_repo, rules),
        downloader,
        MarkImportService(downloader, course_repo, mark_repo),
    )


def main(argv: Sequence[str] | None = None) -> int:
    argparse.ArgumentParser(
        description="Periodically import the marks of active courses."
    ).parse_args(argv)
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
        build_sync_service(config, client).run()
    finally:
        client.disconnect()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())