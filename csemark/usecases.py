"""Application services: course queries, authorisation, mark import and sync."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from .domain import (
    Course,
    CourseNotFoundError,
    CourseRepository,
    CourseRules,
    Downloader,
    MarkRepository,
    UserRepository,
)

_log = logging.getLogger(__name__)

_ROUND_PAUSE_SECONDS = 10 * 60


class ActiveCourseService:
    """Lists the courses that are still within their active age."""

    def __init__(self, course_repo: CourseRepository, rules: CourseRules) -> None:
        self.course_repo = course_repo
        self.rules = rules

    def list_active_courses(self, now: datetime | None = None) -> list[Course]:
        current = now if now is not None else datetime.now(timezone.utc)
        threshold = current - self.rules.course_active_age
        return self.course_repo.find_courses_updated_after(threshold)


class AuthzService:
    """Decides who may edit courses and who is a teacher."""

    def __init__(
        self, course_repo: CourseRepository, user_repo: UserRepository
    ) -> None:
        self._course_repo = course_repo
        self._user_repo = user_repo

    def can_edit_course(self, username: str, tele_id: int, course_id: str) -> bool:
        """A missing course may be claimed by anyone; otherwise only its owner."""
        try:
            course = self._course_repo.find_course_by_id(course_id)
        except CourseNotFoundError:
            return True

        if username and course.by_tele_user == username:
            return True
        if tele_id and course.by_tele_id == tele_id:
            return True
        return False

    def is_teacher(self, username: str) -> bool:
        """Raise UserNotFoundError when the user is unknown."""
        return self._user_repo.find_user_by_id(username).is_teacher


class MarkImportService:
    """Downloads a marks sheet and stores it for a course."""

    def __init__(
        self,
        downloader: Downloader,
        course_repo: CourseRepository,
        mark_repo: MarkRepository,
    ) -> None:
        self._downloader = downloader
        self._course_repo = course_repo
        self._mark_repo = mark_repo

    def clean_raw_csv_records(self, records: list[list[str]]) -> list[dict[str, str]]:
        """Keep the flagged columns of each data row.

        The first row holds flags and the second the headers. A column with an
        empty flag is dropped; the column flagged ``id`` is stored under both
        ``_id`` and ``id``; any other flagged column is stored under its header.
        """
        if len(records) < 2:
            raise ValueError("invalid csv structure")

        flags, headers, data = records[0], records[1], records[2:]
        if not flags:
            return []

        cleaned: list[dict[str, str]] = []
        for row in data:
            item: dict[str, str] = {}
            for index, flag in enumerate(flags):
                if not flag:
                    continue
                if flag == "id":
                    item["_id"] = row[index]
                    item[flag] = row[index]
                else:
                    item[headers[index]] = row[index]
            cleaned.append(item)
        return cleaned

    def fetch_mark_link_into_course(self, course_id: str, link: str) -> int:
        """Replace the marks of a course with those at ``link``; return the count."""
        _log.info("Fetching new marks: course=%s link=%s", course_id, link)

        records = self._downloader.download_csv(link)
        cleaned = self.clean_raw_csv_records(records)
        _log.debug(
            "Record fetched: course=%s flags=%s headers=%s",
            course_id,
            records[0],
            records[1],
        )
        _log.debug("Cleaned data: %s", cleaned)

        _log.debug("Clearing old course marks")
        self._mark_repo.remove_marks_by_course_id(course_id)

        _log.debug("Storing new course marks")
        self._mark_repo.add_course_marks(course_id, cleaned)

        count = len(cleaned)
        try:
            self._course_repo.update_course_record_count(course_id, count)
        except Exception:
            _log.warning(
                "Could not update record count of course %s", course_id, exc_info=True
            )

        _log.info(
            "Fetched new marks: course=%s link=%s records=%d", course_id, link, count
        )
        return count


class MarkSyncService:
    """Periodically re-imports the marks of every active course."""

    def __init__(
        self,
        course_query_service: ActiveCourseService,
        downloader: Downloader,
        mark_import_service: MarkImportService,
        fetching_interval: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.course_query_service = course_query_service
        self.downloader = downloader
        self.mark_import_service = mark_import_service
        self.fetching_interval = fetching_interval
        self._sleep = sleep

    def fetch_new_marks(self) -> None:
        """Import every active course once, pausing between courses."""
        _log.info("Fetching new marks for all classes")
        try:
            courses = self.course_query_service.list_active_courses()
        except Exception:
            _log.error("Fetching active courses error", exc_info=True)
            return

        for course in courses:
            try:
                self.mark_import_service.fetch_mark_link_into_course(
                    course.id, course.link
                )
            except Exception:
                _log.error("Fetching marks of course %s failed", course.id, exc_info=True)
            self._sleep(self.fetching_interval)

    def run(self) -> None:
        """Sync forever, pausing ten minutes between rounds."""
        while True:
            self.fetch_new_marks()
            _log.info("Sleeping for 10 minutes...")
            self._sleep(_ROUND_PAUSE_SECONDS)