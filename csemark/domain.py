"""Domain models, repository interfaces and validation rules."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from .config import Config

_log = logging.getLogger(__name__)

_COURSE_ID = re.compile(r"[a-zA-Z][a-zA-Z0-9-]+")
_TELEGRAM_USERNAME = re.compile(r"[a-zA-Z][a-zA-Z0-9_]{3,31}")
_STUDENT_ID = re.compile(r"[a-zA-Z0-9]+")


class CourseNotFoundError(LookupError):
    """No course matched the query."""

    def __init__(self, message: str = "no courses in result") -> None:
        super().__init__(message)


class MarkNotFoundError(LookupError):
    """No mark record matched the query."""

    def __init__(self, message: str = "no marks in result") -> None:
        super().__init__(message)


class UserNotFoundError(LookupError):
    """No user matched the query."""

    def __init__(self, message: str = "no users in result") -> None:
        super().__init__(message)


@dataclass
class Course:
    """A course whose marks are loaded from a published CSV link."""

    id: str
    link: str = ""
    by_tele_id: int = 0
    by_tele_user: str = ""
    updated_at: int = 0
    record_cnt: int = 0

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "course": self.id,
            "link": self.link,
            "by_id": self.by_tele_id,
            "updated_at": self.updated_at,
            "record_cnt": self.record_cnt,
        }
        if self.by_tele_user:
            document["by_user"] = self.by_tele_user
        return document

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Course:
        return cls(
            id=str(document.get("course", "")),
            link=str(document.get("link", "")),
            by_tele_id=int(document.get("by_id", 0)),
            by_tele_user=str(document.get("by_user", "")),
            updated_at=int(document.get("updated_at", 0)),
            record_cnt=int(document.get("record_cnt", 0)),
        )


@dataclass
class User:
    """A Telegram user and whether they may manage courses."""

    user_id: str
    is_teacher: bool = False
    granted_by: str = ""

    def to_document(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "is_teacher": self.is_teacher,
            "granted_by": self.granted_by,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> User:
        return cls(
            user_id=str(document.get("user_id", "")),
            is_teacher=bool(document.get("is_teacher", False)),
            granted_by=str(document.get("granted_by", "")),
        )


class CourseRepository(Protocol):
    """Storage of course settings."""

    def find_courses_updated_after(self, since: datetime) -> list[Course]:
        """Return courses with a link that were updated after ``since``."""

    def update_course_record_count(self, course_id: str, count: int) -> None:
        """Store the number of mark records loaded for a course."""

    def find_courses_managed_by_user(self, username: str) -> list[Course]:
        """Return the courses created by the given Telegram username."""

    def find_course_by_id(self, course_id: str) -> Course:
        """Return one course; raise CourseNotFoundError when absent."""

    def update_course_link(
        self, course_id: str, link: str, user_id: int, username: str
    ) -> None:
        """Set the mark link of a course, creating the course if needed."""

    def remove_course(self, course_id: str) -> None:
        """Delete a course."""


class Downloader(Protocol):
    """Fetches CSV documents."""

    def download_csv(self, url: str) -> list[list[str]]:
        """Download ``url`` and return its CSV rows."""


class MarkRepository(Protocol):
    """Storage of per-student mark records."""

    def get_mark(self, course_id: str, student_id: str) -> str:
        """Return a student's record as indented JSON; raise MarkNotFoundError when absent."""

    def remove_marks_by_course_id(self, course_id: str) -> None:
        """Drop all marks of a course."""

    def add_course_marks(self, course_id: str, marks: list[dict[str, str]]) -> None:
        """Upsert mark records of a course."""

    def remove_course_marks(self, course_id: str) -> None:
        """Drop all marks of a course."""


class UserRepository(Protocol):
    """Storage of users."""

    def update_user(self, username: str, is_teacher: bool, granted_by: str) -> None:
        """Create or update a user."""

    def find_user_by_id(self, username: str) -> User:
        """Return a user; raise UserNotFoundError when absent."""


class CourseRules:
    """Business rules about courses."""

    def __init__(
        self, course_active_age: timedelta, admin_ids: Iterable[int] = ()
    ) -> None:
        self.course_active_age = course_active_age
        self._admin_ids = tuple(admin_ids)

    @classmethod
    def from_config(cls, config: Config) -> CourseRules:
        return cls(config.course_active_age, config.tele_admin_chat_ids)

    def is_course_active(self, course: Course, now: datetime | None = None) -> bool:
        """Whether the course was updated within the active age."""
        current = now if now is not None else datetime.now(timezone.utc)
        updated = datetime.fromtimestamp(course.updated_at, timezone.utc)
        return current - updated < self.course_active_age

    def is_valid_course_id(self, course_id: str) -> bool:
        return _COURSE_ID.fullmatch(course_id) is not None

    def course_update_till(self, course: Course) -> datetime:
        """The moment until which the course stays active, in local time."""
        updated = datetime.fromtimestamp(course.updated_at, timezone.utc)
        return (updated + self.course_active_age).astimezone()

    def can_user_edit_course(self, course: Course, user: str, chat_id: int) -> bool:
        """Admins may edit any course; others only the courses they own."""
        if chat_id in self._admin_ids:
            _log.debug(
                "Admin can modify course: user=%s chat_id=%d admins=%s",
                user,
                chat_id,
                list(self._admin_ids),
            )
            return True
        return course.by_tele_user == user or course.by_tele_id == chat_id


def is_valid_telegram_username(user: str) -> bool:
    return _TELEGRAM_USERNAME.fullmatch(user) is not None


def is_valid_student_id(student_id: str) -> bool:
    return _STUDENT_ID.fullmatch(student_id) is not None