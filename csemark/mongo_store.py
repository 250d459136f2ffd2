"""MongoDB-backed repositories for courses, marks and users."""

from __future__ import annotations

import json
import logging
import threading
import time
from datetime import datetime
from typing import Any

import pymongo
from pymongo import UpdateOne
from pymongo.errors import PyMongoError

from .config import Config
from .domain import (
    Course,
    CourseNotFoundError,
    MarkNotFoundError,
    User,
    UserNotFoundError,
)

_log = logging.getLogger(__name__)

_HTML_ESCAPES = {"<": "\\u003c", ">": "\\u003e", "&": "\\u0026"}


class MongoClient:
    """A connected MongoDB client with the transaction timeout of the config."""

    def __init__(self, config: Config, client: Any = None) -> None:
        self.timeout = config.db_transaction_timeout.total_seconds()
        try:
            if client is None:
                uri = f"mongodb://{config.mongo_host}:{config.mongo_port}"
                client = pymongo.MongoClient(uri, timeoutMS=int(self.timeout * 1000))
            with pymongo.timeout(self.timeout):
                client.admin.command("ping")
        except PyMongoError:
            _log.critical("mongo connection failed", exc_info=True)
            raise
        self._client = client
        _log.info("MongoDB connection established")

    def database(self, name: str) -> Any:
        return self._client[name]

    def disconnect(self) -> None:
        self._client.close()

    def __enter__(self) -> MongoClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()


class CourseRepo:
    """Course settings stored in one collection of the settings database."""

    def __init__(self, client: MongoClient, config: Config) -> None:
        self._collection = client.database(config.db_settings)[
            config.db_settings_courses
        ]
        self._timeout = client.timeout

    def _find(self, query: dict[str, Any]) -> list[Course]:
        with pymongo.timeout(self._timeout):
            return [Course.from_document(doc) for doc in self._collection.find(query)]

    def find_courses_updated_after(self, since: datetime) -> list[Course]:
        query = {
            "$and": [
                {"updated_at": {"$gt": int(since.timestamp())}},
                {"link": {"$ne": ""}},
            ]
        }
        return self._find(query)

    def update_course_record_count(self, course_id: str, count: int) -> None:
        with pymongo.timeout(self._timeout):
            self._collection.update_one(
                {"_id": course_id}, {"$set": {"record_cnt": count}}
            )

    def find_courses_managed_by_user(self, username: str) -> list[Course]:
        return self._find({"by_user": username})

    def find_course_by_id(self, course_id: str) -> Course:
        with pymongo.timeout(self._timeout):
            document = self._collection.find_one({"_id": course_id})
        if document is None:
            raise CourseNotFoundError()
        return Course.from_document(document)

    def update_course_link(
        self, course_id: str, link: str, user_id: int, username: str
    ) -> None:
        update = {
            "$set": {"link": link, "updated_at": int(time.time())},
            "$setOnInsert": {
                "_id": course_id,
                "course": course_id,
                "by_id": user_id,
                "by_user": username,
            },
        }
        with pymongo.timeout(self._timeout):
            self._collection.update_one({"_id": course_id}, update, upsert=True)

    def remove_course(self, course_id: str) -> None:
        with pymongo.timeout(self._timeout):
            self._collection.delete_one({"_id": course_id})


class MarkRepo:
    """Mark records stored in one collection per course."""

    def __init__(self, client: MongoClient, config: Config) -> None:
        self._db = client.database(config.db_mark)
        self._timeout = client.timeout
        self._lock = threading.Lock()

    def get_mark(self, course_id: str, student_id: str) -> str:
        """Return the student's record as JSON indented by one space."""
        with pymongo.timeout(self._timeout):
            document = self._db[course_id].find_one({"_id": student_id})
        if document is None:
            raise MarkNotFoundError()
        text = json.dumps(
            document, indent=1, sort_keys=True, ensure_ascii=False, default=str
        )
        for char, escaped in _HTML_ESCAPES.items():
            text = text.replace(char, escaped)
        return text

    def _drop(self, course_id: str) -> None:
        with self._lock, pymongo.timeout(self._timeout):
            try:
                self._db[course_id].drop()
            except PyMongoError:
                _log.error("ClearCourse failed for course %s", course_id, exc_info=True)
                raise

    def remove_marks_by_course_id(self, course_id: str) -> None:
        self._drop(course_id)

    def add_course_marks(self, course_id: str, marks: list[dict[str, str]]) -> None:
        """Upsert each record by ``_id``, falling back to its ``id`` field."""
        if not marks:
            raise ValueError("must provide at least one element in input slice")
        requests = []
        for mark in marks:
            document = dict(mark)
            if not document.get("_id"):
                document["_id"] = document.get("id", "")
            requests.append(
                UpdateOne({"_id": document["_id"]}, {"$set": document}, upsert=True)
            )

        with self._lock, pymongo.timeout(self._timeout):
            try:
                result = self._db[course_id].bulk_write(requests, ordered=False)
            except PyMongoError:
                _log.error("Bulk write error for course %s", course_id, exc_info=True)
                raise
        _log.info("Store marks for course %s: %s", course_id, result)

    def remove_course_marks(self, course_id: str) -> None:
        self._drop(course_id)


class UserRepo:
    """Users stored in one collection of the settings database."""

    def __init__(self, client: MongoClient, config: Config) -> None:
        self._collection = client.database(config.db_settings)[
            config.db_settings_users
        ]
        self._timeout = client.timeout

    def update_user(self, username: str, is_teacher: bool, granted_by: str) -> None:
        user = User(user_id=username, is_teacher=is_teacher, granted_by=granted_by)
        with pymongo.timeout(self._timeout):
            self._collection.update_one(
                {"_id": user.user_id}, {"$set": user.to_document()}, upsert=True
            )

    def find_user_by_id(self, username: str) -> User:
        with pymongo.timeout(self._timeout):
            document = self._collection.find_one({"_id": username})
        if document is None:
            raise UserNotFoundError()
        return User.from_document(document)