from datetime import datetime, timedelta, timezone

import pytest

from csemark.config import load_config
from csemark.domain import (
    Course,
    CourseNotFoundError,
    CourseRules,
    MarkNotFoundError,
    User,
    UserNotFoundError,
    is_valid_student_id,
    is_valid_telegram_username,
)

AGE = timedelta(hours=9 * 30 * 24)


@pytest.fixture
def rules():
    return CourseRules(AGE, admin_ids=[100])


def test_course_document_round_trip():
    course = Course("CO1005", "https://example.com/a.csv", 42, "teacher", 1700000000, 12)
    assert Course.from_document(course.to_document()) == course


def test_course_document_keys():
    doc = Course("CO1005", "l", 42, "teacher", 5, 6).to_document()
    assert doc == {
        "course": "CO1005",
        "link": "l",
        "by_id": 42,
        "by_user": "teacher",
        "updated_at": 5,
        "record_cnt": 6,
    }


def test_course_document_omits_empty_user():
    doc = Course("CO1005").to_document()
    assert "by_user" not in doc


def test_course_from_document_ignores_id_and_defaults():
    course = Course.from_document({"_id": "X1", "course": "X1"})
    assert course == Course("X1")


def test_user_document_round_trip():
    user = User("teacher", True, "admin")
    assert user.to_document() == {
        "user_id": "teacher",
        "is_teacher": True,
        "granted_by": "admin",
    }
    assert User.from_document(user.to_document()) == user


@pytest.mark.parametrize(
    "course_id, valid",
    [
        ("CO1005", True),
        ("co-2023", True),
        ("ab", True),
        ("a", False),
        ("1abc", False),
        ("ab_c", False),
        ("ab\n", False),
        ("", False),
    ],
)
def test_is_valid_course_id(rules, course_id, valid):
    assert rules.is_valid_course_id(course_id) is valid


@pytest.mark.parametrize(
    "name, valid",
    [
        ("abcd", True),
        ("user_name", True),
        ("abc", False),
        ("a" + "b" * 31, True),
        ("a" + "b" * 32, False),
        ("_abc", False),
        ("9abc", False),
    ],
)
def test_is_valid_telegram_username(name, valid):
    assert is_valid_telegram_username(name) is valid


@pytest.mark.parametrize(
    "student_id, valid",
    [("2012345", True), ("abc123", True), ("", False), ("ab-1", False), ("12 3", False)],
)
def test_is_valid_student_id(student_id, valid):
    assert is_valid_student_id(student_id) is valid


def test_is_course_active_boundary(rules):
    course = Course("CO1005", updated_at=1_000_000)
    updated = datetime.fromtimestamp(1_000_000, timezone.utc)
    assert rules.is_course_active(course, updated + AGE - timedelta(seconds=1))
    assert not rules.is_course_active(course, updated + AGE)


def test_recent_course_is_active_now(rules):
    now = int(datetime.now(timezone.utc).timestamp())
    assert rules.is_course_active(Course("CO1005", updated_at=now))
    assert not rules.is_course_active(Course("CO1005", updated_at=0))


def test_course_update_till(rules):
    course = Course("CO1005", updated_at=1_000_000)
    till = rules.course_update_till(course)
    assert till - datetime.fromtimestamp(1_000_000, timezone.utc) == AGE
    assert till.tzinfo is not None


def test_admin_can_edit_any_course(rules):
    assert rules.can_user_edit_course(Course("CO1005", by_tele_user="other"), "me", 100)


def test_owner_by_username_can_edit(rules):
    assert rules.can_user_edit_course(Course("CO1005", by_tele_user="me"), "me", 5)


def test_owner_by_chat_id_can_edit(rules):
    assert rules.can_user_edit_course(Course("CO1005", by_tele_id=5), "me", 5)


def test_stranger_cannot_edit(rules):
    course = Course("CO1005", by_tele_id=6, by_tele_user="other")
    assert not rules.can_user_edit_course(course, "me", 5)


def test_rules_from_config():
    rules = CourseRules.from_config(load_config({"ADMINS": "[7]"}))
    assert rules.course_active_age == AGE
    assert rules.can_user_edit_course(Course("CO1005", by_tele_user="x"), "y", 7)


def test_not_found_messages():
    assert str(CourseNotFoundError()) == "no courses in result"
    assert str(MarkNotFoundError()) == "no marks in result"
    assert str(UserNotFoundError()) == "no users in result"