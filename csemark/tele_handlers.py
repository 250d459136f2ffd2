"""Telegram command handlers for guests, teachers and admins."""

from __future__ import annotations

import logging
import re
from typing import Any

from .domain import (
    CourseRepository,
    CourseRules,
    MarkRepository,
    UserRepository,
    is_valid_student_id,
    is_valid_telegram_username,
)
from .tele_errors import ArgCountMismatchError, ArgValueMismatchError, UnauthorizedError
from .tele_helpers import (
    Context,
    Handler,
    args_to_str,
    args_to_str_dbool,
    args_to_str_str,
    send_error_argument_value_mismatch,
    send_pre,
    sendf,
)
from .tele_views import TeacherRenderer
from .usecases import AuthzService, MarkImportService

_log = logging.getLogger(__name__)

_SCHEME = re.compile(r"[a-zA-Z][a-zA-Z0-9+.-]*:")
_CONTROL = re.compile(r"[\x00-\x1f\x7f]")


def _check_request_uri(link: str) -> None:
    """Accept an absolute URI or an absolute path, as a request line would."""
    if not link:
        raise ValueError('parse "": empty url')
    if _CONTROL.search(link):
        raise ValueError(f'parse "{link}": invalid control character in URL')
    if link == "*" or link.startswith("/") or _SCHEME.match(link):
        return
    raise ValueError(f'parse "{link}": invalid URI for request')


class AdminHandler:
    """Commands for bot administrators."""

    def __init__(self, user_repo: UserRepository) -> None:
        self._user_repo = user_repo

    def set_teacher(self, ctx: Context) -> Any:
        """``/teacher <name> [flag]``: grant or revoke the teacher role."""
        name, grant = args_to_str_dbool(ctx, True)
        if not is_valid_telegram_username(name):
            return send_error_argument_value_mismatch(ctx, "name incorrect")

        self._user_repo.update_user(name, grant, ctx.chat.username)
        if grant:
            return sendf(ctx, "Set %s as teacher", name)
        return sendf(ctx, "Remove %s from teacher", name)


class GuestHandler:
    """Commands open to everyone."""

    def __init__(self, course_rules: CourseRules, mark_repo: MarkRepository) -> None:
        self._course_rules = course_rules
        self._mark_repo = mark_repo

    def start(self, ctx: Context) -> Any:
        return sendf(ctx, "Hello @%s (%d)", ctx.chat.username, ctx.chat.id)

    def get_mark(self, ctx: Context) -> Any:
        """``/mark <course> <student>`` or a plain ``<course> <student>`` message."""
        try:
            course_id, student_id = args_to_str_str(ctx)
        except ArgCountMismatchError:
            parts = ctx.text.split(" ")
            if len(parts) != 2:
                raise
            course_id, student_id = parts

        if not self._course_rules.is_valid_course_id(course_id):
            raise ArgValueMismatchError("course invalid")
        if not is_valid_student_id(student_id):
            return send_error_argument_value_mismatch(ctx, "studentId incorrect")

        _log.info(
            "Get mark: chat_id=%d chat_name=%s course=%s student=%s",
            ctx.chat.id,
            ctx.chat.username,
            course_id,
            student_id,
        )
        message = self._mark_repo.get_mark(course_id, student_id)
        return send_pre(ctx, message)


class TeacherHandler:
    """Commands for teachers managing their courses."""

    def __init__(
        self,
        course_repo: CourseRepository,
        course_rules: CourseRules,
        teacher_renderer: TeacherRenderer,
        authz_service: AuthzService,
        mark_repo: MarkRepository,
        mark_import_service: MarkImportService,
    ) -> None:
        self._course_repo = course_repo
        self._course_rules = course_rules
        self._renderer = teacher_renderer
        self._authz = authz_service
        self._mark_repo = mark_repo
        self._mark_import = mark_import_service

    def _ensure_can_edit(self, ctx: Context, course_id: str) -> None:
        try:
            granted = self._authz.can_edit_course(
                ctx.chat.username, ctx.chat.id, course_id
            )
        except Exception:
            granted = False
        if not granted:
            raise UnauthorizedError("cannot modify courseId")

    def get_my_profile(self, ctx: Context) -> Any:
        username = ctx.chat.username
        _log.info("Get teacher profile: chat_username=%s", username)
        courses = self._course_repo.find_courses_managed_by_user(username)
        return send_pre(ctx, self._renderer.render_teacher_profile(courses))

    def load_course_link(self, ctx: Context) -> Any:
        """``/load <course> <link>``: set the marks link and import it now."""
        course_id, link = args_to_str_str(ctx)
        if not self._course_rules.is_valid_course_id(course_id):
            raise ArgValueMismatchError("courseId invalid")
        _check_request_uri(link)
        self._ensure_can_edit(ctx, course_id)

        _log.info(
            "Admin store marks: chat_id=%d chat_username=%s course=%s link=%s",
            ctx.chat.id,
            ctx.chat.username,
            course_id,
            link,
        )
        self._course_repo.update_course_link(
            course_id, link, ctx.chat.id, ctx.chat.username
        )
        count = self._mark_import.fetch_mark_link_into_course(course_id, link)
        return sendf(ctx, "%s: Store %d records.", course_id, count)

    def clear_course_link(self, ctx: Context) -> Any:
        """``/clear <course>``: drop the marks and the course entry."""
        course_id = args_to_str(ctx)
        if not self._course_rules.is_valid_course_id(course_id):
            raise ArgValueMismatchError("course invalid")
        self._ensure_can_edit(ctx, course_id)

        _log.info(
            "Clear marks: course=%s chat_username=%s chat_id=%d",
            course_id,
            ctx.chat.username,
            ctx.chat.id,
        )
        self._mark_repo.remove_course_marks(course_id)
        try:
            self._course_repo.remove_course(course_id)
        except Exception:
            _log.warning("Could not remove course %s", course_id, exc_info=True)
        return sendf(ctx, "%s: cleared", course_id)


class TeacherOnly:
    """Lets a handler run only for users known to the user repository."""

    def __init__(self, authz_service: AuthzService) -> None:
        self._authz = authz_service

    def handle(self, handler: Handler) -> Handler:
        def wrapper(ctx: Context) -> Any:
            try:
                try:
                    self._authz.is_teacher(ctx.chat.username)
                except Exception:
                    raise UnauthorizedError("you are not a teacher") from None
                return handler(ctx)
            finally:
                if ctx.callback:
                    ctx._respond()

        return wrapper