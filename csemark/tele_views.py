"""Text renderings of bot replies."""

from __future__ import annotations

from collections.abc import Iterable

from tabulate import tabulate

from .domain import Course, CourseRules

_HEADERS = ("COURSE", "CNT", "TILL")


class TeacherRenderer:
    """Renders the course list of a teacher as a plain table."""

    def __init__(self, course_rules: CourseRules) -> None:
        self._course_rules = course_rules

    def render_teacher_profile(self, courses: Iterable[Course]) -> str:
        """One row per course: id, record count and active-until as MMYY."""
        rows = [
            (
                course.id,
                str(course.record_cnt),
                self._course_rules.course_update_till(course).strftime("%m%y"),
            )
            for course in courses
        ]
        options = {"colalign": ("left", "right", "left")} if rows else {}
        return tabulate(
            rows,
            headers=_HEADERS,
            tablefmt="simple",
            disable_numparse=True,
            **options,
        )