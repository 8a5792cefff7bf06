"""Derived student views: per-course status, overall status and progress.

Everything here is pure. Status is never stored; it is read off the grades
list. The progress summary and the CGPA mean are recomputed from the full
courses and grades lists on every write instead of being patched.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Optional, Sequence

PASSED = "passed"
ONGOING = "ongoing"
STATUSES = (PASSED, ONGOING)

GRADE_COURSE_KEYS = ("course_id", "course", "courseId")


def grade_course_id(grade: Any) -> Optional[str]:
    """Return the course id a grade record refers to, as a string.

    Grade records are ``{"course_id": ..., "cgpa": ...}``; older documents may
    hold a bare id or use the ``course`` / ``courseId`` keys.
    """

    if grade is None:
        return None
    if isinstance(grade, dict):
        for key in GRADE_COURSE_KEYS:
            value = grade.get(key)
            if value:
                return str(value)
        return None
    return str(grade)


def derive_status(grades: Optional[Iterable[Any]], course_id: Any) -> str:
    """``passed`` iff some grade record refers to ``course_id``."""

    target = str(course_id)
    for grade in grades or ():
        if grade_course_id(grade) == target:
            return PASSED
    return ONGOING


def derive_overall_status(grades: Optional[Sequence[Any]]) -> str:
    return PASSED if grades else ONGOING


def compute_progress_summary(
    courses: Optional[Sequence[Any]],
    grades: Optional[Sequence[Any]],
    credit_lookup: Callable[[str], Optional[float]],
) -> Dict[str, float]:
    """Recompute the progress counters from scratch.

    ``credit_lookup`` maps a course id string to its credits; ``None`` (a
    course that no longer exists) counts as zero.
    """

    courses = courses or []
    grades = grades or []

    completed_credits = 0
    for grade in grades:
        course_id = grade_course_id(grade)
        credits = credit_lookup(course_id) if course_id else None
        completed_credits += credits or 0

    return {
        "completedCourses": len(grades),
        "ongoingCourses": max(0, len(courses) - len(grades)),
        "completedCredits": completed_credits,
    }


def mean_cgpa(grades: Optional[Sequence[Any]]) -> Optional[float]:
    """Arithmetic mean of the grade cgpa values, None without grades."""

    if not grades:
        return None
    total = 0.0
    for grade in grades:
        value = grade.get("cgpa") if isinstance(grade, dict) else None
        total += float(value or 0)
    return total / len(grades)


def replace_grade(grades: Optional[Sequence[Any]], course_id: Any, cgpa: float) -> list:
    """Drop any grade for ``course_id`` and append the new one."""

    target = str(course_id)
    kept = [grade for grade in grades or () if grade_course_id(grade) != target]
    kept.append({"course_id": course_id, "cgpa": cgpa})
    return kept


def student_matches_status(student: Dict[str, Any], status: str) -> bool:
    """List filter used by the students endpoint."""

    grades = student.get("grades") or []
    courses = student.get("courses") or []
    if status == PASSED:
        return len(grades) > 0
    if status == ONGOING:
        return len(courses) > 0 and len(grades) < len(courses)
    return True


__all__ = [
    "PASSED",
    "ONGOING",
    "STATUSES",
    "GRADE_COURSE_KEYS",
    "grade_course_id",
    "derive_status",
    "derive_overall_status",
    "compute_progress_summary",
    "mean_cgpa",
    "replace_grade",
    "student_matches_status",
]
