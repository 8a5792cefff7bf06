"""Enrollment consistency: course rosters, student course lists and grades.

``course.assignee`` is the authoritative side of enrollment and
``student.courses`` mirrors it. Every write here validates its whole input
first, then applies a sequence of independent single-document updates. There
is no transaction around the sequence; a failure part way leaves the earlier
writes in place, and :func:`reconcile_course` re-establishes the mirror for a
course when that happens.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from pymongo import ReturnDocument

from .db import (
    find_by_ids,
    get_courses_collection,
    get_students_collection,
    id_key,
    resolve_object_id,
    timestamp,
    to_jsonable,
    unique_object_ids,
)
from .errors import NotFoundError, ValidationError
from .populate import populate_course, roster_students, student_summary
from .progress import (
    GRADE_COURSE_KEYS,
    compute_progress_summary,
    grade_course_id,
    mean_cgpa,
    replace_grade,
)

logger = logging.getLogger(__name__)

MIN_CGPA = 0.0
MAX_CGPA = 4.0


def _load_course(course_id: Any, projection: Dict[str, int] | None = None):
    course_oid = resolve_object_id(course_id)
    if course_oid is None:
        raise ValidationError("Invalid course identifier")

    course = get_courses_collection().find_one({"_id": course_oid}, projection=projection)
    if course is None:
        raise NotFoundError("Course not found")
    return course


def _course_header(course: Dict[str, Any]) -> Dict[str, Any]:
    return to_jsonable(
        {
            "_id": course["_id"],
            "course_name": course.get("course_name"),
            "course_code": course.get("course_code"),
        }
    )


def load_credit_lookup(grades: Optional[List[Any]]) -> Callable[[str], Optional[float]]:
    """Credits of every course referenced by ``grades``, keyed by id string."""

    courses = find_by_ids(
        get_courses_collection(),
        [grade_course_id(grade) for grade in grades or []],
        projection={"credits": 1},
    )
    credits = {key: doc.get("credits") for key, doc in courses.items()}
    return credits.get


def recompute_progress(student_ids: Iterable[Any]) -> int:
    """Recompute and persist progressSummary for each student; returns the count."""

    students = get_students_collection()
    refreshed = 0
    for student_id in unique_object_ids(student_ids):
        student = students.find_one(
            {"_id": student_id}, projection={"courses": 1, "grades": 1}
        )
        if student is None:
            logger.warning("Skipping progress refresh for missing student %s", student_id)
            continue

        grades = student.get("grades") or []
        summary = compute_progress_summary(
            student.get("courses") or [], grades, load_credit_lookup(grades)
        )
        students.update_one(
            {"_id": student_id},
            {"$set": {"progressSummary": summary, "updatedAt": timestamp()}},
        )
        refreshed += 1
    return refreshed


def _parse_roster(value: Any) -> List[ObjectId]:
    if not isinstance(value, list):
        raise ValidationError("Assignee must be an array of student IDs")
    if not value:
        raise ValidationError("Assignee array cannot be empty")

    roster: List[ObjectId] = []
    seen = set()
    for item in value:
        if not item or not isinstance(item, str):
            raise ValidationError("All assignee items must be valid student ID strings")
        student_oid = resolve_object_id(item)
        if student_oid is None:
            raise ValidationError(f"Invalid student ID: {item}")
        if student_oid not in seen:
            seen.add(student_oid)
            roster.append(student_oid)
    return roster


def assign_roster(course_id: Any, student_ids: Any) -> Dict[str, Any]:
    """Make the course roster exactly ``student_ids`` and mirror it on students.

    Returns the populated course (roster with per-student status, faculty
    members resolved).
    """

    course = _load_course(course_id)
    course_oid = course["_id"]
    new_roster = _parse_roster(student_ids)

    students = get_students_collection()
    found = students.count_documents({"_id": {"$in": new_roster}})
    if found != len(new_roster):
        raise NotFoundError("One or more students not found")

    old_keys = {id_key(value) for value in course.get("assignee") or []}
    new_keys = {id_key(value) for value in new_roster}
    removed = unique_object_ids(
        value for value in course.get("assignee") or [] if id_key(value) not in new_keys
    )
    added = [student_oid for student_oid in new_roster if id_key(student_oid) not in old_keys]

    get_courses_collection().update_one(
        {"_id": course_oid},
        {"$set": {"assignee": new_roster, "updatedAt": timestamp()}},
    )
    if removed:
        students.update_many({"_id": {"$in": removed}}, {"$pull": {"courses": course_oid}})
    if added:
        students.update_many({"_id": {"$in": added}}, {"$addToSet": {"courses": course_oid}})

    recompute_progress(new_roster + removed)

    logger.info(
        "Roster for course %s set to %d student(s): %d added, %d removed",
        course_oid,
        len(new_roster),
        len(added),
        len(removed),
    )

    updated = get_courses_collection().find_one({"_id": course_oid})
    if updated is None:
        raise NotFoundError("Course not found")
    return populate_course(updated)


def course_grade_roster(course_id: Any) -> Dict[str, Any]:
    """The current roster of a course with each student's status for it."""

    course = _load_course(
        course_id, projection={"course_name": 1, "course_code": 1, "assignee": 1}
    )
    return {
        "course": _course_header(course),
        "students": [
            student_summary(student, course["_id"]) for student in roster_students(course)
        ],
    }


def _validate_grade_entries(
    course: Dict[str, Any], entries: Any
) -> List[Tuple[ObjectId, float]]:
    if not isinstance(entries, list) or not entries:
        raise ValidationError("Students array is required and must not be empty")

    enrolled = {id_key(value) for value in course.get("assignee") or []}
    validated: List[Tuple[ObjectId, float]] = []

    for entry in entries:
        if not isinstance(entry, dict):
            raise ValidationError("Each entry must be an object with student_id and cgpa")

        student_id = entry.get("student_id")
        if not student_id or not isinstance(student_id, str):
            raise ValidationError("Each entry must have a valid student_id (string)")

        student_oid = resolve_object_id(student_id)
        if student_oid is None:
            raise ValidationError(f"Invalid student_id: {student_id}")

        if id_key(student_oid) not in enrolled:
            raise ValidationError(f"Student {student_id} is not assigned to this course")

        cgpa = entry.get("cgpa")
        if (
            isinstance(cgpa, bool)
            or not isinstance(cgpa, (int, float))
            or not MIN_CGPA <= cgpa <= MAX_CGPA
        ):
            raise ValidationError(
                f"CGPA must be a number between 0 and 4.0 for student {student_id}"
            )

        validated.append((student_oid, float(cgpa)))

    return validated


def record_grades(course_id: Any, entries: Any) -> Dict[str, Any]:
    """Upsert one course grade per entry and refresh each student's aggregates.

    The whole batch is validated before the first write. Writes then happen
    student by student; a student deleted in between stops the batch with
    :class:`NotFoundError` and earlier entries stay applied.
    """

    course = _load_course(course_id)
    course_oid = course["_id"]
    validated = _validate_grade_entries(course, entries)

    students = get_students_collection()
    updated_students: List[Dict[str, Any]] = []

    for student_oid, cgpa in validated:
        student = students.find_one({"_id": student_oid})
        if student is None:
            logger.warning(
                "Student %s vanished while grading course %s; %d of %d entries applied",
                student_oid,
                course_oid,
                len(updated_students),
                len(validated),
            )
            raise NotFoundError(f"Student {student_oid} not found")

        grades = replace_grade(student.get("grades"), course_oid, cgpa)
        summary = compute_progress_summary(
            student.get("courses") or [], grades, load_credit_lookup(grades)
        )

        saved = students.find_one_and_update(
            {"_id": student_oid},
            {
                "$set": {
                    "grades": grades,
                    "progressSummary": summary,
                    "cgpa_point": mean_cgpa(grades),
                    "updatedAt": timestamp(),
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        if saved is None:
            raise NotFoundError(f"Student {student_oid} not found")

        updated_students.append(
            to_jsonable(
                {
                    "_id": saved["_id"],
                    "first_name": saved.get("first_name"),
                    "last_name": saved.get("last_name"),
                    "email": saved.get("email"),
                    "cgpa_point": saved.get("cgpa_point"),
                    "course_cgpa": cgpa,
                }
            )
        )

    logger.info("Recorded %d grade(s) for course %s", len(updated_students), course_oid)
    return {"course": _course_header(course), "updated_students": updated_students}


def refresh_course_progress(course_id: Any) -> int:
    """Recompute progress for every student graded in a course.

    Run after the course's credits change or the course is deleted, since
    completedCredits depends on them.
    """

    course_oid = resolve_object_id(course_id)
    if course_oid is None:
        return 0
    cursor = get_students_collection().find(
        graded_in_course_filter(course_oid), projection={"_id": 1}
    )
    return recompute_progress(doc["_id"] for doc in cursor)


def graded_in_course_filter(course_oid: ObjectId) -> Dict[str, Any]:
    """Match students holding a grade for the course in any stored grade shape."""

    forms = [course_oid, str(course_oid)]
    clauses: List[Dict[str, Any]] = [{"grades": {"$in": forms}}]
    clauses.extend({f"grades.{key}": {"$in": forms}} for key in GRADE_COURSE_KEYS)
    return {"$or": clauses}


def reconcile_course(course_id: Any) -> Dict[str, Any]:
    """Re-mirror one course's roster onto student course lists.

    Idempotent: running it on a consistent course changes nothing but the
    progress timestamps. Roster ids of deleted students are reported, not
    removed.
    """

    course = _load_course(course_id, projection={"assignee": 1})
    course_oid = course["_id"]
    roster = unique_object_ids(course.get("assignee") or [])

    students = get_students_collection()
    existing = [
        doc["_id"]
        for doc in students.find({"_id": {"$in": roster}}, projection={"_id": 1})
    ]
    existing_keys = {id_key(value) for value in existing}
    missing = [value for value in roster if id_key(value) not in existing_keys]

    if existing:
        students.update_many(
            {"_id": {"$in": existing}}, {"$addToSet": {"courses": course_oid}}
        )

    unlinked = [
        doc["_id"]
        for doc in students.find(
            {"courses": course_oid, "_id": {"$nin": existing}}, projection={"_id": 1}
        )
    ]
    if unlinked:
        students.update_many(
            {"_id": {"$in": unlinked}}, {"$pull": {"courses": course_oid}}
        )

    recompute_progress(existing + unlinked)

    if missing:
        logger.warning(
            "Course %s roster references %d deleted student(s)", course_oid, len(missing)
        )
    logger.info(
        "Reconciled course %s: %d rostered, %d unlinked", course_oid, len(existing), len(unlinked)
    )

    return to_jsonable(
        {
            "course_id": course_oid,
            "roster_size": len(existing),
            "missing_students": missing,
            "unlinked_students": unlinked,
        }
    )


__all__ = [
    "MIN_CGPA",
    "MAX_CGPA",
    "load_credit_lookup",
    "recompute_progress",
    "assign_roster",
    "course_grade_roster",
    "record_grades",
    "refresh_course_progress",
    "graded_in_course_filter",
    "reconcile_course",
]
