"""Resolve stored references into the display payloads the UI consumes."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from .db import (
    find_by_ids,
    get_courses_collection,
    get_faculties_collection,
    get_faculty_members_collection,
    get_students_collection,
    id_key,
    serialize_course,
    serialize_student,
    to_jsonable,
)
from .progress import derive_overall_status, derive_status

logger = logging.getLogger(__name__)

STUDENT_SUMMARY_PROJECTION = {
    "first_name": 1,
    "last_name": 1,
    "email": 1,
    "cgpa_point": 1,
    "grades": 1,
}


def _collect(docs: Iterable[Dict[str, Any]], field: str) -> List[Any]:
    values: List[Any] = []
    for doc in docs:
        values.extend(doc.get(field) or [])
    return values


def resolve_faculty_members(member_ids: Iterable[Any]) -> Dict[str, Dict[str, Any]]:
    """Faculty members keyed by id, each with its faculty embedded."""

    members = find_by_ids(
        get_faculty_members_collection(),
        member_ids,
        projection={"name": 1, "faculty_id": 1},
    )
    faculties = find_by_ids(
        get_faculties_collection(),
        [member.get("faculty_id") for member in members.values()],
        projection={"name": 1},
    )

    resolved: Dict[str, Dict[str, Any]] = {}
    for key, member in members.items():
        faculty = faculties.get(id_key(member.get("faculty_id")))
        resolved[key] = to_jsonable(
            {
                "_id": member["_id"],
                "name": member.get("name"),
                "faculty_id": member.get("faculty_id"),
                "faculty": (
                    {"_id": faculty["_id"], "name": faculty.get("name")}
                    if faculty
                    else None
                ),
            }
        )
    return resolved


def student_summary(student: Dict[str, Any], course_id: Any) -> Dict[str, Any]:
    return to_jsonable(
        {
            "_id": student["_id"],
            "first_name": student.get("first_name"),
            "last_name": student.get("last_name"),
            "email": student.get("email"),
            "cgpa_point": student.get("cgpa_point"),
            "status": derive_status(student.get("grades"), course_id),
        }
    )


def roster_students(course: Dict[str, Any]) -> List[Dict[str, Any]]:
    """The course roster in roster order, skipping ids that no longer resolve."""

    assignee = course.get("assignee") or []
    students = find_by_ids(
        get_students_collection(), assignee, projection=STUDENT_SUMMARY_PROJECTION
    )
    roster = []
    for student_id in assignee:
        student = students.get(id_key(student_id))
        if student is None:
            logger.warning(
                "Course %s lists missing student %s", course.get("_id"), student_id
            )
            continue
        roster.append(student)
    return roster


def populate_courses(courses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Serialize courses with rosters and faculty members resolved."""

    students = find_by_ids(
        get_students_collection(),
        _collect(courses, "assignee"),
        projection=STUDENT_SUMMARY_PROJECTION,
    )
    members = resolve_faculty_members(_collect(courses, "faculty_members"))

    payload = []
    for course in courses:
        serialized = serialize_course(course)
        serialized["assignee"] = [
            student_summary(students[id_key(student_id)], course["_id"])
            for student_id in course.get("assignee") or []
            if id_key(student_id) in students
        ]
        serialized["faculty_members"] = [
            members[id_key(member_id)]
            for member_id in course.get("faculty_members") or []
            if id_key(member_id) in members
        ]
        payload.append(serialized)
    return payload


def populate_course(course: Dict[str, Any]) -> Dict[str, Any]:
    return populate_courses([course])[0]


def populate_students(students: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Serialize students with their courses resolved and annotated with status."""

    courses = find_by_ids(
        get_courses_collection(),
        _collect(students, "courses"),
        projection={"course_name": 1, "course_code": 1, "faculty_members": 1},
    )
    members = resolve_faculty_members(_collect(courses.values(), "faculty_members"))

    payload = []
    for student in students:
        grades = student.get("grades") or []
        serialized = serialize_student(student)
        course_views = []
        for course_id in student.get("courses") or []:
            course = courses.get(id_key(course_id))
            if course is None:
                continue
            course_views.append(
                to_jsonable(
                    {
                        "_id": course["_id"],
                        "course_name": course.get("course_name"),
                        "course_code": course.get("course_code"),
                        "faculty_members": [
                            {
                                "_id": members[id_key(member_id)]["_id"],
                                "name": members[id_key(member_id)]["name"],
                                "faculty": members[id_key(member_id)]["faculty"],
                            }
                            for member_id in course.get("faculty_members") or []
                            if id_key(member_id) in members
                        ],
                        "status": derive_status(grades, course["_id"]),
                    }
                )
            )
        serialized["courses"] = course_views
        serialized["status"] = derive_overall_status(grades)
        payload.append(serialized)
    return payload


def populate_student(student: Dict[str, Any]) -> Dict[str, Any]:
    return populate_students([student])[0]


__all__ = [
    "resolve_faculty_members",
    "student_summary",
    "roster_students",
    "populate_courses",
    "populate_course",
    "populate_students",
    "populate_student",
]
