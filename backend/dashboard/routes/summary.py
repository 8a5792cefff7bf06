"""Dashboard summary endpoint."""

from __future__ import annotations

from typing import Any, Dict, List

from flask import Blueprint
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from ..config import ConfigError
from ..db import (
    get_courses_collection,
    get_faculties_collection,
    get_faculty_members_collection,
    get_students_collection,
    to_jsonable,
)
from ..progress import PASSED, derive_overall_status
from ..responses import handle_config_error, handle_db_error, json_success

summary_bp = Blueprint("summary", __name__, url_prefix="/api/summary")

TOP_LIMIT = 10


def student_status_counts(students) -> Dict[str, int]:
    """Students with any grade count as passed; everyone else as ongoing."""

    counts = {"passed": 0, "ongoing": 0}
    for student in students:
        if derive_overall_status(student.get("grades")) == PASSED:
            counts["passed"] += 1
        else:
            counts["ongoing"] += 1
    return counts


def most_popular_courses(courses, limit: int = TOP_LIMIT) -> List[Dict[str, Any]]:
    ranked = [
        {
            "_id": course["_id"],
            "course_name": course.get("course_name"),
            "course_code": course.get("course_code"),
            "credits": course.get("credits"),
            "enrollment_count": len(course.get("assignee") or []),
        }
        for course in courses
    ]
    # sorted() is stable, so ties keep collection order.
    ranked.sort(key=lambda entry: entry["enrollment_count"], reverse=True)
    return to_jsonable(ranked[:limit])


@summary_bp.get("")
def summary():
    try:
        students_collection = get_students_collection()
        courses_collection = get_courses_collection()

        status_counts = student_status_counts(
            students_collection.find({}, projection={"grades": 1, "courses": 1})
        )

        top_students = students_collection.find(
            {},
            projection={"first_name": 1, "last_name": 1, "email": 1, "cgpa_point": 1},
            sort=[("cgpa_point", DESCENDING)],
        ).limit(TOP_LIMIT)

        courses = courses_collection.find(
            {},
            projection={"course_name": 1, "course_code": 1, "credits": 1, "assignee": 1},
        )

        payload = {
            "student_status": status_counts,
            "totals": {
                "students": students_collection.count_documents({}),
                "courses": courses_collection.count_documents({}),
                "faculty": get_faculties_collection().count_documents({}),
                "faculty_members": get_faculty_members_collection().count_documents({}),
            },
            "top_students": to_jsonable(
                [
                    {
                        "_id": student["_id"],
                        "first_name": student.get("first_name"),
                        "last_name": student.get("last_name"),
                        "email": student.get("email"),
                        "cgpa_point": student.get("cgpa_point"),
                    }
                    for student in top_students
                ]
            ),
            "most_popular_courses": most_popular_courses(courses),
        }
        return json_success("Summary retrieved successfully", payload)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to load summary", exc)


__all__ = ["summary_bp", "student_status_counts", "most_popular_courses"]
