"""Seed helper that loads sample documents into MongoDB.

Rosters and grades go through the enrollment engine rather than being written
directly, so the seeded students carry consistent course lists and progress.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

ROOT_DIR = Path(__file__).resolve().parent.parent
BACKEND_DIR = ROOT_DIR / "backend"
SEED_PATH = Path(__file__).resolve().parent / "seed.json"

if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from dashboard import db as dashboard_db  # noqa: E402
from dashboard.config import (  # noqa: E402
    ConfigError,
    get_db_name,
    get_mongo_uri,
    get_timeout_ms,
)
from dashboard.db import EMPTY_PROGRESS, timestamp  # noqa: E402
from dashboard.enrollment import assign_roster, record_grades  # noqa: E402

logger = logging.getLogger(__name__)

COLLECTIONS = ("faculties", "faculty_members", "courses", "students")


def read_seed_file(path: Path = SEED_PATH) -> Dict[str, List[Dict[str, Any]]]:
    with path.open("r", encoding="utf-8") as seed_file:
        data = json.load(seed_file)
    if not isinstance(data, dict):
        raise ValueError("Seed file must contain an object of collections")
    for name in COLLECTIONS:
        if not isinstance(data.get(name, []), list):
            raise ValueError(f"Seed data for collection '{name}' must be a list")
    return data


def _stamped(document: Dict[str, Any]) -> Dict[str, Any]:
    now = timestamp()
    return {**document, "createdAt": now, "updatedAt": now}


def seed_database(database: Database, seed_data: Dict[str, Any] | None = None) -> Dict[str, int]:
    """Replace the dashboard collections in ``database`` with the sample data.

    Returns the number of documents loaded per collection.
    """

    seed_data = seed_data if seed_data is not None else read_seed_file()
    dashboard_db.bind_database(database)

    for name in COLLECTIONS:
        database[name].delete_many({})

    faculty_ids = {}
    for faculty in seed_data.get("faculties", []):
        result = dashboard_db.get_faculties_collection().insert_one(
            _stamped({"name": faculty["name"], "courses": []})
        )
        faculty_ids[faculty["name"]] = result.inserted_id

    member_ids = {}
    for member in seed_data.get("faculty_members", []):
        result = dashboard_db.get_faculty_members_collection().insert_one(
            _stamped({"name": member["name"], "faculty_id": faculty_ids[member["faculty"]]})
        )
        member_ids[member["name"]] = result.inserted_id

    student_ids = {}
    for student in seed_data.get("students", []):
        document = _stamped(
            {
                **student,
                "email": student["email"].lower(),
                "courses": [],
                "grades": [],
                "attributes": student.get("attributes", []),
                "progressSummary": dict(EMPTY_PROGRESS),
            }
        )
        result = dashboard_db.get_students_collection().insert_one(document)
        student_ids[document["email"]] = result.inserted_id

    courses = dashboard_db.get_courses_collection()
    for course in seed_data.get("courses", []):
        document = _stamped(
            {
                "course_name": course["course_name"],
                "credits": course["credits"],
                "faculty_members": [member_ids[name] for name in course["faculty_members"]],
                "assignee": [],
            }
        )
        if course.get("course_code"):
            document["course_code"] = course["course_code"]
        course_id = courses.insert_one(document).inserted_id

        teaching_faculties = dashboard_db.get_faculty_members_collection().distinct(
            "faculty_id", {"_id": {"$in": document["faculty_members"]}}
        )
        if teaching_faculties:
            dashboard_db.get_faculties_collection().update_many(
                {"_id": {"$in": teaching_faculties}},
                {"$addToSet": {"courses": course_id}},
            )

        if course.get("assignee"):
            assign_roster(
                str(course_id),
                [str(student_ids[email]) for email in course["assignee"]],
            )
        grades = course.get("grades") or {}
        if grades:
            record_grades(
                str(course_id),
                [
                    {"student_id": str(student_ids[email]), "cgpa": cgpa}
                    for email, cgpa in grades.items()
                ],
            )

    counts = {name: database[name].count_documents({}) for name in COLLECTIONS}
    for name, count in counts.items():
        logger.info("Loaded %d document(s) into '%s' collection", count, name)
    return counts


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    try:
        uri = get_mongo_uri()
        db_name = get_db_name()
        timeout_ms = get_timeout_ms()
    except ConfigError as exc:  # pragma: no cover - simple CLI utility
        print(f"Configuration error: {exc}")
        raise SystemExit(1)

    client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
    database = client[db_name]

    try:
        seed_database(database)
        print(f"Seeding complete for database '{db_name}'.")
    except PyMongoError as exc:  # pragma: no cover - requires Mongo connection
        print(f"MongoDB error: {exc}")
        raise SystemExit(1)
    finally:
        dashboard_db.bind_database(None)
        client.close()


if __name__ == "__main__":
    main()
