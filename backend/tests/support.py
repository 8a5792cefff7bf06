"""Shared fixtures: an in-memory MongoDB bound to the dashboard helpers."""

from __future__ import annotations

import contextlib
import sys
import unittest
from unittest import mock
from pathlib import Path
from typing import Any, Dict, Iterable

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import mongomock  # noqa: E402

from dashboard import db  # noqa: E402


class MongoTestCase(unittest.TestCase):
    """Binds a fresh mongomock database for every test."""

    def setUp(self) -> None:
        self.database = mongomock.MongoClient().db
        db.bind_database(self.database)

    def tearDown(self) -> None:
        db.bind_database(None)

    def make_faculty(self, name: str = "Engineering"):
        now = db.timestamp()
        return db.get_faculties_collection().insert_one(
            {"name": name, "courses": [], "createdAt": now, "updatedAt": now}
        ).inserted_id

    def make_member(self, name: str = "Dr. Ada Park", faculty_id=None):
        now = db.timestamp()
        if faculty_id is None:
            faculty_id = self.make_faculty()
        return db.get_faculty_members_collection().insert_one(
            {"name": name, "faculty_id": faculty_id, "createdAt": now, "updatedAt": now}
        ).inserted_id

    def make_course(
        self,
        name: str = "Data Structures",
        credits: float = 3,
        assignee: Iterable[Any] = (),
        faculty_members: Iterable[Any] = (),
        **extra: Any,
    ):
        now = db.timestamp()
        document: Dict[str, Any] = {
            "course_name": name,
            "credits": credits,
            "faculty_members": list(faculty_members),
            "assignee": list(assignee),
            "createdAt": now,
            "updatedAt": now,
        }
        document.update(extra)
        return db.get_courses_collection().insert_one(document).inserted_id

    def make_student(self, first_name: str = "Mai", **extra: Any):
        now = db.timestamp()
        document: Dict[str, Any] = {
            "first_name": first_name,
            "last_name": "Tran",
            "email": f"{first_name.lower()}@example.edu",
            "phone": "0901000001",
            "address": "12 Lake Road",
            "cgpa_point": None,
            "courses": [],
            "grades": [],
            "attributes": [],
            "progressSummary": dict(db.EMPTY_PROGRESS),
            "createdAt": now,
            "updatedAt": now,
        }
        document.update(extra)
        return db.get_students_collection().insert_one(document).inserted_id

    def student(self, student_id) -> Dict[str, Any]:
        return db.get_students_collection().find_one({"_id": student_id})

    def course(self, course_id) -> Dict[str, Any]:
        return db.get_courses_collection().find_one({"_id": course_id})


class ApiTestCase(MongoTestCase):
    """MongoTestCase plus a Flask test client."""

    def setUp(self) -> None:
        super().setUp()
        from app import create_app

        app = create_app()
        app.config["TESTING"] = True
        self.client = app.test_client()


@contextlib.contextmanager
def vanishing_student(student_id):
    """Delete ``student_id`` the first time it is loaded by ``find_one``.

    Simulates a concurrent delete landing between batch validation and the
    per-student writes.
    """

    original = mongomock.Collection.find_one
    state = {"deleted": False}

    def find_one(collection, filter=None, *args, **kwargs):
        if (
            not state["deleted"]
            and collection.name == "students"
            and isinstance(filter, dict)
            and filter.get("_id") == student_id
        ):
            state["deleted"] = True
            collection.delete_one({"_id": student_id})
        return original(collection, filter, *args, **kwargs)

    with mock.patch.object(
        mongomock.Collection, "find_one", autospec=True, side_effect=find_one
    ):
        yield
