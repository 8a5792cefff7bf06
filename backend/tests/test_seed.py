"""The seed script loads consistent sample data."""

from __future__ import annotations

import importlib.util
import unittest

from support import BACKEND_DIR, MongoTestCase

from dashboard.progress import derive_status

SEED_SCRIPT = BACKEND_DIR.parent / "scripts" / "seed.py"


def load_seed_module():
    spec = importlib.util.spec_from_file_location("dashboard_seed", SEED_SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class SeedScriptTestCase(MongoTestCase):
    def test_seed_builds_mirrored_rosters(self) -> None:
        seed = load_seed_module()

        counts = seed.seed_database(self.database)

        self.assertEqual(
            {"faculties": 2, "faculty_members": 3, "courses": 3, "students": 4}, counts
        )

        students = {doc["email"]: doc for doc in self.database["students"].find()}
        for course in self.database["courses"].find():
            for student in students.values():
                with self.subTest(course=course["course_name"], student=student["email"]):
                    self.assertEqual(
                        student["_id"] in course["assignee"],
                        course["_id"] in student["courses"],
                    )

        mai = students["mai.tran@example.edu"]
        self.assertAlmostEqual(3.5, mai["cgpa_point"])
        self.assertEqual(
            {"completedCourses": 2, "ongoingCourses": 0, "completedCredits": 7},
            mai["progressSummary"],
        )
        chemistry = self.database["courses"].find_one({"course_name": "General Chemistry"})
        self.assertNotIn("course_code", chemistry)
        self.assertEqual(
            "ongoing", derive_status(students["kenji.sato@example.edu"]["grades"], chemistry["_id"])
        )

    def test_reseeding_replaces_previous_data(self) -> None:
        seed = load_seed_module()
        seed.seed_database(self.database)
        counts = seed.seed_database(self.database)
        self.assertEqual(4, counts["students"])


if __name__ == "__main__":
    unittest.main()
