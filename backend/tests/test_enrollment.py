"""Roster assignment, bulk grading and reconciliation against an in-memory MongoDB."""

from __future__ import annotations

import unittest

from bson import ObjectId

from support import MongoTestCase, vanishing_student

from dashboard import db
from dashboard.db import unique_object_ids
from dashboard.enrollment import (
    assign_roster,
    course_grade_roster,
    reconcile_course,
    record_grades,
    recompute_progress,
    refresh_course_progress,
)
from dashboard.errors import NotFoundError, ValidationError


def progress(completed, ongoing, credits):
    return {"completedCourses": completed, "ongoingCourses": ongoing, "completedCredits": credits}


class UniqueObjectIdsTestCase(unittest.TestCase):
    def test_dedupes_in_first_seen_order_and_drops_invalid(self) -> None:
        first, second = ObjectId(), ObjectId()
        values = [str(first), second, first, "bogus", None, str(second), ""]
        self.assertEqual([first, second], unique_object_ids(values))

    def test_accepts_generators(self) -> None:
        ids = [ObjectId() for _ in range(3)]
        self.assertEqual(ids, unique_object_ids(str(value) for value in ids + ids))


class AssignRosterTestCase(MongoTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.course_id = self.make_course(credits=3)
        self.s1 = self.make_student("Mai")
        self.s2 = self.make_student("Jonas")

    def test_assigning_mirrors_roster_onto_students(self) -> None:
        result = assign_roster(str(self.course_id), [str(self.s1), str(self.s2)])

        self.assertEqual([self.s1, self.s2], self.course(self.course_id)["assignee"])
        for student_id in (self.s1, self.s2):
            with self.subTest(student=student_id):
                student = self.student(student_id)
                self.assertIn(self.course_id, student["courses"])
                self.assertEqual(progress(0, 1, 0), student["progressSummary"])

        self.assertEqual(str(self.course_id), result["_id"])
        self.assertEqual(
            [str(self.s1), str(self.s2)], [entry["_id"] for entry in result["assignee"]]
        )
        self.assertEqual({"ongoing"}, {entry["status"] for entry in result["assignee"]})

    def test_roster_mirror_holds_for_every_student(self) -> None:
        s3 = self.make_student("Amara")
        other_course = self.make_course("Digital Logic")
        assign_roster(str(self.course_id), [str(self.s1), str(self.s2)])
        assign_roster(str(other_course), [str(self.s2)])
        assign_roster(str(self.course_id), [str(self.s2), str(s3)])

        assignee = set(self.course(self.course_id)["assignee"])
        for student in db.get_students_collection().find():
            with self.subTest(student=student["first_name"]):
                self.assertEqual(
                    student["_id"] in assignee, self.course_id in student["courses"]
                )
        self.assertEqual(
            [self.course_id, other_course], self.student(self.s2)["courses"]
        )
        self.assertEqual([self.course_id], self.student(s3)["courses"])

    def test_unenrolled_student_keeps_stale_grade(self) -> None:
        assign_roster(str(self.course_id), [str(self.s1), str(self.s2)])
        record_grades(str(self.course_id), [{"student_id": str(self.s1), "cgpa": 3.5}])

        assign_roster(str(self.course_id), [str(self.s2)])

        self.assertEqual([self.s2], self.course(self.course_id)["assignee"])
        removed = self.student(self.s1)
        self.assertNotIn(self.course_id, removed["courses"])
        self.assertEqual([{"course_id": self.course_id, "cgpa": 3.5}], removed["grades"])
        self.assertEqual(3.5, removed["cgpa_point"])
        self.assertEqual(progress(1, 0, 3), removed["progressSummary"])

    def test_duplicate_ids_collapse(self) -> None:
        assign_roster(str(self.course_id), [str(self.s1), str(self.s1)])

        self.assertEqual([self.s1], self.course(self.course_id)["assignee"])
        self.assertEqual([self.course_id], self.student(self.s1)["courses"])

    def test_invalid_rosters_are_rejected_without_writes(self) -> None:
        assign_roster(str(self.course_id), [str(self.s1)])
        before = self.course(self.course_id)["assignee"]

        for roster, message in (
            ([], "Assignee array cannot be empty"),
            ("not-a-list", "Assignee must be an array of student IDs"),
            (None, "Assignee must be an array of student IDs"),
            ([str(self.s1), 7], "All assignee items must be valid student ID strings"),
            ([""], "All assignee items must be valid student ID strings"),
            (["bogus"], "Invalid student ID: bogus"),
        ):
            with self.subTest(roster=roster):
                with self.assertRaises(ValidationError) as ctx:
                    assign_roster(str(self.course_id), roster)
                self.assertEqual(message, ctx.exception.message)
                self.assertEqual(before, self.course(self.course_id)["assignee"])

    def test_unknown_student_rejects_whole_roster(self) -> None:
        with self.assertRaises(NotFoundError) as ctx:
            assign_roster(str(self.course_id), [str(self.s1), str(ObjectId())])

        self.assertEqual("One or more students not found", ctx.exception.message)
        self.assertEqual([], self.course(self.course_id)["assignee"])
        self.assertEqual([], self.student(self.s1)["courses"])

    def test_course_lookup_errors(self) -> None:
        with self.assertRaises(ValidationError):
            assign_roster("not-an-id", [str(self.s1)])
        with self.assertRaises(NotFoundError):
            assign_roster(str(ObjectId()), [str(self.s1)])


class RecordGradesTestCase(MongoTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.course_id = self.make_course(credits=3)
        self.s1 = self.make_student("Mai")
        self.s2 = self.make_student("Jonas")
        assign_roster(str(self.course_id), [str(self.s1), str(self.s2)])

    def test_grading_updates_grades_mean_and_progress(self) -> None:
        result = record_grades(str(self.course_id), [{"student_id": str(self.s1), "cgpa": 3.5}])

        graded = self.student(self.s1)
        self.assertEqual([{"course_id": self.course_id, "cgpa": 3.5}], graded["grades"])
        self.assertEqual(3.5, graded["cgpa_point"])
        self.assertEqual(progress(1, 0, 3), graded["progressSummary"])

        untouched = self.student(self.s2)
        self.assertEqual([], untouched["grades"])
        self.assertEqual(progress(0, 1, 0), untouched["progressSummary"])

        self.assertEqual(str(self.course_id), result["course"]["_id"])
        self.assertEqual(1, len(result["updated_students"]))
        self.assertEqual(3.5, result["updated_students"][0]["course_cgpa"])

    def test_regrading_replaces_instead_of_appending(self) -> None:
        entry = [{"student_id": str(self.s1), "cgpa": 2.0}]
        record_grades(str(self.course_id), entry)
        record_grades(str(self.course_id), [{"student_id": str(self.s1), "cgpa": 3.0}])

        grades = self.student(self.s1)["grades"]
        self.assertEqual([{"course_id": self.course_id, "cgpa": 3.0}], grades)

    def test_cgpa_point_is_mean_over_courses(self) -> None:
        second = self.make_course("Digital Logic", credits=4)
        third = self.make_course("Chemistry", credits=2)
        for course_id in (second, third):
            assign_roster(str(course_id), [str(self.s1)])

        for course_id, cgpa in ((self.course_id, 3.5), (second, 2.0), (third, 4)):
            record_grades(str(course_id), [{"student_id": str(self.s1), "cgpa": cgpa}])
            student = self.student(self.s1)
            values = [grade["cgpa"] for grade in student["grades"]]
            with self.subTest(course=course_id):
                self.assertAlmostEqual(sum(values) / len(values), student["cgpa_point"])

        self.assertEqual(progress(3, 0, 9), self.student(self.s1)["progressSummary"])

    def test_unenrolled_student_is_rejected_without_writes(self) -> None:
        outsider = self.make_student("Amara")
        before = self.student(outsider)

        with self.assertRaises(ValidationError) as ctx:
            record_grades(
                str(self.course_id),
                [
                    {"student_id": str(self.s1), "cgpa": 3.0},
                    {"student_id": str(outsider), "cgpa": 5.0},
                ],
            )

        self.assertIn("is not assigned to this course", ctx.exception.message)
        self.assertEqual(before, self.student(outsider))
        # Validation covers the whole batch, so the enrolled entry was not applied either.
        self.assertEqual([], self.student(self.s1)["grades"])

    def test_invalid_entries(self) -> None:
        for entries, message in (
            ([], "Students array is required and must not be empty"),
            (None, "Students array is required and must not be empty"),
            (["x"], "Each entry must be an object with student_id and cgpa"),
            ([{"cgpa": 2}], "Each entry must have a valid student_id (string)"),
            ([{"student_id": "nope", "cgpa": 2}], "Invalid student_id: nope"),
            (
                [{"student_id": str(self.s1), "cgpa": 4.5}],
                f"CGPA must be a number between 0 and 4.0 for student {self.s1}",
            ),
            (
                [{"student_id": str(self.s1), "cgpa": "3"}],
                f"CGPA must be a number between 0 and 4.0 for student {self.s1}",
            ),
            (
                [{"student_id": str(self.s1), "cgpa": True}],
                f"CGPA must be a number between 0 and 4.0 for student {self.s1}",
            ),
        ):
            with self.subTest(entries=entries):
                with self.assertRaises(ValidationError) as ctx:
                    record_grades(str(self.course_id), entries)
                self.assertEqual(message, ctx.exception.message)

    def test_boundary_values_are_accepted(self) -> None:
        record_grades(
            str(self.course_id),
            [{"student_id": str(self.s1), "cgpa": 0}, {"student_id": str(self.s2), "cgpa": 4.0}],
        )
        self.assertEqual(0.0, self.student(self.s1)["cgpa_point"])
        self.assertEqual(4.0, self.student(self.s2)["cgpa_point"])

    def test_student_deleted_mid_batch_stops_without_rollback(self) -> None:
        entries = [
            {"student_id": str(self.s1), "cgpa": 3.0},
            {"student_id": str(self.s2), "cgpa": 2.0},
        ]

        with vanishing_student(self.s2):
            with self.assertRaises(NotFoundError) as ctx:
                record_grades(str(self.course_id), entries)

        self.assertEqual(f"Student {self.s2} not found", ctx.exception.message)
        self.assertIsNone(self.student(self.s2))
        kept = self.student(self.s1)
        self.assertEqual([{"course_id": self.course_id, "cgpa": 3.0}], kept["grades"])
        self.assertEqual(3.0, kept["cgpa_point"])

    def test_grade_roster_reports_per_course_status(self) -> None:
        record_grades(str(self.course_id), [{"student_id": str(self.s2), "cgpa": 3.0}])

        roster = course_grade_roster(str(self.course_id))

        self.assertEqual("Data Structures", roster["course"]["course_name"])
        self.assertEqual(
            [(str(self.s1), "ongoing"), (str(self.s2), "passed")],
            [(entry["_id"], entry["status"]) for entry in roster["students"]],
        )


class ProgressMaintenanceTestCase(MongoTestCase):
    def test_credit_change_refreshes_graded_students(self) -> None:
        course_id = self.make_course(credits=3)
        student_id = self.make_student()
        assign_roster(str(course_id), [str(student_id)])
        record_grades(str(course_id), [{"student_id": str(student_id), "cgpa": 3.0}])

        db.get_courses_collection().update_one({"_id": course_id}, {"$set": {"credits": 5}})
        refreshed = refresh_course_progress(course_id)

        self.assertEqual(1, refreshed)
        self.assertEqual(5, self.student(student_id)["progressSummary"]["completedCredits"])

    def test_refresh_finds_every_grade_shape(self) -> None:
        course_id = self.make_course(credits=4)
        shapes = (
            {"course_id": course_id, "cgpa": 3.0},
            {"course_id": str(course_id), "cgpa": 3.0},
            {"course": course_id, "cgpa": 3.0},
            {"courseId": str(course_id), "cgpa": 3.0},
            str(course_id),
        )
        students = [
            self.make_student(f"S{index}", courses=[course_id], grades=[grade])
            for index, grade in enumerate(shapes)
        ]
        unrelated = self.make_student(
            "Other", grades=[{"course_id": ObjectId(), "cgpa": 2.0}]
        )

        self.assertEqual(len(shapes), refresh_course_progress(course_id))

        for student_id, grade in zip(students, shapes):
            with self.subTest(grade=grade):
                self.assertEqual(progress(1, 0, 4), self.student(student_id)["progressSummary"])
        self.assertEqual(progress(0, 0, 0), self.student(unrelated)["progressSummary"])

    def test_recompute_skips_missing_students(self) -> None:
        student_id = self.make_student()
        self.assertEqual(1, recompute_progress([student_id, ObjectId(), student_id]))


class ReconcileCourseTestCase(MongoTestCase):
    def test_repairs_a_half_applied_roster(self) -> None:
        s1 = self.make_student("Mai")
        s2 = self.make_student("Jonas")
        course_id = self.make_course(credits=3, assignee=[s1])
        # s2 still lists the course from an earlier roster; s1 never got the mirror.
        db.get_students_collection().update_one({"_id": s2}, {"$set": {"courses": [course_id]}})
        ghost = ObjectId()
        db.get_courses_collection().update_one(
            {"_id": course_id}, {"$push": {"assignee": ghost}}
        )

        report = reconcile_course(str(course_id))

        self.assertEqual(1, report["roster_size"])
        self.assertEqual([str(ghost)], report["missing_students"])
        self.assertEqual([str(s2)], report["unlinked_students"])
        self.assertEqual([course_id], self.student(s1)["courses"])
        self.assertEqual([], self.student(s2)["courses"])
        self.assertEqual(progress(0, 1, 0), self.student(s1)["progressSummary"])

        again = reconcile_course(str(course_id))
        self.assertEqual([], again["unlinked_students"])
        self.assertEqual([course_id], self.student(s1)["courses"])

    def test_unknown_course(self) -> None:
        with self.assertRaises(NotFoundError):
            reconcile_course(str(ObjectId()))


if __name__ == "__main__":
    unittest.main()
