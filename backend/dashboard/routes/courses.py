"""Course CRUD plus the roster and bulk-grade endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from flask import Blueprint, request
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from ..config import ConfigError
from ..db import (
    get_courses_collection,
    get_faculty_members_collection,
    resolve_object_id,
    timestamp,
)
from ..enrollment import (
    assign_roster,
    course_grade_roster,
    reconcile_course,
    record_grades,
    refresh_course_progress,
)
from ..errors import DashboardError
from ..populate import populate_course, populate_courses
from ..responses import (
    handle_config_error,
    handle_db_error,
    handle_service_error,
    json_error,
    json_list,
    json_success,
)
from ..utils.paging import (
    NEWEST_FIRST,
    PagingParamError,
    build_pagination,
    parse_paging_params,
    search_filter,
)
from ..validation import first_error, validate_course_payload

courses_bp = Blueprint("courses", __name__, url_prefix="/api/courses")

logger = logging.getLogger(__name__)


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _missing_faculty_members(member_ids: List[Any]) -> bool:
    if not member_ids:
        return False
    found = get_faculty_members_collection().count_documents({"_id": {"$in": member_ids}})
    return found != len(member_ids)


@courses_bp.get("")
def list_courses():
    try:
        paging = parse_paging_params(request.args)
    except PagingParamError as exc:
        return json_error(str(exc), 400)

    try:
        collection = get_courses_collection()
        filters = search_filter(paging.search, ("course_name", "course_code"))
        count = collection.count_documents(filters)
        cursor = (
            collection.find(filters)
            .sort(NEWEST_FIRST)
            .skip(paging.skip)
            .limit(paging.per_page)
        )
        return json_list(
            "Courses retrieved",
            populate_courses(list(cursor)),
            build_pagination(paging, count),
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to list courses", exc)


@courses_bp.post("")
def create_course():
    cleaned, errors = validate_course_payload(
        request.get_json(silent=True), require_all=True
    )
    if errors:
        return json_error(first_error(errors), 400, errors)

    try:
        if _missing_faculty_members(cleaned["faculty_members"]):
            return json_error("One or more faculty members not found", 404)

        now = timestamp()
        document = {
            "course_name": cleaned["course_name"],
            "credits": cleaned["credits"],
            "faculty_members": cleaned["faculty_members"],
            "assignee": [],
            "createdAt": now,
            "updatedAt": now,
        }
        if cleaned.get("course_code"):
            document["course_code"] = cleaned["course_code"]

        collection = get_courses_collection()
        result = collection.insert_one(document)
        created = collection.find_one({"_id": result.inserted_id})
        return json_success("Course created", populate_course(created or document), 201)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to create course", exc)


@courses_bp.get("/<course_id>")
def get_course(course_id: str):
    course_oid = resolve_object_id(course_id)
    if course_oid is None:
        return json_error("Invalid course identifier", 400)

    try:
        course = get_courses_collection().find_one({"_id": course_oid})
        if course is None:
            return json_error("Course not found", 404)
        return json_success("Course retrieved", populate_course(course))
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to fetch course", exc)


@courses_bp.patch("/<course_id>")
def update_course(course_id: str):
    course_oid = resolve_object_id(course_id)
    if course_oid is None:
        return json_error("Invalid course identifier", 400)

    try:
        collection = get_courses_collection()
        existing = collection.find_one({"_id": course_oid}, projection={"credits": 1})
        if existing is None:
            return json_error("Course not found", 404)

        cleaned, errors = validate_course_payload(
            request.get_json(silent=True), require_all=False
        )
        if errors:
            return json_error(first_error(errors), 400, errors)
        if not cleaned:
            return json_error("No valid fields provided to update", 400)

        if _missing_faculty_members(cleaned.get("faculty_members") or []):
            return json_error("One or more faculty members not found", 404)

        update: Dict[str, Any] = {"$set": {"updatedAt": timestamp()}}
        for field, value in cleaned.items():
            if field == "course_code" and value is None:
                update["$unset"] = {"course_code": ""}
            else:
                update["$set"][field] = value

        updated = collection.find_one_and_update(
            {"_id": course_oid}, update, return_document=ReturnDocument.AFTER
        )
        if updated is None:
            return json_error("Course not found", 404)

        if "credits" in cleaned and cleaned["credits"] != existing.get("credits"):
            refreshed = refresh_course_progress(course_oid)
            logger.info(
                "Credits of course %s changed; refreshed %d student(s)", course_oid, refreshed
            )

        return json_success("Course updated", populate_course(updated))
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to update course", exc)


@courses_bp.delete("/<course_id>")
def delete_course(course_id: str):
    course_oid = resolve_object_id(course_id)
    if course_oid is None:
        return json_error("Invalid course identifier", 400)

    try:
        deleted = get_courses_collection().find_one_and_delete({"_id": course_oid})
        if deleted is None:
            return json_error("Course not found", 404)

        if deleted.get("assignee"):
            logger.warning(
                "Deleted course %s still referenced by %d student(s)",
                course_oid,
                len(deleted["assignee"]),
            )

        # Grades for the course stay but no longer count toward completedCredits.
        refreshed = refresh_course_progress(course_oid)
        if refreshed:
            logger.info(
                "Course %s deleted; refreshed progress of %d student(s)", course_oid, refreshed
            )
        return json_success(
            "Course deleted",
            {"_id": str(deleted["_id"]), "course_name": deleted.get("course_name")},
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to delete course", exc)


@courses_bp.post("/<course_id>/assignee")
def assign_students(course_id: str):
    try:
        course = assign_roster(course_id, _json_body().get("assignee"))
        return json_success("Students assigned to course successfully", course)
    except DashboardError as exc:
        return handle_service_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to assign students to course", exc)


@courses_bp.get("/<course_id>/bulk-cgpa")
def assigned_students(course_id: str):
    try:
        return json_success("Assigned students retrieved", course_grade_roster(course_id))
    except DashboardError as exc:
        return handle_service_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to fetch assigned students", exc)


@courses_bp.post("/<course_id>/bulk-cgpa")
def add_bulk_cgpa(course_id: str):
    try:
        result = record_grades(course_id, _json_body().get("students"))
        return json_success("CGPA added for students successfully", result)
    except DashboardError as exc:
        return handle_service_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to add bulk CGPA", exc)


@courses_bp.post("/<course_id>/reconcile")
def reconcile(course_id: str):
    try:
        return json_success("Course roster reconciled", reconcile_course(course_id))
    except DashboardError as exc:
        return handle_service_error(exc)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to reconcile course roster", exc)


__all__ = ["courses_bp"]
