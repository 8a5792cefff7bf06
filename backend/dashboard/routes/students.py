"""Student CRUD endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Blueprint, request
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from ..config import ConfigError
from ..db import EMPTY_PROGRESS, get_students_collection, resolve_object_id, timestamp
from ..populate import populate_student, populate_students
from ..progress import STATUSES, student_matches_status
from ..responses import (
    handle_config_error,
    handle_db_error,
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
from ..validation import first_error, validate_student_payload

students_bp = Blueprint("students", __name__, url_prefix="/api/students")

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("first_name", "last_name", "email", "phone", "address")


@students_bp.get("")
def list_students():
    try:
        paging = parse_paging_params(request.args)
    except PagingParamError as exc:
        return json_error(str(exc), 400)

    status = (request.args.get("status") or "").strip()
    if status and status not in STATUSES:
        return json_error("status must be either 'ongoing' or 'passed'", 400)

    try:
        filters = search_filter(paging.search, SEARCH_FIELDS)
        students = list(get_students_collection().find(filters).sort(NEWEST_FIRST))

        # Status is derived from courses and grades, so it is filtered here
        # rather than in the query.
        if status:
            students = [doc for doc in students if student_matches_status(doc, status)]

        page = students[paging.skip:paging.skip + paging.per_page]
        return json_list(
            "Students retrieved",
            populate_students(page),
            build_pagination(paging, len(students)),
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to list students", exc)


@students_bp.post("")
def create_student():
    cleaned, errors = validate_student_payload(
        request.get_json(silent=True), require_all=True
    )
    if errors:
        return json_error(first_error(errors), 400, errors)

    now = timestamp()
    document: Dict[str, Any] = {
        **cleaned,
        "courses": [],
        "grades": [],
        "attributes": cleaned.get("attributes", []),
        "progressSummary": dict(EMPTY_PROGRESS),
        "createdAt": now,
        "updatedAt": now,
    }

    try:
        collection = get_students_collection()
        result = collection.insert_one(document)
        created = collection.find_one({"_id": result.inserted_id})
        return json_success("Student created", populate_student(created or document), 201)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to create student", exc)


@students_bp.get("/<student_id>")
def get_student(student_id: str):
    student_oid = resolve_object_id(student_id)
    if student_oid is None:
        return json_error("Invalid student identifier", 400)

    try:
        student = get_students_collection().find_one({"_id": student_oid})
        if student is None:
            return json_error("Student not found", 404)
        return json_success("Student retrieved", populate_student(student))
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to fetch student", exc)


@students_bp.patch("/<student_id>")
def update_student(student_id: str):
    student_oid = resolve_object_id(student_id)
    if student_oid is None:
        return json_error("Invalid student identifier", 400)

    try:
        collection = get_students_collection()
        existing = collection.find_one({"_id": student_oid}, projection={"grades": 1})
        if existing is None:
            return json_error("Student not found", 404)

        cleaned, errors = validate_student_payload(
            request.get_json(silent=True), require_all=False
        )
        if "cgpa_point" in cleaned and existing.get("grades"):
            errors["cgpa_point"] = (
                "CGPA point is derived from recorded grades and cannot be edited"
            )
        if errors:
            return json_error(first_error(errors), 400, errors)
        if not cleaned:
            return json_error("No valid fields provided to update", 400)

        cleaned["updatedAt"] = timestamp()
        updated = collection.find_one_and_update(
            {"_id": student_oid},
            {"$set": cleaned},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            return json_error("Student not found", 404)
        return json_success("Student updated", populate_student(updated))
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to update student", exc)


@students_bp.delete("/<student_id>")
def delete_student(student_id: str):
    student_oid = resolve_object_id(student_id)
    if student_oid is None:
        return json_error("Invalid student identifier", 400)

    try:
        deleted = get_students_collection().find_one_and_delete({"_id": student_oid})
        if deleted is None:
            return json_error("Student not found", 404)

        if deleted.get("courses"):
            logger.warning(
                "Deleted student %s is still on %d course roster(s)",
                student_oid,
                len(deleted["courses"]),
            )
        return json_success(
            "Student deleted",
            {
                "_id": str(deleted["_id"]),
                "first_name": deleted.get("first_name"),
                "last_name": deleted.get("last_name"),
            },
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to delete student", exc)


__all__ = ["students_bp"]
