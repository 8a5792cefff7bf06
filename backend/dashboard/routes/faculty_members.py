"""Faculty member CRUD endpoints."""

from __future__ import annotations

from typing import Any, Dict, List

from flask import Blueprint, request
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from ..config import ConfigError
from ..db import (
    find_by_ids,
    get_courses_collection,
    get_faculties_collection,
    get_faculty_members_collection,
    id_key,
    resolve_object_id,
    serialize_faculty_member,
    timestamp,
    to_jsonable,
)
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
from ..validation import first_error, validate_faculty_member_payload

faculty_members_bp = Blueprint(
    "faculty_members", __name__, url_prefix="/api/faculty-members"
)


def _populate(members: List[Dict[str, Any]], *, with_course_count: bool = False):
    faculties = find_by_ids(
        get_faculties_collection(),
        [member.get("faculty_id") for member in members],
        projection={"name": 1},
    )
    courses = get_courses_collection() if with_course_count else None

    payload = []
    for member in members:
        serialized = serialize_faculty_member(member)
        faculty = faculties.get(id_key(member.get("faculty_id")))
        serialized["faculty_id"] = (
            to_jsonable({"_id": faculty["_id"], "name": faculty.get("name")})
            if faculty
            else None
        )
        if courses is not None:
            serialized["courses_count"] = courses.count_documents(
                {"faculty_members": member["_id"]}
            )
        payload.append(serialized)
    return payload


def _faculty_exists(faculty_oid) -> bool:
    return bool(
        get_faculties_collection().find_one({"_id": faculty_oid}, projection={"_id": 1})
    )


@faculty_members_bp.get("")
def list_faculty_members():
    try:
        paging = parse_paging_params(request.args)
    except PagingParamError as exc:
        return json_error(str(exc), 400)

    try:
        collection = get_faculty_members_collection()
        filters = search_filter(paging.search, ("name",))
        count = collection.count_documents(filters)
        cursor = (
            collection.find(filters)
            .sort(NEWEST_FIRST)
            .skip(paging.skip)
            .limit(paging.per_page)
        )
        return json_list(
            "Faculty members retrieved",
            _populate(list(cursor), with_course_count=True),
            build_pagination(paging, count),
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to list faculty members", exc)


@faculty_members_bp.post("")
def create_faculty_member():
    cleaned, errors = validate_faculty_member_payload(
        request.get_json(silent=True), require_all=True
    )
    if errors:
        return json_error(first_error(errors), 400, errors)

    try:
        if not _faculty_exists(cleaned["faculty_id"]):
            return json_error("Faculty not found", 404)

        now = timestamp()
        document = {**cleaned, "createdAt": now, "updatedAt": now}
        get_faculty_members_collection().insert_one(document)
        return json_success("Faculty member created", _populate([document])[0], 201)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to create faculty member", exc)


@faculty_members_bp.get("/<member_id>")
def get_faculty_member(member_id: str):
    member_oid = resolve_object_id(member_id)
    if member_oid is None:
        return json_error("Invalid faculty member identifier", 400)

    try:
        member = get_faculty_members_collection().find_one({"_id": member_oid})
        if member is None:
            return json_error("Faculty member not found", 404)
        return json_success("Faculty member retrieved", _populate([member])[0])
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to fetch faculty member", exc)


@faculty_members_bp.patch("/<member_id>")
def update_faculty_member(member_id: str):
    member_oid = resolve_object_id(member_id)
    if member_oid is None:
        return json_error("Invalid faculty member identifier", 400)

    try:
        collection = get_faculty_members_collection()
        if collection.find_one({"_id": member_oid}, projection={"_id": 1}) is None:
            return json_error("Faculty member not found", 404)

        cleaned, errors = validate_faculty_member_payload(
            request.get_json(silent=True), require_all=False
        )
        if errors:
            return json_error(first_error(errors), 400, errors)
        if not cleaned:
            return json_error("No valid fields provided to update", 400)

        if "faculty_id" in cleaned and not _faculty_exists(cleaned["faculty_id"]):
            return json_error("Faculty not found", 404)

        cleaned["updatedAt"] = timestamp()
        updated = collection.find_one_and_update(
            {"_id": member_oid}, {"$set": cleaned}, return_document=ReturnDocument.AFTER
        )
        if updated is None:
            return json_error("Faculty member not found", 404)
        return json_success("Faculty member updated", _populate([updated])[0])
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to update faculty member", exc)


@faculty_members_bp.delete("/<member_id>")
def delete_faculty_member(member_id: str):
    member_oid = resolve_object_id(member_id)
    if member_oid is None:
        return json_error("Invalid faculty member identifier", 400)

    try:
        deleted = get_faculty_members_collection().find_one_and_delete({"_id": member_oid})
        if deleted is None:
            return json_error("Faculty member not found", 404)
        return json_success(
            "Faculty member deleted",
            {"_id": str(deleted["_id"]), "name": deleted.get("name")},
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to delete faculty member", exc)


__all__ = ["faculty_members_bp"]
