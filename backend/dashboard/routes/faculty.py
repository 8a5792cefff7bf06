"""Faculty CRUD endpoints."""

from __future__ import annotations

from typing import Any, Dict, List

from flask import Blueprint, request
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from ..config import ConfigError
from ..db import (
    get_faculties_collection,
    get_faculty_members_collection,
    resolve_object_id,
    serialize_faculty,
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
from ..validation import first_error, validate_faculty_payload

faculty_bp = Blueprint("faculty", __name__, url_prefix="/api/faculty")


def _with_members(faculties: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    ids = [faculty["_id"] for faculty in faculties]
    members: Dict[Any, List[Dict[str, Any]]] = {faculty_id: [] for faculty_id in ids}
    if ids:
        cursor = get_faculty_members_collection().find(
            {"faculty_id": {"$in": ids}}, projection={"name": 1, "faculty_id": 1}
        )
        for member in cursor:
            members.setdefault(member["faculty_id"], []).append(
                to_jsonable({"_id": member["_id"], "name": member.get("name")})
            )

    payload = []
    for faculty in faculties:
        serialized = serialize_faculty(faculty)
        serialized["faculty_members"] = members.get(faculty["_id"], [])
        serialized["faculty_members_count"] = len(serialized["faculty_members"])
        payload.append(serialized)
    return payload


@faculty_bp.get("")
def list_faculty():
    try:
        paging = parse_paging_params(request.args)
    except PagingParamError as exc:
        return json_error(str(exc), 400)

    try:
        collection = get_faculties_collection()
        filters = search_filter(paging.search, ("name",))
        count = collection.count_documents(filters)
        cursor = (
            collection.find(filters)
            .sort(NEWEST_FIRST)
            .skip(paging.skip)
            .limit(paging.per_page)
        )
        return json_list(
            "Faculty retrieved", _with_members(list(cursor)), build_pagination(paging, count)
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to list faculty", exc)


@faculty_bp.post("")
def create_faculty():
    cleaned, errors = validate_faculty_payload(
        request.get_json(silent=True), require_all=True
    )
    if errors:
        return json_error(first_error(errors), 400, errors)

    now = timestamp()
    document = {"name": cleaned["name"], "courses": [], "createdAt": now, "updatedAt": now}
    try:
        get_faculties_collection().insert_one(document)
        return json_success("Faculty created", _with_members([document])[0], 201)
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to create faculty", exc)


@faculty_bp.get("/<faculty_id>")
def get_faculty(faculty_id: str):
    faculty_oid = resolve_object_id(faculty_id)
    if faculty_oid is None:
        return json_error("Invalid faculty identifier", 400)

    try:
        faculty = get_faculties_collection().find_one({"_id": faculty_oid})
        if faculty is None:
            return json_error("Faculty not found", 404)
        return json_success("Faculty retrieved", _with_members([faculty])[0])
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to fetch faculty", exc)


@faculty_bp.patch("/<faculty_id>")
def update_faculty(faculty_id: str):
    faculty_oid = resolve_object_id(faculty_id)
    if faculty_oid is None:
        return json_error("Invalid faculty identifier", 400)

    try:
        collection = get_faculties_collection()
        if collection.find_one({"_id": faculty_oid}, projection={"_id": 1}) is None:
            return json_error("Faculty not found", 404)

        cleaned, errors = validate_faculty_payload(
            request.get_json(silent=True), require_all=False
        )
        if errors:
            return json_error(first_error(errors), 400, errors)
        if not cleaned:
            return json_error("No valid fields provided to update", 400)

        cleaned["updatedAt"] = timestamp()
        updated = collection.find_one_and_update(
            {"_id": faculty_oid}, {"$set": cleaned}, return_document=ReturnDocument.AFTER
        )
        if updated is None:
            return json_error("Faculty not found", 404)
        return json_success("Faculty updated", _with_members([updated])[0])
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to update faculty", exc)


@faculty_bp.delete("/<faculty_id>")
def delete_faculty(faculty_id: str):
    faculty_oid = resolve_object_id(faculty_id)
    if faculty_oid is None:
        return json_error("Invalid faculty identifier", 400)

    try:
        deleted = get_faculties_collection().find_one_and_delete({"_id": faculty_oid})
        if deleted is None:
            return json_error("Faculty not found", 404)
        return json_success(
            "Faculty deleted", {"_id": str(deleted["_id"]), "name": deleted.get("name")}
        )
    except ConfigError as exc:
        return handle_config_error(exc)
    except PyMongoError as exc:
        return handle_db_error("Failed to delete faculty", exc)


__all__ = ["faculty_bp"]
