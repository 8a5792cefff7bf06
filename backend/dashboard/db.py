"""MongoDB helpers for the application."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from .config import get_db_name, get_mongo_uri, get_timeout_ms

_MONGO_CLIENT = None
_MONGO_DB = None

_indexed_collections = set()

EMPTY_PROGRESS = {"completedCourses": 0, "ongoingCourses": 0, "completedCredits": 0}


def _get_client():
    """Create (or reuse) a MongoDB client using the configured URI."""

    global _MONGO_CLIENT

    if _MONGO_CLIENT is None:
        _MONGO_CLIENT = MongoClient(
            get_mongo_uri(), serverSelectionTimeoutMS=get_timeout_ms()
        )
    return _MONGO_CLIENT


def get_db() -> Database:
    """Return the application's MongoDB database instance."""

    global _MONGO_DB

    if _MONGO_DB is None:
        _MONGO_DB = _get_client()[get_db_name()]
    return _MONGO_DB


def timestamp() -> datetime:
    return datetime.now(timezone.utc)


def bind_database(database: Database | None) -> None:
    """Point the collection helpers at an already-open database.

    Passing ``None`` drops the binding so the next call reconnects from the
    environment configuration.
    """

    global _MONGO_DB
    _MONGO_DB = database
    _indexed_collections.clear()


def _ensure_indexes(collection: Collection, indexes: List[IndexModel]) -> None:
    if collection.name in _indexed_collections:
        return
    collection.create_indexes(indexes)
    _indexed_collections.add(collection.name)


def get_students_collection() -> Collection:
    """Return the collection that stores student documents."""

    collection = get_db()["students"]
    _ensure_indexes(
        collection,
        [
            IndexModel([("email", ASCENDING)], name="email_idx"),
            IndexModel([("courses", ASCENDING)], name="courses_idx"),
            IndexModel([("grades.course_id", ASCENDING)], name="grade_course_idx"),
            IndexModel([("cgpa_point", DESCENDING)], name="cgpa_desc"),
        ],
    )
    return collection


def get_courses_collection() -> Collection:
    """Return the courses collection and ensure supporting indexes."""

    collection = get_db()["courses"]
    _ensure_indexes(
        collection,
        [
            IndexModel([("course_name", ASCENDING)], name="course_name_idx"),
            IndexModel([("assignee", ASCENDING)], name="assignee_idx"),
            IndexModel([("faculty_members", ASCENDING)], name="faculty_members_idx"),
        ],
    )
    return collection


def get_faculties_collection() -> Collection:
    collection = get_db()["faculties"]
    _ensure_indexes(collection, [IndexModel([("name", ASCENDING)], name="name_idx")])
    return collection


def get_faculty_members_collection() -> Collection:
    collection = get_db()["faculty_members"]
    _ensure_indexes(
        collection,
        [
            IndexModel([("name", ASCENDING)], name="name_idx"),
            IndexModel([("faculty_id", ASCENDING)], name="faculty_id_idx"),
        ],
    )
    return collection


def resolve_object_id(value: Any) -> ObjectId | None:
    """Return ``value`` as an ObjectId, or None when it is not a valid id."""

    if isinstance(value, ObjectId):
        return value
    if not value or not isinstance(value, str) or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def id_key(value: Any) -> str:
    """Comparable string form of a stored reference."""

    return str(value) if value is not None else ""


def to_jsonable(value: Any) -> Any:
    """Recursively convert ObjectIds and datetimes into JSON-friendly values."""

    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def serialize_student(document: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a MongoDB student document into a JSON-serialisable dict."""

    progress = document.get("progressSummary") or EMPTY_PROGRESS
    return to_jsonable(
        {
            "_id": document.get("_id"),
            "first_name": document.get("first_name"),
            "last_name": document.get("last_name"),
            "email": document.get("email"),
            "phone": document.get("phone"),
            "address": document.get("address"),
            "cgpa_point": document.get("cgpa_point"),
            "courses": _as_list(document.get("courses")),
            "grades": _as_list(document.get("grades")),
            "attributes": _as_list(document.get("attributes")),
            "progressSummary": {
                key: progress.get(key, 0) for key in EMPTY_PROGRESS
            },
            "createdAt": document.get("createdAt"),
            "updatedAt": document.get("updatedAt"),
        }
    )


def serialize_course(document: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize a raw Mongo course document to JSON-friendly dict."""

    payload = {
        "_id": document.get("_id"),
        "course_name": document.get("course_name"),
        "credits": document.get("credits"),
        "faculty_members": _as_list(document.get("faculty_members")),
        "assignee": _as_list(document.get("assignee")),
        "createdAt": document.get("createdAt"),
        "updatedAt": document.get("updatedAt"),
    }
    if document.get("course_code"):
        payload["course_code"] = document.get("course_code")
    return to_jsonable(payload)


def serialize_faculty(document: Dict[str, Any]) -> Dict[str, Any]:
    return to_jsonable(
        {
            "_id": document.get("_id"),
            "name": document.get("name"),
            "courses": _as_list(document.get("courses")),
            "createdAt": document.get("createdAt"),
            "updatedAt": document.get("updatedAt"),
        }
    )


def serialize_faculty_member(document: Dict[str, Any]) -> Dict[str, Any]:
    return to_jsonable(
        {
            "_id": document.get("_id"),
            "name": document.get("name"),
            "faculty_id": document.get("faculty_id"),
            "createdAt": document.get("createdAt"),
            "updatedAt": document.get("updatedAt"),
        }
    )


def unique_object_ids(values: Iterable[Any]) -> List[ObjectId]:
    """Valid ids among ``values``, deduplicated in first-seen order."""

    seen = set()
    unique: List[ObjectId] = []
    for value in values:
        resolved = resolve_object_id(value)
        if resolved is not None and resolved not in seen:
            seen.add(resolved)
            unique.append(resolved)
    return unique


def find_by_ids(
    collection: Collection, ids: Iterable[Any], projection: Dict[str, int] | None = None
) -> Dict[str, Dict[str, Any]]:
    """Fetch documents by id and key them by the string form of their id."""

    object_ids = unique_object_ids(ids)
    if not object_ids:
        return {}
    cursor = collection.find({"_id": {"$in": object_ids}}, projection=projection)
    return {id_key(doc["_id"]): doc for doc in cursor}


__all__ = [
    "EMPTY_PROGRESS",
    "get_db",
    "bind_database",
    "timestamp",
    "get_students_collection",
    "get_courses_collection",
    "get_faculties_collection",
    "get_faculty_members_collection",
    "resolve_object_id",
    "id_key",
    "to_jsonable",
    "serialize_student",
    "serialize_course",
    "serialize_faculty",
    "serialize_faculty_member",
    "unique_object_ids",
    "find_by_ids",
]
