"""Request payload validators.

Each validator returns ``(cleaned, errors)``: the normalized fields ready for
storage and a field -> message mapping. ``require_all`` distinguishes create
(every required field present) from partial update.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Tuple

from bson import ObjectId

from .db import resolve_object_id
from .enrollment import MAX_CGPA, MIN_CGPA

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

Validated = Tuple[Dict[str, Any], Dict[str, str]]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def first_error(errors: Dict[str, str]) -> str:
    return next(iter(errors.values()), "Validation failed.")


def _non_empty_string(
    payload: Dict[str, Any],
    field: str,
    label: str,
    *,
    require_all: bool,
    cleaned: Dict[str, Any],
    errors: Dict[str, str],
) -> None:
    if not require_all and field not in payload:
        return
    value = payload.get(field)
    if not isinstance(value, str) or not value.strip():
        if require_all:
            errors[field] = f"{label} is required and must be a non-empty string"
        else:
            errors[field] = f"{label} must be a non-empty string"
        return
    cleaned[field] = value.strip()


def _validate_attributes(value: Any, errors: Dict[str, str]) -> List[Dict[str, str]] | None:
    if not isinstance(value, list):
        errors["attributes"] = "Attributes must be an array"
        return None

    attributes = []
    for item in value:
        if not isinstance(item, dict):
            errors["attributes"] = "Each attribute must be an object with key and value"
            return None
        key = item.get("key")
        attr_value = item.get("value")
        if not isinstance(key, str) or not key.strip():
            errors["attributes"] = "Each attribute must have a non-empty key"
            return None
        if not isinstance(attr_value, str) or not attr_value.strip():
            errors["attributes"] = "Each attribute must have a non-empty value"
            return None
        attributes.append({"key": key.strip(), "value": attr_value.strip()})
    return attributes


def validate_student_payload(payload: Dict[str, Any] | None, *, require_all: bool) -> Validated:
    if payload is None or not isinstance(payload, dict):
        return {}, {"_global": "Request body must be JSON."}

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    for field, label in (
        ("first_name", "First name"),
        ("last_name", "Last name"),
        ("email", "Email"),
        ("phone", "Phone"),
        ("address", "Address"),
    ):
        _non_empty_string(
            payload, field, label, require_all=require_all, cleaned=cleaned, errors=errors
        )

    if "email" in cleaned:
        if not EMAIL_PATTERN.match(cleaned["email"]):
            errors["email"] = "Invalid email format"
            cleaned.pop("email")
        else:
            cleaned["email"] = cleaned["email"].lower()

    if require_all or "cgpa_point" in payload:
        cgpa_point = payload.get("cgpa_point")
        if not _is_number(cgpa_point) or not MIN_CGPA <= cgpa_point <= MAX_CGPA:
            errors["cgpa_point"] = "CGPA point must be a number between 0 and 4.0"
        else:
            cleaned["cgpa_point"] = float(cgpa_point)

    if payload.get("attributes") is not None:
        attributes = _validate_attributes(payload.get("attributes"), errors)
        if attributes is not None:
            cleaned["attributes"] = attributes
    elif not require_all and "attributes" in payload:
        errors["attributes"] = "Attributes must be an array"

    if not require_all:
        for field in ("courses", "grades"):
            if field in payload:
                errors[field] = (
                    "Courses and grades are managed through the course roster "
                    "and bulk CGPA endpoints"
                )

    return cleaned, errors


def _validate_id_list(value: Any, label: str, errors: Dict[str, str], field: str) -> List[ObjectId] | None:
    if not isinstance(value, list):
        errors[field] = f"{label} must be an array"
        return None

    object_ids: List[ObjectId] = []
    for item in value:
        if not item or not isinstance(item, str):
            errors[field] = f"All {label.lower()} IDs must be valid strings"
            return None
        resolved = resolve_object_id(item)
        if resolved is None:
            errors[field] = f"Invalid {label.lower()} ID: {item}"
            return None
        if resolved not in object_ids:
            object_ids.append(resolved)
    return object_ids


def validate_course_payload(payload: Dict[str, Any] | None, *, require_all: bool) -> Validated:
    if payload is None or not isinstance(payload, dict):
        return {}, {"_global": "Request body must be JSON."}

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    _non_empty_string(
        payload,
        "course_name",
        "Course name",
        require_all=require_all,
        cleaned=cleaned,
        errors=errors,
    )

    if "course_code" in payload:
        course_code = payload.get("course_code")
        if course_code in (None, ""):
            cleaned["course_code"] = None
        elif isinstance(course_code, str):
            cleaned["course_code"] = course_code.strip() or None
        else:
            errors["course_code"] = "Course code must be a string"

    if require_all or "credits" in payload:
        credits = payload.get("credits")
        if not _is_number(credits) or credits < 0:
            errors["credits"] = "Credits must be a number greater than or equal to 0"
        else:
            cleaned["credits"] = credits

    if require_all or "faculty_members" in payload:
        members = _validate_id_list(
            payload.get("faculty_members"), "Faculty member", errors, "faculty_members"
        )
        if members is not None:
            if require_all and not members:
                errors["faculty_members"] = (
                    "Faculty members is required and must be a non-empty array"
                )
            else:
                cleaned["faculty_members"] = members

    return cleaned, errors


def validate_faculty_payload(payload: Dict[str, Any] | None, *, require_all: bool) -> Validated:
    if payload is None or not isinstance(payload, dict):
        return {}, {"_global": "Request body must be JSON."}

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}
    _non_empty_string(
        payload, "name", "Name", require_all=require_all, cleaned=cleaned, errors=errors
    )
    return cleaned, errors


def validate_faculty_member_payload(
    payload: Dict[str, Any] | None, *, require_all: bool
) -> Validated:
    if payload is None or not isinstance(payload, dict):
        return {}, {"_global": "Request body must be JSON."}

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}
    _non_empty_string(
        payload, "name", "Name", require_all=require_all, cleaned=cleaned, errors=errors
    )

    if require_all or "faculty_id" in payload:
        faculty_oid = resolve_object_id(payload.get("faculty_id"))
        if faculty_oid is None:
            errors["faculty_id"] = "Faculty ID is required and must be a valid ObjectId"
        else:
            cleaned["faculty_id"] = faculty_oid

    return cleaned, errors


__all__ = [
    "EMAIL_PATTERN",
    "first_error",
    "validate_student_payload",
    "validate_course_payload",
    "validate_faculty_payload",
    "validate_faculty_member_payload",
]
