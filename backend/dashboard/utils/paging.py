"""Utilities for parsing pagination query parameters."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Sequence

from pymongo import DESCENDING


class PagingParamError(ValueError):
    """Raised when pagination query parameters are invalid."""


NEWEST_FIRST = [("createdAt", DESCENDING), ("_id", DESCENDING)]


@dataclass
class PagingParams:
    current_page: int
    per_page: int
    search: str

    @property
    def skip(self) -> int:
        return (self.current_page - 1) * self.per_page


def _parse_int_arg(raw_value: str | None, *, name: str, default: int) -> int:
    if raw_value in (None, ""):
        return default
    try:
        return int(raw_value)
    except (TypeError, ValueError):
        raise PagingParamError(f"{name} must be an integer") from None


def parse_paging_params(
    args: Mapping[str, str],
    *,
    default_per_page: int = 10,
    max_per_page: int = 100,
) -> PagingParams:
    """Parse ``current_page``, ``per_page`` and ``search`` from request args."""

    current_page = _parse_int_arg(args.get("current_page"), name="current_page", default=1)
    if current_page < 1:
        raise PagingParamError("current_page must be greater than 0")

    per_page = _parse_int_arg(
        args.get("per_page"), name="per_page", default=default_per_page
    )
    if per_page < 1 or per_page > max_per_page:
        raise PagingParamError(f"per_page must be between 1 and {max_per_page}")

    search = (args.get("search") or "").strip()
    return PagingParams(current_page=current_page, per_page=per_page, search=search)


def search_filter(search: str, fields: Sequence[str]) -> Dict[str, Any]:
    """Case-insensitive substring match of ``search`` over ``fields``."""

    if not search:
        return {}
    pattern = {"$regex": re.escape(search), "$options": "i"}
    if len(fields) == 1:
        return {fields[0]: pattern}
    return {"$or": [{field: pattern} for field in fields]}


def build_pagination(params: PagingParams, count: int) -> Dict[str, Any]:
    total_pages = math.ceil(count / params.per_page) if count else 0
    return {
        "current_page": params.current_page,
        "per_page": params.per_page,
        "count": count,
        "total_pages": total_pages,
        "has_next_page": params.current_page < total_pages,
        "has_prev_page": params.current_page > 1,
    }


__all__ = [
    "NEWEST_FIRST",
    "PagingParamError",
    "PagingParams",
    "parse_paging_params",
    "search_filter",
    "build_pagination",
]
