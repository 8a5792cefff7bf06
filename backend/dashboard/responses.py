"""JSON response envelopes shared by every blueprint."""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import jsonify
from pymongo.errors import PyMongoError

from .config import ConfigError
from .errors import DashboardError

logger = logging.getLogger(__name__)


def json_success(message: str, result: Any = None, status: int = 200):
    return jsonify({"success": True, "message": message, "result": result}), status


def json_list(message: str, results: list, pagination: Dict[str, Any]):
    return (
        jsonify(
            {
                "success": True,
                "message": message,
                "results": results,
                "pagination": pagination,
            }
        ),
        200,
    )


def json_error(message: str, status: int, details: Dict[str, str] | None = None):
    payload: Dict[str, Any] = {"success": False, "message": message}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def handle_service_error(exc: DashboardError):
    return json_error(exc.message, exc.status)


def handle_config_error(exc: ConfigError):
    logger.exception("Missing configuration for MongoDB")
    return json_error(str(exc), 500)


def handle_db_error(action: str, exc: PyMongoError):
    logger.exception("%s due to MongoDB error", action)
    return json_error("Database unavailable. Please try again later.", 503)


__all__ = [
    "json_success",
    "json_list",
    "json_error",
    "handle_service_error",
    "handle_config_error",
    "handle_db_error",
]
