from __future__ import annotations

import logging

from flask import Flask, jsonify

from dashboard import config
from dashboard.routes import (
    courses_bp,
    faculty_bp,
    faculty_members_bp,
    students_bp,
    summary_bp,
)

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, config.get_log_level(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> Flask:
    """Build the Flask application with every API blueprint registered."""

    configure_logging()

    app = Flask(__name__)
    app.json.sort_keys = False

    for blueprint in (students_bp, courses_bp, faculty_bp, faculty_members_bp, summary_bp):
        app.register_blueprint(blueprint)

    @app.get("/api/health")
    def health():
        return jsonify({"success": True, "message": "ok"})

    logger.debug("Registered blueprints: %s", ", ".join(app.blueprints))
    return app


app = create_app()


if __name__ == "__main__":
    app.run(debug=True)
