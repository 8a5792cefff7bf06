"""Application route blueprints."""

from .courses import courses_bp
from .faculty import faculty_bp
from .faculty_members import faculty_members_bp
from .students import students_bp
from .summary import summary_bp

__all__ = [
    "courses_bp",
    "faculty_bp",
    "faculty_members_bp",
    "students_bp",
    "summary_bp",
]
