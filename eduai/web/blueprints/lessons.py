"""Lesson catalog routes."""

from flask import Blueprint, jsonify, request

from eduai.progress import lesson_to_dict, list_lessons
from eduai.web.blueprints.helpers import _get_session

lessons_bp = Blueprint("lessons", __name__)


@lessons_bp.route("/api/lessons")
def api_lessons():
    """Return the lesson catalog, optionally filtered by ?grade=N."""
    grade = request.args.get("grade", type=int)
    session = _get_session()
    return jsonify([lesson_to_dict(lesson) for lesson in list_lessons(session, grade)])
