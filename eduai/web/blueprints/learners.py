"""Learner routes: progress, quiz results, recommendations, subject strengths."""

import logging

from flask import Blueprint, current_app, jsonify, request

from eduai.database import Lesson
from eduai.progress import (
    get_progress,
    get_user,
    list_lessons,
    list_quiz_results,
    progress_to_dict,
    quiz_result_to_dict,
    recommendations_for_user,
    record_quiz_result,
    upsert_progress,
)
from eduai.recommendations import get_subject_strengths
from eduai.web.blueprints.helpers import _get_session, error_response, parse_number

logger = logging.getLogger(__name__)

learners_bp = Blueprint("learners", __name__)


def _load_user_or_404(session, user_id):
    user = get_user(session, user_id)
    if user is None:
        return None, error_response("User not found", 404)
    return user, None


def _check_lesson(session, lesson_id, errors):
    if lesson_id is not None and session.get(Lesson, lesson_id) is None:
        errors.append(f"lessonId {lesson_id} does not exist")


@learners_bp.route("/api/users/<int:user_id>/progress", methods=["GET"])
def api_get_progress(user_id):
    session = _get_session()
    return jsonify([progress_to_dict(p) for p in get_progress(session, user_id)])


@learners_bp.route("/api/users/<int:user_id>/progress", methods=["POST"])
def api_save_progress(user_id):
    """Create or update progress for one lesson."""
    session = _get_session()
    user, error = _load_user_or_404(session, user_id)
    if error:
        return error

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response("Invalid progress data: JSON object expected")

    errors = []
    lesson_id = parse_number(data.get("lessonId"), "lessonId", errors, cast=int)
    time_spent = data.get("timeSpent") or 0
    try:
        time_spent = int(time_spent)
    except (TypeError, ValueError):
        errors.append("timeSpent must be a number")
    _check_lesson(session, lesson_id, errors)
    if errors:
        return error_response("Invalid progress data", 400, errors=errors)

    record = upsert_progress(
        session,
        user.id,
        lesson_id,
        completed=bool(data.get("completed")),
        time_spent=time_spent,
        last_accessed=data.get("lastAccessed"),
    )
    return jsonify(progress_to_dict(record)), 201


@learners_bp.route("/api/users/<int:user_id>/quiz-results", methods=["GET"])
def api_get_quiz_results(user_id):
    session = _get_session()
    return jsonify([quiz_result_to_dict(r) for r in list_quiz_results(session, user_id)])


@learners_bp.route("/api/users/<int:user_id>/quiz-results", methods=["POST"])
def api_save_quiz_result(user_id):
    """Store a quiz result.

    Accepts the offline queue payload ({id, userId, lessonId, score,
    maxScore, timestamp}).  Replaying a payload with a known ``id``
    returns 200 with the stored record instead of creating a duplicate.
    """
    session = _get_session()
    user, error = _load_user_or_404(session, user_id)
    if error:
        return error

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response("Invalid quiz data: JSON object expected")

    errors = []
    lesson_id = parse_number(data.get("lessonId"), "lessonId", errors, cast=int)
    score = parse_number(data.get("score"), "score", errors)
    max_score = parse_number(data.get("maxScore"), "maxScore", errors)
    if max_score is not None and max_score <= 0:
        errors.append("maxScore must be positive")
    if score is not None and score < 0:
        errors.append("score must not be negative")
    _check_lesson(session, lesson_id, errors)
    if errors:
        return error_response("Invalid quiz data", 400, errors=errors)

    client_id = data.get("id")
    result, created = record_quiz_result(
        session,
        user.id,
        lesson_id,
        score,
        max_score,
        date_taken=data.get("timestamp") or data.get("dateTaken"),
        client_id=str(client_id) if client_id is not None else None,
    )
    return jsonify(quiz_result_to_dict(result)), (201 if created else 200)


@learners_bp.route("/api/users/<int:user_id>/recommendations")
def api_recommendations(user_id):
    """Top recommendations for a learner (?limit=N)."""
    session = _get_session()
    user, error = _load_user_or_404(session, user_id)
    if error:
        return error

    settings = current_app.config["RECOMMENDATIONS"]
    limit = request.args.get("limit", default=settings.limit, type=int)
    if limit is None or limit < 1:
        return error_response("limit must be a positive integer")

    recommendations = recommendations_for_user(session, user, limit=limit, keep=settings.keep)
    logger.info("Generated %d recommendations for user %s", len(recommendations), user_id)
    return jsonify([r.to_dict() for r in recommendations])


@learners_bp.route("/api/users/<int:user_id>/strengths")
def api_subject_strengths(user_id):
    """Average quiz percentage per subject, strongest first."""
    session = _get_session()
    user, error = _load_user_or_404(session, user_id)
    if error:
        return error
    return jsonify(get_subject_strengths(list_lessons(session), list_quiz_results(session, user.id)))
