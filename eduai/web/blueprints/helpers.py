"""Shared utilities for EduAI blueprint modules."""

import logging

from flask import current_app, g, jsonify

from eduai.database import get_session

logger = logging.getLogger(__name__)


def _get_session():
    """Get a database session from the shared app engine."""
    if "db_session" not in g:
        engine = current_app.config["DB_ENGINE"]
        g.db_session = get_session(engine)
    return g.db_session


def error_response(message, status=400, **extra):
    payload = {"error": message}
    payload.update(extra)
    return jsonify(payload), status


def parse_number(value, field, errors, cast=float):
    """Coerce ``value`` with ``cast``; append to ``errors`` on failure."""
    if value is None or value == "":
        errors.append(f"{field} is required")
        return None
    if isinstance(value, bool):
        errors.append(f"{field} must be a number")
        return None
    try:
        return cast(value)
    except (TypeError, ValueError):
        errors.append(f"{field} must be a number")
        return None
