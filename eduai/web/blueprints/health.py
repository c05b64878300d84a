from flask import Blueprint, jsonify

health_bp = Blueprint("health", __name__)


@health_bp.route("/health")
def health():
    """Health check endpoint for monitoring and Docker."""
    return jsonify({"status": "ok", "service": "eduai"})
