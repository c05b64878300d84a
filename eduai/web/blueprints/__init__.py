"""Flask blueprints for the EduAI API."""

from eduai.web.blueprints.health import health_bp
from eduai.web.blueprints.learners import learners_bp
from eduai.web.blueprints.lessons import lessons_bp


def register_blueprints(app):
    """Register all blueprint modules on the Flask app."""
    app.register_blueprint(health_bp)
    app.register_blueprint(lessons_bp)
    app.register_blueprint(learners_bp)
