"""
Flask application factory for the EduAI API.
"""

import os

from flask import Flask, g, jsonify

from eduai.config import configure_logging, load_config, recommendation_settings
from eduai.database import get_engine, init_db
from eduai.web.blueprints import register_blueprints


def create_app(config=None):
    """
    Create and configure the Flask application.

    Args:
        config: Application config dict (paths, api, recommendations, ...).
                If None, loads from config.yaml.

    Returns:
        Configured Flask app instance
    """
    app = Flask(__name__)

    if config is None:
        config = load_config()

    app.config["APP_CONFIG"] = config
    app.config["RECOMMENDATIONS"] = recommendation_settings(config)
    configure_logging(config)

    # DATABASE_URL (env var) takes precedence; falls back to the SQLite
    # path in config.
    database_url = os.environ.get("DATABASE_URL")
    db_path = config.get("paths", {}).get("database_file", "eduai_offline.db")
    engine = get_engine(url=database_url) if database_url else get_engine(db_path)
    init_db(engine)
    app.config["DB_ENGINE"] = engine

    @app.teardown_appcontext
    def close_db_session(exception):
        """Close the database session at the end of each request."""
        session = g.pop("db_session", None)
        if session is not None:
            session.close()

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    register_blueprints(app)
    return app
